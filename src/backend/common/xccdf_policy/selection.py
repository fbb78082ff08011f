from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Optional

from .models import Benchmark, Check, Group, Rule, Value
from .tree import TreeItem
from .values import resolve_value

if TYPE_CHECKING:
    from .policy import Policy


def resolve_selections(policy: "Policy") -> List[str]:
    """Rule ids to evaluate under ``policy``, in document order.

    A node's effective flag is its explicit selection when the policy has one
    for that exact id, else ``parent_effective and node.selected``. An explicit
    selection therefore overrides whatever its ancestors resolved to, and the
    nearest explicitly selected ancestor decides for the nodes below it.
    """
    selections = policy.selections
    selected: List[str] = []

    def _walk(items: Iterable[TreeItem], parent_effective: bool) -> None:
        for item in items:
            if isinstance(item, Value):
                continue
            effective = _effective(item, parent_effective, selections)
            if isinstance(item, Group):
                _walk(item.items, effective)
            elif effective:
                selected.append(item.id)

    _walk(policy.model.benchmark.items, True)
    return selected


def _effective(item: TreeItem, parent_effective: bool, selections: Dict[str, bool]) -> bool:
    if item.id in selections:
        return selections[item.id]
    return parent_effective and item.selected


def select_checks(checks: List[Check], selector: Optional[str]) -> List[Check]:
    """Checks matching a refine-rule selector, else the unlabelled ones, else all."""
    selector = selector or ""
    matching = [check for check in checks if check.selector == selector]
    if matching:
        return matching
    unlabelled = [check for check in checks if not check.selector]
    return unlabelled or list(checks)


def tailor_item(policy: "Policy", item: TreeItem) -> TreeItem:
    """Detached copy of ``item`` with the policy's tailoring applied.

    Only the item's own attributes are tailored; a group's children are copied
    as they are in the benchmark.
    """
    update: Dict[str, Any] = {}
    if isinstance(item, Value):
        binding = resolve_value(policy, item.id)
        update["value"] = binding.value
        update["operator"] = binding.operator
        return item.model_copy(update=update, deep=True)

    if item.id in policy.selections:
        update["selected"] = policy.selections[item.id]
    refine = policy.refine_rules.get(item.id)
    if refine is not None:
        if refine.weight is not None:
            update["weight"] = refine.weight
        if isinstance(item, Rule):
            if refine.severity is not None:
                update["severity"] = refine.severity
            if refine.role is not None:
                update["role"] = refine.role
            if refine.selector is not None:
                update["checks"] = [
                    check.model_copy(deep=True) for check in select_checks(item.checks, refine.selector)
                ]
    return item.model_copy(update=update, deep=True)


def resolve_benchmark(policy: "Policy") -> Benchmark:
    """Bake the policy's tailoring into a new, detached benchmark.

    Selected flags become the effective selection, refine-rule and
    refine-value/set-value land on the items. The policy model's benchmark is
    not touched; the returned snapshot is marked ``resolved``.
    """
    selections = policy.selections

    def _resolve(items: Iterable[TreeItem], parent_effective: bool) -> List[TreeItem]:
        resolved: List[TreeItem] = []
        for item in items:
            tailored = tailor_item(policy, item)
            if isinstance(item, Value):
                resolved.append(tailored)
                continue
            effective = _effective(item, parent_effective, selections)
            update: Dict[str, Any] = {"selected": effective}
            if isinstance(item, Group):
                update["items"] = _resolve(item.items, effective)
            resolved.append(tailored.model_copy(update=update))
        return resolved

    benchmark = policy.model.benchmark
    items = _resolve(benchmark.items, True)
    return benchmark.model_copy(update={"items": items, "resolved": True}, deep=True)
