from __future__ import annotations

from typing import Dict, Iterable, Iterator, List, Optional, Union

from .errors import DuplicateItemId, UnknownItemId, UnknownValueId
from .models import Benchmark, Check, ComplexCheck, Group, Rule, Value

TreeItem = Union[Group, Rule, Value]


class ItemIndex:
    """Id lookup, parent links and document order over a benchmark's items.

    The index is built once per PolicyModel and never changes; it holds
    references into the benchmark, so the benchmark must not be edited
    afterwards.
    """

    def __init__(self, benchmark: Benchmark):
        self._benchmark = benchmark
        self._items: Dict[str, TreeItem] = {}
        self._parents: Dict[str, Optional[str]] = {}
        self._walk(benchmark.items, parent_id=None)

    def _walk(self, items: Iterable[TreeItem], parent_id: Optional[str]) -> None:
        for item in items:
            if item.id in self._items or item.id == self._benchmark.id:
                raise DuplicateItemId(item.id)
            self._items[item.id] = item
            self._parents[item.id] = parent_id
            if isinstance(item, Group):
                self._walk(item.items, parent_id=item.id)

    @property
    def benchmark(self) -> Benchmark:
        return self._benchmark

    def __contains__(self, item_id: str) -> bool:
        return item_id in self._items

    def get(self, item_id: str) -> Optional[TreeItem]:
        return self._items.get(item_id)

    def require(self, item_id: str) -> TreeItem:
        item = self._items.get(item_id)
        if item is None:
            raise UnknownItemId(item_id)
        return item

    def item_type(self, item_id: str) -> str:
        return self.require(item_id).type

    def value(self, value_id: str) -> Value:
        item = self._items.get(value_id)
        if not isinstance(item, Value):
            raise UnknownValueId(value_id)
        return item

    def rule(self, rule_id: str) -> Rule:
        item = self._items.get(rule_id)
        if not isinstance(item, Rule):
            raise UnknownItemId(rule_id, message=f"No rule with id '{rule_id}' in benchmark")
        return item

    def parent(self, item_id: str) -> Optional[str]:
        """Parent group id, or None for items directly under the benchmark."""
        self.require(item_id)
        return self._parents[item_id]

    def ancestors(self, item_id: str) -> List[str]:
        chain: List[str] = []
        parent = self.parent(item_id)
        while parent is not None:
            chain.append(parent)
            parent = self._parents[parent]
        return chain

    def ids(self) -> List[str]:
        return list(self._items)

    def rules(self) -> Iterator[Rule]:
        for item in self._items.values():
            if isinstance(item, Rule):
                yield item

    def values(self) -> Iterator[Value]:
        for item in self._items.values():
            if isinstance(item, Value):
                yield item


def iter_checks(rule: Rule) -> Iterator[Check]:
    """Every plain check under a rule, including those nested in complex checks."""
    yield from rule.checks
    if rule.complex_check is not None:
        yield from _iter_complex(rule.complex_check)


def _iter_complex(node: ComplexCheck) -> Iterator[Check]:
    for child in node.checks:
        if isinstance(child, ComplexCheck):
            yield from _iter_complex(child)
        else:
            yield child
