from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple, Union

from .config import EvaluationConfig
from .context import ReporterMessage
from .dispatcher import evaluate
from .engine import CallbackEngine, CheckingEngine, EvalFn, OutputFn, QueryFn, StartFn
from .errors import InvalidRefinement, ValidationError
from .models import (
    LEGAL_OPERATORS,
    Benchmark,
    Profile,
    RefineRule,
    RefineValue,
    Score,
    Select,
    TestResult,
    Value,
    ValueBinding,
)
from .registry import EngineRegistry
from .scoring import score, score_all
from .selection import resolve_benchmark, resolve_selections, tailor_item
from .tree import ItemIndex, TreeItem, iter_checks
from .values import resolve_value, resolve_values, substitute

logger = logging.getLogger(__name__)

Reporter = Callable[[ReporterMessage, Any], Any]


@dataclass(frozen=True)
class FileEntry:
    system: str
    href: str


class PolicyModel:
    """Owns one benchmark, the policies built on it and their checking engines.

    The benchmark is copied on construction so that nothing outside the model
    can change it while policies are evaluated.
    """

    def __init__(self, benchmark: Benchmark, *, config: Optional[EvaluationConfig] = None):
        self._benchmark = benchmark.model_copy(deep=True)
        self._index = ItemIndex(self._benchmark)
        self._config = config or EvaluationConfig()
        self._engines = EngineRegistry()
        self._start_reporters: List[Tuple[Reporter, Any]] = []
        self._output_reporters: List[Tuple[Reporter, Any]] = []

        self._profiles: Dict[str, Profile] = {}
        for profile in self._benchmark.profiles:
            if profile.id in self._profiles:
                raise ValidationError(
                    f"Profile id '{profile.id}' appears more than once",
                    error_code="DUPLICATE_PROFILE_ID",
                    context={"profile_id": profile.id},
                )
            self._profiles[profile.id] = profile

        # Built on first use; None keys the default (profile-less) policy.
        self._policies: Dict[Optional[str], Policy] = {}

    @property
    def benchmark(self) -> Benchmark:
        return self._benchmark

    @property
    def index(self) -> ItemIndex:
        return self._index

    @property
    def config(self) -> EvaluationConfig:
        return self._config

    @property
    def engines(self) -> EngineRegistry:
        return self._engines

    @property
    def profiles(self) -> List[Profile]:
        return list(self._profiles.values())

    def get_profile(self, profile_id: str) -> Optional[Profile]:
        return self._profiles.get(profile_id)

    def profile_chain(self, profile: Profile) -> List[Profile]:
        """The profile and the profiles it extends, root first."""
        chain = [profile]
        seen = {profile.id}
        current = profile
        while current.extends:
            parent = self._profiles.get(current.extends)
            if parent is None:
                raise ValidationError(
                    f"Profile '{current.id}' extends unknown profile '{current.extends}'",
                    context={"profile_id": current.id, "extends": current.extends},
                )
            if parent.id in seen:
                raise ValidationError(
                    f"Profile '{profile.id}' has an inheritance cycle through '{parent.id}'",
                    context={"profile_id": profile.id},
                )
            seen.add(parent.id)
            chain.append(parent)
            current = parent
        chain.reverse()
        return chain

    # ------------------------------------------------------------------
    # Policies
    # ------------------------------------------------------------------

    @property
    def policies(self) -> List["Policy"]:
        policies = [self.get_policy_by_id(None)]
        policies.extend(self.get_policy_by_id(profile_id) for profile_id in self._profiles)
        return policies

    def get_policy_by_id(self, profile_id: Optional[str]) -> Optional["Policy"]:
        """Policy for ``profile_id`` (None -> benchmark defaults), or None if no such profile."""
        if profile_id in self._policies:
            return self._policies[profile_id]
        if profile_id is None:
            policy = Policy(self, None)
        else:
            profile = self._profiles.get(profile_id)
            if profile is None:
                return None
            policy = Policy(self, profile)
        logger.debug("Built policy for profile %s of %s", profile_id or "(default)", self._benchmark.id)
        self._policies[profile_id] = policy
        return policy

    def new_policy(self, profile: Union[Profile, str, None] = None) -> "Policy":
        """A fresh policy that is not tracked by the model until ``add_policy``."""
        if isinstance(profile, str):
            found = self._profiles.get(profile)
            if found is None:
                raise ValidationError(f"No profile with id '{profile}'", context={"profile_id": profile})
            profile = found
        return Policy(self, profile)

    def add_policy(self, policy: "Policy") -> None:
        """Track ``policy`` under its profile id; an id already tracked by another policy is refused."""
        if policy.model is not self:
            raise ValidationError("Policy belongs to a different policy model", context={"policy_id": policy.id})
        current = self._policies.get(policy.id)
        if current is not None and current is not policy:
            raise ValidationError(
                f"A policy for profile '{policy.id or '(default)'}' is already tracked",
                error_code="DUPLICATE_POLICY",
                context={"policy_id": policy.id},
            )
        self._policies[policy.id] = policy

    # ------------------------------------------------------------------
    # Engines and reporters
    # ------------------------------------------------------------------

    def register_engine(
        self,
        system: str,
        eval_fn: EvalFn,
        start_fn: Optional[StartFn] = None,
        output_fn: Optional[OutputFn] = None,
        user_data: Any = None,
        query_fn: Optional[QueryFn] = None,
    ) -> CallbackEngine:
        return self._engines.register_callbacks(
            system,
            eval_fn,
            start_fn=start_fn,
            output_fn=output_fn,
            user_data=user_data,
            query_fn=query_fn,
        )

    def register_checking_engine(self, engine: CheckingEngine) -> CheckingEngine:
        return self._engines.register(engine)

    def register_start_callback(self, fn: Reporter, user_data: Any = None) -> None:
        self._start_reporters.append((fn, user_data))

    def register_output_callback(self, fn: Reporter, user_data: Any = None) -> None:
        self._output_reporters.append((fn, user_data))

    @property
    def start_reporters(self) -> Tuple[Tuple[Reporter, Any], ...]:
        return tuple(self._start_reporters)

    @property
    def output_reporters(self) -> Tuple[Tuple[Reporter, Any], ...]:
        return tuple(self._output_reporters)

    # ------------------------------------------------------------------
    # Check content
    # ------------------------------------------------------------------

    def systems_and_files(self) -> List[FileEntry]:
        """Distinct (check system, href) pairs referenced by any rule, in document order.

        Every href has to be loaded into the matching engine, otherwise its
        checks come out NOT_CHECKED.
        """
        entries: List[FileEntry] = []
        seen = set()
        for rule in self._index.rules():
            for check in iter_checks(rule):
                for ref in check.content_refs:
                    entry = FileEntry(system=check.system, href=ref.href)
                    if ref.href and entry not in seen:
                        seen.add(entry)
                        entries.append(entry)
        return entries

    def files(self) -> List[str]:
        files: List[str] = []
        for entry in self.systems_and_files():
            if entry.href not in files:
                files.append(entry.href)
        return files


class Policy:
    """A profile (or the benchmark defaults) bound to a PolicyModel.

    Tailoring read from the profile and its parents is kept as id-keyed
    overrides; the benchmark is never modified. Setters validate ids against
    the benchmark and raise ValidationError before changing anything.
    """

    def __init__(self, model: PolicyModel, profile: Optional[Profile] = None):
        self._model = model
        self._profile = profile
        self._selections: Dict[str, bool] = {}
        self._refine_rules: Dict[str, RefineRule] = {}
        self._refine_values: Dict[str, RefineValue] = {}
        self._set_values: Dict[str, str] = {}
        self._bound_values: Dict[str, ValueBinding] = {}
        self._results: List[TestResult] = []
        self._evaluation_lock = threading.Lock()

        if profile is not None:
            for entry in model.profile_chain(profile):
                self._apply_profile(entry)

    def _apply_profile(self, profile: Profile) -> None:
        index = self._model.index
        for select in profile.selects:
            self._check_selectable(select.idref, profile.id)
            self._selections[select.idref] = select.selected
        for refine_rule in profile.refine_rules:
            if isinstance(index.require(refine_rule.idref), Value):
                raise ValidationError(
                    f"refine-rule in profile '{profile.id}' targets value '{refine_rule.idref}'",
                    context={"profile_id": profile.id, "idref": refine_rule.idref},
                )
            self._refine_rules[refine_rule.idref] = refine_rule
        for refine_value in profile.refine_values:
            index.value(refine_value.idref)
            self._refine_values[refine_value.idref] = refine_value
        for set_value in profile.set_values:
            index.value(set_value.idref)
            self._set_values[set_value.idref] = set_value.value

    @property
    def id(self) -> Optional[str]:
        return self._profile.id if self._profile is not None else None

    @property
    def profile(self) -> Optional[Profile]:
        return self._profile

    @property
    def model(self) -> PolicyModel:
        return self._model

    @property
    def evaluation_lock(self) -> threading.Lock:
        return self._evaluation_lock

    # ------------------------------------------------------------------
    # Tailoring state
    # ------------------------------------------------------------------

    @property
    def selections(self) -> Mapping[str, bool]:
        return MappingProxyType(self._selections)

    @property
    def refine_rules(self) -> Mapping[str, RefineRule]:
        return MappingProxyType(self._refine_rules)

    @property
    def refine_values(self) -> Mapping[str, RefineValue]:
        return MappingProxyType(self._refine_values)

    @property
    def set_values(self) -> Mapping[str, str]:
        return MappingProxyType(self._set_values)

    @property
    def bound_values(self) -> Mapping[str, ValueBinding]:
        return MappingProxyType(self._bound_values)

    @property
    def selects(self) -> List[Select]:
        return [Select(idref=idref, selected=flag) for idref, flag in self._selections.items()]

    def get_select_by_id(self, item_id: str) -> Optional[Select]:
        if item_id not in self._selections:
            return None
        return Select(idref=item_id, selected=self._selections[item_id])

    def add_select(self, select: Select) -> None:
        self._check_selectable(select.idref)
        self._selections[select.idref] = select.selected

    def _check_selectable(self, idref: str, profile_id: Optional[str] = None) -> None:
        if isinstance(self._model.index.require(idref), Value):
            raise ValidationError(
                f"select targets value '{idref}'; only groups and rules can be selected",
                context={"profile_id": profile_id, "idref": idref},
            )

    def set_selected(self, idref: str, selected: bool = True) -> None:
        self.add_select(Select(idref=idref, selected=selected))

    def add_value(self, binding: ValueBinding) -> None:
        value = self._model.index.value(binding.value_id)
        if binding.value_type != value.value_type:
            raise ValidationError(
                f"Binding for '{binding.value_id}' has type {binding.value_type.value}, "
                f"value is {value.value_type.value}",
                context={"value_id": binding.value_id},
            )
        if binding.operator not in LEGAL_OPERATORS[binding.value_type]:
            raise InvalidRefinement(
                f"Operator '{binding.operator.value}' is not valid for {binding.value_type.value} "
                f"value '{binding.value_id}'",
                context={"value_id": binding.value_id, "operator": binding.operator.value},
            )
        self._bound_values[binding.value_id] = binding

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def selected_rules(self) -> List[str]:
        return resolve_selections(self)

    def resolve_value(self, value_id: str) -> ValueBinding:
        return resolve_value(self, value_id)

    @property
    def values(self) -> List[ValueBinding]:
        return resolve_values(self)

    def substitute(self, text: str) -> str:
        return substitute(text, self)

    def tailor_item(self, item: Union[TreeItem, str]) -> TreeItem:
        if isinstance(item, str):
            item = self._model.index.require(item)
        return tailor_item(self, item)

    def resolve(self) -> Benchmark:
        """Benchmark snapshot with this policy's tailoring baked in. See ``resolve_benchmark``."""
        return resolve_benchmark(self)

    # ------------------------------------------------------------------
    # Evaluation and results
    # ------------------------------------------------------------------

    def evaluate(self) -> TestResult:
        return evaluate(self)

    def next_result_id(self) -> str:
        suffix = self.id or "default_profile"
        return f"{self._model.config.result_id_prefix}{suffix}-{len(self._results) + 1}"

    def add_result(self, result: TestResult) -> None:
        if self.get_result_by_id(result.id) is not None:
            raise ValidationError(f"Result '{result.id}' already recorded", context={"result_id": result.id})
        self._results.append(result)

    @property
    def results(self) -> Tuple[TestResult, ...]:
        return tuple(self._results)

    def get_result_by_id(self, result_id: str) -> Optional[TestResult]:
        for result in self._results:
            if result.id == result_id:
                return result
        return None

    def score(self, result: TestResult, system: Optional[str] = None) -> Score:
        return score(self, result, system)

    def scores(self, result: TestResult) -> List[Score]:
        return score_all(self, result)
