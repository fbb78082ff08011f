from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Annotated, Dict, Iterator, List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field


class Outcome(str, Enum):
    PASS = "pass"
    FAIL = "fail"
    ERROR = "error"
    UNKNOWN = "unknown"
    NOT_APPLICABLE = "notapplicable"
    NOT_CHECKED = "notchecked"
    NOT_SELECTED = "notselected"
    INFORMATIONAL = "informational"
    FIXED = "fixed"


class BoolOperator(str, Enum):
    AND = "AND"
    OR = "OR"


class ValueType(str, Enum):
    NUMBER = "number"
    STRING = "string"
    BOOLEAN = "boolean"


class ValueOperator(str, Enum):
    EQUALS = "equals"
    NOT_EQUAL = "not equal"
    GREATER_THAN = "greater than"
    LESS_THAN = "less than"
    GREATER_THAN_OR_EQUAL = "greater than or equal"
    LESS_THAN_OR_EQUAL = "less than or equal"
    PATTERN_MATCH = "pattern match"
    SUBSET_OF = "subset of"
    SUPERSET_OF = "superset of"


LEGAL_OPERATORS: Dict[ValueType, frozenset] = {
    ValueType.NUMBER: frozenset(
        {
            ValueOperator.EQUALS,
            ValueOperator.NOT_EQUAL,
            ValueOperator.GREATER_THAN,
            ValueOperator.LESS_THAN,
            ValueOperator.GREATER_THAN_OR_EQUAL,
            ValueOperator.LESS_THAN_OR_EQUAL,
        }
    ),
    ValueType.STRING: frozenset(
        {
            ValueOperator.EQUALS,
            ValueOperator.NOT_EQUAL,
            ValueOperator.PATTERN_MATCH,
            ValueOperator.SUBSET_OF,
            ValueOperator.SUPERSET_OF,
        }
    ),
    ValueType.BOOLEAN: frozenset({ValueOperator.EQUALS, ValueOperator.NOT_EQUAL}),
}


class Severity(str, Enum):
    UNKNOWN = "unknown"
    INFO = "info"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class RuleRole(str, Enum):
    FULL = "full"
    UNSCORED = "unscored"
    UNCHECKED = "unchecked"


# ---------------------------------------------------------------------------
# Item tree
# ---------------------------------------------------------------------------


class CheckExport(BaseModel):
    value_id: str
    export_name: str


class CheckContentRef(BaseModel):
    href: str = ""
    # Without a name the engine is asked which names the href provides.
    name: Optional[str] = None


class Check(BaseModel):
    system: str
    selector: str = ""
    negate: bool = False
    content_refs: List[CheckContentRef] = Field(default_factory=list)
    content: Optional[str] = None
    exports: List[CheckExport] = Field(default_factory=list)


class ComplexCheck(BaseModel):
    # Keeps plain check dicts from validating as an empty complex check.
    model_config = ConfigDict(extra="forbid")

    operator: BoolOperator = BoolOperator.AND
    negate: bool = False
    checks: List[Union[ComplexCheck, Check]] = Field(default_factory=list)


class Value(BaseModel):
    type: Literal["value"] = "value"
    id: str
    title: str = ""
    value_type: ValueType = ValueType.STRING
    operator: ValueOperator = ValueOperator.EQUALS
    value: str = ""
    # selector -> literal; picked by a profile refine-value selector.
    alternatives: Dict[str, str] = Field(default_factory=dict)


class Rule(BaseModel):
    type: Literal["rule"] = "rule"
    id: str
    title: str = ""
    selected: bool = True
    weight: float = Field(default=1.0, ge=0)
    severity: Severity = Severity.UNKNOWN
    role: RuleRole = RuleRole.FULL
    checks: List[Check] = Field(default_factory=list)
    check_operator: BoolOperator = BoolOperator.AND
    complex_check: Optional[ComplexCheck] = None


class Group(BaseModel):
    type: Literal["group"] = "group"
    id: str
    title: str = ""
    selected: bool = True
    weight: float = Field(default=1.0, ge=0)
    operator: BoolOperator = BoolOperator.AND
    items: List[Item] = Field(default_factory=list)


Item = Annotated[Union[Group, Rule, Value], Field(discriminator="type")]


class Select(BaseModel):
    idref: str
    selected: bool = True


class RefineRule(BaseModel):
    idref: str
    weight: Optional[float] = Field(default=None, ge=0)
    severity: Optional[Severity] = None
    role: Optional[RuleRole] = None
    selector: Optional[str] = None


class RefineValue(BaseModel):
    idref: str
    selector: Optional[str] = None
    operator: Optional[ValueOperator] = None


class SetValue(BaseModel):
    idref: str
    value: str


class Profile(BaseModel):
    id: str
    title: str = ""
    extends: Optional[str] = None
    selects: List[Select] = Field(default_factory=list)
    refine_rules: List[RefineRule] = Field(default_factory=list)
    refine_values: List[RefineValue] = Field(default_factory=list)
    set_values: List[SetValue] = Field(default_factory=list)


class Benchmark(BaseModel):
    id: str
    title: str = ""
    resolved: bool = False
    items: List[Item] = Field(default_factory=list)
    profiles: List[Profile] = Field(default_factory=list)
    # Scoring models declared by the benchmark.
    models: List[str] = Field(default_factory=lambda: ["urn:xccdf:scoring:default"])


Group.model_rebuild()
ComplexCheck.model_rebuild()
Benchmark.model_rebuild()


# ---------------------------------------------------------------------------
# Bindings, results, scores
# ---------------------------------------------------------------------------


class ValueBinding(BaseModel):
    model_config = ConfigDict(frozen=True)

    value_id: str
    value: str
    value_type: ValueType = ValueType.STRING
    operator: ValueOperator = ValueOperator.EQUALS


class CheckResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    system: str
    content_ref: str = ""
    href: str = ""
    outcome: Outcome
    message: str = ""


class RuleResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["rule"] = "rule"
    rule_id: str
    title: str = ""
    outcome: Outcome
    weight: float = 1.0
    severity: Severity = Severity.UNKNOWN
    role: RuleRole = RuleRole.FULL
    checks: Tuple[CheckResult, ...] = ()

    @property
    def id(self) -> str:
        return self.rule_id


class GroupResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["group"] = "group"
    id: str
    title: str = ""
    operator: BoolOperator = BoolOperator.AND
    outcome: Outcome
    children: Tuple[ResultNode, ...] = ()


ResultNode = Annotated[Union[GroupResult, RuleResult], Field(discriminator="kind")]

GroupResult.model_rebuild()


class TestResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    benchmark_id: str
    profile_id: Optional[str] = None
    start_time: datetime
    end_time: datetime
    outcome: Outcome
    children: Tuple[ResultNode, ...] = ()
    totals: Dict[Outcome, int] = Field(default_factory=dict)

    def iter_nodes(self) -> Iterator[Union[GroupResult, RuleResult]]:
        stack = list(reversed(self.children))
        while stack:
            node = stack.pop()
            yield node
            if isinstance(node, GroupResult):
                stack.extend(reversed(node.children))

    def iter_rule_results(self) -> Iterator[RuleResult]:
        for node in self.iter_nodes():
            if isinstance(node, RuleResult):
                yield node

    def rule_ids(self) -> List[str]:
        return [r.rule_id for r in self.iter_rule_results()]

    def get(self, item_id: str) -> Optional[Union[GroupResult, RuleResult]]:
        for node in self.iter_nodes():
            if node.id == item_id:
                return node
        return None

    def outcome_for(self, item_id: str) -> Optional[Outcome]:
        if item_id == self.benchmark_id:
            return self.outcome
        node = self.get(item_id)
        return node.outcome if node is not None else None


class Score(BaseModel):
    model_config = ConfigDict(frozen=True)

    system: str
    value: float
    max: float
