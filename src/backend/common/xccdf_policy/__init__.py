"""XCCDF policy resolution and rule evaluation.

This package contains only the policy layer:
- Benchmarks are pydantic models (see `loader.load_benchmark` for files).
- Checks are handed to checking engines registered per check system.
- No XML parsing, OVAL probing or report rendering lives here.
"""

from .combiner import combine, combine_and, combine_or, fold, negate
from .config import EvaluationConfig
from .context import CheckContext, ReporterMessage
from .engine import CallbackEngine, CheckingEngine, EngineQuery
from .errors import (
    DuplicateItemId,
    EngineEvaluationError,
    EngineNotRegistered,
    FatalInitError,
    InvalidRefinement,
    NoApplicableRules,
    PolicyEngineError,
    RegistryBusyError,
    UnknownItemId,
    UnknownScoringSystem,
    UnknownValueId,
    ValidationError,
)
from .loader import load_benchmark, parse_benchmark
from .models import (
    Benchmark,
    BoolOperator,
    Check,
    CheckContentRef,
    CheckExport,
    CheckResult,
    ComplexCheck,
    Group,
    GroupResult,
    Outcome,
    Profile,
    RefineRule,
    RefineValue,
    Rule,
    RuleResult,
    RuleRole,
    Score,
    Select,
    SetValue,
    Severity,
    TestResult,
    Value,
    ValueBinding,
    ValueOperator,
    ValueType,
)
from .policy import FileEntry, Policy, PolicyModel
from .registry import EngineRegistry
