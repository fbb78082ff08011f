"""Exception hierarchy for policy resolution, dispatch and scoring.

PolicyEngineError
├── ValidationError           (unknown/duplicate ids, illegal refinements)
├── EngineNotRegistered       (absorbed by the dispatcher as NOT_CHECKED)
├── EngineEvaluationError     (absorbed by the dispatcher as ERROR)
├── RegistryBusyError         (registry mutated while dispatching)
├── FatalInitError            (evaluate aborted, no result produced)
└── NoApplicableRules         (nothing to score)
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, Optional

if TYPE_CHECKING:
    from .models import Score


class PolicyEngineError(Exception):
    """Base exception for the policy engine.

    Attributes:
        message: Human-readable error description
        error_code: Machine-readable error identifier
        context: Additional context for debugging
        cause: Original exception if wrapping another error
    """

    default_code = "POLICY_ENGINE_ERROR"

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.default_code
        self.context = context or {}
        self.cause = cause

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": self.error_code,
            "message": self.message,
            "context": self.context,
            "cause": str(self.cause) if self.cause else None,
        }

    def __str__(self) -> str:
        parts = [f"[{self.error_code}] {self.message}"]
        if self.context:
            parts.append(f" (context: {self.context})")
        if self.cause:
            parts.append(f" (caused by: {self.cause})")
        return "".join(parts)


# =============================================================================
# Validation
# =============================================================================


class ValidationError(PolicyEngineError):
    """An id, selection, binding or refinement does not match the benchmark.

    Raised at resolve time; aborts only the step that hit it.
    """

    default_code = "VALIDATION_ERROR"


class UnknownItemId(ValidationError):
    default_code = "UNKNOWN_ITEM_ID"

    def __init__(self, item_id: str, message: Optional[str] = None, **kwargs: Any):
        super().__init__(
            message or f"No item with id '{item_id}' in benchmark",
            context={"item_id": item_id, **kwargs.pop("context", {})},
            **kwargs,
        )
        self.item_id = item_id


class UnknownValueId(ValidationError):
    default_code = "UNKNOWN_VALUE_ID"

    def __init__(self, value_id: str, message: Optional[str] = None, **kwargs: Any):
        super().__init__(
            message or f"No value with id '{value_id}' in benchmark",
            context={"value_id": value_id, **kwargs.pop("context", {})},
            **kwargs,
        )
        self.value_id = value_id


class DuplicateItemId(ValidationError):
    default_code = "DUPLICATE_ITEM_ID"

    def __init__(self, item_id: str):
        super().__init__(f"Item id '{item_id}' appears more than once", context={"item_id": item_id})
        self.item_id = item_id


class InvalidRefinement(ValidationError):
    """A refine-value names an operator or selector the value cannot take."""

    default_code = "INVALID_REFINEMENT"


class UnknownScoringSystem(ValidationError):
    default_code = "UNKNOWN_SCORING_SYSTEM"

    def __init__(self, system: str):
        super().__init__(f"Unsupported scoring system '{system}'", context={"system": system})
        self.system = system


# =============================================================================
# Dispatch
# =============================================================================


class EngineNotRegistered(PolicyEngineError):
    default_code = "ENGINE_NOT_REGISTERED"

    def __init__(self, system: str):
        super().__init__(f"No checking engine registered for '{system}'", context={"system": system})
        self.system = system


class EngineEvaluationError(PolicyEngineError):
    """Raised by a checking engine when it cannot evaluate one check.

    The dispatcher records ERROR for that check and carries on.
    """

    default_code = "ENGINE_EVALUATION_ERROR"


class RegistryBusyError(PolicyEngineError):
    default_code = "REGISTRY_BUSY"


class FatalInitError(PolicyEngineError):
    """Evaluation could not be set up; no result was produced."""

    default_code = "FATAL_INIT_ERROR"


# =============================================================================
# Scoring
# =============================================================================


class NoApplicableRules(PolicyEngineError):
    default_code = "NO_APPLICABLE_RULES"

    def __init__(self, score: "Score"):
        super().__init__(
            f"No scored rules in result for scoring system '{score.system}'",
            context={"system": score.system},
        )
        self.score = score
