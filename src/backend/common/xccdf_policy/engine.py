from __future__ import annotations

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Callable, List, Optional, Union

from .context import CheckContext
from .models import Outcome


class EngineQuery(int, Enum):
    # Possible check-content-ref names for a given href.
    NAMES_FOR_HREF = 1


class CheckingEngine(ABC):
    """A checking system (OVAL, SCE, ...) the dispatcher sends checks to."""

    system: str

    def __init__(self):
        if not getattr(self, "system", None):
            raise ValueError("CheckingEngine must define system")

    def start(self, ctx: CheckContext) -> None:
        return None

    @abstractmethod
    def evaluate(self, content_ref: str, ctx: CheckContext) -> Outcome:  # pragma: no cover
        raise NotImplementedError

    def finish(self, ctx: CheckContext, outcome: Outcome) -> None:
        return None

    def names_for_href(self, href: str) -> Optional[List[str]]:
        """Names defined by ``href``, or None when the engine cannot tell."""
        return None


EvalFn = Callable[[str, CheckContext, Any], Union[Outcome, str]]
StartFn = Callable[[CheckContext, Any], Any]
OutputFn = Callable[[CheckContext, Outcome, Any], Any]
QueryFn = Callable[[Any, EngineQuery, Any], Any]


class CallbackEngine(CheckingEngine):
    """Adapts plain callbacks plus an opaque user-data object to CheckingEngine."""

    def __init__(
        self,
        system: str,
        eval_fn: EvalFn,
        *,
        start_fn: Optional[StartFn] = None,
        output_fn: Optional[OutputFn] = None,
        user_data: Any = None,
        query_fn: Optional[QueryFn] = None,
    ):
        self.system = system
        super().__init__()
        self.eval_fn = eval_fn
        self.start_fn = start_fn
        self.output_fn = output_fn
        self.user_data = user_data
        self.query_fn = query_fn

    def start(self, ctx: CheckContext) -> None:
        if self.start_fn is not None:
            self.start_fn(ctx, self.user_data)

    def evaluate(self, content_ref: str, ctx: CheckContext) -> Outcome:
        return self.eval_fn(content_ref, ctx, self.user_data)

    def finish(self, ctx: CheckContext, outcome: Outcome) -> None:
        if self.output_fn is not None:
            self.output_fn(ctx, outcome, self.user_data)

    def names_for_href(self, href: str) -> Optional[List[str]]:
        if self.query_fn is None:
            return None
        names = self.query_fn(self.user_data, EngineQuery.NAMES_FOR_HREF, href)
        return list(names) if names is not None else None
