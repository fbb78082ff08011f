from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import Dict, Iterable, Iterator, List, Optional

from .engine import CallbackEngine, CheckingEngine, EvalFn, OutputFn, QueryFn, StartFn
from .errors import EngineNotRegistered, RegistryBusyError

logger = logging.getLogger(__name__)


class EngineRegistry:
    """Check-system URI -> CheckingEngine.

    One registry per PolicyModel. Registration must happen before evaluation;
    the registry refuses changes while any evaluation is dispatching.
    """

    def __init__(self):
        self._engines: Dict[str, CheckingEngine] = {}
        self._lock = threading.Lock()
        self._active_dispatches = 0

    def register(self, engine: CheckingEngine) -> CheckingEngine:
        system = getattr(engine, "system", None)
        if not system:
            raise ValueError("Checking engine missing system")
        with self._lock:
            self._ensure_idle(system)
            if system in self._engines:
                logger.warning("Replacing checking engine registered for %s", system)
            self._engines[system] = engine
        return engine

    def register_callbacks(
        self,
        system: str,
        eval_fn: EvalFn,
        start_fn: Optional[StartFn] = None,
        output_fn: Optional[OutputFn] = None,
        user_data=None,
        query_fn: Optional[QueryFn] = None,
    ) -> CallbackEngine:
        engine = CallbackEngine(
            system,
            eval_fn,
            start_fn=start_fn,
            output_fn=output_fn,
            user_data=user_data,
            query_fn=query_fn,
        )
        self.register(engine)
        return engine

    def unregister(self, system: str) -> None:
        with self._lock:
            self._ensure_idle(system)
            if self._engines.pop(system, None) is None:
                raise EngineNotRegistered(system)

    def _ensure_idle(self, system: str) -> None:
        if self._active_dispatches:
            raise RegistryBusyError(
                f"Cannot change engine for '{system}' while an evaluation is dispatching",
                context={"system": system, "active_dispatches": self._active_dispatches},
            )

    def get(self, system: str) -> Optional[CheckingEngine]:
        return self._engines.get(system)

    def require(self, system: str) -> CheckingEngine:
        engine = self._engines.get(system)
        if engine is None:
            raise EngineNotRegistered(system)
        return engine

    def systems(self) -> Iterable[str]:
        return list(self._engines.keys())

    def names_for_href(self, system: str, href: str) -> Optional[List[str]]:
        return self.require(system).names_for_href(href)

    def __contains__(self, system: str) -> bool:
        return system in self._engines

    def __len__(self) -> int:
        return len(self._engines)

    @contextmanager
    def dispatching(self) -> Iterator["EngineRegistry"]:
        with self._lock:
            self._active_dispatches += 1
        try:
            yield self
        finally:
            with self._lock:
                self._active_dispatches -= 1
