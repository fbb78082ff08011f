from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Dict, Iterable, List, Optional, Union

from .combiner import fold, negate
from .context import CheckContext, ReporterMessage
from .engine import CheckingEngine
from .errors import EngineEvaluationError, EngineNotRegistered, FatalInitError, ValidationError
from .models import (
    BoolOperator,
    Check,
    CheckContentRef,
    CheckResult,
    ComplexCheck,
    Group,
    GroupResult,
    Outcome,
    Rule,
    RuleResult,
    RuleRole,
    TestResult,
)
from .selection import resolve_selections, select_checks
from .tree import TreeItem
from .values import resolve_value, substitute

if TYPE_CHECKING:
    from .policy import Policy

logger = logging.getLogger(__name__)


class Dispatcher:
    """Runs one evaluation of a policy against the model's registered engines.

    Rules are evaluated one after the other in resolved order. Engine failures
    stay local to the check that hit them; only a failure to set the
    evaluation up escapes, and then no result is produced.
    """

    def __init__(self, policy: "Policy"):
        self._policy = policy
        self._model = policy.model
        self._engines = policy.model.engines
        self._config = policy.model.config

    def run(self) -> TestResult:
        lock = self._policy.evaluation_lock
        if not _acquire(lock, self._config.lock_timeout_seconds):
            raise FatalInitError(
                "Could not acquire evaluation lock; the policy is already being evaluated",
                context={"policy_id": self._policy.id, "timeout": self._config.lock_timeout_seconds},
            )
        try:
            with self._engines.dispatching():
                result = self._run()
            self._policy.add_result(result)
            return result
        finally:
            lock.release()

    def _run(self) -> TestResult:
        start_time = datetime.now(timezone.utc)
        rule_ids = resolve_selections(self._policy)
        logger.info(
            "Evaluating %d selected rule(s) of %s for policy %s",
            len(rule_ids),
            self._model.benchmark.id,
            self._policy.id or "(default)",
        )

        rule_results: Dict[str, RuleResult] = {}
        for rule_id in rule_ids:
            rule_results[rule_id] = self._evaluate_rule(self._model.index.rule(rule_id))

        children = self._build_tree(self._model.benchmark.items, rule_results)
        outcome = fold((c.outcome for c in children), BoolOperator.AND, empty=Outcome.NOT_SELECTED)

        totals: Dict[Outcome, int] = {}
        for res in rule_results.values():
            totals[res.outcome] = totals.get(res.outcome, 0) + 1

        result = TestResult(
            id=self._policy.next_result_id(),
            benchmark_id=self._model.benchmark.id,
            profile_id=self._policy.id,
            start_time=start_time,
            end_time=datetime.now(timezone.utc),
            outcome=outcome,
            children=tuple(children),
            totals=totals,
        )
        logger.info("Evaluation %s finished: %s", result.id, {k.value: v for k, v in totals.items()})
        return result

    # ------------------------------------------------------------------
    # Rules
    # ------------------------------------------------------------------

    def _evaluate_rule(self, rule: Rule) -> RuleResult:
        refine = self._policy.refine_rules.get(rule.id)
        role = rule.role
        weight = rule.weight
        severity = rule.severity
        selector: Optional[str] = None
        if refine is not None:
            role = refine.role or role
            weight = refine.weight if refine.weight is not None else weight
            severity = refine.severity or severity
            selector = refine.selector

        title = substitute(rule.title, self._policy)
        self._report(self._model.start_reporters, ReporterMessage(rule.id, title, None, self._policy.id))

        checks: List[CheckResult] = []
        if role == RuleRole.UNCHECKED:
            outcome = Outcome.NOT_CHECKED
        elif rule.complex_check is not None:
            outcome = self._evaluate_complex(rule.complex_check, rule, title, checks)
        else:
            outcomes = [
                self._evaluate_check(check, rule, title, checks)
                for check in select_checks(rule.checks, selector)
            ]
            outcome = fold(outcomes, rule.check_operator)

        self._report(self._model.output_reporters, ReporterMessage(rule.id, title, outcome, self._policy.id))
        return RuleResult(
            rule_id=rule.id,
            title=title,
            outcome=outcome,
            weight=weight,
            severity=severity,
            role=role,
            checks=tuple(checks),
        )

    def _evaluate_complex(
        self, node: ComplexCheck, rule: Rule, title: str, sink: List[CheckResult]
    ) -> Outcome:
        outcomes: List[Outcome] = []
        for child in node.checks:
            if isinstance(child, ComplexCheck):
                outcomes.append(self._evaluate_complex(child, rule, title, sink))
            else:
                outcomes.append(self._evaluate_check(child, rule, title, sink))
        outcome = fold(outcomes, node.operator)
        return negate(outcome) if node.negate else outcome

    # ------------------------------------------------------------------
    # Checks
    # ------------------------------------------------------------------

    def _evaluate_check(self, check: Check, rule: Rule, title: str, sink: List[CheckResult]) -> Outcome:
        try:
            engine = self._engines.require(check.system)
        except EngineNotRegistered as exc:
            logger.debug("Rule %s: %s", rule.id, exc.message)
            sink.append(CheckResult(system=check.system, outcome=Outcome.NOT_CHECKED, message=exc.message))
            return Outcome.NOT_CHECKED

        try:
            exports = {
                export.export_name: resolve_value(self._policy, export.value_id) for export in check.exports
            }
        except ValidationError as exc:
            logger.warning("Rule %s: cannot bind check exports: %s", rule.id, exc)
            sink.append(CheckResult(system=check.system, outcome=Outcome.ERROR, message=exc.message))
            return Outcome.ERROR

        outcome = Outcome.NOT_CHECKED
        for ref in check.content_refs or [CheckContentRef()]:
            ctx = CheckContext(
                rule_id=rule.id,
                rule_title=title,
                system=check.system,
                policy_id=self._policy.id,
                href=ref.href,
                selector=check.selector,
                content=check.content,
                exports=exports,
            )
            outcome = self._evaluate_ref(engine, ref, ctx, sink)
            if outcome != Outcome.NOT_CHECKED or not self._config.try_alternative_content_refs:
                break

        return negate(outcome) if check.negate else outcome

    def _evaluate_ref(
        self, engine: CheckingEngine, ref: CheckContentRef, ctx: CheckContext, sink: List[CheckResult]
    ) -> Outcome:
        if ref.name:
            names = [ref.name]
        else:
            names = self._names_for_href(engine, ref.href) or [""]
        return fold((self._invoke(engine, name, ctx, sink) for name in names), BoolOperator.AND)

    def _names_for_href(self, engine: CheckingEngine, href: str) -> Optional[List[str]]:
        if not href:
            return None
        try:
            return engine.names_for_href(href)
        except Exception:
            logger.exception("Engine %s failed to list names for %s", engine.system, href)
            return None

    def _invoke(self, engine: CheckingEngine, name: str, ctx: CheckContext, sink: List[CheckResult]) -> Outcome:
        message = ""
        logger.debug("Rule %s: evaluating %s '%s' (%s)", ctx.rule_id, ctx.system, name, ctx.href)
        try:
            engine.start(ctx)
        except Exception:
            logger.exception("Rule %s: engine %s failed before evaluation", ctx.rule_id, ctx.system)

        try:
            outcome = Outcome(engine.evaluate(name, ctx))
        except EngineEvaluationError as exc:
            logger.warning("Rule %s: engine %s failed on '%s': %s", ctx.rule_id, ctx.system, name, exc)
            outcome, message = Outcome.ERROR, exc.message
        except Exception as exc:
            logger.exception("Rule %s: unexpected error from engine %s on '%s'", ctx.rule_id, ctx.system, name)
            outcome, message = Outcome.ERROR, str(exc)

        try:
            engine.finish(ctx, outcome)
        except Exception:
            logger.exception("Rule %s: engine %s failed after evaluation", ctx.rule_id, ctx.system)

        sink.append(
            CheckResult(system=ctx.system, content_ref=name, href=ctx.href, outcome=outcome, message=message)
        )
        return outcome

    # ------------------------------------------------------------------
    # Result tree and reporters
    # ------------------------------------------------------------------

    def _build_tree(
        self, items: Iterable[TreeItem], rule_results: Dict[str, RuleResult]
    ) -> List[Union[GroupResult, RuleResult]]:
        nodes: List[Union[GroupResult, RuleResult]] = []
        for item in items:
            if isinstance(item, Rule):
                if item.id in rule_results:
                    nodes.append(rule_results[item.id])
            elif isinstance(item, Group):
                children = self._build_tree(item.items, rule_results)
                if not children:
                    continue
                nodes.append(
                    GroupResult(
                        id=item.id,
                        title=substitute(item.title, self._policy),
                        operator=item.operator,
                        outcome=fold((c.outcome for c in children), item.operator),
                        children=tuple(children),
                    )
                )
        return nodes

    def _report(self, reporters, message: ReporterMessage) -> None:
        for fn, user_data in reporters:
            try:
                fn(message, user_data)
            except Exception:
                logger.exception("Reporter %r failed for rule %s", fn, message.rule_id)


def _acquire(lock: threading.Lock, timeout: float) -> bool:
    if timeout <= 0:
        return lock.acquire(blocking=False)
    return lock.acquire(timeout=timeout)


def evaluate(policy: "Policy") -> TestResult:
    return Dispatcher(policy).run()
