"""Weighted scoring of a TestResult under the XCCDF scoring models.

Group scores are the sum of their children's scores. Only rules that are in
the policy's current selection and have a full role take part; outcomes that
say nothing about compliance (not applicable, not checked, informational, not
selected) are left out of both value and maximum.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterable, List, Optional, Set, Union

from .config import SCORING_ABSOLUTE, SCORING_DEFAULT, SCORING_FLAT, SCORING_FLAT_UNWEIGHTED
from .errors import NoApplicableRules, UnknownScoringSystem
from .models import GroupResult, Outcome, RuleResult, RuleRole, Score, TestResult
from .selection import resolve_selections

if TYPE_CHECKING:
    from .policy import Policy

logger = logging.getLogger(__name__)

SCORING_SYSTEMS = (SCORING_DEFAULT, SCORING_FLAT, SCORING_FLAT_UNWEIGHTED, SCORING_ABSOLUTE)

_ALIASES = {uri.rsplit(":", 1)[-1]: uri for uri in SCORING_SYSTEMS}

_PASSING = frozenset({Outcome.PASS, Outcome.FIXED})
_FAILING = frozenset({Outcome.FAIL, Outcome.ERROR, Outcome.UNKNOWN})


def normalize_system(system: str) -> str:
    """Map a short name (``flat``) or URN to the URN of a supported model."""
    key = (system or "").strip()
    if key in SCORING_SYSTEMS:
        return key
    if key.lower() in _ALIASES:
        return _ALIASES[key.lower()]
    raise UnknownScoringSystem(system)


def score(policy: "Policy", result: TestResult, system: Optional[str] = None) -> Score:
    """Score ``result`` under ``system`` (the configured default when None).

    A rule is applicable when its outcome is a pass or a failure, whatever
    its weight. With applicable rules of zero total weight the flat models
    score 0 out of 100 and absolute scores on outcomes alone.
    """
    uri = normalize_system(system or policy.model.config.default_scoring_system)
    selected = set(resolve_selections(policy))
    tally = _Tally()
    _score_nodes(result.children, selected, tally, unweighted=uri == SCORING_FLAT_UNWEIGHTED)

    if not tally.applicable:
        raise NoApplicableRules(Score(system=uri, value=0.0, max=0.0))

    value, maximum = tally.value, tally.maximum
    if uri in (SCORING_FLAT, SCORING_FLAT_UNWEIGHTED):
        value = 100.0 * value / maximum if maximum > 0 else 0.0
        maximum = 100.0
    elif uri == SCORING_ABSOLUTE:
        value, maximum = (0.0 if tally.failed else 1.0), 1.0

    logger.debug("Score of %s under %s: %s/%s", result.id, uri, value, maximum)
    return Score(system=uri, value=value, max=maximum)


def score_all(policy: "Policy", result: TestResult) -> List[Score]:
    """One score per scoring model the benchmark declares, skipping models with nothing to score."""
    scores: List[Score] = []
    for system in policy.model.benchmark.models:
        try:
            scores.append(score(policy, result, system))
        except NoApplicableRules as exc:
            logger.info("%s", exc.message)
    return scores


@dataclass
class _Tally:
    value: float = 0.0
    maximum: float = 0.0
    applicable: int = 0
    failed: int = 0


def _score_nodes(
    nodes: Iterable[Union[GroupResult, RuleResult]], selected: Set[str], tally: _Tally, *, unweighted: bool
) -> None:
    for node in nodes:
        if isinstance(node, GroupResult):
            _score_nodes(node.children, selected, tally, unweighted=unweighted)
        else:
            _score_rule(node, selected, tally, unweighted=unweighted)


def _score_rule(rule: RuleResult, selected: Set[str], tally: _Tally, *, unweighted: bool) -> None:
    if rule.rule_id not in selected or rule.role != RuleRole.FULL:
        return
    weight = 1.0 if unweighted else rule.weight
    if rule.outcome in _PASSING:
        tally.value += weight
    elif rule.outcome in _FAILING:
        tally.failed += 1
    else:
        return
    tally.applicable += 1
    tally.maximum += weight
