"""Result combination over the XCCDF outcome set.

The AND and OR tables are the ones published with the XCCDF standard
(NISTIR-7275r4, truth tables for AND and OR over the single-test results).
Both are symmetric and each one is a total priority order in disguise, which
makes ``fold`` independent of child order.
"""

from __future__ import annotations

from functools import reduce
from typing import Dict, Iterable, Tuple

from .models import BoolOperator, Outcome

_P = Outcome.PASS
_F = Outcome.FAIL
_E = Outcome.ERROR
_U = Outcome.UNKNOWN
_N = Outcome.NOT_APPLICABLE
_K = Outcome.NOT_CHECKED
_S = Outcome.NOT_SELECTED
_I = Outcome.INFORMATIONAL
_X = Outcome.FIXED

TABLE_ORDER: Tuple[Outcome, ...] = (_P, _F, _E, _U, _N, _K, _S, _I, _X)

_AND_ROWS = (
    #  P   F   E   U   N   K   S   I   X
    (_P, _F, _E, _U, _P, _P, _P, _P, _P),  # P
    (_F, _F, _F, _F, _F, _F, _F, _F, _F),  # F
    (_E, _F, _E, _U, _E, _E, _E, _E, _E),  # E
    (_U, _F, _U, _U, _U, _U, _U, _U, _U),  # U
    (_P, _F, _E, _U, _N, _N, _N, _N, _N),  # N
    (_P, _F, _E, _U, _N, _K, _K, _K, _K),  # K
    (_P, _F, _E, _U, _N, _K, _S, _S, _S),  # S
    (_P, _F, _E, _U, _N, _K, _S, _I, _I),  # I
    (_P, _F, _E, _U, _N, _K, _S, _I, _X),  # X
)

_OR_ROWS = (
    #  P   F   E   U   N   K   S   I   X
    (_P, _P, _P, _P, _P, _P, _P, _P, _P),  # P
    (_P, _F, _E, _U, _F, _F, _F, _F, _F),  # F
    (_P, _E, _E, _U, _E, _E, _E, _E, _E),  # E
    (_P, _U, _U, _U, _U, _U, _U, _U, _U),  # U
    (_P, _F, _E, _U, _N, _N, _N, _N, _N),  # N
    (_P, _F, _E, _U, _N, _K, _K, _K, _K),  # K
    (_P, _F, _E, _U, _N, _K, _S, _S, _S),  # S
    (_P, _F, _E, _U, _N, _K, _S, _I, _I),  # I
    (_P, _F, _E, _U, _N, _K, _S, _I, _X),  # X
)


def _to_table(rows) -> Dict[Tuple[Outcome, Outcome], Outcome]:
    table: Dict[Tuple[Outcome, Outcome], Outcome] = {}
    for a, row in zip(TABLE_ORDER, rows):
        for b, cell in zip(TABLE_ORDER, row):
            table[(a, b)] = cell
    return table


AND_TABLE = _to_table(_AND_ROWS)
OR_TABLE = _to_table(_OR_ROWS)

_TABLES = {BoolOperator.AND: AND_TABLE, BoolOperator.OR: OR_TABLE}


def combine(a: Outcome, b: Outcome, operator: BoolOperator = BoolOperator.AND) -> Outcome:
    return _TABLES[BoolOperator(operator)][(Outcome(a), Outcome(b))]


def combine_and(a: Outcome, b: Outcome) -> Outcome:
    return combine(a, b, BoolOperator.AND)


def combine_or(a: Outcome, b: Outcome) -> Outcome:
    return combine(a, b, BoolOperator.OR)


def fold(
    outcomes: Iterable[Outcome],
    operator: BoolOperator = BoolOperator.AND,
    *,
    empty: Outcome = Outcome.NOT_CHECKED,
) -> Outcome:
    """Left-to-right reduce of ``outcomes`` with ``operator``.

    An empty input yields ``empty``.
    """
    items = list(outcomes)
    if not items:
        return empty
    return reduce(lambda acc, nxt: combine(acc, nxt, operator), items)


def negate(outcome: Outcome) -> Outcome:
    if outcome == Outcome.PASS:
        return Outcome.FAIL
    if outcome == Outcome.FAIL:
        return Outcome.PASS
    return outcome
