import itertools

import pytest

from common.xccdf_policy.combiner import combine, combine_and, combine_or, fold, negate
from common.xccdf_policy.models import BoolOperator, Outcome

LETTERS = {
    "P": Outcome.PASS,
    "F": Outcome.FAIL,
    "E": Outcome.ERROR,
    "U": Outcome.UNKNOWN,
    "N": Outcome.NOT_APPLICABLE,
    "K": Outcome.NOT_CHECKED,
    "S": Outcome.NOT_SELECTED,
    "I": Outcome.INFORMATIONAL,
    "X": Outcome.FIXED,
}

ORDER = "PFEUNKSIX"

AND_EXPECTED = """
P F E U P P P P P
F F F F F F F F F
E F E U E E E E E
U F U U U U U U U
P F E U N N N N N
P F E U N K K K K
P F E U N K S S S
P F E U N K S I I
P F E U N K S I X
"""

OR_EXPECTED = """
P P P P P P P P P
P F E U F F F F F
P E E U E E E E E
P U U U U U U U U
P F E U N N N N N
P F E U N K K K K
P F E U N K S S S
P F E U N K S I I
P F E U N K S I X
"""


def _cells(matrix: str):
    rows = [line.split() for line in matrix.strip().splitlines()]
    for a, row in zip(ORDER, rows):
        for b, cell in zip(ORDER, row):
            yield pytest.param(LETTERS[a], LETTERS[b], LETTERS[cell], id=f"{a}{b}")


@pytest.mark.parametrize("a,b,expected", list(_cells(AND_EXPECTED)))
def test_and_table(a, b, expected):
    assert combine_and(a, b) == expected
    assert combine(a, b, BoolOperator.AND) == expected


@pytest.mark.parametrize("a,b,expected", list(_cells(OR_EXPECTED)))
def test_or_table(a, b, expected):
    assert combine_or(a, b) == expected
    assert combine(a, b, BoolOperator.OR) == expected


@pytest.mark.parametrize("operator", [BoolOperator.AND, BoolOperator.OR])
def test_tables_are_commutative_and_associative(operator):
    outcomes = list(Outcome)
    for a, b in itertools.product(outcomes, repeat=2):
        assert combine(a, b, operator) == combine(b, a, operator)
    for a, b, c in itertools.product(outcomes, repeat=3):
        left = combine(combine(a, b, operator), c, operator)
        right = combine(a, combine(b, c, operator), operator)
        assert left == right


def test_fail_dominates_and_pass_dominates_or():
    assert combine_and(Outcome.FAIL, Outcome.PASS) == Outcome.FAIL
    assert combine_and(Outcome.PASS, Outcome.FAIL) == Outcome.FAIL
    assert combine_or(Outcome.FAIL, Outcome.PASS) == Outcome.PASS
    assert combine_and(Outcome.PASS, Outcome.NOT_APPLICABLE) == Outcome.PASS


def test_combine_accepts_string_values():
    assert combine("pass", "error", "AND") == Outcome.ERROR


def test_fold_is_order_independent_and_handles_empty():
    outcomes = [Outcome.NOT_CHECKED, Outcome.PASS, Outcome.ERROR, Outcome.INFORMATIONAL]
    expected = fold(outcomes, BoolOperator.AND)
    assert expected == Outcome.ERROR
    for perm in itertools.permutations(outcomes):
        assert fold(perm, BoolOperator.AND) == expected

    assert fold([]) == Outcome.NOT_CHECKED
    assert fold([], BoolOperator.OR, empty=Outcome.NOT_SELECTED) == Outcome.NOT_SELECTED
    assert fold([Outcome.FIXED]) == Outcome.FIXED
    assert fold(iter([Outcome.FAIL, Outcome.UNKNOWN]), BoolOperator.OR) == Outcome.UNKNOWN


def test_negate_swaps_only_pass_and_fail():
    assert negate(Outcome.PASS) == Outcome.FAIL
    assert negate(Outcome.FAIL) == Outcome.PASS
    for outcome in Outcome:
        if outcome not in (Outcome.PASS, Outcome.FAIL):
            assert negate(outcome) == outcome
