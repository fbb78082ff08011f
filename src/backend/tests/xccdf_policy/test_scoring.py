import pytest

from common.xccdf_policy.config import (
    SCORING_ABSOLUTE,
    SCORING_DEFAULT,
    SCORING_FLAT,
    SCORING_FLAT_UNWEIGHTED,
)
from common.xccdf_policy.errors import NoApplicableRules, UnknownScoringSystem
from common.xccdf_policy.models import Outcome, Score
from common.xccdf_policy.scoring import normalize_system

OVAL = "http://oval.mitre.org/XMLSchema/oval-definitions-5"


def _rule(rule_id, answer, **extra):
    return {
        "type": "rule",
        "id": rule_id,
        "checks": [{"system": OVAL, "content_refs": [{"name": answer}]}],
        **extra,
    }


def _evaluate(make_model, items, profiles=(), models=None):
    model = make_model(items=items, profiles=profiles, models=models)
    model.register_engine(OVAL, lambda ref, ctx, data: Outcome(ref))
    policy = model.get_policy_by_id(profiles[0]["id"] if profiles else None)
    return policy, policy.evaluate()


def test_default_model_sums_weights(make_model):
    items = [
        {
            "type": "group",
            "id": "g1",
            "items": [_rule("r1", "pass", weight=3), _rule("r2", "fail", weight=1)],
        },
        _rule("r3", "fixed", weight=2),
        _rule("r4", "notapplicable", weight=10),
        _rule("r5", "error", weight=4),
    ]
    policy, result = _evaluate(make_model, items)
    assert policy.score(result) == Score(system=SCORING_DEFAULT, value=5.0, max=10.0)


def test_flat_max_is_100(make_model):
    items = [_rule("r1", "pass", weight=3), _rule("r2", "fail", weight=1), _rule("r3", "unknown", weight=0.5)]
    policy, result = _evaluate(make_model, items)

    flat = policy.score(result, "flat")
    assert flat.system == SCORING_FLAT
    assert flat.max == 100.0
    assert flat.value == pytest.approx(100.0 * 3 / 4.5)

    unweighted = policy.score(result, SCORING_FLAT_UNWEIGHTED)
    assert unweighted.max == 100.0
    assert unweighted.value == pytest.approx(100.0 / 3)


def test_absolute(make_model):
    policy, result = _evaluate(make_model, [_rule("r1", "pass"), _rule("r2", "informational")])
    assert policy.score(result, SCORING_ABSOLUTE) == Score(system=SCORING_ABSOLUTE, value=1.0, max=1.0)

    policy, result = _evaluate(make_model, [_rule("r1", "pass"), _rule("r2", "fail")])
    assert policy.score(result, "absolute").value == 0.0


def test_no_applicable_rules(make_model):
    items = [_rule("r1", "notapplicable"), _rule("r2", "notchecked"), _rule("r3", "informational")]
    policy, result = _evaluate(make_model, items)
    with pytest.raises(NoApplicableRules) as exc:
        policy.score(result, "flat")
    assert exc.value.score == Score(system=SCORING_FLAT, value=0.0, max=0.0)


def test_zero_weight_rules_are_still_applicable(make_model):
    policy, result = _evaluate(make_model, [_rule("r1", "fail", weight=0)])
    assert policy.score(result, "flat") == Score(system=SCORING_FLAT, value=0.0, max=100.0)
    assert policy.score(result) == Score(system=SCORING_DEFAULT, value=0.0, max=0.0)
    assert policy.score(result, "absolute") == Score(system=SCORING_ABSOLUTE, value=0.0, max=1.0)
    assert policy.score(result, "flat-unweighted").max == 100.0

    policy, result = _evaluate(make_model, [_rule("r1", "pass", weight=0)])
    assert policy.score(result, "absolute").value == 1.0


def test_unscored_role_and_refined_weight(make_model):
    items = [_rule("r1", "pass", weight=1), _rule("r2", "fail", weight=1), _rule("r3", "fail", role="unscored")]
    profiles = [{"id": "p", "refine_rules": [{"idref": "r1", "weight": 4}]}]
    policy, result = _evaluate(make_model, items, profiles)
    assert policy.score(result) == Score(system=SCORING_DEFAULT, value=4.0, max=5.0)

    profiles = [{"id": "p", "refine_rules": [{"idref": "r2", "role": "unscored"}]}]
    policy, result = _evaluate(make_model, items, profiles)
    assert policy.score(result) == Score(system=SCORING_DEFAULT, value=1.0, max=1.0)


def test_score_only_counts_current_selection(make_model):
    items = [_rule("r1", "pass"), _rule("r2", "fail")]
    policy, result = _evaluate(make_model, items)
    policy.set_selected("r2", False)
    assert policy.score(result, "flat").value == 100.0


def test_scores_for_declared_models(make_model):
    items = [_rule("r1", "pass"), _rule("r2", "fail")]
    policy, result = _evaluate(make_model, items, models=[SCORING_DEFAULT, SCORING_FLAT])
    assert [(s.system, s.value, s.max) for s in policy.scores(result)] == [
        (SCORING_DEFAULT, 1.0, 2.0),
        (SCORING_FLAT, 50.0, 100.0),
    ]

    policy, result = _evaluate(make_model, [_rule("r1", "notchecked")], models=[SCORING_FLAT])
    assert policy.scores(result) == []


def test_normalize_system():
    assert normalize_system("flat-unweighted") == SCORING_FLAT_UNWEIGHTED
    assert normalize_system(" Default ") == SCORING_DEFAULT
    assert normalize_system(SCORING_ABSOLUTE) == SCORING_ABSOLUTE
    with pytest.raises(UnknownScoringSystem):
        normalize_system("urn:xccdf:scoring:spam")
