import os
import sys


# Ensure `src/backend` is on sys.path so imports like `import common...` work.
BACKEND_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), "../.."))
if BACKEND_DIR not in sys.path:
    sys.path.insert(0, BACKEND_DIR)

import pytest

from common.xccdf_policy.config import EvaluationConfig
from common.xccdf_policy.models import Benchmark, Outcome
from common.xccdf_policy.policy import PolicyModel

OVAL = "http://oval.mitre.org/XMLSchema/oval-definitions-5"


@pytest.fixture
def make_benchmark():
    def _make(*, items, profiles=(), models=None, benchmark_id: str = "xccdf_test_benchmark") -> Benchmark:
        raw = {"id": benchmark_id, "items": list(items), "profiles": list(profiles)}
        if models is not None:
            raw["models"] = list(models)
        return Benchmark.model_validate(raw)

    return _make


@pytest.fixture
def make_model(make_benchmark):
    def _make(*, items, profiles=(), models=None, config: dict | None = None) -> PolicyModel:
        benchmark = make_benchmark(items=items, profiles=profiles, models=models)
        return PolicyModel(benchmark, config=EvaluationConfig.from_dict(config))

    return _make


@pytest.fixture
def scripted_engine():
    """Callbacks for an engine whose answers come from a name -> outcome mapping.

    Every call is appended to `calls` as (kind, name or rule id).
    """

    class Scripted:
        def __init__(self):
            self.answers = {}
            self.calls = []
            self.contexts = []

        def eval_fn(self, content_ref, ctx, user_data):
            self.calls.append(("eval", content_ref))
            self.contexts.append(ctx)
            answer = self.answers.get(content_ref, Outcome.PASS)
            if isinstance(answer, Exception):
                raise answer
            return answer

        def start_fn(self, ctx, user_data):
            self.calls.append(("start", ctx.rule_id))

        def output_fn(self, ctx, outcome, user_data):
            self.calls.append(("output", ctx.rule_id))

        def register(self, model, system=OVAL, **kwargs):
            return model.register_engine(
                system,
                self.eval_fn,
                start_fn=self.start_fn,
                output_fn=self.output_fn,
                **kwargs,
            )

    return Scripted()
