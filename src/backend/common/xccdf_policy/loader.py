from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Union

import yaml
from pydantic import ValidationError as SchemaError

from .errors import ValidationError
from .models import Benchmark

logger = logging.getLogger(__name__)

_YAML_SUFFIXES = (".yaml", ".yml")


def parse_benchmark(raw: Dict[str, Any]) -> Benchmark:
    try:
        return Benchmark.model_validate(raw)
    except SchemaError as exc:
        raise ValidationError(
            f"Invalid benchmark document: {exc.error_count()} error(s)",
            error_code="INVALID_BENCHMARK",
            context={"errors": exc.errors(include_url=False)},
            cause=exc,
        ) from exc


def load_benchmark(path: Union[str, Path]) -> Benchmark:
    """Read a benchmark from a .json, .yaml or .yml file."""
    path = Path(path)
    text = path.read_text(encoding="utf-8")
    suffix = path.suffix.lower()
    try:
        if suffix in _YAML_SUFFIXES:
            raw = yaml.safe_load(text)
        elif suffix == ".json":
            raw = json.loads(text)
        else:
            raise ValidationError(
                f"Unsupported benchmark file type '{suffix}'",
                context={"path": str(path)},
            )
    except (yaml.YAMLError, json.JSONDecodeError) as exc:
        raise ValidationError(f"Cannot parse {path}: {exc}", context={"path": str(path)}, cause=exc) from exc

    if not isinstance(raw, dict):
        raise ValidationError(f"{path} does not contain a benchmark mapping", context={"path": str(path)})

    benchmark = parse_benchmark(raw)
    logger.info("Loaded benchmark %s from %s", benchmark.id, path)
    return benchmark
