from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING, Dict, List

from .errors import InvalidRefinement, ValidationError
from .models import LEGAL_OPERATORS, ValueBinding

if TYPE_CHECKING:
    from .policy import Policy

logger = logging.getLogger(__name__)

_SUB_PATTERN = re.compile(r"""<sub\s+idref=["']([^"']+)["']\s*/>""")


def resolve_value(policy: "Policy", value_id: str) -> ValueBinding:
    """Effective binding of ``value_id`` under ``policy``.

    Precedence, lowest first: the value's own default, the profile's
    refine-value (operator and/or selector), the profile's set-value, then a
    binding added directly with ``Policy.add_value``.
    """
    value = policy.model.index.value(value_id)

    explicit = policy.bound_values.get(value_id)
    if explicit is not None:
        return explicit

    literal = value.value
    operator = value.operator

    refine = policy.refine_values.get(value_id)
    if refine is not None:
        if refine.operator is not None:
            if refine.operator not in LEGAL_OPERATORS[value.value_type]:
                raise InvalidRefinement(
                    f"Operator '{refine.operator.value}' is not valid for {value.value_type.value} value '{value_id}'",
                    context={"value_id": value_id, "operator": refine.operator.value},
                )
            operator = refine.operator
        if refine.selector is not None:
            if refine.selector not in value.alternatives:
                raise InvalidRefinement(
                    f"Value '{value_id}' has no alternative for selector '{refine.selector}'",
                    context={"value_id": value_id, "selector": refine.selector},
                )
            literal = value.alternatives[refine.selector]

    if value_id in policy.set_values:
        literal = policy.set_values[value_id]

    return ValueBinding(
        value_id=value_id,
        value=literal,
        value_type=value.value_type,
        operator=operator,
    )


def resolve_values(policy: "Policy") -> List[ValueBinding]:
    return [resolve_value(policy, value.id) for value in policy.model.index.values()]


def substitute(text: str, policy: "Policy") -> str:
    """Replace ``<sub idref="..."/>`` markers with bound values.

    Markers whose value cannot be resolved are left untouched.
    """
    if not text or "<sub" not in text:
        return text
    cache: Dict[str, str] = {}

    def _replace(match: "re.Match[str]") -> str:
        idref = match.group(1)
        if idref not in cache:
            try:
                cache[idref] = resolve_value(policy, idref).value
            except ValidationError as exc:
                logger.warning("Cannot substitute value %s: %s", idref, exc)
                cache[idref] = match.group(0)
        return cache[idref]

    return _SUB_PATTERN.sub(_replace, text)
