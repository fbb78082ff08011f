from __future__ import annotations

import os
from typing import Any, Dict, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

SCORING_DEFAULT = "urn:xccdf:scoring:default"
SCORING_FLAT = "urn:xccdf:scoring:flat"
SCORING_FLAT_UNWEIGHTED = "urn:xccdf:scoring:flat-unweighted"
SCORING_ABSOLUTE = "urn:xccdf:scoring:absolute"

ENV_PREFIX = "XCCDF_POLICY_"


class EvaluationConfig(BaseModel):
    """Settings shared by every policy of a PolicyModel."""

    # TestResult ids are `<prefix><profile id or "default_profile">-<n>`.
    result_id_prefix: str = "xccdf_testresult_"
    default_scoring_system: str = SCORING_DEFAULT
    # 0 means evaluate() fails at once if the policy is already being evaluated.
    lock_timeout_seconds: float = Field(default=0.0, ge=0)
    # Fall through to the next check-content-ref when an engine answers NOT_CHECKED.
    try_alternative_content_refs: bool = True

    @classmethod
    def from_dict(cls, raw: Optional[Dict[str, Any]] = None) -> "EvaluationConfig":
        return cls.model_validate(raw or {})

    @classmethod
    def from_env(cls) -> "EvaluationConfig":
        """
        Load settings from XCCDF_POLICY_* environment variables (and a .env file).

        Reads:
          XCCDF_POLICY_RESULT_ID_PREFIX, XCCDF_POLICY_DEFAULT_SCORING_SYSTEM,
          XCCDF_POLICY_LOCK_TIMEOUT_SECONDS, XCCDF_POLICY_TRY_ALTERNATIVE_CONTENT_REFS
        Unset variables keep their defaults.
        """
        load_dotenv()
        raw: Dict[str, Any] = {}
        for name in cls.model_fields:
            value = os.getenv(f"{ENV_PREFIX}{name.upper()}", "").strip()
            if value:
                raw[name] = value
        return cls.model_validate(raw)
