from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Optional

from .models import Outcome, ValueBinding


@dataclass(frozen=True)
class CheckContext:
    rule_id: str
    rule_title: str
    system: str
    policy_id: Optional[str] = None
    href: str = ""
    selector: str = ""
    content: Optional[str] = None
    # export name -> binding of the value exported to the checking engine
    exports: Dict[str, ValueBinding] = field(default_factory=dict)

    def get_export(self, export_name: str) -> Optional[str]:
        binding = self.exports.get(export_name)
        return binding.value if binding is not None else None


@dataclass(frozen=True)
class ReporterMessage:
    """Payload handed to start/output reporters around each rule."""

    rule_id: str
    title: str
    outcome: Optional[Outcome] = None
    policy_id: Optional[str] = None
