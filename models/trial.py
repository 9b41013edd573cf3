from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


class TrialType(str, Enum):
    PHONE_NUMBER = "phone"
    EMAIL = "email"
    VIRTUAL_CARD = "virtual_card"
    PROFILE = "profile"
    SUBSCRIPTION = "subscription"


@dataclass
class StageResult:
    success: bool
    data: Optional[Dict[str, Any]] = None
    message: str = ""


@dataclass
class TrialResult:
    success: bool
    trial_type: TrialType
    data: Optional[Dict[str, Any]] = None
    message: str = ""

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "trialType": self.trial_type.value,
            "data": self.data,
            "message": self.message,
        }


@dataclass
class TrialContext:
    """Input shared by every pipeline stage; outputs accumulate by stage name."""
    service_name: str
    user_id: int
    parameters: Dict[str, Any] = field(default_factory=dict)
    outputs: Dict[str, Dict[str, Any]] = field(default_factory=dict)
