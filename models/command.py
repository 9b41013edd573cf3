from dataclasses import dataclass, field
from typing import Any, Dict

from pydantic import BaseModel, ConfigDict, Field

GENERATE_TRIAL_ACTION = "generateTrial"


@dataclass(frozen=True)
class CommandIntent:
    action: str
    service_name: str
    parameters: Dict[str, Any] = field(default_factory=dict)


class CommandRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    command: str = Field(..., min_length=1, description="Command text, e.g. '!generateTrial netflix'")
    shorthand: bool = Field(default=False, description="Rewrite bare input like 'netflix' into a generateTrial command")
