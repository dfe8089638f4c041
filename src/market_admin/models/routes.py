"""
Route policy and access decision models.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel


class RouteRequirement(str, Enum):
    PUBLIC = "PUBLIC"
    PRIVILEGED = "PRIVILEGED"
    SUPER_ONLY = "SUPER_ONLY"


class AccessDecision(str, Enum):
    ALLOW = "ALLOW"
    REDIRECT_TO_LOGIN = "REDIRECT_TO_LOGIN"
    REDIRECT_TO_HOME = "REDIRECT_TO_HOME"


class GateState(str, Enum):
    """Gate state for the current route. UNKNOWN while resolution is in flight."""

    UNKNOWN = "UNKNOWN"
    PUBLIC_OK = "PUBLIC_OK"
    PRIVILEGED_OK = "PRIVILEGED_OK"
    BLOCKED_LOGIN = "BLOCKED_LOGIN"
    BLOCKED_HOME = "BLOCKED_HOME"


class GateResult(BaseModel):
    route: str
    decision: Optional[AccessDecision] = None
    redirect_target: Optional[str] = None
    return_to: Optional[str] = None
    superseded: bool = False  # navigation moved on before resolution finished

    @property
    def allowed(self) -> bool:
        return self.decision == AccessDecision.ALLOW
