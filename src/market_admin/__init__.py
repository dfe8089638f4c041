"""
market-admin-core: access gate and seller conversation channel for the
marketplace admin console.

REST + Socket.IO client for the hosted marketplace backend.
"""

from market_admin.client import MarketAdmin, AsyncMarketAdmin
from market_admin.auth import Auth
from market_admin.channel import ConversationChannel, Transcript
from market_admin.gate import AccessGate, RoutePolicy, decide, DEFAULT_ROUTE_POLICY
from market_admin.session import SessionResolver
from market_admin.errors import (
    MarketAdminError,
    BackendError,
    AuthError,
    IdentityError,
    RoleRejected,
    BackfillError,
    SendError,
    MalformedPushEvent,
    ConnectionError,
)
from market_admin.models.identity import Identity, Role, Session
from market_admin.models.message import ConversationKey, Message
from market_admin.models.routes import AccessDecision, GateResult, GateState, RouteRequirement

__version__ = "0.1.0"
__all__ = [
    "MarketAdmin",
    "AsyncMarketAdmin",
    "Auth",
    "ConversationChannel",
    "Transcript",
    "AccessGate",
    "RoutePolicy",
    "decide",
    "DEFAULT_ROUTE_POLICY",
    "SessionResolver",
    "MarketAdminError",
    "BackendError",
    "AuthError",
    "IdentityError",
    "RoleRejected",
    "BackfillError",
    "SendError",
    "MalformedPushEvent",
    "ConnectionError",
    "Identity",
    "Role",
    "Session",
    "ConversationKey",
    "Message",
    "AccessDecision",
    "GateResult",
    "GateState",
    "RouteRequirement",
]
