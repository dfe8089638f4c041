"""
Market admin error types.

Identity and role failures never escape the session resolver: they are
recovered into an absent session. Transcript-level failures surface to
the caller without tearing the channel down.
"""

from typing import Any, Optional


class MarketAdminError(Exception):
    def __init__(self, code: str, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.code = code
        self.details = details


class BackendError(MarketAdminError):
    def __init__(self, message: str, status_code: Optional[int] = None, details: Optional[dict[str, Any]] = None):
        super().__init__("http_error", message, details)
        self.status_code = status_code


class AuthError(MarketAdminError):
    def __init__(self, message: str, code: str = "auth_error"):
        super().__init__(code, message)


class IdentityError(MarketAdminError):
    def __init__(self, message: str, code: str = "identity_error"):
        super().__init__(code, message)


class RoleRejected(MarketAdminError):
    def __init__(self, message: str, code: str = "role_rejected", details: Optional[dict[str, Any]] = None):
        super().__init__(code, message, details)


class BackfillError(MarketAdminError):
    def __init__(self, message: str, code: str = "backfill_error", details: Optional[dict[str, Any]] = None):
        super().__init__(code, message, details)


class SendError(MarketAdminError):
    def __init__(self, message: str, code: str = "send_error", details: Optional[dict[str, Any]] = None):
        super().__init__(code, message, details)


class MalformedPushEvent(MarketAdminError):
    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__("malformed_push_event", message, details)


class ConnectionError(MarketAdminError):
    def __init__(self, message: str):
        super().__init__("connection_error", message)
