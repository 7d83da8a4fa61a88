"""
Admin capability check for catalog uploads, plus the no-session error the
service raises for per-user operations.

The admin credential is one shared token from configuration
(``ADMISSION_FORECASTER_ADMIN_TOKEN``). Comparison is constant-time. With no
token configured, every admin request is rejected.
"""

from __future__ import annotations

import hmac
import logging
from typing import Optional

logger = logging.getLogger(__name__)


# ── Custom exceptions ─────────────────────────────────────────────────────────


class AuthFailureError(RuntimeError):
    """Raised when a request lacks the capability it needs.

    Attributes:
        reason: Short machine-readable reason (``"missing_token"``,
                ``"invalid_token"``, ``"not_configured"``, ``"no_session"``).
    """

    def __init__(self, reason: str, message: Optional[str] = None) -> None:
        self.reason = reason
        super().__init__(message or f"Authorization failed: {reason}")


class AdminTokenAuthorizer:
    """Verifies the shared admin token.

    Args:
        token: The configured admin token, or ``None`` when unset.
    """

    def __init__(self, token: Optional[str]) -> None:
        self._token = token or None

    @property
    def is_configured(self) -> bool:
        return self._token is not None

    def check(self, candidate: Optional[str]) -> bool:
        """Return True if ``candidate`` matches the configured token."""
        if self._token is None or not candidate:
            return False
        return hmac.compare_digest(candidate.encode("utf-8"), self._token.encode("utf-8"))

    def require(self, candidate: Optional[str]) -> None:
        """Raise ``AuthFailureError`` unless ``candidate`` is the admin token."""
        if self._token is None:
            logger.warning("Admin request rejected: no admin token configured.")
            raise AuthFailureError(
                "not_configured",
                "No admin token is configured; set ADMISSION_FORECASTER_ADMIN_TOKEN.",
            )
        if not candidate:
            raise AuthFailureError("missing_token", "An admin token is required.")
        if not self.check(candidate):
            logger.warning("Admin request rejected: invalid token.")
            raise AuthFailureError("invalid_token", "The admin token is not valid.")


def require_user(user_id: Optional[str]) -> str:
    """Return the stripped ``user_id`` or raise ``AuthFailureError("no_session")``."""
    if not user_id or not user_id.strip():
        raise AuthFailureError("no_session", "A signed-in user is required.")
    return user_id.strip()
