"""
Structured audit logging for authentication events.

Events are written to a dedicated 'audit' logger as single-line JSON. The
request id and authenticated actor are tracked per request with
``contextvars.ContextVar`` so concurrent requests never see each other's
values.

Tokens and secrets must never be passed in ``details``.
"""

import json
import logging
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Optional


# Context variable for tracking request_id across async calls
_request_id_context: ContextVar[Optional[str]] = ContextVar(
    'request_id', default=None
)

# Context variable for tracking actor (authenticated user) across async calls
_actor_context: ContextVar[Optional[str]] = ContextVar(
    'actor', default=None
)

# Keys that are dropped from details before logging
_SENSITIVE_KEYS = {'access_token', 'refresh_token', 'token', 'secret', 'openid.sig'}


class AuditLogger:
    """Structured audit logger for login, refresh and gate events."""

    def __init__(self):
        self.logger = logging.getLogger('audit')

    def set_request_id(self, request_id: str) -> None:
        _request_id_context.set(request_id)

    def get_request_id(self) -> Optional[str]:
        return _request_id_context.get()

    def set_actor(self, actor: str) -> None:
        """Set the authenticated user for this request context."""
        _actor_context.set(actor)

    def get_actor(self) -> Optional[str]:
        """Get the current actor from context, or None."""
        return _actor_context.get()

    def log(
        self,
        action: str,
        actor: Optional[str],
        resource: str,
        resource_id: str,
        status: str,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        """
        Log a structured audit event.

        Args:
            action: Type of action performed (e.g. 'LOGIN', 'REFRESH')
            actor: User performing the action; falls back to the context actor
            resource: Type of resource affected (e.g. 'Session')
            resource_id: Identifier of the affected resource
            status: Result status ('success' or 'failure')
            details: Optional additional context, sensitive keys removed
        """
        event = {
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'action': action,
            'actor': actor or self.get_actor() or 'anonymous',
            'resource': resource,
            'resource_id': resource_id,
            'status': status,
            'request_id': self.get_request_id(),
            'details': self._sanitize(details or {}),
        }
        self.logger.info(json.dumps(event))

    def log_login(self, identity: Optional[str], status: str, error: Optional[str] = None) -> None:
        details = {'provider': 'steam', 'method': 'openid'}
        if error:
            details['error'] = error
        self.log(
            action='LOGIN',
            actor=f"steam:{identity}" if identity else None,
            resource='Session',
            resource_id=identity or '',
            status=status,
            details=details,
        )

    def log_refresh(self, identity: str, status: str, error: Optional[str] = None) -> None:
        self.log(
            action='REFRESH',
            actor=f"steam:{identity}",
            resource='Session',
            resource_id=identity,
            status=status,
            details={'error': error} if error else None,
        )

    def log_rejection(self, path: str, outcome: str, reason: str) -> None:
        """Record a request turned away by the bearer token gate."""
        self.log(
            action='ACCESS_DENIED',
            actor=None,
            resource='Endpoint',
            resource_id=path,
            status='failure',
            details={'outcome': outcome, 'reason': reason},
        )

    @staticmethod
    def _sanitize(details: Dict[str, Any]) -> Dict[str, Any]:
        sanitized = {}
        for key, value in details.items():
            if key in _SENSITIVE_KEYS:
                continue
            if isinstance(value, str) and len(value) > 200:
                value = value[:200] + '...'
            sanitized[key] = value
        return sanitized


# Global audit logger instance
audit = AuditLogger()
