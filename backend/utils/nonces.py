"""
Tick-based HMAC nonces.

A nonce is bound to an action name and to a time window ("tick") of half the
configured lifetime. A nonce is accepted during the tick it was created in and
the one after, so every nonce lives between lifetime/2 and lifetime seconds.
"""

import hashlib
import hmac
import math
import re
import time
from collections.abc import Callable

import structlog
from plugins.core.options.models import RequestContext

from .exceptions import AjaxUnauthorizedError

logger = structlog.get_logger(__name__)

_KEY_DISALLOWED = re.compile(r"[^a-z0-9_\-]")


def sanitize_key(value: str) -> str:
    """Lowercases a key and strips everything but letters, digits, '_' and '-'."""
    return _KEY_DISALLOWED.sub("", value.lower())


class NonceManager:
    """Creates and verifies nonces, and runs the request-level referer checks."""

    def __init__(
        self,
        secret: str,
        lifetime_seconds: int = 86400,
        admin_origin: str | None = None,
        clock: Callable[[], float] = time.time,
    ):
        if not secret:
            raise ValueError("A nonce secret is required.")
        self._secret = secret.encode()
        self.lifetime_seconds = lifetime_seconds
        self.admin_origin = admin_origin.rstrip("/") if admin_origin else None
        self._clock = clock

    def tick(self) -> int:
        return math.ceil(self._clock() / (self.lifetime_seconds / 2))

    def _hash(self, tick: int, action: str) -> str:
        digest = hmac.new(
            self._secret, f"{tick}|{action}".encode(), hashlib.sha256
        ).hexdigest()
        return digest[-12:-2]

    def create_token(self, action: str) -> str:
        return self._hash(self.tick(), action)

    def validate_token(self, token: str | None, action: str) -> bool:
        if not token:
            return False

        submitted = token.encode()
        current = self.tick()
        for tick in (current, current - 1):
            if hmac.compare_digest(submitted, self._hash(tick, action).encode()):
                return True
        return False

    def verify_admin_referer(
        self, context: RequestContext, action: str, field_name: str
    ) -> bool:
        """Checks the request came from the admin origin and carries a valid nonce."""
        if self.admin_origin:
            source = context.origin or context.referer or ""
            if source != self.admin_origin and not source.startswith(
                self.admin_origin + "/"
            ):
                logger.warning(
                    "Admin referer check failed",
                    action=action,
                    origin=context.origin,
                    referer=context.referer,
                )
                return False

        return self.validate_token(context.field(field_name), action)

    def verify_async_token(
        self,
        context: RequestContext,
        action: str,
        field_name: str,
        send_error_on_failure: bool = True,
    ) -> bool:
        """
        Verifies the nonce of a background request.

        With `send_error_on_failure` a bad nonce does not return: it raises
        AjaxUnauthorizedError, which ends the request with an error body.
        """
        if self.validate_token(context.field(field_name), action):
            return True

        logger.warning("Async nonce check failed", action=action, field=field_name)
        if send_error_on_failure:
            raise AjaxUnauthorizedError()
        return False
