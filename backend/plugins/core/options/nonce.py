from typing import Protocol

from structlog import get_logger
from utils.nonces import sanitize_key

from .models import RequestContext

logger = get_logger(__name__)

NONCE_SUFFIX = "-nonce"


class NonceVerifier(Protocol):
    """The nonce primitives the gate builds on. NonceManager satisfies it."""

    def create_token(self, action: str) -> str: ...

    def validate_token(self, token: str | None, action: str) -> bool: ...

    def verify_admin_referer(
        self, context: RequestContext, action: str, field_name: str
    ) -> bool: ...

    def verify_async_token(
        self,
        context: RequestContext,
        action: str,
        field_name: str,
        send_error_on_failure: bool = True,
    ) -> bool: ...


class NonceGate:
    """
    Issues the options form nonce and checks it on mutation requests.

    Both the nonce field name and the nonce action default to the plugin name
    followed by '-nonce'. The nonce is generated once and then reused for the
    lifetime of the gate.
    """

    def __init__(self, plugin_name: str, verifier: NonceVerifier):
        self.plugin_name = plugin_name
        self._verifier = verifier
        self._nonce: str | None = None
        self.set_nonce_values()

    def set_nonce_values(self, value: str = "") -> None:
        self.set_nonce_action(value)
        self.set_nonce_name(value)

    def set_nonce_name(self, name: str = "") -> None:
        self.nonce_name = (name or self.plugin_name) + NONCE_SUFFIX

    def set_nonce_action(self, action: str = "") -> None:
        self.nonce_action = (action or self.plugin_name) + NONCE_SUFFIX

    def get_nonce(self) -> str:
        if self._nonce is None:
            self._nonce = self._verifier.create_token(self.nonce_action)
            logger.debug("Issued options nonce", action=self.nonce_action)
        return self._nonce

    @staticmethod
    def doing_ajax(context: RequestContext) -> bool:
        return context.is_async

    def verify(self, context: RequestContext) -> bool:
        """
        Runs the authenticity checks for a request that wants to change options.

        Background requests with a bad nonce never get a return value:
        AjaxUnauthorizedError propagates to the exception handler instead.
        Interactive requests get False on any failed check.
        """
        if self.doing_ajax(context):
            self._verifier.verify_async_token(
                context, self.nonce_action, self.nonce_name, send_error_on_failure=True
            )

        if not self._verifier.verify_admin_referer(
            context, self.nonce_action, self.nonce_name
        ):
            logger.warning("Options request failed referer check", action=self.nonce_action)
            return False

        submitted = context.field(self.nonce_name)
        if submitted is None:
            return False
        return self._verifier.validate_token(sanitize_key(submitted), self.nonce_action)
