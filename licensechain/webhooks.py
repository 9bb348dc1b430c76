"""LicenseChain webhook verification and dispatch."""

import asyncio
import inspect
import json
import logging
import threading
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Tuple, Union

from .exceptions import InvalidPayloadError, WebhookVerificationError
from .types import WebhookEvent
from .utils.signature import compute_signature, secure_compare
from .utils.timestamps import parse_timestamp


HandlerResult = Optional[Mapping[str, Any]]
Handler = Callable[[WebhookEvent], Union[HandlerResult, Awaitable[HandlerResult]]]

DEFAULT_TOLERANCE = 300

# (target field, source fields in priority order, default)
EVENT_FIELD_RULES: Tuple[Tuple[str, Tuple[str, ...], Any], ...] = (
    ("id", ("id",), ""),
    ("type", ("type", "event"), ""),
    ("created_at", ("created_at", "createdAt"), None),
    ("data", ("data", "object"), None),
)

DEFAULT_EVENT_TYPES = (
    "license.created",
    "license.updated",
    "license.revoked",
    "license.expired",
    "license.validated",
    "app.created",
    "app.updated",
    "app.deleted",
    "user.created",
    "user.updated",
)


class WebhookVerifier:
    """
    Verifies LicenseChain webhook signatures and parses their payloads.

    Example:
        >>> verifier = WebhookVerifier("whsec_...")
        >>> event = verifier.parse_payload(body, request.headers["x-licensechain-signature"])
        >>> if verifier.verify_timestamp(event):
        ...     print(event.type)
    """

    def __init__(self, secret: str):
        if not secret:
            raise WebhookVerificationError("Webhook secret is required")
        self._secret = secret

    def verify_signature(
        self,
        payload: Union[str, bytes],
        signature: str,
        algorithm: str = "sha256"
    ) -> bool:
        """
        Verify a webhook signature.

        Args:
            payload: Raw request body
            signature: Signature header value (e.g. sha256=...)
            algorithm: Digest algorithm (sha1, sha256, sha512)

        Returns:
            True if signature is valid. Never raises.
        """
        try:
            expected = self.generate_signature(payload, algorithm)
            return secure_compare(signature, expected)
        except Exception:
            return False

    def generate_signature(self, payload: Union[str, bytes], algorithm: str = "sha256") -> str:
        """Generate the signature a sender holding the secret would produce."""
        return compute_signature(payload, self._secret, algorithm)

    def parse_payload(
        self,
        payload: Union[str, bytes],
        signature: str,
        algorithm: str = "sha256"
    ) -> WebhookEvent:
        """
        Verify and parse a webhook payload.

        Raises:
            WebhookVerificationError: signature does not match
            InvalidPayloadError: body is not a JSON object
        """
        if not self.verify_signature(payload, signature, algorithm):
            raise WebhookVerificationError("Invalid webhook signature")

        try:
            data = json.loads(payload)
        except (ValueError, TypeError) as e:
            raise InvalidPayloadError(
                f"Invalid JSON payload: {e}",
                details={"error": str(e)}
            ) from e

        if not isinstance(data, Mapping):
            raise InvalidPayloadError(
                f"Invalid JSON payload: expected an object, got {type(data).__name__}"
            )

        return self.extract_event_data(data)

    def extract_event_data(self, payload: Mapping[str, Any]) -> WebhookEvent:
        """Normalize a raw JSON object into a WebhookEvent using EVENT_FIELD_RULES."""
        fields: Dict[str, Any] = {}
        for target, sources, default in EVENT_FIELD_RULES:
            fields[target] = default
            for source in sources:
                if payload.get(source) is not None:
                    fields[target] = payload[source]
                    break

        return WebhookEvent(
            id="" if fields["id"] is None else str(fields["id"]),
            type="" if fields["type"] is None else str(fields["type"]),
            created_at=fields["created_at"],
            data=fields["data"] if isinstance(fields["data"], Mapping) else {}
        )

    def verify_event_type(self, event: WebhookEvent, expected_type: str) -> bool:
        return event.type == expected_type

    def verify_timestamp(self, event: WebhookEvent, tolerance: float = DEFAULT_TOLERANCE) -> bool:
        """
        Check the event timestamp against the replay window.

        Events without a timestamp are accepted; unparsable timestamps are not.
        """
        if event.created_at is None or event.created_at == "":
            return True

        try:
            event_time = parse_timestamp(event.created_at)
            now = datetime.now(timezone.utc)
            diff = abs((now - event_time).total_seconds())
        except (TypeError, ValueError, OverflowError, OSError):
            return False

        return diff <= tolerance


class WebhookHandler:
    """
    Verifies incoming webhooks and routes them to handlers by event type.

    Example:
        >>> webhooks = WebhookHandler(secret="whsec_...")
        >>>
        >>> @webhooks.on("license.revoked")
        >>> async def revoked(event):
        ...     await disable_account(event.data["licenseId"])
        ...     return {"status": "processed"}
        >>>
        >>> result = await webhooks.handle_async(body, signature)
    """

    def __init__(
        self,
        secret: str,
        handlers: Optional[Mapping[str, Handler]] = None,
        tolerance: float = DEFAULT_TOLERANCE,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize WebhookHandler.

        Args:
            secret: Shared webhook secret
            handlers: Handlers to register on top of the defaults
            tolerance: Replay window in seconds (default: 300)
            logger: Custom logger instance
        """
        self._verifier = WebhookVerifier(secret)
        self.tolerance = tolerance
        self.logger = logger or logging.getLogger(__name__)

        self._lock = threading.Lock()
        self._handlers: Dict[str, Handler] = {}
        self._setup_default_handlers()
        for event_type, handler in (handlers or {}).items():
            self.on(event_type, handler)

    @property
    def verifier(self) -> WebhookVerifier:
        return self._verifier

    @property
    def handlers(self):
        """Registered event types."""
        return list(self._handlers)

    def on(self, event_type: str, handler: Optional[Handler] = None):
        """
        Register a handler for an event type, replacing any existing one.

        Can be used as a decorator:
            >>> @webhooks.on("license.created")
            >>> def created(event):
            ...     return {"status": "processed"}
        """
        if handler is None:
            def decorator(fn: Handler) -> Handler:
                self.on(event_type, fn)
                return fn
            return decorator

        with self._lock:
            self._handlers[event_type] = handler
        return handler

    def off(self, event_type: str) -> None:
        """Remove the handler for an event type, if any."""
        with self._lock:
            self._handlers.pop(event_type, None)

    def clear_handlers(self) -> None:
        with self._lock:
            self._handlers.clear()

    def handle(
        self,
        payload: Union[str, bytes],
        signature: str,
        algorithm: str = "sha256"
    ) -> Dict[str, Any]:
        """
        Handle a webhook (blocking).

        Must not be called from a running event loop; use handle_async there.
        """
        return asyncio.run(self.handle_async(payload, signature, algorithm))

    async def handle_async(
        self,
        payload: Union[str, bytes],
        signature: str,
        algorithm: str = "sha256"
    ) -> Dict[str, Any]:
        """
        Verify, parse and dispatch a webhook.

        Verification and timestamp failures are returned as
        {"valid": False, "error": ...}. Exceptions raised by a registered
        handler are logged and propagate to the caller.

        Returns:
            {"valid": True, "event": WebhookEvent, **handler_result}
        """
        try:
            event = self._verifier.parse_payload(payload, signature, algorithm)
            if not self._verifier.verify_timestamp(event, self.tolerance):
                raise WebhookVerificationError("Webhook timestamp is too old")
        except WebhookVerificationError as e:
            self.logger.warning(f"Rejected webhook: {e}")
            return {"valid": False, "error": str(e)}

        result = await self._handle_event(event)
        return {"valid": True, "event": event, **result}

    async def _handle_event(self, event: WebhookEvent) -> Dict[str, Any]:
        """Route event to its handler."""
        handler = self._handlers.get(event.type, self._handle_unknown_event)
        self.logger.debug(f"Dispatching webhook {event.id or '<no id>'} ({event.type})")

        try:
            result = handler(event)
            if inspect.isawaitable(result):
                result = await result
        except Exception as e:
            self.logger.error(f"Webhook handler error for {event.type}: {e}")
            raise

        if result is None:
            return {}
        if isinstance(result, Mapping):
            return dict(result)
        return {"result": result}

    def _setup_default_handlers(self) -> None:
        for event_type in DEFAULT_EVENT_TYPES:
            self._handlers[event_type] = self._processed_handler(event_type)

    @staticmethod
    def _processed_handler(event_type: str) -> Handler:
        async def handler(event: WebhookEvent) -> Dict[str, Any]:
            return {"status": "processed", "event": event_type}
        handler.__name__ = f"handle_{event_type.replace('.', '_')}"
        return handler

    @staticmethod
    async def _handle_unknown_event(event: WebhookEvent) -> Dict[str, Any]:
        return {"status": "ignored", "event": event.type}
