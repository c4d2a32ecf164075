"""Logging middleware for step tool calls.

Each call is logged as the step name, the remote it targets and its
non-remote arguments. Secret descriptor fields never reach the log.
"""

import json
import logging
import time
from collections.abc import Mapping
from typing import Any

from fastmcp.server.middleware import MiddlewareContext

from ssh_steps.middleware.base import StepsMiddleware
from ssh_steps.middleware.errors import classify

SECRET_FIELDS = frozenset({"password", "passphrase", "identity"})
REDACTED = "***"


def redact(value: Any) -> Any:
    """Return a copy of ``value`` with secret descriptor fields masked.

    Nested mappings (gateways) and lists are walked recursively. Empty
    secrets are left as they are.
    """
    if isinstance(value, Mapping):
        return {
            key: REDACTED if key in SECRET_FIELDS and item else redact(item)
            for key, item in value.items()
        }
    if isinstance(value, (list, tuple)):
        return [redact(item) for item in value]
    return value


def describe_remote(remote: Any) -> str:
    """Short ``user@host`` style label for a remote argument."""
    if isinstance(remote, str):
        return remote
    if not isinstance(remote, Mapping):
        return "?"
    name = remote.get("name") or "?"
    host = remote.get("host") or name
    label = f"{remote['user']}@{host}" if remote.get("user") else str(host)
    if remote.get("port"):
        label = f"{label}:{remote['port']}"
    if remote.get("gateway"):
        label = f"{label} via {describe_remote(remote['gateway'])}"
    return label


class LoggingMiddleware(StepsMiddleware):
    """Logs step calls with their target, arguments and duration.

    Example:
        >>> mcp.add_middleware(LoggingMiddleware(slow_threshold_ms=5000))
    """

    def __init__(
        self,
        logger: logging.Logger | None = None,
        include_payloads: bool = False,
        max_payload_length: int = 1000,
        slow_threshold_ms: float = 1000.0,
    ) -> None:
        """Initialize logging middleware.

        Args:
            logger: Optional custom logger.
            include_payloads: Also log the full (redacted) arguments and result at DEBUG.
            max_payload_length: Payload length at which DEBUG payloads are cut.
            slow_threshold_ms: Calls at least this long are logged at WARNING.
        """
        super().__init__(logger=logger)
        self.include_payloads = include_payloads
        self.max_payload_length = max_payload_length
        self.slow_threshold_ms = slow_threshold_ms

    def _payload(self, data: Any) -> str:
        try:
            text = json.dumps(data, default=str)
        except (TypeError, ValueError):
            text = str(data)
        if len(text) > self.max_payload_length:
            return text[: self.max_payload_length] + "... [truncated]"
        return text

    def _format_call(self, tool_name: str, args: Mapping[str, Any] | None) -> str:
        """Render ``tool on target (key=value, ...)`` without secrets."""
        args = dict(args or {})
        target = describe_remote(args.pop("remote", None))
        parts = []
        for key, value in args.items():
            if isinstance(value, str) and len(value) > 60:
                value = value[:60] + "..."
            parts.append(f"{key}={value!r}")
        return f"{tool_name} on {target} ({', '.join(parts)})"

    def _elapsed(self, start: float) -> tuple[float, str]:
        duration_ms = (time.perf_counter() - start) * 1000
        text = f"{duration_ms:.1f}ms"
        if duration_ms >= self.slow_threshold_ms:
            text += " SLOW!"
        return duration_ms, text

    async def on_call_tool(
        self,
        context: MiddlewareContext,
        call_next: Any,
    ) -> Any:
        """Log a step call, then its outcome and duration."""
        start = time.perf_counter()
        tool_name = getattr(context.message, "name", "unknown")
        args = getattr(context.message, "arguments", None)

        self.logger.info(">>> STEP: %s", self._format_call(tool_name, args))
        if self.include_payloads and args:
            self.logger.debug("    Args: %s", self._payload(redact(args)))

        try:
            result = await call_next(context)
        except Exception as e:
            _, elapsed = self._elapsed(start)
            cause, _ = classify(e)
            self.logger.error(
                "!!! STEP: %s -> %s: %s [%s]", tool_name, type(cause).__name__, cause, elapsed
            )
            raise

        duration_ms, elapsed = self._elapsed(start)
        self.logger.log(
            logging.WARNING if duration_ms >= self.slow_threshold_ms else logging.INFO,
            "<<< STEP: %s -> %s [%s]",
            tool_name,
            self._summarize_result(result),
            elapsed,
        )
        if self.include_payloads and result is not None:
            self.logger.debug("    Result: %s", self._payload(result))
        return result

    async def on_message(
        self,
        context: MiddlewareContext,
        call_next: Any,
    ) -> Any:
        """Log protocol traffic other than step calls at DEBUG."""
        if context.method == "tools/call":
            return await call_next(context)

        start = time.perf_counter()
        self.logger.debug(">>> MCP: %s", context.method)
        try:
            result = await call_next(context)
        except Exception as e:
            _, elapsed = self._elapsed(start)
            self.logger.error(
                "!!! MCP: %s -> %s: %s [%s]", context.method, type(e).__name__, e, elapsed
            )
            raise
        _, elapsed = self._elapsed(start)
        self.logger.debug("<<< MCP: %s [%s]", context.method, elapsed)
        return result

    def _summarize_result(self, result: Any) -> str:
        """One-line outcome: the first line of a step's text, or its shape."""
        if result is None:
            return "null"
        if isinstance(result, str):
            first_line = result.split("\n", 1)[0]
            return first_line[:80] or f"{len(result)} chars"

        content = getattr(result, "content", None)
        if isinstance(content, (list, tuple)) and content:
            text = getattr(content[0], "text", None)
            if isinstance(text, str):
                return self._summarize_result(text)
            return f"{len(content)} content item(s)"
        if isinstance(result, (list, tuple)):
            return f"{len(result)} items"
        return type(result).__name__
