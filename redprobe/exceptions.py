"""Custom exceptions for redprobe.

Only two things can stop a run: a request definition that cannot be built,
and outcomes that cannot be encoded. Failures of an HTTP attempt itself
(DNS, connect, TLS, deadline, body read) are recorded on the Outcome as a
TransportError and never raised.
"""

from __future__ import annotations

from typing import Any


class RedProbeError(Exception):
    """Base exception for all redprobe errors.

    Attributes:
        message: What went wrong, phrased for the command line
        context: Where it went wrong (config path, entry number, offending value)
        original_error: The YAML, OS or encoder error underneath, if any
    """

    def __init__(
        self,
        message: str,
        *args: object,
        context: dict[str, Any] | None = None,
        original_error: Exception | None = None,
    ) -> None:
        super().__init__(message, *args)
        self.message = message
        self.context = context or {}
        self.original_error = original_error

    def __str__(self) -> str:
        base = self.message
        if self.context:
            ctx_str = ", ".join(f"{k}={v!r}" for k, v in self.context.items())
            base = f"{base} [{ctx_str}]"
        if self.original_error:
            base = f"{base} (caused by: {type(self.original_error).__name__}: {self.original_error})"
        return base

    def with_context(self, **kwargs: Any) -> "RedProbeError":
        """Add context to this error and return self for chaining."""
        self.context.update(kwargs)
        return self

    def summary(self) -> str:
        """One line for stderr. The full ``str()`` form is kept for logs."""
        return self.message


class RedProbeConfigError(RedProbeError):
    """A request definition could not be built; raised before any request is sent.

    Raised for a missing or unreadable config file, invalid YAML, a definition
    that is not a mapping, a missing or non-http(s) URL, and a timeout that is
    neither a nanosecond count nor a duration string. ``load_config`` adds
    ``path`` and ``entry`` (1-based) to the context.
    """

    def summary(self) -> str:
        """Message plus the config location, e.g. ``URL is required (probes.yaml, entry 2)``."""
        where = [str(self.context["path"])] if "path" in self.context else []
        if "entry" in self.context:
            where.append(f"entry {self.context['entry']}")
        return f"{self.message} ({', '.join(where)})" if where else self.message


class RedProbeOutputError(RedProbeError):
    """Outcomes could not be encoded as a JSON or HAR document (e.g. integers beyond 64 bits)."""
