"""Exception hierarchy for S3 cluster discovery."""

from __future__ import annotations


class S3DiscoveryError(Exception):
    """Base exception for all S3 discovery errors."""

    def __init__(self, message: str = "") -> None:
        self.message = message
        super().__init__(message)


# ── Configuration Errors ──────────────────────────────────────────

class ConfigError(S3DiscoveryError):
    """Raised when the discovery configuration is missing or invalid.

    Fatal at start: the discovery callback refuses to start.
    """

    def __init__(self, message: str = "Invalid discovery configuration.", reasons: list[str] | None = None) -> None:
        self.reasons = list(reasons or [])
        if self.reasons:
            message = f"{message} {'; '.join(self.reasons)}"
        super().__init__(message)


# ── Store Errors ──────────────────────────────────────────────────

class StoreError(S3DiscoveryError):
    """Raised when an object store operation fails.

    Covers authentication, network, throttling and malformed bucket
    name failures. Always recoverable.
    """

    def __init__(self, operation: str, key: str | None = None, reason: str = "") -> None:
        self.operation = operation
        self.key = key
        msg = f"Object store operation '{operation}' failed"
        if key is not None:
            msg += f" for key '{key}'"
        msg += "."
        if reason:
            msg += f" Reason: {reason}"
        super().__init__(msg)


class StoreThrottledError(StoreError):
    """Raised when the store keeps throttling after all backoff attempts."""

    def __init__(self, operation: str, key: str | None = None, attempts: int = 0) -> None:
        self.attempts = attempts
        super().__init__(operation, key, reason=f"Throttled after {attempts} attempts")


class ObjectNotFoundError(StoreError):
    """Raised when ``get`` targets a key that does not exist."""

    def __init__(self, key: str) -> None:
        super().__init__("get", key, reason="No such key")


# ── Record Errors ─────────────────────────────────────────────────

class DecodeError(S3DiscoveryError):
    """Raised when stored bytes are not a valid node record.

    Always recoverable: the offending record is skipped.
    """

    def __init__(self, reason: str = "", key: str | None = None) -> None:
        self.reason = reason
        self.key = key
        msg = "Could not decode node record"
        if key is not None:
            msg += f" '{key}'"
        msg += "."
        if reason:
            msg += f" Reason: {reason}"
        super().__init__(msg)


# ── Discovery Errors ──────────────────────────────────────────────

class DiscoveryError(S3DiscoveryError):
    """Raised to the broker when a discovery query cannot produce a listing."""

    def __init__(self, message: str = "Discovery of cluster nodes failed.") -> None:
        super().__init__(message)
