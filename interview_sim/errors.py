# interview_sim/errors.py
"""
Typed failures for the interview simulator.

Gateway errors never leave the gateway: each operation converts them into its
fallback value. Media errors are kept on the capture controller so the view can
show which capability failed and why. Setup validation is the only failure that
blocks progress.
"""

from __future__ import annotations

from typing import Iterable, Optional, Tuple


class InterviewSimError(Exception):
    """Base class for every error raised by this package."""


# -----------------------
# Evaluation gateway
# -----------------------
class GatewayError(InterviewSimError):
    def __init__(self, operation: str, message: str) -> None:
        super().__init__(f"{operation}: {message}")
        self.operation = operation
        self.message = message


class GatewayTimeout(GatewayError):
    def __init__(self, operation: str, timeout: float) -> None:
        super().__init__(operation, f"request timed out after {timeout:g}s")
        self.timeout = timeout


class MalformedResponse(GatewayError):
    pass


# -----------------------
# Media capture
# -----------------------
class MediaError(InterviewSimError):
    kind = "media"
    title = "Media Error"

    def __init__(self, message: str, capability: str = "camera") -> None:
        super().__init__(message)
        self.message = message
        self.capability = capability


class PermissionDenied(MediaError):
    kind = "permission_denied"
    title = "Permission Denied"


class HardwareUnavailable(MediaError):
    kind = "hardware_unavailable"
    title = "Hardware Error"


# Browser / OS error names that mean the user refused access
_PERMISSION_NAMES = ("NotAllowedError", "PermissionDeniedError", "SecurityError")


def classify_media_error(exc: BaseException, capability: str = "camera") -> MediaError:
    """Map any acquisition failure onto PermissionDenied or HardwareUnavailable."""
    if isinstance(exc, MediaError):
        return exc

    name = getattr(exc, "name", "") or type(exc).__name__
    if name in _PERMISSION_NAMES or isinstance(exc, PermissionError):
        return PermissionDenied(f"Please allow {capability} access.", capability=capability)
    return HardwareUnavailable(f"Could not access {capability} hardware.", capability=capability)


# -----------------------
# Setup form
# -----------------------
class SetupValidationError(InterviewSimError):
    def __init__(self, missing_fields: Iterable[str]) -> None:
        self.missing_fields: Tuple[str, ...] = tuple(missing_fields)
        super().__init__("Missing required fields: " + ", ".join(self.missing_fields))

    def describe(self, labels: Optional[dict] = None) -> str:
        labels = labels or {}
        return "Please provide: " + ", ".join(labels.get(f, f) for f in self.missing_fields)
