"""Excepciones propias del motor CGM."""

from __future__ import annotations

from dataclasses import dataclass, field

from cgm_tool.model import DeviceType


class CGMError(Exception):
    """Base class for errors raised by cgm_tool."""


@dataclass
class InvalidSettingsError(CGMError, ValueError):
    """Raised when a settings update would break threshold ordering.

    Attributes:
        problems: Human-readable description of each violated rule.
    """

    problems: list[str] = field(default_factory=list)

    def __str__(self) -> str:
        if len(self.problems) == 1:
            return f"Invalid settings: {self.problems[0]}"
        return f"Invalid settings ({len(self.problems)} problems): " + "; ".join(
            self.problems
        )


@dataclass
class DeviceConnectionError(CGMError):
    """Raised when pairing with a monitor fails.

    Attributes:
        device_type: Monitor family that was being paired.
        reason: Underlying failure description.
    """

    device_type: DeviceType
    reason: str

    def __str__(self) -> str:
        return f"Could not connect {self.device_type.value} monitor: {self.reason}"
