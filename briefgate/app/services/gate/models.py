"""Data models for the request gate.

This module contains dataclasses for gate state and decisions.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum


class GateState(str, Enum):
    """Gating state of a single identity."""
    FRESH = "FRESH"
    COOLING_DOWN = "COOLING_DOWN"
    QUOTA_EXHAUSTED = "QUOTA_EXHAUSTED"


@dataclass
class QuotaRecord:
    """Admitted operations for one identity on one UTC day.

    A record whose ``day`` is not today is treated as absent.
    """
    identity: str
    day: str
    count: int = 0

    def to_dict(self) -> dict:
        return {"identity": self.identity, "day": self.day, "count": self.count}

    @classmethod
    def from_dict(cls, data: dict) -> "QuotaRecord":
        return cls(identity=data["identity"], day=data["day"], count=int(data["count"]))


@dataclass
class CooldownRecord:
    """Instant after which the identity may be admitted again."""
    identity: str
    next_allowed_at: datetime

    def to_dict(self) -> dict:
        return {
            "identity": self.identity,
            "next_allowed_at": self.next_allowed_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "CooldownRecord":
        return cls(
            identity=data["identity"],
            next_allowed_at=datetime.fromisoformat(data["next_allowed_at"]),
        )


@dataclass
class QuotaDecision:
    """Result of a daily quota check."""
    admitted: bool
    remaining: int
    limit: int
    day: str


@dataclass
class CooldownDecision:
    """Result of a cooldown check."""
    admitted: bool
    wait_remaining: timedelta = field(default_factory=timedelta)

    @property
    def wait_seconds(self) -> int:
        """Wait time rounded up to whole seconds for display."""
        if self.wait_remaining <= timedelta(0):
            return 0
        return math.ceil(self.wait_remaining.total_seconds())


@dataclass
class Admission:
    """A request that passed both gates."""
    identity: str
    operation: str
    remaining: int
    limit: int
    cooldown_seconds: int
