"""
SLA Value Objects
==================

Immutable value objects for the SLA domain.

The policy table maps a priority to its response and resolution windows.
It is built once from configuration and never mutated at runtime.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional

from pydantic import BaseModel, Field, field_validator

from tierdesk.config import Priority, SLAState, VALID_PRIORITIES, VALID_SLA_TYPES


# Minutes per priority; resolution windows follow the support desk's
# published targets (critical 2h, high 4h, medium 24h, low 48h)
DEFAULT_SLA_TARGETS: Dict[str, Dict[str, int]] = {
    "critical": {"response": 15, "resolution": 120},
    "high": {"response": 60, "resolution": 240},
    "medium": {"response": 240, "resolution": 1440},
    "low": {"response": 480, "resolution": 2880},
}


class SLACalculator:
    """
    Pure functions for SLA calculations.

    Stateless utility class, all SLA arithmetic in one place.
    """

    @staticmethod
    def calculate_deadline(created_at: datetime, window: timedelta) -> datetime:
        return created_at + window

    @staticmethod
    def calculate_status(
        created_at: datetime,
        deadline: datetime,
        current_time: datetime,
        met_at: Optional[datetime] = None,
        warning_threshold_percent: int = 15
    ) -> SLAState:
        """
        Calculate current SLA state.

        Args:
            created_at: When ticket was created
            deadline: The SLA deadline
            current_time: Current time for evaluation
            met_at: When SLA was met (first assignment/resolution)
            warning_threshold_percent: Percentage of time left under which
                the clock is "at_risk"
        """
        if met_at is not None:
            return SLAState.MET if met_at <= deadline else SLAState.BREACHED

        remaining = (deadline - current_time).total_seconds()
        total = (deadline - created_at).total_seconds()
        percentage = (remaining / total) * 100 if total > 0 else 0

        if remaining <= 0:
            return SLAState.BREACHED
        elif percentage <= warning_threshold_percent:
            return SLAState.AT_RISK
        return SLAState.ON_TRACK

    @staticmethod
    def calculate_remaining_metrics(
        created_at: datetime,
        deadline: datetime,
        current_time: datetime,
        met_at: Optional[datetime] = None
    ) -> tuple[float, float, bool]:
        """
        Calculate remaining time metrics.

        Returns:
            Tuple of (remaining_seconds, percentage_remaining, is_breached)
        """
        if met_at is not None:
            return 0.0, 0.0, met_at > deadline

        remaining = (deadline - current_time).total_seconds()
        total = (deadline - created_at).total_seconds()

        if total <= 0:
            percentage = 0.0
        else:
            percentage = max(0.0, min(100.0, (remaining / total) * 100))

        return max(0.0, remaining), percentage, remaining <= 0


class SLAConfig(BaseModel):
    """
    SLA configuration loaded from YAML.

    Missing priorities or clocks fall back to DEFAULT_SLA_TARGETS.
    """
    sla_targets: Dict[str, Dict[str, int]] = Field(
        default_factory=dict,
        validate_default=True,
        description="SLA targets in minutes by priority"
    )
    escalation_thresholds: Dict[str, int] = Field(
        default={"warning": 15},
        description="Percentage of time remaining under which a clock is at risk"
    )
    breach_channels: List[str] = Field(
        default_factory=lambda: ["#support-escalations"],
        description="Slack channels notified on breach"
    )

    @field_validator("sla_targets")
    @classmethod
    def validate_sla_targets(cls, v: Dict[str, Dict[str, int]]) -> Dict[str, Dict[str, int]]:
        """Fill missing priorities/clocks and reject unknown priorities."""
        unknown = set(v) - set(VALID_PRIORITIES)
        if unknown:
            raise ValueError(f"unknown priorities in sla_targets: {sorted(unknown)}")

        targets = {priority: dict(clocks) for priority, clocks in v.items()}
        for priority in VALID_PRIORITIES:
            clocks = targets.setdefault(priority, {})
            for sla_type in VALID_SLA_TYPES:
                clocks.setdefault(sla_type, DEFAULT_SLA_TARGETS[priority][sla_type])
                if clocks[sla_type] <= 0:
                    raise ValueError(f"{priority}.{sla_type} must be a positive number of minutes")
        return targets

    def get_warning_threshold(self) -> int:
        return self.escalation_thresholds.get("warning", 15)


@dataclass(frozen=True)
class SLAPolicy:
    """Response and resolution windows for one priority."""
    priority: Priority
    response: timedelta
    resolution: timedelta


class SLAPolicyTable:
    """
    Static priority -> SLAPolicy mapping consulted by the engine.

    Read-only after construction.
    """

    def __init__(self, policies: Mapping[Priority, SLAPolicy], warning_threshold: int = 15):
        missing = [p for p in Priority if p not in policies]
        if missing:
            raise ValueError(f"SLA policy missing for priorities: {[p.value for p in missing]}")
        self._policies = MappingProxyType(dict(policies))
        self.warning_threshold = warning_threshold

    @classmethod
    def from_config(cls, config: SLAConfig) -> "SLAPolicyTable":
        return cls(
            {
                Priority(priority): SLAPolicy(
                    priority=Priority(priority),
                    response=timedelta(minutes=clocks["response"]),
                    resolution=timedelta(minutes=clocks["resolution"]),
                )
                for priority, clocks in config.sla_targets.items()
            },
            warning_threshold=config.get_warning_threshold(),
        )

    @classmethod
    def default(cls) -> "SLAPolicyTable":
        return cls.from_config(SLAConfig())

    def for_priority(self, priority: Priority) -> SLAPolicy:
        return self._policies[Priority(priority)]

    def response_deadline(self, priority: Priority, created_at: datetime) -> datetime:
        return SLACalculator.calculate_deadline(created_at, self.for_priority(priority).response)

    def resolution_deadline(self, priority: Priority, created_at: datetime) -> datetime:
        return SLACalculator.calculate_deadline(created_at, self.for_priority(priority).resolution)

    def as_dict(self) -> Dict[str, Dict[str, int]]:
        return {
            priority.value: {
                "response": int(policy.response.total_seconds() // 60),
                "resolution": int(policy.resolution.total_seconds() // 60),
            }
            for priority, policy in self._policies.items()
        }
