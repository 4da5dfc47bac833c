"""Shared fixtures: triage factor builder, recording channel senders."""

from __future__ import annotations

from dataclasses import dataclass, field

import pytest

from fleet_triage.channels import NotificationPayload
from fleet_triage.dispatcher import Dispatcher
from fleet_triage.priority import DriverExperience, RouteCriticality, Severity, TriageFactors
from fleet_triage.rules import Channel

SAMPLE_ISSUE = {
    "id": "iss_001",
    "fleetNumber": "412",
    "category": "Brakes",
    "severity": "CRITICAL",
    "status": "OPEN",
    "driverName": "Sam Taylor",
    "location": "Depot 3, bay 2",
    "createdAt": "2026-10-19T06:30:00Z",
}


@dataclass
class FactorsRow:
    """Builder for TriageFactors with quiet defaults (no optional reasoning lines)."""

    severity: Severity = Severity.MEDIUM
    fleet_utilization: float = 50.0
    route_criticality: RouteCriticality = RouteCriticality.LOW
    historical_repair_hours: float = 4.0
    parts_available: bool = True
    driver_experience: DriverExperience = DriverExperience.EXPERIENCED
    hour_of_day: int = 12
    day_of_week: int = 3

    def build(self) -> TriageFactors:
        return TriageFactors(
            severity=self.severity,
            fleet_utilization=self.fleet_utilization,
            route_criticality=self.route_criticality,
            historical_repair_hours=self.historical_repair_hours,
            parts_available=self.parts_available,
            driver_experience=self.driver_experience,
            hour_of_day=self.hour_of_day,
            day_of_week=self.day_of_week,
        )


@dataclass
class RecordingSender:
    """Channel sender that records what it was asked to send."""

    sent: list[NotificationPayload] = field(default_factory=list)

    async def send(self, notification: NotificationPayload) -> None:
        self.sent.append(notification)


@dataclass
class FailingSender:
    """Channel sender that always raises."""

    attempts: int = 0

    async def send(self, notification: NotificationPayload) -> None:  # noqa: ARG002
        self.attempts += 1
        msg = "provider unavailable"
        raise RuntimeError(msg)


@pytest.fixture
def senders() -> dict[Channel, RecordingSender]:
    """One recording sender per channel."""
    return {channel: RecordingSender() for channel in Channel}


@pytest.fixture
def dispatcher(senders: dict[Channel, RecordingSender]) -> Dispatcher:
    """Dispatcher over the built-in rule table with recording senders."""
    return Dispatcher(senders)
