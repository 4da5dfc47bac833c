"""Priority scoring engine for vehicle issues."""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, TypeVar

if TYPE_CHECKING:
    from collections.abc import Iterable

T = TypeVar("T")


class Severity(StrEnum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class RouteCriticality(StrEnum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class DriverExperience(StrEnum):
    NOVICE = "NOVICE"
    EXPERIENCED = "EXPERIENCED"
    EXPERT = "EXPERT"


class Tier(StrEnum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"
    EMERGENCY = "EMERGENCY"


SEVERITY_WEIGHTS = {
    Severity.LOW: 10,
    Severity.MEDIUM: 25,
    Severity.HIGH: 50,
    Severity.CRITICAL: 80,
}

ROUTE_WEIGHTS = {
    RouteCriticality.LOW: 5,
    RouteCriticality.MEDIUM: 15,
    RouteCriticality.HIGH: 25,
    RouteCriticality.CRITICAL: 35,
}

DRIVER_MULTIPLIERS = {
    DriverExperience.NOVICE: 1.2,
    DriverExperience.EXPERIENCED: 1.0,
    DriverExperience.EXPERT: 0.9,
}

SEVERITY_SHARE = 0.4
UTILIZATION_SHARE = 0.2
ROUTE_SHARE = 0.15

HIGH_UTILIZATION_THRESHOLD = 85
COMPLEX_REPAIR_HOURS = 8
COMPLEXITY_CAP = 15
PARTS_UNAVAILABLE_PENALTY = 10

MULTIPLIER_PEAK = 1.3
MULTIPLIER_BUSINESS = 1.1
MULTIPLIER_OFF_HOURS = 0.8
MULTIPLIER_WEEKEND = 0.7

# (threshold, tier), checked highest first
TIER_THRESHOLDS = (
    (90, Tier.EMERGENCY),
    (70, Tier.CRITICAL),
    (50, Tier.HIGH),
    (30, Tier.MEDIUM),
)

RECOMMENDED_ACTIONS = {
    Tier.EMERGENCY: (
        "Immediate response required. Dispatch emergency roadside assistance "
        "and notify operations manager."
    ),
    Tier.CRITICAL: "Schedule within 2 hours. Prepare replacement vehicle if needed.",
    Tier.HIGH: "Schedule within 4 hours. Coordinate with parts department.",
    Tier.MEDIUM: "Schedule within 24 hours during next available slot.",
    Tier.LOW: "Schedule during next maintenance window or when convenient.",
}


@dataclass(frozen=True)
class TriageFactors:
    """Snapshot of everything the scorer looks at for one issue."""

    severity: Severity
    fleet_utilization: float  # percent, 0-100
    route_criticality: RouteCriticality
    historical_repair_hours: float
    parts_available: bool
    driver_experience: DriverExperience
    hour_of_day: int  # 0-23
    day_of_week: int  # 0-6, Sunday = 0


@dataclass(frozen=True)
class PriorityScore:
    """Result of scoring one issue."""

    score: int
    priority: Tier
    reasoning: tuple[str, ...]
    recommended_action: str
    estimated_impact: str


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from negative infinity."""
    return math.floor(value + 0.5)


def _signed(points: int) -> str:
    return f"+{points}" if points > 0 else str(points)


def time_multiplier(hour: int, day_of_week: int) -> float:
    """Return the urgency multiplier for the given hour and weekday.

    Weekend wins over everything; peak windows (06-09, 16-19) are checked
    before business hours, so 9 and 16 count as peak.
    """
    if day_of_week in (0, 6):
        return MULTIPLIER_WEEKEND
    if 6 <= hour <= 9 or 16 <= hour <= 19:
        return MULTIPLIER_PEAK
    if 9 <= hour <= 16:
        return MULTIPLIER_BUSINESS
    return MULTIPLIER_OFF_HOURS


def score_to_tier(score: float) -> Tier:
    """Map a numeric score onto a priority tier."""
    for threshold, tier in TIER_THRESHOLDS:
        if score >= threshold:
            return tier
    return Tier.LOW


def estimated_impact(tier: Tier, factors: TriageFactors) -> str:
    """Describe the operational impact of leaving the issue unresolved."""
    if factors.fleet_utilization > HIGH_UTILIZATION_THRESHOLD:
        utilization_impact = "High fleet impact"
    else:
        utilization_impact = "Moderate fleet impact"
    if factors.route_criticality == RouteCriticality.CRITICAL:
        route_impact = "Critical route disruption"
    else:
        route_impact = "Standard route impact"

    if tier == Tier.EMERGENCY:
        return f"Severe operational impact. {utilization_impact}. Immediate revenue loss risk."
    if tier == Tier.CRITICAL:
        return f"Significant operational impact. {route_impact}. Customer service risk."
    if tier == Tier.HIGH:
        return f"Moderate operational impact. {utilization_impact}. Schedule disruption likely."
    if tier == Tier.MEDIUM:
        return "Minor operational impact. Can be managed with current resources."
    return "Minimal operational impact. Preventive maintenance opportunity."


def score(factors: TriageFactors, *, clamp: bool = False) -> PriorityScore:
    """Compute the weighted priority score for one issue.

    Additive contributions (severity, utilization, route, repair complexity,
    parts) come first, then the driver and time multipliers scale the running
    total. ``reasoning`` lists one line per contributing factor in that order.

    The score is not bounded by default; ``clamp=True`` restricts it to
    [0, 100] before the tier is picked.
    """
    running = 0.0
    reasoning: list[str] = []

    severity_points = SEVERITY_WEIGHTS[factors.severity] * SEVERITY_SHARE
    running += severity_points
    reasoning.append(
        f"{factors.severity.value} severity: +{round_half_up(severity_points)} points"
    )

    utilization_points = factors.fleet_utilization * UTILIZATION_SHARE
    running += utilization_points
    if factors.fleet_utilization > HIGH_UTILIZATION_THRESHOLD:
        reasoning.append(
            f"High fleet utilization ({factors.fleet_utilization:g}%): "
            f"+{round_half_up(utilization_points)} points"
        )

    route_points = ROUTE_WEIGHTS[factors.route_criticality] * ROUTE_SHARE
    running += route_points
    if factors.route_criticality != RouteCriticality.LOW:
        reasoning.append(
            f"{factors.route_criticality.value} route criticality: "
            f"+{round_half_up(route_points)} points"
        )

    if factors.historical_repair_hours > COMPLEX_REPAIR_HOURS:
        complexity_points = min(
            COMPLEXITY_CAP, int(factors.historical_repair_hours - COMPLEX_REPAIR_HOURS)
        )
        running += complexity_points
        reasoning.append(
            f"Complex repair history ({factors.historical_repair_hours:g}h avg): "
            f"+{complexity_points} points"
        )

    if not factors.parts_available:
        running -= PARTS_UNAVAILABLE_PENALTY
        reasoning.append(f"Parts not available: -{PARTS_UNAVAILABLE_PENALTY} points")

    driver = DRIVER_MULTIPLIERS[factors.driver_experience]
    if driver != 1.0:
        delta = round_half_up(running * (driver - 1))
        running *= driver
        reasoning.append(f"{factors.driver_experience.value} driver: {_signed(delta)} points")

    timing = time_multiplier(factors.hour_of_day, factors.day_of_week)
    if timing != 1.0:
        delta = round_half_up(running * (timing - 1))
        running *= timing
        reasoning.append(f"Time factor: {_signed(delta)} points")

    if clamp:
        running = min(100.0, max(0.0, running))

    tier = score_to_tier(running)
    return PriorityScore(
        score=round_half_up(running),
        priority=tier,
        reasoning=tuple(reasoning),
        recommended_action=RECOMMENDED_ACTIONS[tier],
        estimated_impact=estimated_impact(tier, factors),
    )


def rank(items: Iterable[tuple[T, TriageFactors]]) -> list[tuple[T, PriorityScore]]:
    """Score each item and return them highest score first.

    Ties keep their input order.
    """
    scored = [(item, score(factors)) for item, factors in items]
    scored.sort(key=lambda pair: pair[1].score, reverse=True)
    return scored
