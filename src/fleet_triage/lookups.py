"""Triage-factor lookups against the fleet, analytics, and inventory APIs.

Every lookup degrades to a fixed fallback instead of raising, so a scoring
call never fails because a collaborator is down.
"""

from __future__ import annotations

import asyncio
import logging
import re
from datetime import datetime
from typing import Any

import httpx

from fleet_triage.priority import DriverExperience, RouteCriticality, Severity, TriageFactors

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 10.0  # seconds

DEFAULT_UTILIZATION = 85.0
DEFAULT_REPAIR_HOURS = 4.0
DEFAULT_PARTS_AVAILABLE = True

LEADING_NUMBER_RE = re.compile(r"\s*([+-]?[0-9]+)")

# (lower, upper exclusive, criticality) by fleet-number range
ROUTE_BUCKETS = (
    (400, 450, RouteCriticality.CRITICAL),  # express
    (300, 400, RouteCriticality.HIGH),  # priority
    (200, 300, RouteCriticality.MEDIUM),  # standard
)


async def _get_json(url: str, params: dict[str, str] | None = None) -> dict[str, Any] | None:
    """GET *url* and return the decoded object, or None on any failure."""
    try:
        async with httpx.AsyncClient(timeout=REQUEST_TIMEOUT) as client:
            response = await client.get(url, params=params)
            response.raise_for_status()
            body = response.json()
    except (httpx.HTTPError, ValueError) as e:
        logger.warning("Lookup %s failed: %s", url, e)
        return None
    if not isinstance(body, dict):
        logger.warning("Lookup %s returned %s, expected an object", url, type(body).__name__)
        return None
    return body


def _as_float(value: Any, default: float) -> float:
    try:
        return float(value) if value else default
    except (TypeError, ValueError):
        logger.warning("Ignoring non-numeric lookup value %r", value)
        return default


async def get_fleet_utilization(fleet_number: str, base_url: str) -> float:
    """Return utilization (0-100) for a vehicle, 85 when unknown."""
    body = await _get_json(f"{base_url.rstrip('/')}/api/fleet/{fleet_number}/utilization")
    if body is None:
        return DEFAULT_UTILIZATION
    return _as_float(body.get("utilization"), DEFAULT_UTILIZATION)


def get_route_criticality(fleet_number: str) -> RouteCriticality:
    """Bucket a fleet number into the criticality of the route it serves.

    Only the leading digits count, so "412A" is vehicle 412.
    """
    match = LEADING_NUMBER_RE.match(fleet_number)
    if match is None:
        return RouteCriticality.LOW
    number = int(match.group(1))
    for lower, upper, criticality in ROUTE_BUCKETS:
        if lower <= number < upper:
            return criticality
    return RouteCriticality.LOW


async def get_historical_repair_time(category: str, severity: Severity, base_url: str) -> float:
    """Average repair hours for similar issues, 4 when unknown."""
    body = await _get_json(
        f"{base_url.rstrip('/')}/api/analytics/repair-time",
        params={"category": category, "severity": severity.value},
    )
    if body is None:
        return DEFAULT_REPAIR_HOURS
    return _as_float(body.get("averageHours"), DEFAULT_REPAIR_HOURS)


async def check_parts_availability(category: str, base_url: str) -> bool:
    """Whether parts for *category* are in stock.

    A successful response counts as available only when ``available`` is
    literally true; an unreachable inventory counts as available.
    """
    body = await _get_json(
        f"{base_url.rstrip('/')}/api/inventory/check",
        params={"category": category},
    )
    if body is None:
        return DEFAULT_PARTS_AVAILABLE
    return body.get("available") is True


async def gather_factors(
    issue: dict[str, Any],
    base_url: str,
    *,
    driver_experience: DriverExperience = DriverExperience.EXPERIENCED,
    now: datetime | None = None,
) -> TriageFactors:
    """Assemble a TriageFactors snapshot for one issue record.

    *issue* needs ``fleetNumber``, ``category`` and ``severity``. Hour and
    weekday come from *now*, local time by default (Sunday = 0).
    """
    now = now or datetime.now().astimezone()
    fleet_number = str(issue["fleetNumber"])
    category = str(issue.get("category") or "Other")
    severity = Severity(issue["severity"])

    utilization, repair_hours, parts_available = await asyncio.gather(
        get_fleet_utilization(fleet_number, base_url),
        get_historical_repair_time(category, severity, base_url),
        check_parts_availability(category, base_url),
    )
    return TriageFactors(
        severity=severity,
        fleet_utilization=utilization,
        route_criticality=get_route_criticality(fleet_number),
        historical_repair_hours=repair_hours,
        parts_available=parts_available,
        driver_experience=driver_experience,
        hour_of_day=now.hour,
        # isoweekday: Monday=1..Sunday=7
        day_of_week=now.isoweekday() % 7,
    )
