"""Notification rule table and condition matching."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

logger = logging.getLogger(__name__)


class Trigger(StrEnum):
    ISSUE_CREATED = "issue_created"
    ISSUE_UPDATED = "issue_updated"
    CRITICAL_ISSUE = "critical_issue"
    REPAIR_COMPLETED = "repair_completed"
    PARTS_NEEDED = "parts_needed"


class Channel(StrEnum):
    EMAIL = "email"
    SMS = "sms"
    PUSH = "push"
    DASHBOARD = "dashboard"


ROLES = ("DRIVER", "OPERATIONS", "WORKSHOP", "ADMIN")
PRIORITY_LABELS = ("LOW", "MEDIUM", "HIGH", "CRITICAL")


@dataclass(frozen=True)
class RuleConditions:
    """Filters a rule applies to event data. ``None`` means no filter."""

    severity: tuple[str, ...] | None = None
    status: tuple[str, ...] | None = None
    category: tuple[str, ...] | None = None
    fleet_numbers: tuple[str, ...] | None = None
    min_age_minutes: float | None = None


@dataclass(frozen=True)
class Recipients:
    """Who a rule addresses: roles are resolved elsewhere, addresses are literal."""

    roles: tuple[str, ...] = ()
    emails: tuple[str, ...] = ()
    phones: tuple[str, ...] = ()


@dataclass(frozen=True)
class NotificationRule:
    """A declarative notification rule keyed to one trigger."""

    id: str
    name: str
    trigger: Trigger
    template: str
    channels: tuple[Channel, ...]
    priority: str  # one of PRIORITY_LABELS
    conditions: RuleConditions = field(default_factory=RuleConditions)
    recipients: Recipients = field(default_factory=Recipients)
    enabled: bool = True


class RuleTable:
    """Immutable, ordered snapshot of notification rules."""

    def __init__(self, rules: Iterable[NotificationRule]) -> None:
        self._rules = tuple(rules)

    def __iter__(self) -> Iterator[NotificationRule]:
        return iter(self._rules)

    def __len__(self) -> int:
        return len(self._rules)

    def for_trigger(self, trigger: Trigger) -> list[NotificationRule]:
        """Enabled rules for *trigger*, in table order."""
        return [rule for rule in self._rules if rule.enabled and rule.trigger == trigger]


DEFAULT_RULES = RuleTable(
    [
        NotificationRule(
            id="critical-issue-alert",
            name="Critical Issue Alert",
            trigger=Trigger.ISSUE_CREATED,
            conditions=RuleConditions(severity=("CRITICAL",)),
            recipients=Recipients(
                roles=("OPERATIONS", "ADMIN"),
                emails=("operations@senational.com.au", "workshop@senational.com.au"),
            ),
            channels=(Channel.EMAIL, Channel.SMS, Channel.DASHBOARD),
            template=(
                "CRITICAL ALERT: {fleetNumber} - {category} issue reported by "
                "{driverName}. Location: {location}. Immediate attention required."
            ),
            priority="CRITICAL",
        ),
        NotificationRule(
            id="repair-completed",
            name="Repair Completed Notification",
            trigger=Trigger.ISSUE_UPDATED,
            conditions=RuleConditions(status=("COMPLETED",)),
            recipients=Recipients(roles=("DRIVER", "OPERATIONS")),
            channels=(Channel.SMS, Channel.DASHBOARD),
            template=(
                "Good news! Your vehicle {fleetNumber} repair is complete and ready "
                "for pickup. Contact workshop for details."
            ),
            priority="MEDIUM",
        ),
        NotificationRule(
            id="parts-needed-alert",
            name="Parts Required Alert",
            trigger=Trigger.PARTS_NEEDED,
            recipients=Recipients(
                roles=("OPERATIONS", "ADMIN"),
                emails=("parts@senational.com.au",),
            ),
            channels=(Channel.EMAIL, Channel.DASHBOARD),
            template=(
                "Parts required for {fleetNumber} - {category} repair. "
                "Estimated cost: ${estimatedCost}. Lead time: {leadTime}."
            ),
            priority="HIGH",
        ),
        NotificationRule(
            id="high-priority-update",
            name="High Priority Issue Update",
            trigger=Trigger.ISSUE_UPDATED,
            conditions=RuleConditions(severity=("HIGH", "CRITICAL")),
            recipients=Recipients(roles=("OPERATIONS",)),
            channels=(Channel.DASHBOARD, Channel.PUSH),
            template="Update on {fleetNumber}: Status changed to {status}. {updateMessage}",
            priority="HIGH",
        ),
        NotificationRule(
            id="daily-summary",
            name="Daily Operations Summary",
            # TODO: move to a scheduled trigger once the scheduler emits one
            trigger=Trigger.ISSUE_CREATED,
            recipients=Recipients(
                roles=("ADMIN",),
                emails=("management@senational.com.au",),
            ),
            channels=(Channel.EMAIL,),
            template=(
                "Daily Summary: {totalIssues} new issues, {criticalCount} critical, "
                "{completedCount} completed."
            ),
            priority="LOW",
        ),
    ]
)


def _parse_timestamp(value: Any) -> datetime | None:
    """Parse an ISO-8601 string, datetime or epoch milliseconds.

    Naive values are taken as UTC.
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, int | float) and not isinstance(value, bool):
        try:
            return datetime.fromtimestamp(value / 1000, UTC)
        except (OverflowError, OSError, ValueError):
            return None
    elif isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
    else:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def _member(allowed: tuple[str, ...] | None, value: Any) -> bool:
    if allowed is None:
        return True
    return value is not None and str(value) in allowed


def matches_conditions(
    conditions: RuleConditions,
    data: dict[str, Any],
    now: datetime | None = None,
) -> bool:
    """Return True when every present condition accepts *data*.

    List conditions reject events that lack the field. The age threshold is
    skipped when ``createdAt`` is missing or unparseable.
    """
    if not _member(conditions.severity, data.get("severity")):
        return False
    if not _member(conditions.status, data.get("status")):
        return False
    if not _member(conditions.category, data.get("category")):
        return False
    if not _member(conditions.fleet_numbers, data.get("fleetNumber")):
        return False

    if conditions.min_age_minutes is not None:
        created_at = _parse_timestamp(data.get("createdAt"))
        if created_at is None:
            logger.debug("No usable createdAt, skipping age condition")
        else:
            now = now or datetime.now(UTC)
            age_minutes = (now - created_at).total_seconds() / 60
            if age_minutes < conditions.min_age_minutes:
                return False

    return True
