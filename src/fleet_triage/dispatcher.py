"""Notification dispatcher: match rules, render messages, fan out to channels."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any, Protocol

from fleet_triage.channels import NotificationPayload
from fleet_triage.rules import DEFAULT_RULES, RuleTable, Trigger, matches_conditions
from fleet_triage.templates import render_template

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from fleet_triage.channels import ChannelSender
    from fleet_triage.rules import Channel, NotificationRule

logger = logging.getLogger(__name__)


class RecipientResolver(Protocol):
    """Turns role names into concrete addresses (the contact directory)."""

    def resolve(self, roles: tuple[str, ...]) -> list[str]: ...


@dataclass(frozen=True)
class DeliveryResult:
    """Outcome of one (rule, channel) send attempt."""

    rule_id: str
    channel: Channel
    success: bool
    error: str | None = None


class Dispatcher:
    """Evaluates the rule table for lifecycle events and sends the results.

    Rules are processed in table order; the channels of one matched rule are
    sent concurrently. A failing channel never stops the remaining channels or
    rules. Failures are logged and returned, not raised, and not retried.
    """

    def __init__(
        self,
        senders: Mapping[Channel, ChannelSender],
        rules: RuleTable = DEFAULT_RULES,
        resolver: RecipientResolver | None = None,
    ) -> None:
        self._senders = dict(senders)
        self._rules = rules
        self._resolver = resolver

    @property
    def rules(self) -> RuleTable:
        return self._rules

    def reload(self, rules: RuleTable | Iterable[NotificationRule]) -> None:
        """Replace the rule snapshot in one assignment."""
        self._rules = rules if isinstance(rules, RuleTable) else RuleTable(rules)
        logger.info("Rule table reloaded (%d rules)", len(self._rules))

    def _recipients(self, rule: NotificationRule) -> tuple[str, ...]:
        recipients = [*rule.recipients.emails, *rule.recipients.phones]
        if self._resolver is not None and rule.recipients.roles:
            try:
                recipients.extend(self._resolver.resolve(rule.recipients.roles))
            except Exception as e:  # noqa: BLE001
                logger.warning(
                    "Resolving roles %s failed for rule %s: %s",
                    ", ".join(rule.recipients.roles),
                    rule.id,
                    e,
                )
        return tuple(recipients)

    def build_notification(
        self,
        rule: NotificationRule,
        data: dict[str, Any],
    ) -> NotificationPayload:
        """Render *rule* against *data* into a payload."""
        return NotificationPayload(
            type=rule.trigger.value,
            title=rule.name,
            message=render_template(rule.template, data),
            recipients=self._recipients(rule),
            channels=rule.channels,
            priority=rule.priority,
            rule_id=rule.id,
            roles=rule.recipients.roles,
            data=data,
        )

    def build_notifications(
        self,
        trigger: Trigger,
        data: dict[str, Any],
        now: datetime | None = None,
    ) -> list[NotificationPayload]:
        """Return the payloads an event would produce, without sending them."""
        now = now or datetime.now(UTC)
        rules = self._rules
        return [
            self.build_notification(rule, data)
            for rule in rules.for_trigger(trigger)
            if matches_conditions(rule.conditions, data, now)
        ]

    async def _send_channel(
        self,
        channel: Channel,
        notification: NotificationPayload,
    ) -> DeliveryResult:
        sender = self._senders.get(channel)
        if sender is None:
            logger.warning("No sender configured for channel %s", channel)
            return DeliveryResult(
                rule_id=notification.rule_id,
                channel=channel,
                success=False,
                error=f"no sender configured for {channel}",
            )
        try:
            await sender.send(notification)
        except Exception as e:  # noqa: BLE001
            logger.warning(
                "%s notification failed for rule %s: %s", channel, notification.rule_id, e
            )
            return DeliveryResult(
                rule_id=notification.rule_id,
                channel=channel,
                success=False,
                error=str(e) or type(e).__name__,
            )
        return DeliveryResult(rule_id=notification.rule_id, channel=channel, success=True)

    async def dispatch(
        self,
        trigger: Trigger,
        data: dict[str, Any],
        now: datetime | None = None,
    ) -> list[DeliveryResult]:
        """Fire every enabled rule for *trigger* whose conditions match *data*.

        Returns one DeliveryResult per attempted channel send, grouped by rule
        in table order.
        """
        results: list[DeliveryResult] = []
        for notification in self.build_notifications(trigger, data, now):
            logger.info(
                "Dispatching %s via %s",
                notification.rule_id,
                ", ".join(str(c) for c in notification.channels),
            )
            results.extend(
                await asyncio.gather(
                    *[self._send_channel(ch, notification) for ch in notification.channels]
                )
            )
        return results

    # --- Lifecycle entry points ---

    async def notify_new_issue(self, issue: dict[str, Any]) -> list[DeliveryResult]:
        return await self.dispatch(Trigger.ISSUE_CREATED, issue)

    async def notify_issue_update(self, issue: dict[str, Any]) -> list[DeliveryResult]:
        return await self.dispatch(Trigger.ISSUE_UPDATED, issue)

    async def notify_parts_needed(
        self,
        fleet_number: str,
        category: str,
        estimated_cost: float,
        lead_time: str,
    ) -> list[DeliveryResult]:
        return await self.dispatch(
            Trigger.PARTS_NEEDED,
            {
                "fleetNumber": fleet_number,
                "category": category,
                "estimatedCost": estimated_cost,
                "leadTime": lead_time,
            },
        )

    async def notify_repair_completed(self, issue: dict[str, Any]) -> list[DeliveryResult]:
        """Announce a finished repair as an issue update with status COMPLETED."""
        return await self.dispatch(Trigger.ISSUE_UPDATED, {**issue, "status": "COMPLETED"})
