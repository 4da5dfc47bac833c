"""CLI entry point and subcommand definitions."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import TYPE_CHECKING, Any

from fleet_triage.channels import build_http_senders
from fleet_triage.config import ConfigError, Settings, get_config_path, load_settings
from fleet_triage.dispatcher import Dispatcher
from fleet_triage.priority import (
    DriverExperience,
    RouteCriticality,
    Severity,
    Tier,
    TriageFactors,
    score,
)
from fleet_triage.rules import Trigger

if TYPE_CHECKING:
    from fleet_triage.priority import PriorityScore

COL_NAME_MAX = 32


def _tier_indicator(tier: str) -> str:
    indicators = {
        Tier.EMERGENCY: "🚨",
        Tier.CRITICAL: "🔴",
        Tier.HIGH: "🟠",
        Tier.MEDIUM: "🟡",
        Tier.LOW: "⚪",
    }
    return indicators.get(tier, "⚪")


def _load(args: argparse.Namespace) -> Settings:
    """Load settings from --config (or the default path), exiting on errors."""
    path = Path(args.config) if args.config else get_config_path()
    try:
        settings = load_settings(path)
    except ConfigError as e:
        print(str(e), file=sys.stderr)
        sys.exit(1)
    if args.base_url:
        settings.base_url = args.base_url
    return settings


def _parse_event(raw: str) -> dict[str, Any]:
    """Parse the JSON event argument; '-' reads it from stdin."""
    text = sys.stdin.read() if raw == "-" else raw
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        print(f"Invalid event JSON: {e}", file=sys.stderr)
        sys.exit(1)
    if not isinstance(data, dict):
        print("Event JSON must be an object", file=sys.stderr)
        sys.exit(1)
    return data


def _score_to_dict(result: PriorityScore) -> dict[str, Any]:
    return {
        "score": result.score,
        "priority": str(result.priority),
        "reasoning": list(result.reasoning),
        "recommendedAction": result.recommended_action,
        "estimatedImpact": result.estimated_impact,
    }


def _cmd_score(args: argparse.Namespace) -> None:
    """Score one issue from explicit factors."""
    factors = TriageFactors(
        severity=Severity(args.severity),
        fleet_utilization=args.utilization,
        route_criticality=RouteCriticality(args.route),
        historical_repair_hours=args.repair_hours,
        parts_available=not args.no_parts,
        driver_experience=DriverExperience(args.driver),
        hour_of_day=args.hour,
        day_of_week=args.day,
    )
    result = score(factors, clamp=args.clamp)
    if args.json:
        print(json.dumps(_score_to_dict(result), indent=2))
        return
    print(f"{_tier_indicator(result.priority)} {result.priority} (score {result.score})")
    for line in result.reasoning:
        print(f"  • {line}")
    print(f"Action: {result.recommended_action}")
    print(f"Impact: {result.estimated_impact}")


def _cmd_rules(args: argparse.Namespace) -> None:
    """List the loaded rule table."""
    settings = _load(args)
    rules = list(settings.rules)
    if args.json:
        print(
            json.dumps(
                [
                    {
                        "id": r.id,
                        "name": r.name,
                        "trigger": str(r.trigger),
                        "channels": [str(c) for c in r.channels],
                        "priority": r.priority,
                        "enabled": r.enabled,
                    }
                    for r in rules
                ],
                indent=2,
            )
        )
        return
    print(f"{'':2} {'Name':<34} {'Trigger':<18} {'Channels':<26} {'Priority':<8}")
    print("─" * 92)
    for rule in rules:
        mark = "✓" if rule.enabled else "✗"
        name = rule.name
        if len(name) > COL_NAME_MAX:
            name = name[: COL_NAME_MAX - 1] + "…"
        channels = ",".join(str(c) for c in rule.channels)
        print(f"{mark:2} {name:<34} {rule.trigger:<18} {channels:<26} {rule.priority:<8}")


def _cmd_dispatch(args: argparse.Namespace) -> None:
    """Evaluate an event against the rules and (unless --dry-run) send it."""
    settings = _load(args)
    data = _parse_event(args.event)
    dispatcher = Dispatcher(build_http_senders(settings.base_url), settings.rules)
    trigger = Trigger(args.trigger)

    if args.dry_run:
        payloads = dispatcher.build_notifications(trigger, data)
        if not payloads:
            print("No rules matched.")
            return
        print(json.dumps([p.to_dict() for p in payloads], indent=2, default=str))
        return

    results = asyncio.run(dispatcher.dispatch(trigger, data))
    if not results:
        print("No rules matched.")
        return
    failed = 0
    for r in results:
        if r.success:
            print(f"✅ {r.rule_id} → {r.channel}")
        else:
            failed += 1
            print(f"❌ {r.rule_id} → {r.channel}: {r.error}")
    print(f"Sent: {len(results) - failed} ok, {failed} failed")


def main(argv: list[str] | None = None) -> None:
    """Parse arguments and dispatch to the appropriate subcommand."""
    parser = argparse.ArgumentParser(
        prog="fleet-triage",
        description="Score vehicle issues and route maintenance notifications",
    )
    parser.add_argument("-v", "--verbose", action="store_true")
    parser.add_argument("--config", help="Path to config.toml")
    parser.add_argument("--base-url", help="Override the API base URL")
    subparsers = parser.add_subparsers(dest="command", required=True)

    # score
    score_parser = subparsers.add_parser("score", help="Score an issue")
    score_parser.add_argument(
        "--severity", choices=[s.value for s in Severity], required=True
    )
    score_parser.add_argument("--utilization", type=float, default=85.0)
    score_parser.add_argument(
        "--route",
        choices=[r.value for r in RouteCriticality],
        default=RouteCriticality.LOW.value,
    )
    score_parser.add_argument("--repair-hours", type=float, default=4.0)
    score_parser.add_argument("--no-parts", action="store_true", help="Parts are not in stock")
    score_parser.add_argument(
        "--driver",
        choices=[d.value for d in DriverExperience],
        default=DriverExperience.EXPERIENCED.value,
    )
    score_parser.add_argument("--hour", type=int, choices=range(24), required=True)
    score_parser.add_argument(
        "--day", type=int, choices=range(7), required=True, help="0 = Sunday"
    )
    score_parser.add_argument("--clamp", action="store_true", help="Clamp score to 0-100")
    score_parser.add_argument("--json", action="store_true", help="Output as JSON")

    # rules
    rules_parser = subparsers.add_parser("rules", help="List notification rules")
    rules_parser.add_argument("--json", action="store_true", help="Output as JSON")

    # dispatch
    dispatch_parser = subparsers.add_parser("dispatch", help="Send notifications for an event")
    dispatch_parser.add_argument("trigger", choices=[t.value for t in Trigger])
    dispatch_parser.add_argument("event", help="Event data as a JSON object, or - for stdin")
    dispatch_parser.add_argument(
        "--dry-run", action="store_true", help="Print payloads instead of sending"
    )

    args = parser.parse_args(argv)

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")

    commands = {
        "score": _cmd_score,
        "rules": _cmd_rules,
        "dispatch": _cmd_dispatch,
    }
    commands[args.command](args)
