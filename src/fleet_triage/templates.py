"""Message template rendering for notification rules.

Only a fixed set of ``{placeholder}`` tokens is substituted. Anything else in
the template, including unknown ``{tokens}``, is passed through untouched.
"""

from __future__ import annotations

import re
from typing import Any

# placeholder name -> fallback when the event field is missing or empty
PLACEHOLDER_DEFAULTS: dict[str, str] = {
    "fleetNumber": "Unknown",
    "category": "General",
    "driverName": "Driver",
    "location": "Unknown location",
    "status": "Unknown",
    "updateMessage": "",
    "estimatedCost": "0",
    "leadTime": "Unknown",
    "totalIssues": "0",
    "criticalCount": "0",
    "completedCount": "0",
}

_PLACEHOLDER_RE = re.compile(r"\{([A-Za-z]+)\}")


def _field_text(data: dict[str, Any], name: str) -> str:
    value = data.get(name)
    if value is None or value == "":
        return PLACEHOLDER_DEFAULTS[name]
    return str(value)


def render_template(template: str, data: dict[str, Any]) -> str:
    """Substitute the known placeholders in *template* from *data*.

    Substitution is a single pass, so values containing ``{...}`` are not
    expanded a second time.
    """

    def _replace(match: re.Match[str]) -> str:
        name = match.group(1)
        if name not in PLACEHOLDER_DEFAULTS:
            return match.group(0)
        return _field_text(data, name)

    return _PLACEHOLDER_RE.sub(_replace, template)
