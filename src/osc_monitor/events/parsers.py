"""
Format-specific parsers turning one raw log line into at most one event.

Every parser takes the source-assigned timestamp exactly as the log store
returned it (a string, nanoseconds for Loki) and the line text. Lines that do
not carry the expected fields are noise, not errors: the parser returns None.
Parsers hold no state, so parsing the same input twice yields equal events.
"""

from __future__ import annotations

import json
import re
from typing import Callable, Dict, Optional, Union
from urllib.parse import unquote

from loguru import logger

from ..config_manager import LogFormat
from ..logging_utils import truncate_and_hash
from .event_types import (
    UNKNOWN_TENANT,
    ActionSpec,
    EventType,
    PlatformEvent,
)

Parser = Callable[[str, str], Optional[PlatformEvent]]

_log = logger.bind(component="event_parser")


# -----------------------------
# Timestamps and ids
# -----------------------------


def to_epoch_ms(raw: Union[str, int, float]) -> Optional[int]:
    """Normalize an epoch timestamp in s, ms, us or ns to integer milliseconds.

    Integers are classified by magnitude; values with a fractional part are
    taken as seconds. Returns None for values that are not numbers.
    """
    text = str(raw).strip()
    try:
        value = int(text)
    except ValueError:
        try:
            return int(float(text) * 1000)
        except (ValueError, OverflowError):
            return None
    if value >= 10**17:
        return value // 1_000_000
    if value >= 10**14:
        return value // 1_000
    if value >= 10**11:
        return value
    return value * 1000


def make_event_id(raw_ts: str, actor: str, kind: str) -> str:
    return f"{raw_ts}-{actor}-{kind}"


def _build_event(
    raw_ts: str,
    actor: str,
    spec: ActionSpec,
    *,
    tenant: str,
    resource: str = "",
    service: str = "",
    instance: str = "",
    attributed: bool = True,
) -> Optional[PlatformEvent]:
    timestamp = to_epoch_ms(raw_ts)
    if timestamp is None:
        return None
    return PlatformEvent(
        id=make_event_id(raw_ts, actor, spec.kind),
        type=spec.type,
        emoji=spec.emoji,
        tenant=tenant,
        description=spec.template.format(
            tenant=tenant, resource=resource, service=service, instance=instance
        ),
        timestamp=timestamp,
        attributed=attributed,
    )


def _split_resource(resource: str) -> tuple[str, str]:
    """``service/instance`` -> (service, instance); no slash -> (resource, resource)."""
    parts = resource.split("/")
    service = parts[0]
    instance = parts[1] if len(parts) > 1 and parts[1] else resource
    return service, instance


# -----------------------------
# GUI audit lines
# -----------------------------

AUDIT_ACTIONS: Dict[str, ActionSpec] = {
    "create:instance": ActionSpec(
        EventType.INSTANCE_CREATED,
        "create_instance",
        "{tenant} created instance {instance} ({service})",
    ),
    "delete:instance": ActionSpec(
        EventType.INSTANCE_REMOVED,
        "delete_instance",
        "{tenant} removed instance {instance} ({service})",
    ),
    "restart:instance": ActionSpec(
        EventType.INSTANCE_RESTARTED,
        "restart_instance",
        "{tenant} restarted instance {instance}",
    ),
    "create:tenant": ActionSpec(
        EventType.TENANT_SIGNUP,
        "create_tenant",
        "New tenant signed up: {tenant}",
    ),
    "deploy:solution": ActionSpec(
        EventType.SOLUTION_DEPLOYED,
        "deploy_solution",
        "{tenant} deployed solution {resource}",
    ),
    "delete:solution": ActionSpec(
        EventType.SOLUTION_DESTROYED,
        "delete_solution",
        "{tenant} destroyed solution {resource}",
    ),
}

_CUSTOMER_RE = re.compile(r"customer=(\S+)")
_ACTION_RE = re.compile(r"action (\S+) on resource (\S+)")


def parse_audit_line(raw_ts: str, line: str) -> Optional[PlatformEvent]:
    """Parse a GUI audit line.

    Format::

        level=info component=app customer=acme msg="[audit] User u performed
        action create:instance on resource couchdb/acme-db-1"
    """
    customer_match = _CUSTOMER_RE.search(line)
    action_match = _ACTION_RE.search(line)
    if not customer_match or not action_match:
        return None

    tenant = customer_match.group(1).strip("\"'")
    action = action_match.group(1)
    resource = action_match.group(2).strip("\"'")
    spec = AUDIT_ACTIONS.get(action)
    if spec is None or not tenant:
        return None

    service, instance = _split_resource(resource)
    return _build_event(
        raw_ts,
        tenant,
        spec,
        tenant=tenant,
        resource=resource,
        service=service,
        instance=instance,
    )


# -----------------------------
# Magic-link signup flow
# -----------------------------

SIGNUP_ACTION = ActionSpec(EventType.TENANT_SIGNUP, "signup", "New signup: {tenant}")

_EMAIL_RE = re.compile(r'email=([^&\s"]+)')


def extract_signup_email(line: str) -> Optional[str]:
    match = _EMAIL_RE.search(line)
    if not match:
        return None
    return unquote(match.group(1)) or None


def parse_signup_line(raw_ts: str, line: str) -> Optional[PlatformEvent]:
    """Parse a magic-link signup line carrying a URL-encoded ``email=`` field.

    Repeated emails are not suppressed here; the aggregator keeps the first
    occurrence within a fetch window.
    """
    email = extract_signup_email(line)
    if email is None:
        return None
    return _build_event(raw_ts, email, SIGNUP_ACTION, tenant=email)


# -----------------------------
# Structured JSON actions
# -----------------------------

STRUCTURED_ACTIONS: Dict[str, ActionSpec] = {
    "create-instance": AUDIT_ACTIONS["create:instance"],
    "remove-instance": AUDIT_ACTIONS["delete:instance"],
    "restart-instance": AUDIT_ACTIONS["restart:instance"],
    "deploy-solution": AUDIT_ACTIONS["deploy:solution"],
    "destroy-solution": AUDIT_ACTIONS["delete:solution"],
    "upgrade-plan": ActionSpec(
        EventType.PLAN_UPGRADE, "plan_upgrade", "{tenant} upgraded plan to {resource}"
    ),
    "downgrade-plan": ActionSpec(
        EventType.PLAN_DOWNGRADE,
        "plan_downgrade",
        "{tenant} downgraded plan to {resource}",
    ),
}

_MSG_RE = re.compile(r'msg="((?:[^"\\]|\\.)*)"')


def extract_structured_payload(line: str) -> Optional[dict]:
    """Return the JSON object embedded in the ``msg="..."`` field, or None.

    Raises:
        ValueError: If the field is present but its payload is not valid JSON.
    """
    match = _MSG_RE.search(line)
    if not match:
        return None
    # The field is a quoted string with escaped quotes; decode it as a JSON string first
    message = json.loads(f'"{match.group(1)}"')
    start, end = message.find("{"), message.rfind("}")
    if start < 0 or end < start:
        return None
    payload = json.loads(message[start : end + 1])
    return payload if isinstance(payload, dict) else None


def parse_structured_action_line(raw_ts: str, line: str) -> Optional[PlatformEvent]:
    """Parse an API line whose ``msg`` field holds a JSON action record.

    Only successful write actions from ``STRUCTURED_ACTIONS`` become events.
    """
    try:
        payload = extract_structured_payload(line)
    except ValueError as e:
        _log.debug(
            {
                "event": "structured_action.malformed",
                "error": str(e),
                **truncate_and_hash(line, 256),
            }
        )
        return None
    if payload is None:
        return None

    spec = STRUCTURED_ACTIONS.get(str(payload.get("action") or ""))
    if spec is None or payload.get("success") is not True:
        return None

    tenant = payload.get("tenantId")
    if not isinstance(tenant, str) or not tenant:
        return None

    resource = str(payload.get("resource") or "")
    service, instance = _split_resource(resource)
    if payload.get("type"):
        service = str(payload["type"])
    return _build_event(
        raw_ts,
        tenant,
        spec,
        tenant=tenant,
        resource=resource,
        service=service,
        instance=instance,
    )


# -----------------------------
# Money-manager plan changes
# -----------------------------

PLAN_CHANGE_ACTION = ActionSpec(
    EventType.PLAN_UPGRADE, "plan_change", "Tenant updated plan"
)

_REQUEST_ID_RE = re.compile(r"(?<![\w])id=(\S+)")


def parse_plan_change_line(raw_ts: str, line: str) -> Optional[PlatformEvent]:
    """Turn a ``POST /tenantplan`` line into a generic plan change event.

    These lines do not name the tenant, so the event carries the placeholder
    tenant and ``attributed=False``. The request id, when present, keeps
    concurrent plan changes apart.
    """
    match = _REQUEST_ID_RE.search(line)
    request_id = match.group(1).strip("\"'") if match else raw_ts
    return _build_event(
        raw_ts,
        request_id or raw_ts,
        PLAN_CHANGE_ACTION,
        tenant=UNKNOWN_TENANT,
        attributed=False,
    )


PARSERS: Dict[LogFormat, Parser] = {
    LogFormat.AUDIT: parse_audit_line,
    LogFormat.SIGNUP: parse_signup_line,
    LogFormat.STRUCTURED_ACTION: parse_structured_action_line,
    LogFormat.PLAN_CHANGE: parse_plan_change_line,
}


def parse_line(fmt: LogFormat, raw_ts: str, line: str) -> Optional[PlatformEvent]:
    """Route a line to the parser of the source format it was fetched for."""
    return PARSERS[fmt](raw_ts, line)


__all__ = [
    "AUDIT_ACTIONS",
    "PARSERS",
    "STRUCTURED_ACTIONS",
    "extract_signup_email",
    "make_event_id",
    "parse_audit_line",
    "parse_line",
    "parse_plan_change_line",
    "parse_signup_line",
    "parse_structured_action_line",
    "to_epoch_ms",
]
