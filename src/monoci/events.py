"""Translate CI trigger events into base/head commit refs."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from monoci.errors import EventPayloadError

logger = logging.getLogger(__name__)

PULL_REQUEST = "pull_request"
PUSH = "push"
WORKFLOW_DISPATCH = "workflow_dispatch"
SCHEDULE = "schedule"

PAYLOAD_EVENTS = frozenset({PULL_REQUEST, PUSH, WORKFLOW_DISPATCH})


def load_payload(payload_path: str) -> dict[str, Any]:
    """Read a CI event payload JSON document.

    Raises:
        EventPayloadError: If the file cannot be read or is not a JSON object
    """
    path = Path(payload_path)
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise EventPayloadError(f"Invalid JSON in event payload {path}: {e}") from e
    except OSError as e:
        raise EventPayloadError(f"Unable to read event payload {path}: {e}") from e

    if not isinstance(data, dict):
        raise EventPayloadError(f"Event payload {path} is not a JSON object")
    return data


def _lookup(payload: dict[str, Any], *keys: str) -> Any:
    """Follow ``keys`` into the payload; an absent final key reads as None."""
    node: Any = payload
    for depth, key in enumerate(keys[:-1], start=1):
        node = node.get(key) if isinstance(node, dict) else None
        if not isinstance(node, dict):
            raise EventPayloadError(f"Event payload missing object '{'.'.join(keys[:depth])}'")
    return node.get(keys[-1])


def _normalize(ref: Any) -> str | None:
    if ref is None:
        return None
    ref = str(ref)
    return ref or None


def resolve_refs(
    event_name: str,
    payload_path: str = "",
    local_base: str | None = None,
    local_head: str | None = None,
) -> tuple[str | None, str | None]:
    """Determine the (base, head) refs to diff for a CI event.

    Args:
        event_name: CI event name, empty for local runs
        payload_path: Path to the event payload JSON file
        local_base: Base ref for local runs
        local_head: Head ref for local runs

    Returns:
        Tuple of (base, head); None means "uncommitted changes" for base and
        "current checkout" for head

    Raises:
        EventPayloadError: If the event needs a payload that is missing or malformed
    """
    if event_name in PAYLOAD_EVENTS:
        if not payload_path:
            raise EventPayloadError(f"Event '{event_name}' requires an event payload path")
        payload = load_payload(payload_path)

        if event_name == PULL_REQUEST:
            logger.info("Getting commits from pull_request event")
            base, head = _lookup(payload, "pull_request", "base", "ref"), None
        elif event_name == PUSH:
            logger.info("Getting commits from push event")
            base, head = _lookup(payload, "before"), None
        else:
            logger.info("Getting inputs from workflow_dispatch event")
            base, head = _lookup(payload, "inputs", "base"), _lookup(payload, "inputs", "head")
    else:
        logger.info("Using local commits")
        base, head = local_base, local_head

    return _normalize(base), _normalize(head)
