"""Message subjects and payload encoding for the node's message bus."""

from __future__ import annotations

import enum
import json
from dataclasses import dataclass
from typing import Any, Union

BUFFER_SIZE = 1000


class Subject(str, enum.Enum):
    """Message subjects."""

    AGENTS_ALERT_SUBSCRIBE = "agents.alert.subscribe"
    AGENTS_ALERT_UNSUBSCRIBE = "agents.alert.unsubscribe"
    AGENTS_STATUS_RUNNING = "agents.status.running"
    AGENTS_STATUS_ATTACHED = "agents.status.attached"
    AGENTS_STATUS_STOPPING = "agents.status.stopping"
    AGENTS_STATUS_STOPPED = "agents.status.stopped"
    AGENTS_STATUS_RESTARTED = "agents.status.restarted"
    METRIC_AGENT = "metric.agent"
    SCANNER_BLOCK = "scanner.block"
    SCANNER_ALERT = "scanner.alert"
    INSPECTION_DONE = "inspection.done"


def _compact(value: Any) -> bytes:
    return json.dumps(value, separators=(",", ":")).encode("utf-8")


@dataclass(frozen=True)
class ScannerPayload:
    """General scanner information."""

    latest_block_input: int = 0

    def to_json(self) -> bytes:
        return _compact({"latestBlockInput": self.latest_block_input})


def decode_scanner_payload(data: Union[bytes, str]) -> ScannerPayload:
    """Decode a scanner payload; raise ValueError on malformed input."""
    obj = json.loads(data)
    if not isinstance(obj, dict):
        raise ValueError("scanner payload must be a JSON object")
    value = obj.get("latestBlockInput", 0)
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValueError(f"invalid latestBlockInput: {value!r}")
    return ScannerPayload(latest_block_input=value)


def encode_payload(payload: Any) -> bytes:
    """Encode a message payload as compact JSON bytes."""
    to_json = getattr(payload, "to_json", None)
    if callable(to_json):
        return to_json()
    return _compact(payload)