"""Update scheduling helpers for the auto-updater."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Union

MIN_UPDATE_INTERVAL_MS = 60 * 1000
MAX_UPDATE_INTERVAL_MS = 24 * 60 * 60 * 1000

_HASH_MASK = (1 << 256) - 1


def _scanner_id_to_int(address: str) -> int:
    digits = address[2:] if address[:2].lower() == "0x" else address
    if not digits:
        return 0
    try:
        return int(digits, 16) & _HASH_MASK
    except ValueError:
        raise ValueError(f"invalid scanner address: {address!r}") from None


def generate_interval_ms(address: str) -> int:
    """A per-scanner update delay in milliseconds, derived from its address."""
    return _scanner_id_to_int(address) % MAX_UPDATE_INTERVAL_MS + MIN_UPDATE_INTERVAL_MS


def load_address_from_key_file(key_dir: Union[str, Path]) -> str:
    """Read the scanner address from the single key file in ``key_dir``."""
    entries = list(Path(key_dir).iterdir())
    if len(entries) != 1:
        raise ValueError("there must be only one key in key directory")
    data = json.loads(entries[0].read_bytes())
    if not isinstance(data, dict):
        raise ValueError("key file must hold a JSON object")
    address = data.get("address", "")
    if not isinstance(address, str):
        raise ValueError("key file address must be a string")
    return f"0x{address}"