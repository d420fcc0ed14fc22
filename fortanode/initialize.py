"""First-time set-up of the node directory, configuration and scanner key."""

from __future__ import annotations

import os
import re
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from .accounts import STANDARD_SCRYPT_N, STANDARD_SCRYPT_P, KeyStore
from .color import Attr, colorize, green_bold, white_bold, yellow_bold

MIN_PASSPHRASE_LENGTH = 12

DEFAULT_CONFIG = """# Auto generated by 'forta init' - safe to modify

# Chain ID of the network that is analyzed (1=mainnet)
# Set this before registering the node
chainId: 1

# Used for retrieving the blocks and transactions of the chain that is scanned
scan:
  jsonRpc:
    url: <required>

# Used for retrieving traces of all transactions in a block
# Must support trace_block (e.g. Alchemy)
trace:
  jsonRpc:
    url: <required>

# Used for loading assigned bots and detecting newer node versions
# Always set this as a reliable Polygon JSON-RPC API
# registry:
#  jsonRpc:
#    url: <polygon-json-rpc-api>

# Used for allowing bots to make JSON-RPC requests
# If not set, defaults to scan.jsonRpc.url value above
# jsonRpcProxy:
#   jsonRpc:
#     url: <enter-if-different-from-scan-value>

# Adjust log level and sizes of scan node service containers
# log:
#  level: info
#  maxLogSize: 50m
#  maxLogFiles: 10
"""

_ALNUM_PATTERN = re.compile(r"([a-zA-Z0-9]+)")


class InitError(Exception):
    """Initialization could not complete."""


@dataclass
class NodePaths:
    """Where the node keeps its configuration and keys."""

    forta_dir: Path
    config_file: Optional[Path] = None
    key_dir: Optional[Path] = None
    scrypt_n: int = STANDARD_SCRYPT_N
    scrypt_p: int = STANDARD_SCRYPT_P

    def __post_init__(self) -> None:
        self.forta_dir = Path(self.forta_dir)
        self.config_file = (
            self.forta_dir / "config.yml" if self.config_file is None else Path(self.config_file)
        )
        self.key_dir = self.forta_dir / ".keys" if self.key_dir is None else Path(self.key_dir)

    def is_dir_initialized(self) -> bool:
        return self.forta_dir.is_dir()

    def is_config_file_initialized(self) -> bool:
        return self.config_file.exists() and not self.config_file.is_dir()

    def is_key_dir_initialized(self) -> bool:
        return self.key_dir.is_dir()

    def is_key_initialized(self) -> bool:
        """Whether the first entry of the key directory is a key file."""
        if not self.is_key_dir_initialized():
            return False
        try:
            entries = sorted(self.key_dir.iterdir())
        except OSError:
            return False
        return bool(entries) and not entries[0].is_dir()

    def is_initialized(self) -> bool:
        return (
            self.is_dir_initialized()
            and self.is_config_file_initialized()
            and self.is_key_initialized()
        )


def is_valid_passphrase(passphrase: str) -> bool:
    """Whether the passphrase holds alphanumeric characters."""
    return _ALNUM_PATTERN.search(passphrase) is not None


def _paint(text: str, *attrs: Attr) -> str:
    if "NO_COLOR" not in os.environ and sys.stdout.isatty():
        return colorize(text, *attrs)
    return text


def _print_scanner_address(address: str) -> None:
    sys.stdout.write(f"\nScanner address: {_paint(address, Attr.FG_YELLOW)}\n")


def initialize(paths: NodePaths, passphrase: str = "") -> Optional[str]:
    """Create the node directory, default config and scanner key where missing.

    Returns the new scanner address, or None when no key was created.
    """
    if paths.is_initialized():
        green_bold(
            "Already initialized - please ensure that your configuration at %s is correct!\n",
            paths.config_file,
        )
        return None

    if not paths.is_dir_initialized():
        paths.forta_dir.mkdir(mode=0o755)

    if not paths.is_config_file_initialized():
        paths.config_file.write_text(DEFAULT_CONFIG)
        paths.config_file.chmod(0o644)

    if not paths.is_key_dir_initialized():
        paths.key_dir.mkdir(mode=0o755)

    address: Optional[str] = None
    if not paths.is_key_initialized():
        if not passphrase:
            yellow_bold("Please provide a passphrase and do not lose it.\n\n")
            raise InitError("passphrase is required")
        if not is_valid_passphrase(passphrase) or len(passphrase) < MIN_PASSPHRASE_LENGTH:
            yellow_bold(
                "Please provide an alphanumeric passphrase (a-z, A-Z, 0-9) with at least %d characters.\n\n",
                MIN_PASSPHRASE_LENGTH,
            )
            raise InitError("invalid passphrase")
        address = KeyStore(paths.key_dir, paths.scrypt_n, paths.scrypt_p).new_account(passphrase)
        _print_scanner_address(address)

    sys.stdout.write(_paint(f"\nSuccessfully initialized at {paths.forta_dir}\n", Attr.FG_GREEN))
    white_bold(
        "\n%s\n",
        "\n".join(
            [
                "- Please make sure that all of the values in config.yml are set correctly.",
                "- Please register this node after making sure that you have staked enough.",
            ]
        ),
    )
    return address