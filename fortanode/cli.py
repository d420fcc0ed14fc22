"""The ``forta`` command line: node initialization and scanner accounts."""

from __future__ import annotations

import argparse
import os
import sys
from pathlib import Path
from typing import List, Optional

from .accounts import (
    LIGHT_SCRYPT_N,
    LIGHT_SCRYPT_P,
    STANDARD_SCRYPT_N,
    STANDARD_SCRYPT_P,
    AccountError,
    account_address,
    import_account,
)
from .initialize import InitError, NodePaths, initialize


def _default_dir() -> str:
    return os.environ.get("FORTA_DIR") or str(Path.home() / ".forta")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="forta", description="Forta scan node tool")
    parser.add_argument("--dir", default=_default_dir(), help="node directory")
    parser.add_argument(
        "--passphrase",
        default=os.environ.get("FORTA_PASSPHRASE", ""),
        help="passphrase of the scanner key",
    )
    parser.add_argument(
        "--light-kdf",
        action="store_true",
        help="use lighter key derivation for new keys",
    )
    commands = parser.add_subparsers(dest="command")

    commands.add_parser("init", help="create the node directory, config and scanner key")

    account = commands.add_parser("account", help="scanner account operations")
    account_commands = account.add_subparsers(dest="account_command")
    account_commands.add_parser("address", help="show the scanner address")
    importer = account_commands.add_parser("import", help="import a scanner private key")
    importer.add_argument("--file", required=True, help="file holding the hex private key")
    return parser


def _paths(args: argparse.Namespace) -> NodePaths:
    scrypt_n, scrypt_p = (
        (LIGHT_SCRYPT_N, LIGHT_SCRYPT_P) if args.light_kdf else (STANDARD_SCRYPT_N, STANDARD_SCRYPT_P)
    )
    return NodePaths(Path(args.dir), scrypt_n=scrypt_n, scrypt_p=scrypt_p)


def main(argv: Optional[List[str]] = None) -> int:
    """Run the command line and return its exit status."""
    parser = _build_parser()
    args = parser.parse_args(argv)
    try:
        if args.command == "init":
            try:
                initialize(_paths(args), args.passphrase)
            except InitError:
                if not args.passphrase:
                    parser.print_help()
                    return 0
                raise
            return 0
        if args.command == "account":
            key_dir = _paths(args).key_dir
            if args.account_command == "address":
                print(account_address(key_dir))
                return 0
            if args.account_command == "import":
                print(import_account(key_dir, args.file, args.passphrase))
                return 0
        parser.print_help()
        return 0
    except (AccountError, InitError, OSError) as err:
        print(f"Error: {err}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())