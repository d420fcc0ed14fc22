"""Scanner key store: encrypted secp256k1 key files and account handling."""

from __future__ import annotations

import hashlib
import json
import logging
import os
import shutil
import sys
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Union

from Crypto.Hash import keccak
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from .color import red_bold

log = logging.getLogger(__name__)

STANDARD_SCRYPT_N = 1 << 18
STANDARD_SCRYPT_P = 1
LIGHT_SCRYPT_N = 1 << 12
LIGHT_SCRYPT_P = 6

_SCRYPT_R = 8
_SCRYPT_DKLEN = 32
_SECP256K1_ORDER = int(
    "FFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141", 16
)
_HEX_DIGITS = set("0123456789abcdefABCDEF")

PathLike = Union[str, Path]


class AccountError(Exception):
    """An account operation failed."""


def _keccak256(data: bytes) -> bytes:
    digest = keccak.new(digest_bits=256)
    digest.update(data)
    return digest.digest()


def checksum_address(address: str) -> str:
    """The mixed-case checksummed form of a 20-byte hex address."""
    digits = address[2:] if address[:2].lower() == "0x" else address
    if len(digits) != 40 or not set(digits) <= _HEX_DIGITS:
        raise ValueError(f"invalid address: {address!r}")
    lower = digits.lower()
    hashed = _keccak256(lower.encode("ascii")).hex()
    mixed = "".join(
        char.upper() if char.isalpha() and int(nibble, 16) >= 8 else char
        for char, nibble in zip(lower, hashed)
    )
    return "0x" + mixed


def _address_of(key: ec.EllipticCurvePrivateKey) -> str:
    point = key.public_key().public_bytes(
        serialization.Encoding.X962, serialization.PublicFormat.UncompressedPoint
    )
    return checksum_address(_keccak256(point[1:])[-20:].hex())


def _parse_private_key(hex_key: str) -> ec.EllipticCurvePrivateKey:
    try:
        raw = bytes.fromhex(hex_key)
    except ValueError as err:
        raise AccountError(f"could not parse the private key hex: {err}") from err
    if len(raw) != 32:
        raise AccountError("could not parse the private key hex: invalid length, need 256 bits")
    scalar = int.from_bytes(raw, "big")
    if scalar == 0:
        raise AccountError("could not parse the private key hex: invalid private key, zero")
    if scalar >= _SECP256K1_ORDER:
        raise AccountError("could not parse the private key hex: invalid private key, >=N")
    return ec.derive_private_key(scalar, ec.SECP256K1())


def _key_file_name(address: str) -> str:
    now = datetime.now(timezone.utc)
    return f"UTC--{now:%Y-%m-%dT%H-%M-%S}.{now.microsecond * 1000:09d}Z--{address[2:].lower()}"


class KeyStore:
    """A directory of passphrase-encrypted key files."""

    def __init__(
        self,
        key_dir: PathLike,
        scrypt_n: int = STANDARD_SCRYPT_N,
        scrypt_p: int = STANDARD_SCRYPT_P,
    ) -> None:
        self.key_dir = Path(key_dir)
        self.scrypt_n = scrypt_n
        self.scrypt_p = scrypt_p

    def _key_files(self) -> List[Path]:
        if not self.key_dir.is_dir():
            return []
        return sorted(
            path
            for path in self.key_dir.iterdir()
            if path.is_file() and not path.name.startswith(".") and not path.name.endswith("~")
        )

    def accounts(self) -> List[str]:
        """Checksummed addresses of the key files, ordered by file name."""
        addresses = []
        for path in self._key_files():
            try:
                data = json.loads(path.read_text())
                addresses.append(checksum_address(data["address"]))
            except (OSError, ValueError, KeyError, TypeError) as err:
                log.debug("skipping key file %s: %s", path, err)
        return addresses

    def new_account(self, passphrase: str) -> str:
        """Generate a new key, store it encrypted and return its address."""
        return self._store(ec.generate_private_key(ec.SECP256K1()), passphrase)

    def import_private_key(self, hex_key: str, passphrase: str) -> str:
        """Store the given hex private key encrypted and return its address."""
        key = _parse_private_key(hex_key)
        address = _address_of(key)
        if address in self.accounts():
            raise AccountError("failed to import: account already exists")
        return self._store(key, passphrase)

    def _store(self, key: ec.EllipticCurvePrivateKey, passphrase: str) -> str:
        address = _address_of(key)
        key_bytes = key.private_numbers().private_value.to_bytes(32, byteorder="big")
        salt = os.urandom(32)
        iv = os.urandom(16)
        derived = hashlib.scrypt(
            passphrase.encode(),
            salt=salt,
            n=self.scrypt_n,
            r=_SCRYPT_R,
            p=self.scrypt_p,
            dklen=_SCRYPT_DKLEN,
            maxmem=128 * _SCRYPT_R * (self.scrypt_n + self.scrypt_p + 2) + (1 << 20),
        )
        encryptor = Cipher(algorithms.AES(derived[:16]), modes.CTR(iv)).encryptor()
        ciphertext = encryptor.update(key_bytes) + encryptor.finalize()
        mac = _keccak256(derived[16:32] + ciphertext)
        document = {
            "address": address[2:].lower(),
            "crypto": {
                "cipher": "aes-128-ctr",
                "ciphertext": ciphertext.hex(),
                "cipherparams": {"iv": iv.hex()},
                "kdf": "scrypt",
                "kdfparams": {
                    "dklen": _SCRYPT_DKLEN,
                    "n": self.scrypt_n,
                    "p": self.scrypt_p,
                    "r": _SCRYPT_R,
                    "salt": salt.hex(),
                },
                "mac": mac.hex(),
            },
            "id": str(uuid.uuid4()),
            "version": 3,
        }
        self.key_dir.mkdir(parents=True, exist_ok=True, mode=0o700)
        target = self.key_dir / _key_file_name(address)
        temporary = target.with_name(f".{target.name}.tmp")
        temporary.write_text(json.dumps(document))
        temporary.chmod(0o600)
        os.replace(temporary, target)
        return address


def account_address(key_dir: PathLike) -> str:
    """The address of the single scanner account in ``key_dir``."""
    accounts = KeyStore(key_dir).accounts()
    if len(accounts) > 1:
        red_bold(
            "You have multiple accounts. Please import your scanner account again "
            "with 'forta account import'."
        )
        sys.stdout.write("Your current account addresses:\n")
        sys.stdout.write("".join(f"{address}\n" for address in accounts))
        raise AccountError("multiple accounts")
    if not accounts:
        red_bold("You have no accounts. Please import your scanner account with 'forta account import'.")
        raise AccountError("no accounts")
    return accounts[0]


def import_account(key_dir: PathLike, key_file: PathLike, passphrase: str) -> str:
    """Replace the key store with the private key read from ``key_file``."""
    try:
        hex_key = Path(key_file).read_text().strip()
    except OSError as err:
        raise AccountError(f"failed to read the private key: {err}") from err

    if not passphrase:
        red_bold(
            "Your passphrase is not set. Please set it with FORTA_PASSPHRASE environment "
            "variable or provide it with the --passphrase flag.\n"
        )
        raise AccountError("empty passphrase")

    _parse_private_key(hex_key)
    shutil.rmtree(key_dir, ignore_errors=True)
    return KeyStore(key_dir).import_private_key(hex_key, passphrase)