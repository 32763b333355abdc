"""
sr25519 Account Management.

Accounts sign extrinsic payloads and render SS58 addresses. The secret is
a 32-byte mini secret stored in ~/.dots/.env as DOTS_SECRET (hex format).

A malformed secret never aborts startup: it is logged and replaced by the
well-known development secret (Alice).

Dependencies: py-sr25519-bindings (signing), base58 (SS58 addresses)
"""

from __future__ import annotations

import hashlib
import logging
import os
import re
import secrets
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Protocol

import base58
import sr25519
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

# Default config directory
DOTS_DIR = Path.home() / ".dots"
DOTS_ENV = DOTS_DIR / ".env"

DEV_SECRET = "0xe5be9a5092b81bca64be81d212e7f2f9eba183bb7a90954f7b76361f6edb5c0a"
DEFAULT_SS58_FORMAT = 42

_SECRET_RE = re.compile(r"^0x[0-9a-fA-F]{64}$")
_SS58_PREFIX = b"SS58PRE"


class AccountError(ValueError):
    pass


class InvalidSecret(AccountError):
    pass


class Signer(Protocol):
    public_key: bytes

    def sign(self, message: bytes) -> bytes:
        ...

    def address(self, ss58_format: int = DEFAULT_SS58_FORMAT) -> str:
        ...


def parse_secret(secret: str) -> bytes:
    """Parse a 0x-prefixed 32-byte hex secret."""
    if not isinstance(secret, str) or not _SECRET_RE.match(secret):
        raise InvalidSecret("Secret must be 0x followed by 64 hex characters")
    return bytes.fromhex(secret[2:])


@dataclass
class Account:
    """sr25519 keypair derived from a 32-byte mini secret."""

    secret: bytes
    public_key: bytes = field(init=False)
    _private_key: bytes = field(init=False, repr=False)
    _addresses: dict[int, str] = field(default_factory=dict, init=False, repr=False)

    def __post_init__(self) -> None:
        self.public_key, self._private_key = sr25519.pair_from_seed(self.secret)

    @classmethod
    def from_secret(cls, secret: str = DEV_SECRET) -> "Account":
        try:
            raw = parse_secret(secret)
        except InvalidSecret:
            logger.warning("Invalid secret; reverting to the development secret")
            raw = parse_secret(DEV_SECRET)
        return cls(raw)

    @classmethod
    def generate(cls) -> "Account":
        return cls(secrets.token_bytes(32))

    @property
    def secret_hex(self) -> str:
        return "0x" + self.secret.hex()

    @property
    def public_key_hex(self) -> str:
        return "0x" + self.public_key.hex()

    def address(self, ss58_format: int = DEFAULT_SS58_FORMAT) -> str:
        if ss58_format not in self._addresses:
            self._addresses[ss58_format] = ss58_encode(self.public_key, ss58_format)
        return self._addresses[ss58_format]

    def sign(self, message: bytes) -> bytes:
        """Sign with the "substrate" signing context. Returns 64 bytes."""
        return sr25519.sign((self.public_key, self._private_key), bytes(message))

    def verify(self, signature: bytes, message: bytes) -> bool:
        return sr25519.verify(bytes(signature), bytes(message), self.public_key)


# ============ SS58 ============


def _ss58_checksum(payload: bytes) -> bytes:
    return hashlib.blake2b(_SS58_PREFIX + payload, digest_size=64).digest()[:2]


def ss58_encode(public_key: bytes, ss58_format: int = DEFAULT_SS58_FORMAT) -> str:
    """
    Render a 32-byte public key as an SS58 address.

    Args:
        public_key: 32-byte public key
        ss58_format: Network prefix (0-16383)

    Returns:
        Base58 SS58 address string
    """
    if len(public_key) != 32:
        raise AccountError(f"Public key must be 32 bytes, got {len(public_key)}")
    if 0 <= ss58_format < 64:
        prefix = bytes([ss58_format])
    elif 64 <= ss58_format < 16384:
        prefix = bytes([
            ((ss58_format & 0b1111_1100) >> 2) | 0b0100_0000,
            (ss58_format >> 8) | ((ss58_format & 0b11) << 6),
        ])
    else:
        raise AccountError(f"Invalid SS58 format: {ss58_format}")
    payload = prefix + bytes(public_key)
    return base58.b58encode(payload + _ss58_checksum(payload)).decode("ascii")


def ss58_decode(address: str) -> bytes:
    """Return the 32-byte public key behind an SS58 address."""
    try:
        raw = base58.b58decode(address)
    except ValueError as exc:
        raise AccountError(f"Invalid SS58 address: {address}") from exc
    prefix_len = 2 if raw and raw[0] & 0b0100_0000 else 1
    if len(raw) != prefix_len + 32 + 2:
        raise AccountError(f"Invalid SS58 address length: {address}")
    payload, checksum = raw[:-2], raw[-2:]
    if _ss58_checksum(payload) != checksum:
        raise AccountError(f"Invalid SS58 checksum: {address}")
    return payload[prefix_len:]


def is_ss58_address(value: str) -> bool:
    try:
        ss58_decode(value)
    except AccountError:
        return False
    return True


# ============ Secret Storage ============


def save_secret(secret: str, env_path: Optional[Path] = None) -> Path:
    """
    Save the account secret to the .env file.

    Args:
        secret: 0x-prefixed hex mini secret
        env_path: Path to .env file (default: ~/.dots/.env)

    Returns:
        Path to the saved .env file
    """
    env_path = env_path or DOTS_ENV
    env_path.parent.mkdir(parents=True, exist_ok=True)

    existing = {}
    if env_path.exists():
        for line in env_path.read_text(encoding="utf-8").splitlines():
            line = line.strip()
            if line and not line.startswith("#") and "=" in line:
                k, v = line.split("=", 1)
                existing[k.strip()] = v.strip()

    existing["DOTS_SECRET"] = secret

    lines = [f"{k}={v}" for k, v in existing.items()]
    env_path.write_text("\n".join(lines) + "\n", encoding="utf-8")

    if os.name != "nt":
        env_path.chmod(0o600)

    return env_path


def load_secret(env_path: Optional[Path] = None) -> str:
    """
    Load the account secret from the .env file or environment.

    Raises:
        ValueError: If DOTS_SECRET is not set anywhere
    """
    env_path = env_path or DOTS_ENV

    if env_path.exists():
        load_dotenv(env_path, override=True)

    secret = os.environ.get("DOTS_SECRET")
    if not secret:
        raise ValueError(
            f"DOTS_SECRET not found. Run 'dots keygen' or set DOTS_SECRET in {env_path}"
        )

    if not secret.startswith("0x"):
        secret = "0x" + secret

    return secret


def get_account(secret: Optional[str] = None) -> Account:
    """
    Get an Account for a secret.

    Args:
        secret: 0x-prefixed hex secret. If None, loads from .env.
    """
    if secret is None:
        secret = load_secret()
    return Account.from_secret(secret)
