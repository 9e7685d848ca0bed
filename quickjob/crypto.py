"""
Contact protection for job postings.

A poster's contact number is stored protected at rest:
- AES-256-GCM authenticated encryption
- A fresh 96-bit nonce per record
- The poster id bound in as associated data, so a protected contact
  cannot be moved to another poster's job

Protected values look like ``v1:<base64(nonce || ciphertext)>``. Values
without the prefix are records written before protection was enabled and
are returned unchanged.
"""

import base64
import binascii
import logging
import os
from typing import Optional, Protocol

from quickjob.errors import ContactProtectionError

logger = logging.getLogger(__name__)

TOKEN_PREFIX = "v1:"
NONCE_SIZE = 12
KEY_SIZE = 32


class ContactProtector(Protocol):
    """Protects and reveals contact strings."""

    def protect(self, contact: str, owner_id: str) -> str:
        ...

    def reveal(self, stored: str, owner_id: str) -> str:
        ...


def generate_contact_key() -> str:
    """Generate a new base64-encoded 256-bit key."""
    return base64.b64encode(os.urandom(KEY_SIZE)).decode("ascii")


def is_protected(value: Optional[str]) -> bool:
    return isinstance(value, str) and value.startswith(TOKEN_PREFIX)


class AESGCMContactProtector:
    """AEAD contact protection using ``cryptography``'s AESGCM."""

    def __init__(self, key_b64: str):
        """Initialize with a base64 key.

        Args:
            key_b64: Base64-encoded 32-byte key

        Raises:
            ContactProtectionError: If the key is malformed or cryptography is missing
        """
        try:
            key = base64.b64decode(key_b64, validate=True)
        except (binascii.Error, ValueError, TypeError) as e:
            raise ContactProtectionError(f"Contact key is not valid base64: {e}") from e
        if len(key) != KEY_SIZE:
            raise ContactProtectionError(
                f"Contact key must be {KEY_SIZE} bytes, got {len(key)}"
            )
        try:
            from cryptography.hazmat.primitives.ciphers.aead import AESGCM
        except ImportError:
            raise ContactProtectionError(
                "cryptography package not installed. Install with: pip install cryptography"
            )
        self._aead = AESGCM(key)

    def protect(self, contact: str, owner_id: str) -> str:
        if not contact:
            return contact
        nonce = os.urandom(NONCE_SIZE)
        ciphertext = self._aead.encrypt(nonce, contact.encode("utf-8"), owner_id.encode("utf-8"))
        return TOKEN_PREFIX + base64.b64encode(nonce + ciphertext).decode("ascii")

    def reveal(self, stored: str, owner_id: str) -> str:
        if not stored:
            return stored
        if not is_protected(stored):
            logger.debug("Contact stored without protection; returning as-is")
            return stored
        from cryptography.exceptions import InvalidTag

        try:
            raw = base64.b64decode(stored[len(TOKEN_PREFIX):], validate=True)
        except (binascii.Error, ValueError) as e:
            raise ContactProtectionError(f"Malformed protected contact: {e}") from e
        if len(raw) <= NONCE_SIZE:
            raise ContactProtectionError("Malformed protected contact: too short")
        nonce, ciphertext = raw[:NONCE_SIZE], raw[NONCE_SIZE:]
        try:
            plain = self._aead.decrypt(nonce, ciphertext, owner_id.encode("utf-8"))
        except InvalidTag as e:
            raise ContactProtectionError("Protected contact failed authentication") from e
        return plain.decode("utf-8")


class PlaintextContactProtector:
    """Stores contacts as-is. For deployments without a contact key."""

    _warned = False

    def protect(self, contact: str, owner_id: str) -> str:
        if not PlaintextContactProtector._warned:
            logger.warning("No contact key configured; contacts are stored in plaintext")
            PlaintextContactProtector._warned = True
        return contact

    def reveal(self, stored: str, owner_id: str) -> str:
        if is_protected(stored):
            raise ContactProtectionError("Contact is protected but no contact key is configured")
        return stored


def protector_for_key(key_b64: Optional[str]) -> ContactProtector:
    """Pick the protector matching a configured key (or its absence)."""
    if key_b64:
        return AESGCMContactProtector(key_b64)
    return PlaintextContactProtector()
