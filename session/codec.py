"""
Symmetric encode/decode of session records.

Records are serialized to canonical JSON and sealed with Fernet, which
provides AES-CBC encryption plus an HMAC-SHA256 integrity check. The IV and
timestamp live inside the Fernet token, so decoding needs only the secret.
"""

import base64
import json
from typing import Any

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes

from errors.exceptions import EncodeError, session_decode_failed, session_not_configured


def derive_fernet_key(secret: str) -> bytes:
    """
    Derive a Fernet key from an arbitrary-length secret.

    Fernet requires exactly 32 bytes, urlsafe-base64 encoded. The secret
    is hashed with SHA-256 to get there.

    Args:
        secret: The configured session secret.

    Returns:
        A urlsafe-base64 encoded 32-byte key.
    """
    digest = hashes.Hash(hashes.SHA256())
    digest.update(secret.encode("utf-8"))
    return base64.urlsafe_b64encode(digest.finalize())


class SessionCodec:
    """
    Converts session records to and from opaque ciphertext strings.

    Example:
        codec = SessionCodec("k1")
        token = codec.encode({"flash": "hi"})
        assert codec.decode(token) == {"flash": "hi"}
    """

    def __init__(self, secret: str):
        if not secret:
            raise session_not_configured("Cannot build a session codec without a secret")
        self._fernet = Fernet(derive_fernet_key(secret))

    def encode(self, record: dict[str, Any]) -> str:
        """
        Serialize and encrypt a session record.

        Raises:
            EncodeError: If the record holds values JSON cannot represent.
        """
        try:
            plaintext = json.dumps(record, sort_keys=True, separators=(",", ":"))
        except (TypeError, ValueError) as e:
            raise EncodeError(
                "Session data is not JSON serializable",
                details={"error": str(e)}
            ) from e
        return self._fernet.encrypt(plaintext.encode("utf-8")).decode("ascii")

    def decode(self, ciphertext: str) -> dict[str, Any]:
        """
        Decrypt and deserialize a session record.

        Raises:
            DecodeError: If the token is malformed, fails its integrity
                check, or does not hold a JSON object.
        """
        if not isinstance(ciphertext, str) or not ciphertext:
            raise session_decode_failed("Session payload is empty")
        try:
            plaintext = self._fernet.decrypt(ciphertext.encode("ascii"))
        except (InvalidToken, UnicodeEncodeError) as e:
            raise session_decode_failed("Session payload failed the integrity check") from e

        try:
            record = json.loads(plaintext.decode("utf-8"))
        except (UnicodeDecodeError, ValueError) as e:
            raise session_decode_failed("Session payload is not valid JSON") from e

        if not isinstance(record, dict):
            raise session_decode_failed(
                "Session payload is not an object",
                details={"type": type(record).__name__}
            )
        return record
