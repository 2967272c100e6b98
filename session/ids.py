"""Session identifier generation."""

import re
import uuid

# Cookie values are client-supplied; only identifiers this module could
# have issued are bound to a request.
_SESSION_ID_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-4[0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$"
)

# Keys the file store accepts as file names.
_SAFE_KEY_PATTERN = re.compile(r"^[A-Za-z0-9-]{1,128}$")


def generate_session_id() -> str:
    """Return a new random (UUID4, 122 random bits) session identifier."""
    return str(uuid.uuid4())


def is_valid_session_id(value) -> bool:
    """Check that a value is a canonical UUID4 string as issued by generate_session_id."""
    return isinstance(value, str) and bool(_SESSION_ID_PATTERN.match(value))


def is_safe_session_key(value) -> bool:
    """Check that a store key cannot escape a directory or carry separators."""
    return isinstance(value, str) and bool(_SAFE_KEY_PATTERN.match(value))
