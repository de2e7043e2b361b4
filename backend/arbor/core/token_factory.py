"""Pure function for decoding bearer tokens issued by the identity provider.

Tokens are HS256 JWTs. Issuing them is the identity provider's job; this
module only verifies the signature and expiry and extracts the subject.
"""

import base64
import hashlib
import hmac
import json
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional


@dataclass(frozen=True)
class TokenPayload:
    """Decoded JWT payload. Immutable."""
    sub: str
    exp: datetime


def decode_token(token: str, secret: str, algorithm: str = "HS256") -> Optional[TokenPayload]:
    """Decode and validate a JWT.

    Returns ``None`` on any validation failure (bad signature, expired,
    malformed, unsupported algorithm) rather than raising.
    """
    if algorithm != "HS256":
        return None
    try:
        parts = token.encode().split(b".")
        if len(parts) != 3:
            return None

        header = json.loads(_b64decode(parts[0]))
        if header.get("alg") != "HS256":
            return None

        signing_input = parts[0] + b"." + parts[1]
        expected_sig = hmac.new(secret.encode(), signing_input, hashlib.sha256).digest()
        if not hmac.compare_digest(expected_sig, _b64decode(parts[2])):
            return None

        payload = json.loads(_b64decode(parts[1]))
        exp = payload.get("exp", 0)
        if time.time() > exp:
            return None

        subject = payload.get("sub", "")
        if not subject:
            return None

        return TokenPayload(sub=subject, exp=datetime.fromtimestamp(exp, tz=timezone.utc))
    except (json.JSONDecodeError, KeyError, ValueError, IndexError, TypeError, AttributeError):
        return None


def _b64decode(data: bytes) -> bytes:
    padding = 4 - len(data) % 4
    if padding != 4:
        data += b"=" * padding
    return base64.urlsafe_b64decode(data)
