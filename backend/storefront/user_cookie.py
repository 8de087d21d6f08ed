# Overview: Codec for the cached-user cookie shared by the API and the client SDK.

from __future__ import annotations

import base64
import json
import logging
from typing import Dict, Optional

logger = logging.getLogger(__name__)


def encode_user_cookie(user: Dict) -> str:
    """Compact JSON, base64 encoded, so the value is cookie-safe."""
    raw = json.dumps(user, separators=(",", ":"), ensure_ascii=False)
    return base64.b64encode(raw.encode("utf-8")).decode("ascii")


def decode_user_cookie(value: str) -> Optional[Dict]:
    """Decode the base64 JSON cookie payload. Returns None if it is unreadable."""
    if not value:
        return None
    try:
        raw = base64.b64decode(value.strip('"'))
        data = json.loads(raw.decode("utf-8"))
    except (ValueError, UnicodeDecodeError) as e:
        logger.warning("Failed to decode cached user cookie: %s", e)
        return None
    return data if isinstance(data, dict) else None
