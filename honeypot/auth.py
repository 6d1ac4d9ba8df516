"""x-api-key authentication shared by every /api/v1 route.

Keys come from API_KEYS (comma separated) or the single API_KEY; the
health check stays open.
"""

import hmac
import logging
import os
from typing import FrozenSet, Optional

from dotenv import load_dotenv
from fastapi import HTTPException, Security, status
from fastapi.security import APIKeyHeader

load_dotenv()

logger = logging.getLogger(__name__)

API_KEY_HEADER_NAME = "x-api-key"
DEFAULT_DEV_KEY = "dev-api-key-12345"

api_key_header = APIKeyHeader(name=API_KEY_HEADER_NAME, auto_error=False)


def load_api_keys() -> FrozenSet[str]:
    raw = os.getenv("API_KEYS") or os.getenv("API_KEY", DEFAULT_DEV_KEY)
    return frozenset(key.strip() for key in raw.split(",") if key.strip())


VALID_API_KEYS: FrozenSet[str] = load_api_keys()


def is_valid_key(candidate: str) -> bool:
    # compare_digest on every configured key, no early exit on a match
    matched = False
    for key in VALID_API_KEYS:
        if hmac.compare_digest(candidate.encode(), key.encode()):
            matched = True
    return matched


async def verify_api_key(api_key: Optional[str] = Security(api_key_header)) -> str:
    if not api_key:
        logger.warning("401 | request without x-api-key header")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Missing API key. Provide the '{API_KEY_HEADER_NAME}' header.",
        )
    if not is_valid_key(api_key):
        logger.warning(f"401 | rejected api key ending ...{api_key[-4:]}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid API key.",
        )
    return api_key
