"""Gateway token generation and storage"""

import re
import secrets
from pathlib import Path
from typing import Optional, Tuple

from clawdeploy.errors import TokenError
from clawdeploy.logging_conf import get_logger

from .shell import write_private_file

logger = get_logger(__name__)

TOKEN_BYTES = 32
PLACEHOLDER_TOKEN = "REPLACE_WITH_YOUR_TOKEN"

_TOKEN_RE = re.compile(r"[0-9a-f]{64}")


def generate_token() -> str:
    """Return 32 random bytes as 64 lowercase hex characters"""
    return secrets.token_hex(TOKEN_BYTES)


def is_valid_token(value: Optional[str]) -> bool:
    return bool(value) and _TOKEN_RE.fullmatch(value) is not None


def write_token(path: Path, token: str) -> None:
    """Persist the token readable by the owner only"""
    write_private_file(path, token + "\n")


def read_token(path: Path) -> Optional[str]:
    if not path.exists():
        return None
    return path.read_text().strip()


def ensure_token(path: Path, rotate: bool = False) -> Tuple[str, bool]:
    """Return (token, created).

    An existing valid token is kept so clients already holding it keep
    working; pass rotate=True to replace it.
    """
    existing = read_token(path)

    if existing is not None and not rotate:
        if not is_valid_token(existing):
            raise TokenError(
                f"{path} does not contain a valid token; rerun with --rotate-token to replace it"
            )
        logger.debug("reusing gateway token from %s", path)
        return existing, False

    token = generate_token()
    write_token(path, token)
    logger.debug("wrote new gateway token to %s", path)
    return token, True
