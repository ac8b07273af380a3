from __future__ import annotations

import logging
import re
import secrets
import string
from typing import TYPE_CHECKING

from shortener.errors import ExhaustedError

if TYPE_CHECKING:
    from shortener.store.base import LinkStore

logger = logging.getLogger(__name__)

# Base62: A-Z a-z 0-9
BASE62_ALPHABET = string.ascii_letters + string.digits
SHORTCODE_PATTERN = re.compile(r"[A-Za-z0-9]{4,12}")

DEFAULT_CODE_LENGTH = 6
MAX_GENERATION_ATTEMPTS = 10


def generate_random(length: int = DEFAULT_CODE_LENGTH) -> str:
    return "".join(secrets.choice(BASE62_ALPHABET) for _ in range(length))


def generate_unique(
    store: LinkStore,
    length: int = DEFAULT_CODE_LENGTH,
    max_attempts: int = MAX_GENERATION_ATTEMPTS,
) -> str:
    """
    Draws random codes until one is not present in ``store``.

    The check is advisory: another caller may take the same code before it
    is inserted, so the store's unique insert still has the final word.
    """
    for attempt in range(1, max_attempts + 1):
        code = generate_random(length)
        if not store.exists(code):
            return code
        logger.info("Generated shortcode already exists, retrying (attempt %d)", attempt)

    logger.error("Failed to generate unique shortcode after %d attempts", max_attempts)
    raise ExhaustedError()


def validate_format(code: object) -> bool:
    return isinstance(code, str) and SHORTCODE_PATTERN.fullmatch(code) is not None
