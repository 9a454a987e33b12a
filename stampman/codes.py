"""
Short redemption codes.

generate_code() only draws random characters. Uniqueness belongs to the
caller: create_with_unique_code() pre-checks each candidate and lets the
database unique constraint settle races between concurrent inserts.

Usage:
    stamp = create_with_unique_code(
        create=lambda code: Stamp.objects.create(code=code, ...),
        exists=lambda code: Stamp.objects.filter(code=code, status__in=LIVE).exists(),
        length=6,
        alphabet=DIGITS,
        leading=NONZERO_DIGITS,
    )
"""

import logging
import secrets
import string
from collections.abc import Callable
from typing import TypeVar

from django.db import IntegrityError, transaction

from stampman.conf import stampman_settings
from stampman.exceptions import StampmanError

logger = logging.getLogger(__name__)

T = TypeVar("T")

DIGITS = string.digits
NONZERO_DIGITS = DIGITS[1:]
BASE36 = string.ascii_uppercase + string.digits


def generate_code(length: int, alphabet: str, leading: str | None = None) -> str:
    """
    Uniformly random code of ``length`` characters drawn from ``alphabet``.

    ``leading`` restricts the first character, e.g. NONZERO_DIGITS keeps a
    numeric code from starting with 0.
    """
    if length <= 0:
        raise ValueError("length must be positive")
    if not alphabet or leading == "":
        raise ValueError("alphabet must not be empty")
    first = secrets.choice(leading or alphabet)
    return first + "".join(secrets.choice(alphabet) for _ in range(length - 1))


def create_with_unique_code(
    create: Callable[[str], T],
    exists: Callable[[str], bool],
    length: int,
    alphabet: str,
    max_attempts: int | None = None,
    leading: str | None = None,
) -> T:
    """
    Generate codes until ``create(code)`` succeeds.

    Each attempt draws a code, skips it if ``exists(code)`` and otherwise
    runs ``create(code)`` inside a savepoint. An IntegrityError on a code
    that now exists means a concurrent insert won the race, so the loop
    tries again. Any other IntegrityError is re-raised.

    Args:
        create: Inserts the row for a code and returns it
        exists: Whether a code is currently taken
        length: Code length
        alphabet: Allowed characters
        leading: Allowed first characters (default ``alphabet``)
        max_attempts: Retry cap (default CODE_MAX_ATTEMPTS)

    Returns:
        Whatever ``create`` returned

    Raises:
        StampmanError: CODE_CONFLICT if the last attempt lost an insert race,
            CODE_SPACE_EXHAUSTED if every candidate was already taken
    """
    if max_attempts is None:
        max_attempts = stampman_settings.CODE_MAX_ATTEMPTS

    lost_race = False
    for attempt in range(1, max_attempts + 1):
        code = generate_code(length, alphabet, leading)

        if exists(code):
            logger.debug("Code collision on pre-check (attempt %d/%d)", attempt, max_attempts)
            lost_race = False
            continue

        try:
            with transaction.atomic():
                return create(code)
        except IntegrityError:
            if not exists(code):
                raise
            lost_race = True
            logger.warning(
                "Code taken by a concurrent insert (attempt %d/%d), retrying",
                attempt,
                max_attempts,
            )

    if lost_race:
        raise StampmanError("CODE_CONFLICT", attempts=max_attempts)
    raise StampmanError("CODE_SPACE_EXHAUSTED", attempts=max_attempts, length=length)
