"""Booking reference allocation.

References look like ``TS001``. Nothing is reserved here: the code is
derived from what is stored, and the INSERT decides whether it was free.
The create path calls ``allocate_reference`` again with a higher attempt
number when the INSERT hits the unique index.
"""

from __future__ import annotations

import logging
import random
import re
from typing import Optional

from django.conf import settings  # type: ignore
from django.utils import timezone  # type: ignore

from .models import Booking

logger = logging.getLogger(__name__)


class ReferenceCollision(Exception):
    """The INSERT lost a race for a reference; allocate again."""

    def __init__(self, reference: str):
        self.reference = reference
        super().__init__(f"Booking reference {reference} already taken")


def _prefix() -> str:
    return settings.BOOKING_REFERENCE_PREFIX


def _max_sequence() -> int:
    return settings.BOOKING_REFERENCE_MAX_SEQUENCE


def _pattern() -> re.Pattern:
    return re.compile(rf"^{re.escape(_prefix())}(\d{{3}})$")


def format_reference(sequence: int) -> str:
    return f"{_prefix()}{sequence:03d}"


def used_sequences() -> set[int]:
    """Sequence numbers of all stored references in the ``TS###`` form."""

    pattern = _pattern()
    refs = Booking.objects.filter(booking_ref__startswith=_prefix()).values_list("booking_ref", flat=True)
    sequences = set()
    for ref in refs:
        match = pattern.match(ref)
        if match:
            sequences.add(int(match.group(1)))
    return sequences


def next_sequential_reference() -> Optional[str]:
    """Highest stored sequence plus one, or ``None`` past the last slot."""

    sequences = used_sequences()
    candidate = max(sequences, default=0) + 1
    if candidate > _max_sequence():
        return None
    return format_reference(candidate)


def lowest_free_reference() -> Optional[str]:
    """Lowest unused sequence in ``[1, max]``, or ``None`` when all are taken."""

    sequences = used_sequences()
    for candidate in range(1, _max_sequence() + 1):
        if candidate not in sequences:
            return format_reference(candidate)
    return None


def fallback_reference() -> str:
    """``TS`` + YYMMDD + three random digits, used once all slots are taken."""

    stamp = timezone.localdate().strftime("%y%m%d")
    return f"{_prefix()}{stamp}{random.randint(0, 999):03d}"


def allocate_reference(retry_attempt: int = 0) -> str:
    """Pick a reference for a new booking.

    The first attempt extends the sequence. Retries, which follow a unique
    violation caused by a concurrent writer, scan for the lowest gap.
    """

    reference = None
    if retry_attempt == 0:
        reference = next_sequential_reference()
    if reference is None:
        reference = lowest_free_reference()
    if reference is None:
        reference = fallback_reference()
        logger.warning("Booking reference sequence exhausted, using fallback %s", reference)

    logger.debug("Allocated booking reference %s (attempt %d)", reference, retry_attempt)
    return reference
