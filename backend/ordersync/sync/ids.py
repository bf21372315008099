"""Persisted and temporary line item identifiers."""

import itertools
import re
import time
from typing import Callable, Optional
from uuid import uuid4

# Canonical UUID text form assigned by the server.
PERSISTED_ID_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$",
    re.IGNORECASE,
)
TEMP_ID_PREFIX = "tmp-"


def is_persisted_id(value: Optional[str]) -> bool:
    """True only for server-assigned identifiers."""
    return bool(value) and PERSISTED_ID_PATTERN.match(value) is not None


def is_temp_id(value: Optional[str]) -> bool:
    return bool(value) and value.startswith(TEMP_ID_PREFIX)


class TempIdGenerator:
    """
    Produces placeholder IDs for items the server has not persisted yet.

    The prefix keeps every generated ID outside PERSISTED_ID_PATTERN. Random
    mode appends a uuid4; counter mode appends epoch milliseconds plus a
    monotonically increasing counter, which is deterministic enough for tests.
    """

    def __init__(self, use_random: bool = True, clock: Callable[[], float] = time.time):
        self.use_random = use_random
        self._clock = clock
        self._counter = itertools.count(1)

    def next_id(self) -> str:
        if self.use_random:
            return f"{TEMP_ID_PREFIX}{uuid4()}"
        return f"{TEMP_ID_PREFIX}{int(self._clock() * 1000)}-{next(self._counter)}"

    __call__ = next_id


next_temp_id = TempIdGenerator()
