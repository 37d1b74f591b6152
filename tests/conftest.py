from __future__ import annotations

from decimal import Decimal
from typing import List, Sequence

import pytest

from tradejournal.config import JournalSettings
from tradejournal.data.models import Bar

HOUR_MS = 3_600_000
# 2023-11-14 22:00:00 UTC, aligned to the hour.
BASE_TIME = 1_699_999_200_000


def make_bars(closes: Sequence, start: int = BASE_TIME, step: int = HOUR_MS) -> List[Bar]:
    """Build bars whose high/low sit one unit above/below the close."""
    bars = []
    for i, close in enumerate(closes):
        c = Decimal(str(close))
        bars.append(Bar(start + i * step, c, c + 1, c - 1, c, Decimal("10")))
    return bars


@pytest.fixture
def settings() -> JournalSettings:
    """Settings with defaults only, ignoring any local .env file."""
    return JournalSettings(_env_file=None)
