from __future__ import annotations

import random
import sys
from pathlib import Path

import pytest

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from scheduler_logic import Worker  # noqa: E402


@pytest.fixture
def rng() -> random.Random:
    return random.Random(1234)


@pytest.fixture
def make_worker():
    """Factory for workers with sensible defaults; order_index follows creation order."""
    counter = {"n": 0}

    def _make(name: str, **kwargs) -> Worker:
        kwargs.setdefault("order_index", counter["n"])
        counter["n"] += 1
        return Worker(name=name, **kwargs)

    return _make
