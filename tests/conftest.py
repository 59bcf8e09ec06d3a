import os
from datetime import datetime

import pytest

from engine import CalculatorEngine
from history import History

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")


def fixed_clock():
    return datetime(2025, 9, 17, 14, 32, 8)


@pytest.fixture
def calc():
    return CalculatorEngine(History(), clock=fixed_clock)


def press(calc, *keys):
    for key in keys:
        calc.handle_key(key)
    return calc
