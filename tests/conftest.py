from __future__ import annotations

import pytest

from toggles.core.codec import BoolValue, IntValue, ListValue, StrValue
from toggles.core.store.definition import ToggleDefinition
from .helpers.fakes import DummyLogger, FakeClock, MemoryPersistence


@pytest.fixture
def definitions():
    return [
        ToggleDefinition(key="dark_mode", codec=BoolValue(), default=False, description="New theme"),
        ToggleDefinition(key="max_items", codec=IntValue(minimum=1, maximum=100), default=10),
        ToggleDefinition(key="region", codec=StrValue(choices=["eu", "us"]), default="eu"),
        ToggleDefinition(key="admins", codec=ListValue(StrValue()), default=[]),
    ]


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def memory():
    return MemoryPersistence()


@pytest.fixture
def store(definitions, memory, clock):
    from toggles.core.store.manager import ToggleStore

    return ToggleStore(definitions, memory, logger=DummyLogger(), clock=clock)
