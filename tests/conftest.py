import pytest

from chatrelay.bot import BotBuilder
from chatrelay.store import MemoryStore
from tests.fakes import FakePlatform


@pytest.fixture
def fake_platform() -> FakePlatform:
    return FakePlatform()


@pytest.fixture
def builder() -> BotBuilder:
    return BotBuilder(store=MemoryStore(), ack_timeout=1.0)
