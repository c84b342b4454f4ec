from pathlib import Path
import sys
from typing import Any

import pytest

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))


@pytest.fixture
def anyio_backend():
    return "asyncio"


class FakeClock:
    """Manually advanced clock with a matching async sleep."""

    def __init__(self, start: float = 1000.0):
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class FakeSubscriber:
    def __init__(self, subscriber_id: str = "sub-1", fail: bool = False):
        self.id = subscriber_id
        self.fail = fail
        self.messages: list[tuple[str, dict[str, Any]]] = []

    async def send(self, event: str, payload: dict[str, Any]) -> None:
        if self.fail:
            raise ConnectionError("connection gone")
        self.messages.append((event, payload))

    def events(self, event: str) -> list[dict[str, Any]]:
        return [payload for name, payload in self.messages if name == event]


@pytest.fixture
def fake_clock():
    return FakeClock()
