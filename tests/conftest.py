import json

import pytest

from relay.hub import RelayHub


class DummyTransport:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.sent: list[dict] = []

    async def send_text(self, data: str) -> None:
        if self.fail:
            raise RuntimeError("socket closed")
        self.sent.append(json.loads(data))

    def events(self) -> list[str]:
        return [frame["event"] for frame in self.sent]

    def of(self, event: str) -> list[dict]:
        return [frame for frame in self.sent if frame["event"] == event]


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def hub() -> RelayHub:
    return RelayHub()


@pytest.fixture
def connect(hub):
    """Open a connection on the hub, optionally set up as a user, and return (connection_id, transport)."""

    def _connect(user_id=None, connection_id=None, fail=False):
        transport = DummyTransport(fail=fail)
        cid = hub.connect(transport, connection_id)
        if user_id is not None:
            hub.registry.on_setup(cid, user_id)
        return cid, transport

    return _connect
