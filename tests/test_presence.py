import pytest


@pytest.mark.anyio
async def test_typing_reaches_other_members_only(hub, connect) -> None:
    c1, t1 = connect("alice")
    c2, t2 = connect("bob")
    c3, t3 = connect("carol")
    hub.rooms.join(c1, "chat42")
    hub.rooms.join(c2, "chat42")

    sent = await hub.presence.notify_typing("chat42", c1)

    assert sent == 1
    assert t1.sent == []
    assert t2.sent == [{"event": "typing", "data": "chat42"}]
    assert t3.sent == []


@pytest.mark.anyio
async def test_stop_typing_skips_originator(hub, connect) -> None:
    c1, t1 = connect("alice")
    c2, t2 = connect("bob")
    hub.rooms.join(c1, "chat42")
    hub.rooms.join(c2, "chat42")

    await hub.presence.notify_stop_typing("chat42", c2)

    assert t1.events() == ["stop typing"]
    assert t2.sent == []


@pytest.mark.anyio
async def test_typing_in_unknown_room_sends_nothing(hub, connect) -> None:
    c1, t1 = connect("alice")

    assert await hub.presence.notify_typing("empty", c1) == 0
    assert t1.sent == []
