import asyncio

import pytest

from procurement.messaging import Message, MessageBus, MessageKind, new_reference


def msg(kind=MessageKind.PROPOSE, sender="a", receiver="b", **kwargs):
    return Message(kind=kind, sender=sender, receiver=receiver, **kwargs)


def test_send_to_unknown_party_is_dropped(caplog):
    bus = MessageBus()
    assert bus.send(msg(receiver="nobody")) is False
    assert "no party named 'nobody'" in caplog.text


def test_duplicate_registration():
    bus = MessageBus()
    bus.register("b")
    with pytest.raises(ValueError):
        bus.register("b")


def test_receive_filters_and_keeps_other_messages():
    bus = MessageBus()
    bus.register("b")
    bus.send(msg(kind=MessageKind.INFORM, conversation_id="x"))
    bus.send(msg(kind=MessageKind.PROPOSE, conversation_id="y", in_reply_to="req-1"))
    bus.send(msg(kind=MessageKind.PROPOSE, conversation_id="x", sender="c"))

    found = bus.receive("b", conversation_id="y", kinds=(MessageKind.PROPOSE,), in_reply_to="req-1")
    assert found.conversation_id == "y"
    assert bus.receive("b", kinds=(MessageKind.PROPOSE,), sender="a") is None
    assert bus.receive("b", sender="c").sender == "c"
    assert bus.pending("b") == 1


def test_receive_is_fifo():
    bus = MessageBus()
    bus.register("b")
    first, second = msg(payload=1), msg(payload=2)
    bus.send(first)
    bus.send(second)
    assert bus.receive("b") is first
    assert bus.receive("b") is second


def test_wait_for_returns_late_message():
    bus = MessageBus()
    bus.register("b")

    async def scenario():
        async def deliver():
            await asyncio.sleep(0.05)
            bus.send(msg(conversation_id="x"))

        asyncio.create_task(deliver())
        return await bus.wait_for("b", timeout=1.0, poll_interval=0.01, conversation_id="x")

    assert asyncio.run(scenario()).conversation_id == "x"


def test_wait_for_times_out():
    bus = MessageBus()
    bus.register("b")
    bus.send(msg(conversation_id="other"))
    result = asyncio.run(bus.wait_for("b", timeout=0.05, poll_interval=0.01, conversation_id="x"))
    assert result is None
    assert bus.pending("b") == 1


def test_new_reference():
    ref = new_reference("prop", "neg-s1-abc")
    assert ref.startswith("prop-neg-s1-abc-")
    assert ref != new_reference("prop", "neg-s1-abc")
