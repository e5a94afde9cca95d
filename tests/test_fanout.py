"""Broadcast fanout tests."""

import asyncio
import logging

from support_chat.domains.chat.fanout import (
    ADMIN_CHANNEL,
    NEW_CHAT_EVENT,
    NEW_MESSAGE_EVENT,
    BroadcastFanout,
    get_chat_channel,
)


async def test_publish_does_not_wait_for_delivery(fanout, transport):
    fanout.publish("c1", NEW_MESSAGE_EVENT, {"chat_id": "c1"})

    assert fanout.pending == 1
    assert transport.events == []

    await fanout.drain()
    assert fanout.pending == 0
    assert transport.events == [("chat:c1", NEW_MESSAGE_EVENT, {"chat_id": "c1"})]


async def test_same_channel_keeps_publish_order(fanout, transport):
    transport.delays["c1"] = 0.05

    fanout.publish("c1", NEW_MESSAGE_EVENT, {"chat_id": "c1", "seq": 1})
    fanout.publish("c1", NEW_MESSAGE_EVENT, {"chat_id": "c1", "seq": 2})
    fanout.publish("c1", NEW_MESSAGE_EVENT, {"chat_id": "c1", "seq": 3})
    await fanout.drain()

    assert [p["seq"] for p in transport.on("chat:c1")] == [1, 2, 3]


async def test_channels_do_not_block_each_other(fanout, transport):
    transport.delays["slow"] = 0.05

    fanout.publish("slow", NEW_MESSAGE_EVENT, {"chat_id": "slow"})
    fanout.publish("fast", NEW_MESSAGE_EVENT, {"chat_id": "fast"})
    await fanout.drain()

    assert [channel for channel, _, _ in transport.events] == ["chat:fast", "chat:slow"]


async def test_new_session_reaches_chat_and_staff(fanout, transport):
    fanout.publish_new_session("c1", {"chat_id": "c1"})
    await fanout.drain()

    assert transport.on(get_chat_channel("c1"), NEW_CHAT_EVENT) == [{"chat_id": "c1"}]
    assert transport.on(ADMIN_CHANNEL, NEW_CHAT_EVENT) == [{"chat_id": "c1"}]


async def test_delivery_failure_is_logged_and_swallowed(transport, caplog):
    transport.fail = True
    fanout = BroadcastFanout(transport)

    with caplog.at_level(logging.ERROR, logger="support_chat.domains.chat.fanout"):
        fanout.publish("c1", NEW_MESSAGE_EVENT, {"chat_id": "c1"})
        fanout.publish("c1", NEW_MESSAGE_EVENT, {"chat_id": "c1"})
        await fanout.drain()

    assert fanout.pending == 0
    failures = [r for r in caplog.records if "Failed to publish" in r.getMessage()]
    assert len(failures) == 2


async def test_failure_does_not_block_later_deliveries(fanout, transport):
    transport.fail = True
    fanout.publish("c1", NEW_MESSAGE_EVENT, {"chat_id": "c1", "seq": 1})
    await fanout.drain()

    transport.fail = False
    fanout.publish("c1", NEW_MESSAGE_EVENT, {"chat_id": "c1", "seq": 2})
    await fanout.drain()

    assert [p["seq"] for p in transport.on("chat:c1")] == [2]


async def test_deferred_payload_keeps_its_slot(fanout, transport):
    async def slow_payload():
        await asyncio.sleep(0.05)
        return {"chat_id": "c1", "seq": 1}

    fanout.publish("c1", NEW_MESSAGE_EVENT, slow_payload)
    fanout.publish("c1", NEW_MESSAGE_EVENT, {"chat_id": "c1", "seq": 2})
    await fanout.drain()

    assert [p["seq"] for p in transport.on("chat:c1")] == [1, 2]


async def test_failing_payload_builder_is_logged(fanout, transport, caplog):
    async def broken_payload():
        raise LookupError("user store unavailable")

    with caplog.at_level(logging.ERROR, logger="support_chat.domains.chat.fanout"):
        fanout.publish("c1", NEW_MESSAGE_EVENT, broken_payload)
        fanout.publish("c1", NEW_MESSAGE_EVENT, {"chat_id": "c1", "seq": 2})
        await fanout.drain()

    assert [p["seq"] for p in transport.on("chat:c1")] == [2]
    assert any("Failed to publish" in r.getMessage() for r in caplog.records)
