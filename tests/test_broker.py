"""Tests for the local and Redis delivery brokers."""

import asyncio
import json
import logging
from unittest.mock import AsyncMock, MagicMock

from workpulse.config import Settings
from workpulse.services.broker import CHANNEL_PREFIX, LocalBroker, RedisBroker, build_broker


class TestLocalBroker:
    async def test_publish_calls_handler(self) -> None:
        broker = LocalBroker()
        handler = AsyncMock(return_value="report")
        broker.set_handler(handler)

        assert await broker.publish("u1", {"message": "m"}) == "report"
        handler.assert_awaited_once_with("u1", {"message": "m"})

    async def test_publish_without_handler_drops(self) -> None:
        assert await LocalBroker().publish("u1", {}) is None


class TestRedisBroker:
    async def test_publish_uses_user_channel(self) -> None:
        client = MagicMock()
        client.publish = AsyncMock(return_value=2)
        broker = RedisBroker("redis://localhost:6379", client=client)

        assert await broker.publish("u1", {"id": 5, "message": "m"}) == 2

        channel, data = client.publish.await_args.args
        assert channel == f"{CHANNEL_PREFIX}u1"
        assert json.loads(data) == {"id": 5, "message": "m"}

    async def test_dispatch_decodes_and_calls_handler(self) -> None:
        broker = RedisBroker("redis://localhost:6379", client=MagicMock())
        handler = AsyncMock()
        broker.set_handler(handler)

        await broker.dispatch(f"{CHANNEL_PREFIX}u7".encode(), json.dumps({"message": "m"}).encode())

        handler.assert_awaited_once_with("u7", {"message": "m"})

    async def test_dispatch_survives_handler_error(self) -> None:
        broker = RedisBroker("redis://localhost:6379", client=MagicMock())
        broker.set_handler(AsyncMock(side_effect=RuntimeError("boom")))

        await broker.dispatch(f"{CHANNEL_PREFIX}u1", '{"message": "m"}')

    async def test_dispatch_discards_malformed_payload(self) -> None:
        broker = RedisBroker("redis://localhost:6379", client=MagicMock())
        handler = AsyncMock()
        broker.set_handler(handler)

        await broker.dispatch(f"{CHANNEL_PREFIX}u1", b"not json")

        handler.assert_not_awaited()

    async def test_start_subscribes_and_stop_closes(self) -> None:
        pubsub = MagicMock()
        pubsub.psubscribe = AsyncMock()
        pubsub.punsubscribe = AsyncMock()
        pubsub.aclose = AsyncMock()

        async def _no_messages():
            return
            yield

        pubsub.listen = _no_messages
        client = MagicMock()
        client.ping = AsyncMock()
        client.pubsub = MagicMock(return_value=pubsub)
        client.aclose = AsyncMock()
        broker = RedisBroker("redis://localhost:6379", client=client)

        await broker.start()
        pubsub.psubscribe.assert_awaited_once_with(f"{CHANNEL_PREFIX}*")
        await broker.stop()

        pubsub.aclose.assert_awaited_once()
        client.aclose.assert_awaited_once()


    async def test_listener_logs_connection_loss_and_resumes(self, caplog) -> None:
        attempts = 0

        async def flaky_listen():
            nonlocal attempts
            attempts += 1
            if attempts == 1:
                yield {"type": "psubscribe", "channel": f"{CHANNEL_PREFIX}*".encode(), "data": 1}
                raise ConnectionError("redis connection lost")
            yield {"type": "pmessage", "channel": f"{CHANNEL_PREFIX}u1".encode(), "data": b'{"message": "m"}'}

        pubsub = MagicMock()
        pubsub.psubscribe = AsyncMock()
        pubsub.punsubscribe = AsyncMock()
        pubsub.aclose = AsyncMock()
        pubsub.listen = flaky_listen
        client = MagicMock()
        client.ping = AsyncMock()
        client.pubsub = MagicMock(return_value=pubsub)
        client.aclose = AsyncMock()
        broker = RedisBroker("redis://localhost:6379", client=client, reconnect_delay=0)
        handler = AsyncMock()
        broker.set_handler(handler)

        with caplog.at_level(logging.ERROR, logger="workpulse.services.broker"):
            await broker.start()
            await asyncio.wait_for(broker._listener, timeout=1)

        assert attempts == 2
        assert "redis connection lost" in caplog.text
        handler.assert_awaited_once_with("u1", {"message": "m"})
        await broker.stop()

    async def test_stop_tolerates_failed_listener(self) -> None:
        async def crashed():
            raise ConnectionError("redis connection lost")

        client = MagicMock()
        client.aclose = AsyncMock()
        broker = RedisBroker("redis://localhost:6379", client=client)
        broker._listener = asyncio.create_task(crashed())
        await asyncio.sleep(0)

        await broker.stop()

        assert broker._listener is None
        client.aclose.assert_awaited_once()


class TestBuildBroker:
    def test_local_without_redis_url(self) -> None:
        assert isinstance(build_broker(Settings(REDIS_URL="")), LocalBroker)

    def test_redis_with_url(self) -> None:
        assert isinstance(build_broker(Settings(REDIS_URL="redis://cache:6379/0")), RedisBroker)
