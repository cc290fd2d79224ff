"""
Unit tests for AsyncStitchClient.
"""

import asyncio

import pytest

from stitch_client import AsyncStitchClient, ClientClosed, StitchRejected


class AsyncCollector:
    def __init__(self):
        self.ok = []
        self.errors = []

    async def handle_ok(self, record, response):
        await asyncio.sleep(0)
        self.ok.append(record)

    async def handle_error(self, record, error):
        await asyncio.sleep(0)
        self.errors.append((record, error))


@pytest.mark.asyncio
async def test_aclose_flushes_pending(mock_config, async_transport_factory):
    transport = async_transport_factory()
    handler = AsyncCollector()
    async with AsyncStitchClient(mock_config, transport=transport) as stitch:
        for i in range(3):
            await stitch.put({"id": i}, handler)

    assert len(transport.batches) == 1
    assert [r["id"] for r in transport.batches[0]] == [0, 1, 2]
    assert [r["id"] for r in handler.ok] == [0, 1, 2]
    assert all(r["client_id"] == 4321 for r in transport.records)
    assert transport.closed is False


@pytest.mark.asyncio
async def test_record_threshold(mock_config, async_transport_factory):
    transport = async_transport_factory()
    async with AsyncStitchClient({**mock_config, "max_batch_records": 2}, transport=transport) as stitch:
        for i in range(5):
            await stitch.put({"id": i})

    assert [len(b) for b in transport.batches] == [2, 2, 1]


@pytest.mark.asyncio
async def test_sync_handlers_work_too(mock_config, async_transport_factory, collector):
    transport = async_transport_factory(status=500)
    async with AsyncStitchClient(mock_config, transport=transport) as stitch:
        await stitch.put({"id": 1}, collector)
        await stitch.put({"id": 2}, collector)

    assert collector.ok == []
    assert len(collector.errors) == 2
    assert collector.errors[0][1] is collector.errors[1][1]


@pytest.mark.asyncio
async def test_offer_when_full(mock_config, async_transport_factory):
    transport = async_transport_factory()
    stitch = AsyncStitchClient({**mock_config, "queue_capacity": 2}, transport=transport)
    # worker task is created but has not run yet, so nothing is consumed
    assert await stitch.offer({"id": 1})
    assert await stitch.offer({"id": 2})
    assert await stitch.offer({"id": 3}) is False

    await stitch.aclose()
    assert [r["id"] for r in transport.records] == [1, 2]


@pytest.mark.asyncio
async def test_timed_offer_waits_for_space(mock_config, async_transport_factory):
    transport = async_transport_factory()
    stitch = AsyncStitchClient({**mock_config, "queue_capacity": 1}, transport=transport)
    assert await stitch.offer({"id": 1})
    assert await stitch.offer({"id": 2}, timeout=1.0)
    await stitch.aclose()
    assert [r["id"] for r in transport.records] == [1, 2]


@pytest.mark.asyncio
async def test_aclose_idempotent_and_blocks_enqueue(mock_config, async_transport_factory):
    transport = async_transport_factory()
    stitch = AsyncStitchClient(mock_config, transport=transport)
    await stitch.put({"id": 1})
    await stitch.aclose()
    await stitch.aclose()
    assert len(transport.batches) == 1

    with pytest.raises(ClientClosed):
        await stitch.put({"id": 2})
    with pytest.raises(ClientClosed):
        await stitch.offer({"id": 2})


@pytest.mark.asyncio
async def test_abort_drops_pending(mock_config, async_transport_factory):
    transport = async_transport_factory()
    stitch = AsyncStitchClient(mock_config, transport=transport)
    await stitch.put({"id": 1})
    await asyncio.sleep(0.01)
    stitch.abort()
    await stitch.aclose()
    assert transport.batches == []


@pytest.mark.asyncio
async def test_push(mock_config, async_transport_factory):
    transport = async_transport_factory()
    stitch = AsyncStitchClient(mock_config, transport=transport)
    record = {"id": 1}
    response = await stitch.push(record)
    assert response.status == 200
    assert record == {"id": 1}
    assert transport.records[0]["namespace"] == "test_ns"
    await stitch.aclose()


@pytest.mark.asyncio
async def test_push_rejected(mock_config, async_transport_factory):
    transport = async_transport_factory(status=400)
    stitch = AsyncStitchClient(mock_config, transport=transport)
    with pytest.raises(StitchRejected):
        await stitch.push([{"id": 1}, {"id": 2}])
    await stitch.aclose()


@pytest.mark.asyncio
async def test_aclose_closes_owned_transport_when_worker_fails(mock_config, monkeypatch):
    stitch = AsyncStitchClient(mock_config)

    async def boom(items):
        raise RuntimeError("boom")

    monkeypatch.setattr(stitch._delivery, "flush", boom)
    await stitch.put({"id": 1})

    with pytest.raises(RuntimeError):
        await stitch.aclose()
    assert stitch._transport._client.is_closed
