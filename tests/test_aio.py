# pyright: reportUnknownParameterType=false, reportUnknownMemberType=false
# pyright: reportMissingParameterType=false
import asyncio
from concurrent.futures import Future

import pytest
from doubles import BlockingTransport, CapturingTransport, Item

from asyncrest.aio import AioRestClient, AioRestJsonClient, to_awaitable
from asyncrest.errors import DeserializationError, TransportError

URL = "https://api.test/items"


@pytest.mark.asyncio
async def test_to_awaitable_resolves_with_future_value():
    future: Future[int] = Future()
    awaitable = to_awaitable(future)

    future.set_result(42)

    assert await awaitable == 42


@pytest.mark.asyncio
async def test_to_awaitable_propagates_exception():
    future: Future[int] = Future()
    awaitable = to_awaitable(future)

    future.set_exception(TransportError("down"))

    with pytest.raises(TransportError):
        await awaitable


@pytest.mark.asyncio
async def test_cancelling_awaitable_cancels_future():
    future: Future[int] = Future()
    awaitable = to_awaitable(future)

    awaitable.cancel()
    await asyncio.sleep(0)

    assert future.cancelled()


@pytest.mark.asyncio
async def test_aio_client_returns_same_responses():
    transport = CapturingTransport(body=b"pong")
    async with AioRestClient(transport=transport) as client:
        client.add_header("X-Test", "1")
        head = await client.head(URL)
        got = await client.get(URL)
        posted = await client.post(URL, "ping")
        put = await client.put(URL, "ping")
        patched = await client.patch(URL, "ping")
        deleted = await client.delete(URL, headers={"X-Test": "2"})

    assert head.status_code == 200
    assert [r.body for r in (got, posted, put, patched, deleted)] == [
        "pong"
    ] * 5
    assert [r.method for r in transport.requests] == [
        "HEAD",
        "GET",
        "POST",
        "PUT",
        "PATCH",
        "DELETE",
    ]
    assert transport.requests[0].headers["X-Test"] == "1"
    assert transport.requests[-1].headers["X-Test"] == "2"


@pytest.mark.asyncio
async def test_aio_json_client_maps_bodies(tmp_path):
    transport = CapturingTransport(
        status_code=201, body=b'{"id":1,"name":"widget"}'
    )
    async with AioRestJsonClient(transport=transport) as client:
        created = await client.post(URL, Item, Item(id=1))
        fetched = await client.get(URL, Item)
        replaced = await client.put(URL, Item, '{"id":1}')
        patched = await client.patch(URL, Item, {"name": "widget"})
        removed = await client.delete(URL)
        saved = await client.download_file(URL, tmp_path / "item.json")

    assert created.status_code == 201
    assert created.body == fetched.body == replaced.body == patched.body
    assert created.body == Item(id=1, name="widget")
    assert removed.body == '{"id":1,"name":"widget"}'
    assert saved.body.read_bytes() == b'{"id":1,"name":"widget"}'


@pytest.mark.asyncio
async def test_aio_json_client_surfaces_deserialization_error():
    transport = CapturingTransport(body=b"not json")
    async with AioRestJsonClient(transport=transport) as client:
        with pytest.raises(DeserializationError):
            await client.get(URL, Item)


@pytest.mark.asyncio
async def test_cancelling_task_cancels_request():
    transport = BlockingTransport(body=b"late")
    client = AioRestClient(transport=transport)
    task = asyncio.create_task(client.get(URL))
    assert await asyncio.to_thread(transport.started.wait, 5)

    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task
    transport.release()
    await client.close()

    assert transport.responses[0].closed
