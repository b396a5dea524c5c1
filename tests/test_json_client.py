# pyright: reportUnknownParameterType=false, reportUnknownMemberType=false
# pyright: reportUnknownVariableType=false, reportMissingParameterType=false
import threading
from unittest.mock import Mock

import pytest
from doubles import CapturingTransport, Item, gated_chunks

from asyncrest.client import RestJsonClient
from asyncrest.errors import DeserializationError, SerializationError
from asyncrest.mapping import PydanticObjectMapper
from asyncrest.responses import MappedResponse, StringResponse

URL = "https://api.test/items"


def _spy_mapper():
    return Mock(spec=["serialize", "deserialize"], wraps=PydanticObjectMapper())


def test_post_text_body_maps_created_item():
    transport = CapturingTransport(
        status_code=201, body=b'{"id":1,"name":"widget"}'
    )
    with RestJsonClient(transport=transport) as client:
        response = client.post(URL, Item, '{"id":1}').result(timeout=5)

    assert isinstance(response, MappedResponse)
    assert response.status_code == 201
    assert response.body == Item(id=1, name="widget")
    assert transport.requests[0].body == b'{"id":1}'
    assert transport.requests[0].headers["Content-Type"] == "application/json"


def test_get_without_target_type_never_calls_mapper(transport):
    mapper = _spy_mapper()
    with RestJsonClient(mapper, transport=transport) as client:
        response = client.get(URL).result(timeout=5)
        client.delete(URL).result(timeout=5)

    assert isinstance(response, StringResponse)
    mapper.serialize.assert_not_called()
    mapper.deserialize.assert_not_called()


@pytest.mark.parametrize("method", ["get", "delete"])
def test_target_type_deserializes_body_once(transport, method):
    mapper = _spy_mapper()
    with RestJsonClient(mapper, transport=transport) as client:
        response = getattr(client, method)(URL, Item).result(timeout=5)

    assert response.body == Item(id=1, name="widget")
    mapper.deserialize.assert_called_once_with(
        '{"id": 1, "name": "widget"}', Item
    )
    assert transport.requests[0].method == method.upper()


@pytest.mark.parametrize("method", ["post", "put", "patch"])
def test_object_body_is_serialized_once_before_sending(transport, method):
    mapper = _spy_mapper()
    item = Item(id=7, name="gear")
    with RestJsonClient(mapper, transport=transport) as client:
        getattr(client, method)(URL, None, item).result(timeout=5)

    mapper.serialize.assert_called_once_with(item)
    assert transport.requests[0].body == b'{"id":7,"name":"gear"}'
    assert transport.requests[0].method == method.upper()


@pytest.mark.parametrize("method", ["post", "put", "patch"])
def test_serialization_failure_never_sends(transport, method):
    mapper = Mock(spec=["serialize", "deserialize"])
    mapper.serialize.side_effect = ValueError("cannot encode")
    payload = {"unsupported": object()}
    with RestJsonClient(mapper, transport=transport) as client:
        future = getattr(client, method)(URL, Item, payload)

        with pytest.raises(SerializationError) as excinfo:
            future.result(timeout=5)

    assert excinfo.value.payload is payload
    assert isinstance(excinfo.value.__cause__, ValueError)
    assert transport.requests == []


def test_deserialization_failure_fails_the_call():
    transport = CapturingTransport(
        status_code=200,
        body=b'{"name": "no id"}',
        headers={"X-Request-Id": ("abc",)},
    )
    with RestJsonClient(transport=transport) as client:
        future = client.get(URL, Item)

        with pytest.raises(DeserializationError) as excinfo:
            future.result(timeout=5)

    error = excinfo.value
    assert error.payload == '{"name": "no id"}'
    assert error.status_code == 200
    assert error.headers == {"X-Request-Id": ("abc",)}
    assert len(transport.requests) == 1


def test_echo_round_trip_returns_equal_object():
    transport = CapturingTransport(echo=True)
    item = Item(id=3, name="bolt")
    with RestJsonClient(transport=transport) as client:
        response = client.post(URL, Item, item).result(timeout=5)

    assert response.body == item


def test_builtin_containers_map_through_default_mapper():
    transport = CapturingTransport(body=b"[1, 2, 3]")
    with RestJsonClient(transport=transport) as client:
        response = client.get(URL, list[int]).result(timeout=5)

    assert response.body == [1, 2, 3]


def test_cancel_prevents_deserialization():
    reached = threading.Event()
    gate = threading.Event()
    transport = CapturingTransport(
        chunks=gated_chunks(b'{"id": ', b"1}", reached, gate)
    )
    mapper = _spy_mapper()
    with RestJsonClient(mapper, transport=transport) as client:
        future = client.get(URL, Item)
        assert reached.wait(5)
        assert future.cancel()
        gate.set()

    assert future.cancelled()
    mapper.deserialize.assert_not_called()


def test_head_and_download_are_available(tmp_path, transport):
    with RestJsonClient(transport=transport) as client:
        head = client.head(URL).result(timeout=5)
        download = client.download_file(URL, tmp_path / "item.json").result(
            timeout=5
        )

    assert head.status_code == 200
    assert download.body.read_bytes() == b'{"id": 1, "name": "widget"}'


def test_deserialization_error_headers_match_response_headers():
    transport = CapturingTransport(
        body=b"not json", headers={"X-Request-Id": ("abc",)}
    )
    with RestJsonClient(transport=transport) as client:
        future = client.get(URL, Item)

        with pytest.raises(DeserializationError) as excinfo:
            future.result(timeout=5)

    headers = excinfo.value.headers
    assert headers["x-request-id"] == ("abc",)
    with pytest.raises(TypeError):
        headers["X-Request-Id"] = ("changed",)  # type: ignore[index]
