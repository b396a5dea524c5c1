# pyright: reportUnknownParameterType=false, reportMissingParameterType=false
import pytest
from doubles import CapturingTransport

from asyncrest.client import RestClient, RestJsonClient


@pytest.fixture
def transport():
    return CapturingTransport(body=b'{"id": 1, "name": "widget"}')


@pytest.fixture
def client(transport):
    rest_client = RestClient(transport=transport)
    yield rest_client
    rest_client.close()


@pytest.fixture
def json_client(transport):
    rest_client = RestJsonClient(transport=transport)
    yield rest_client
    rest_client.close()
