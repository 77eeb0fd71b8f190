"""
Tests for the eth_sendUserOperation ingress endpoint.
"""
import pytest
from fastapi.testclient import TestClient

from userop_bundler.config import BundlerConfig
from userop_bundler.engine import BundlerEngine
from userop_bundler.exceptions import IngressError
from userop_bundler.ingress import accept_user_operation, create_app
from tests.test_helpers import TEST_ENTRY_POINT, make_op


def _request(op_wire, entry_point=TEST_ENTRY_POINT, method="eth_sendUserOperation"):
    return {"method": method, "params": [op_wire, entry_point]}


@pytest.fixture
def op_wire():
    return make_op(nonce=3, max_fee=10).model_dump(by_alias=True)


@pytest.fixture
def engine(mock_submitter, classifier):
    return BundlerEngine(submitter=mock_submitter, classifier=classifier)


@pytest.fixture
def client(engine):
    config = BundlerConfig(entry_point_address=TEST_ENTRY_POINT)
    return TestClient(create_app(engine, config))


def test_accepts_matching_entry_point(client, engine, op_wire):
    response = client.post("/", json=_request(op_wire))

    assert response.status_code == 200
    assert response.json() == {"result": "UserOperation queued"}
    queued = engine.queue.snapshot()
    assert len(queued) == 1
    assert queued[0].nonce == 3
    assert queued[0].max_fee_per_gas == 10


def test_entry_point_match_is_case_insensitive(client, engine, op_wire):
    response = client.post("/", json=_request(op_wire, entry_point=TEST_ENTRY_POINT.lower()))
    assert response.status_code == 200
    assert len(engine.queue) == 1


def test_rejects_unsupported_method(client, engine, op_wire):
    response = client.post("/", json=_request(op_wire, method="eth_estimateUserOperationGas"))

    assert response.status_code == 400
    assert response.json() == {"error": "Only eth_sendUserOperation is supported"}
    assert len(engine.queue) == 0


def test_rejects_entry_point_mismatch(client, engine, op_wire):
    response = client.post("/", json=_request(op_wire, entry_point="0x" + "00" * 20))

    assert response.status_code == 400
    assert response.json() == {"error": "EntryPoint address mismatch"}
    assert len(engine.queue) == 0


def test_rejects_invalid_operation(client, engine, op_wire):
    op_wire["maxFeePerGas"] = "not a number"
    response = client.post("/", json=_request(op_wire))

    assert response.status_code == 400
    assert "Invalid UserOperation" in response.json()["error"]
    assert len(engine.queue) == 0


@pytest.mark.parametrize("field, value", [
    ("signature", "0x 1234 "),
    ("callData", "0x12\t34"),
    ("initCode", "0x\u0661\u0662"),
])
def test_rejects_hex_fields_the_encoder_cannot_decode(client, engine, op_wire, field, value):
    op_wire[field] = value
    response = client.post("/", json=_request(op_wire))

    assert response.status_code == 400
    assert "Invalid UserOperation" in response.json()["error"]
    assert len(engine.queue) == 0


def test_rejects_non_json_body(client):
    response = client.post("/", content=b"not json", headers={"Content-Type": "application/json"})
    assert response.status_code == 400


@pytest.mark.parametrize("body", [
    [],
    {"method": "eth_sendUserOperation"},
    {"method": "eth_sendUserOperation", "params": [{}]},
    {"method": "eth_sendUserOperation", "params": "nope"},
])
def test_accept_user_operation_rejects_malformed_requests(body):
    with pytest.raises(IngressError):
        accept_user_operation(body, TEST_ENTRY_POINT)


def test_accept_user_operation_rejects_non_string_entry_point(op_wire):
    with pytest.raises(IngressError, match="mismatch"):
        accept_user_operation(_request(op_wire, entry_point=None), TEST_ENTRY_POINT)
