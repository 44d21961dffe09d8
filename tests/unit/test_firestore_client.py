"""Tests for the Firestore REST client and value codec."""

from unittest.mock import Mock

import pytest
import requests

from shifttracker.config import Config
from shifttracker.errors import RemoteUnavailable, TransportError
from shifttracker.remote.codec import decode_fields, decode_value, encode_fields, encode_value, timestamp_to_ms
from shifttracker.remote.factory import RemoteFactory
from shifttracker.remote.firestore_client import FirestoreClient


def make_response(status=200, payload=None):
    response = Mock()
    response.status_code = status
    response.json.return_value = payload if payload is not None else {}
    response.text = ""
    if status >= 400:
        response.raise_for_status.side_effect = requests.HTTPError(f"{status} Error")
    return response


@pytest.fixture
def client():
    client = FirestoreClient(project_id="demo", api_key="key")
    client.session = Mock()
    client.session.post.return_value = make_response(payload={"idToken": "token-1"})
    return client


class TestCodec:
    """Test conversion between JSON values and Firestore typed values."""

    def test_encode_scalars(self):
        assert encode_value(None) == {"nullValue": None}
        assert encode_value(True) == {"booleanValue": True}
        assert encode_value(42) == {"integerValue": "42"}
        assert encode_value(1.5) == {"doubleValue": 1.5}
        assert encode_value("x") == {"stringValue": "x"}

    def test_encode_nested(self):
        encoded = encode_fields({"breaks": [{"startMs": 1, "endMs": None}]})
        inner = encoded["breaks"]["arrayValue"]["values"][0]["mapValue"]["fields"]
        assert inner["startMs"] == {"integerValue": "1"}

    def test_encode_unsupported(self):
        with pytest.raises(TypeError):
            encode_value(object())

    def test_snapshot_shape_survives(self):
        data = {
            "schemaVersion": 2,
            "history": [{"id": "a", "tags": ["x"], "note": "", "breaks": []}],
            "prefs": {"hourlyRate": 12.5, "autoSync": False},
        }
        assert decode_fields(encode_fields(data)) == data

    def test_timestamp_decodes_to_ms(self):
        assert decode_value({"timestampValue": "2024-01-01T00:00:00Z"}) == 1_704_067_200_000
        assert timestamp_to_ms("2024-01-01T00:00:00.123456789Z") == 1_704_067_200_123

    def test_empty_array_and_map(self):
        assert decode_value({"arrayValue": {}}) == []
        assert decode_value({"mapValue": {}}) == {}

    def test_unknown_type(self):
        with pytest.raises(ValueError):
            decode_value({"geoPointValue": {}})


class TestFirestoreClient:
    """Test document access with mocked HTTP session."""

    def test_get_document(self, client):
        client.session.request.return_value = make_response(
            payload={
                "fields": {"snapshot": {"mapValue": {"fields": {"schemaVersion": {"integerValue": "2"}}}}},
                "updateTime": "2024-01-01T00:00:00.5Z",
            }
        )

        document = client.get_document("room1")

        assert document.data == {"snapshot": {"schemaVersion": 2}}
        assert document.update_time == "2024-01-01T00:00:00.5Z"
        method, url = client.session.request.call_args.args
        assert method == "GET"
        assert url.endswith("projects/demo/databases/(default)/documents/rooms/room1")
        headers = client.session.request.call_args.kwargs["headers"]
        assert headers["Authorization"] == "Bearer token-1"

    def test_missing_document_is_none(self, client):
        client.session.request.return_value = make_response(404)
        assert client.get_document("room1") is None

    def test_upsert_merges_with_server_timestamp(self, client):
        client.session.request.return_value = make_response(payload={"commitTime": "t1"})

        commit_time = client.upsert_document(
            "room1", {"snapshot": {"a": 1}}, server_timestamp_fields=("updatedAt",)
        )

        assert commit_time == "t1"
        method, url = client.session.request.call_args.args
        assert method == "POST"
        assert url.endswith("documents:commit")
        write = client.session.request.call_args.kwargs["json"]["writes"][0]
        assert write["updateMask"] == {"fieldPaths": ["snapshot"]}
        assert write["updateTransforms"] == [
            {"fieldPath": "updatedAt", "setToServerValue": "REQUEST_TIME"}
        ]
        assert write["update"]["name"].endswith("/rooms/room1")

    def test_token_cached(self, client):
        client.session.request.return_value = make_response(404)
        client.get_document("a")
        client.get_document("b")
        assert client.session.post.call_count == 1

    def test_unauthorized_signs_in_again(self, client):
        client.session.post.side_effect = [
            make_response(payload={"idToken": "old"}),
            make_response(payload={"idToken": "new"}),
        ]
        client.session.request.side_effect = [make_response(401), make_response(404)]

        assert client.get_document("room1") is None
        assert client.session.post.call_count == 2
        headers = client.session.request.call_args.kwargs["headers"]
        assert headers["Authorization"] == "Bearer new"

    def test_http_error_raises_transport_error(self, client):
        client.session.request.return_value = make_response(500)
        with pytest.raises(TransportError) as exc_info:
            client.get_document("room1")
        assert exc_info.value.status_code == 500

    def test_non_json_body_raises_transport_error(self, client):
        response = make_response()
        response.json.side_effect = ValueError("Expecting value")
        client.session.request.return_value = response

        with pytest.raises(TransportError):
            client.get_document("room1")
        with pytest.raises(TransportError):
            client.upsert_document("room1", {"snapshot": {}})

    def test_connection_error_raises_transport_error(self, client):
        client.session.request.side_effect = requests.ConnectionError("offline")
        with pytest.raises(TransportError):
            client.upsert_document("room1", {"snapshot": {}})

    def test_sign_in_failure(self, client):
        client.session.post.return_value = make_response(400)
        with pytest.raises(TransportError):
            client.get_document("room1")
        client.session.request.assert_not_called()

    def test_connection_test(self, client):
        client.session.request.return_value = make_response(404)
        assert client.test_connection() is True
        client.session.request.return_value = make_response(403)
        assert client.test_connection() is False


class TestRemoteFactory:
    """Test remote client construction from configuration."""

    def test_unconfigured_returns_none(self, tmp_path):
        config = Config(str(tmp_path / "missing.json"), use_env=False)
        assert RemoteFactory.create_document_store(config) is None

    def test_configured(self, tmp_path):
        config = Config(str(tmp_path / "missing.json"), use_env=False)
        config.remote.update({"project_id": "demo", "api_key": "key", "collection": "teams"})
        client = RemoteFactory.create_document_store(config)
        assert isinstance(client, FirestoreClient)
        assert client.document_name("x").endswith("/teams/x")

    def test_partial_config_is_unavailable(self, tmp_path):
        config = Config(str(tmp_path / "missing.json"), use_env=False)
        config.remote["project_id"] = "demo"
        with pytest.raises(RemoteUnavailable):
            RemoteFactory.create_document_store(config)
