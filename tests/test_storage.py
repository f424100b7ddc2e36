"""
Storage Tests — InfluxStore Adapter

Unit tests run against a mocked InfluxDBClient and a mocked requests.post.
The integration class at the bottom talks to a real InfluxDB and is
skipped when none is configured or reachable.

Prerequisites for integration tests:
    INFLUXDB_HOST, INFLUXDB_TOKEN, INFLUXDB_ORGANIZATION, INFLUXDB_BUCKET set
"""

import time
from datetime import datetime, timezone
from types import SimpleNamespace
from unittest.mock import MagicMock, patch
from uuid import uuid4

import pytest
import requests
from influxdb_client.rest import ApiException

from influx_starter.config import Settings
from influx_starter.storage import (
    ErrorKind,
    InfluxDBClientError,
    InfluxStore,
    build_user_point,
    load_config,
)
from influx_starter.storage.flux import last_downsampled_query


@pytest.fixture
def influx_client():
    """Patched InfluxDBClient instance used by InfluxStore.connect()."""
    with patch("influx_starter.storage.client.InfluxDBClient") as client_cls:
        yield client_cls.return_value


@pytest.fixture
def store(influx_config, influx_client):
    store = InfluxStore(influx_config)
    store.connect()
    return store


def http_response(status_code: int, body: dict = None) -> MagicMock:
    response = MagicMock(spec=requests.Response)
    response.status_code = status_code
    response.content = b"{}" if body is not None else b""
    response.json.return_value = body
    if status_code >= 400:
        response.raise_for_status.side_effect = requests.HTTPError(
            f"{status_code} Error", response=response
        )
    return response


class TestConfig:
    """Test configuration loading."""

    def test_load_config_from_settings(self):
        settings = Settings(
            INFLUXDB_HOST="https://cloud.example.com/",
            INFLUXDB_TOKEN="secret",
            INFLUXDB_ORGANIZATION="my-org",
            ORGANIZATION_ID="abc123",
            INFLUXDB_BUCKET="my-bucket",
        )

        config = load_config(settings)

        assert config.url == "https://cloud.example.com"
        assert config.token == "secret"
        assert config.org == "my-org"
        assert config.org_id == "abc123"
        assert config.bucket == "my-bucket"
        assert config.processed_bucket == "processed_data_bucket"

    def test_settings_read_environment(self, monkeypatch):
        monkeypatch.setenv("INFLUXDB_BUCKET", "from-env")
        monkeypatch.setenv("ORGANIZATION_ID", "env-org-id")

        settings = Settings()

        assert settings.INFLUXDB_BUCKET == "from-env"
        assert settings.ORGANIZATION_ID == "env-org-id"


class TestConnection:
    """Test connection management."""

    def test_client_built_from_config(self, influx_config):
        with patch("influx_starter.storage.client.InfluxDBClient") as client_cls:
            InfluxStore(influx_config).connect()

        client_cls.assert_called_once_with(
            url="http://influx.test:8086",
            token="test-token",
            org="test-org",
        )

    def test_failed_ping_raises_transient(self, influx_config, influx_client):
        influx_client.ping.return_value = False

        with pytest.raises(InfluxDBClientError) as excinfo:
            InfluxStore(influx_config).connect(verify=True)

        assert excinfo.value.kind is ErrorKind.TRANSIENT
        influx_client.close.assert_called_once()

    def test_connection_context_closes_client(self, influx_config, influx_client):
        with InfluxStore(influx_config).connection() as store:
            assert store._client is influx_client

        influx_client.close.assert_called_once()

    def test_not_connected_raises_error(self, influx_config):
        store = InfluxStore(influx_config)

        with pytest.raises(InfluxDBClientError) as excinfo:
            store.write_point(build_user_point("u", "m", 1.0))

        assert "Not connected" in str(excinfo.value)


class TestWrite:
    """Test point construction and writes."""

    def test_build_user_point(self):
        ts = datetime(2026, 1, 1, tzinfo=timezone.utc)

        point = build_user_point("user1", "measurement1", 2, ts)

        assert point._name == "measurement1"
        assert point._tags == {"user_id": "user1"}
        assert point._fields == {"field1": 2.0}
        assert point._time == ts

    def test_write_uses_bucket_and_closes_write_api(self, store, influx_client):
        point = build_user_point("user1", "measurement1", 1.0)

        store.write_point(point)

        write_api = influx_client.write_api.return_value
        write_api.__enter__.return_value.write.assert_called_once_with(
            bucket="test-bucket", org="test-org", record=point
        )
        write_api.__exit__.assert_called_once()

    @pytest.mark.parametrize(
        "status, kind",
        [
            (401, ErrorKind.UNAUTHORIZED),
            (404, ErrorKind.NOT_FOUND),
            (503, ErrorKind.TRANSIENT),
            (400, ErrorKind.UNKNOWN),
        ],
    )
    def test_write_errors_are_classified(self, store, influx_client, status, kind):
        write_api = influx_client.write_api.return_value.__enter__.return_value
        write_api.write.side_effect = ApiException(status=status, reason="error")

        with pytest.raises(InfluxDBClientError) as excinfo:
            store.write_point(build_user_point("user1", "measurement1", 1.0))

        assert excinfo.value.kind is kind
        assert excinfo.value.status_code == status


class TestQuery:
    """Test Flux query execution."""

    def test_rows_flattened_from_tables(self, store, influx_client):
        tables = [
            SimpleNamespace(records=[
                SimpleNamespace(values={"_field": "field1_max", "_value": 3.0}),
                SimpleNamespace(values={"_field": "field1_min", "_value": 1.0}),
            ]),
            SimpleNamespace(records=[
                SimpleNamespace(values={"_field": "field1_mean", "_value": 2.0}),
            ]),
        ]
        influx_client.query_api.return_value.query.return_value = tables
        query = last_downsampled_query("test-bucket", "user1")

        rows = store.query_rows(query)

        assert [r["_field"] for r in rows] == ["field1_max", "field1_min", "field1_mean"]
        influx_client.query_api.return_value.query.assert_called_once_with(query, org="test-org")

    def test_empty_result(self, store, influx_client):
        influx_client.query_api.return_value.query.return_value = []

        assert store.query_rows("from(bucket: \"b\")") == []

    def test_query_error_is_classified(self, store, influx_client):
        influx_client.query_api.return_value.query.side_effect = ApiException(
            status=401, reason="Unauthorized"
        )

        with pytest.raises(InfluxDBClientError) as excinfo:
            store.query_rows("from(bucket: \"b\")")

        assert excinfo.value.kind is ErrorKind.UNAUTHORIZED


class TestCreateTask:
    """Test task creation through the client library."""

    def test_task_request_built_from_config(self, store, influx_client):
        tasks_api = influx_client.tasks_api.return_value
        tasks_api.create_task.return_value = SimpleNamespace(id="t1", name="user1_task")

        task = store.create_task("option task = {name: \"x\", every: 5m}")

        assert task.id == "t1"
        request = tasks_api.create_task.call_args.kwargs["task_create_request"]
        assert request.org_id == "0123456789abcdef"
        assert request.flux == "option task = {name: \"x\", every: 5m}"
        assert request.status == "active"
        assert request.description == "This task downsamples"

    def test_task_error_is_classified(self, store, influx_client):
        influx_client.tasks_api.return_value.create_task.side_effect = ApiException(
            status=404, reason="Not Found"
        )

        with pytest.raises(InfluxDBClientError) as excinfo:
            store.create_task("flux")

        assert excinfo.value.kind is ErrorKind.NOT_FOUND


class TestRecreateBucket:
    """Test the delete-then-create bucket reset."""

    @pytest.fixture
    def apis(self, influx_client):
        orgs_api = influx_client.organizations_api.return_value
        buckets_api = influx_client.buckets_api.return_value
        orgs_api.find_organizations.return_value = [SimpleNamespace(id="org-1")]
        buckets_api.create_bucket.return_value = SimpleNamespace(id="new", name="processed")
        return orgs_api, buckets_api

    @staticmethod
    def call_order(influx_client):
        steps = ("find_organizations", "find_buckets", "delete_bucket", "create_bucket")
        names = [c[0].split(".")[-1] for c in influx_client.mock_calls]
        return [n for n in names if n in steps]

    def test_existing_bucket_deleted_then_created(self, store, influx_client, apis):
        orgs_api, buckets_api = apis
        existing = SimpleNamespace(id="old", name="processed")
        buckets_api.find_buckets.return_value = SimpleNamespace(buckets=[existing])

        bucket = store.recreate_bucket("processed")

        assert bucket.id == "new"
        assert self.call_order(influx_client) == [
            "find_organizations", "find_buckets", "delete_bucket", "create_bucket",
        ]
        orgs_api.find_organizations.assert_called_once_with(org="test-org")
        buckets_api.find_buckets.assert_called_once_with(org_id="org-1", name="processed")
        buckets_api.delete_bucket.assert_called_once_with(existing)
        buckets_api.create_bucket.assert_called_once_with(bucket_name="processed", org_id="org-1")

    def test_missing_bucket_only_created(self, store, influx_client, apis):
        _, buckets_api = apis
        buckets_api.find_buckets.return_value = SimpleNamespace(buckets=[])

        store.recreate_bucket("processed")

        buckets_api.delete_bucket.assert_not_called()
        buckets_api.create_bucket.assert_called_once()

    def test_lookup_404_treated_as_missing(self, store, influx_client, apis):
        _, buckets_api = apis
        buckets_api.find_buckets.side_effect = ApiException(status=404, reason="Not Found")

        store.recreate_bucket("processed")

        buckets_api.delete_bucket.assert_not_called()
        buckets_api.create_bucket.assert_called_once()

    def test_lookup_401_propagates(self, store, influx_client, apis):
        _, buckets_api = apis
        buckets_api.find_buckets.side_effect = ApiException(status=401, reason="Unauthorized")

        with pytest.raises(InfluxDBClientError) as excinfo:
            store.recreate_bucket("processed")

        assert excinfo.value.kind is ErrorKind.UNAUTHORIZED
        buckets_api.create_bucket.assert_not_called()

    def test_unknown_organization_raises_not_found(self, store, influx_client, apis):
        orgs_api, buckets_api = apis
        orgs_api.find_organizations.return_value = []

        with pytest.raises(InfluxDBClientError) as excinfo:
            store.recreate_bucket("processed")

        assert excinfo.value.kind is ErrorKind.NOT_FOUND
        buckets_api.find_buckets.assert_not_called()


class TestPostTask:
    """Test task registration via a direct HTTP POST."""

    def test_post_carries_token_and_org_id(self, store):
        body = {"id": "t2", "name": "user1_task", "every": "1m", "status": "active"}
        with patch("influx_starter.storage.client.requests.post") as post:
            post.return_value = http_response(201, body)
            result = store.post_task("option task = {name: \"user1_task\", every: 1m}")

        assert result == body
        args, kwargs = post.call_args
        assert args[0] == "http://influx.test:8086/api/v2/tasks"
        assert kwargs["headers"]["Authorization"] == "Token test-token"
        assert kwargs["json"] == {
            "flux": "option task = {name: \"user1_task\", every: 1m}",
            "orgID": "0123456789abcdef",
            "status": "active",
            "description": "This task downsamples",
        }
        assert kwargs["timeout"] == 10.0

    def test_post_does_not_need_library_client(self, influx_config):
        with patch("influx_starter.storage.client.requests.post") as post:
            post.return_value = http_response(201, {"id": "t3"})
            result = InfluxStore(influx_config).post_task("flux")

        assert result == {"id": "t3"}

    def test_unauthorized_response_is_classified(self, store):
        with patch("influx_starter.storage.client.requests.post") as post:
            post.return_value = http_response(401, {"code": "unauthorized"})
            with pytest.raises(InfluxDBClientError) as excinfo:
                store.post_task("flux")

        assert excinfo.value.kind is ErrorKind.UNAUTHORIZED
        assert excinfo.value.status_code == 401

    def test_non_json_success_body_is_classified(self, store):
        response = http_response(201)
        response.content = b"ok"
        response.json.side_effect = requests.exceptions.JSONDecodeError(
            "Expecting value", "ok", 0
        )
        with patch("influx_starter.storage.client.requests.post") as post:
            post.return_value = response
            with pytest.raises(InfluxDBClientError) as excinfo:
                store.post_task("flux")

        assert excinfo.value.kind is ErrorKind.UNKNOWN
        assert "Task registration failed" in str(excinfo.value)

    def test_empty_success_body_returns_empty_dict(self, store):
        with patch("influx_starter.storage.client.requests.post") as post:
            post.return_value = http_response(204)
            assert store.post_task("flux") == {}

    def test_connection_error_is_transient(self, store):
        with patch("influx_starter.storage.client.requests.post") as post:
            post.side_effect = requests.ConnectionError("refused")
            with pytest.raises(InfluxDBClientError) as excinfo:
                store.post_task("flux")

        assert excinfo.value.kind is ErrorKind.TRANSIENT


# =============================================================================
# Integration — real InfluxDB
# =============================================================================

def is_influxdb_available() -> bool:
    """Check if a configured InfluxDB is running."""
    config = load_config()
    if not config.token or not config.bucket:
        return False
    try:
        store = InfluxStore(config)
        store.connect(verify=True)
        store.disconnect()
        return True
    except InfluxDBClientError:
        return False


@pytest.mark.skipif(not is_influxdb_available(), reason="InfluxDB not available")
class TestIntegration:
    """Write a point and read it back from a real InfluxDB."""

    def test_written_point_is_queryable(self):
        user_id = f"test-{uuid4().hex[:8]}"
        config = load_config()

        with InfluxStore(config).connection() as store:
            store.write_point(build_user_point(user_id, "integration", 7.5))
            time.sleep(2)
            rows = store.query_rows(
                f'from(bucket: "{config.bucket}")\n'
                f"    |> range(start: -5m)\n"
                f'    |> filter(fn: (r) => r.user_id == "{user_id}")'
            )

        assert len(rows) >= 1
        assert rows[0]["_value"] == 7.5
