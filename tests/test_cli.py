"""Unit tests for influxctl.py - command line interface."""

import pytest
import yaml
from click.testing import CliRunner
from unittest.mock import patch

from clients.influxdb import APIError, InfluxDBError
from config import reset_config
from events import EventBus
from influxctl import cli

ENV = {"INFLUXDB_TOKEN": "secret", "INFLUXDB_ENDPOINT": "http://influx:8086"}


@pytest.fixture(autouse=True)
def fresh_config():
    reset_config()
    yield
    reset_config()


@pytest.fixture
def manifest(tmp_path, manifest_yaml):
    path = tmp_path / "influxdb.yaml"
    path.write_text(manifest_yaml)
    return str(path)


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def api_cls(mock_api):
    with patch("influxctl.InfluxDBClient") as mock_cls:
        mock_cls.from_config.return_value = mock_api
        yield mock_cls


@pytest.fixture
def fresh_server(mock_api, sample_org_response, sample_bucket_response):
    """Server on which nothing exists until it is created."""
    sample_bucket_response["name"] = "metrics-prod"
    mock_api.find_organization_by_name.side_effect = [
        InfluxDBError("organization 'my-org' not found"),
        sample_org_response,
    ]
    mock_api.find_bucket_by_name.side_effect = [
        InfluxDBError("bucket 'metrics-prod' not found"),
        sample_bucket_response,
    ]
    mock_api.post_dbrp.return_value = {"id": "abc123"}
    mock_api.get_dbrps.return_value = {
        "content": [{"id": "abc123", "retention_policy": "autogen", "default": True}]
    }
    return mock_api


class TestApply:
    """Tests for the apply command."""

    def test_apply_creates_everything(self, runner, manifest, api_cls, fresh_server):
        result = runner.invoke(cli, ["apply", manifest], env=ENV)

        assert result.exit_code == 0, result.output
        assert "my-org" in result.output
        assert "abc123" in result.output
        fresh_server.create_organization.assert_called_once()
        assert fresh_server.create_bucket.call_args[0][0]["name"] == "metrics-prod"
        assert fresh_server.post_dbrp.call_args[0][0]["org"] == "my-org"

    def test_apply_yaml_output(self, runner, manifest, api_cls, fresh_server):
        result = runner.invoke(cli, ["apply", manifest, "-o", "yaml"], env=ENV)

        assert result.exit_code == 0, result.output
        docs = list(yaml.safe_load_all(result.output))
        dbrp = docs[2]
        assert dbrp["metadata"]["annotations"]["influxdb.io/external-name"] == "abc123"
        assert docs[0]["status"]["atProvider"]["id"] == "0a1b2c3d4e5f6a7b"

    def test_apply_events(self, runner, manifest, api_cls, fresh_server):
        result = runner.invoke(cli, ["apply", manifest, "--events"], env=ENV)

        assert result.exit_code == 0, result.output
        assert "CreatedExternalResource Organization/my-org" in result.output
        assert (
            "CreatedExternalResource DatabaseRetentionPolicyMapping/telegraf-autogen"
            in result.output
        )

    def test_apply_events_finishes_when_printer_falls_behind(
        self, runner, manifest, api_cls, fresh_server
    ):
        with patch("influxctl.EventBus", lambda: EventBus(queue_size=1)):
            result = runner.invoke(cli, ["apply", manifest, "--events"], env=ENV)

        assert result.exit_code == 0, result.output
        assert "CreatedExternalResource Organization/my-org" in result.output

    def test_apply_endpoint_override(self, runner, manifest, api_cls, fresh_server):
        result = runner.invoke(
            cli, ["apply", manifest, "--endpoint", "http://other:8086"], env=ENV
        )

        assert result.exit_code == 0, result.output
        influxdb_config = api_cls.from_config.call_args[0][0]
        assert influxdb_config.endpoint == "http://other:8086"
        assert influxdb_config.token == "secret"

    def test_apply_failure_exits_1(self, runner, manifest, api_cls, mock_api):
        mock_api.find_organization_by_name.side_effect = APIError(401, "unauthorized")
        mock_api.find_bucket_by_name.side_effect = APIError(401, "unauthorized")
        mock_api.post_dbrp.side_effect = APIError(400, "bucket not found")

        result = runner.invoke(cli, ["apply", manifest], env=ENV)

        assert result.exit_code == 1
        assert "cannot find organization" in result.output
        mock_api.create_organization.assert_not_called()

    def test_missing_token(self, runner, manifest):
        result = runner.invoke(cli, ["apply", manifest], env={"INFLUXDB_TOKEN": ""})

        assert result.exit_code == 1
        assert "INFLUXDB_TOKEN" in result.output

    def test_invalid_manifest(self, runner, tmp_path, api_cls):
        path = tmp_path / "bad.yaml"
        path.write_text("kind: Dashboard\nmetadata:\n  name: d\n")

        result = runner.invoke(cli, ["apply", str(path)], env=ENV)

        assert result.exit_code == 1
        assert "Invalid Dashboard record" in result.output


class TestGet:
    """Tests for the get command."""

    def test_get_observes_only(
        self, runner, manifest, api_cls, mock_api, sample_org_response
    ):
        mock_api.find_organization_by_name.return_value = sample_org_response
        mock_api.find_bucket_by_name.side_effect = InfluxDBError(
            "bucket 'metrics-prod' not found"
        )

        result = runner.invoke(cli, ["get", manifest], env=ENV)

        assert result.exit_code == 0, result.output
        assert "0a1b2c3d4e5f6a7b" in result.output
        mock_api.create_organization.assert_not_called()
        mock_api.create_bucket.assert_not_called()
        mock_api.post_dbrp.assert_not_called()
        # The mapping has no id yet, so it is not looked up.
        mock_api.get_dbrps.assert_not_called()

    def test_get_error_exits_1(self, runner, manifest, api_cls, mock_api):
        mock_api.find_organization_by_name.side_effect = APIError(500, "boom")
        mock_api.find_bucket_by_name.side_effect = APIError(500, "boom")

        result = runner.invoke(cli, ["get", manifest], env=ENV)

        assert result.exit_code == 1
        assert "cannot find bucket" in result.output


class TestDelete:
    """Tests for the delete command."""

    def test_delete(self, runner, manifest, api_cls, mock_api, sample_org_response):
        mock_api.find_organization_by_name.return_value = sample_org_response
        mock_api.find_bucket_by_name.side_effect = InfluxDBError(
            "bucket 'metrics-prod' not found"
        )

        result = runner.invoke(cli, ["delete", manifest, "--yes"], env=ENV)

        assert result.exit_code == 0, result.output
        mock_api.delete_organization.assert_called_once_with("0a1b2c3d4e5f6a7b")
        mock_api.delete_bucket.assert_not_called()
        mock_api.delete_dbrp.assert_not_called()

    def test_delete_dbrp_by_stored_id(self, runner, tmp_path, api_cls, mock_api):
        path = tmp_path / "dbrp.yaml"
        path.write_text(
            "kind: DatabaseRetentionPolicyMapping\n"
            "metadata:\n"
            "  name: telegraf-autogen\n"
            "  annotations:\n"
            "    influxdb.io/external-name: abc123\n"
            "spec:\n"
            "  forProvider:\n"
            "    database: telegraf\n"
            "    org: my-org\n"
            "    retentionPolicy: autogen\n"
        )
        mock_api.get_dbrps.return_value = {"content": [{"id": "abc123"}]}

        result = runner.invoke(cli, ["delete", str(path), "--yes"], env=ENV)

        assert result.exit_code == 0, result.output
        mock_api.delete_dbrp.assert_called_once_with("abc123", org="my-org")

    def test_delete_requires_confirmation(self, runner, manifest, api_cls, mock_api):
        result = runner.invoke(cli, ["delete", manifest], input="n\n", env=ENV)

        assert result.exit_code == 1
        assert "Aborted" in result.output
        mock_api.delete_organization.assert_not_called()
