"""Tests for cortex_cli/cli.py — commands and the error/exit boundary."""

import io
import json
import zipfile

import httpx
import pytest
from click.testing import CliRunner

import cortex_cli.clients.factory as factory_mod
from cortex_cli.cli import main
from cortex_cli.operator.client import OperatorClient
from cortex_cli.operator.logs import SessionOutcome
from cortex_cli.server.main import app
from cortex_cli.server.workloads import InMemoryWorkloadManager, get_workload_manager


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def use_operator(monkeypatch, client_config, override_settings):
    """Install an operator client backed by the given transport as the CLI's singleton."""
    override_settings(AUDIT_LOG_FILE="", LOG_LEVEL="WARNING")

    def _use(transport: httpx.AsyncBaseTransport) -> None:
        monkeypatch.setattr(factory_mod, "_client", OperatorClient(client_config, transport=transport))

    yield _use
    monkeypatch.setattr(factory_mod, "_client", None)


@pytest.fixture
def operator_app():
    """The operator app with `foo` deployed."""
    app.dependency_overrides[get_workload_manager] = lambda: InMemoryWorkloadManager(["foo"])
    yield app
    app.dependency_overrides.clear()


class TestDelete:

    def test_deployed(self, runner, use_operator, operator_app):
        use_operator(httpx.ASGITransport(app=operator_app))
        result = runner.invoke(main, ["delete", "foo"])
        assert result.exit_code == 0
        assert "Deletion successful" in result.output

    def test_not_deployed(self, runner, use_operator, operator_app):
        use_operator(httpx.ASGITransport(app=operator_app))
        result = runner.invoke(main, ["delete", "bar"])
        assert result.exit_code == 1
        assert 'error: app "bar" is not deployed' in result.output

    def test_keep_cache_param(self, runner, use_operator):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"message": "Deletion successful"})

        use_operator(httpx.MockTransport(handler))
        result = runner.invoke(main, ["delete", "foo", "--keep-cache"])
        assert result.exit_code == 0
        assert seen[0].url.params["keepCache"] == "true"
        assert seen[0].url.params["appName"] == "foo"

    def test_unreachable_operator(self, runner, use_operator):
        def handler(request):
            raise httpx.ConnectError("Connection refused")

        use_operator(httpx.MockTransport(handler))
        result = runner.invoke(main, ["delete", "foo"])
        assert result.exit_code == 1
        assert "error: failed to connect to http://operator.test/delete" in result.output
        assert "secret" not in result.output


class TestGet:

    def test_prints_body(self, runner, use_operator):
        def handler(request):
            return httpx.Response(200, json={"app": request.url.params["appName"]})

        use_operator(httpx.MockTransport(handler))
        result = runner.invoke(main, ["get", "/resources", "-p", "appName=iris"])
        assert result.exit_code == 0
        assert json.loads(result.output) == {"app": "iris"}

    def test_bad_param(self, runner, use_operator):
        use_operator(httpx.MockTransport(lambda request: httpx.Response(200)))
        result = runner.invoke(main, ["get", "/resources", "-p", "appName"])
        assert result.exit_code == 2


class TestDeploy:

    def test_pushes_zipped_config(self, runner, use_operator, tmp_path):
        (tmp_path / "cortex.yaml").write_text("- kind: deployment\n", encoding="utf-8")
        (tmp_path / "predictor.py").write_text("def predict(): ...\n", encoding="utf-8")
        (tmp_path / "predictor.pyc").write_bytes(b"\x00")
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"message": "Deploying iris"})

        use_operator(httpx.MockTransport(handler))
        result = runner.invoke(main, ["deploy", "--config-dir", str(tmp_path), "--app", "iris", "--force"])

        assert result.exit_code == 0
        assert "Deploying iris" in result.output
        assert seen[0].url.path == "/deploy"
        assert seen[0].url.params["appName"] == "iris"
        assert seen[0].url.params["force"] == "true"
        assert b"Content-Type: application/octet-stream" in seen[0].content

        body = seen[0].content
        zip_bytes = body[body.index(b"PK\x03\x04"):body.rindex(b"\r\n--")]
        with zipfile.ZipFile(io.BytesIO(zip_bytes)) as archive:
            assert sorted(archive.namelist()) == ["cortex.yaml", "predictor.py"]

    def test_app_name_defaults_to_directory(self, runner, use_operator, tmp_path):
        config_dir = tmp_path / "mnist"
        config_dir.mkdir()
        (config_dir / "cortex.yaml").write_text("- kind: deployment\n", encoding="utf-8")
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"message": "Deploying mnist"})

        use_operator(httpx.MockTransport(handler))
        result = runner.invoke(main, ["deploy", "--config-dir", str(config_dir)])

        assert result.exit_code == 0
        assert seen[0].url.params["appName"] == "mnist"
        assert seen[0].url.params["force"] == "false"

    def test_missing_cortex_yaml(self, runner, use_operator, tmp_path):
        use_operator(httpx.MockTransport(lambda request: httpx.Response(200)))
        result = runner.invoke(main, ["deploy", "--config-dir", str(tmp_path)])
        assert result.exit_code == 1
        assert "cortex.yaml not found" in result.output


class TestLogs:

    @pytest.fixture
    def configured(self, override_settings):
        override_settings(
            CORTEX_URL="http://operator.test",
            AWS_ACCESS_KEY_ID="AKIATEST",
            AWS_SECRET_ACCESS_KEY="secret",
            AUDIT_LOG_FILE="",
        )

    def _fake_stream(self, outcome, calls):
        async def fake_stream_logs(config, app_name, resource_name, resource_type, verbose):
            calls.append((config.cortex_url, app_name, resource_name, resource_type, verbose))
            return outcome

        return fake_stream_logs

    def test_stream_ended(self, runner, configured, monkeypatch):
        calls = []
        monkeypatch.setattr("cortex_cli.cli.stream_logs", self._fake_stream(SessionOutcome.STREAM_ENDED, calls))
        result = runner.invoke(main, ["logs", "iris", "classifier", "--verbose"])
        assert result.exit_code == 0
        assert calls == [("http://operator.test", "iris", "classifier", "api", True)]

    def test_interrupted_exits_cleanly(self, runner, configured, monkeypatch):
        monkeypatch.setattr("cortex_cli.cli.stream_logs", self._fake_stream(SessionOutcome.INTERRUPTED, []))
        result = runner.invoke(main, ["logs", "iris", "classifier"])
        assert result.exit_code == 0

    def test_read_error_exits_nonzero(self, runner, configured, monkeypatch):
        monkeypatch.setattr("cortex_cli.cli.stream_logs", self._fake_stream(SessionOutcome.READ_ERROR, []))
        result = runner.invoke(main, ["logs", "iris", "classifier", "-t", "job"])
        assert result.exit_code == 1
        assert "error: log stream ended unexpectedly" in result.output

    def test_unconfigured(self, runner, override_settings):
        override_settings(CORTEX_URL="", AWS_ACCESS_KEY_ID="", AWS_SECRET_ACCESS_KEY="")
        result = runner.invoke(main, ["logs", "iris", "classifier"])
        assert result.exit_code == 1
        assert "error: cortex is not configured" in result.output
