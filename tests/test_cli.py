"""Unit tests for the health endpoint and the command-line entry point."""

from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, patch

import pytest
from starlette.testclient import TestClient

from lbregister import cli
from lbregister.config import ENV_ENDPOINT_URL, ENV_TIMEOUT, ENV_VARIANT
from lbregister.health import HEALTH_PATH, create_health_app
from lbregister.models import RegistrationOutcome, RegistrationVariant


@pytest.fixture(autouse=True)
def isolated(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """No env overrides, no config file, and leave structlog configuration alone."""
    for name in (ENV_ENDPOINT_URL, ENV_VARIANT, ENV_TIMEOUT):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(cli, "configure_logging", lambda **kwargs: None)


class TestHealthApp:
    """Test the /healthCheck route."""

    def test_health_ok(self) -> None:
        client = TestClient(create_health_app("http://10.0.0.5:4200"))
        response = client.get(HEALTH_PATH)
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "ok"
        assert body["identity"] == "http://10.0.0.5:4200"
        assert body["registered"] is None

    def test_health_reports_registration(self) -> None:
        outcome = RegistrationOutcome.failure("port taken")
        client = TestClient(create_health_app("8081", lambda: outcome))
        assert client.get(HEALTH_PATH).json()["registered"] is False

    def test_unknown_path(self) -> None:
        client = TestClient(create_health_app())
        assert client.get("/health").status_code == 404


class TestParseArgs:
    """Test argument parsing and identifier resolution."""

    def test_origin_and_port_are_exclusive(self) -> None:
        with pytest.raises(SystemExit) as exc:
            cli.parse_args(["--origin", "http://a:1", "--port", "1"])
        assert exc.value.code == 2

    def test_port_flag_selects_port_variant(self) -> None:
        args = cli.parse_args(["--port", "8081"])
        settings = cli.settings_from_args(args)
        assert settings.variant == RegistrationVariant.PORT
        assert cli.resolve_identifier(args, settings) == 8081

    def test_origin_flag(self) -> None:
        args = cli.parse_args(["--origin", "http://a:1", "--endpoint", "http://lb:9/port"])
        settings = cli.settings_from_args(args)
        assert settings.variant == RegistrationVariant.ORIGIN
        assert settings.endpoint_url == "http://lb:9/port"
        assert cli.resolve_identifier(args, settings) == "http://a:1"

    def test_detects_local_origin(self) -> None:
        args = cli.parse_args(["--listen-port", "4200"])
        settings = cli.settings_from_args(args)
        with patch.object(cli, "detect_local_origin", return_value="http://10.1.1.1:4200") as detect:
            assert cli.resolve_identifier(args, settings) == "http://10.1.1.1:4200"
        detect.assert_called_once_with(4200)

    def test_listen_port_with_port_variant(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv(ENV_VARIANT, "port")
        args = cli.parse_args(["--listen-port", "4200"])
        settings = cli.settings_from_args(args)
        assert cli.resolve_identifier(args, settings) == 4200


class TestMain:
    """Test exit status mapping."""

    def _patch_register(self, outcome: RegistrationOutcome) -> Any:
        return patch.object(
            cli.SelfRegistrationClient, "register", AsyncMock(return_value=outcome)
        )

    def test_success_exit_zero(self) -> None:
        outcome = RegistrationOutcome(succeeded=True)
        with self._patch_register(outcome) as register:
            assert cli.main(["--port", "8081"]) == 0
        register.assert_awaited_once_with(8081)

    def test_failure_exit_one(self) -> None:
        with self._patch_register(RegistrationOutcome.failure("port taken")):
            assert cli.main(["--origin", "http://a:1"]) == 1

    def test_invalid_endpoint_exit_two(self) -> None:
        with self._patch_register(RegistrationOutcome(succeeded=True)) as register:
            assert cli.main(["--port", "8081", "--endpoint", "ftp://lb/port"]) == 2
        register.assert_not_called()

    def test_malformed_config_exit_two(self, tmp_path: Path) -> None:
        config = tmp_path / "broken.yaml"
        config.write_text("registration: [unclosed\n")
        with self._patch_register(RegistrationOutcome(succeeded=True)) as register:
            assert cli.main(["--port", "8081", "--config", str(config)]) == 2
        register.assert_not_called()

    def test_config_directory_exit_two(self, tmp_path: Path) -> None:
        with self._patch_register(RegistrationOutcome(succeeded=True)) as register:
            assert cli.main(["--port", "8081", "--config", str(tmp_path)]) == 2
        register.assert_not_called()

    def test_serve_health_starts_registration_in_background(self) -> None:
        served: dict[str, Any] = {}

        async def fake_serve(host: str, port: int, identity: str, provider: Any) -> None:
            served.update(host=host, port=port, identity=identity, outcome=provider())

        with patch.object(cli, "serve_health", fake_serve), patch.object(
            cli.SelfRegistrationClient, "start"
        ) as start:
            code = cli.main(["--port", "8081", "--listen-port", "4200", "--serve-health"])

        assert code == 0
        start.assert_called_once_with(8081)
        assert served == {"host": "0.0.0.0", "port": 4200, "identity": "8081", "outcome": None}
