"""Tests for the tikaserver command line."""

import hashlib
from types import MappingProxyType
from unittest.mock import MagicMock, patch

import pytest

from tikaserver import cli
from tikaserver.exceptions import DownloadError, ReadinessError
from tikaserver.versions import Version


@pytest.fixture(autouse=True)
def no_logging_setup(monkeypatch):
    """Keep the CLI from replacing pytest's log handlers."""
    monkeypatch.setattr(cli, "_setup_logging", lambda level: None)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    monkeypatch.setenv("COLUMNS", "200")
    for name in ("TIKA_SERVER_JAR", "TIKA_SERVER_PORT", "TIKA_DOWNLOAD_VERSION"):
        monkeypatch.delenv(name, raising=False)


@pytest.mark.unit
class TestVersionsCommand:
    def test_lists_versions(self, capsys):
        assert cli.main(["versions"]) == cli.EXIT_OK
        out = capsys.readouterr().out
        for version in ("1.14", "1.15", "1.16"):
            assert version in out
        assert "39055fc71358d774b9da066f80b1141c" in out


@pytest.mark.unit
class TestDownloadCommand:
    def test_passes_version_and_path(self, tmp_path):
        path = tmp_path / "tika.jar"
        with patch.object(cli, "download_server") as download:
            code = cli.main(["download", "--version", "1.15", "--path", str(path)])

        assert code == cli.EXIT_OK
        ctx, version, target = download.call_args.args
        assert version == "1.15"
        assert target == str(path)
        assert ctx.done() is True  # scope released after the download

    def test_default_target_from_config(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        with patch.object(cli, "download_server") as download:
            assert cli.main(["download"]) == cli.EXIT_OK
        assert download.call_args.args[2] == "tika-server-1.14.jar"

    def test_error_exit_code(self, tmp_path):
        with patch.object(
            cli, "download_server", side_effect=DownloadError("unable to download")
        ):
            code = cli.main(["download", "--path", str(tmp_path / "x.jar")])
        assert code == cli.EXIT_ERROR

    def test_unsupported_version(self, tmp_path):
        code = cli.main(["download", "--version", "9.99", "--path", str(tmp_path / "x")])
        assert code == cli.EXIT_ERROR
        assert list(tmp_path.iterdir()) == []


@pytest.mark.unit
class TestVerifyCommand:
    def test_ok(self, tmp_path, monkeypatch, capsys):
        path = tmp_path / "tika.jar"
        path.write_bytes(b"jar")
        monkeypatch.setattr(
            "tikaserver.versions.MD5S",
            MappingProxyType({Version.V1_14: hashlib.md5(b"jar").hexdigest()}),
        )

        assert cli.main(["verify", "--version", "1.14", str(path)]) == cli.EXIT_OK
        assert "ok" in capsys.readouterr().out

    def test_mismatch(self, tmp_path, capsys):
        path = tmp_path / "tika.jar"
        path.write_bytes(b"jar")
        assert cli.main(["verify", str(path)]) == cli.EXIT_ERROR
        assert "md5" in capsys.readouterr().out

    def test_unreadable(self, tmp_path, capsys):
        assert cli.main(["verify", str(tmp_path / "missing.jar")]) == cli.EXIT_ERROR
        assert "cannot" in capsys.readouterr().out


@pytest.mark.unit
class TestRunCommand:
    def test_missing_jar(self):
        assert cli.main(["run"]) == cli.EXIT_ERROR

    def test_readiness_failure(self):
        err = ReadinessError("error starting server", cause=TimeoutError("slow"))
        with patch.object(cli.Server, "start", side_effect=err):
            assert cli.main(["run", "--jar", "tika.jar"]) == cli.EXIT_ERROR

    def test_interrupt_stops_server(self):
        running = MagicMock()
        running.running = True
        running.context.wait.side_effect = KeyboardInterrupt
        with patch.object(cli.Server, "start", return_value=running) as start:
            code = cli.main(["run", "--jar", "tika.jar", "--port", "9100", "--timeout", "5"])

        assert code == cli.EXIT_INTERRUPTED
        running.stop.assert_called_once()
        assert start.call_args.kwargs["startup_timeout"] == 5.0

    def test_server_exit_reported(self, capsys):
        running = MagicMock()
        running.running = False
        running.returncode = 1
        running.output.return_value = "java.net.BindException"
        with patch.object(cli.Server, "start", return_value=running):
            assert cli.main(["run", "--jar", "tika.jar"]) == cli.EXIT_ERROR

        out = capsys.readouterr().out
        assert "exited with code 1" in out
        assert "BindException" in out
        running.stop.assert_called_once()
