# tests/test_main.py
"""Tests for the command line entry point."""
from unittest.mock import MagicMock, patch

import pytest

from bear_mcp import main as main_module
from bear_mcp.config import config


@pytest.fixture
def no_file_logging(tmp_path):
    with patch.object(main_module, "configure_logging", return_value=tmp_path) as mocked:
        yield mocked


@pytest.fixture(autouse=True)
def _restore_config(monkeypatch):
    monkeypatch.setattr(config, "bear_db_path", config.bear_db_path)
    monkeypatch.setattr(config, "log_dir", config.log_dir)


class TestParseArgs:
    """Tests for argument parsing."""

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("BEAR_DB_PATH", raising=False)
        monkeypatch.delenv("BEAR_MCP_LOG_LEVEL", raising=False)
        args = main_module.parse_args([])
        assert args.db_path is None
        assert args.log_level == "INFO"
        assert args.log_dir is None

    def test_options(self):
        args = main_module.parse_args(
            ["--db-path", "/tmp/bear.sqlite", "--log-level", "DEBUG", "--log-dir", "/tmp/logs"]
        )
        assert args.db_path == "/tmp/bear.sqlite"
        assert args.log_level == "DEBUG"
        assert args.log_dir == "/tmp/logs"

    def test_invalid_log_level(self):
        with pytest.raises(SystemExit):
            main_module.parse_args(["--log-level", "LOUD"])


class TestMain:
    """Tests for the main function."""

    def test_missing_database_exits(self, tmp_path, no_file_logging):
        with patch.object(main_module, "BearMcpServer") as server_cls:
            with pytest.raises(SystemExit) as exc_info:
                main_module.main(["--db-path", str(tmp_path / "missing.sqlite")])
        assert exc_info.value.code == 1
        server_cls.assert_not_called()

    def test_starts_server_with_read_only_engine(self, bear_db_path, no_file_logging, tmp_path):
        server = MagicMock()
        with patch.object(main_module, "BearMcpServer", return_value=server) as server_cls:
            main_module.main(["--db-path", str(bear_db_path), "--log-dir", str(tmp_path)])

        engine = server_cls.call_args.kwargs["engine"]
        try:
            assert "mode=ro" in str(engine.url)
            server.run.assert_called_once()
            assert config.log_dir == tmp_path
            no_file_logging.assert_called_once()
        finally:
            engine.dispose()

    def test_server_failure_exits(self, bear_db_path, no_file_logging):
        server = MagicMock()
        server.run.side_effect = RuntimeError("transport closed")
        with patch.object(main_module, "BearMcpServer", return_value=server):
            with pytest.raises(SystemExit) as exc_info:
                main_module.main(["--db-path", str(bear_db_path)])
        assert exc_info.value.code == 1
