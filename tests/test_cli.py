"""Tests for the command-line entry point."""

import pytest
import yaml

from dirstore import cli
from dirstore.config import DirStoreConfig


class TestParseArgs:
    def test_defaults(self):
        args = cli.parse_args([])
        assert str(args.config) == "dirstore.yaml"
        assert args.port is None
        assert args.sweep is False

    def test_overrides_applied(self):
        args = cli.parse_args(["--port", "9100", "--root-dir", "/srv/o", "--log-format", "json"])
        config = cli.apply_overrides(DirStoreConfig(), args)
        assert config.server.port == 9100
        assert config.storage.root_dir == "/srv/o"
        assert config.server.log_format == "json"
        assert config.server.host == "0.0.0.0"


class TestMain:
    def test_missing_config_exits(self, tmp_path):
        with pytest.raises(SystemExit) as exc_info:
            cli.main(["--config", str(tmp_path / "absent.yaml")])
        assert exc_info.value.code == 1

    def test_sweep_mode(self, tmp_path, monkeypatch):
        root = tmp_path / "objects"
        (root / "bucket" / "empty" / "deeper").mkdir(parents=True)
        (root / "bucket" / "kept").mkdir()
        (root / "bucket" / "kept" / "obj").write_bytes(b"x")
        config_path = tmp_path / "dirstore.yaml"
        config_path.write_text(yaml.dump({"storage": {"local": {"root_dir": str(root)}}}))

        def _no_server(*args, **kwargs):
            raise AssertionError("server must not start in sweep mode")

        monkeypatch.setattr(cli.uvicorn, "run", _no_server)
        monkeypatch.setattr(cli, "configure_logging", lambda **kwargs: None)

        cli.main(["--config", str(config_path), "--sweep"])

        assert not (root / "bucket" / "empty").exists()
        assert (root / "bucket" / "kept" / "obj").exists()
