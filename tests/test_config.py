"""Tests for DirStore configuration loading."""

import tempfile
from pathlib import Path

import pytest
import yaml

from dirstore.config import DirStoreConfig, load_config


def _load(data) -> DirStoreConfig:
    with tempfile.NamedTemporaryFile(mode="w", suffix=".yaml", delete=False) as f:
        yaml.dump(data, f)
        f.flush()
        return load_config(Path(f.name))


class TestLoadConfig:
    """Tests for load_config()."""

    def test_load_example_config(self):
        """Loading the example config file populates all fields."""
        config = load_config(Path(__file__).resolve().parent.parent / "dirstore.example.yaml")
        assert config.server.host == "0.0.0.0"
        assert config.server.port == 9000
        assert config.server.owner_id == "dirstore"
        assert config.metadata.sqlite_path == "./data/metadata.db"
        assert config.storage.root_dir == "./data/objects"
        assert config.storage.tmp_dir == "tmp"
        assert config.storage.max_cleanup_passes == 0
        assert config.observability.metrics is True

    def test_load_minimal_config(self):
        """An empty YAML document uses defaults for all fields."""
        config = _load({})
        assert config == DirStoreConfig()

    def test_load_custom_server(self):
        config = _load({"server": {"port": 9010, "host": "127.0.0.1", "log_format": "json"}})
        assert config.server.port == 9010
        assert config.server.host == "127.0.0.1"
        assert config.server.log_format == "json"
        assert config.server.region == "us-east-1"

    def test_nested_metadata_sqlite_path(self):
        config = _load({"metadata": {"sqlite": {"path": "/custom/path.db"}}})
        assert config.metadata.sqlite_path == "/custom/path.db"

    def test_storage_section(self):
        config = _load(
            {
                "storage": {
                    "local": {"root_dir": "/srv/objects"},
                    "tmp_dir": "/srv/tmp",
                    "max_cleanup_passes": 8,
                }
            }
        )
        assert config.storage.root_dir == "/srv/objects"
        assert config.storage.tmp_dir == "/srv/tmp"
        assert config.storage.max_cleanup_passes == 8

    def test_observability_disabled(self):
        config = _load({"observability": {"metrics": False, "health_check": False}})
        assert config.observability.metrics is False
        assert config.observability.health_check is False

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "absent.yaml")
