"""Configuration loading and Pydantic models for DirStore."""

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field


class ServerConfig(BaseModel):
    """Server binding and runtime configuration."""

    host: str = "0.0.0.0"
    port: int = 9000
    region: str = "us-east-1"
    log_level: str = "INFO"
    log_format: str = "text"
    shutdown_timeout: int = 30
    owner_id: str = "dirstore"
    owner_display: str = "dirstore"


class MetadataConfig(BaseModel):
    """Metadata catalog configuration."""

    sqlite_path: str = "./data/metadata.db"


class StorageConfig(BaseModel):
    """Object storage configuration.

    ``root_dir`` holds the ``bucket/key`` tree. ``tmp_dir`` holds multipart
    sessions under ``multiparts/s3o_<upload_id>``, independent of the tree.
    ``max_cleanup_passes`` bounds the empty-directory sweep (0 = unbounded).
    """

    root_dir: str = "./data/objects"
    tmp_dir: str = "tmp"
    max_cleanup_passes: int = 0


class ObservabilityConfig(BaseModel):
    """Metrics and health check toggles."""

    metrics: bool = True
    health_check: bool = True


class DirStoreConfig(BaseModel):
    """Top-level DirStore configuration."""

    server: ServerConfig = Field(default_factory=ServerConfig)
    metadata: MetadataConfig = Field(default_factory=MetadataConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    observability: ObservabilityConfig = Field(default_factory=ObservabilityConfig)


def _parse_server(data: dict[str, Any] | None) -> dict[str, Any]:
    """Parse the server section from YAML data into a dict for Pydantic."""
    if data is None:
        return {}
    defaults = ServerConfig()
    return {
        "host": data.get("host", defaults.host),
        "port": data.get("port", defaults.port),
        "region": data.get("region", defaults.region),
        "log_level": data.get("log_level", defaults.log_level),
        "log_format": data.get("log_format", defaults.log_format),
        "shutdown_timeout": data.get("shutdown_timeout", defaults.shutdown_timeout),
        "owner_id": data.get("owner_id", defaults.owner_id),
        "owner_display": data.get("owner_display", defaults.owner_display),
    }


def _parse_metadata(data: dict[str, Any] | None) -> dict[str, Any]:
    """Parse the metadata section from YAML data.

    Handles nested structure: metadata.sqlite.path -> sqlite_path
    """
    if data is None:
        return {}
    result: dict[str, Any] = {}
    sqlite_section = data.get("sqlite")
    if isinstance(sqlite_section, dict):
        result["sqlite_path"] = sqlite_section.get("path", "./data/metadata.db")
    return result


def _parse_storage(data: dict[str, Any] | None) -> dict[str, Any]:
    """Parse the storage section from YAML data.

    Handles nested structure: storage.local.root_dir -> root_dir
    """
    if data is None:
        return {}

    result: dict[str, Any] = {}
    local_section = data.get("local")
    if isinstance(local_section, dict):
        result["root_dir"] = local_section.get("root_dir", "./data/objects")
    if "tmp_dir" in data:
        result["tmp_dir"] = data["tmp_dir"]
    if "max_cleanup_passes" in data:
        result["max_cleanup_passes"] = data["max_cleanup_passes"]
    return result


def _parse_observability(data: dict[str, Any] | None) -> dict[str, Any]:
    """Parse the observability section from YAML data."""
    if data is None:
        return {}
    return {
        "metrics": data.get("metrics", True),
        "health_check": data.get("health_check", True),
    }


def load_config(path: Path) -> DirStoreConfig:
    """Load a DirStoreConfig from a YAML file.

    Args:
        path: Path to the YAML configuration file.

    Returns:
        A fully populated DirStoreConfig validated by Pydantic.

    Raises:
        FileNotFoundError: If the config file does not exist.
        yaml.YAMLError: If the file is not valid YAML.
    """
    with open(path, "r") as fh:
        raw: dict[str, Any] = yaml.safe_load(fh) or {}

    return DirStoreConfig(
        server=ServerConfig(**_parse_server(raw.get("server"))),
        metadata=MetadataConfig(**_parse_metadata(raw.get("metadata"))),
        storage=StorageConfig(**_parse_storage(raw.get("storage"))),
        observability=ObservabilityConfig(**_parse_observability(raw.get("observability"))),
    )
