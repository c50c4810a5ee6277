"""Configuration loading and Pydantic models for BucketDAV."""

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field


class ServerConfig(BaseModel):
    """Server binding and runtime configuration."""

    host: str = "0.0.0.0"
    port: int = 8080
    log_level: str = "INFO"
    log_format: str = "text"
    shutdown_timeout: int = 30


class AuthConfig(BaseModel):
    """HTTP Basic credential configuration.

    A single username/password pair guards every WebDAV request.
    """

    enabled: bool = True
    username: str = "bucketdav"
    password: str = "bucketdav-secret"
    realm: str = "webdav"


class StorageConfig(BaseModel):
    """Object store backend configuration."""

    backend: str = "memory"
    list_page_size: int = 1000
    sqlite_path: str = "./data/bucketdav.db"
    s3_bucket: str = ""
    s3_region: str = "us-east-1"
    s3_prefix: str = ""
    s3_endpoint_url: str = ""
    s3_use_path_style: bool = False
    s3_access_key_id: str = ""
    s3_secret_access_key: str = ""


class CorsConfig(BaseModel):
    """CORS decoration applied to every response.

    ``allow_origin`` of None echoes the request's Origin header, or ``*``
    when the request carries none.
    """

    enabled: bool = True
    allow_origin: str | None = None
    max_age: int = 86400


class ObservabilityConfig(BaseModel):
    """Metrics and health check toggles."""

    metrics: bool = True
    health_check: bool = True


class BucketDavConfig(BaseModel):
    """Top-level BucketDAV configuration."""

    server: ServerConfig = Field(default_factory=ServerConfig)
    auth: AuthConfig = Field(default_factory=AuthConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    cors: CorsConfig = Field(default_factory=CorsConfig)
    observability: ObservabilityConfig = Field(default_factory=ObservabilityConfig)


def _parse_server(data: dict[str, Any] | None) -> dict[str, Any]:
    """Parse the server section from YAML data into a dict for Pydantic."""
    if data is None:
        return {}
    return {
        "host": data.get("host", "0.0.0.0"),
        "port": data.get("port", 8080),
        "log_level": data.get("log_level", "INFO"),
        "log_format": data.get("log_format", "text"),
        "shutdown_timeout": data.get("shutdown_timeout", 30),
    }


def _parse_auth(data: dict[str, Any] | None) -> dict[str, Any]:
    """Parse the auth section from YAML data."""
    if data is None:
        return {}
    result: dict[str, Any] = {"enabled": data.get("enabled", True)}
    for key in ("username", "password", "realm"):
        if key in data:
            result[key] = str(data[key])
    return result


def _parse_storage(data: dict[str, Any] | None) -> dict[str, Any]:
    """Parse the storage section from YAML data.

    Handles nested structure: storage.sqlite.path -> sqlite_path,
    storage.s3.bucket -> s3_bucket, etc.
    """
    if data is None:
        return {}

    result: dict[str, Any] = {
        "backend": data.get("backend", "memory"),
        "list_page_size": data.get("list_page_size", 1000),
    }

    sqlite_section = data.get("sqlite")
    if isinstance(sqlite_section, dict):
        result["sqlite_path"] = sqlite_section.get("path", "./data/bucketdav.db")

    s3_section = data.get("s3")
    if isinstance(s3_section, dict):
        result["s3_bucket"] = s3_section.get("bucket", "")
        result["s3_region"] = s3_section.get("region", "us-east-1")
        result["s3_prefix"] = s3_section.get("prefix", "")
        result["s3_endpoint_url"] = s3_section.get("endpoint_url", "")
        result["s3_use_path_style"] = s3_section.get("use_path_style", False)
        result["s3_access_key_id"] = s3_section.get("access_key_id", "")
        result["s3_secret_access_key"] = s3_section.get("secret_access_key", "")

    return result


def _parse_cors(data: dict[str, Any] | None) -> dict[str, Any]:
    """Parse the cors section from YAML data."""
    if data is None:
        return {}
    return {
        "enabled": data.get("enabled", True),
        "allow_origin": data.get("allow_origin"),
        "max_age": data.get("max_age", 86400),
    }


def _parse_observability(data: dict[str, Any] | None) -> dict[str, Any]:
    """Parse the observability section from YAML data."""
    if data is None:
        return {}
    return {
        "metrics": data.get("metrics", True),
        "health_check": data.get("health_check", True),
    }


def load_config(path: Path) -> BucketDavConfig:
    """Load a BucketDavConfig from a YAML file.

    Args:
        path: Path to the YAML configuration file.

    Returns:
        A fully populated BucketDavConfig validated by Pydantic.

    Raises:
        FileNotFoundError: If the config file does not exist.
        yaml.YAMLError: If the file is not valid YAML.
    """
    with open(path, "r") as fh:
        raw: dict[str, Any] = yaml.safe_load(fh) or {}

    return BucketDavConfig(
        server=ServerConfig(**_parse_server(raw.get("server"))),
        auth=AuthConfig(**_parse_auth(raw.get("auth"))),
        storage=StorageConfig(**_parse_storage(raw.get("storage"))),
        cors=CorsConfig(**_parse_cors(raw.get("cors"))),
        observability=ObservabilityConfig(**_parse_observability(raw.get("observability"))),
    )
