from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Sequence

import yaml

from .errors import ConfigurationError

DEFAULT_HOST = "localhost"
DEFAULT_PORT = 8108
DEFAULT_PROTOCOL = "http"
PROTOCOLS = ("http", "https")


@dataclass(frozen=True)
class ConnectionConfig:
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    protocol: str = DEFAULT_PROTOCOL
    api_key: str = ""

    @property
    def base_url(self) -> str:
        return f"{self.protocol}://{self.host}:{self.port}"


@dataclass
class HttpConfig:
    user_agent: str = "typesense-mcp/1.0"
    connection_timeout_seconds: float = 5


@dataclass
class LogConfig:
    path: str = field(
        default_factory=lambda: os.path.join(
            tempfile.gettempdir(), "typesense-mcp.log"
        )
    )
    level: str = "INFO"


@dataclass
class SampleConfig:
    resource_sample_size: int = 1
    prompt_sample_size: int = 5


@dataclass
class AppConfig:
    http: HttpConfig = field(default_factory=HttpConfig)
    logging: LogConfig = field(default_factory=LogConfig)
    samples: SampleConfig = field(default_factory=SampleConfig)


def load_config(path: Optional[str] = None) -> AppConfig:
    """Load settings from YAML; falls back to defaults if missing."""
    cfg_path = (
        Path(path)
        if path
        else Path(os.getenv("TYPESENSE_MCP_CONFIG", "env/config.yaml"))
    )
    if not cfg_path.exists():
        return AppConfig()
    with cfg_path.open("r", encoding="utf-8") as f:
        try:
            data = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise ConfigurationError(f"Invalid config file {cfg_path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigurationError(
            f"Invalid config file {cfg_path}: top level must be a mapping"
        )
    http = data.get("http", {})
    log = data.get("logging", {})
    samples = data.get("samples", {})
    try:
        return AppConfig(
            http=HttpConfig(**http),
            logging=LogConfig(**log),
            samples=SampleConfig(**samples),
        )
    except TypeError as exc:
        raise ConfigurationError(f"Invalid config file {cfg_path}: {exc}") from exc


def resolve_connection(argv: Sequence[str]) -> ConnectionConfig:
    """Build the Typesense connection from command-line flags.

    Recognized: --host, --port, --protocol (http|https), --api-key.
    Anything else is ignored, as is a --protocol value outside http/https.
    """
    host = DEFAULT_HOST
    port = DEFAULT_PORT
    protocol = DEFAULT_PROTOCOL
    api_key = ""

    args = list(argv)
    i = 0
    while i < len(args):
        arg = args[i]
        has_value = i + 1 < len(args)
        if arg == "--host" and has_value:
            i += 1
            host = args[i]
        elif arg == "--port" and has_value:
            i += 1
            try:
                port = int(args[i])
            except ValueError:
                raise ConfigurationError(
                    f"Invalid --port value: {args[i]!r}"
                ) from None
        elif arg == "--protocol" and has_value:
            i += 1
            if args[i] in PROTOCOLS:
                protocol = args[i]
        elif arg == "--api-key" and has_value:
            i += 1
            api_key = args[i]
        i += 1

    if not api_key:
        raise ConfigurationError(
            "Typesense API key is required. Use --api-key argument."
        )

    return ConnectionConfig(
        host=host, port=port, protocol=protocol, api_key=api_key
    )
