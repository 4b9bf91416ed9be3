"""Configuration for eth2client connections."""

import logging
import ssl
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Optional

import yaml

from .exceptions import ConfigError

logger = logging.getLogger(__name__)

BACKENDS = ("auto", "standard", "lighthouse", "teku", "prysm")
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class AdapterLogger(logging.LoggerAdapter):
    """Tags records with the adapter name and address.

    The level is held on the adapter itself so configuring one connection
    never touches the shared module loggers.
    """

    def __init__(self, logger: logging.Logger, backend: str, address: str, level: str = "INFO"):
        super().__init__(logger, {"backend": backend, "address": address})
        self.level = logging.getLevelName(level.upper()) if isinstance(level, str) else level

    def isEnabledFor(self, level: int) -> bool:
        return level >= self.level and self.logger.isEnabledFor(level)

    def process(self, msg, kwargs):
        return f"[{self.extra['backend']} {self.extra['address']}] {msg}", kwargs


@dataclass
class ClientConfig:
    """Connection configuration for one beacon node."""

    address: str = "http://localhost:5052"
    backend: str = "auto"
    timeout: float = 2.0
    tls_ca_cert: Optional[str] = None
    tls_client_cert: Optional[str] = None
    tls_client_key: Optional[str] = None
    log_level: str = "INFO"
    head_poll_interval: float = 0.2
    extra_headers: dict = field(default_factory=dict)

    def __post_init__(self):
        self.validate()

    def validate(self) -> None:
        if not isinstance(self.address, str) or not self.address.strip():
            raise ConfigError("address is required")
        address = self.address.strip().rstrip("/")
        if "://" not in address:
            address = f"http://{address}"
        scheme = address.split("://", 1)[0].lower()
        if scheme not in ("http", "https"):
            raise ConfigError(f"unsupported address scheme {scheme}")
        self.address = address

        self.backend = str(self.backend).lower()
        if self.backend not in BACKENDS:
            raise ConfigError(f"unknown backend {self.backend}, expected one of {', '.join(BACKENDS)}")

        try:
            self.timeout = float(self.timeout)
            self.head_poll_interval = float(self.head_poll_interval)
        except (TypeError, ValueError) as e:
            raise ConfigError(f"invalid duration: {e}") from e
        if self.timeout <= 0:
            raise ConfigError("timeout must be positive")
        if self.head_poll_interval <= 0:
            raise ConfigError("head_poll_interval must be positive")

        self.log_level = str(self.log_level).upper()
        if self.log_level not in LOG_LEVELS:
            raise ConfigError(f"unknown log level {self.log_level}")

        if (self.tls_client_cert is None) != (self.tls_client_key is None):
            raise ConfigError("tls_client_cert and tls_client_key must be set together")

        if self.extra_headers is None:
            self.extra_headers = {}
        if not isinstance(self.extra_headers, dict):
            raise ConfigError("extra_headers must be a mapping")

    @property
    def uses_tls(self) -> bool:
        return self.address.startswith("https://") or self.tls_ca_cert is not None

    def ssl_context(self) -> Optional[ssl.SSLContext]:
        """Build an SSL context from the configured TLS material, if any."""
        if self.tls_ca_cert is None and self.tls_client_cert is None:
            return None
        context = ssl.create_default_context(cafile=self.tls_ca_cert)
        if self.tls_client_cert is not None:
            context.load_cert_chain(self.tls_client_cert, self.tls_client_key)
        return context

    def adapter_logger(self, logger: logging.Logger, backend: str) -> AdapterLogger:
        return AdapterLogger(logger, backend, self.address, self.log_level)

    @classmethod
    def from_yaml(cls, path: str | Path, **overrides) -> "ClientConfig":
        """Load configuration from a YAML file.

        Keyword overrides that are not None replace values from the file.
        """
        try:
            with open(path) as f:
                data = yaml.safe_load(f)
        except OSError as e:
            raise ConfigError(f"cannot read config file {path}: {e}") from e
        except yaml.YAMLError as e:
            raise ConfigError(f"invalid YAML in {path}: {e}") from e
        return cls.from_dict(data, **overrides)

    @classmethod
    def from_dict(cls, data, **overrides) -> "ClientConfig":
        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ConfigError("configuration must be a mapping")

        known = {f.name for f in fields(cls)}
        values = {}
        for key, value in data.items():
            if key not in known:
                logger.warning(f"Ignoring unknown configuration key {key}")
                continue
            values[key] = value
        for key, value in overrides.items():
            if value is not None:
                values[key] = value

        if "address" not in values:
            raise ConfigError("address is required")
        return cls(**values)
