"""Tests for connection configuration."""

import logging

import pytest

from eth2client.config import AdapterLogger, ClientConfig
from eth2client.exceptions import ConfigError


def test_address_is_normalized():
    config = ClientConfig(address="localhost:5052/", backend="Teku")
    assert config.address == "http://localhost:5052"
    assert config.backend == "teku"
    assert not config.uses_tls
    assert config.ssl_context() is None


def test_https_uses_tls():
    assert ClientConfig(address="https://node.example:5052").uses_tls


@pytest.mark.parametrize(
    "options, message",
    [
        ({"address": ""}, "address is required"),
        ({"address": "ftp://node"}, "unsupported address scheme"),
        ({"backend": "nimbus"}, "unknown backend nimbus"),
        ({"timeout": 0}, "timeout must be positive"),
        ({"timeout": "soon"}, "invalid duration"),
        ({"head_poll_interval": -1}, "head_poll_interval must be positive"),
        ({"log_level": "chatty"}, "unknown log level"),
        ({"tls_client_cert": "client.pem"}, "must be set together"),
        ({"extra_headers": ["x"]}, "extra_headers must be a mapping"),
    ],
)
def test_invalid_values(options, message):
    with pytest.raises(ConfigError, match=message):
        ClientConfig(**options)


def test_log_level_is_uppercased():
    assert ClientConfig(log_level="debug").log_level == "DEBUG"


def test_from_dict(caplog):
    with caplog.at_level(logging.WARNING, logger="eth2client.config"):
        config = ClientConfig.from_dict(
            {"address": "http://a:1", "timeout": "5", "colour": "blue"},
            backend="prysm",
            timeout=None,
        )
    assert config.address == "http://a:1"
    assert config.backend == "prysm"
    assert config.timeout == 5.0
    assert "Ignoring unknown configuration key colour" in caplog.text


def test_from_dict_rejects_bad_input():
    with pytest.raises(ConfigError, match="address is required"):
        ClientConfig.from_dict({"backend": "teku"})
    with pytest.raises(ConfigError, match="must be a mapping"):
        ClientConfig.from_dict(["address"])


def test_from_yaml(tmp_path):
    path = tmp_path / "eth2client.yaml"
    path.write_text(
        "address: http://beacon:5052\n"
        "backend: lighthouse\n"
        "head_poll_interval: 0.5\n"
        "extra_headers:\n"
        "  Authorization: Bearer token\n"
    )
    config = ClientConfig.from_yaml(path, address="http://other:5052")
    assert config.address == "http://other:5052"
    assert config.backend == "lighthouse"
    assert config.head_poll_interval == 0.5
    assert config.extra_headers == {"Authorization": "Bearer token"}


def test_from_yaml_errors(tmp_path):
    with pytest.raises(ConfigError, match="cannot read config file"):
        ClientConfig.from_yaml(tmp_path / "missing.yaml")
    path = tmp_path / "broken.yaml"
    path.write_text("address: [unterminated\n")
    with pytest.raises(ConfigError, match="invalid YAML"):
        ClientConfig.from_yaml(path)


def test_adapter_logger_prefix_and_level(caplog):
    config = ClientConfig(address="http://a:1", log_level="WARNING")
    log = config.adapter_logger(logging.getLogger("eth2client.test"), "teku")
    assert isinstance(log, AdapterLogger)
    with caplog.at_level(logging.DEBUG, logger="eth2client.test"):
        log.info("hidden")
        log.warning("shown")
    assert "hidden" not in caplog.text
    assert "[teku http://a:1] shown" in caplog.text
