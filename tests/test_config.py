"""Tests for configuration module.

Tests for HarnessConfig and configure_logging.
"""

import logging
import os
from unittest.mock import patch

import pytest

from ggtest.utils.config import (
    VALID_LOG_LEVELS,
    ConfigurationError,
    HarnessConfig,
    configure_logging,
)


class TestHarnessConfig:
    """Tests for HarnessConfig class."""

    def test_default_values(self):
        """Test default configuration values."""
        config = HarnessConfig()
        assert config.region == "us-east-1"
        assert config.env_stage == "prod"
        assert config.tes_role_name == ""
        assert config.iot_policy_name == ""
        assert config.proxy_url == ""
        assert config.nucleus_version == "2.0.0"
        assert config.data_plane_port == 8443
        assert config.test_results_path == "testResults"
        assert config.persist_installed_software is False
        assert config.call_timeout_seconds == 60
        assert config.log_level == "INFO"

    def test_from_environment(self):
        """Test every variable is read from the environment."""
        env = {
            "AWS_REGION": "eu-west-1",
            "GG_ENV_STAGE": "Gamma",
            "GG_TES_ROLE_NAME": "MyTesRole",
            "GG_IOT_POLICY_NAME": "MyIotPolicy",
            "GG_PROXY_URL": "http://proxy.local:3128",
            "GG_NUCLEUS_VERSION": "2.5.0",
            "GG_DATA_PLANE_PORT": "9443",
            "GG_TEST_RESULTS_PATH": "/tmp/results",
            "GG_ROOT_CA_PATH": "/etc/ssl/AmazonRootCA1.pem",
            "GG_PERSIST_INSTALLED_SOFTWARE": "true",
            "GG_CALL_TIMEOUT_SECONDS": "15",
            "LOG_LEVEL": "debug",
        }
        with patch.dict(os.environ, env, clear=True):
            config = HarnessConfig.from_environment()

        assert config.region == "eu-west-1"
        assert config.env_stage == "gamma"
        assert config.tes_role_name == "MyTesRole"
        assert config.iot_policy_name == "MyIotPolicy"
        assert config.proxy_url == "http://proxy.local:3128"
        assert config.nucleus_version == "2.5.0"
        assert config.data_plane_port == 9443
        assert config.test_results_path == "/tmp/results"
        assert config.root_ca_path == "/etc/ssl/AmazonRootCA1.pem"
        assert config.persist_installed_software is True
        assert config.call_timeout_seconds == 15
        assert config.log_level == "DEBUG"

    def test_invalid_integer_raises(self):
        """Test a non-integer port is a configuration error."""
        with patch.dict(os.environ, {"GG_DATA_PLANE_PORT": "eighty"}, clear=True):
            with pytest.raises(ConfigurationError) as exc_info:
                HarnessConfig.from_environment()
        assert "GG_DATA_PLANE_PORT" in str(exc_info.value)

    def test_invalid_log_level_defaults_to_info(self, caplog):
        """Test invalid LOG_LEVEL warns and falls back to INFO."""
        with patch.dict(os.environ, {"LOG_LEVEL": "LOUD"}, clear=True):
            with caplog.at_level(logging.WARNING):
                config = HarnessConfig.from_environment()
        assert config.log_level == "INFO"
        assert "Invalid LOG_LEVEL" in caplog.text

    def test_invalid_env_stage_fails_validation(self):
        """Test an unknown stage is rejected."""
        with patch.dict(os.environ, {"GG_ENV_STAGE": "alpha"}, clear=True):
            with pytest.raises(ConfigurationError) as exc_info:
                HarnessConfig.from_environment()
        assert any("GG_ENV_STAGE" in e for e in exc_info.value.errors)

    def test_validation_can_be_skipped(self):
        """Test validate=False returns an invalid config without raising."""
        with patch.dict(os.environ, {"AWS_REGION": "nowhere"}, clear=True):
            config = HarnessConfig.from_environment(validate=False)
        assert config.region == "nowhere"
        assert config.validate()

    @pytest.mark.parametrize(
        "field,value",
        [
            ("data_plane_port", 0),
            ("data_plane_port", 70000),
            ("call_timeout_seconds", 0),
            ("tes_role_name", "bad role name"),
            ("iot_policy_name", "bad/policy"),
            ("proxy_url", "proxy.local:3128"),
            ("region", ""),
        ],
    )
    def test_validate_rejects(self, field, value):
        """Test validate reports each invalid field."""
        config = HarnessConfig(**{field: value})
        assert config.validate() != []

    def test_validate_accepts_defaults(self):
        """Test the default configuration is valid."""
        assert HarnessConfig().validate() == []

    def test_get_numeric_log_level(self):
        """Test numeric log level conversion."""
        assert HarnessConfig(log_level="WARNING").get_numeric_log_level() == logging.WARNING


class TestConfigureLogging:
    """Tests for configure_logging."""

    def test_configure_from_config(self):
        """Test the package logger takes the configured level."""
        logger = configure_logging(HarnessConfig(log_level="DEBUG"))
        assert logger.name == "ggtest"
        assert logger.level == logging.DEBUG

    def test_botocore_never_below_info(self):
        """Test botocore is kept at INFO even when debugging."""
        configure_logging(HarnessConfig(log_level="DEBUG"))
        assert logging.getLogger("botocore").level == logging.INFO

    def test_configure_from_environment(self):
        """Test configuration from LOG_LEVEL when no config is given."""
        with patch.dict(os.environ, {"LOG_LEVEL": "ERROR"}, clear=True):
            logger = configure_logging()
        assert logger.level == logging.ERROR

    def test_valid_log_levels(self):
        """Test the accepted log level names."""
        assert VALID_LOG_LEVELS == {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
