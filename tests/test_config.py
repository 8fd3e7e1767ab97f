"""
Test suite for package configuration.

Tests cover:
- Default values and reset
- temp_config restoration (normal exit and exceptions)
- Invalid attribute names
- Logging setup
"""

import logging

import pytest

import metabole
from metabole import config, temp_config
from metabole.config import MetaboleConfig
from metabole.logging_config import setup_logging


class TestConfiguration:
    """Global configuration object."""

    def test_defaults(self):
        assert config.STRICT_VALIDATION is True
        assert config.INTERPOLATION_ORDER == 3
        assert config.ENCKE_REFERENCE == 'kepler'

    def test_reset(self):
        config.INTERPOLATION_ORDER = 1
        config.ENCKE_REFERENCE = 'taylor'
        config.reset()
        assert config.INTERPOLATION_ORDER == 3
        assert config.ENCKE_REFERENCE == 'kepler'

    def test_package_exposes_same_object(self):
        assert metabole.config is config

    def test_repr_lists_settings(self):
        text = repr(MetaboleConfig())
        assert "INTERPOLATION_ORDER = 3" in text
        assert "ENCKE_REFERENCE = 'kepler'" in text


class TestTempConfig:
    """Temporary configuration changes."""

    def test_values_restored(self):
        with temp_config(INTERPOLATION_ORDER=1, FD_STATE_MINIMUM_STEP=1.0) as cfg:
            assert cfg.INTERPOLATION_ORDER == 1
            assert config.FD_STATE_MINIMUM_STEP == 1.0
        assert config.INTERPOLATION_ORDER == 3
        assert config.FD_STATE_MINIMUM_STEP == 1e-3

    def test_values_restored_on_exception(self):
        with pytest.raises(RuntimeError):
            with temp_config(STRICT_VALIDATION=False):
                raise RuntimeError("boom")
        assert config.STRICT_VALIDATION is True

    def test_unknown_attribute(self):
        with pytest.raises(AttributeError, match="no attribute"):
            with temp_config(NOT_A_SETTING=1):
                pass


class TestLoggingSetup:
    """dictConfig-based logging setup."""

    def test_creates_log_file(self, tmp_path):
        log_dir = tmp_path / "logs"
        root = logging.getLogger()
        saved_handlers, saved_level = root.handlers[:], root.level
        try:
            setup_logging(log_dir=str(log_dir))
            logging.getLogger("metabole.solver").info("solver message")
            for handler in root.handlers:
                handler.flush()
            assert (log_dir / "propagation.log").exists()
            assert "solver message" in (log_dir / "propagation.log").read_text()
        finally:
            for handler in root.handlers:
                if handler not in saved_handlers:
                    handler.close()
            root.handlers = saved_handlers
            root.setLevel(saved_level)
            integrator_logger = logging.getLogger("metabole.integrators")
            for handler in integrator_logger.handlers:
                handler.close()
            integrator_logger.handlers = []
            integrator_logger.propagate = True
            integrator_logger.setLevel(logging.NOTSET)
