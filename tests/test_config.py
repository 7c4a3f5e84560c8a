"""
Tests for engine configuration and package logging setup.
"""

import dataclasses
import logging

import pytest

from canopy import Folder, NameExhaustionError, StructureConfig, StructureEngine, setup_logging


@pytest.fixture
def package_logger():
    """Restore the package logger after a test reconfigures it."""
    logger = logging.getLogger("canopy")
    level, handlers = logger.level, list(logger.handlers)
    yield logger
    for handler in logger.handlers:
        handler.close()
    logger.handlers[:] = handlers
    logger.setLevel(level)


class TestStructureConfig:
    """Tests for StructureConfig."""

    def test_defaults(self) -> None:
        config = StructureConfig()
        assert config.max_name_attempts == 10000
        assert config.strict_links
        assert config.unwrap_single_child

    def test_presets(self) -> None:
        assert StructureConfig.interactive().strict_links is True
        assert StructureConfig.batch().strict_links is False

    def test_frozen(self) -> None:
        with pytest.raises(dataclasses.FrozenInstanceError):
            StructureConfig().strict_links = False  # type: ignore[misc]

    def test_invalid_attempts(self) -> None:
        with pytest.raises(ValueError, match="max_name_attempts"):
            StructureConfig(max_name_attempts=0)

    def test_engine_uses_attempt_bound(self) -> None:
        """The engine passes its naming bound to the resolver."""
        engine = StructureEngine(config=StructureConfig(max_name_attempts=2))
        parent = Folder()
        for _ in range(3):
            engine.add(Folder("Bin"), parent)
        assert [c.name for c in parent.children] == ["Bin", "Bin1", "Bin2"]
        with pytest.raises(NameExhaustionError):
            engine.add(Folder("Bin"), parent)


class TestSetupLogging:
    """Tests for setup_logging."""

    def test_configures_package_logger(self, package_logger: logging.Logger) -> None:
        logger = setup_logging(logging.DEBUG)
        assert logger is package_logger
        assert logger.level == logging.DEBUG
        assert len(logger.handlers) == 1

    def test_repeat_call_does_not_duplicate(self, package_logger: logging.Logger) -> None:
        setup_logging()
        setup_logging()
        assert len(package_logger.handlers) == 1

    def test_log_file(self, package_logger: logging.Logger, tmp_path) -> None:
        log_file = tmp_path / "canopy.log"
        setup_logging(logging.DEBUG, log_file=str(log_file))
        logging.getLogger("canopy.structure").debug("Added .Sims.Field.Wheat")
        for handler in package_logger.handlers:
            handler.flush()
        assert "Added .Sims.Field.Wheat" in log_file.read_text(encoding="utf-8")
