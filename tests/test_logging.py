import logging

import pytest

from schemagraph.settings import settings
from schemagraph.utilities.logging import configure_logging, get_logger, resolve_level


@pytest.fixture
def namespace_logger():
    logger = logging.getLogger("schemagraph")
    handlers, level = list(logger.handlers), logger.level
    yield logger
    logger.handlers[:] = handlers
    logger.setLevel(level)


def test_get_logger_is_namespaced():
    assert get_logger("builder.session").name == "schemagraph.builder.session"


def test_resolve_level():
    assert resolve_level("debug") == logging.DEBUG
    assert resolve_level(logging.ERROR) == logging.ERROR
    with pytest.raises(ValueError, match="Invalid log level: LOUD"):
        resolve_level("LOUD")


def test_reconfiguring_replaces_the_handler(namespace_logger):
    foreign = logging.NullHandler()
    namespace_logger.addHandler(foreign)

    configure_logging("warning")
    configure_logging("debug")

    ours = [h for h in namespace_logger.handlers if h is not foreign]
    assert len(ours) == 1
    assert foreign in namespace_logger.handlers
    assert namespace_logger.level == logging.DEBUG


def test_level_defaults_to_settings(namespace_logger, monkeypatch):
    monkeypatch.setattr(settings, "log_level", "ERROR")
    assert configure_logging() is namespace_logger
    assert namespace_logger.level == logging.ERROR
