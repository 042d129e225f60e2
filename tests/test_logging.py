"""
Tests for the logging setup.

Covers:
- No file sinks unless asked for
- Host sinks survive importing and configuring the engine
- configure_logging() file sinks and reset
"""

from loguru import logger

from punchline.config import logger as engine_logging
from punchline.config.logger import configure_logging, log_performance, log_repair
from punchline.config.settings import Settings


def _capture():
    messages = []
    handler_id = logger.add(lambda message: messages.append(message.record["message"]), level="DEBUG")
    return messages, handler_id


class TestDefaults:
    """Importing the engine leaves logging alone."""

    def test_file_logging_off_by_default(self, monkeypatch):
        monkeypatch.delenv("LOG_TO_FILE", raising=False)
        assert Settings().LOG_TO_FILE is False

    def test_no_engine_sinks_at_import(self):
        assert engine_logging.loguru_config.handler_count == 0

    def test_host_sink_receives_engine_messages(self):
        messages, handler_id = _capture()
        try:
            log_performance("batch_pipeline", 0.01)
            log_repair("ending", "we went to the", "we went to the whole time", "the")
        finally:
            logger.remove(handler_id)
        assert any(m.startswith("PERFORMANCE: batch_pipeline") for m in messages)
        assert any(m.startswith("REPAIR [ending]") for m in messages)


class TestConfigureLogging:
    """Opt-in sinks."""

    def test_file_sinks_created(self, tmp_path):
        config = configure_logging(to_file=True, logs_dir=str(tmp_path / "logs"), console=False)
        try:
            log_performance("batch_pipeline", 0.01)
            assert config.handler_count == 4
            names = {p.name for p in (tmp_path / "logs").iterdir()}
            assert {"app.log", "errors.log", "repairs.log", "performance.log"} <= names
        finally:
            config.reset()
        assert config.handler_count == 0

    def test_reset_keeps_host_sink(self, tmp_path):
        messages, handler_id = _capture()
        try:
            config = configure_logging(to_file=False, logs_dir=str(tmp_path), console=False)
            config.reset()
            log_performance("after_reset", 0.01)
        finally:
            logger.remove(handler_id)
        assert any("after_reset" in m for m in messages)

    def test_reconfigure_replaces_own_sinks(self, tmp_path):
        config = configure_logging(to_file=True, logs_dir=str(tmp_path), console=False)
        try:
            config = configure_logging(to_file=True, console=False)
            assert config.handler_count == 4
        finally:
            config.reset()
