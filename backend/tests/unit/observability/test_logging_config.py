"""Unit tests for logging configuration and capture-id correlation."""

import io
import json
import logging

from trapmail.observability.capture_context import get_capture_id, set_capture_id
from trapmail.observability.logging_config import configure_logging


class TestConfigureLogging:

    def test_json_lines_carry_capture_id(self):
        stream = io.StringIO()
        configure_logging(level="INFO", json_format=True, stream=stream)
        set_capture_id("trapmail_1_2_3")

        logging.getLogger("trapmail.test").info("stored")

        record = json.loads(stream.getvalue())
        assert record["level"] == "INFO"
        assert record["message"] == "stored"
        assert record["capture_id"] == "trapmail_1_2_3"

    def test_plain_format(self):
        stream = io.StringIO()
        configure_logging(level="WARNING", json_format=False, stream=stream)
        set_capture_id(None)

        logging.getLogger("trapmail.test").warning("ignored option")
        logging.getLogger("trapmail.test").info("not shown")

        output = stream.getvalue()
        assert "WARNING - no-capture-id" in output
        assert "ignored option" in output
        assert "not shown" not in output

    def test_exception_info_in_json(self):
        stream = io.StringIO()
        configure_logging(level="ERROR", json_format=True, stream=stream)

        try:
            raise OSError("disk full")
        except OSError:
            logging.getLogger("trapmail.test").error("write failed", exc_info=True)

        record = json.loads(stream.getvalue())
        assert record["error"] == "disk full"
        assert "Traceback" in record["traceback"]


def test_capture_id_default():
    set_capture_id(None)

    assert get_capture_id() == "no-capture-id"
