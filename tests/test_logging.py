import io
import json
import logging
import sys

import pytest
from loguru import logger

from levelup_api.core.logging import configure_logging


@pytest.fixture
def json_stream():
    stream = io.StringIO()
    configure_logging(service_name="levelup-api", environment="test", version="0.1.0", stream=stream)
    try:
        yield stream
    finally:
        logger.remove()
        logger.add(sys.stderr)
        logging.basicConfig(handlers=[logging.StreamHandler()], level=logging.WARNING, force=True)


def _lines(stream: io.StringIO) -> list[dict]:
    return [json.loads(line) for line in stream.getvalue().splitlines() if line.strip()]


def test_configure_logging_emits_json_lines(json_stream) -> None:
    logger.info("Created order", order_number="ORD-20261019-00001", points_earned=200)

    payload = _lines(json_stream)[-1]
    assert payload["message"] == "Created order"
    assert payload["level"] == "info"
    assert payload["service"] == "levelup-api"
    assert payload["environment"] == "test"
    assert payload["version"] == "0.1.0"
    assert payload["order_number"] == "ORD-20261019-00001"
    assert payload["points_earned"] == 200
    assert "trace_id" not in payload


def test_stdlib_records_are_routed_with_extras(json_stream) -> None:
    logging.getLogger("levelup.checkout").warning(
        "Stock low for %s", "PRD-0001", extra={"product_code": "PRD-0001"}
    )

    payload = _lines(json_stream)[-1]
    assert payload["message"] == "Stock low for PRD-0001"
    assert payload["level"] == "warning"
    assert payload["product_code"] == "PRD-0001"
    assert payload["stdlib_logger"] == "levelup.checkout"
    assert "msg" not in payload


def test_debug_records_are_filtered_at_info(json_stream) -> None:
    logger.debug("Quote computed")
    logger.info("Quote accepted")

    assert [payload["message"] for payload in _lines(json_stream)] == ["Quote accepted"]
