# Tests/Logging/test_logging_config.py
#
# Imports
import json
import sys
#
# Third-Party Imports
import pytest
from loguru import logger
#
# Local Imports
from zotero_patch.Logging_Config import setup_logger
from zotero_patch.Metrics.metrics_logger import log_counter, MetricsLogger
#
#######################################################################################################################
#
@pytest.fixture(autouse=True)
def restore_loguru():
    yield
    logger.remove()
    logger.add(sys.stderr)
    logger.disable("zotero_patch")


def test_metrics_are_routed_only_to_the_metrics_sink(tmp_path):
    app_log = tmp_path / "logs" / "app.log"
    metrics_log = tmp_path / "metrics" / "metrics.json"
    setup_logger("DEBUG", str(app_log), str(metrics_log))

    logger.info("starting batch 0")
    log_counter("zotero_requests_total", labels={"status": 200})
    logger.remove() # drains the enqueued sinks

    app_text = app_log.read_text(encoding="utf-8")
    assert "starting batch 0" in app_text
    assert "zotero_requests_total" not in app_text

    metric = json.loads(metrics_log.read_text(encoding="utf-8").splitlines()[-1])
    extra = metric["record"]["extra"]
    assert extra["event"] == "zotero_requests_total"
    assert extra["type"] == "counter"
    assert extra["labels"] == {"status": 200}


def test_metric_record_carries_merged_labels():
    records = []
    logger.enable("zotero_patch")
    sink_id = logger.add(records.append, level="METRIC", format="{message}")

    MetricsLogger(base_labels={"component": "sync_protocol"}).log_counter("zotero_requests_total",
                                                                          labels={"status": 412})
    logger.remove(sink_id)

    extra = records[-1].record["extra"]
    assert extra["labels"] == {"component": "sync_protocol", "status": 412}
    assert extra["type"] == "counter"


def test_package_is_silent_until_setup_logger():
    records = []
    sink_id = logger.add(records.append, level="TRACE", format="{message}")

    log_counter("zotero_requests_total", labels={"status": 200})
    logger.info("outside the package")
    logger.remove(sink_id)

    messages = [str(message) for message in records]
    assert not any("zotero_requests_total" in m for m in messages)
    assert any("outside the package" in m for m in messages)
