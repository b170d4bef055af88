from __future__ import annotations

import logging

import pytest

from sceneflow.config import Settings
from sceneflow.models.job import StageName
from sceneflow.pipeline.context import ProgressEvent, QueueProgressReporter
from sceneflow.utils.logging_setup import reset_logging, setup_logging


def _event(pct: int) -> ProgressEvent:
    return ProgressEvent(stage=StageName.LAYOUT, scene_index=0, percent=pct)


@pytest.mark.asyncio
async def test_queue_reporter_drops_oldest_when_full() -> None:
    reporter = QueueProgressReporter(maxsize=2)
    for pct in (10, 20, 30):
        await reporter.report(_event(pct))

    assert reporter.dropped == 1
    assert [e.percent for e in reporter.drain()] == [20, 30]


@pytest.mark.asyncio
async def test_queue_reporter_events_end_on_close() -> None:
    reporter = QueueProgressReporter()
    await reporter.report(_event(50))
    await reporter.report(_event(100))
    reporter.close()
    await reporter.report(_event(100))

    seen = [e.percent async for e in reporter.events()]
    assert seen == [50, 100]


@pytest.fixture()
def sceneflow_logger():
    reset_logging()
    yield logging.getLogger("sceneflow")
    reset_logging()


def test_setup_logging_writes_file_and_is_idempotent(settings: Settings, sceneflow_logger, tmp_path) -> None:  # noqa: ANN001
    settings.logging.console = False
    settings.logging.file = "sceneflow.log"
    settings.logging.level = "debug"

    setup_logging(settings)
    setup_logging(settings)

    assert len(sceneflow_logger.handlers) == 1
    assert sceneflow_logger.level == logging.DEBUG
    assert sceneflow_logger.propagate is False

    logging.getLogger("sceneflow.pipeline.orchestrator").info("pipeline done (scenes=%d)", 3)
    sceneflow_logger.handlers[0].flush()
    log_file = tmp_path / "logs" / "sceneflow.log"
    assert "pipeline done (scenes=3)" in log_file.read_text(encoding="utf-8")
