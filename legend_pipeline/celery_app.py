"""Celery application for building legend indices in parallel, one task per legend."""

import logging

from celery import Celery

from legend_pipeline.config import REDIS_URL, IndexSettings
from legend_pipeline.export import legend_artifacts
from legend_pipeline.legend_builder import build_from_pgn

logger = logging.getLogger(__name__)

app = Celery("legend_pipeline", broker=REDIS_URL, backend=REDIS_URL)
app.conf.update(
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    task_acks_late=True,
    worker_prefetch_multiplier=1,
)


@app.task
def build_legend_task(legend: str, pgn_text: str, horizon: int | None = None) -> dict:
    """Celery task: build one legend's indices and return the exported artifacts."""
    # Workers already run one legend each; replay stays serial inside the task.
    if horizon is None:
        settings = IndexSettings(max_workers=None)
    else:
        settings = IndexSettings(opening_horizon=horizon, max_workers=None)
    indices = build_from_pgn(legend, pgn_text, settings=settings)
    logger.info("[%s] build task done: %d positions", legend, indices.stats.unique_positions)
    return legend_artifacts(indices)
