#!/usr/bin/env python3
"""
Quick verification that the taskboard core works end-to-end.

Usage:
    python verify_board.py                     # defaults
    python verify_board.py --config board.yaml # latency/failure/seed settings
"""
import argparse
import asyncio
import logging
from datetime import datetime, timedelta, timezone

from pkg.taskboard.activity import ActivityRecorder
from pkg.taskboard.board import KanbanBoard
from pkg.taskboard.config import Config, configure_logging
from pkg.taskboard.schema import TaskStatus
from pkg.taskboard.seed import SAMPLE_WORKSPACE, load_seed
from pkg.taskboard.session import Session
from pkg.taskboard.stats import compute_stats
from pkg.taskboard.store import EntityStore

logger = logging.getLogger("verify_board")


async def run(cfg: Config) -> dict:
    """Seed a store, drag one task to done, return the before/after stats."""
    store = EntityStore(backend=cfg.build_backend())
    session = Session(user_id="1")
    recorder = ActivityRecorder(store, session, log_path=cfg.activity_log)
    board = KanbanBoard(store)

    logger.info("[1/4] Loading sample workspace...")
    ids = await load_seed(store, cfg.seed_file or SAMPLE_WORKSPACE)
    logger.info(f"      {len(store.projects)} projects, {len(store.tasks)} tasks")

    logger.info("[2/4] Adding an overdue task...")
    now = datetime.now(timezone.utc)
    task = await store.create_task({
        "title": "Ship release notes",
        "project_id": ids["website"],
        "due_date": now - timedelta(days=1),
    })
    before = compute_stats(store.projects, store.tasks, now)
    logger.info(f"      stats: {before.to_dict()}")

    logger.info("[3/4] Dragging it to completed...")
    board.begin_drag(task.id)
    result = await board.drop(TaskStatus.COMPLETED)
    logger.info(f"      drop outcome: {result.outcome.value}")

    after = compute_stats(store.projects, store.tasks, now)
    logger.info(f"      stats: {after.to_dict()}")

    logger.info("[4/4] Recent activity:")
    for entry in recorder.recent(5):
        logger.info(f"      {entry.action} {entry.entity_id} {entry.metadata}")

    board.close()
    recorder.close()
    return {"before": before, "after": after, "outcome": result.outcome}


def main():
    parser = argparse.ArgumentParser(description="Taskboard end-to-end check")
    parser.add_argument("--config", help="YAML config file")
    args = parser.parse_args()

    cfg = Config.load(args.config)
    configure_logging(cfg.log_level, "verify_board")

    logger.info("=" * 60)
    logger.info("Taskboard Verification")
    logger.info("=" * 60)
    summary = asyncio.run(run(cfg))
    logger.info("=" * 60)
    logger.info(f"Done: drop {summary['outcome'].value}")


if __name__ == "__main__":
    main()
