"""CLI interface for the study queue.

Usage:
    python -m studyqueue_cli init-db                    Create database tables
    python -m studyqueue_cli queue LEARNER_ID           Show the ranked study queue
    python -m studyqueue_cli queue LEARNER_ID --json    Same, as JSON
    python -m studyqueue_cli score --p-know 0.6         Explain a NeedScore
    python -m studyqueue_cli serve                      Run the HTTP API
"""

import argparse
import asyncio
import dataclasses
import json
import logging
import sys
import uuid
from datetime import timedelta

import uvicorn

from studyqueue.config import settings, utcnow
from studyqueue.database import async_session, engine
from studyqueue.models import Base
from studyqueue.srs.need_score import LifecycleState, NeedScoreConfig, need_score_breakdown
from studyqueue.srs.queue import InvalidScopeError, StudyQueueError, build_study_queue


async def ensure_db() -> None:
    """Create tables if they don't exist."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def cmd_init_db(args: argparse.Namespace) -> None:
    await ensure_db()
    print("  Database ready.")


async def cmd_queue(args: argparse.Namespace) -> None:
    """Print the ranked study queue for a learner."""
    await ensure_db()
    try:
        learner_id = uuid.UUID(args.learner_id)
    except ValueError:
        print(f"  Invalid learner id: {args.learner_id}", file=sys.stderr)
        sys.exit(2)

    try:
        study_queue = await build_study_queue(
            async_session,
            learner_id,
            course_id=args.course,
            limit=args.limit,
            include_future=args.include_future,
        )
    except InvalidScopeError as exc:
        print(f"  {exc}", file=sys.stderr)
        sys.exit(2)
    except StudyQueueError as exc:
        print(f"  {exc}", file=sys.stderr)
        sys.exit(1)

    if args.json:
        payload = {
            "queue": [dataclasses.asdict(entry) for entry in study_queue.entries],
            "meta": dataclasses.asdict(study_queue.meta),
        }
        print(json.dumps(payload, indent=2, default=str))
        return

    meta = study_queue.meta
    if not study_queue.entries:
        print("\nNothing to study right now. You're all caught up!")
        return

    print("\n  Study Queue")
    print(f"  {meta.total_due} due + {meta.total_new} new = {meta.total_in_queue} cards, "
          f"showing {meta.returned}\n")
    print(f"  {'#':>3}  {'need':>5}  {'ret':>5}  {'color':<6}  {'state':<10}  front")
    for i, entry in enumerate(study_queue.entries, 1):
        front = entry.front if len(entry.front) <= 48 else entry.front[:45] + "..."
        label = f"{entry.lifecycle_state} *" if entry.is_new else entry.lifecycle_state
        print(
            f"  {i:>3}  {entry.need_score:>5.3f}  {entry.retention:>5.3f}  "
            f"{entry.mastery_color:<6}  {label:<10}  {front}"
        )
    print()


def cmd_score(args: argparse.Namespace) -> None:
    """Explain the NeedScore for hypothetical card state (sync, no DB needed)."""
    now = utcnow()
    due_at = None if args.due_days_ago is None else now - timedelta(days=args.due_days_ago)
    lifecycle = LifecycleState.NEW if args.new else LifecycleState.REVIEW
    config = NeedScoreConfig.from_settings()

    breakdown = need_score_breakdown(
        due_at=due_at,
        lapses=args.lapses,
        repetitions=args.reps,
        lifecycle_state=lifecycle,
        p_know=args.p_know,
        now=now,
        config=config,
    )

    print("\n  NeedScore breakdown")
    print(f"  {'Overdue:':<18} {breakdown.overdue:.3f}  x {config.overdue_weight:.2f}")
    print(f"  {'Mastery deficit:':<18} {breakdown.mastery_deficit:.3f}  x {config.mastery_weight:.2f}")
    print(f"  {'Fragility:':<18} {breakdown.fragility:.3f}  x {config.fragility_weight:.2f}")
    print(f"  {'Novelty:':<18} {breakdown.novelty:.3f}  x {config.novelty_weight:.2f}")
    print(f"  {'Score:':<18} {breakdown.score:.3f}")
    print()


def cmd_serve(args: argparse.Namespace) -> None:
    """Serve the HTTP API with uvicorn."""
    uvicorn.run(
        "studyqueue.main:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level="debug" if args.verbose else "info",
    )


def main(argv: list[str] | None = None) -> None:
    """Entry point for the study queue CLI."""
    parser = argparse.ArgumentParser(
        prog="studyqueue_cli",
        description="Mastery-aware study queue",
    )
    parser.add_argument("-v", "--verbose", action="store_true")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # init-db
    subparsers.add_parser("init-db", help="Create database tables")

    # queue
    queue_parser = subparsers.add_parser("queue", help="Show the ranked study queue")
    queue_parser.add_argument("learner_id", help="Learner UUID")
    queue_parser.add_argument("--course", default=None, help="Only cards from this course UUID")
    queue_parser.add_argument("--limit", type=int, default=None, help="Max cards (default 20, max 100)")
    queue_parser.add_argument(
        "--include-future", action="store_true", help="Include cards not yet due"
    )
    queue_parser.add_argument("--json", action="store_true", help="Print JSON instead of a table")

    # score
    score_parser = subparsers.add_parser("score", help="Explain a NeedScore")
    score_parser.add_argument("--p-know", type=float, default=0.0, help="Subtopic mastery [0, 1]")
    score_parser.add_argument(
        "--due-days-ago",
        type=float,
        default=None,
        help="Days since the card was due (negative = not yet due; omit = never scheduled)",
    )
    score_parser.add_argument("--lapses", type=int, default=0)
    score_parser.add_argument("--reps", type=int, default=0)
    score_parser.add_argument("--new", action="store_true", help="Card has never been reviewed")

    # serve
    serve_parser = subparsers.add_parser("serve", help="Run the HTTP API")
    serve_parser.add_argument("--host", default=settings.api_host)
    serve_parser.add_argument("--port", type=int, default=settings.api_port)
    serve_parser.add_argument("--reload", action="store_true", help="Restart on code changes")

    args = parser.parse_args(argv)

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG)

    if not args.command:
        parser.print_help()
        return

    # score and serve are synchronous, all others are async.
    if args.command == "score":
        cmd_score(args)
        return
    if args.command == "serve":
        cmd_serve(args)
        return

    cmd_map = {
        "init-db": cmd_init_db,
        "queue": cmd_queue,
    }

    asyncio.run(cmd_map[args.command](args))


if __name__ == "__main__":
    main()
