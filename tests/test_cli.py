"""Tests for CLI commands (non-interactive paths)."""

import json
import uuid
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

import studyqueue_cli.__main__ as cli
from studyqueue.srs.queue import QueueFetchError


@pytest.fixture
def cli_db(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Point the CLI at a fresh database; NullPool keeps each asyncio.run independent."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'cli.db'}", poolclass=NullPool)
    monkeypatch.setattr(cli, "engine", engine)
    monkeypatch.setattr(
        cli, "async_session", async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    )


def test_score_explains_factors(capsys: pytest.CaptureFixture[str]) -> None:
    cli.main(["score", "--p-know", "0.6", "--due-days-ago", "2", "--lapses", "1", "--reps", "4"])
    out = capsys.readouterr().out
    assert "NeedScore breakdown" in out
    assert "Score:" in out
    assert "0.499" in out


def test_score_new_card(capsys: pytest.CaptureFixture[str]) -> None:
    cli.main(["score", "--new"])
    out = capsys.readouterr().out
    assert "0.800" in out


def test_init_db(cli_db: None, capsys: pytest.CaptureFixture[str]) -> None:
    cli.main(["init-db"])
    assert "Database ready" in capsys.readouterr().out


def test_queue_json_for_unknown_learner(cli_db: None, capsys: pytest.CaptureFixture[str]) -> None:
    cli.main(["queue", str(uuid.uuid4()), "--json", "--limit", "500"])
    payload = json.loads(capsys.readouterr().out)
    assert payload["queue"] == []
    assert payload["meta"]["limit"] == 100
    assert payload["meta"]["total_in_queue"] == 0


def test_queue_rejects_bad_course(cli_db: None, capsys: pytest.CaptureFixture[str]) -> None:
    with pytest.raises(SystemExit) as exc_info:
        cli.main(["queue", str(uuid.uuid4()), "--course", "nope"])
    assert exc_info.value.code == 2
    assert "valid UUID" in capsys.readouterr().err


def test_queue_rejects_bad_learner(cli_db: None) -> None:
    with pytest.raises(SystemExit) as exc_info:
        cli.main(["queue", "learner-1"])
    assert exc_info.value.code == 2


def test_queue_fetch_failure_exits_1(
    cli_db: None, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    failing = AsyncMock(side_effect=QueueFetchError("fsrs_states", RuntimeError("locked")))
    monkeypatch.setattr(cli, "build_study_queue", failing)
    with pytest.raises(SystemExit) as exc_info:
        cli.main(["queue", str(uuid.uuid4())])
    assert exc_info.value.code == 1
    assert "fsrs_states" in capsys.readouterr().err


def test_serve_runs_app_with_uvicorn(monkeypatch: pytest.MonkeyPatch) -> None:
    run = MagicMock()
    monkeypatch.setattr(cli.uvicorn, "run", run)

    cli.main(["serve", "--port", "9100"])

    run.assert_called_once()
    assert run.call_args.args == ("studyqueue.main:app",)
    assert run.call_args.kwargs["port"] == 9100
    assert run.call_args.kwargs["host"] == "127.0.0.1"
    assert run.call_args.kwargs["reload"] is False
