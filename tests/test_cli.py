"""
Tests for chatkeep.cli, run against an injected session.
"""
from datetime import date

import pytest

from chatkeep.cli import autosave_main, main
from chatkeep.errors import FetchError
from chatkeep.archive.session import ArchiveSession
from chatkeep.archive.store import StateFile


@pytest.fixture
def session(tmp_path, fake_client, make_message, local_time, room):
    client = fake_client(
        rooms=[room("1", "R1")],
        pages={"1": [make_message(1, local_time(2024, 5, 1)), make_message(2, local_time(2024, 5, 2))]},
    )
    return ArchiveSession(
        client, StateFile(tmp_path / "state.json"),
        today=lambda: date(2024, 5, 10), sleep=lambda _s: None,
    )


def test_fetch_writes_transcript_into_directory(tmp_path, session, capsys):
    out_dir = tmp_path / "out"
    out_dir.mkdir()

    code = main(["--token", "tok", "fetch", "1", "2024-05-01", "2024-05-02", "-o", str(out_dir)], session=session)

    assert code == 0
    (written,) = out_dir.iterdir()
    assert written.name == "Chatwork_Unknown_2024-05-01_2024-05-02.txt"
    assert written.read_text(encoding="utf-8").count("\n") == 2
    assert "Saved" in capsys.readouterr().out
    assert len(session.logs) == 1


def test_watch_then_autosave(session, capsys):
    assert main(["--token", "tok", "rooms"], session=session) == 0
    assert main(["watch", "1", "--interval", "10"], session=session) == 0
    assert session.watch_list.get("1").room_name == "R1"

    assert main(["autosave"], session=session) == 0
    out = capsys.readouterr().out
    assert "1 auto-save(s) completed" in out
    assert session.watch_list.get("1").last_catch_up == date(2024, 5, 9)


def test_autosave_failure_sets_exit_code(session):
    session.client.pages["1"] = FetchError("boom", 500)
    main(["watch", "1"], session=session)
    assert main(["--token", "tok", "autosave"], session=session) == 1


def test_errors_are_reported_not_raised(session, capsys):
    assert main(["fetch", "1", "2024-05-01", "2024-05-02"], session=session) == 1
    assert "API token is required" in capsys.readouterr().err


def test_cron_entry_takes_config_and_token(tmp_path, capsys):
    state = tmp_path / "state.json"
    ini = tmp_path / "chatkeep.ini"
    ini.write_text(f"[store]\npath = {state}\n", encoding="utf-8")

    assert autosave_main(["--config", str(ini), "--token", "tok"]) == 0
    assert "0 auto-save(s) completed" in capsys.readouterr().out
    assert StateFile(state).token == "tok"


def test_cron_entry_runs_against_session(session):
    main(["watch", "1"], session=session)
    assert autosave_main(["--token", "tok"], session=session) == 0
    assert session.watch_list.get("1").last_catch_up == date(2024, 5, 9)
