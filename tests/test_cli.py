from __future__ import annotations

import importlib.util
import json
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from stagewatch_mcp.storage import DeploymentRecord, DeploymentStore, PersistenceError

BASE = datetime(2025, 3, 10, 9, 0, tzinfo=timezone.utc)


def _load_script(name: str):
    script = Path(__file__).resolve().parents[1] / "scripts" / f"{name}.py"
    spec = importlib.util.spec_from_file_location(name, script)
    module = importlib.util.module_from_spec(spec)
    assert spec and spec.loader
    spec.loader.exec_module(module)
    return module


@pytest.fixture
def seeded_db(monkeypatch, tmp_path: Path) -> Path:
    db_path = tmp_path / "cli.db"
    monkeypatch.setenv("STAGEWATCH_DB_PATH", str(db_path))
    store = DeploymentStore(db_path)
    now = datetime.now(timezone.utc)
    store.upsert(
        DeploymentRecord(
            plan_name="Plan A",
            deployed_to="Production",
            status="Finished successfully",
            previous_status="Running",
            details="AppOne",
            processed_details="AppOne",
            first_detected=now - timedelta(hours=2),
            last_updated=now - timedelta(hours=1),
            duration=timedelta(minutes=5),
            has_status_changed=True,
        )
    )
    store.upsert(
        DeploymentRecord(
            plan_name="Plan B",
            deployed_to="Homologation",
            status="Running",
            details="AppTwo",
            processed_details="AppTwo",
            first_detected=now,
            last_updated=now,
        )
    )
    store.close()
    return db_path


def test_records_filters_by_environment(seeded_db: Path, capsys) -> None:
    diag = _load_script("stagewatch_diag")

    diag.main(["records", "--environment", "homolog"])

    out = capsys.readouterr().out
    assert out.strip() == "Plan B [Running] -> Homologation"


def test_records_json_and_changes(seeded_db: Path, capsys) -> None:
    diag = _load_script("stagewatch_diag")

    diag.main(["records", "--json"])
    records = json.loads(capsys.readouterr().out)
    assert [item["plan_name"] for item in records] == ["Plan B", "Plan A"]

    diag.main(["changes"])
    changes = json.loads(capsys.readouterr().out)
    assert len(changes) == 1
    assert changes[0]["message"] == (
        "AppOne has finished its deployment to Production (Duration: 00:05:00)"
    )


def test_stats_and_search(seeded_db: Path, capsys) -> None:
    diag = _load_script("stagewatch_diag")

    diag.main(["stats", "--days", "7"])
    stats = json.loads(capsys.readouterr().out)
    assert stats["total_deployments"] == 2
    assert stats["period_days"] == 7

    diag.main(["search", "apptwo", "--limit", "1"])
    search = json.loads(capsys.readouterr().out)
    assert search["total_found"] == 1
    assert search["results"][0]["plan_name"] == "Plan B"


def test_store_unavailable_exits_with_error(monkeypatch, capsys) -> None:
    diag = _load_script("stagewatch_diag")

    def broken_store(settings):
        raise PersistenceError("disk full")

    monkeypatch.setattr(diag, "DeploymentStore", broken_store)

    with pytest.raises(SystemExit) as excinfo:
        diag.main(["records"])

    assert excinfo.value.code == 1
    assert "Store unavailable: disk full" in capsys.readouterr().out


def test_notify_writes_json_and_acknowledges(seeded_db: Path, tmp_path: Path) -> None:
    notify = _load_script("stagewatch_notify")
    output = tmp_path / "pending.json"

    notify.main(["--output", str(output), "--ack"])

    payload = json.loads(output.read_text(encoding="utf-8"))
    assert [item["plan_name"] for item in payload] == ["Plan A"]
    assert payload[0]["previous_status"] == "Running"

    store = DeploymentStore(seeded_db)
    try:
        assert store.list_changed_unnotified() == []
        assert store.find_by_key("Plan A", "Production").notification_sent is True
    finally:
        store.close()


def test_notify_text_format_respects_environment(seeded_db: Path, capsys) -> None:
    notify = _load_script("stagewatch_notify")

    notify.main(["--format", "text"])
    text = capsys.readouterr().out
    assert text.startswith("plan=Plan A | environment=Production | status=Finished successfully")

    notify.main(["--environment", "homolog"])
    assert json.loads(capsys.readouterr().out) == []


def test_notify_reports_unavailable_store(monkeypatch, capsys) -> None:
    notify = _load_script("stagewatch_notify")

    def broken_store(settings):
        raise PersistenceError("locked")

    monkeypatch.setattr(notify, "load_store", broken_store)

    with pytest.raises(SystemExit) as excinfo:
        notify.main([])

    assert excinfo.value.code == 1
    assert "Store unavailable: locked" in capsys.readouterr().err
