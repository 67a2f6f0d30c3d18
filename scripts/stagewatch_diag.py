"""Stagewatch MCP diagnostics CLI."""

from __future__ import annotations

import argparse
import json
from datetime import datetime, timezone

from stagewatch_mcp import reports
from stagewatch_mcp.config import StagewatchSettings
from stagewatch_mcp.storage import DeploymentStore, PersistenceError


def load_store(settings: StagewatchSettings) -> DeploymentStore:
    try:
        return DeploymentStore(settings.db_path)
    except PersistenceError as exc:
        print(f"Store unavailable: {exc}")
        raise SystemExit(1)


def cmd_records(args: argparse.Namespace) -> None:
    settings = StagewatchSettings()
    store = load_store(settings)
    try:
        records = store.list_by_environment(args.environment)
    except PersistenceError as exc:
        print(f"Store unavailable: {exc}")
        raise SystemExit(1)
    finally:
        store.close()
    if args.json:
        print(json.dumps([reports.deployment_info(record) for record in records], indent=2))
    else:
        for record in records:
            print(f"{record.plan_name} [{record.status}] -> {record.deployed_to}")


def cmd_changes(args: argparse.Namespace) -> None:
    settings = StagewatchSettings()
    store = load_store(settings)
    try:
        records = store.list_changed_unnotified()
    except PersistenceError as exc:
        print(f"Store unavailable: {exc}")
        raise SystemExit(1)
    finally:
        store.close()
    print(json.dumps([reports.notification_info(record) for record in records], indent=2))


def cmd_stats(args: argparse.Namespace) -> None:
    settings = StagewatchSettings()
    store = load_store(settings)
    try:
        records = store.list_all()
    except PersistenceError as exc:
        print(f"Store unavailable: {exc}")
        raise SystemExit(1)
    finally:
        store.close()
    payload = reports.statistics(records, days=args.days, now=datetime.now(timezone.utc))
    print(json.dumps(payload, indent=2))


def cmd_search(args: argparse.Namespace) -> None:
    settings = StagewatchSettings()
    store = load_store(settings)
    try:
        records = store.search(args.term)
    except PersistenceError as exc:
        print(f"Store unavailable: {exc}")
        raise SystemExit(1)
    finally:
        store.close()
    print(json.dumps(reports.search_results(args.term, records, args.limit), indent=2))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Stagewatch MCP diagnostics")
    sub = parser.add_subparsers(dest="cmd")

    p_records = sub.add_parser("records", help="List tracked deployment records")
    p_records.add_argument("--environment", help="Only records whose environment contains this label")
    p_records.add_argument("--json", action="store_true", help="Output JSON")
    p_records.set_defaults(func=cmd_records)

    p_changes = sub.add_parser("changes", help="List status changes awaiting notification")
    p_changes.set_defaults(func=cmd_changes)

    p_stats = sub.add_parser("stats", help="Show deployment statistics")
    p_stats.add_argument("--days", type=int, default=30)
    p_stats.set_defaults(func=cmd_stats)

    p_search = sub.add_parser("search", help="Search records by name, status, environment or details")
    p_search.add_argument("term")
    p_search.add_argument("--limit", type=int, default=20)
    p_search.set_defaults(func=cmd_search)

    return parser


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not hasattr(args, "func"):
        parser.print_help()
        return
    args.func(args)


if __name__ == "__main__":
    main()
