"""Forward pending deployment status changes to monitoring-friendly output."""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Iterable

from stagewatch_mcp.classification import contains_label
from stagewatch_mcp.config import StagewatchSettings
from stagewatch_mcp.storage import DeploymentRecord, DeploymentStore, PersistenceError
from stagewatch_mcp.sync import Reconciler


def load_store(settings: StagewatchSettings) -> DeploymentStore:
    """Open the deployment store configured in the settings."""

    return DeploymentStore(settings.db_path)


def _normalize_records(
    records: Iterable[DeploymentRecord],
    *,
    environment: str | None = None,
) -> list[dict[str, object]]:
    selected: list[dict[str, object]] = []
    for record in records:
        if not contains_label(record.deployed_to, environment):
            continue
        selected.append(
            {
                "plan_name": record.plan_name,
                "deployed_to": record.deployed_to,
                "status": record.status,
                "previous_status": record.previous_status,
                "message": record.notification_message(),
                "last_updated": record.last_updated.isoformat(),
            }
        )
    selected.sort(key=lambda item: item["last_updated"])
    return selected


def _default_formatter(item: dict[str, object]) -> str:
    return " | ".join(
        [
            f"plan={item['plan_name']}",
            f"environment={item['deployed_to']}",
            f"status={item['status']}",
            f"previous={item['previous_status']}",
            f"updated={item['last_updated']}",
            f"message={item['message']}",
        ]
    )


def forward_notifications(args: argparse.Namespace, *, formatter=_default_formatter) -> int:
    settings = StagewatchSettings()
    try:
        store = load_store(settings)
    except PersistenceError as exc:
        print(f"Store unavailable: {exc}", file=sys.stderr)
        return 1

    try:
        records = store.list_changed_unnotified()
        payload = _normalize_records(records, environment=args.environment)
        if args.limit is not None and args.limit > 0:
            payload = payload[-args.limit :]

        if args.format == "json":
            output_text = json.dumps(payload, indent=2)
        else:
            output_text = "\n".join(formatter(item) for item in payload)

        if args.output:
            Path(args.output).write_text(output_text, encoding="utf-8")
        else:
            print(output_text)

        if args.ack:
            reconciler = Reconciler()
            for item in payload:
                reconciler.acknowledge_notification(
                    store, str(item["plan_name"]), str(item["deployed_to"])
                )
    except PersistenceError as exc:
        print(f"Store unavailable: {exc}", file=sys.stderr)
        return 1
    finally:
        store.close()
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Forward pending deployment status changes to stdout or a file."
    )
    parser.add_argument(
        "--environment", help="Only forward changes whose environment contains this label"
    )
    parser.add_argument(
        "--format",
        choices={"json", "text"},
        default="json",
        help="Output format (default: json)",
    )
    parser.add_argument("--output", help="Optional path to write the payload to")
    parser.add_argument(
        "--limit",
        type=int,
        default=None,
        help="If provided, emit only the latest N changes after filtering",
    )
    parser.add_argument(
        "--ack",
        action="store_true",
        help="Mark every forwarded change as notified",
    )
    return parser


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    exit_code = forward_notifications(args)
    if exit_code:
        raise SystemExit(exit_code)


if __name__ == "__main__":
    main()
