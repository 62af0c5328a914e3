"""Evaluate arrears for every student and write the report plus the risk banner."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Any, Dict

import pandas as pd

PROJECT_ROOT = Path(__file__).resolve().parent.parent
SRC_DIR = PROJECT_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from feepulse.arrears.evaluator import OVERDUE
from feepulse.arrears.report import arrears_frame, summarize_arrears
from feepulse.config import DEFAULT_CONFIG_PATH, load_config, records_paths
from feepulse.records.loader import load_payments, load_students, resolve_path
from feepulse.risk.classifier import RiskThresholds, classify, collection_health, collection_next_steps
from feepulse.risk.stats import aggregate_stats, collection_trend


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Build the fee arrears report.")
    parser.add_argument("--config", type=Path, default=DEFAULT_CONFIG_PATH, help="Path to config YAML.")
    parser.add_argument("--role", choices=["admin", "staff"], default="admin", help="Audience for the risk message.")
    parser.add_argument("--as-of", dest="as_of", default=None, help="Evaluate as of this date (YYYY-MM-DD).")
    parser.add_argument("--verbose", action="store_true", help="Log per-student decisions.")
    return parser.parse_args()


def build_report(cfg: Dict[str, Any], now: datetime, role: str = "admin") -> Dict[str, Any]:
    paths = records_paths(cfg)
    students = load_students(paths["students"])
    payments = load_payments(paths["payments"])

    frame = arrears_frame(students, now)
    summary = summarize_arrears(frame)
    stats = aggregate_stats(students)
    trend = collection_trend(payments, now)
    risk = classify(stats, trend, role, RiskThresholds.from_config(cfg))

    return {
        "frame": frame,
        "summary": summary,
        "stats": stats,
        "trend": trend,
        "risk": risk,
        "health": collection_health(stats.collection_rate_percent),
        "next_steps": collection_next_steps(
            stats.collection_rate_percent, summary["counts"][OVERDUE], stats.pending_fees
        ),
    }


def main() -> None:
    args = parse_args()
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    cfg_path = args.config if args.config.is_absolute() else PROJECT_ROOT / args.config
    if not cfg_path.exists():
        print(f"Config not found: {cfg_path}", file=sys.stderr)
        sys.exit(1)

    cfg = load_config(cfg_path)
    now = pd.Timestamp(args.as_of).to_pydatetime() if args.as_of else datetime.now()
    try:
        report = build_report(cfg, now, args.role)
    except FileNotFoundError as exc:
        print(str(exc), file=sys.stderr)
        sys.exit(1)

    output_dir = resolve_path((cfg.get("reports") or {}).get("output_dir", "reports"))
    output_dir.mkdir(parents=True, exist_ok=True)
    stamp = now.date().isoformat()
    csv_path = output_dir / f"arrears_{stamp}.csv"
    json_path = output_dir / f"arrears_summary_{stamp}.json"

    report["frame"].to_csv(csv_path, index=False)
    stats = report["stats"]
    risk = report["risk"]
    payload = {
        "as_of": stamp,
        "summary": report["summary"],
        "collection_rate_percent": round(stats.collection_rate_percent, 2),
        "pending_percent": round(stats.pending_percent, 2),
        "health": report["health"],
        "next_steps": report["next_steps"],
        "risk": {"level": risk.level, "icon": risk.icon, "message": risk.message},
    }
    json_path.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")

    counts = report["summary"]["counts"]
    print(f"{risk.icon} [{risk.level}] {risk.message}")
    print(
        f"Students: {report['summary']['students']} | overdue={counts['overdue']} due={counts['due']} "
        f"clear={counts['clear']} undetermined={counts['undetermined']}"
    )
    if counts["undetermined"]:
        print(f"Warning: {counts['undetermined']} record(s) lack the data needed to evaluate arrears.")
    print(f"Wrote {csv_path}")
    print(f"Wrote {json_path}")


if __name__ == "__main__":
    main()
