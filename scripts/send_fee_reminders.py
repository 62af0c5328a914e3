"""Daily fee reminder job; also serves manual 'send to one/class/all overdue' runs."""

from __future__ import annotations

import argparse
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List

PROJECT_ROOT = Path(__file__).resolve().parent.parent
SRC_DIR = PROJECT_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from feepulse.arrears.evaluator import overdue_students, pending_amount
from feepulse.config import DEFAULT_CONFIG_PATH, load_config, records_paths
from feepulse.records.coerce import safe_text
from feepulse.records.loader import CsvReminderStore, load_students, normalize_id
from feepulse.records.types import DispatchOutcome, StudentRecord
from feepulse.reminders.channels import DeepLinkChannel, build_channel
from feepulse.reminders.dispatcher import build_dispatcher


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Send fee reminders to guardians.")
    parser.add_argument("--config", type=Path, default=DEFAULT_CONFIG_PATH, help="Path to config YAML.")
    parser.add_argument("--class", dest="class_name", default=None, help="Only students in this class.")
    parser.add_argument("--student", default=None, help="Only this student id.")
    parser.add_argument(
        "--all-pending",
        action="store_true",
        help="Remind every student with a balance, not only those in arrears.",
    )
    parser.add_argument("--dry-run", action="store_true", help="Build wa.me links instead of sending.")
    return parser.parse_args()


def select_candidates(
    students: List[StudentRecord],
    now: datetime,
    class_name: str | None = None,
    student_id: str | None = None,
    only_overdue: bool = True,
) -> List[StudentRecord]:
    """Candidate filters for the scheduled run and the manual variants."""
    if student_id is not None:
        wanted = normalize_id(student_id)
        return [s for s in students if normalize_id(s.student_id) == wanted]
    if only_overdue:
        return overdue_students(students, now, class_name=class_name)
    wanted_class = safe_text(class_name).lower()
    return [
        s
        for s in students
        if pending_amount(s) > 0 and (not wanted_class or safe_text(s.class_name).lower() == wanted_class)
    ]


def run(cfg: Dict[str, Any], now: datetime, args: argparse.Namespace) -> DispatchOutcome:
    students_path = records_paths(cfg)["students"]
    students = load_students(students_path)
    reminders_cfg = cfg.get("reminders") or {}
    only_overdue = bool(reminders_cfg.get("only_overdue", True)) and not args.all_pending
    candidates = select_candidates(students, now, args.class_name, args.student, only_overdue)

    channel = DeepLinkChannel() if args.dry_run else build_channel(cfg)
    store = None if args.dry_run else CsvReminderStore(students_path)
    dispatcher = build_dispatcher(cfg, channel, store)
    return dispatcher.dispatch_all(candidates, now)


def main() -> None:
    args = parse_args()
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    cfg_path = args.config if args.config.is_absolute() else PROJECT_ROOT / args.config
    if not cfg_path.exists():
        print(f"Config not found: {cfg_path}", file=sys.stderr)
        sys.exit(1)

    cfg = load_config(cfg_path)
    try:
        outcome = run(cfg, datetime.now(), args)
    except (FileNotFoundError, ValueError) as exc:
        print(str(exc), file=sys.stderr)
        sys.exit(1)

    counts = outcome.counts
    print(f"Sent {counts['sent']}, skipped {counts['skipped']}, failed {counts['failed']}.")
    for result in outcome.skipped:
        print(f"  skipped {result.student_id}: {result.reason}")
    for result in outcome.failed:
        print(f"  failed {result.student_id}: {result.reason}")
    for result in outcome.sent:
        if result.deep_link:
            print(f"  {result.student_id}: {result.deep_link}")


if __name__ == "__main__":
    main()
