"""Fee collection dashboard."""

from __future__ import annotations

import sys
from datetime import datetime
from pathlib import Path

import pandas as pd
import streamlit as st

PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_DIR = PROJECT_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from feepulse.arrears.evaluator import OVERDUE, overdue_students
from feepulse.arrears.report import arrears_frame, summarize_arrears
from feepulse.config import load_config, records_paths
from feepulse.records.loader import CsvReminderStore, load_payments, load_students
from feepulse.reminders.channels import DeepLinkChannel
from feepulse.reminders.dispatcher import build_dispatcher
from feepulse.risk.classifier import RiskThresholds, classify, collection_health, collection_next_steps
from feepulse.risk.stats import aggregate_stats, collection_trend
from theme import apply_theme, render_risk_banner

DEFAULT_CONFIG = PROJECT_ROOT / "configs" / "config.yaml"


@st.cache_data
def load_cfg(config_path: Path) -> dict:
    return load_config(config_path)


def main() -> None:
    st.set_page_config(page_title="FeePulse – Fee Collection Dashboard", layout="wide")
    apply_theme()
    st.title("FeePulse – Fee Collection Dashboard")

    cfg = load_cfg(DEFAULT_CONFIG)
    role = st.sidebar.selectbox("View as", ["admin", "staff"])
    now = datetime.now()

    paths = records_paths(cfg)
    try:
        students = load_students(paths["students"])
    except (FileNotFoundError, ValueError) as exc:
        st.error(str(exc))
        return
    payments = load_payments(paths["payments"])

    stats = aggregate_stats(students)
    risk = classify(stats, collection_trend(payments, now), role, RiskThresholds.from_config(cfg))
    frame = arrears_frame(students, now)
    summary = summarize_arrears(frame)

    render_risk_banner(risk.level, risk.icon, risk.message)

    cols = st.columns(4)
    cols[0].metric("Total fees", f"{stats.total_fees:,.0f}")
    cols[1].metric("Collected", f"{stats.collected_fees:,.0f}")
    cols[2].metric("Pending", f"{stats.pending_fees:,.0f}")
    cols[3].metric("Collection rate", f"{stats.collection_rate_percent:.1f}%", collection_health(stats.collection_rate_percent))
    st.caption(collection_next_steps(stats.collection_rate_percent, summary["counts"][OVERDUE], stats.pending_fees))

    if summary["counts"]["undetermined"]:
        st.warning(f"{summary['counts']['undetermined']} student(s) are missing enrollment or due-date data.")

    classes = sorted({s.class_name for s in students if s.class_name})
    selected = st.sidebar.selectbox("Class", ["All"] + classes)
    class_name = None if selected == "All" else selected
    view = frame if class_name is None else frame[frame["class_name"] == class_name]
    st.dataframe(view, use_container_width=True, hide_index=True)

    if st.button("Prepare reminders for overdue students"):
        channel = DeepLinkChannel()
        # Preparing a link counts as a send; suppress repeats for the usual window.
        dispatcher = build_dispatcher(cfg, channel, CsvReminderStore(paths["students"]))
        outcome = dispatcher.dispatch_all(overdue_students(students, now, class_name=class_name), now)
        st.write(outcome.counts)
        links = pd.DataFrame(
            [{"student_id": r.student_id, "link": r.deep_link} for r in outcome.sent]
        )
        if not links.empty:
            st.dataframe(links, hide_index=True)


if __name__ == "__main__":
    main()
