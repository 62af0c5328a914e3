"""Shared FeePulse theme helpers."""

from __future__ import annotations

import streamlit as st

LEVEL_COLORS = {
    "healthy": "#2E8B57",
    "warning": "#E67E22",
    "danger": "#C0392B",
}


def apply_theme() -> None:
    """Inject the dashboard CSS."""
    st.markdown(
        """
        <style>
        :root {
            --fp-bg: #0F1E2E;
            --fp-surface: #17293D;
            --fp-text: #FFFFFF;
            --fp-muted: #C9D6E3;
            --fp-border: rgba(201, 214, 227, 0.25);
        }
        .stApp {
            background: linear-gradient(180deg, var(--fp-bg) 0%, var(--fp-surface) 100%);
            color: var(--fp-text);
        }
        .stApp p, .stApp li, .stApp span, .stApp label {
            color: var(--fp-muted);
        }
        .fp-banner {
            border-radius: 14px;
            padding: 16px 20px;
            font-size: 17px;
            color: var(--fp-text);
            border: 1px solid var(--fp-border);
        }
        [data-testid="stMetric"] {
            background-color: var(--fp-surface);
            border: 1px solid var(--fp-border);
            border-radius: 12px;
            padding: 12px;
        }
        </style>
        """,
        unsafe_allow_html=True,
    )


def render_risk_banner(level: str, icon: str, message: str) -> None:
    color = LEVEL_COLORS.get(level, LEVEL_COLORS["healthy"])
    st.markdown(
        f'<div class="fp-banner" style="background-color: {color};">{icon} {message}</div>',
        unsafe_allow_html=True,
    )
