"""Plotting utilities for consensus run reports."""

from __future__ import annotations

import logging
from pathlib import Path

import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt  # noqa: E402
import pandas as pd  # noqa: E402

from consensus_engine.agents.signal import Verdict  # noqa: E402
from consensus_engine.consensus.decision import Decision  # noqa: E402

log = logging.getLogger(__name__)

_VERDICT_COLORS = {
    Verdict.BUY_CALL: "#2e8b57",
    Verdict.BUY_PUT: "#c0392b",
    Verdict.NO_TRADE: "#7f8c8d",
}


def plot_close_price(df: pd.DataFrame, decision: Decision, out_path: str | Path) -> None:
    """Plot close price vs time, marking the decision on the last bar.

    Parameters
    ----------
    df : pd.DataFrame
        Must contain ``time`` and ``close`` columns.
    decision : Decision
        Marked on the final bar with its verdict colour.
    out_path : str | Path
        Destination file path (e.g. ``plots/close_price.png``).
    """
    out_path = Path(out_path)
    out_path.parent.mkdir(parents=True, exist_ok=True)

    fig, ax = plt.subplots(figsize=(14, 5))
    ax.plot(df["time"], df["close"], linewidth=0.8, color="#d4af37")
    ax.scatter(
        [df["time"].iloc[-1]], [df["close"].iloc[-1]],
        color=_VERDICT_COLORS[decision.verdict], s=60, zorder=3,
        label=f"{decision.verdict.value} ({decision.display_confidence}%)",
    )
    ax.set_title(f"Close Price  ({df['time'].iloc[0]} → {df['time'].iloc[-1]})")
    ax.set_xlabel("Time")
    ax.set_ylabel("Price")
    ax.legend(loc="upper left")
    ax.grid(True, alpha=0.3)
    fig.tight_layout()
    fig.savefig(out_path, dpi=100)
    plt.close(fig)

    log.info("Saved close-price plot → %s", out_path)


def plot_vote_tally(decision: Decision, out_path: str | Path) -> None:
    """Bar chart of accumulated weight per verdict."""
    out_path = Path(out_path)
    out_path.parent.mkdir(parents=True, exist_ok=True)

    verdicts = list(Verdict)
    weights = [decision.vote_tally.get(v, 0) for v in verdicts]

    fig, ax = plt.subplots(figsize=(6, 4))
    ax.bar([v.value for v in verdicts], weights, color=[_VERDICT_COLORS[v] for v in verdicts])
    ax.set_title(f"Vote tally  (total weight {decision.total_weight})")
    ax.set_ylabel("Weight")
    ax.grid(True, axis="y", alpha=0.3)
    fig.tight_layout()
    fig.savefig(out_path, dpi=100)
    plt.close(fig)

    log.info("Saved vote-tally plot → %s", out_path)
