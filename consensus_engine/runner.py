"""Evaluation runner: orchestrates load → agents → consensus → artifact generation."""

from __future__ import annotations

import json
import logging
import shutil
from datetime import datetime, timezone
from pathlib import Path

import pandas as pd
import yaml

from consensus_engine.agents import MarketContext, build_agents
from consensus_engine.agents.registry import registered_types
from consensus_engine.consensus import (
    ConsensusConfig,
    ConsensusEngine,
    TrendAssessor,
    TrendConfig,
    WeightTable,
)
from consensus_engine.data import load_bars, resample_bars
from consensus_engine.reporting.plots import plot_close_price, plot_vote_tally

log = logging.getLogger(__name__)

# Repo root (one level up from consensus_engine/runner.py)
_REPO_ROOT = Path(__file__).resolve().parent.parent

DEFAULT_EXCHANGE_TZ = "America/New_York"


def build_engine(cfg: dict) -> ConsensusEngine:
    """Build a ConsensusEngine from a parsed run config.

    Every registered agent type is used with default parameters when the
    config has no ``agents`` list.
    """
    agent_cfgs = cfg.get("agents") or [{"type": t} for t in registered_types()]
    agents = build_agents(agent_cfgs)
    return ConsensusEngine(
        agents,
        weights=WeightTable(cfg.get("weights")),
        config=ConsensusConfig.from_dict(cfg.get("consensus")),
        trend_assessor=TrendAssessor(TrendConfig.from_dict(cfg.get("trend"))),
        max_workers=int(cfg.get("max_workers", 1)),
        agent_timeout=cfg.get("agent_timeout"),
    )


def build_context(bars: pd.DataFrame, cfg: dict) -> MarketContext:
    """Wrap loaded bars plus the optional inputs named in ``cfg``."""
    higher = {rule: resample_bars(bars, rule) for rule in cfg.get("higher_timeframes", [])}
    vix = cfg.get("volatility_index")
    now = bars["time"].iloc[-1].tz_convert(cfg.get("exchange_tz", DEFAULT_EXCHANGE_TZ))
    return MarketContext(
        bars=bars,
        volatility_index=None if vix is None else float(vix),
        higher_timeframes=higher,
        now=now.to_pydatetime(),
    )


def run_evaluation(config_path: str) -> str:
    """Evaluate the latest bar of a snapshot and write all run artifacts.

    Parameters
    ----------
    config_path : str
        Path to a YAML config file (relative to repo root or absolute).

    Returns
    -------
    str
        The generated ``run_id``.
    """
    cfg_path = Path(config_path)
    if not cfg_path.is_absolute():
        cfg_path = _REPO_ROOT / cfg_path

    with open(cfg_path, "r", encoding="utf-8") as f:
        cfg = yaml.safe_load(f) or {}

    symbol: str = cfg["symbol"]
    timeframe: str = cfg["timeframe"]
    snapshot_dir = _REPO_ROOT / cfg["snapshot_dir"]
    output_dir = _REPO_ROOT / cfg["output_dir"]

    # Fail on a bad config before touching the output directory
    engine = build_engine(cfg)

    # ── Generate run_id ──────────────────────────────────────────────
    run_id = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")
    run_dir = output_dir / run_id
    run_dir.mkdir(parents=True, exist_ok=True)
    (run_dir / "plots").mkdir(exist_ok=True)

    log.info("Run ID   : %s", run_id)
    log.info("Output   : %s", run_dir)
    log.info("Agents   : %s", ", ".join(a.name for a in engine.agents))

    # ── Load data ────────────────────────────────────────────────────
    bars = load_bars(snapshot_dir)
    ctx = build_context(bars, cfg)
    log.info("Evaluating %s %s at %s", symbol, timeframe, ctx.now)

    # ── Consensus ────────────────────────────────────────────────────
    decision = engine.evaluate(ctx)

    # ── Write artifacts ──────────────────────────────────────────────
    # 1. config.yaml
    shutil.copy2(cfg_path, run_dir / "config.yaml")

    # 2. decision.json
    payload = {
        "run_id": run_id,
        "symbol": symbol,
        "timeframe": timeframe,
        "n_bars": len(bars),
        "start_ts": bars["time"].iloc[0].isoformat(),
        "end_ts": bars["time"].iloc[-1].isoformat(),
        "weights": {a.name: engine.weights.weight(a.name) for a in engine.agents},
        "decision": decision.to_dict(),
    }
    (run_dir / "decision.json").write_text(
        json.dumps(payload, indent=2), encoding="utf-8",
    )
    log.info("Wrote decision.json")

    # 3. signals.csv
    rows = [
        {
            "source": s.source,
            "verdict": s.verdict.value,
            "confidence": s.confidence,
            "weight": engine.weights.weight(s.source),
            "rationale": "; ".join(s.rationale),
        }
        for s in decision.signals
    ]
    pd.DataFrame(rows, columns=["source", "verdict", "confidence", "weight", "rationale"]).to_csv(
        run_dir / "signals.csv", index=False,
    )
    log.info("Wrote signals.csv  (%d signals)", len(rows))

    # 4. plots
    plot_close_price(bars, decision, run_dir / "plots" / "close_price.png")
    plot_vote_tally(decision, run_dir / "plots" / "vote_tally.png")

    # 5. README.md
    readme_lines = [
        "Consensus Evaluation",
        f"Symbol: {symbol} {timeframe}",
        f"Run ID: {run_id}",
        f"Bars: {len(bars)} (last {bars['time'].iloc[-1].isoformat()})",
        f"Decision: {decision.recommendation}",
        f"Risk: {decision.risk_level.value}",
        f"Reproduce: python -m consensus_engine evaluate --config {config_path}",
    ]
    if decision.failed_agents:
        readme_lines.insert(-1, f"Excluded agents: {', '.join(decision.failed_agents)}")
    (run_dir / "README.md").write_text(
        "\n".join(readme_lines) + "\n", encoding="utf-8",
    )
    log.info("Wrote README.md")

    log.info("✓ Run complete: %s", run_dir)
    return run_id
