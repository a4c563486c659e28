from dataclasses import dataclass

import pandas as pd

from .base import Capability, MarketContext, clamp, insufficient, ratio
from .signal import Signal, Verdict


@dataclass(frozen=True)
class VolumeProfile:
    poc: float              # point of control: price level with the most volume
    poc_share: float        # % of total volume at the POC
    value_low: float
    value_high: float
    value_share: float      # % of total volume inside the value area
    position: str           # ABOVE_VALUE_AREA / IN_VALUE_AREA / BELOW_VALUE_AREA


def build_profile(bars: pd.DataFrame, tick: float = 0.05, value_area: float = 0.70) -> VolumeProfile:
    """Volume-at-price on closes rounded to ``tick``; value area is the
    highest-volume levels covering ``value_area`` of total volume."""
    levels = (bars["close"] / tick).round() * tick
    by_price = bars["volume"].groupby(levels.round(6)).sum().sort_values(ascending=False, kind="stable")
    total = float(by_price.sum())

    poc = float(by_price.index[0])
    covered = by_price.cumsum().shift(fill_value=0.0) < total * value_area
    area = by_price[covered]
    price = float(bars["close"].iloc[-1])
    low, high = float(area.index.min()), float(area.index.max())

    if price > high:
        position = "ABOVE_VALUE_AREA"
    elif price < low:
        position = "BELOW_VALUE_AREA"
    else:
        position = "IN_VALUE_AREA"

    return VolumeProfile(
        poc=poc,
        poc_share=float(by_price.iloc[0]) / total * 100 if total > 0 else 0.0,
        value_low=low,
        value_high=high,
        value_share=float(area.sum()) / total * 100 if total > 0 else 0.0,
        position=position,
    )


@dataclass
class VolumeProfileAgent:
    """
    Price outside the value area is expected to rotate back toward it:
    below leans calls, above leans puts. The score measures how convincing
    that setup is.
    """
    min_bars: int = 20
    window: int = 50
    _name: str = "VolumeProfile"

    @property
    def name(self) -> str:
        return self._name

    @property
    def requires(self) -> frozenset[Capability]:
        return frozenset()

    def analyze(self, ctx: MarketContext) -> Signal:
        bars = ctx.bars
        if len(bars) < self.min_bars:
            return insufficient(
                self.name, f"insufficient data for volume profile (need {self.min_bars}+ bars)"
            )
        recent = bars.tail(self.window)
        if float(recent["volume"].sum()) <= 0:
            return insufficient(self.name, "no traded volume in profile window")

        profile = build_profile(recent)
        price = float(recent["close"].iloc[-1])
        distance = ratio(abs(price - profile.poc), profile.poc, default=0.0) * 100
        outside = profile.position != "IN_VALUE_AREA"

        score = 50.0
        if outside:
            score += 20
            if distance > 1.0:
                score += 15
            elif distance > 0.5:
                score += 8
        if profile.poc_share > 20:
            score += 10
        elif profile.poc_share > 15:
            score += 5
        if profile.value_share > 75:
            score += 5
        score = clamp(score)

        rationale = [
            f"POC {profile.poc:.2f} ({profile.poc_share:.1f}% volume)",
            f"value area {profile.value_low:.2f}-{profile.value_high:.2f}",
            f"price {profile.position}, {distance:.2f}% from POC",
            f"profile score {score:.0f}",
        ]
        detail = {"poc": profile.poc, "position": profile.position, "score": score}

        if outside and score >= 55:
            verdict = Verdict.BUY_CALL if profile.position == "BELOW_VALUE_AREA" else Verdict.BUY_PUT
            if score >= 70:
                conf = min(85.0, 60 + score * 0.25)
            else:
                conf = min(75.0, 50 + score * 0.2)
            rationale.append("price outside value area, rotation expected")
            return Signal(self.name, verdict, conf, rationale, detail)

        rationale.append("price in value area, no volume edge")
        return Signal(self.name, Verdict.NO_TRADE, 65.0, rationale, detail)


def build(params: dict) -> VolumeProfileAgent:
    return VolumeProfileAgent(**params)
