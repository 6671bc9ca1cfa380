"""
Calibration and wagering evaluation of predictive draws.

Includes:
- Equal-tailed credible intervals and empirical coverage
- In-sample coverage of replicated score differences
- A unit-stake betting backtest on the rounded median forecast
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

import numpy as np
import pandas as pd

from league_ability.model.data import LeagueData, Match

if TYPE_CHECKING:
    from league_ability.model.forecast import ForecastSet
    from league_ability.model.inference import InferenceRun


def credible_interval(draws: np.ndarray, level: float = 0.95) -> tuple[float, float]:
    """Equal-tailed interval from the (1 - level)/2 and (1 + level)/2 quantiles."""
    if not 0 < level < 1:
        raise ValueError(f"Credible level must be in (0, 1), got {level}")
    draws = np.asarray(draws, dtype=float)
    if draws.size == 0:
        raise ValueError("Cannot compute an interval from zero draws")
    tail = (1 - level) / 2
    lo, hi = np.quantile(draws, [tail, 1 - tail])
    return float(lo), float(hi)


def coverage(
    observed: np.ndarray,
    draws: np.ndarray,
    levels: tuple[float, ...] = (0.5, 0.95),
) -> dict[float, float]:
    """
    Fraction of observations inside their credible interval.

    Args:
        observed: Realised values, shape (n,)
        draws: Draw samples, shape (n, S); row k is the sample for observed[k]
        levels: Credible levels to evaluate

    Returns:
        Dictionary mapping level -> empirical coverage
    """
    observed = np.asarray(observed, dtype=float)
    draws = np.asarray(draws, dtype=float)
    if draws.ndim != 2 or draws.shape[0] != observed.shape[0]:
        raise ValueError(
            f"Draws shape {draws.shape} does not match {observed.shape[0]} observations"
        )
    if observed.size == 0:
        raise ValueError("No observations to evaluate")

    result = {}
    for level in levels:
        tail = (1 - level) / 2
        lo = np.quantile(draws, tail, axis=1)
        hi = np.quantile(draws, 1 - tail, axis=1)
        result[level] = float(np.mean((observed >= lo) & (observed <= hi)))
    return result


def in_sample_coverage(
    run: InferenceRun,
    data: LeagueData,
    levels: tuple[float, ...] = (0.5, 0.95),
) -> dict[float, float]:
    """Coverage of a run's replicated score differences over its own window."""
    if run.replicates is None:
        raise ValueError(f"Checkpoint {run.checkpoint} has no replicates")
    observed = data.score_diffs()[: run.n_matches]
    return coverage(observed, run.replicates.T, levels)


def round_half_away(x: float) -> int:
    """Round to the nearest integer, with .5 rounded away from zero."""
    return int(np.sign(x) * np.floor(np.abs(x) + 0.5))


def predicted_outcome(median: float) -> str:
    """Map a score-difference forecast to 'H', 'D' or 'A' after rounding."""
    rounded = round_half_away(median)
    if rounded > 0:
        return "H"
    if rounded < 0:
        return "A"
    return "D"


def wager_return(median: float, match: Match, unit: float = 1.0) -> float:
    """
    Net return of a unit bet on the rounded median forecast.

    The stake is always lost; the decimal odds of the realised outcome are
    paid (times the stake) when the prediction is right.
    """
    payout = unit * match.odds_for(match.outcome) if predicted_outcome(median) == match.outcome else 0.0
    return payout - unit


@dataclass
class BacktestResult:
    """Betting backtest over a set of forecasts."""

    bets: pd.DataFrame
    n_bets: int
    n_correct: int
    n_skipped: int
    total_staked: float
    net: float

    @property
    def hit_rate(self) -> float:
        return self.n_correct / self.n_bets if self.n_bets else float("nan")

    @property
    def roi(self) -> float:
        return self.net / self.total_staked if self.total_staked else float("nan")


def wager_backtest(
    medians: dict[int, float],
    data: LeagueData,
    unit: float = 1.0,
) -> BacktestResult:
    """
    Bet one unit per match on the outcome implied by the rounded median.

    Args:
        medians: Median forecast score difference by 1-based match index
        data: Season data with odds
        unit: Stake per match

    Returns:
        BacktestResult with one row per bet, in match order, and a running total
    """
    rows = []
    skipped = 0
    cumulative = 0.0
    for i in sorted(medians):
        m = data.match(i)
        odds = m.odds_for(m.outcome)
        if np.isnan([m.home_odds, m.draw_odds, m.away_odds]).any():
            skipped += 1
            continue

        prediction = predicted_outcome(medians[i])
        net = wager_return(medians[i], m, unit)
        cumulative += net
        rows.append({
            "match": i,
            "median": medians[i],
            "predicted": prediction,
            "realised": m.outcome,
            "odds": odds,
            "stake": unit,
            "net": net,
            "cumulative": cumulative,
        })

    bets = pd.DataFrame(
        rows,
        columns=["match", "median", "predicted", "realised", "odds", "stake", "net", "cumulative"],
    )
    return BacktestResult(
        bets=bets,
        n_bets=len(bets),
        n_correct=int((bets["predicted"] == bets["realised"]).sum()),
        n_skipped=skipped,
        total_staked=unit * len(bets),
        net=cumulative,
    )


@dataclass
class EvaluationReport:
    """In-sample and out-of-sample calibration plus the betting backtest."""

    in_sample: dict[float, float]
    out_of_sample: dict[float, float]
    backtest: BacktestResult
    n_forecasts: int

    def summary(self) -> str:
        lines = [f"Forecasts evaluated: {self.n_forecasts}"]
        for level, value in self.in_sample.items():
            lines.append(f"  In-sample {level:.0%} coverage: {value:.3f}")
        for level, value in self.out_of_sample.items():
            lines.append(f"  Out-of-sample {level:.0%} coverage: {value:.3f}")
        lines.append(
            f"  Backtest: {self.backtest.n_bets} bets, "
            f"{self.backtest.n_correct} correct, net {self.backtest.net:+.2f}"
        )
        return "\n".join(lines)


def evaluate(
    forecasts: ForecastSet,
    data: LeagueData,
    final_run: InferenceRun | None = None,
    levels: tuple[float, ...] = (0.5, 0.95),
    unit: float = 1.0,
) -> EvaluationReport:
    """
    Evaluate out-of-sample forecasts, and in-sample replicates if a full-season run is given.
    """
    in_sample = {}
    if final_run is not None and final_run.replicates is not None:
        in_sample = in_sample_coverage(final_run, data, levels)

    out_of_sample = {}
    if len(forecasts):
        out_of_sample = coverage(forecasts.observed(), forecasts.draws(), levels)
    medians = {f.match: f.median for f in forecasts}

    return EvaluationReport(
        in_sample=in_sample,
        out_of_sample=out_of_sample,
        backtest=wager_backtest(medians, data, unit),
        n_forecasts=len(forecasts),
    )
