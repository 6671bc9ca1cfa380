"""
Out-of-sample posterior predictive forecasts.

A match in checkpoint w's batch is forecast with the global parameters of
checkpoint w-1 and the abilities both teams carry into the match (their
ability at round - 1), so nothing estimated from the match's own batch is
used.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

import numpy as np
import pandas as pd
from scipy import stats

from league_ability.model.errors import MissingCheckpointError
from league_ability.model.evaluation import credible_interval
from league_ability.model.inference import InferenceRun
from league_ability.model.rolling import RollingResult
from league_ability.model.schedule import checkpoint_of

logger = logging.getLogger(__name__)


@dataclass
class MatchForecast:
    """Predictive draws of the score difference for one match."""

    match: int
    home_team: int
    away_team: int
    checkpoint: int  # checkpoint whose parameters were used (w - 1)
    observed: float
    draws: np.ndarray

    @property
    def median(self) -> float:
        return float(np.median(self.draws))

    @property
    def mean(self) -> float:
        return float(np.mean(self.draws))

    def interval(self, level: float = 0.95) -> tuple[float, float]:
        return credible_interval(self.draws, level)

    def outcome_probabilities(self) -> dict[str, float]:
        """P(home win), P(draw), P(away win) from the draws rounded to whole goals."""
        rounded = np.sign(self.draws) * np.floor(np.abs(self.draws) + 0.5)
        return {
            "H": float(np.mean(rounded > 0)),
            "D": float(np.mean(rounded == 0)),
            "A": float(np.mean(rounded < 0)),
        }

    def summary(self) -> str:
        lo, hi = self.interval(0.95)
        probs = self.outcome_probabilities()
        return (
            f"Match {self.match}: team {self.home_team} vs team {self.away_team}\n"
            f"  Median margin: {self.median:+.2f} (95% CI [{lo:+.2f}, {hi:+.2f}])\n"
            f"  Home: {probs['H']:.1%}, Draw: {probs['D']:.1%}, Away: {probs['A']:.1%}"
        )


@dataclass
class ForecastSet:
    """Forecasts for a range of matches, plus the matches that could not be forecast."""

    forecasts: list[MatchForecast]
    skipped: dict[int, str] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.forecasts)

    def __iter__(self):
        return iter(self.forecasts)

    def observed(self) -> np.ndarray:
        return np.array([f.observed for f in self.forecasts])

    def draws(self) -> np.ndarray:
        """Draw matrix, shape (n_forecasts, S)."""
        return np.stack([f.draws for f in self.forecasts])

    def to_dataframe(self, levels: tuple[float, ...] = (0.5, 0.95)) -> pd.DataFrame:
        rows = []
        for f in self.forecasts:
            row = {
                "match": f.match,
                "home_team": f.home_team,
                "away_team": f.away_team,
                "checkpoint": f.checkpoint,
                "observed": f.observed,
                "median": f.median,
                "mean": f.mean,
            }
            for level in levels:
                lo, hi = f.interval(level)
                row[f"lower_{int(level * 100)}"] = lo
                row[f"upper_{int(level * 100)}"] = hi
            row.update({f"p_{k}": v for k, v in f.outcome_probabilities().items()})
            rows.append(row)
        return pd.DataFrame(rows)


class Forecaster:
    """
    Draw out-of-sample score differences from a rolling result.

    For match i in batch w, draw j:
        y_pred[i, j] ~ StudentT(ν[w-1, j],
                                a[j, hr(i)-1, h(i)] - a[j, ar(i)-1, a(i)] + b_home[w-1, j],
                                σ_y[w-1, j])

    Entering abilities come from the timeline. When a team's previous round
    was itself first estimated in batch w (it played twice in the batch),
    strict mode instead carries the team's last ability known at checkpoint
    w-1 forward with checkpoint w-1's random walk volatility.

    Usage:
        forecaster = Forecaster(result, random_seed=1)
        forecast = forecaster.forecast_match(57)
        forecasts = forecaster.forecast_all()
    """

    def __init__(
        self,
        result: RollingResult,
        strict: bool = True,
        random_seed: int | None = None,
    ):
        self.result = result
        self.data = result.data
        self.timeline = result.timeline
        self.strict = strict
        self.rng = np.random.default_rng(random_seed)

    def eligible(self, match_index: int) -> bool:
        """True if the match has a preceding batch and both teams have played before."""
        m = self.data.match(match_index)
        return (
            checkpoint_of(match_index, self.data.batch_size) >= 2
            and m.home_round >= 2
            and m.away_round >= 2
        )

    def _previous_run(self, checkpoint: int) -> InferenceRun:
        prev = self.result.runs.get(checkpoint - 1)
        if prev is None:
            reason = self.result.failed.get(checkpoint - 1, "not fit")
            raise MissingCheckpointError(
                f"Checkpoint {checkpoint - 1} unavailable ({reason})"
            )
        if prev.n_draws != self.timeline.n_draws:
            raise ValueError(
                f"Checkpoint {checkpoint - 1} has {prev.n_draws} draws, "
                f"timeline has {self.timeline.n_draws}"
            )
        return prev

    def entering_ability(
        self, team: int, round_: int, checkpoint: int, prev: InferenceRun
    ) -> np.ndarray:
        """
        Ability draws a team carries into its match at `round_` in batch `checkpoint`.

        Raises:
            MissingCheckpointError: If the needed timeline cell is unset
        """
        previous = round_ - 1
        source = checkpoint_of(
            self.data.match_at_round(team, previous).index, self.data.batch_size
        )
        if source < checkpoint or not self.strict:
            return self.timeline.get(previous, team)

        # Last round reached by the team with data known at checkpoint - 1
        last = int(self.data.rounds_played(checkpoint - 1)[team - 1])
        if last >= 1:
            base = self.timeline.get(last, team)
        else:
            base = (
                prev.parameters["b_prev"] * self.data.teams[team - 1].a0
                + prev.parameters["sigma_a0"] * self.rng.standard_normal(prev.n_draws)
            )
            last = 1

        steps = previous - last
        if steps > 0:
            base = base + (
                prev.parameters["sigma_a"][:, team - 1]
                * np.sqrt(steps)
                * self.rng.standard_normal(prev.n_draws)
            )
        return base

    def forecast_match(self, match_index: int) -> MatchForecast:
        """
        Forecast one match.

        Raises:
            MissingCheckpointError: If the match is in the first batch, either
                team has no previous round, or a needed checkpoint failed
        """
        m = self.data.match(match_index)
        w = checkpoint_of(match_index, self.data.batch_size)

        if not self.eligible(match_index):
            if w < 2:
                reason = "is in the first batch; no preceding checkpoint"
            else:
                reason = "is a team's first match; no entering ability"
            raise MissingCheckpointError(f"Match {match_index} {reason}")

        prev = self._previous_run(w)
        home = self.entering_ability(m.home_team, m.home_round, w, prev)
        away = self.entering_ability(m.away_team, m.away_round, w, prev)

        mu = home - away + prev.parameters["b_home"]
        draws = stats.t.rvs(
            df=prev.parameters["nu"],
            loc=mu,
            scale=prev.parameters["sigma_y"],
            random_state=self.rng,
        )

        return MatchForecast(
            match=match_index,
            home_team=m.home_team,
            away_team=m.away_team,
            checkpoint=w - 1,
            observed=float(m.score_diff),
            draws=np.asarray(draws, dtype=float),
        )

    def forecast_all(self, start: int | None = None, end: int | None = None) -> ForecastSet:
        """
        Forecast every eligible match in [start, end].

        Defaults to the whole season after the first batch. Matches that
        cannot be forecast are listed in ForecastSet.skipped with the reason.
        """
        start = start or self.data.batch_size + 1
        end = end or self.data.n_matches

        forecasts = []
        skipped = {}
        for i in range(start, end + 1):
            try:
                forecasts.append(self.forecast_match(i))
            except MissingCheckpointError as e:
                skipped[i] = str(e)

        if skipped:
            logger.warning("Skipped %d of %d matches", len(skipped), end - start + 1)
        return ForecastSet(forecasts=forecasts, skipped=skipped)
