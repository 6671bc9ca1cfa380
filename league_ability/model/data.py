"""
Match data for a single round-robin season.

Holds the teams (with their prior-season strength score), the ordered
fixture list with team-relative round indices, and the batching of the
season into checkpoints.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

import numpy as np
import pandas as pd

from league_ability.model.errors import ScheduleError
from league_ability.model.schedule import (
    batch_bounds,
    check_batch_size,
    index_rounds,
    validate_rounds,
)

logger = logging.getLogger(__name__)

MATCH_COLUMNS = ("home_team", "away_team", "home_goals", "away_goals")
ODDS_COLUMNS = ("home_odds", "draw_odds", "away_odds")
TEAM_COLUMNS = ("team_id", "name", "prior_points")


@dataclass(frozen=True)
class Team:
    """A competitor with its prior-season strength score a0 in [-1, 1]."""

    team_id: int
    name: str
    a0: float


@dataclass(frozen=True)
class Match:
    """A played fixture with its team-relative round indices."""

    index: int  # 1-based position in the schedule
    home_team: int
    away_team: int
    home_goals: int
    away_goals: int
    home_round: int
    away_round: int
    home_odds: float = float("nan")
    draw_odds: float = float("nan")
    away_odds: float = float("nan")

    @property
    def score_diff(self) -> int:
        return self.home_goals - self.away_goals

    @property
    def outcome(self) -> str:
        """'H' for a home win, 'D' for a draw, 'A' for an away win."""
        if self.score_diff > 0:
            return "H"
        if self.score_diff < 0:
            return "A"
        return "D"

    def odds_for(self, outcome: str) -> float:
        return {"H": self.home_odds, "D": self.draw_odds, "A": self.away_odds}[outcome]


def prior_strength(points) -> np.ndarray:
    """
    Rescale prior-season points linearly onto [-1, 1].

    a0 = 2x / (xmax - xmin) - (xmax + xmin) / (xmax - xmin)

    If every team has the same points the spread is undefined and all
    teams get a0 = 0.
    """
    x = np.asarray(points, dtype=float)
    if x.size == 0:
        raise ValueError("No prior points given")
    if np.isnan(x).any():
        raise ValueError("Prior points contain missing values")

    xmin, xmax = x.min(), x.max()
    if xmax == xmin:
        return np.zeros_like(x)
    return 2 * x / (xmax - xmin) - (xmax + xmin) / (xmax - xmin)


@dataclass
class LeagueData:
    """
    Teams and indexed matches for one season.

    Usage:
        data = LeagueData.from_csv("matches.csv", "teams.csv", batch_size=10)
        window = data.window(3)       # matches 1..30
        new = data.batch(3)           # matches 21..30
    """

    teams: list[Team]
    matches: list[Match]
    batch_size: int
    _n_checkpoints: int = field(init=False, repr=False)

    def __post_init__(self):
        self._n_checkpoints = check_batch_size(len(self.matches), self.batch_size)

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def from_frames(
        cls,
        matches: pd.DataFrame,
        teams: pd.DataFrame,
        batch_size: int = 10,
    ) -> "LeagueData":
        """
        Build from a match table and a team table.

        Args:
            matches: One row per match in schedule order, with columns
                home_team, away_team, home_goals, away_goals and optionally
                home_odds, draw_odds, away_odds, date
            teams: One row per team with team_id (1..T), name, prior_points
            batch_size: Matches per checkpoint C

        Returns:
            LeagueData with round indices computed

        Raises:
            ScheduleError: On malformed input or an inconsistent schedule
        """
        missing = [c for c in MATCH_COLUMNS if c not in matches.columns]
        if missing:
            raise ScheduleError(f"Match table missing columns: {missing}")
        missing = [c for c in TEAM_COLUMNS if c not in teams.columns]
        if missing:
            raise ScheduleError(f"Team table missing columns: {missing}")

        teams = teams.sort_values("team_id").reset_index(drop=True)
        n_teams = len(teams)
        if teams["team_id"].tolist() != list(range(1, n_teams + 1)):
            raise ScheduleError(f"Team ids must be exactly 1..{n_teams}")

        if "date" in matches.columns:
            dates = pd.to_datetime(matches["date"])
            if not dates.is_monotonic_increasing:
                raise ScheduleError("Match dates are not in schedule order")

        a0 = prior_strength(teams["prior_points"].to_numpy())
        team_list = [
            Team(team_id=int(row.team_id), name=str(row.name), a0=float(a0[k]))
            for k, row in enumerate(teams.itertuples(index=False))
        ]

        incomplete = matches[list(MATCH_COLUMNS)].isna().any(axis=1)
        if incomplete.any():
            rows = (np.flatnonzero(incomplete.to_numpy()) + 1).tolist()
            raise ScheduleError(f"Missing team ids or goals in matches {rows}")

        home = matches["home_team"].to_numpy(dtype=int)
        away = matches["away_team"].to_numpy(dtype=int)
        home_round, away_round = index_rounds(home, away, n_teams)
        validate_rounds(home, away, home_round, away_round, n_teams)

        odds = {
            col: (
                matches[col].to_numpy(dtype=float)
                if col in matches.columns
                else np.full(len(matches), np.nan)
            )
            for col in ODDS_COLUMNS
        }

        match_list = [
            Match(
                index=i + 1,
                home_team=int(home[i]),
                away_team=int(away[i]),
                home_goals=int(matches["home_goals"].iloc[i]),
                away_goals=int(matches["away_goals"].iloc[i]),
                home_round=int(home_round[i]),
                away_round=int(away_round[i]),
                home_odds=float(odds["home_odds"][i]),
                draw_odds=float(odds["draw_odds"][i]),
                away_odds=float(odds["away_odds"][i]),
            )
            for i in range(len(matches))
        ]

        data = cls(teams=team_list, matches=match_list, batch_size=batch_size)
        logger.info(
            "Indexed %d matches for %d teams into %d checkpoints of %d",
            len(match_list), n_teams, data.n_checkpoints, batch_size,
        )
        return data

    @classmethod
    def from_csv(
        cls,
        matches_path: Path | str,
        teams_path: Path | str,
        batch_size: int = 10,
    ) -> "LeagueData":
        """Build from two CSV files with the columns of from_frames()."""
        return cls.from_frames(
            pd.read_csv(matches_path),
            pd.read_csv(teams_path),
            batch_size=batch_size,
        )

    # ------------------------------------------------------------------
    # Shape
    # ------------------------------------------------------------------

    @property
    def n_teams(self) -> int:
        return len(self.teams)

    @property
    def n_matches(self) -> int:
        return len(self.matches)

    @property
    def n_checkpoints(self) -> int:
        return self._n_checkpoints

    @property
    def a0(self) -> np.ndarray:
        return np.array([t.a0 for t in self.teams])

    @property
    def team_names(self) -> list[str]:
        return [t.name for t in self.teams]

    def max_round(self, checkpoint: int | None = None) -> int:
        """Highest round reached by any team within window w (whole season if None)."""
        matches = self.matches if checkpoint is None else self.window_matches(checkpoint)
        return max(max(m.home_round, m.away_round) for m in matches)

    def rounds_played(self, checkpoint: int | None = None) -> np.ndarray:
        """Rounds reached by each team (index 0 is team 1) within window w."""
        matches = self.matches if checkpoint is None else self.window_matches(checkpoint)
        played = np.zeros(self.n_teams, dtype=int)
        for m in matches:
            played[m.home_team - 1] = m.home_round
            played[m.away_team - 1] = m.away_round
        return played

    # ------------------------------------------------------------------
    # Windows and batches
    # ------------------------------------------------------------------

    def _check_checkpoint(self, checkpoint: int) -> None:
        if not 1 <= checkpoint <= self.n_checkpoints:
            raise ValueError(
                f"Checkpoint {checkpoint} outside 1..{self.n_checkpoints}"
            )

    def window_matches(self, checkpoint: int) -> list[Match]:
        """Matches 1..w*C, known at checkpoint w."""
        self._check_checkpoint(checkpoint)
        return self.matches[: checkpoint * self.batch_size]

    def batch(self, checkpoint: int) -> list[Match]:
        """Matches newly added at checkpoint w: (w-1)*C + 1 .. w*C."""
        self._check_checkpoint(checkpoint)
        first, last = batch_bounds(checkpoint, self.batch_size)
        return self.matches[first - 1 : last]

    def window(self, checkpoint: int) -> "LeagueData":
        """A LeagueData holding only matches known at checkpoint w."""
        return LeagueData(
            teams=self.teams,
            matches=self.window_matches(checkpoint),
            batch_size=self.batch_size,
        )

    def match(self, index: int) -> Match:
        """Match by 1-based schedule index."""
        if not 1 <= index <= self.n_matches:
            raise IndexError(f"Match {index} outside 1..{self.n_matches}")
        return self.matches[index - 1]

    def match_at_round(self, team: int, round_: int) -> Match:
        """The match in which a team reached a given round."""
        for m in self.matches:
            if (m.home_team == team and m.home_round == round_) or (
                m.away_team == team and m.away_round == round_
            ):
                return m
        raise KeyError(f"Team {team} never reaches round {round_}")

    # ------------------------------------------------------------------
    # Arrays
    # ------------------------------------------------------------------

    def arrays(self) -> dict[str, np.ndarray]:
        """Index arrays for model building (0-based team and round indices)."""
        return {
            "home_idx": np.array([m.home_team - 1 for m in self.matches]),
            "away_idx": np.array([m.away_team - 1 for m in self.matches]),
            "home_round_idx": np.array([m.home_round - 1 for m in self.matches]),
            "away_round_idx": np.array([m.away_round - 1 for m in self.matches]),
            "score_diff": np.array([m.score_diff for m in self.matches], dtype=float),
        }

    def score_diffs(self) -> np.ndarray:
        return np.array([m.score_diff for m in self.matches], dtype=float)

    def to_dataframe(self) -> pd.DataFrame:
        """One row per match, including derived score_diff and rounds."""
        names = {t.team_id: t.name for t in self.teams}
        rows = []
        for m in self.matches:
            rows.append({
                "match": m.index,
                "checkpoint": (m.index - 1) // self.batch_size + 1,
                "home_team": m.home_team,
                "away_team": m.away_team,
                "home_name": names[m.home_team],
                "away_name": names[m.away_team],
                "home_goals": m.home_goals,
                "away_goals": m.away_goals,
                "score_diff": m.score_diff,
                "outcome": m.outcome,
                "home_round": m.home_round,
                "away_round": m.away_round,
                "home_odds": m.home_odds,
                "draw_odds": m.draw_odds,
                "away_odds": m.away_odds,
            })
        return pd.DataFrame(rows)
