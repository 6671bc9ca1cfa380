"""
Ability timeline stitched together from many checkpoint fits.

Every (round, team) cell holds S ability draws and is written exactly
once, by the checkpoint whose batch first reaches that round for that team.
Unset cells hold NaN and have owner 0.
"""

from __future__ import annotations

from pathlib import Path

import numpy as np
import pandas as pd
import xarray as xr

from league_ability.model.errors import MissingCheckpointError

UNOWNED = 0


class AbilityTimeline:
    """
    Write-once store of ability draws indexed by (draw, round, team).

    Rounds and teams are 1-based in the public API.

    Usage:
        timeline = AbilityTimeline(n_draws=1500, n_rounds=38, n_teams=20)
        timeline.write(round_=3, team=7, values=run.ability[:, 2, 6], checkpoint=4)
        draws = timeline.get(3, 7)
    """

    def __init__(self, n_draws: int, n_rounds: int, n_teams: int):
        self.values = np.full((n_draws, n_rounds, n_teams), np.nan)
        self.owner = np.full((n_rounds, n_teams), UNOWNED, dtype=int)

    @property
    def n_draws(self) -> int:
        return self.values.shape[0]

    @property
    def n_rounds(self) -> int:
        return self.values.shape[1]

    @property
    def n_teams(self) -> int:
        return self.values.shape[2]

    def _check_cell(self, round_: int, team: int) -> None:
        if not 1 <= round_ <= self.n_rounds:
            raise IndexError(f"Round {round_} outside 1..{self.n_rounds}")
        if not 1 <= team <= self.n_teams:
            raise IndexError(f"Team {team} outside 1..{self.n_teams}")

    def write(self, round_: int, team: int, values: np.ndarray, checkpoint: int) -> None:
        """
        Assign the draws for one cell.

        Raises:
            RuntimeError: If the cell already has an owner
            ValueError: If the number of draws does not match the store
        """
        self._check_cell(round_, team)
        if checkpoint < 1:
            raise ValueError(f"Checkpoints are 1-based, got {checkpoint}")

        current = self.owner[round_ - 1, team - 1]
        if current != UNOWNED:
            raise RuntimeError(
                f"Cell (round={round_}, team={team}) already written by "
                f"checkpoint {current}; checkpoint {checkpoint} tried to overwrite it"
            )

        values = np.asarray(values, dtype=float)
        if values.shape != (self.n_draws,):
            raise ValueError(
                f"Expected {self.n_draws} draws for cell (round={round_}, team={team}), "
                f"got shape {values.shape}"
            )

        self.values[:, round_ - 1, team - 1] = values
        self.owner[round_ - 1, team - 1] = checkpoint

    def is_set(self, round_: int, team: int) -> bool:
        self._check_cell(round_, team)
        return self.owner[round_ - 1, team - 1] != UNOWNED

    def owner_of(self, round_: int, team: int) -> int:
        """Checkpoint that wrote the cell, or 0 if unset."""
        self._check_cell(round_, team)
        return int(self.owner[round_ - 1, team - 1])

    def get(self, round_: int, team: int) -> np.ndarray:
        """
        Ability draws for a team at a round.

        Raises:
            MissingCheckpointError: If the cell was never written
        """
        if not self.is_set(round_, team):
            raise MissingCheckpointError(
                f"No ability estimate for team {team} at round {round_}"
            )
        return self.values[:, round_ - 1, team - 1]

    def owned_by(self, checkpoint: int) -> list[tuple[int, int]]:
        """(round, team) cells written by a checkpoint."""
        rounds, teams = np.nonzero(self.owner == checkpoint)
        return [(int(r) + 1, int(t) + 1) for r, t in zip(rounds, teams)]

    def missing_cells(self, expected: np.ndarray | None = None) -> list[tuple[int, int]]:
        """
        Unset (round, team) cells.

        Args:
            expected: Rounds each team actually reaches (index 0 is team 1).
                      Cells beyond a team's last round are not counted.
        """
        missing = []
        for t in range(self.n_teams):
            last = self.n_rounds if expected is None else int(expected[t])
            for r in range(last):
                if self.owner[r, t] == UNOWNED:
                    missing.append((r + 1, t + 1))
        return missing

    def is_complete(self, expected: np.ndarray | None = None) -> bool:
        return not self.missing_cells(expected)

    def coverage_fraction(self, expected: np.ndarray | None = None) -> float:
        """Fraction of expected cells that are set."""
        if expected is None:
            total = self.n_rounds * self.n_teams
        else:
            total = int(np.sum(expected))
        if total == 0:
            return 1.0
        return 1.0 - len(self.missing_cells(expected)) / total

    def posterior_mean(self, team_names: list[str] | None = None) -> pd.DataFrame:
        """Mean ability per round (rows) and team (columns); unset cells are NaN."""
        means = self.values.mean(axis=0)
        columns = team_names or list(range(1, self.n_teams + 1))
        return pd.DataFrame(
            means,
            index=pd.Index(range(1, self.n_rounds + 1), name="round"),
            columns=columns,
        )

    def to_xarray(self) -> xr.Dataset:
        return xr.Dataset(
            {
                "ability": (("draw", "round", "team"), self.values),
                "owner": (("round", "team"), self.owner),
            },
            coords={
                "draw": np.arange(self.n_draws),
                "round": np.arange(1, self.n_rounds + 1),
                "team": np.arange(1, self.n_teams + 1),
            },
        )

    def save(self, path: Path) -> Path:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        self.to_xarray().to_netcdf(path)
        return path

    @classmethod
    def load(cls, path: Path) -> "AbilityTimeline":
        with xr.open_dataset(path) as ds:
            ds = ds.load()
        n_draws, n_rounds, n_teams = ds["ability"].shape
        timeline = cls(n_draws, n_rounds, n_teams)
        timeline.values = ds["ability"].values.astype(float)
        timeline.owner = ds["owner"].values.astype(int)
        return timeline
