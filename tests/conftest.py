"""Shared fixtures: a toy league and a deterministic stand-in for the sampler."""

import numpy as np
import pandas as pd
import pytest

from league_ability.model.data import LeagueData
from league_ability.model.errors import InferenceFailure
from league_ability.model.inference import InferenceRun
from league_ability.model.schedule import double_round_robin


def encoded_ability(checkpoint: int, round_: int, team: int) -> float:
    """Value the fake engine assigns to a[round, team] at a checkpoint."""
    return checkpoint * 1000 + round_ * 10 + team


class FakeEngine:
    """
    Returns draws whose values encode (checkpoint, round, team).

    Every draw is identical, sigma_y is tiny and sigma_a is zero, so
    forecasts are effectively deterministic.
    """

    def __init__(self, n_draws: int = 40, fail: set[int] | None = None):
        self.n_draws = n_draws
        self.fail = fail or set()
        self.calls = []

    def __call__(self, window: LeagueData, checkpoint: int) -> InferenceRun:
        self.calls.append((checkpoint, window.n_matches))
        if checkpoint in self.fail:
            raise InferenceFailure(checkpoint, "not converged (r_hat_max=1.500)")

        n_rounds = window.max_round()
        ability = np.empty((self.n_draws, n_rounds, window.n_teams))
        for r in range(n_rounds):
            for t in range(window.n_teams):
                ability[:, r, t] = encoded_ability(checkpoint, r + 1, t + 1)

        s = self.n_draws
        parameters = {
            "b_home": np.full(s, checkpoint * 0.1),
            "sigma_y": np.full(s, 1e-6),
            "nu": np.full(s, 30.0),
            "tau_a": np.full(s, 0.1),
            "b_prev": np.full(s, 1.0),
            "sigma_a0": np.full(s, 0.0),
            "sigma_a": np.zeros((s, window.n_teams)),
        }
        replicates = np.tile(window.score_diffs(), (s, 1))
        return InferenceRun(
            checkpoint=checkpoint,
            n_matches=window.n_matches,
            ability=ability,
            parameters=parameters,
            replicates=replicates,
            diagnostics={"converged": True},
        )


@pytest.fixture
def toy_teams():
    return pd.DataFrame({
        "team_id": [1, 2, 3, 4],
        "name": ["Ajax", "Feyenoord", "PSV", "Twente"],
        "prior_points": [80, 65, 84, 50],
    })


@pytest.fixture
def toy_matches():
    """
    Double round robin for 4 teams (12 matches).

    Schedule: (1,4) (3,2) (3,1) | (4,2) (1,2) (4,3) | (4,1) (2,3) (1,3) | (2,4) (2,1) (3,4)
    """
    fixtures = double_round_robin(4)
    goals = [(2, 1), (0, 0), (1, 3), (2, 2), (3, 0), (1, 2),
             (0, 1), (2, 0), (1, 1), (4, 1), (0, 2), (1, 0)]
    odds = [(2.1, 3.2, 3.6), (2.5, 3.1, 2.9), (2.0, 3.4, 3.8), (2.8, 3.2, 2.6),
            (1.8, 3.5, 4.4), (2.2, 3.3, 3.3), (3.0, 3.2, 2.4), (2.4, 3.1, 3.0),
            (1.9, 3.4, 4.1), (2.6, 3.2, 2.8), (3.4, 3.3, 2.1), (2.0, 3.3, 3.9)]
    return pd.DataFrame({
        "home_team": [h for h, _ in fixtures],
        "away_team": [a for _, a in fixtures],
        "home_goals": [g[0] for g in goals],
        "away_goals": [g[1] for g in goals],
        "home_odds": [o[0] for o in odds],
        "draw_odds": [o[1] for o in odds],
        "away_odds": [o[2] for o in odds],
    })


@pytest.fixture
def toy_data(toy_matches, toy_teams):
    return LeagueData.from_frames(toy_matches, toy_teams, batch_size=3)
