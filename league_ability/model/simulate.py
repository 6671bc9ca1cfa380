"""
Simulate seasons from the ability model with known parameters.

Used to check calibration: forecasts fit to simulated data should cover
the simulated outcomes at their nominal rate.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
import pandas as pd
from scipy import stats

from league_ability.model.schedule import double_round_robin, index_rounds

# Bookmaker overround applied to fair odds
DEFAULT_MARGIN = 0.05


@dataclass
class SimulationParameters:
    """Known parameter values for a simulated season."""

    b_home: float = 0.3
    sigma_y: float = 1.3
    nu: float = 8.0
    b_prev: float = 0.8
    sigma_a0: float = 0.2
    sigma_a: float | np.ndarray = 0.05


@dataclass
class SimulatedSeason:
    """A simulated season: the match table and the true latent abilities."""

    matches: pd.DataFrame
    ability: np.ndarray  # shape (n_rounds, n_teams)
    score_diff: np.ndarray  # continuous Student-t draws before rounding
    parameters: SimulationParameters


def outcome_odds(mu: np.ndarray, params: SimulationParameters, margin: float = DEFAULT_MARGIN) -> np.ndarray:
    """
    Decimal odds for home win / draw / away win under the true model.

    A draw is a score difference that rounds to zero.

    Returns:
        Array of shape (n, 3): home, draw, away odds
    """
    dist = stats.t(df=params.nu, loc=mu, scale=params.sigma_y)
    p_away = dist.cdf(-0.5)
    p_home = dist.sf(0.5)
    p_draw = 1.0 - p_home - p_away
    probs = np.column_stack([p_home, p_draw, p_away])
    probs = np.clip(probs, 1e-6, None)
    return 1.0 / (probs * (1.0 + margin))


def simulate_season(
    a0: np.ndarray,
    params: SimulationParameters | None = None,
    schedule: list[tuple[int, int]] | None = None,
    random_seed: int | None = None,
) -> SimulatedSeason:
    """
    Draw one season from the generative model.

    Args:
        a0: Prior-season strength per team (index 0 is team 1)
        params: True parameter values
        schedule: (home, away) fixtures; defaults to a double round robin
        random_seed: Seed for reproducibility

    Returns:
        SimulatedSeason whose `matches` frame can be passed straight to
        LeagueData.from_frames()
    """
    params = params or SimulationParameters()
    rng = np.random.default_rng(random_seed)
    a0 = np.asarray(a0, dtype=float)
    n_teams = len(a0)

    if schedule is None:
        schedule = double_round_robin(n_teams)
    home = np.array([h for h, _ in schedule])
    away = np.array([a for _, a in schedule])
    home_round, away_round = index_rounds(home, away, n_teams)
    n_rounds = int(max(home_round.max(), away_round.max()))

    sigma_a = np.broadcast_to(np.asarray(params.sigma_a, dtype=float), (n_teams,))
    ability = np.empty((n_rounds, n_teams))
    ability[0] = params.b_prev * a0 + params.sigma_a0 * rng.standard_normal(n_teams)
    for r in range(1, n_rounds):
        ability[r] = ability[r - 1] + sigma_a * rng.standard_normal(n_teams)

    mu = (
        ability[home_round - 1, home - 1]
        - ability[away_round - 1, away - 1]
        + params.b_home
    )
    y = stats.t.rvs(df=params.nu, loc=mu, scale=params.sigma_y, random_state=rng)

    # Observed goals: integer margin on top of a shared Poisson base
    margin = np.sign(y) * np.floor(np.abs(y) + 0.5)
    base = rng.poisson(1.0, size=len(y))
    home_goals = base + np.clip(margin, 0, None)
    away_goals = base + np.clip(-margin, 0, None)

    odds = outcome_odds(mu, params)

    matches = pd.DataFrame({
        "home_team": home,
        "away_team": away,
        "home_goals": home_goals.astype(int),
        "away_goals": away_goals.astype(int),
        "home_odds": odds[:, 0].round(2),
        "draw_odds": odds[:, 1].round(2),
        "away_odds": odds[:, 2].round(2),
    })
    return SimulatedSeason(matches=matches, ability=ability, score_diff=y, parameters=params)
