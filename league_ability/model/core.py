"""
Core PyMC model definition for time-varying team ability.

This module implements a hierarchical state-space model with:
- A per-team random walk over team-relative rounds
- Per-team walk volatility, half-normal with a shared half-Cauchy scale
- Initial ability regressed on the prior-season strength score
- Student-t score differences with a common home advantage
- Replicated score differences for in-sample posterior predictive checks
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
import pymc as pm
import pytensor.tensor as pt

from league_ability.model.data import LeagueData

GLOBAL_PARAMETERS = ("b_home", "sigma_y", "nu", "tau_a", "b_prev", "sigma_a0")


@dataclass
class ModelConfig:
    """Configuration for the ability state-space model."""

    # Home advantage ~ Normal(mean, sd)
    home_advantage_prior_mean: float = 0.0
    home_advantage_prior_sd: float = 1.0

    # Residual scale ~ HalfNormal(sd)
    sigma_y_prior_sd: float = 5.0

    # Tail heaviness ~ Gamma(alpha, beta)
    nu_prior_alpha: float = 2.0
    nu_prior_beta: float = 0.1

    # Walk volatility: sigma_a[t] ~ HalfNormal(tau_a), tau_a ~ HalfCauchy(beta)
    tau_a_prior_beta: float = 1.0

    # Initial ability: a[1, t] ~ Normal(b_prev * a0[t], sigma_a0)
    b_prev_prior_sd: float = 5.0
    sigma_a0_prior_sd: float = 5.0

    # Draw replicated score differences after sampling
    replicate: bool = True

    # Posterior median of nu outside these bounds is flagged as degenerate
    nu_min_warn: float = 2.0
    nu_max_warn: float = 100.0


class AbilityModel:
    """
    Hierarchical state-space model for team ability.

    The model structure:
        a[1, t]   ~ Normal(b_prev × a0[t], σ_a0)
        a[r, t]   ~ Normal(a[r-1, t], σ_a[t])          r = 2..R
        σ_a[t]    ~ HalfNormal(τ_a)
        τ_a       ~ HalfCauchy(1)

        y[i] ~ StudentT(ν, a[hr(i), h(i)] - a[ar(i), a(i)] + b_home, σ_y)

    where hr(i) and ar(i) are team-relative rounds from the schedule indexer.
    The model is rebuilt from scratch for every data window; only the
    matches and the number of rounds change.
    """

    def __init__(self, config: ModelConfig | None = None):
        self.config = config or ModelConfig()
        self.model: pm.Model | None = None
        self.data: LeagueData | None = None
        self.n_rounds: int = 0

    def build(self, data: LeagueData) -> pm.Model:
        """
        Build the PyMC model for a data window.

        Args:
            data: LeagueData restricted to the window being fit

        Returns:
            PyMC model ready for sampling
        """
        arrays = data.arrays()
        n_teams = data.n_teams
        n_rounds = data.max_round()

        coords = {
            "team": data.team_names,
            "round": np.arange(1, n_rounds + 1),
            "match": np.array([m.index for m in data.matches]),
        }

        with pm.Model(coords=coords) as model:
            # === Data ===
            home_idx = pm.Data("home_idx", arrays["home_idx"], dims="match")
            away_idx = pm.Data("away_idx", arrays["away_idx"], dims="match")
            home_round_idx = pm.Data("home_round_idx", arrays["home_round_idx"], dims="match")
            away_round_idx = pm.Data("away_round_idx", arrays["away_round_idx"], dims="match")
            a0 = pm.Data("a0", data.a0, dims="team")

            # === Hyperpriors ===
            tau_a = pm.HalfCauchy("tau_a", beta=self.config.tau_a_prior_beta)
            sigma_a = pm.HalfNormal("sigma_a", sigma=tau_a, dims="team")

            b_prev = pm.Normal("b_prev", mu=0, sigma=self.config.b_prev_prior_sd)
            sigma_a0 = pm.HalfNormal("sigma_a0", sigma=self.config.sigma_a0_prior_sd)

            # === Latent ability ===
            # Non-centered: a[1] = b_prev*a0 + sigma_a0*z0, a[r] = a[r-1] + sigma_a*z[r]
            a_init_raw = pm.Normal("a_init_raw", mu=0, sigma=1, dims="team")
            a_init = b_prev * a0 + sigma_a0 * a_init_raw

            if n_rounds > 1:
                innovations_raw = pm.Normal(
                    "innovations_raw",
                    mu=0,
                    sigma=1,
                    shape=(n_rounds - 1, n_teams),
                )
                steps = pt.cumsum(innovations_raw * sigma_a[None, :], axis=0)
                a = pm.Deterministic(
                    "a",
                    pt.concatenate([a_init[None, :], a_init[None, :] + steps], axis=0),
                    dims=("round", "team"),
                )
            else:
                a = pm.Deterministic("a", a_init[None, :], dims=("round", "team"))

            # === Fixed effects ===
            b_home = pm.Normal(
                "b_home",
                mu=self.config.home_advantage_prior_mean,
                sigma=self.config.home_advantage_prior_sd,
            )
            sigma_y = pm.HalfNormal("sigma_y", sigma=self.config.sigma_y_prior_sd)
            nu = pm.Gamma(
                "nu",
                alpha=self.config.nu_prior_alpha,
                beta=self.config.nu_prior_beta,
            )

            # === Likelihood ===
            mu = a[home_round_idx, home_idx] - a[away_round_idx, away_idx] + b_home
            pm.StudentT(
                "y",
                nu=nu,
                mu=mu,
                sigma=sigma_y,
                observed=arrays["score_diff"],
                dims="match",
            )

        self.model = model
        self.data = data
        self.n_rounds = n_rounds
        return model
