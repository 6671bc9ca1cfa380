"""
Inference machinery for the ability state-space model.

Supports:
- Full MCMC sampling (NUTS, multiple chains merged after warmup)
- Replicated score differences for posterior predictive checks
- Convergence diagnostics with a hard pass/fail per checkpoint
- Saving and loading of individual checkpoint runs
"""

from __future__ import annotations

import logging
import pickle
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

import arviz as az
import numpy as np
import pymc as pm
from pymc.exceptions import SamplingError
from pymc.sampling.parallel import ParallelSamplingError
import xarray as xr

from league_ability.model.core import AbilityModel, ModelConfig, GLOBAL_PARAMETERS
from league_ability.model.data import LeagueData
from league_ability.model.errors import InferenceFailure

logger = logging.getLogger(__name__)


@dataclass
class InferenceConfig:
    """Configuration for model inference."""

    # MCMC settings
    draws: int = 375
    tune: int = 1000
    chains: int = 4
    cores: int = 4
    target_accept: float = 0.9
    random_seed: int | None = None

    # Convergence bounds
    check_convergence: bool = True
    max_r_hat: float = 1.05
    min_ess: float = 100.0

    # Caching
    cache_dir: Path = Path("~/.cache/league_ability").expanduser()

    @property
    def n_samples(self) -> int:
        """Posterior draws S after merging chains."""
        return self.draws * self.chains


@dataclass
class InferenceRun:
    """
    Posterior draws for one checkpoint, with chains merged into S draws.

    Attributes:
        checkpoint: Checkpoint index w (1-based)
        n_matches: Matches in the window (w * C)
        ability: Ability draws, shape (S, max_round, T); round r is at index r-1
        parameters: Global draws; shape (S,) for scalars, (S, T) for sigma_a
        replicates: Replicated score differences, shape (S, n_matches), or None
        diagnostics: Convergence and degeneracy summary
        valid: False if the engine marked the run unusable
    """

    checkpoint: int
    n_matches: int
    ability: np.ndarray
    parameters: dict[str, np.ndarray]
    replicates: np.ndarray | None = None
    diagnostics: dict = field(default_factory=dict)
    valid: bool = True

    @property
    def n_draws(self) -> int:
        return self.ability.shape[0]

    @property
    def max_round(self) -> int:
        return self.ability.shape[1]

    @property
    def n_teams(self) -> int:
        return self.ability.shape[2]

    @classmethod
    def from_trace(
        cls,
        trace: az.InferenceData,
        checkpoint: int,
        n_matches: int,
        diagnostics: dict | None = None,
    ) -> "InferenceRun":
        """
        Flatten an ArviZ trace into S = chains × draws samples.

        Args:
            trace: InferenceData with a posterior group (and optionally
                   posterior_predictive with 'y')
            checkpoint: Checkpoint index
            n_matches: Matches in the window
            diagnostics: Precomputed diagnostics

        Returns:
            InferenceRun
        """
        posterior = trace.posterior.stack(sample=("chain", "draw"))

        ability = posterior["a"].transpose("sample", "round", "team").values
        parameters = {
            name: posterior[name].transpose("sample").values
            for name in GLOBAL_PARAMETERS
        }
        parameters["sigma_a"] = posterior["sigma_a"].transpose("sample", "team").values

        replicates = None
        if hasattr(trace, "posterior_predictive") and "y" in trace.posterior_predictive:
            replicates = (
                trace.posterior_predictive["y"]
                .stack(sample=("chain", "draw"))
                .transpose("sample", "match")
                .values
            )

        return cls(
            checkpoint=checkpoint,
            n_matches=n_matches,
            ability=np.asarray(ability, dtype=float),
            parameters={k: np.asarray(v, dtype=float) for k, v in parameters.items()},
            replicates=replicates,
            diagnostics=diagnostics or {},
        )

    def to_dataset(self) -> xr.Dataset:
        """Labelled arrays keyed by draw, round, team and match."""
        n_draws, n_rounds, n_teams = self.ability.shape
        data_vars = {
            "ability": (("draw", "round", "team"), self.ability),
            "sigma_a": (("draw", "team"), self.parameters["sigma_a"]),
        }
        for name in GLOBAL_PARAMETERS:
            data_vars[name] = (("draw",), self.parameters[name])
        coords = {
            "draw": np.arange(n_draws),
            "round": np.arange(1, n_rounds + 1),
            "team": np.arange(1, n_teams + 1),
        }
        if self.replicates is not None:
            data_vars["replicates"] = (("draw", "match"), self.replicates)
            coords["match"] = np.arange(1, self.replicates.shape[1] + 1)

        return xr.Dataset(
            data_vars,
            coords=coords,
            attrs={
                "checkpoint": self.checkpoint,
                "n_matches": self.n_matches,
                "valid": int(self.valid),
            },
        )

    def save(self, directory: Path) -> Path:
        """
        Save the run to a directory.

        Saves:
        - run.nc: draws (netCDF)
        - metadata.pkl: diagnostics
        """
        directory = Path(directory)
        directory.mkdir(parents=True, exist_ok=True)
        self.to_dataset().to_netcdf(directory / "run.nc")
        with open(directory / "metadata.pkl", "wb") as f:
            pickle.dump({"diagnostics": self.diagnostics}, f)
        return directory

    @classmethod
    def load(cls, directory: Path) -> "InferenceRun":
        """Load a run written by save()."""
        directory = Path(directory)
        if not (directory / "run.nc").exists():
            raise ValueError(f"No saved run in {directory}")

        with xr.open_dataset(directory / "run.nc") as ds:
            ds = ds.load()
        with open(directory / "metadata.pkl", "rb") as f:
            metadata = pickle.load(f)

        parameters = {name: ds[name].values for name in GLOBAL_PARAMETERS}
        parameters["sigma_a"] = ds["sigma_a"].values
        return cls(
            checkpoint=int(ds.attrs["checkpoint"]),
            n_matches=int(ds.attrs["n_matches"]),
            ability=ds["ability"].values,
            parameters=parameters,
            replicates=ds["replicates"].values if "replicates" in ds else None,
            diagnostics=metadata.get("diagnostics", {}),
            valid=bool(ds.attrs["valid"]),
        )


class ModelFitter:
    """
    Fits the ability model to one data window and returns an InferenceRun.

    This is the inference engine used by the rolling controller. Any other
    callable with the signature ``engine(window, checkpoint) -> InferenceRun``
    can stand in for it.

    Usage:
        fitter = ModelFitter(ModelConfig(), InferenceConfig(draws=500))
        run = fitter.fit(data.window(3), checkpoint=3)
    """

    def __init__(
        self,
        model_config: ModelConfig | None = None,
        config: InferenceConfig | None = None,
    ):
        self.model_config = model_config or ModelConfig()
        self.config = config or InferenceConfig()

    def __call__(self, window: LeagueData, checkpoint: int) -> InferenceRun:
        return self.fit(window, checkpoint)

    def sample(self, window: LeagueData, checkpoint: int = 0) -> az.InferenceData:
        """
        Build the model for a window and run NUTS.

        Returns:
            ArviZ InferenceData with posterior (and posterior_predictive
            if replicates are enabled)

        Raises:
            InferenceFailure: If the sampler raises a sampling error
        """
        ability_model = AbilityModel(self.model_config)
        ability_model.build(window)

        seed = self.config.random_seed
        if seed is not None:
            seed = seed + checkpoint

        try:
            with ability_model.model:
                trace = pm.sample(
                    draws=self.config.draws,
                    tune=self.config.tune,
                    chains=self.config.chains,
                    cores=self.config.cores,
                    target_accept=self.config.target_accept,
                    random_seed=seed,
                    progressbar=False,
                    return_inferencedata=True,
                )
                if self.model_config.replicate:
                    pm.sample_posterior_predictive(
                        trace,
                        var_names=["y"],
                        extend_inferencedata=True,
                        random_seed=seed,
                        progressbar=False,
                    )
        except (SamplingError, ParallelSamplingError) as e:
            raise InferenceFailure(checkpoint, f"sampling failed: {e}") from e

        return trace

    def fit(self, window: LeagueData, checkpoint: int) -> InferenceRun:
        """
        Fit one checkpoint window.

        Args:
            window: Matches 1..w*C
            checkpoint: Checkpoint index w

        Returns:
            InferenceRun with S = draws × chains samples

        Raises:
            InferenceFailure: If sampling fails or diagnostics are out of bounds
        """
        logger.info(
            "Checkpoint %d: sampling %d matches (%d draws x %d chains, %d tune)",
            checkpoint, window.n_matches, self.config.draws,
            self.config.chains, self.config.tune,
        )
        started = datetime.now()
        trace = self.sample(window, checkpoint)

        diagnostics = self.diagnostics(trace, window)
        diagnostics["fit_time"] = datetime.now()
        diagnostics["fit_seconds"] = (diagnostics["fit_time"] - started).total_seconds()

        run = InferenceRun.from_trace(
            trace,
            checkpoint=checkpoint,
            n_matches=window.n_matches,
            diagnostics=diagnostics,
        )

        if not diagnostics["converged"]:
            message = (
                f"not converged (r_hat_max={diagnostics['r_hat_max']:.3f}, "
                f"ess_bulk_min={diagnostics['ess_bulk_min']:.0f}, "
                f"divergences={diagnostics['divergences']})"
            )
            if self.config.check_convergence:
                raise InferenceFailure(checkpoint, message, diagnostics)
            logger.warning("Checkpoint %d: %s; convergence check disabled", checkpoint, message)

        return run

    def diagnostics(self, trace: az.InferenceData, window: LeagueData) -> dict:
        """
        Compute convergence and degeneracy diagnostics.

        Returns:
            Dictionary with R-hat / ESS summaries, divergences, the nu
            posterior median and any numeric degeneracy flags
        """
        summary = az.summary(
            trace,
            var_names=list(GLOBAL_PARAMETERS) + ["sigma_a", "a"],
            kind="diagnostics",
        )

        divergences = 0
        if hasattr(trace, "sample_stats") and "diverging" in trace.sample_stats:
            divergences = int(trace.sample_stats["diverging"].sum())

        nu_median = float(trace.posterior["nu"].median())
        played = window.rounds_played()
        single_match_teams = [
            window.teams[k].team_id for k in np.flatnonzero(played == 1)
        ]

        diagnostics = {
            "r_hat_max": float(summary["r_hat"].max()),
            "r_hat_mean": float(summary["r_hat"].mean()),
            "ess_bulk_min": float(summary["ess_bulk"].min()),
            "ess_tail_min": float(summary["ess_tail"].min()),
            "divergences": divergences,
            "nu_median": nu_median,
            "nu_degenerate": not (
                self.model_config.nu_min_warn <= nu_median <= self.model_config.nu_max_warn
            ),
            "single_match_teams": single_match_teams,
        }
        diagnostics["converged"] = (
            diagnostics["r_hat_max"] <= self.config.max_r_hat
            and diagnostics["ess_bulk_min"] >= self.config.min_ess
        )

        # Check for problems
        if diagnostics["nu_degenerate"]:
            logger.warning("Degenerate nu estimate (median %.2f)", nu_median)
        if single_match_teams:
            logger.warning("Teams with a single match in window: %s", single_match_teams)
        if divergences:
            logger.warning("%d divergent transitions", divergences)

        return diagnostics
