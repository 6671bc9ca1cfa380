"""
Bayesian modelling components for league ability estimation.
"""

from league_ability.model.errors import ScheduleError, InferenceFailure, MissingCheckpointError
from league_ability.model.data import LeagueData, Team, Match, prior_strength
from league_ability.model.schedule import (
    index_rounds,
    validate_rounds,
    batch_bounds,
    checkpoint_of,
    double_round_robin,
)
from league_ability.model.core import AbilityModel, ModelConfig
from league_ability.model.inference import ModelFitter, InferenceConfig, InferenceRun
from league_ability.model.timeline import AbilityTimeline
from league_ability.model.rolling import RollingController, RollingResult, PipelineConfig
from league_ability.model.forecast import Forecaster, MatchForecast, ForecastSet
from league_ability.model.evaluation import (
    credible_interval,
    coverage,
    in_sample_coverage,
    round_half_away,
    predicted_outcome,
    wager_return,
    wager_backtest,
    evaluate,
    BacktestResult,
    EvaluationReport,
)
from league_ability.model.simulate import SimulationParameters, SimulatedSeason, simulate_season

__all__ = [
    "ScheduleError",
    "InferenceFailure",
    "MissingCheckpointError",
    "LeagueData",
    "Team",
    "Match",
    "prior_strength",
    "index_rounds",
    "validate_rounds",
    "batch_bounds",
    "checkpoint_of",
    "double_round_robin",
    "AbilityModel",
    "ModelConfig",
    "ModelFitter",
    "InferenceConfig",
    "InferenceRun",
    "AbilityTimeline",
    "RollingController",
    "RollingResult",
    "PipelineConfig",
    "Forecaster",
    "MatchForecast",
    "ForecastSet",
    "credible_interval",
    "coverage",
    "in_sample_coverage",
    "round_half_away",
    "predicted_outcome",
    "wager_return",
    "wager_backtest",
    "evaluate",
    "BacktestResult",
    "EvaluationReport",
    "SimulationParameters",
    "SimulatedSeason",
    "simulate_season",
]
