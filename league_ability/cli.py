"""
Command-line interface for league ability estimation.

Supports the season workflow:
    league-ability fit --matches matches.csv --teams teams.csv --name season
    league-ability forecast --name season --out forecasts.csv
    league-ability evaluate --name season
    league-ability simulate --teams teams.csv --out matches.csv --seed 1
"""

from __future__ import annotations

import argparse
from pathlib import Path

import pandas as pd

from league_ability.model.inference import InferenceConfig

DEFAULT_CACHE = InferenceConfig().cache_dir


def _state_dir(args) -> Path:
    return Path(args.state_dir).expanduser() if args.state_dir else DEFAULT_CACHE / args.name


def _add_state_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--name",
        type=str,
        default="latest",
        help="Name of saved pipeline state under the cache directory"
    )
    parser.add_argument(
        "--state-dir",
        type=Path,
        default=None,
        help="Explicit state directory (overrides --name)"
    )


def main(argv: list[str] | None = None):
    parser = argparse.ArgumentParser(
        description="Sequential Bayesian team ability for round-robin leagues"
    )
    parser.add_argument("--quiet", action="store_true", help="Only log warnings")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Fit command
    fit_parser = subparsers.add_parser(
        "fit",
        help="Fit every checkpoint and stitch the ability timeline"
    )
    fit_parser.add_argument("--matches", type=Path, required=True, help="Match CSV in schedule order")
    fit_parser.add_argument("--teams", type=Path, required=True, help="Team CSV with prior_points")
    fit_parser.add_argument("--batch-size", type=int, default=10, help="Matches per checkpoint")
    fit_parser.add_argument("--draws", type=int, default=375, help="Draws per chain")
    fit_parser.add_argument("--tune", type=int, default=1000, help="Warmup iterations per chain")
    fit_parser.add_argument("--chains", type=int, default=4, help="Number of chains")
    fit_parser.add_argument("--workers", type=int, default=1, help="Checkpoints fit in parallel")
    fit_parser.add_argument("--seed", type=int, default=None, help="Random seed")
    _add_state_arguments(fit_parser)

    # Forecast command
    forecast_parser = subparsers.add_parser(
        "forecast",
        help="Out-of-sample forecasts for every eligible match"
    )
    forecast_parser.add_argument("--out", type=Path, required=True, help="Output CSV")
    forecast_parser.add_argument("--seed", type=int, default=None, help="Random seed")
    _add_state_arguments(forecast_parser)

    # Evaluate command
    evaluate_parser = subparsers.add_parser(
        "evaluate",
        help="Coverage and betting backtest"
    )
    evaluate_parser.add_argument("--unit", type=float, default=1.0, help="Stake per match")
    evaluate_parser.add_argument("--seed", type=int, default=None, help="Random seed")
    _add_state_arguments(evaluate_parser)

    # Simulate command
    simulate_parser = subparsers.add_parser(
        "simulate",
        help="Simulate a season from known parameters"
    )
    simulate_parser.add_argument("--teams", type=Path, required=True, help="Team CSV with prior_points")
    simulate_parser.add_argument("--out", type=Path, required=True, help="Output match CSV")
    simulate_parser.add_argument("--seed", type=int, default=None, help="Random seed")

    args = parser.parse_args(argv)

    from league_ability.utils.logging import setup_logging
    setup_logging(verbose=not args.quiet)

    if args.command == "fit":
        run_fit(args)
    elif args.command == "forecast":
        run_forecast(args)
    elif args.command == "evaluate":
        run_evaluate(args)
    elif args.command == "simulate":
        run_simulate(args)
    else:
        parser.print_help()


def run_fit(args):
    """Fit all checkpoints and save the pipeline state."""
    from league_ability.model.inference import ModelFitter
    from league_ability.model.rolling import PipelineConfig, RollingController
    from league_ability.utils.cli_helpers import setup_data
    from league_ability.utils.logging import print_section, print_success, print_warning

    data = setup_data(args.matches, args.teams, args.batch_size)

    config = InferenceConfig(
        draws=args.draws,
        tune=args.tune,
        chains=args.chains,
        cores=1 if args.workers > 1 else args.chains,
        random_seed=args.seed,
    )
    controller = RollingController(
        data,
        engine=ModelFitter(config=config),
        config=PipelineConfig(batch_size=args.batch_size, n_workers=args.workers),
    )

    print_section(f"FITTING {data.n_checkpoints} CHECKPOINTS")
    result = controller.run()

    report = result.report()
    if report["complete"]:
        print_success("All checkpoints converged; timeline complete")
    else:
        print_warning(f"Failed checkpoints: {sorted(report['failed'])}")
        print_warning(f"Timeline coverage: {report['timeline_coverage']:.1%}")
        for w, message in report["failed"].items():
            print(f"  {w}: {message}")

    path = result.save(_state_dir(args))
    print_success(f"Saved state to {path}")


def run_forecast(args):
    """Write forecasts for every eligible match."""
    from league_ability.model.forecast import Forecaster
    from league_ability.utils.cli_helpers import load_result
    from league_ability.utils.logging import print_success, print_warning

    result = load_result(_state_dir(args))
    forecasts = Forecaster(result, random_seed=args.seed).forecast_all()

    forecasts.to_dataframe().to_csv(args.out, index=False)
    print_success(f"Wrote {len(forecasts)} forecasts to {args.out}")
    if forecasts.skipped:
        print_warning(f"Skipped {len(forecasts.skipped)} matches")


def run_evaluate(args):
    """Print coverage and backtest results."""
    from league_ability.model.evaluation import evaluate
    from league_ability.model.forecast import Forecaster
    from league_ability.utils.cli_helpers import format_coverage, load_result
    from league_ability.utils.logging import print_section, print_warning

    result = load_result(_state_dir(args))
    forecasts = Forecaster(result, random_seed=args.seed).forecast_all()
    final_run = result.runs.get(result.data.n_checkpoints)

    report = evaluate(forecasts, result.data, final_run=final_run, unit=args.unit)

    print_section("EVALUATION")
    print(f"Forecasts: {report.n_forecasts} ({len(forecasts.skipped)} skipped)")
    if report.in_sample:
        print(f"In-sample coverage:     {format_coverage(report.in_sample)}")
    if report.out_of_sample:
        print(f"Out-of-sample coverage: {format_coverage(report.out_of_sample)}")
    else:
        print_warning("Out-of-sample coverage: no forecasts (every match skipped)")
    print(
        f"Backtest: {report.backtest.n_bets} bets, hit rate {report.backtest.hit_rate:.1%}, "
        f"net {report.backtest.net:+.2f}"
    )


def run_simulate(args):
    """Simulate a season and write the match table."""
    from league_ability.model.data import prior_strength
    from league_ability.model.simulate import simulate_season
    from league_ability.utils.logging import print_success

    teams = pd.read_csv(args.teams).sort_values("team_id")
    season = simulate_season(
        prior_strength(teams["prior_points"].to_numpy()),
        random_seed=args.seed,
    )
    season.matches.to_csv(args.out, index=False)
    print_success(f"Wrote {len(season.matches)} simulated matches to {args.out}")


if __name__ == "__main__":
    main()
