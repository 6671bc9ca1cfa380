"""CLI helper functions shared across commands."""

from __future__ import annotations

from pathlib import Path

from league_ability.model.data import LeagueData
from league_ability.model.rolling import RollingResult
from league_ability.utils.logging import print_section, print_success, print_error, print_info, print_warning


def load_result(state_dir: Path, verbose: bool = True) -> RollingResult:
    """
    Load saved pipeline state.

    Args:
        state_dir: Directory written by RollingResult.save()
        verbose: Print loading status

    Returns:
        RollingResult

    Raises:
        ValueError: If the directory does not hold a saved result

    Example:
        >>> result = load_result(Path("~/.cache/league_ability/season"))
        >>> result.report()["complete"]
    """
    if verbose:
        print_info(f"Loading state: {state_dir}")

    try:
        result = RollingResult.load(state_dir)
    except ValueError as e:
        if verbose:
            print_error(f"Failed to load state: {e}")
        raise

    if verbose:
        report = result.report()
        print_success("Loaded successfully")
        print_info(f"  Checkpoints fit: {len(report['succeeded'])}/{report['n_checkpoints']}")
        print_info(f"  Timeline coverage: {report['timeline_coverage']:.1%}")
        if report["failed"]:
            print_warning(f"  Failed checkpoints: {sorted(report['failed'])}")

    return result


def setup_data(
    matches_path: Path,
    teams_path: Path,
    batch_size: int,
    verbose: bool = True,
) -> LeagueData:
    """
    Load and index a season.

    Args:
        matches_path: CSV with one row per match in schedule order
        teams_path: CSV with team_id, name, prior_points
        batch_size: Matches per checkpoint
        verbose: Print status messages

    Returns:
        LeagueData
    """
    if verbose:
        print_section("LOADING DATA")

    data = LeagueData.from_csv(matches_path, teams_path, batch_size=batch_size)

    if verbose:
        print_success(f"Loaded: {data.n_matches} matches")
        print_info(f"  Teams: {data.n_teams}")
        print_info(f"  Checkpoints: {data.n_checkpoints} of {batch_size} matches")
        print_info(f"  Max round: {data.max_round()}")

    return data


def format_coverage(values: dict[float, float]) -> str:
    """Format a level -> coverage mapping, e.g. '50%: 0.512, 95%: 0.947'."""
    return ", ".join(f"{level:.0%}: {value:.3f}" for level, value in values.items())
