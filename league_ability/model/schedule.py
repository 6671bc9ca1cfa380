"""
Schedule indexing for round-robin leagues.

Turns an ordered list of fixtures into team-relative round counters. A
team's round only advances on matches that involve it, so the home and
away round of a single match generally differ.
"""

from __future__ import annotations

import numpy as np

from league_ability.model.errors import ScheduleError


def index_rounds(
    home_team: np.ndarray,
    away_team: np.ndarray,
    n_teams: int,
) -> tuple[np.ndarray, np.ndarray]:
    """
    Compute per-team round counters in schedule order.

    Args:
        home_team: 1-based home team ids, in schedule order
        away_team: 1-based away team ids, in schedule order
        n_teams: Number of teams T (valid ids are 1..T)

    Returns:
        (home_round, away_round) arrays, 1-based

    Raises:
        ScheduleError: If a team id is out of range or a team plays itself
    """
    home_team = np.asarray(home_team, dtype=int)
    away_team = np.asarray(away_team, dtype=int)

    if home_team.shape != away_team.shape:
        raise ScheduleError("home_team and away_team must have the same length")

    for label, ids in (("home", home_team), ("away", away_team)):
        bad = (ids < 1) | (ids > n_teams)
        if bad.any():
            position = int(np.flatnonzero(bad)[0]) + 1
            raise ScheduleError(
                f"Match {position}: {label} team id {ids[position - 1]} "
                f"outside 1..{n_teams}"
            )

    same = home_team == away_team
    if same.any():
        position = int(np.flatnonzero(same)[0]) + 1
        raise ScheduleError(f"Match {position}: team {home_team[position - 1]} plays itself")

    counter = np.zeros(n_teams + 1, dtype=int)
    home_round = np.empty(len(home_team), dtype=int)
    away_round = np.empty(len(away_team), dtype=int)

    for i, (h, a) in enumerate(zip(home_team, away_team)):
        counter[h] += 1
        counter[a] += 1
        home_round[i] = counter[h]
        away_round[i] = counter[a]

    return home_round, away_round


def validate_rounds(
    home_team: np.ndarray,
    away_team: np.ndarray,
    home_round: np.ndarray,
    away_round: np.ndarray,
    n_teams: int,
) -> None:
    """
    Check that every team's rounds form the sequence 1..R with no gaps or repeats.

    Raises:
        ScheduleError: On the first team whose rounds are not contiguous
    """
    teams = np.concatenate([home_team, away_team])
    rounds = np.concatenate([home_round, away_round])
    # Stable sort on match position keeps each team's rounds in schedule order
    positions = np.concatenate([np.arange(len(home_team)), np.arange(len(away_team))])

    for team in range(1, n_teams + 1):
        mask = teams == team
        team_rounds = rounds[mask][np.argsort(positions[mask], kind="stable")]
        expected = np.arange(1, len(team_rounds) + 1)
        if not np.array_equal(team_rounds, expected):
            raise ScheduleError(
                f"Team {team}: rounds {team_rounds.tolist()} are not 1..{len(team_rounds)}"
            )


def check_batch_size(n_matches: int, batch_size: int) -> int:
    """
    Return the number of checkpoints W = G / C.

    Raises:
        ScheduleError: If C is not positive or does not divide G
    """
    if batch_size < 1:
        raise ScheduleError(f"Batch size must be positive, got {batch_size}")
    if n_matches == 0:
        raise ScheduleError("No matches to index")
    if n_matches % batch_size != 0:
        raise ScheduleError(
            f"Match count {n_matches} is not divisible by batch size {batch_size}"
        )
    return n_matches // batch_size


def batch_bounds(checkpoint: int, batch_size: int) -> tuple[int, int]:
    """
    Matches newly added at a checkpoint, as a 1-based inclusive range.

    Checkpoint w owns matches (w-1)*C + 1 .. w*C.
    """
    if checkpoint < 1:
        raise ValueError(f"Checkpoints are 1-based, got {checkpoint}")
    return (checkpoint - 1) * batch_size + 1, checkpoint * batch_size


def checkpoint_of(match_index: int, batch_size: int) -> int:
    """Checkpoint whose batch contains the 1-based match index: ceil(i / C)."""
    if match_index < 1:
        raise ValueError(f"Match indices are 1-based, got {match_index}")
    return (match_index - 1) // batch_size + 1


def double_round_robin(
    n_teams: int,
    shuffle: bool = False,
    random_seed: int | None = None,
) -> list[tuple[int, int]]:
    """
    Generate a double round-robin fixture list with the circle method.

    The first half of the season has every pair meet once; the second half
    repeats the first with home and away swapped. Every team plays once per
    matchday when T is even.

    Args:
        n_teams: Number of teams (1-based ids)
        shuffle: Randomly relabel teams before building the schedule
        random_seed: Seed used when shuffling

    Returns:
        List of (home_team, away_team) tuples of length T*(T-1)
    """
    if n_teams < 2:
        raise ScheduleError(f"Need at least 2 teams, got {n_teams}")

    teams = list(range(1, n_teams + 1))
    if shuffle:
        rng = np.random.default_rng(random_seed)
        teams = [int(t) for t in rng.permutation(teams)]

    # Bye slot for odd leagues
    slots = teams + ([0] if n_teams % 2 else [])
    n_slots = len(slots)

    first_half = []
    for day in range(n_slots - 1):
        for k in range(n_slots // 2):
            a, b = slots[k], slots[n_slots - 1 - k]
            if a == 0 or b == 0:
                continue
            # Alternate home side so no team is always at home
            if (day + k) % 2 == 0:
                first_half.append((a, b))
            else:
                first_half.append((b, a))
        slots = [slots[0]] + [slots[-1]] + slots[1:-1]

    second_half = [(away, home) for home, away in first_half]
    return first_half + second_half
