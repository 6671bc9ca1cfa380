"""Unit tests for league_ability.model.schedule."""

from collections import Counter

import numpy as np
import pytest

from league_ability.model.errors import ScheduleError
from league_ability.model.schedule import (
    batch_bounds,
    check_batch_size,
    checkpoint_of,
    double_round_robin,
    index_rounds,
    validate_rounds,
)


class TestIndexRounds:
    """Team-relative round counters."""

    def test_rounds_follow_team_appearances(self):
        """A team playing at positions 3, 7 and 19 gets rounds 1, 2, 3."""
        n = 19
        home = np.array([1] * n)
        away = np.array([2] * n)
        # Team 5 only appears at positions 3, 7, 19 (1-based), twice away, once home
        home[2], away[2] = 3, 5
        home[6], away[6] = 5, 4
        home[18], away[18] = 6, 5

        home_round, away_round = index_rounds(home, away, n_teams=6)

        team5 = []
        for i in range(n):
            if home[i] == 5:
                team5.append(home_round[i])
            if away[i] == 5:
                team5.append(away_round[i])
        assert team5 == [1, 2, 3]

    def test_home_and_away_rounds_differ(self):
        home, away = [1, 1, 3], [2, 3, 2]
        home_round, away_round = index_rounds(home, away, n_teams=3)
        # Team 3 played away in match 2, so match 3 is its second round
        assert home_round.tolist() == [1, 2, 2]
        assert away_round.tolist() == [1, 1, 2]

    def test_full_season_round_coverage(self):
        fixtures = double_round_robin(20)
        home = np.array([h for h, _ in fixtures])
        away = np.array([a for _, a in fixtures])
        home_round, away_round = index_rounds(home, away, n_teams=20)

        for team in range(1, 21):
            rounds = Counter(home_round[home == team].tolist() + away_round[away == team].tolist())
            assert sorted(rounds) == list(range(1, 39))
            assert set(rounds.values()) == {1}

    def test_team_out_of_range(self):
        with pytest.raises(ScheduleError, match="outside 1..4"):
            index_rounds([1, 5], [2, 3], n_teams=4)

    def test_zero_team_id(self):
        with pytest.raises(ScheduleError):
            index_rounds([0], [1], n_teams=4)

    def test_team_plays_itself(self):
        with pytest.raises(ScheduleError, match="plays itself"):
            index_rounds([1, 2], [3, 2], n_teams=4)


class TestValidateRounds:

    def test_valid_rounds_pass(self):
        home, away = np.array([1, 2, 1]), np.array([2, 3, 3])
        home_round, away_round = index_rounds(home, away, 3)
        validate_rounds(home, away, home_round, away_round, 3)

    def test_gap_detected(self):
        home, away = np.array([1, 1]), np.array([2, 2])
        with pytest.raises(ScheduleError, match="Team 1"):
            validate_rounds(home, away, np.array([1, 3]), np.array([1, 2]), 2)

    def test_repeat_detected(self):
        home, away = np.array([1, 1]), np.array([2, 2])
        with pytest.raises(ScheduleError, match="Team 2"):
            validate_rounds(home, away, np.array([1, 2]), np.array([1, 1]), 2)


class TestBatches:

    def test_batch_size_must_divide_matches(self):
        with pytest.raises(ScheduleError, match="not divisible"):
            check_batch_size(380, 7)

    def test_checkpoint_count(self):
        assert check_batch_size(380, 10) == 38
        assert check_batch_size(12, 3) == 4

    def test_batch_bounds(self):
        assert batch_bounds(1, 10) == (1, 10)
        assert batch_bounds(4, 3) == (10, 12)

    def test_checkpoint_of(self):
        assert checkpoint_of(1, 10) == 1
        assert checkpoint_of(10, 10) == 1
        assert checkpoint_of(11, 10) == 2
        assert checkpoint_of(380, 10) == 38

    def test_batches_partition_the_season(self):
        covered = []
        for w in range(1, 39):
            first, last = batch_bounds(w, 10)
            covered.extend(range(first, last + 1))
            assert all(checkpoint_of(i, 10) == w for i in range(first, last + 1))
        assert covered == list(range(1, 381))


class TestDoubleRoundRobin:

    @pytest.mark.parametrize("n_teams", [4, 5, 20])
    def test_every_pair_plays_home_and_away(self, n_teams):
        fixtures = double_round_robin(n_teams)
        assert len(fixtures) == n_teams * (n_teams - 1)
        assert len(set(fixtures)) == len(fixtures)
        for h in range(1, n_teams + 1):
            for a in range(1, n_teams + 1):
                if h != a:
                    assert (h, a) in fixtures

    def test_one_match_per_team_per_matchday(self):
        fixtures = double_round_robin(20)
        for day in range(38):
            teams = [t for match in fixtures[day * 10:(day + 1) * 10] for t in match]
            assert sorted(teams) == list(range(1, 21))

    def test_shuffle_is_reproducible(self):
        assert double_round_robin(6, shuffle=True, random_seed=3) == \
            double_round_robin(6, shuffle=True, random_seed=3)

    def test_needs_two_teams(self):
        with pytest.raises(ScheduleError):
            double_round_robin(1)
