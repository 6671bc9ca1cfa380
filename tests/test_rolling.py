"""Tests for rolling re-estimation and timeline stitching."""

import numpy as np
import pytest

from league_ability.model.inference import InferenceRun
from league_ability.model.rolling import PipelineConfig, RollingController, RollingResult

from conftest import FakeEngine, encoded_ability


class TestRollingController:

    def test_one_fit_per_growing_window(self, toy_data):
        engine = FakeEngine()
        RollingController(toy_data, engine).run()
        assert engine.calls == [(1, 3), (2, 6), (3, 9), (4, 12)]

    def test_full_run_fills_every_cell(self, toy_data):
        result = RollingController(toy_data, FakeEngine()).run()

        assert result.complete
        assert result.timeline.is_complete()
        assert not np.isnan(result.timeline.values).any()
        assert sorted(result.runs) == [1, 2, 3, 4]

    def test_each_cell_owned_by_batch_that_first_reaches_it(self, toy_data):
        result = RollingController(toy_data, FakeEngine()).run()
        timeline = result.timeline

        for w in range(1, 5):
            for m in toy_data.batch(w):
                assert timeline.owner_of(m.home_round, m.home_team) == w
                assert timeline.owner_of(m.away_round, m.away_team) == w
                assert timeline.get(m.home_round, m.home_team)[0] == \
                    encoded_ability(w, m.home_round, m.home_team)

        # Every cell has exactly one owner and owners only come from real checkpoints
        assert set(np.unique(timeline.owner)) <= {1, 2, 3, 4}
        total = sum(len(timeline.owned_by(w)) for w in range(1, 5))
        assert total == timeline.n_rounds * timeline.n_teams

    def test_later_checkpoints_do_not_overwrite(self, toy_data):
        result = RollingController(toy_data, FakeEngine()).run()
        # Team 3 reaches round 2 in batch 1; checkpoint 4 also estimates it
        assert result.runs[4].ability[0, 1, 2] == encoded_ability(4, 2, 3)
        assert result.timeline.get(2, 3)[0] == encoded_ability(1, 2, 3)

    def test_restitching_is_detected(self, toy_data):
        controller = RollingController(toy_data, FakeEngine())
        runs, _ = controller.fit_checkpoints()
        timeline = controller.stitch(runs)
        m = toy_data.match(1)
        with pytest.raises(RuntimeError, match="already written"):
            timeline.write(m.home_round, m.home_team, np.zeros(timeline.n_draws), 2)

    def test_failed_checkpoint_leaves_visible_gap(self, toy_data):
        result = RollingController(toy_data, FakeEngine(fail={2})).run()

        assert not result.complete
        assert 2 in result.failed
        assert "r_hat" in result.failed[2]
        assert sorted(result.runs) == [1, 3, 4]
        assert result.timeline.owned_by(2) == []

        report = result.report()
        assert report["failed"] == {2: result.failed[2]}
        assert report["timeline_coverage"] == pytest.approx(1 - 6 / 24)
        expected_missing = sorted(
            cell
            for m in toy_data.batch(2)
            for cell in ((m.home_round, m.home_team), (m.away_round, m.away_team))
        )
        assert sorted(report["missing_cells"]) == expected_missing
        for round_, team in expected_missing:
            assert np.isnan(result.timeline.values[:, round_ - 1, team - 1]).all()

    def test_invalid_run_is_excluded(self, toy_data):
        engine = FakeEngine()

        def flaky(window, checkpoint):
            run = engine(window, checkpoint)
            run.valid = checkpoint != 3
            return run

        result = RollingController(toy_data, flaky).run()
        assert 3 in result.failed
        assert 3 not in result.runs

    def test_subset_of_checkpoints(self, toy_data):
        result = RollingController(toy_data, FakeEngine()).run(checkpoints=[1, 2])
        assert sorted(result.runs) == [1, 2]
        assert not result.complete

    def test_draw_count_mismatch(self, toy_data):
        small, large = FakeEngine(n_draws=10), FakeEngine(n_draws=20)

        def mixed(window, checkpoint):
            return (small if checkpoint == 1 else large)(window, checkpoint)

        with pytest.raises(ValueError, match="differing draw counts"):
            RollingController(toy_data, mixed).run()

    def test_all_failed(self, toy_data):
        result = RollingController(toy_data, FakeEngine(fail={1, 2, 3, 4})).run()
        assert result.runs == {}
        assert result.timeline.coverage_fraction(toy_data.rounds_played()) == 0.0

    def test_parallel_workers_match_serial_run(self, toy_data):
        serial = RollingController(toy_data, FakeEngine(fail={2})).run()
        parallel = RollingController(
            toy_data,
            FakeEngine(fail={2}),
            PipelineConfig(batch_size=3, n_workers=2),
        ).run()

        assert list(parallel.runs) == [1, 3, 4]
        assert parallel.failed == serial.failed
        np.testing.assert_array_equal(parallel.timeline.owner, serial.timeline.owner)
        np.testing.assert_array_equal(parallel.timeline.values, serial.timeline.values)

    def test_default_config_uses_data_batch_size(self, toy_data):
        controller = RollingController(toy_data, FakeEngine())
        assert controller.config == PipelineConfig(batch_size=3)


def test_rolling_result_save_and_load(tmp_path, toy_data):
    result = RollingController(toy_data, FakeEngine(n_draws=8, fail={3})).run()
    result.save(tmp_path / "state")

    loaded = RollingResult.load(tmp_path / "state")
    assert sorted(loaded.runs) == [1, 2, 4]
    assert loaded.failed == result.failed
    assert loaded.data.n_matches == 12
    assert isinstance(loaded.runs[2], InferenceRun)
    assert loaded.runs[2].parameters["b_home"] == pytest.approx(np.full(8, 0.2))
    np.testing.assert_array_equal(loaded.timeline.owner, result.timeline.owner)
