"""Unit tests for league_ability.model.core module."""

import numpy as np
import pymc as pm
import pytest

from league_ability.model.core import AbilityModel, ModelConfig


class TestModelConfig:
    """Test ModelConfig dataclass."""

    def test_default_config(self):
        """Defaults match the documented priors."""
        config = ModelConfig()
        assert config.home_advantage_prior_sd == 1.0
        assert config.sigma_y_prior_sd == 5.0
        assert (config.nu_prior_alpha, config.nu_prior_beta) == (2.0, 0.1)
        assert config.tau_a_prior_beta == 1.0
        assert config.b_prev_prior_sd == 5.0
        assert config.sigma_a0_prior_sd == 5.0
        assert config.replicate is True

    def test_custom_config(self):
        config = ModelConfig(sigma_y_prior_sd=2.0, replicate=False)
        assert config.sigma_y_prior_sd == 2.0
        assert config.replicate is False


class TestAbilityModel:
    """Test model construction."""

    def test_initialization(self):
        model = AbilityModel()
        assert model.config is not None
        assert model.model is None  # Not built yet

    def test_build(self, toy_data):
        model = AbilityModel()
        pm_model = model.build(toy_data)

        assert isinstance(pm_model, pm.Model)
        assert model.n_rounds == 6
        for name in ("a", "b_home", "sigma_y", "nu", "tau_a", "sigma_a", "b_prev", "sigma_a0", "y"):
            assert name in pm_model.named_vars

    def test_ability_shape_follows_window(self, toy_data):
        window = toy_data.window(1)
        pm_model = AbilityModel().build(window)

        assert pm_model.named_vars["a"].eval().shape == (2, 4)
        assert len(pm_model.coords["match"]) == 3
        assert list(pm_model.coords["round"]) == [1, 2]

    def test_single_round_window(self, toy_teams, toy_matches):
        from league_ability.model.data import LeagueData

        # First two matches involve four different teams
        data = LeagueData.from_frames(toy_matches.iloc[:2], toy_teams, batch_size=2)
        pm_model = AbilityModel().build(data)
        assert pm_model.named_vars["a"].eval().shape == (1, 4)

    def test_observed_score_differences(self, toy_data):
        pm_model = AbilityModel().build(toy_data)
        observed = pm_model.rvs_to_values[pm_model.named_vars["y"]].eval()
        np.testing.assert_array_equal(observed, toy_data.score_diffs())

    def test_random_walk_starts_at_prior_regression(self, toy_data):
        """With unit innovations at zero, ability is b_prev * a0 for every round."""
        pm_model = AbilityModel().build(toy_data)
        a = pm_model.named_vars["a"]
        point = pm_model.initial_point()
        point["a_init_raw"] = np.zeros(4)
        point["innovations_raw"] = np.zeros((5, 4))
        point["b_prev"] = np.array(2.0)

        # Only the free variables the walk depends on
        inputs = [
            pm_model.rvs_to_values[pm_model.named_vars[name]]
            for name in ("a_init_raw", "innovations_raw", "b_prev", "sigma_a0", "sigma_a")
        ]
        fn = pm_model.compile_fn(a, inputs=inputs, point_fn=False)
        values = fn(*[point[v.name] for v in inputs])
        np.testing.assert_allclose(values, np.tile(2.0 * toy_data.a0, (6, 1)))

    def test_prior_predictive(self, toy_data):
        pm_model = AbilityModel().build(toy_data)
        with pm_model:
            prior = pm.sample_prior_predictive(draws=20, random_seed=1)
        assert prior.prior_predictive["y"].shape == (1, 20, 12)
        assert (prior.prior["sigma_a"] > 0).all()
        assert (prior.prior["nu"] > 0).all()


@pytest.mark.slow
def test_sampling_smoke(toy_data):
    """NUTS runs end to end on the toy league."""
    pm_model = AbilityModel().build(toy_data.window(2))
    with pm_model:
        trace = pm.sample(draws=50, tune=50, chains=1, cores=1, progressbar=False, random_seed=3)
    assert trace.posterior["a"].shape == (1, 50, 3, 4)
