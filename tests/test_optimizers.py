"""Tests for the bounded optimizers."""

import numpy as np
import pytest

from bugconverge.core.optimizers import (
    PENALTY_VALUE,
    AutoSelectOptimizer,
    Bounds,
    CMAESConfig,
    CMAESOptimizer,
    DEConfig,
    DifferentialEvolutionOptimizer,
    GreyWolfConfig,
    GreyWolfOptimizer,
    GridSearchConfig,
    GridSearchGDOptimizer,
    GuardedObjective,
    NelderMeadConfig,
    NelderMeadOptimizer,
    OptimizerSettings,
    OptimizerType,
    ParticleSwarmOptimizer,
    PSOConfig,
    create_optimizer,
    parse_optimizer_type,
)
from bugconverge.core.optimizers.grid_search import iterate_grid


TARGET = np.array([1.5, -2.0])
LOWER = [-5.0, -5.0]
UPPER = [5.0, 5.0]


def quadratic(x):
    return float(np.sum((x - TARGET) ** 2))


def small_settings() -> OptimizerSettings:
    """Reduced budgets so the full suite stays fast."""
    return OptimizerSettings(
        grid_search=GridSearchConfig(learning_rate=0.1, max_iterations=200),
        pso=PSOConfig(swarm_size=20, max_iterations=200),
        differential_evolution=DEConfig(population_size=20, max_iterations=200),
        grey_wolf=GreyWolfConfig(pack_size=20, max_iterations=200),
        nelder_mead=NelderMeadConfig(max_iterations=500),
        cmaes=CMAESConfig(max_iterations=200),
    )


def make_optimizers():
    s = small_settings()
    return [
        GridSearchGDOptimizer(s.grid_search),
        ParticleSwarmOptimizer(s.pso, seed=1),
        DifferentialEvolutionOptimizer(s.differential_evolution, seed=1),
        GreyWolfOptimizer(s.grey_wolf, seed=1),
        NelderMeadOptimizer(s.nelder_mead),
        CMAESOptimizer(s.cmaes, seed=1),
        AutoSelectOptimizer(s, seed=1),
    ]


OPTIMIZERS = make_optimizers()
OPTIMIZER_IDS = [opt.name for opt in OPTIMIZERS]


class TestBounds:
    """Tests for the Bounds value type."""

    def test_properties(self):
        """Test dimension, width and midpoint."""
        bounds = Bounds.from_sequences([0.0, -1.0], [2.0, 1.0])
        assert bounds.dimension == 2
        np.testing.assert_allclose(bounds.width, [2.0, 2.0])
        np.testing.assert_allclose(bounds.midpoint, [1.0, 0.0])

    def test_clip_and_contains(self):
        """Test clipping into the box."""
        bounds = Bounds.from_sequences([0.0, 0.0], [1.0, 1.0])
        clipped = bounds.clip(np.array([-3.0, 0.5]))
        np.testing.assert_allclose(clipped, [0.0, 0.5])
        assert bounds.contains(clipped)
        assert not bounds.contains(np.array([1.5, 0.5]))

    def test_length_mismatch(self):
        """Test mismatched bound lengths are rejected."""
        with pytest.raises(ValueError, match="length mismatch"):
            Bounds.from_sequences([0.0], [1.0, 2.0])

    def test_lower_exceeds_upper(self):
        """Test inverted bounds are rejected."""
        with pytest.raises(ValueError, match="exceeds"):
            Bounds.from_sequences([2.0], [1.0])

    def test_equal_bounds_allowed(self):
        """Test a zero-width axis is a valid box."""
        bounds = Bounds.from_sequences([1.0, 0.0], [1.0, 2.0])
        assert bounds.width[0] == 0.0


class TestGuardedObjective:
    """Tests for objective guarding."""

    def test_counts_calls(self):
        guarded = GuardedObjective(quadratic)
        guarded(np.zeros(2))
        guarded(np.ones(2))
        assert guarded.evaluations == 2

    def test_nan_becomes_penalty(self):
        guarded = GuardedObjective(lambda x: float("nan"))
        assert guarded(np.zeros(2)) == PENALTY_VALUE

    def test_inf_becomes_penalty(self):
        guarded = GuardedObjective(lambda x: float("inf"))
        assert guarded(np.zeros(2)) == PENALTY_VALUE

    def test_exception_becomes_penalty(self):
        def explode(x):
            raise RuntimeError("boom")

        guarded = GuardedObjective(explode)
        assert guarded(np.zeros(2)) == PENALTY_VALUE
        assert guarded.evaluations == 1

    def test_objective_receives_copy(self):
        """Test the objective cannot mutate the caller's array."""
        def mutate(x):
            x[:] = 100.0
            return 0.0

        point = np.zeros(2)
        GuardedObjective(mutate)(point)
        np.testing.assert_array_equal(point, [0.0, 0.0])


class TestGridIteration:
    """Tests for the iterative grid walk."""

    def test_visits_every_point(self):
        axes = [np.array([1.0, 2.0, 3.0]), np.array([10.0, 20.0])]
        points = [tuple(p) for p in iterate_grid(axes)]
        assert len(points) == 6
        assert len(set(points)) == 6
        assert points[0] == (1.0, 10.0)
        assert points[1] == (1.0, 20.0)
        assert points[-1] == (3.0, 20.0)


class TestOptimizerContract:
    """Contract shared by every strategy."""

    @pytest.mark.parametrize("optimizer", OPTIMIZERS, ids=OPTIMIZER_IDS)
    def test_quadratic_recovery(self, optimizer):
        """Test each strategy finds the minimum of a shifted quadratic."""
        result = optimizer.optimize(quadratic, LOWER, UPPER, initial_guess=[0.0, 0.0])

        assert result.success
        assert result.message is None
        np.testing.assert_allclose(result.parameters, TARGET, atol=0.05)
        assert result.objective_value < 1e-2

    @pytest.mark.parametrize("optimizer", OPTIMIZERS, ids=OPTIMIZER_IDS)
    def test_result_within_bounds(self, optimizer):
        """Test parameters stay in the box when the optimum lies outside it."""
        def outside(x):
            return float(np.sum((x - 10.0) ** 2))

        result = optimizer.optimize(outside, [-1.0, -1.0], [1.0, 1.0])

        assert result.success
        assert np.all(result.parameters >= -1.0)
        assert np.all(result.parameters <= 1.0)
        np.testing.assert_allclose(result.parameters, [1.0, 1.0], atol=0.05)

    @pytest.mark.parametrize("optimizer", OPTIMIZERS, ids=OPTIMIZER_IDS)
    def test_history_non_increasing(self, optimizer):
        """Test the convergence history never gets worse."""
        result = optimizer.optimize(quadratic, LOWER, UPPER, initial_guess=[4.0, 4.0])

        history = np.array(result.convergence_history)
        assert len(history) >= 1
        assert np.all(np.diff(history) <= 0)
        assert history[-1] == pytest.approx(result.objective_value)

    @pytest.mark.parametrize("optimizer", OPTIMIZERS, ids=OPTIMIZER_IDS)
    def test_partial_invalid_region(self, optimizer):
        """Test robustness when part of the box raises or returns NaN."""
        def fragile(x):
            if x[0] < 0:
                raise ValueError("outside model domain")
            if x[1] < 0:
                return float("nan")
            return float((x[0] - 1.0) ** 2 + (x[1] - 1.0) ** 2)

        result = optimizer.optimize(fragile, [-2.0, -2.0], [2.0, 2.0], initial_guess=[0.5, 0.5])

        assert result.success
        assert np.isfinite(result.objective_value)
        assert result.objective_value < PENALTY_VALUE
        assert result.parameters[0] >= 0.0
        assert result.parameters[1] >= 0.0

    @pytest.mark.parametrize("optimizer", OPTIMIZERS, ids=OPTIMIZER_IDS)
    def test_all_invalid_reports_failure(self, optimizer):
        """Test an objective that is never finite yields success=False."""
        result = optimizer.optimize(lambda x: float("nan"), LOWER, UPPER)

        assert not result.success
        assert result.message is not None
        assert np.all(result.parameters >= -5.0)
        assert np.all(result.parameters <= 5.0)

    @pytest.mark.parametrize("optimizer", OPTIMIZERS, ids=OPTIMIZER_IDS)
    def test_invalid_bounds_reports_failure(self, optimizer):
        """Test inverted bounds come back as a failure, not an exception."""
        result = optimizer.optimize(quadratic, [1.0, 1.0], [0.0, 0.0])
        assert not result.success

    @pytest.mark.parametrize("optimizer", OPTIMIZERS, ids=OPTIMIZER_IDS)
    def test_counts_evaluations(self, optimizer):
        result = optimizer.optimize(quadratic, LOWER, UPPER)
        assert result.evaluations > 0
        assert result.elapsed_seconds >= 0.0


class TestSeeding:
    """Tests for reproducibility of randomized strategies."""

    def test_same_seed_same_result(self):
        cfg = DEConfig(population_size=15, max_iterations=50)
        first = DifferentialEvolutionOptimizer(cfg, seed=7).optimize(quadratic, LOWER, UPPER)
        second = DifferentialEvolutionOptimizer(cfg, seed=7).optimize(quadratic, LOWER, UPPER)
        np.testing.assert_array_equal(first.parameters, second.parameters)
        assert first.convergence_history == second.convergence_history

    def test_grid_search_is_deterministic(self):
        cfg = GridSearchConfig(max_iterations=20)
        first = GridSearchGDOptimizer(cfg).optimize(quadratic, LOWER, UPPER)
        second = GridSearchGDOptimizer(cfg).optimize(quadratic, LOWER, UPPER)
        np.testing.assert_array_equal(first.parameters, second.parameters)


class TestAutoSelect:
    """Tests for the AutoSelect strategy."""

    def test_winner_named(self):
        result = AutoSelectOptimizer(small_settings(), seed=3).optimize(quadratic, LOWER, UPPER)
        assert result.optimizer_name.startswith("AutoSelect(")
        assert result.optimizer_name.endswith(")")

    def test_all_fail(self):
        result = AutoSelectOptimizer(small_settings(), seed=3).optimize(
            lambda x: float("nan"), LOWER, UPPER
        )
        assert not result.success
        assert "All optimizers failed" in result.message


class TestCreateOptimizer:
    """Tests for the optimizer factory."""

    @pytest.mark.parametrize("name,expected", [
        ("grid_search_gd", GridSearchGDOptimizer),
        ("pso", ParticleSwarmOptimizer),
        ("differential_evolution", DifferentialEvolutionOptimizer),
        ("grey-wolf", GreyWolfOptimizer),
        ("NELDER_MEAD", NelderMeadOptimizer),
        ("cmaes", CMAESOptimizer),
        ("auto_select", AutoSelectOptimizer),
    ])
    def test_builds_strategy(self, name, expected):
        assert isinstance(create_optimizer(name), expected)

    def test_parse_enum_passthrough(self):
        assert parse_optimizer_type(OptimizerType.PSO) is OptimizerType.PSO

    def test_unknown_name(self):
        with pytest.raises(ValueError, match="Unknown optimizer"):
            parse_optimizer_type("simulated_annealing")
