"""Tests for the cube method: sample size, determinism, balance and edge cases."""

import numpy as np
import pytest

from fieldsurvey.exceptions import DegenerateBalancingMatrix, EmptyPopulation, InvalidSampleSize
from fieldsurvey.scripts.cube import (
    constraint_matrix,
    cube_sample,
    flight_phase,
    inclusion_probabilities,
    kernel_direction,
    landing_phase,
    round_half_up,
    target_sample_size,
)


# ─── Sample size ──────────────────────────────────────────────────

def test_target_sample_size_reference_scenario():
    """10,000 units with k=16 and f=0.1 gives round(62.5) = 63."""
    assert target_sample_size(10000, 16, 0.1) == 63


@pytest.mark.parametrize(
    "value, expected",
    [(0.0, 0), (0.49, 0), (0.5, 1), (2.5, 3), (12.5, 13), (62.4999, 62), (-2.5, -3)],
)
def test_round_half_up(value, expected):
    assert round_half_up(value) == expected


def test_target_sample_size_rejects_bad_parameters():
    with pytest.raises(ValueError):
        target_sample_size(100, 0, 0.1)
    with pytest.raises(ValueError):
        target_sample_size(100, 16, -0.1)
    with pytest.raises(ValueError):
        target_sample_size(-1, 16, 0.1)


# ─── Inclusion probabilities ──────────────────────────────────────

def test_equal_inclusion_probabilities():
    pik = inclusion_probabilities(25, population_size=100)
    assert pik.shape == (100,)
    np.testing.assert_allclose(pik, 0.25)
    assert pik.sum() == pytest.approx(25)


def test_weighted_inclusion_probabilities_are_capped():
    pik = inclusion_probabilities(2, weights=np.array([10.0, 1.0, 1.0, 1.0, 1.0]))
    np.testing.assert_allclose(pik, [1.0, 0.25, 0.25, 0.25, 0.25])
    assert pik.sum() == pytest.approx(2)


def test_weighted_inclusion_probabilities_proportional():
    weights = np.array([1.0, 2.0, 3.0, 4.0])
    pik = inclusion_probabilities(1, weights=weights)
    np.testing.assert_allclose(pik, weights / weights.sum())


def test_zero_weights_get_zero_probability():
    pik = inclusion_probabilities(2, weights=np.array([0.0, 1.0, 1.0, 2.0]))
    assert pik[0] == 0.0
    assert pik.sum() == pytest.approx(2)


def test_more_units_than_positive_weights():
    with pytest.raises(InvalidSampleSize):
        inclusion_probabilities(3, weights=np.array([0.0, 1.0, 1.0, 0.0]))


def test_negative_weights_rejected():
    with pytest.raises(ValueError):
        inclusion_probabilities(1, weights=np.array([1.0, -1.0, 2.0]))


@pytest.mark.parametrize("sample_size", [-1, 101, 2.5])
def test_inclusion_probabilities_invalid_size(sample_size):
    with pytest.raises(InvalidSampleSize):
        inclusion_probabilities(sample_size, population_size=100)


def test_inclusion_probabilities_empty_population():
    with pytest.raises(EmptyPopulation):
        inclusion_probabilities(0, population_size=0)


# ─── Size and uniqueness ──────────────────────────────────────────

@pytest.mark.parametrize(
    "population_size, sample_size, seed",
    [(10, 1, 0), (10, 9, 1), (50, 7, 2), (200, 20, 3), (200, 150, 4), (333, 33, 5), (400, 399, 6)],
)
def test_sample_has_exact_size_without_duplicates(population_size, sample_size, seed):
    rng = np.random.default_rng(seed + 100)
    coords = rng.uniform(0, 1000, size=(population_size, 2))
    pik = inclusion_probabilities(sample_size, population_size=population_size)

    selected = cube_sample(pik, coords, seed=seed)

    assert selected.size == sample_size
    assert np.unique(selected).size == sample_size
    assert selected.min() >= 0 and selected.max() < population_size
    assert np.all(np.diff(selected) > 0)


def test_sample_without_balancing_variables():
    pik = inclusion_probabilities(7, population_size=40)
    selected = cube_sample(pik, seed=11)
    assert selected.size == 7
    assert np.unique(selected).size == 7


def test_sample_with_projected_coordinates():
    """Large coordinate offsets (UTM northings) must not break the size constraint."""
    rng = np.random.default_rng(4)
    coords = np.column_stack(
        [rng.uniform(300000, 310000, 500), rng.uniform(9000000, 9010000, 500)]
    )
    pik = inclusion_probabilities(31, population_size=500)

    selected = cube_sample(pik, coords, seed=6405)
    assert selected.size == 31


# ─── Determinism ──────────────────────────────────────────────────

def test_reference_grid_scenario_is_reproducible(grid_population):
    population = grid_population(side=100)
    n = target_sample_size(population.size, 16, 0.1)
    pik = inclusion_probabilities(n, population_size=population.size)

    first = cube_sample(pik, population.coordinates, seed=6405)
    second = cube_sample(pik, population.coordinates, seed=6405)

    assert n == 63
    assert first.size == 63
    assert np.unique(first).size == 63
    np.testing.assert_array_equal(first, second)


def test_different_seeds_give_different_samples(grid_population):
    population = grid_population(side=20)
    pik = inclusion_probabilities(25, population_size=population.size)

    first = cube_sample(pik, population.coordinates, seed=1)
    second = cube_sample(pik, population.coordinates, seed=2)

    assert not np.array_equal(first, second)


def test_input_probabilities_are_not_modified():
    pik = inclusion_probabilities(5, population_size=20)
    before = pik.copy()
    cube_sample(pik, np.arange(20.0), seed=0)
    np.testing.assert_array_equal(pik, before)


# ─── Boundaries ───────────────────────────────────────────────────

def test_zero_sample_size_gives_empty_sample(grid_population):
    population = grid_population(side=5)
    pik = inclusion_probabilities(0, population_size=population.size)
    selected = cube_sample(pik, population.coordinates, seed=0)
    assert selected.size == 0


def test_full_sample_size_gives_whole_population(grid_population):
    population = grid_population(side=5)
    pik = inclusion_probabilities(population.size, population_size=population.size)
    selected = cube_sample(pik, population.coordinates, seed=0)
    np.testing.assert_array_equal(selected, np.arange(population.size))


def test_empty_population():
    with pytest.raises(EmptyPopulation):
        cube_sample(np.array([]), seed=0)


def test_probabilities_must_sum_to_an_integer():
    with pytest.raises(InvalidSampleSize):
        cube_sample(np.full(10, 0.25), seed=0)


def test_boundary_probabilities_are_never_perturbed():
    rng = np.random.default_rng(8)
    pik = np.array([1.0, 1.0, 0.0, 0.0] + [0.5] * 6)
    coords = rng.uniform(0, 100, size=(10, 2))

    for seed in range(20):
        selected = set(cube_sample(pik, coords, seed=seed).tolist())
        assert {0, 1} <= selected
        assert not ({2, 3} & selected)
        assert len(selected) == 5


def test_probabilities_are_clipped():
    pik = np.array([1.2, -0.1, 0.5, 0.5])
    selected = cube_sample(pik, seed=3)
    assert 0 in selected
    assert 1 not in selected
    assert selected.size == 2


# ─── Degenerate balancing matrices ────────────────────────────────

def test_collinear_balancing_variables(grid_population):
    population = grid_population(side=10)
    x = population.points["x"].to_numpy()
    balancing = np.column_stack([x, 2 * x + 1])
    pik = inclusion_probabilities(10, population_size=population.size)

    with pytest.raises(DegenerateBalancingMatrix):
        cube_sample(pik, balancing, seed=0)


def test_constant_balancing_variable():
    pik = inclusion_probabilities(4, population_size=20)
    with pytest.raises(DegenerateBalancingMatrix):
        cube_sample(pik, np.full(20, 5.0), seed=0)


def test_non_finite_balancing_variable():
    balancing = np.arange(20.0)
    balancing[3] = np.nan
    pik = inclusion_probabilities(4, population_size=20)
    with pytest.raises(DegenerateBalancingMatrix):
        cube_sample(pik, balancing, seed=0)


def test_balancing_matrix_with_wrong_rows():
    pik = inclusion_probabilities(4, population_size=20)
    with pytest.raises(ValueError):
        cube_sample(pik, np.arange(19.0), seed=0)


# ─── Phases ───────────────────────────────────────────────────────

def test_flight_phase_preserves_balance(grid_population):
    population = grid_population(side=20)
    pik = inclusion_probabilities(20, population_size=population.size)
    undecided = np.flatnonzero((pik > 0) & (pik < 1))
    constraints = constraint_matrix(pik, population.coordinates, undecided)
    rng = np.random.default_rng(3)
    order = undecided[rng.permutation(undecided.size)]

    after, remaining = flight_phase(pik, constraints, order, rng)

    np.testing.assert_allclose(constraints.T @ after, constraints.T @ pik, atol=1e-6)
    assert len(remaining) <= constraints.shape[1]
    assert all(0 < after[k] < 1 for k in remaining)
    decided = np.setdiff1d(np.arange(pik.size), remaining)
    assert np.all(np.isin(after[decided], [0.0, 1.0]))


def test_landing_phase_decides_every_unit(grid_population):
    population = grid_population(side=20)
    pik = inclusion_probabilities(20, population_size=population.size)
    undecided = np.flatnonzero((pik > 0) & (pik < 1))
    constraints = constraint_matrix(pik, population.coordinates, undecided)
    rng = np.random.default_rng(5)
    order = undecided[rng.permutation(undecided.size)]

    after, remaining = flight_phase(pik, constraints, order, rng)
    landed = landing_phase(after, constraints, remaining, rng)

    assert np.all(np.isin(landed, [0.0, 1.0]))
    assert landed.sum() == pytest.approx(20)


# ─── Kernel direction ─────────────────────────────────────────────

def test_kernel_direction_of_full_rank_system():
    rng = np.random.default_rng(8)
    constraints = rng.normal(size=(3, 4))

    u = kernel_direction(constraints, rng)

    np.testing.assert_allclose(constraints @ u, 0.0, atol=1e-12)
    assert np.linalg.norm(u) == pytest.approx(1.0)


def test_kernel_direction_of_rank_deficient_system():
    constraints = np.array(
        [
            [1.0, 1.0, 1.0, 1.0],
            [0.0, 1.0, 2.0, 3.0],
            [0.0, 2.0, 4.0, 6.0],
        ]
    )

    u = kernel_direction(constraints, np.random.default_rng(2))

    np.testing.assert_allclose(constraints @ u, 0.0, atol=1e-12)
    assert np.linalg.norm(u) == pytest.approx(1.0)


def test_cube_sample_on_scattered_points_avoids_svd(monkeypatch):
    """Generic coordinates give full-rank working sets at every step."""

    def fail(*args, **kwargs):
        raise AssertionError("null_space should not be needed")

    monkeypatch.setattr("fieldsurvey.scripts.cube.null_space", fail)
    coords = np.random.default_rng(17).uniform(0, 1000, size=(2000, 2))
    pik = inclusion_probabilities(50, population_size=2000)

    selected = cube_sample(pik, coords, seed=9)

    assert selected.size == 50
    assert np.unique(selected).size == 50


# ─── Statistical properties ───────────────────────────────────────

def test_balanced_sample_is_better_spread_than_simple_random(grid_population):
    """Sample means of x and y are much closer to the population means than SRS."""
    population = grid_population(side=30)
    coords = population.coordinates
    n = 50
    pik = inclusion_probabilities(n, population_size=population.size)
    population_mean = coords.mean(axis=0)

    cube_errors = []
    srs_errors = []
    for seed in range(20):
        selected = cube_sample(pik, coords, seed=seed)
        cube_errors.append(np.abs(coords[selected].mean(axis=0) - population_mean).sum())

        rng = np.random.default_rng(1000 + seed)
        srs = rng.choice(population.size, size=n, replace=False)
        srs_errors.append(np.abs(coords[srs].mean(axis=0) - population_mean).sum())

    spread = coords.std(axis=0).sum()
    assert np.mean(cube_errors) < spread / np.sqrt(n)
    assert np.mean(cube_errors) < 0.5 * np.mean(srs_errors)


def test_selection_frequencies_match_inclusion_probabilities():
    rng = np.random.default_rng(21)
    coords = rng.uniform(0, 10, size=(12, 2))
    weights = rng.uniform(1, 5, size=12)
    pik = inclusion_probabilities(4, weights=weights)

    runs = 400
    counts = np.zeros(12)
    for seed in range(runs):
        counts[cube_sample(pik, coords, seed=seed)] += 1

    np.testing.assert_allclose(counts / runs, pik, atol=0.1)
