"""Cube method for balanced sampling.

Implements the two phases of the cube method (Deville & Tillé, 2004):

- flight phase, in its fast variant (Chauvet & Tillé, 2006): a working set
  of q + 1 undecided units is moved along a vector of the null space of its
  balancing constraints until at least one unit reaches 0 or 1, then the
  decided units are replaced by the next units of a seeded random order;
- landing phase: balancing variables are dropped one at a time, last
  declared first, and the reduced system is solved the same way until every
  unit is decided. The sample size constraint is never dropped.

The random generator is created from the seed for each call and is only
used for the unit order, the direction inside the null space and the sign
of each move.
"""

import logging
import math
from functools import lru_cache
from typing import List, Optional, Tuple

import numpy as np
from scipy.linalg import null_space

from fieldsurvey.exceptions import (
    DegenerateBalancingMatrix,
    EmptyPopulation,
    InvalidSampleSize,
    SamplingError,
)
from fieldsurvey.scripts.parameter import (
    decision_tolerance,
    default_population_divisor,
    default_sample_fraction,
    probability_sum_tolerance,
)

logger = logging.getLogger("fieldsurvey.cube")

# direction components below this are treated as zero when computing step bounds
_DIRECTION_EPS = 1e-12

# shorter cofactor vectors (relative to the matrix scale) mean a rank-deficient working set
_KERNEL_EPS = 1e-10


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero (62.5 -> 63)."""
    if value < 0:
        return -round_half_up(-value)
    return int(math.floor(value + 0.5))


def target_sample_size(
    population_size: int,
    population_divisor: float = default_population_divisor,
    sample_fraction: float = default_sample_fraction,
) -> int:
    """Calculate the survey sample size from the population size.

    Formula: n = round(N / k * f, 0)

    Where:
        - N = number of eligible units
        - k = population divisor supplied by the caller
        - f = sample fraction

    The expression is evaluated left to right and halves are rounded
    away from zero.

    Args:
        population_size: Number of eligible units (N)
        population_divisor: Caller-supplied divisor (k), must be > 0
        sample_fraction: Sample fraction (f), must be >= 0

    Returns:
        Target sample size n

    Raises:
        ValueError: If any parameter is out of range
    """
    if population_size < 0:
        raise ValueError("Population size must not be negative")
    if population_divisor <= 0:
        raise ValueError("Population divisor must be greater than 0")
    if sample_fraction < 0:
        raise ValueError("Sample fraction must not be negative")

    result = population_size / population_divisor * sample_fraction
    if not math.isfinite(result):
        raise ValueError(f"Sample size calculation resulted in invalid value: {result}")

    return round_half_up(result)


def check_sample_size(sample_size, population_size: int) -> int:
    """Validate n against N and return it as an int."""
    try:
        as_float = float(sample_size)
    except (TypeError, ValueError):
        raise InvalidSampleSize(sample_size, population_size)

    if not math.isfinite(as_float) or not as_float.is_integer():
        raise InvalidSampleSize(sample_size, population_size)
    if as_float < 0 or as_float > population_size:
        raise InvalidSampleSize(sample_size, population_size)
    return int(as_float)


def inclusion_probabilities(
    sample_size: int,
    population_size: Optional[int] = None,
    weights: Optional[np.ndarray] = None,
) -> np.ndarray:
    """Compute first-order inclusion probabilities summing to n.

    Without weights every unit gets n / N. With weights the probabilities
    are proportional to them; units whose probability would exceed 1 are
    set to 1 and the remaining size is spread over the others until no
    probability exceeds 1.

    Args:
        sample_size: Target sample size n
        population_size: N, required when no weights are given
        weights: Optional non-negative size measure, one per unit

    Returns:
        Array of N probabilities in [0, 1]

    Raises:
        EmptyPopulation: If N == 0
        InvalidSampleSize: If n is out of range
        ValueError: If weights are negative or non-finite
    """
    if weights is None:
        if population_size is None:
            raise ValueError("Either population_size or weights must be given")
        if population_size == 0:
            raise EmptyPopulation()
        n = check_sample_size(sample_size, population_size)
        return np.full(population_size, n / population_size, dtype=np.float64)

    w = np.asarray(weights, dtype=np.float64)
    if w.ndim != 1:
        raise ValueError("Weights must be a 1D array")
    if w.size == 0:
        raise EmptyPopulation()
    if not np.all(np.isfinite(w)) or np.any(w < 0):
        raise ValueError("Weights must be finite and non-negative")

    positive = w > 0
    n = check_sample_size(sample_size, w.size)
    if n > positive.sum():
        raise InvalidSampleSize(sample_size, int(positive.sum()))

    pik = np.zeros(w.size, dtype=np.float64)
    if n == 0:
        return pik

    capped = np.zeros(w.size, dtype=bool)
    while True:
        free = positive & ~capped
        pik[capped] = 1.0
        if not free.any():
            break
        remaining = n - capped.sum()
        pik[free] = remaining * w[free] / w[free].sum()
        over = free & (pik >= 1.0)
        if not over.any():
            break
        capped |= over

    return pik


def _snap(pik: np.ndarray) -> np.ndarray:
    pik = np.clip(pik, 0.0, 1.0)
    pik[pik < decision_tolerance] = 0.0
    pik[pik > 1.0 - decision_tolerance] = 1.0
    return pik


def _is_undecided(value: float) -> bool:
    return 0.0 < value < 1.0


def _balancing_block(balancing, population_size: int) -> np.ndarray:
    if balancing is None:
        return np.empty((population_size, 0), dtype=np.float64)

    X = np.asarray(balancing, dtype=np.float64)
    if X.ndim == 1:
        X = X[:, None]
    if X.ndim != 2 or X.shape[0] != population_size:
        raise ValueError(
            f"Balancing matrix must have {population_size} rows, got shape {X.shape}"
        )
    if not np.all(np.isfinite(X)):
        raise DegenerateBalancingMatrix("Balancing variables contain non-finite values")
    return X


def constraint_matrix(
    pik: np.ndarray, balancing: np.ndarray, undecided: np.ndarray
) -> np.ndarray:
    """Build the N x q matrix of balancing constraints.

    Column 0 is pi_k / pi_k = 1 and fixes the sample size. The other
    columns are z_k / pi_k, standardized over the undecided units. With the
    size constraint in place this gives the same balancing equations and
    keeps the null space computation well conditioned for projected
    coordinates.

    Raises:
        DegenerateBalancingMatrix: If the matrix has fewer independent
            columns than balancing variables (checked when more than q
            units are undecided)
    """
    q = balancing.shape[1] + 1
    A = np.zeros((pik.size, q), dtype=np.float64)
    A[:, 0] = 1.0
    if q == 1 or undecided.size == 0:
        return A

    scaled = balancing[undecided] / pik[undecided, None]
    center = scaled.mean(axis=0)
    spread = scaled.std(axis=0)
    flat = spread <= 1e-12 * np.maximum(np.abs(center), 1.0)
    check = undecided.size > q

    if check and np.any(flat):
        constant = [int(j) for j in np.flatnonzero(flat)]
        raise DegenerateBalancingMatrix(
            f"Balancing columns {constant} are collinear with the inclusion probabilities",
            rank=q - len(constant),
            expected=q,
        )

    A[undecided, 1:] = (scaled - center) / np.where(flat, 1.0, spread)

    if check:
        rank = int(np.linalg.matrix_rank(A[undecided]))
        if rank < q:
            raise DegenerateBalancingMatrix(
                f"Balancing matrix has rank {rank}, expected {q} independent columns",
                rank=rank,
                expected=q,
            )
    return A


@lru_cache(maxsize=None)
def _minor_columns(m: int) -> Tuple[np.ndarray, np.ndarray]:
    columns = np.array([[c for c in range(m) if c != j] for j in range(m)], dtype=np.intp)
    signs = np.where(np.arange(m) % 2 == 0, 1.0, -1.0)
    return columns, signs


def kernel_direction(constraints: np.ndarray, rng: np.random.Generator) -> np.ndarray:
    """Return a unit vector u with constraints @ u = 0.

    For a full-rank q x (q+1) system, the kernel is one-dimensional and is
    spanned by the signed q x q minors (cofactors), computed in one batched
    determinant call. Rank-deficient or wider systems go through
    ``scipy.linalg.null_space``, and a seeded random combination of its
    basis is used when the kernel has more than one dimension.

    Args:
        constraints: q x m constraint matrix, q < m
        rng: Seeded generator

    Returns:
        Unit direction of length m
    """
    q, m = constraints.shape
    if m == q + 1:
        columns, signs = _minor_columns(m)
        minors = constraints[:, columns].transpose(1, 0, 2)
        u = signs * np.linalg.det(minors)
        norm = np.linalg.norm(u)
        if np.isfinite(norm) and norm > _KERNEL_EPS * max(1.0, np.abs(constraints).max()) ** q:
            return u / norm

    kernel = null_space(constraints)
    if kernel.shape[1] == 1:
        return kernel[:, 0]
    u = kernel @ rng.standard_normal(kernel.shape[1])
    return u / np.linalg.norm(u)


def cube_step(
    pik: np.ndarray, constraints: np.ndarray, rng: np.random.Generator
) -> np.ndarray:
    """Move a set of undecided probabilities until at least one is 0 or 1.

    Args:
        pik: Probabilities of the m units in the working set
        constraints: q x m constraint matrix, q < m
        rng: Seeded generator

    Returns:
        New probabilities; A @ pik is unchanged
    """
    u = kernel_direction(constraints, rng)

    pos = u > _DIRECTION_EPS
    neg = u < -_DIRECTION_EPS

    lambda1 = min(
        np.min((1.0 - pik[pos]) / u[pos], initial=np.inf),
        np.min(pik[neg] / -u[neg], initial=np.inf),
    )
    lambda2 = min(
        np.min(pik[pos] / u[pos], initial=np.inf),
        np.min((1.0 - pik[neg]) / -u[neg], initial=np.inf),
    )

    if rng.random() * (lambda1 + lambda2) < lambda2:
        moved = pik + lambda1 * u
    else:
        moved = pik - lambda2 * u

    return _snap(moved)


def flight_phase(
    pik: np.ndarray,
    constraints: np.ndarray,
    order: np.ndarray,
    rng: np.random.Generator,
) -> Tuple[np.ndarray, List[int]]:
    """Run the fast flight phase.

    Args:
        pik: Inclusion probabilities of the whole population
        constraints: N x q balancing constraint matrix
        order: Undecided unit indices in visiting order
        rng: Seeded generator

    Returns:
        Tuple of (updated probabilities, undecided units left for landing).
        At most q units are left undecided.
    """
    pik = pik.copy()
    q = constraints.shape[1]
    working: List[int] = []
    position = 0
    steps = 0

    while True:
        while len(working) < q + 1 and position < len(order):
            working.append(int(order[position]))
            position += 1
        if len(working) < q + 1:
            break

        subset = np.asarray(working)
        pik[subset] = cube_step(pik[subset], constraints[subset].T, rng)
        working = [k for k in working if _is_undecided(pik[k])]
        steps += 1

    logger.debug(f"Flight phase finished after {steps} steps, {len(working)} units left")
    return pik, working


def landing_phase(
    pik: np.ndarray,
    constraints: np.ndarray,
    remaining: List[int],
    rng: np.random.Generator,
) -> np.ndarray:
    """Decide the units left by the flight phase.

    Balancing variables are dropped one at a time from the last column
    until the working set is larger than the number of constraints, then
    the reduced system is moved with the flight step. Column 0 (sample
    size) is kept to the end. A single unit left under the size constraint
    alone is rounded: selected when its probability is >= 0.5.

    Args:
        pik: Inclusion probabilities after the flight phase
        constraints: N x q balancing constraint matrix
        remaining: Undecided units, in visiting order
        rng: Seeded generator

    Returns:
        Probabilities with every unit at 0 or 1
    """
    pik = pik.copy()
    q = constraints.shape[1]
    working = [k for k in remaining if _is_undecided(pik[k])]

    while working:
        while q > 1 and len(working) <= q:
            q -= 1
            logger.debug(f"Landing phase: dropped balancing variable {q}")

        if len(working) > q:
            subset = np.asarray(working)
            pik[subset] = cube_step(pik[subset], constraints[subset, :q].T, rng)
            working = [k for k in working if _is_undecided(pik[k])]
            continue

        unit = working.pop()
        decided = 1.0 if pik[unit] >= 0.5 else 0.0
        if abs(pik[unit] - decided) > probability_sum_tolerance:
            logger.warning(
                f"Unit {unit} rounded from {pik[unit]:.6f} to {decided:.0f} at landing"
            )
        pik[unit] = decided

    return pik


def cube_sample(
    pik,
    balancing=None,
    seed: int = 0,
) -> np.ndarray:
    """Select a balanced sample with the cube method.

    Args:
        pik: Inclusion probabilities (N,), clipped to [0, 1]; must sum to
            an integer n
        balancing: Optional (N, p) auxiliary variables to balance on, e.g.
            the x and y coordinates
        seed: Seed of the generator owned by this call

    Returns:
        Sorted array of n distinct selected indices

    Raises:
        EmptyPopulation: If N == 0
        InvalidSampleSize: If the probabilities do not sum to an integer
        DegenerateBalancingMatrix: If the balancing variables are
            linearly dependent or non-finite
    """
    pik = np.asarray(pik, dtype=np.float64)
    if pik.ndim != 1:
        raise ValueError("Inclusion probabilities must be a 1D array")
    if pik.size == 0:
        raise EmptyPopulation()
    if not np.all(np.isfinite(pik)):
        raise ValueError("Inclusion probabilities must be finite")

    pik = _snap(pik)
    total = float(pik.sum())
    n = int(round(total))
    if abs(total - n) > probability_sum_tolerance:
        raise InvalidSampleSize(total, pik.size)

    X = _balancing_block(balancing, pik.size)
    rng = np.random.default_rng(seed)

    undecided = np.flatnonzero((pik > 0.0) & (pik < 1.0))
    if undecided.size:
        constraints = constraint_matrix(pik, X, undecided)
        order = undecided[rng.permutation(undecided.size)]
        pik, remaining = flight_phase(pik, constraints, order, rng)
        pik = landing_phase(pik, constraints, remaining, rng)

    selected = np.flatnonzero(pik > 0.5)
    if selected.size != n:
        raise SamplingError(f"Cube method selected {selected.size} units, expected {n}")

    logger.debug(f"Cube method selected {n} of {pik.size} units (seed={seed})")
    return selected
