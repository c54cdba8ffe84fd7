from typing import Sequence

import numpy as np
import pandas as pd


def horvitz_thompson_total(
    values: np.ndarray, pik: np.ndarray, selected: np.ndarray
) -> np.ndarray:
    """Estimate population totals from a sample.

    Formula: t_HT = Σ_{k in s} y_k / π_k

    Args:
        values: (N,) or (N, p) variable values for the whole population
        pik: Inclusion probabilities (N,)
        selected: Indices of the sampled units

    Returns:
        Estimated total per variable
    """
    values = np.asarray(values, dtype=np.float64)
    if values.ndim == 1:
        values = values[:, None]
    selected = np.asarray(selected, dtype=np.int64)
    weights = 1.0 / np.asarray(pik, dtype=np.float64)[selected]
    return (values[selected] * weights[:, None]).sum(axis=0)


def calculate_balance_diagnostics(
    values: np.ndarray,
    pik: np.ndarray,
    selected: np.ndarray,
    names: Sequence[str],
) -> pd.DataFrame:
    """Compare Horvitz-Thompson estimates with the true population totals.

    A balanced sample reproduces the population totals of its balancing
    variables, so ``relative_error`` should be close to zero for them.

    Args:
        values: (N, p) balancing variables
        pik: Inclusion probabilities (N,)
        selected: Indices of the sampled units
        names: One name per column of ``values``

    Returns:
        DataFrame with columns: variable, population_total, ht_estimate,
        relative_error, population_mean, sample_mean
    """
    values = np.asarray(values, dtype=np.float64)
    if values.ndim == 1:
        values = values[:, None]
    selected = np.asarray(selected, dtype=np.int64)

    totals = values.sum(axis=0)
    estimates = horvitz_thompson_total(values, pik, selected)
    with np.errstate(divide="ignore", invalid="ignore"):
        relative = np.where(totals != 0, (estimates - totals) / totals, 0.0)

    sample_means = (
        values[selected].mean(axis=0) if selected.size else np.full(values.shape[1], np.nan)
    )

    return pd.DataFrame(
        {
            "variable": list(names),
            "population_total": totals,
            "ht_estimate": estimates,
            "relative_error": relative,
            "population_mean": values.mean(axis=0),
            "sample_mean": sample_means,
        }
    )
