"""Sufficient statistics for prospective power, estimated from historical data.

The power models need the outcome variance (``sigma``) and the share of it
explained by the adjustment covariates: the correlation ``rho`` for a single
covariate, or ``R2 = Cov(Y, X) Sigma_X^-1 Cov(X, Y) / sigma`` for a set of
covariates, optionally extended by covariate x treatment interaction terms.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

import numpy as np
import pandas as pd
from numpy.typing import NDArray
from scipy.linalg import LinAlgError, cho_factor, cho_solve

from pyprocova.power._common import (
    DataShapeError,
    InvalidAdjustmentSpec,
    SingularCovarianceError,
)

logger = logging.getLogger(__name__)

INTERACTION_SUFFIX = "_w"

# Smallest conditional variance (relative to the marginal variance) a
# covariate may keep after projecting out the preceding covariates.
_SINGULAR_TOL = 1e-10


# ---------------------------------------------------------------------------
# Column access
# ---------------------------------------------------------------------------

def _check_columns(
    data: pd.DataFrame,
    names: Sequence[str],
    role: str,
) -> None:
    """Raise InvalidAdjustmentSpec unless every name is a unique column."""
    for name in names:
        if not isinstance(name, str):
            raise InvalidAdjustmentSpec(
                f"{role} names must be strings, got {name!r} ({type(name).__name__})"
            )
    missing = [name for name in names if name not in data.columns]
    if missing:
        raise InvalidAdjustmentSpec(
            f"{role} not found in historical data: {missing}"
        )
    if len(set(names)) != len(names):
        raise InvalidAdjustmentSpec(f"duplicate {role} names: {list(names)}")


def _complete_cases(data: pd.DataFrame, columns: Sequence[str]) -> pd.DataFrame:
    """Numeric complete-case subset of *columns*.

    Raises
    ------
    DataShapeError
        If a column is not numeric or fewer than 2 complete rows remain.
    """
    columns = list(dict.fromkeys(columns))
    for col in columns:
        if not pd.api.types.is_numeric_dtype(data[col]):
            raise DataShapeError(
                f"column {col!r} must be numeric, got dtype {data[col].dtype}"
            )

    frame = data.loc[:, columns].dropna()
    dropped = len(data) - len(frame)
    if dropped:
        logger.debug("dropped %d incomplete rows of %d", dropped, len(data))
    if len(frame) < 2:
        raise DataShapeError(
            f"need at least 2 complete observations of {columns}, "
            f"got {len(frame)}"
        )
    return frame


def _values(frame: pd.DataFrame, col: str) -> NDArray[np.floating]:
    return frame[col].to_numpy(dtype=float)


# ---------------------------------------------------------------------------
# Interaction terms
# ---------------------------------------------------------------------------

def add_interactions(
    data: pd.DataFrame,
    covariates: Sequence[str],
    treatment_var: str,
) -> tuple[pd.DataFrame, list[str]]:
    """Append one ``<covariate>_w`` = covariate x treatment column per covariate.

    Works on a copy; the caller's frame is left untouched.

    Returns
    -------
    tuple
        ``(augmented_frame, interaction_column_names)``.
    """
    _check_columns(data, [treatment_var], "treatment variable")
    _check_columns(data, covariates, "covariates")
    for col in [treatment_var, *covariates]:
        if not pd.api.types.is_numeric_dtype(data[col]):
            raise DataShapeError(
                f"column {col!r} must be numeric, got dtype {data[col].dtype}"
            )

    w = data[treatment_var].astype(float)
    products = {
        f"{col}{INTERACTION_SUFFIX}": data[col].astype(float) * w
        for col in covariates
    }
    clashes = [name for name in products if name in data.columns]
    if clashes:
        raise InvalidAdjustmentSpec(
            f"interaction columns would overwrite existing columns: {clashes}"
        )
    return data.assign(**products), list(products)


# ---------------------------------------------------------------------------
# Statistics
# ---------------------------------------------------------------------------

def outcome_variance(data: pd.DataFrame, outcome_var: str) -> float:
    """Sample variance (ddof = 1) of the outcome column.

    Raises
    ------
    DataShapeError
        If the outcome is non-numeric, has fewer than 2 observations, or is
        constant.
    """
    if outcome_var not in data.columns:
        raise DataShapeError(f"outcome {outcome_var!r} not found in historical data")
    frame = _complete_cases(data, [outcome_var])
    sigma = float(np.var(_values(frame, outcome_var), ddof=1))
    if not sigma > 0.0:
        raise DataShapeError(f"outcome {outcome_var!r} has zero variance")
    return sigma


def covariate_correlation(
    data: pd.DataFrame,
    outcome_var: str,
    covariate: str,
) -> float:
    """Pearson correlation between a single covariate and the outcome."""
    _check_columns(data, [covariate], "covariates")
    if outcome_var not in data.columns:
        raise DataShapeError(f"outcome {outcome_var!r} not found in historical data")
    frame = _complete_cases(data, [outcome_var, covariate])
    x = _values(frame, covariate)
    y = _values(frame, outcome_var)
    if np.var(x) == 0.0:
        raise DataShapeError(f"covariate {covariate!r} is constant")
    if np.var(y) == 0.0:
        raise DataShapeError(f"outcome {outcome_var!r} has zero variance")
    return float(np.corrcoef(x, y)[0, 1])


def _inverse_covariance_solve(
    sigma_x: NDArray[np.floating],
    rhs: NDArray[np.floating],
    columns: Sequence[str],
) -> NDArray[np.floating]:
    """Solve ``Sigma_X z = rhs`` through a Cholesky factor of Sigma_X.

    Raises
    ------
    SingularCovarianceError
        If Sigma_X is not (numerically) positive definite.
    """
    try:
        factor = cho_factor(sigma_x, lower=True)
    except LinAlgError as exc:
        raise SingularCovarianceError(
            f"covariance matrix of {list(columns)} is not positive definite"
        ) from exc

    # Exact collinearity can survive the factorisation as a rounding-level pivot.
    pivots = np.diag(factor[0]) ** 2 / np.diag(sigma_x)
    if np.min(pivots) < _SINGULAR_TOL:
        worst = columns[int(np.argmin(pivots))]
        raise SingularCovarianceError(
            f"covariance matrix of {list(columns)} is singular: "
            f"{worst!r} is collinear with the preceding columns"
        )
    return cho_solve(factor, rhs)


def _r_squared(
    frame: pd.DataFrame,
    outcome_var: str,
    columns: Sequence[str],
) -> tuple[float, tuple[str, ...]]:
    """R2 of *outcome_var* on *columns*; also return the columns kept.

    Columns whose values sum to exactly zero are pruned first.
    """
    kept = tuple(col for col in columns if np.sum(_values(frame, col)) != 0.0)
    pruned = [col for col in columns if col not in kept]
    if pruned:
        logger.debug("pruned zero-sum columns %s", pruned)
    if not kept:
        return 0.0, kept

    y = _values(frame, outcome_var)
    x = frame.loc[:, list(kept)].to_numpy(dtype=float)
    sigma = float(np.var(y, ddof=1))
    if not sigma > 0.0:
        raise DataShapeError(f"outcome {outcome_var!r} has zero variance")

    joint = np.cov(np.column_stack([x, y]), rowvar=False, ddof=1)
    sigma_x = joint[:-1, :-1]
    cov_xy = joint[:-1, -1]

    z = _inverse_covariance_solve(sigma_x, cov_xy, kept)
    return float(cov_xy @ z) / sigma, kept


def coefficient_of_determination(
    data: pd.DataFrame,
    outcome_var: str,
    covariates: Sequence[str],
    treatment_var: str | None = None,
    interaction: bool = False,
) -> float:
    """Share of outcome variance explained by the covariates.

    ``R2 = Cov(Y, X) Sigma_X^-1 Cov(X, Y) / sigma``

    Parameters
    ----------
    data : DataFrame
        Historical data. Not modified.
    outcome_var : str
        Outcome column.
    covariates : sequence of str
        Adjustment covariates (numeric; encode categorical ones upstream).
    treatment_var : str or None
        Treatment indicator column, required when ``interaction`` is True.
    interaction : bool
        Add covariate x treatment products to X. If the treatment is zero
        for every historical subject those products sum to zero and are
        pruned, so R2 equals the no-interaction value.

    Returns
    -------
    float

    Raises
    ------
    InvalidAdjustmentSpec
        Unknown or duplicated column names.
    SingularCovarianceError
        Sigma_X not positive definite (collinear covariates, too few rows).
    DataShapeError
        Non-numeric columns or fewer than 2 complete rows.
    """
    r2, _ = _multi_covariate_r2(data, outcome_var, covariates, treatment_var, interaction)
    return r2


def _multi_covariate_r2(
    data: pd.DataFrame,
    outcome_var: str,
    covariates: Sequence[str],
    treatment_var: str | None,
    interaction: bool,
) -> tuple[float, tuple[str, ...]]:
    covariates = list(covariates)
    _check_columns(data, covariates, "covariates")
    if outcome_var not in data.columns:
        raise DataShapeError(f"outcome {outcome_var!r} not found in historical data")

    columns = covariates
    if interaction:
        if treatment_var is None:
            raise InvalidAdjustmentSpec("interaction requires a treatment variable")
        data, new_cols = add_interactions(data, covariates, treatment_var)
        columns = covariates + new_cols

    frame = _complete_cases(data, [outcome_var, *columns])
    return _r_squared(frame, outcome_var, columns)
