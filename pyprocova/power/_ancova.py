"""Prospective power for ANCOVA / PROCOVA estimated from historical data.

``power_ancova`` derives ``sigma`` and ``rho`` / ``R2`` from a historical
data set and feeds them to both power models. For PROCOVA, append the
prognostic model's predictions as a column of the historical data and name
it among the adjustment covariates; the historical data should be
independent of the data the prognostic model was trained on.
"""

from __future__ import annotations

import logging
import math
import numbers
from collections.abc import Sequence
from dataclasses import dataclass

import numpy as np
import pandas as pd

from pyprocova.power._common import (
    AncovaPowerResult,
    DataShapeError,
    InvalidAdjustmentSpec,
    PreconditionError,
)
from pyprocova.power._models import power_gs, power_nc
from pyprocova.power._stats import (
    _check_columns,
    _complete_cases,
    _multi_covariate_r2,
    covariate_correlation,
    outcome_variance,
)

logger = logging.getLogger(__name__)

# Smallest share of the outcome variance the covariates may leave unexplained.
_MIN_RESIDUAL_SHARE = 1e-10


# ---------------------------------------------------------------------------
# Adjustment specifications
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Anova:
    """No covariate adjustment."""

    label = "ANOVA"


@dataclass(frozen=True)
class SingleCovariate:
    """One covariate, no treatment interaction."""

    covariate: str

    label = "single covariate"


@dataclass(frozen=True)
class MultiCovariate:
    """Several covariates, or any covariates with treatment interaction."""

    covariates: tuple[str, ...]
    interaction: bool = False

    label = "multiple covariates"


AdjustmentSpec = Anova | SingleCovariate | MultiCovariate


def adjustment_spec(
    adj_covs: str | Sequence[str] | None = None,
    interaction: bool = False,
) -> AdjustmentSpec:
    """Select the adjustment branch.

    First match wins:

    1. no covariates -> :class:`Anova` (``interaction`` has no terms to act on)
    2. one covariate, no interaction -> :class:`SingleCovariate`
    3. otherwise -> :class:`MultiCovariate`
    """
    covs = _as_covariate_tuple(adj_covs)
    if not covs:
        return Anova()
    if len(covs) == 1 and not interaction:
        return SingleCovariate(covs[0])
    return MultiCovariate(covs, interaction)


def _as_covariate_tuple(adj_covs: str | Sequence[str] | None) -> tuple[str, ...]:
    if adj_covs is None:
        return ()
    if isinstance(adj_covs, str):
        return (adj_covs,)
    if not isinstance(adj_covs, (Sequence, pd.Index, np.ndarray)):
        raise PreconditionError(
            f"adj_covs must be None or a collection of strings, "
            f"got {type(adj_covs).__name__}"
        )
    covs = tuple(adj_covs)
    bad = [c for c in covs if not isinstance(c, str)]
    if bad:
        raise InvalidAdjustmentSpec(f"adj_covs must contain only strings, got {bad}")
    return covs


# ---------------------------------------------------------------------------
# Boundary checks
# ---------------------------------------------------------------------------

def _as_scalar(value: object, name: str) -> float:
    """Accept a real number or a one-element sequence/array of one."""
    if isinstance(value, (list, tuple, np.ndarray, pd.Series)):
        arr = np.asarray(value)
        if arr.size != 1:
            raise PreconditionError(f"{name} must be a scalar, got {arr.size} values")
        value = arr.reshape(-1)[0].item()
    if isinstance(value, bool) or not isinstance(value, numbers.Real):
        raise PreconditionError(
            f"{name} must be a real number, got {type(value).__name__}"
        )
    value = float(value)
    if not math.isfinite(value):
        raise PreconditionError(f"{name} must be finite, got {value}")
    return value


def _check_inputs(
    data_hist: object,
    outcome_var: object,
    treatment_var: object,
    interaction: object,
) -> None:
    if not isinstance(data_hist, pd.DataFrame):
        raise PreconditionError(
            f"data_hist must be a pandas DataFrame, got {type(data_hist).__name__}"
        )
    if len(data_hist) < 1:
        raise PreconditionError("data_hist must have at least one row")
    if not isinstance(outcome_var, str):
        raise PreconditionError(
            f"outcome_var must be a string, got {type(outcome_var).__name__}"
        )
    if not isinstance(treatment_var, str):
        raise PreconditionError(
            f"treatment_var must be a string, got {type(treatment_var).__name__}"
        )
    if not isinstance(interaction, (bool, np.bool_)):
        raise PreconditionError(
            f"interaction must be a bool, got {type(interaction).__name__}"
        )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def power_ancova(
    data_hist: pd.DataFrame,
    outcome_var: str = "y",
    treatment_var: str = "w",
    adj_covs: str | Sequence[str] | None = None,
    interaction: bool = False,
    *,
    n: float,
    r: float,
    ate: float,
    margin: float = 0.0,
    alpha: float = 0.05,
) -> AncovaPowerResult:
    """Prospective power of an ANOVA / ANCOVA trial analysis.

    ``sigma`` and ``rho`` / ``R2`` are estimated from *data_hist* and can
    not be supplied; use :func:`power_nc` / :func:`power_gs` for
    user-specified values.

    Parameters
    ----------
    data_hist : DataFrame
        Historical data used to estimate sigma, rho and R2. Not modified.
        With covariates, rows missing any referenced column (covariates,
        plus the treatment column under ``interaction``) are dropped before
        any statistic is computed, so ``sigma`` is the outcome variance of
        the complete cases and a missing covariate value changes it.
    outcome_var : str
        Outcome column.
    treatment_var : str
        Treatment indicator column (only read when ``interaction`` is True).
    adj_covs : str, sequence of str, or None
        Covariates to adjust for. Categorical covariates must already be
        encoded as numeric indicator columns.
    interaction : bool
        Model covariate x treatment interactions when estimating R2.
    n : float
        Total number of participants in the new trial.
    r : float
        Allocation ratio ``n1 / n0``.
    ate : float
        Minimum effect size that should be detectable.
    margin : float
        Superiority margin (negative for non-inferiority).
    alpha : float
        Significance level; the test is one-sided at ``alpha / 2``.

    Returns
    -------
    AncovaPowerResult
        Mapping with keys ``sigma``, ``power_NC``, ``power_GS`` plus ``rho``
        (one covariate) or ``R2`` (several covariates / interaction).

    Raises
    ------
    PreconditionError
        Malformed arguments.
    InvalidAdjustmentSpec
        Unknown or non-string covariate names.
    SingularCovarianceError
        Covariate covariance matrix not positive definite.
    DataShapeError
        Non-numeric columns, too few complete observations, or covariates
        that explain all of the outcome variance.

    Examples
    --------
    >>> res = power_ancova(hist, n=53, r=1, ate=3)
    >>> sorted(res)
    ['power_GS', 'power_NC', 'sigma']
    """
    _check_inputs(data_hist, outcome_var, treatment_var, interaction)
    n = _as_scalar(n, "n")
    r = _as_scalar(r, "r")
    ate = _as_scalar(ate, "ate")
    margin = _as_scalar(margin, "margin")
    alpha = _as_scalar(alpha, "alpha")

    spec = adjustment_spec(adj_covs, bool(interaction))
    logger.debug("power_ancova: %s", spec)

    design = dict(n=n, r=r, ate=ate, margin=margin, alpha=alpha)

    if isinstance(spec, Anova):
        sigma = outcome_variance(data_hist, outcome_var)
        return AncovaPowerResult(
            sigma=sigma,
            power_nc=power_nc(sigma=sigma, method="ANOVA", **design),
            power_gs=power_gs(sigma=sigma, method="ANOVA", **design),
            adjustment=spec.label,
        )

    if isinstance(spec, SingleCovariate):
        frame = _referenced(data_hist, outcome_var, [spec.covariate])
        sigma = outcome_variance(frame, outcome_var)
        rho = covariate_correlation(frame, outcome_var, spec.covariate)
        logger.debug("sigma=%.6g rho=%.6g", sigma, rho)
        _check_residual(rho ** 2, [spec.covariate])
        return AncovaPowerResult(
            sigma=sigma,
            power_nc=power_nc(sigma=sigma, rho=rho, method="ANCOVA", **design),
            power_gs=power_gs(sigma=sigma, rho=rho, method="ANCOVA", **design),
            rho=rho,
            adjustment=spec.label,
            covariates=(spec.covariate,),
        )

    frame = _referenced(
        data_hist,
        outcome_var,
        spec.covariates,
        treatment_var if spec.interaction else None,
    )
    sigma = outcome_variance(frame, outcome_var)
    r2, kept = _multi_covariate_r2(
        frame, outcome_var, spec.covariates, treatment_var, spec.interaction,
    )
    logger.debug("sigma=%.6g R2=%.6g columns=%s", sigma, r2, kept)
    _check_residual(r2, kept)
    return AncovaPowerResult(
        sigma=sigma,
        power_nc=power_nc(sigma=sigma, r2=r2, method="ANCOVA", **design),
        power_gs=power_gs(sigma=sigma, r2=r2, method="ANCOVA", **design),
        r2=r2,
        adjustment=spec.label,
        covariates=kept,
    )


def _check_residual(r2: float, covariates: Sequence[str]) -> None:
    if not 1.0 - r2 >= _MIN_RESIDUAL_SHARE:
        raise DataShapeError(
            f"covariates {list(covariates)} explain all outcome variance "
            f"(R2 = {r2!r}); no residual variance to power the trial on"
        )


def _referenced(
    data: pd.DataFrame,
    outcome_var: str,
    covariates: Sequence[str],
    treatment_var: str | None = None,
) -> pd.DataFrame:
    """Rows complete in every referenced column, so all statistics share them."""
    _check_columns(data, covariates, "covariates")
    if treatment_var is not None:
        _check_columns(data, [treatment_var], "treatment variable")
    if outcome_var not in data.columns:
        raise DataShapeError(f"outcome {outcome_var!r} not found in historical data")
    columns = [outcome_var, *covariates]
    if treatment_var is not None:
        columns.append(treatment_var)
    return _complete_cases(data, columns)
