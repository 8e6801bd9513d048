"""Power models for ANOVA / ANCOVA comparisons of two arms.

Two approximations share one contract: the non-centrality (NC) model uses
the exact noncentral t distribution implied by the variance-reduced effect
size, the Guenther-Schouten (GS) model a normal approximation with the
``z^2 / 2`` small-sample correction.

Both test one-sided at ``alpha / 2`` and reduce the outcome variance by the
explanatory power of the covariates: ``sigma * (1 - R2)``.
"""

from __future__ import annotations

import math

from scipy.stats import nct, norm
from scipy.stats import t as t_dist

from pyprocova.power._common import _check_model_args, _group_sizes

_VALID_METHODS = ("ANOVA", "ANCOVA")

# Mean-model parameters spent on residual df: two arm means, plus one
# adjustment slope for ANCOVA whatever the size of the covariate set.
_N_PARAMS = {"ANOVA": 2, "ANCOVA": 3}


# ---------------------------------------------------------------------------
# Internal power computation
# ---------------------------------------------------------------------------

def _effective_variance(
    sigma: float,
    method: str,
    rho: float | None,
    r2: float | None,
) -> float:
    """Outcome variance left after covariate adjustment."""
    if method not in _VALID_METHODS:
        raise ValueError(f"method must be one of {_VALID_METHODS}, got {method!r}")

    if method == "ANOVA":
        return sigma

    if rho is not None:
        if not (-1.0 <= rho <= 1.0):
            raise ValueError(f"rho must be in [-1, 1], got {rho}")
        r2 = rho ** 2
    if r2 is None:
        raise ValueError("ANCOVA requires rho or R2")
    if not (0.0 <= r2 < 1.0):
        raise ValueError(f"R2 must be in [0, 1), got {r2}")
    return sigma * (1.0 - r2)


def _standard_error(n: float, r: float, variance: float) -> float | None:
    """SE of the difference in arm means; ``None`` if an arm is empty."""
    n1, n0 = _group_sizes(n, r)
    if n1 < 1.0 or n0 < 1.0:
        return None
    return math.sqrt(variance * (1.0 / n1 + 1.0 / n0))


def _nc_power(
    n: float,
    r: float,
    variance: float,
    effect: float,
    alpha: float,
    n_params: int,
) -> float:
    """Power from the noncentral t distribution.

    ncp = (ATE - margin) / SE,  df = n - n_params
    Power = P(T'(df, ncp) > t_{1 - alpha/2, df})
    """
    se = _standard_error(n, r, variance)
    df = n - float(n_params)
    if se is None or df < 1.0:
        return 0.0

    ncp = effect / se
    t_crit = t_dist.ppf(1.0 - alpha / 2.0, df)
    pwr = float(nct.sf(t_crit, df, ncp))

    # scipy's nct can return NaN for large noncentrality; the normal
    # approximation is accurate in that regime.
    if math.isnan(pwr):
        pwr = float(norm.sf(norm.ppf(1.0 - alpha / 2.0) - ncp))

    return min(max(pwr, 0.0), 1.0)


def _gs_power(
    n: float,
    r: float,
    variance: float,
    effect: float,
    alpha: float,
) -> float:
    """Power from the Guenther-Schouten approximation.

    Inverts n = (z_a + z_b)^2 * variance * (1/n1 + 1/n0) * n / effect^2 + z_a^2 / 2:
        Power = Phi(effect / SE * sqrt(1 - z_a^2 / (2 n)) - z_a)
    with z_a = z_{1 - alpha/2}.
    """
    se = _standard_error(n, r, variance)
    if se is None:
        return 0.0

    z_alpha = norm.ppf(1.0 - alpha / 2.0)
    shrink = 1.0 - z_alpha ** 2 / (2.0 * n)
    if shrink <= 0.0:
        return 0.0

    return float(norm.cdf(effect / se * math.sqrt(shrink) - z_alpha))


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def power_nc(
    n: float,
    r: float,
    sigma: float,
    ate: float,
    rho: float | None = None,
    r2: float | None = None,
    margin: float = 0.0,
    method: str = "ANCOVA",
    alpha: float = 0.05,
) -> float:
    """Power of the ANOVA/ANCOVA treatment comparison via the noncentral t.

    Parameters
    ----------
    n : float
        Total number of participants. The treatment arm gets
        ``n1 = round(n * r / (1 + r))``, the control arm ``n - n1``.
    r : float
        Allocation ratio ``n1 / n0`` (1 for one-to-one randomisation).
    sigma : float
        Outcome variance.
    ate : float
        Average treatment effect to detect.
    rho : float or None
        Correlation between outcome and a single covariate. Takes
        precedence over ``r2`` (which becomes ``rho ** 2``).
    r2 : float or None
        Coefficient of determination of the covariate set.
    margin : float
        Superiority margin; a negative value gives a non-inferiority design.
    method : str
        ``'ANOVA'`` (no adjustment) or ``'ANCOVA'``.
    alpha : float
        Significance level. The test is one-sided at ``alpha / 2``.

    Returns
    -------
    float
        Power in [0, 1].
    """
    effect = ate - margin
    _check_model_args(n=n, r=r, sigma=sigma, alpha=alpha, effect=effect)
    variance = _effective_variance(sigma, method, rho, r2)
    return _nc_power(
        float(n), float(r), variance, effect, alpha, _N_PARAMS[method],
    )


def power_gs(
    n: float,
    r: float,
    sigma: float,
    ate: float,
    rho: float | None = None,
    r2: float | None = None,
    margin: float = 0.0,
    method: str = "ANCOVA",
    alpha: float = 0.05,
) -> float:
    """Power of the ANOVA/ANCOVA treatment comparison via Guenther-Schouten.

    Parameters are as for :func:`power_nc`.

    Returns
    -------
    float
        Power in [0, 1].
    """
    effect = ate - margin
    _check_model_args(n=n, r=r, sigma=sigma, alpha=alpha, effect=effect)
    variance = _effective_variance(sigma, method, rho, r2)
    return _gs_power(float(n), float(r), variance, effect, alpha)
