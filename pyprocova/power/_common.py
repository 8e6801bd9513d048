"""Shared result types, errors and helpers for ANCOVA power calculations."""

from __future__ import annotations

import math
from collections.abc import Callable, Iterator, Mapping
from dataclasses import dataclass

from scipy.optimize import brentq


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

class PowerAnalysisError(ValueError):
    """Base class for failures of the ANCOVA power engine."""


class PreconditionError(PowerAnalysisError, TypeError):
    """An argument has the wrong type or shape (caller error)."""


class InvalidAdjustmentSpec(PowerAnalysisError):
    """Covariate names are unknown, duplicated or not strings."""


class SingularCovarianceError(PowerAnalysisError):
    """The covariate covariance matrix is not positive definite."""


class DataShapeError(PowerAnalysisError):
    """A referenced column is non-numeric or has too few observations."""


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class PowerResult:
    """Result of a sample size calculation.

    Exactly one of n or power was solved for; the other was supplied.
    """

    n: int | None
    power: float | None
    effect_size: float | None
    alpha: float
    alternative: str
    method: str
    note: str = ""

    def summary(self) -> str:
        """Human-readable summary, similar to R's print.power.htest."""
        lines = [self.method, ""]
        if self.n is not None:
            lines.append(f"              n = {self.n}")
        if self.effect_size is not None:
            lines.append(f"    effect size = {self.effect_size:.6f}")
        lines.append(f"          alpha = {self.alpha}")
        if self.power is not None:
            lines.append(f"          power = {self.power:.6f}")
        lines.append(f"    alternative = {self.alternative}")
        if self.note:
            lines.append("")
            lines.append(f"NOTE: {self.note}")
        return "\n".join(lines)


@dataclass(frozen=True, eq=False)
class AncovaPowerResult(Mapping):
    """Prospective power estimated from historical data.

    Behaves as a read-only mapping whose keys depend on the adjustment:

    - ANOVA: ``sigma``, ``power_NC``, ``power_GS``
    - one covariate: ``sigma``, ``rho``, ``power_NC``, ``power_GS``
    - several covariates / interaction: ``sigma``, ``R2``, ``power_NC``,
      ``power_GS``

    Attributes
    ----------
    sigma : float
        Sample variance of the historical outcome.
    power_nc, power_gs : float
        Power from the non-centrality and Guenther-Schouten models.
    rho : float or None
        Outcome/covariate correlation (single-covariate branch only).
    r2 : float or None
        Coefficient of determination (multi-covariate branch only).
    adjustment : str
        ``'ANOVA'``, ``'single covariate'`` or ``'multiple covariates'``.
    covariates : tuple of str
        Columns entering the variance reduction (after pruning).
    """

    sigma: float
    power_nc: float
    power_gs: float
    rho: float | None = None
    r2: float | None = None
    adjustment: str = "ANOVA"
    covariates: tuple[str, ...] = ()

    def as_dict(self) -> dict[str, float]:
        out = {"sigma": self.sigma}
        if self.rho is not None:
            out["rho"] = self.rho
        if self.r2 is not None:
            out["R2"] = self.r2
        out["power_NC"] = self.power_nc
        out["power_GS"] = self.power_gs
        return out

    def __getitem__(self, key: str) -> float:
        return self.as_dict()[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self.as_dict())

    def __len__(self) -> int:
        return len(self.as_dict())

    def __eq__(self, other: object) -> bool:
        if isinstance(other, AncovaPowerResult):
            return (
                self.as_dict() == other.as_dict()
                and self.adjustment == other.adjustment
                and self.covariates == other.covariates
            )
        return Mapping.__eq__(self, other)

    __hash__ = None  # type: ignore[assignment]

    def summary(self) -> str:
        """Human-readable summary."""
        lines = [
            f"Prospective ANCOVA power ({self.adjustment})",
            "=" * 40,
            f"sigma       : {self.sigma:.6g}",
        ]
        if self.rho is not None:
            lines.append(f"rho         : {self.rho:.6f}")
        if self.r2 is not None:
            lines.append(f"R2          : {self.r2:.6f}")
        lines.append(f"power (NC)  : {self.power_nc:.6f}")
        lines.append(f"power (GS)  : {self.power_gs:.6f}")
        if self.covariates:
            lines.append(f"covariates  : {', '.join(self.covariates)}")
        return "\n".join(lines)


# ---------------------------------------------------------------------------
# Shared validation
# ---------------------------------------------------------------------------

def _group_sizes(n: float, r: float) -> tuple[float, float]:
    """Split total *n* into (treatment, control) by allocation ratio *r*.

    ``n1 = round(n * r / (1 + r))`` with round-half-to-even; ``n0 = n - n1``.
    """
    n1 = float(round(n * r / (1.0 + r)))
    return n1, n - n1


def _check_model_args(
    *,
    n: float,
    r: float,
    sigma: float,
    alpha: float,
    effect: float,
) -> None:
    """Validate inputs shared by the NC and GS models.

    Raises
    ------
    ValueError
        On any validation failure.
    """
    if not (0.0 < alpha < 1.0):
        raise ValueError(f"alpha must be in (0, 1), got {alpha}")
    if not (n > 0):
        raise ValueError(f"n must be > 0, got {n}")
    if not (r > 0):
        raise ValueError(f"r must be > 0, got {r}")
    if not (sigma > 0) or not math.isfinite(sigma):
        raise ValueError(f"sigma must be positive and finite, got {sigma}")
    if not math.isfinite(effect):
        raise ValueError(f"ATE - margin must be finite, got {effect}")


def _check_power_args(
    *,
    n: int | float | None,
    power: float | None,
    alpha: float,
) -> str:
    """Validate sample-size inputs. Return the name of the parameter to solve for.

    Exactly one of *n*, *power* must be ``None``.
    """
    none_count = sum(x is None for x in (n, power))
    if none_count != 1:
        raise ValueError(
            f"Exactly one of n, power must be None (got {none_count} None values)"
        )

    if not (0.0 < alpha < 1.0):
        raise ValueError(f"alpha must be in (0, 1), got {alpha}")

    if n is not None and n < 4:
        raise ValueError(f"n must be >= 4, got {n}")

    if power is not None and not (0.0 < power < 1.0):
        raise ValueError(f"power must be in (0, 1), got {power}")

    return "n" if n is None else "power"


# ---------------------------------------------------------------------------
# Shared root-finding
# ---------------------------------------------------------------------------

def _solve_parameter(
    func: Callable[[float], float],
    target: float,
    bracket: tuple[float, float],
    *,
    xtol: float = 1e-10,
    maxiter: int = 1000,
) -> float:
    """Solve ``func(x) == target`` via Brent's method.

    Parameters
    ----------
    func : callable
        Monotonic function of one variable (e.g. computes power as f(n)).
    target : float
        Target value (e.g. desired power).
    bracket : tuple
        ``(lower, upper)`` bracket. ``func(lower) - target`` and
        ``func(upper) - target`` must have opposite signs.

    Raises
    ------
    ValueError
        If the bracket does not straddle the target (no sign change).
    """
    lo, hi = bracket
    f_lo = func(lo) - target
    f_hi = func(hi) - target

    if f_lo * f_hi > 0:
        raise ValueError(
            f"Cannot solve: target {target:.6f} is outside achievable range "
            f"[{func(lo):.6f}, {func(hi):.6f}] for the given parameters. "
            f"Try different input values."
        )

    return brentq(lambda x: func(x) - target, lo, hi, xtol=xtol, maxiter=maxiter)
