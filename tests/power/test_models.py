"""Tests for power_nc and power_gs."""

import math

import pytest
from scipy.stats import nct
from scipy.stats import t as t_dist

from pyprocova.power import power_gs, power_nc
from pyprocova.power._common import _group_sizes


class TestGroupSizes:
    """Allocation of the total sample size to the two arms."""

    def test_one_to_one_even(self):
        assert _group_sizes(100, 1) == (50.0, 50.0)

    def test_one_to_one_odd_rounds_half_to_even(self):
        """53 / 2 = 26.5 rounds to 26."""
        assert _group_sizes(53, 1) == (26.0, 27.0)

    def test_two_to_one(self):
        assert _group_sizes(100, 2) == (67.0, 33.0)


class TestPowerNC:
    """Noncentral t power model."""

    def test_in_unit_interval(self):
        for ate in (0.0, 0.5, 2.0, 10.0):
            p = power_nc(n=60, r=1, sigma=4.0, ate=ate, method="ANOVA")
            assert 0.0 <= p <= 1.0

    def test_matches_two_sample_t(self):
        """ANOVA branch equals the one-sided two-sample t test at alpha/2."""
        n1 = n0 = 40
        df = n1 + n0 - 2
        ncp = 1.5 / math.sqrt(4.0 * (1 / n1 + 1 / n0))
        expected = nct.sf(t_dist.ppf(0.975, df), df, ncp)
        p = power_nc(n=80, r=1, sigma=4.0, ate=1.5, method="ANOVA", alpha=0.05)
        assert p == pytest.approx(expected, rel=1e-10)

    def test_no_effect_gives_alpha_half(self):
        p = power_nc(n=80, r=1, sigma=4.0, ate=0.0, method="ANOVA", alpha=0.05)
        assert p == pytest.approx(0.025, abs=1e-6)

    def test_monotone_in_n(self):
        powers = [
            power_nc(n=n, r=1, sigma=9.0, ate=1.0, rho=0.4) for n in range(6, 200)
        ]
        assert all(b >= a for a, b in zip(powers, powers[1:]))

    def test_monotone_in_n_unequal_allocation(self):
        powers = [
            power_nc(n=n, r=2.5, sigma=9.0, ate=1.0, method="ANOVA")
            for n in range(6, 200)
        ]
        assert all(b >= a for a, b in zip(powers, powers[1:]))

    def test_covariate_increases_power(self):
        p0 = power_nc(n=60, r=1, sigma=9.0, ate=2.0, method="ANOVA")
        p1 = power_nc(n=60, r=1, sigma=9.0, ate=2.0, rho=0.6)
        assert p1 > p0

    def test_rho_and_r2_agree(self):
        p_rho = power_nc(n=60, r=1, sigma=9.0, ate=2.0, rho=0.5)
        p_r2 = power_nc(n=60, r=1, sigma=9.0, ate=2.0, r2=0.25)
        assert p_rho == pytest.approx(p_r2, rel=1e-12)

    def test_rho_takes_precedence(self):
        p_rho = power_nc(n=60, r=1, sigma=9.0, ate=2.0, rho=0.5, r2=0.9)
        p_r2 = power_nc(n=60, r=1, sigma=9.0, ate=2.0, r2=0.25)
        assert p_rho == pytest.approx(p_r2, rel=1e-12)

    def test_ancova_df_is_n_minus_three(self):
        """One slope is spent on the adjustment, whatever explains R2."""
        n1 = n0 = 10
        df = n1 + n0 - 3
        ncp = 3.0 / math.sqrt(9.0 * (1 - 0.3) * (1 / n1 + 1 / n0))
        expected = nct.sf(t_dist.ppf(0.975, df), df, ncp)
        p = power_nc(n=20, r=1, sigma=9.0, ate=3.0, r2=0.3)
        assert p == pytest.approx(expected, rel=1e-10)

    def test_too_few_df_gives_zero(self):
        assert power_nc(n=3, r=1, sigma=1.0, ate=1.0, r2=0.1) == 0.0
        assert power_nc(n=4, r=1, sigma=1.0, ate=1.0, r2=0.1) > 0.0

    def test_margin_shifts_effect(self):
        p_margin = power_nc(n=60, r=1, sigma=9.0, ate=3.0, margin=1.0, rho=0.3)
        p_plain = power_nc(n=60, r=1, sigma=9.0, ate=2.0, rho=0.3)
        assert p_margin == pytest.approx(p_plain, rel=1e-12)

    def test_noninferiority_margin_increases_power(self):
        p_sup = power_nc(n=60, r=1, sigma=9.0, ate=0.5, method="ANOVA")
        p_ni = power_nc(n=60, r=1, sigma=9.0, ate=0.5, margin=-1.0, method="ANOVA")
        assert p_ni > p_sup

    def test_large_effect_near_one(self):
        p = power_nc(n=200, r=1, sigma=1.0, ate=1.0, method="ANOVA")
        assert p == pytest.approx(1.0, abs=1e-4)


class TestPowerGS:
    """Guenther-Schouten power model."""

    def test_in_unit_interval(self):
        for ate in (-1.0, 0.0, 0.5, 2.0, 10.0):
            p = power_gs(n=60, r=1, sigma=4.0, ate=ate, method="ANOVA")
            assert 0.0 <= p <= 1.0

    def test_no_effect_gives_alpha_half(self):
        p = power_gs(n=80, r=1, sigma=4.0, ate=0.0, method="ANOVA", alpha=0.05)
        assert p == pytest.approx(0.025, abs=1e-10)

    def test_monotone_in_n(self):
        powers = [
            power_gs(n=n, r=1.5, sigma=9.0, ate=1.0, r2=0.3) for n in range(4, 300)
        ]
        assert all(b >= a for a, b in zip(powers, powers[1:]))

    def test_rho_zero_equals_anova(self):
        p_anova = power_gs(n=60, r=1, sigma=9.0, ate=2.0, method="ANOVA")
        p_ancova = power_gs(n=60, r=1, sigma=9.0, ate=2.0, rho=0.0)
        assert p_anova == p_ancova

    def test_close_to_nc(self):
        """GS is built to track the t-based power closely."""
        for n in (30, 60, 120):
            p_nc = power_nc(n=n, r=1, sigma=9.0, ate=2.0, rho=0.5)
            p_gs = power_gs(n=n, r=1, sigma=9.0, ate=2.0, rho=0.5)
            assert p_gs == pytest.approx(p_nc, abs=0.02)

    def test_tiny_n_gives_zero(self):
        assert power_gs(n=1, r=1, sigma=1.0, ate=1.0, method="ANOVA") == 0.0


class TestModelValidation:
    """Argument checks shared by both models."""

    @pytest.mark.parametrize("func", [power_nc, power_gs])
    def test_alpha_out_of_range(self, func):
        with pytest.raises(ValueError, match="alpha"):
            func(n=60, r=1, sigma=1.0, ate=1.0, method="ANOVA", alpha=1.5)

    @pytest.mark.parametrize("func", [power_nc, power_gs])
    def test_nonpositive_sigma(self, func):
        with pytest.raises(ValueError, match="sigma"):
            func(n=60, r=1, sigma=0.0, ate=1.0, method="ANOVA")

    @pytest.mark.parametrize("func", [power_nc, power_gs])
    def test_nonpositive_r(self, func):
        with pytest.raises(ValueError, match="r must be"):
            func(n=60, r=0.0, sigma=1.0, ate=1.0, method="ANOVA")

    @pytest.mark.parametrize("func", [power_nc, power_gs])
    def test_invalid_method(self, func):
        with pytest.raises(ValueError, match="method"):
            func(n=60, r=1, sigma=1.0, ate=1.0, method="MANOVA")

    @pytest.mark.parametrize("func", [power_nc, power_gs])
    def test_ancova_needs_rho_or_r2(self, func):
        with pytest.raises(ValueError, match="rho or R2"):
            func(n=60, r=1, sigma=1.0, ate=1.0, method="ANCOVA")

    @pytest.mark.parametrize("func", [power_nc, power_gs])
    def test_r2_of_one(self, func):
        with pytest.raises(ValueError, match="R2"):
            func(n=60, r=1, sigma=1.0, ate=1.0, r2=1.0)

    @pytest.mark.parametrize("func", [power_nc, power_gs])
    def test_rho_out_of_range(self, func):
        with pytest.raises(ValueError, match="rho"):
            func(n=60, r=1, sigma=1.0, ate=1.0, rho=1.2)
