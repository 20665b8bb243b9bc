"""Tests for high-precision fractional powers."""

from decimal import Decimal, localcontext

import pytest

from dexrouter.math.power import fractional_pow


def _reference(base: Decimal, numerator: int, denominator: int) -> Decimal:
    """base ** (n/d) via the decimal module's correctly rounded power."""
    with localcontext() as ctx:
        ctx.prec = 100
        return base ** (Decimal(numerator) / Decimal(denominator))


def _relative_error(actual: Decimal, expected: Decimal) -> Decimal:
    with localcontext() as ctx:
        ctx.prec = 100
        return abs(actual - expected) / expected


class TestFractionalPow:
    """Tests for fractional_pow."""

    def test_zero_exponent_is_one(self) -> None:
        """p = 0 gives 1, even for a zero base."""
        assert fractional_pow(Decimal("0.5"), 0, 7) == 1
        assert fractional_pow(Decimal(0), 0, 1) == 1

    def test_zero_base_is_zero(self) -> None:
        """r = 0 gives 0."""
        assert fractional_pow(Decimal(0), 3, 7) == 0

    def test_unit_exponent_is_lossless(self) -> None:
        """p = 1 returns the base unchanged."""
        base = Decimal("0.123456789012345678901234567890123456789012345678901234567")
        assert fractional_pow(base, 5, 5) == base

    def test_integer_exponent(self) -> None:
        """Whole exponents use exact integer powers."""
        assert fractional_pow(Decimal("0.5"), 4, 1) == Decimal("0.0625")

    @pytest.mark.parametrize(
        "base,numerator,denominator",
        [
            (Decimal(800) / Decimal("809.97"), 4, 1),
            (Decimal(200) / Decimal("209.97"), 1, 4),
            (Decimal("0.999999999"), 997, 3),
            (Decimal("0.5"), 1, 1000),
            (Decimal("0.000001"), 1000, 999),
            (Decimal(1) / Decimal(3), 2, 3),
        ],
    )
    def test_relative_error_bound(self, base: Decimal, numerator: int, denominator: int) -> None:
        """Relative error stays below 1e-40 against a 100-digit reference."""
        result = fractional_pow(base, numerator, denominator)
        assert _relative_error(result, _reference(base, numerator, denominator)) < Decimal(
            "1e-40"
        )

    def test_base_one(self) -> None:
        """1 to any power is 1."""
        assert fractional_pow(Decimal(1), 3, 7) == 1

    def test_rejects_negative_base(self) -> None:
        """Negative bases are outside the domain."""
        with pytest.raises(ValueError):
            fractional_pow(Decimal(-1), 1, 2)

    def test_rejects_bad_exponent(self) -> None:
        """Zero denominators and negative numerators are rejected."""
        with pytest.raises(ValueError):
            fractional_pow(Decimal("0.5"), 1, 0)
        with pytest.raises(ValueError):
            fractional_pow(Decimal("0.5"), -1, 2)
