"""Unit tests for the value types."""

from __future__ import annotations

import pytest

from voxbuf.core.types import RescaleSlopeAndIntercept


class TestRescaleSlopeAndIntercept:
    def test_apply(self):
        rsi = RescaleSlopeAndIntercept(2.0, -1024.0)
        assert rsi.apply(1000) == 976.0

    def test_defaults_are_identity(self):
        rsi = RescaleSlopeAndIntercept()
        assert rsi.is_identity()
        assert rsi.apply(42) == 42

    @pytest.mark.parametrize(
        "slope, intercept",
        [(1.0, 1.0), (0.5, 0.0), (-1.0, 0.0)],
    )
    def test_not_identity(self, slope, intercept):
        assert not RescaleSlopeAndIntercept(slope, intercept).is_identity()

    def test_equals_with_tolerance(self):
        lhs = RescaleSlopeAndIntercept(1.0, 0.0)
        assert lhs.equals(RescaleSlopeAndIntercept(1.0 + 1e-10, 0.0))
        assert not lhs.equals(RescaleSlopeAndIntercept(1.001, 0.0))
        assert lhs.equals(RescaleSlopeAndIntercept(1.001, 0.0), tol=0.01)
        assert not lhs.equals(None)

    def test_operator_equality(self):
        assert RescaleSlopeAndIntercept(2.0, 3.0) == RescaleSlopeAndIntercept(2.0, 3.0)
        assert RescaleSlopeAndIntercept(2.0, 3.0) != RescaleSlopeAndIntercept(3.0, 2.0)

    def test_integer_fields_become_float(self):
        rsi = RescaleSlopeAndIntercept(2, -1024)
        assert isinstance(rsi.slope, float)
        assert isinstance(rsi.intercept, float)

    def test_str(self):
        assert str(RescaleSlopeAndIntercept(2.0, -3.0)) == "(2.0, -3.0)"
