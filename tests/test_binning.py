"""Tests for Binning and HistAxis (shiftspec.binning).

Covers:
1. Binning.simple / Binning.custom — construction and validation
2. bin_index — in-range, edges, underflow, overflow
3. Uniform and bisection lookups agree
4. HistAxis — wrapping and validation
"""

import numpy as np
import pytest

from shiftspec.binning import Binning, HistAxis, UNDERFLOW, OVERFLOW
from shiftspec.errors import ConfigurationError
from shiftspec.var import Var


# ═══════════════════════════════════════════════════════════════════
# 1. Construction
# ═══════════════════════════════════════════════════════════════════

class TestBinningConstruction:

    def test_simple_edges(self):
        b = Binning.simple(4, 0, 2)
        np.testing.assert_allclose(b.edges, [0.0, 0.5, 1.0, 1.5, 2.0])
        assert b.n_bins == 4
        assert len(b) == 4
        assert b.is_uniform

    def test_simple_forty_bins(self):
        b = Binning.simple(40, 0, 10)
        assert b.n_bins == 40
        assert b.low == 0.0
        assert b.high == 10.0

    @pytest.mark.parametrize("n", [0, -3])
    def test_simple_rejects_nonpositive_count(self, n):
        with pytest.raises(ConfigurationError):
            Binning.simple(n, 0, 10)

    def test_simple_rejects_fractional_count(self):
        with pytest.raises(ConfigurationError):
            Binning.simple(2.5, 0, 10)

    @pytest.mark.parametrize("n", [float("nan"), float("inf"), "4", None])
    def test_simple_rejects_non_finite_count(self, n):
        with pytest.raises(ConfigurationError):
            Binning.simple(n, 0, 10)

    def test_simple_accepts_numpy_count(self):
        assert Binning.simple(np.int64(3), 0, 3).n_bins == 3

    @pytest.mark.parametrize("lo,hi", [(10, 0), (5, 5)])
    def test_simple_rejects_bad_range(self, lo, hi):
        with pytest.raises(ConfigurationError):
            Binning.simple(2, lo, hi)

    def test_simple_rejects_infinite_range(self):
        with pytest.raises(ConfigurationError):
            Binning.simple(2, 0, float("inf"))

    def test_configuration_error_is_value_error(self):
        with pytest.raises(ValueError):
            Binning.simple(0, 0, 1)

    def test_custom_edges(self):
        b = Binning.custom([0, 1, 3, 10])
        assert b.n_bins == 3
        assert not b.is_uniform
        np.testing.assert_allclose(b.widths, [1, 2, 7])
        np.testing.assert_allclose(b.centers, [0.5, 2.0, 6.5])

    def test_custom_rejects_single_edge(self):
        with pytest.raises(ConfigurationError):
            Binning.custom([1.0])

    def test_custom_rejects_non_increasing(self):
        with pytest.raises(ConfigurationError):
            Binning.custom([0, 2, 2, 3])
        with pytest.raises(ConfigurationError):
            Binning.custom([0, 3, 1])

    def test_custom_rejects_nan_edge(self):
        with pytest.raises(ConfigurationError):
            Binning.custom([0, float("nan"), 1])

    def test_edges_are_read_only(self):
        b = Binning.simple(2, 0, 1)
        with pytest.raises(ValueError):
            b.edges[0] = -1.0

    def test_equality_by_edges(self):
        assert Binning.simple(2, 0, 10) == Binning.custom([0, 5, 10])
        assert Binning.simple(2, 0, 10) != Binning.simple(3, 0, 10)
        assert hash(Binning.simple(2, 0, 10)) == hash(Binning.custom([0, 5, 10]))

    def test_repr(self):
        assert "simple" in repr(Binning.simple(2, 0, 10))
        assert "custom" in repr(Binning.custom([0, 1, 5]))


# ═══════════════════════════════════════════════════════════════════
# 2. Lookup
# ═══════════════════════════════════════════════════════════════════

class TestBinIndex:

    def test_interior_values(self):
        b = Binning.simple(2, 0, 10)
        assert b.bin_index(0.5) == 0
        assert b.bin_index(5.0) == 1
        assert b.bin_index(9.5) == 1

    def test_low_edge_is_inclusive(self):
        b = Binning.simple(2, 0, 10)
        assert b.bin_index(0.0) == 0

    def test_high_edge_is_overflow(self):
        b = Binning.simple(2, 0, 10)
        assert b.bin_index(10.0) == OVERFLOW

    def test_underflow(self):
        b = Binning.simple(2, 0, 10)
        assert b.bin_index(-1e-12) == UNDERFLOW
        assert b.bin_index(float("-inf")) == UNDERFLOW

    def test_overflow(self):
        b = Binning.simple(2, 0, 10)
        assert b.bin_index(11.4) == OVERFLOW
        assert b.bin_index(float("inf")) == OVERFLOW

    def test_custom_lookup(self):
        b = Binning.custom([0, 1, 3, 10])
        assert b.bin_index(0.99) == 0
        assert b.bin_index(1.0) == 1
        assert b.bin_index(2.999) == 1
        assert b.bin_index(3.0) == 2
        assert b.bin_index(10.0) == OVERFLOW
        assert b.bin_index(-0.1) == UNDERFLOW

    def test_sentinels_are_not_bin_numbers(self):
        b = Binning.simple(5, 0, 1)
        assert UNDERFLOW not in range(b.n_bins)
        assert OVERFLOW not in range(b.n_bins)


# ═══════════════════════════════════════════════════════════════════
# 3. Uniform vs bisection agreement
# ═══════════════════════════════════════════════════════════════════

class TestUniformMatchesBisection:

    @pytest.mark.parametrize("n,lo,hi", [(40, 0, 10), (7, -1.3, 2.9), (3, 0.1, 0.7)])
    def test_every_edge_and_midpoint(self, n, lo, hi):
        uniform = Binning.simple(n, lo, hi)
        generic = Binning.custom(uniform.edges)
        probes = list(uniform.edges) + list(uniform.centers)
        probes += [np.nextafter(e, -np.inf) for e in uniform.edges]
        probes += [np.nextafter(e, np.inf) for e in uniform.edges]
        for x in probes:
            assert uniform.bin_index(float(x)) == generic.bin_index(float(x)), x

    def test_random_values(self):
        rng = np.random.default_rng(7)
        uniform = Binning.simple(13, -2.0, 3.0)
        generic = Binning.custom(uniform.edges)
        for x in rng.uniform(-3, 4, size=2000):
            assert uniform.bin_index(float(x)) == generic.bin_index(float(x))

    def test_matches_numpy_digitize(self):
        b = Binning.simple(10, 0, 1)
        xs = np.linspace(0, 0.999, 101)
        expected = np.digitize(xs, b.edges) - 1
        assert [b.bin_index(float(x)) for x in xs] == expected.tolist()


# ═══════════════════════════════════════════════════════════════════
# 4. HistAxis
# ═══════════════════════════════════════════════════════════════════

class TestHistAxis:

    def test_wraps_plain_callable(self):
        axis = HistAxis("E (GeV)", Binning.simple(2, 0, 10), lambda r: r["E"])
        assert isinstance(axis.var, Var)
        assert axis.var({"E": 3.0}) == 3.0
        assert axis.n_bins == 2

    def test_keeps_var(self):
        v = Var.field("E")
        axis = HistAxis("E", Binning.simple(2, 0, 10), v)
        assert axis.var is v

    def test_rejects_non_binning(self):
        with pytest.raises(ConfigurationError):
            HistAxis("E", [0, 1, 2], Var.field("E"))

    def test_is_frozen(self):
        axis = HistAxis("E", Binning.simple(2, 0, 10), Var.field("E"))
        with pytest.raises(Exception):
            axis.label = "other"
