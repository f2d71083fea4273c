"""Tests for Var and Cut (shiftspec.var).

Covers:
1. Var — evaluation, field accessor, naming
2. Var comparisons → Cut, including undefined values
3. Cut combinators — &, |, ~, short-circuiting
4. Helpers — as_var, as_cut, is_undefined
"""

import math

import pytest

from shiftspec.var import Var, Cut, NO_CUT, as_var, as_cut, is_undefined


@pytest.fixture
def record():
    return {"Elep_reco": 2.5, "theta_reco": 0.3, "LepPDG": -13, "nP": 1,
            "nipip": 0, "nipim": 0, "nipi0": 0}


# ═══════════════════════════════════════════════════════════════════
# 1. Var
# ═══════════════════════════════════════════════════════════════════

class TestVar:

    def test_call(self, record):
        v = Var(lambda sr: sr["Elep_reco"] * 2)
        assert v(record) == 5.0

    def test_field(self, record):
        v = Var.field("theta_reco")
        assert v(record) == 0.3
        assert v.name == "theta_reco"

    def test_name_from_function(self):
        def reco_energy(sr):
            return sr["Elep_reco"]
        assert Var(reco_energy).name == "reco_energy"

    def test_rejects_non_callable(self):
        with pytest.raises(TypeError):
            Var(3.0)

    def test_identity_equality(self):
        a = Var.field("x")
        b = Var.field("x")
        assert a == a
        assert a != b
        assert len({a, b}) == 2

    def test_repr(self):
        assert "Elep_reco" in repr(Var.field("Elep_reco"))


# ═══════════════════════════════════════════════════════════════════
# 2. Comparisons
# ═══════════════════════════════════════════════════════════════════

class TestVarComparisons:

    def test_greater_than(self, record):
        cut = Var.field("Elep_reco") > 0
        assert isinstance(cut, Cut)
        assert cut(record) is True
        assert (Var.field("Elep_reco") > 3)(record) is False

    def test_other_operators(self, record):
        e = Var.field("Elep_reco")
        assert (e >= 2.5)(record)
        assert (e <= 2.5)(record)
        assert not (e < 2.5)(record)
        assert e.equals(2.5)(record)
        assert not e.equals(2.4)(record)

    def test_compare_two_vars(self, record):
        e = Var.field("Elep_reco")
        t = Var.field("theta_reco")
        assert (e > t)(record)
        assert not (t > e)(record)

    def test_between(self, record):
        e = Var.field("Elep_reco")
        assert e.between(2.0, 3.0)(record)
        assert not e.between(2.5 + 1e-9, 3.0)(record)
        assert not e.between(0.0, 2.5)(record)

    def test_nan_compares_false(self):
        v = Var(lambda sr: math.nan)
        assert not (v > 0)(record={})
        assert not (v <= 0)(record={})

    def test_none_compares_false(self):
        v = Var(lambda sr: None)
        assert not (v > 0)({})
        assert not (v < 0)({})

    def test_cut_name_describes_comparison(self):
        cut = Var.field("Elep_reco") > 0
        assert "Elep_reco" in cut.name
        assert ">" in cut.name


# ═══════════════════════════════════════════════════════════════════
# 3. Combinators
# ═══════════════════════════════════════════════════════════════════

class TestCutCombinators:

    def test_cc0pi_style_cut(self, record):
        k_has_cc0pi = Cut(lambda sr: abs(sr["LepPDG"]) == 13 and sr["nP"] >= 1
                          and sr["nipip"] + sr["nipim"] + sr["nipi0"] == 0)
        sel = k_has_cc0pi & (Var.field("Elep_reco") > 0)
        assert sel(record)
        record["nipi0"] = 1
        assert not sel(record)

    def test_and_or_not(self, record):
        yes = Cut(lambda sr: True, name="yes")
        no = Cut(lambda sr: False, name="no")
        assert (yes & yes)(record)
        assert not (yes & no)(record)
        assert (yes | no)(record)
        assert not (no | no)(record)
        assert (~no)(record)
        assert not (~yes)(record)

    def test_and_short_circuits(self):
        calls = []

        def spy(sr):
            calls.append(1)
            return True

        sel = Cut(lambda sr: False) & Cut(spy)
        assert not sel({})
        assert calls == []

    def test_or_short_circuits(self):
        calls = []

        def spy(sr):
            calls.append(1)
            return False

        sel = Cut(lambda sr: True) | Cut(spy)
        assert sel({})
        assert calls == []

    def test_combines_plain_callable(self, record):
        sel = NO_CUT & (lambda sr: sr["nP"] == 1)
        assert sel(record)

    def test_names_compose(self):
        a = Cut(lambda sr: True, name="a")
        b = Cut(lambda sr: True, name="b")
        assert (a & b).name == "(a && b)"
        assert (a | b).name == "(a || b)"
        assert (~a).name == "!a"

    def test_cut_has_no_truth_value(self):
        with pytest.raises(TypeError):
            bool(NO_CUT)

    def test_result_is_bool(self):
        cut = Cut(lambda sr: 1)
        assert cut({}) is True


# ═══════════════════════════════════════════════════════════════════
# 4. Helpers
# ═══════════════════════════════════════════════════════════════════

class TestHelpers:

    def test_as_cut_none_is_no_cut(self):
        assert as_cut(None) is NO_CUT
        assert NO_CUT({})

    def test_as_cut_passthrough(self):
        c = Cut(lambda sr: True)
        assert as_cut(c) is c

    def test_as_var_wraps(self):
        v = as_var(lambda sr: 1.0)
        assert isinstance(v, Var)
        assert as_var(v) is v

    @pytest.mark.parametrize("value,expected", [
        (None, True), (math.nan, True), (float("nan"), True),
        (0.0, False), (1, False), (math.inf, False), ("text", False),
    ])
    def test_is_undefined(self, value, expected):
        assert is_undefined(value) is expected
