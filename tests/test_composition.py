"""
Tests for uncertain-value helpers and Composition.
"""

import math

import pytest
from uncertainties import ufloat

from epmaquant.quant.composition import Composition
from epmaquant.quant.uncertain import (
    as_ufloat,
    fractional_uncertainty,
    fractional_uncertainty_u,
    non_negative,
    reduced,
    signal_to_noise,
    uncertainty_components,
)
from epmaquant.xray.elements import element


class TestUncertain:
    """Tests for ufloat helpers."""

    def test_as_ufloat(self):
        value = as_ufloat(0.5)
        assert value.nominal_value == 0.5
        assert value.std_dev == 0.0
        u = ufloat(0.5, 0.1)
        assert as_ufloat(u) is u

    def test_fractional_uncertainty(self):
        assert fractional_uncertainty(ufloat(2.0, 0.1)) == pytest.approx(0.05)
        assert fractional_uncertainty(ufloat(-2.0, 0.1)) == pytest.approx(0.05)
        assert fractional_uncertainty(ufloat(0.0, 0.1)) == math.inf
        assert fractional_uncertainty(0.0) == 0.0

    def test_fractional_uncertainty_u_keeps_components(self):
        k = ufloat(0.5, 0.01, "k")
        unit = fractional_uncertainty_u(k)
        assert unit.nominal_value == pytest.approx(1.0)
        assert unit.std_dev == pytest.approx(0.02)
        assert uncertainty_components(unit) == pytest.approx({"k": 0.02})

    def test_signal_to_noise(self):
        assert signal_to_noise(ufloat(0.4, 0.02)) == pytest.approx(20.0)
        assert signal_to_noise(ufloat(-0.1, 0.02)) == 0.0
        assert signal_to_noise(0.3) == math.inf

    def test_non_negative(self):
        clamped = non_negative(ufloat(-0.01, 0.02))
        assert clamped.nominal_value == 0.0
        assert clamped.std_dev == pytest.approx(0.02)

    def test_reduced_collapses_components(self):
        value = ufloat(1.0, 0.3, "a") + ufloat(1.0, 0.4, "b")
        collapsed = reduced(value, "total")
        assert collapsed.std_dev == pytest.approx(0.5)
        assert uncertainty_components(collapsed) == pytest.approx({"total": 0.5})

    def test_uncertainty_components(self):
        value = ufloat(1.0, 0.1, "a") + ufloat(2.0, 0.2, "b")
        assert uncertainty_components(value) == pytest.approx({"a": 0.1, "b": 0.2})

    def test_uncertainty_components_shared_tag(self):
        value = ufloat(1.0, 0.3, "a") + ufloat(1.0, 0.4, "a")
        assert uncertainty_components(value) == pytest.approx({"a": 0.5})
        assert uncertainty_components(1.0) == {}


class TestComposition:
    """Tests for Composition."""

    def test_from_mass_fractions(self):
        comp = Composition.from_mass_fractions(Fe=0.7, Ni=0.3)
        assert comp.element_count == 2
        assert comp.weight_fraction("Fe") == pytest.approx(0.7)
        assert comp.sum_weight_fraction() == pytest.approx(1.0)
        assert comp.elements == [element("Fe"), element("Ni")]

    def test_from_stoichiometry(self):
        quartz = Composition.from_stoichiometry({"Si": 1, "O": 2}, name="SiO2")
        si = 28.085 / (28.085 + 2 * 15.999)
        assert quartz.weight_fraction("Si") == pytest.approx(si)
        assert quartz.weight_fraction("O") == pytest.approx(1.0 - si)
        assert quartz.name == "SiO2"

    def test_from_stoichiometry_invalid(self):
        with pytest.raises(ValueError, match="at least one atom"):
            Composition.from_stoichiometry({"Si": 0})
        with pytest.raises(ValueError, match="non-negative"):
            Composition.from_stoichiometry({"Si": 1, "O": -1})

    def test_pure(self, pure_fe):
        assert pure_fe.weight_fraction("Fe") == 1.0
        assert pure_fe.name == "Pure Fe"

    def test_negative_mass_fraction_rejected(self):
        comp = Composition()
        with pytest.raises(ValueError, match="non-negative"):
            comp.add_element("Fe", -0.1)

    def test_absent_element_is_exact_zero(self, pure_fe):
        value = pure_fe.weight_fraction_u("Ni")
        assert value.nominal_value == 0.0
        assert value.std_dev == 0.0
        assert "Ni" not in pure_fe
        assert "Fe" in pure_fe
        assert "Xx" not in pure_fe

    def test_remove_element(self):
        comp = Composition.from_mass_fractions(Fe=0.7, Ni=0.3)
        comp.remove_element("Ni")
        comp.remove_element("Cu")
        assert comp.elements == [element("Fe")]

    def test_normalize(self):
        comp = Composition.from_mass_fractions(Fe=0.6, Ni=0.6)
        norm = comp.normalize()
        assert norm.weight_fraction("Fe") == pytest.approx(0.5)
        assert norm.sum_weight_fraction() == pytest.approx(1.0)
        # Original untouched
        assert comp.weight_fraction("Fe") == pytest.approx(0.6)
        assert comp.weight_fraction("Fe", normalized=True) == pytest.approx(0.5)

    def test_normalize_empty(self):
        assert Composition().normalize() == Composition()

    def test_uncertainty_propagates_to_sum(self):
        comp = Composition({"Fe": ufloat(0.5, 0.01, "a"), "Ni": ufloat(0.5, 0.02, "b")})
        total = comp.sum_weight_fraction_u()
        assert total.nominal_value == pytest.approx(1.0)
        assert total.std_dev == pytest.approx(math.sqrt(0.0005))

    def test_copy_is_independent(self):
        comp = Composition.from_mass_fractions(Fe=0.7, Ni=0.3)
        other = comp.copy()
        other.add_element("Cr", 0.1)
        assert "Cr" not in comp
        assert comp == Composition.from_mass_fractions(Fe=0.7, Ni=0.3)
        assert comp != other

    def test_as_dict_and_description(self):
        comp = Composition.from_mass_fractions(Fe=0.7, Ni=0.3)
        assert comp.as_dict() == pytest.approx({"Fe": 0.7, "Ni": 0.3})
        assert comp.descriptive_string() == "[Fe: 70.00 %, Ni: 30.00 %]"
        named = Composition.from_mass_fractions(name="Steel", Fe=1.4, Ni=0.6)
        assert named.descriptive_string(normalized=True) == "Steel [Fe: 70.00 %, Ni: 30.00 %]"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
