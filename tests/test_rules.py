"""
Tests for unmeasured-element rules and the Oxidizer.
"""

import dataclasses

import pytest
from uncertainties import ufloat

from epmaquant.quant.composition import Composition
from epmaquant.quant.oxidizer import Oxidizer
from epmaquant.quant.rules import (
    RULE_TYPES,
    ByDifference,
    ByFiat,
    OxygenByStoichiometry,
    UnmeasuredElementRule,
    WatersOfCrystallization,
    rule_from_config,
)
from epmaquant.quant.uncertain import uncertainty_components
from epmaquant.xray.elements import NO_ELEMENT, element

A_H, A_O, A_MG, A_SI = 1.008, 15.999, 24.305, 28.085


@pytest.fixture
def oxidizer():
    return Oxidizer()


class TestOxidizer:
    """Tests for oxide stoichiometry."""

    @pytest.mark.parametrize(
        "symbol,formula",
        [("Al", "Al2O3"), ("Si", "SiO2"), ("Na", "Na2O"), ("Fe", "FeO"), ("Mg", "MgO"), ("Ar", "Ar")],
    )
    def test_oxide_formula(self, oxidizer, symbol, formula):
        assert oxidizer.oxide_formula(symbol) == formula

    def test_override_oxidation_state(self):
        oxidizer = Oxidizer({"Fe": 3})
        assert oxidizer.oxidation_state("Fe") == 3
        assert oxidizer.oxide_formula("Fe") == "Fe2O3"
        assert oxidizer.oxidation_state("Ar") == 0

    def test_invalid_oxidation_state(self, oxidizer):
        with pytest.raises(ValueError, match="fixed at -2"):
            oxidizer.set_oxidation_state("O", -1)
        with pytest.raises(ValueError, match="non-negative"):
            oxidizer.set_oxidation_state("Fe", -2)

    def test_oxide_composition(self, oxidizer):
        quartz = oxidizer.oxide("Si")
        assert quartz.name == "SiO2"
        assert quartz.weight_fraction("Si") == pytest.approx(A_SI / (A_SI + 2 * A_O))

    def test_oxygen_ratio(self, oxidizer):
        assert oxidizer.oxygen_ratio("Si") == pytest.approx(2 * A_O / A_SI)
        assert oxidizer.oxygen_ratio("Mg") == pytest.approx(A_O / A_MG)
        assert oxidizer.oxygen_ratio("Ar") == 0.0

    def test_compute_replaces_oxygen(self, oxidizer):
        comp = Composition.from_mass_fractions(Si=0.3, Mg=0.2, O=0.9)
        res = oxidizer.compute(comp)
        expected = 0.3 * 2 * A_O / A_SI + 0.2 * A_O / A_MG
        assert res.weight_fraction("O") == pytest.approx(expected)
        assert res.weight_fraction("Si") == 0.3
        # Input untouched
        assert comp.weight_fraction("O") == 0.9

    def test_compute_restricted_cations(self, oxidizer):
        comp = Composition.from_mass_fractions(Si=0.3, Mg=0.2)
        res = oxidizer.compute(comp, cations=["Si"])
        assert res.weight_fraction("O") == pytest.approx(0.3 * 2 * A_O / A_SI)
        assert res.weight_fraction("Mg") == 0.2

    def test_compute_propagates_uncertainty(self, oxidizer):
        comp = Composition({"Si": ufloat(0.3, 0.01, "Si")})
        res = oxidizer.compute(comp)
        components = uncertainty_components(res.weight_fraction_u("O"))
        assert components["Si"] == pytest.approx(0.01 * 2 * A_O / A_SI)

    def test_to_oxide_fractions(self, oxidizer):
        stoich = oxidizer.compute(Composition.from_mass_fractions(Si=0.3, Mg=0.2))
        oxides = oxidizer.to_oxide_fractions(stoich)
        assert set(oxides) == {"SiO2", "MgO"}
        assert oxides["SiO2"].nominal_value == pytest.approx(0.3 * (A_SI + 2 * A_O) / A_SI)
        total = sum(v.nominal_value for v in oxides.values())
        assert total == pytest.approx(stoich.sum_weight_fraction())

    def test_to_oxide_fractions_excess_oxygen(self, oxidizer):
        stoich = oxidizer.compute(Composition.from_mass_fractions(Si=0.3))
        stoich.add_element("O", stoich.weight_fraction("O") + 0.05)
        oxides = oxidizer.to_oxide_fractions(stoich)
        assert oxides["O"].nominal_value == pytest.approx(0.05)


class TestRules:
    """Tests for the unmeasured-element rule variants."""

    def test_by_difference(self):
        comp = Composition.from_mass_fractions(Ni=0.3, Cr=0.2, Fe=0.9)
        res = ByDifference("Fe").apply(comp)
        assert res.weight_fraction("Fe") == pytest.approx(0.5)
        assert comp.weight_fraction("Fe") == 0.9

    def test_by_difference_omits_negative_remainder(self):
        comp = Composition.from_mass_fractions(Ni=0.7, Cr=0.4)
        res = ByDifference("Fe")(comp)
        assert "Fe" not in res
        assert res.element_count == 2

    def test_by_difference_propagates_uncertainty(self):
        comp = Composition({"Ni": ufloat(0.3, 0.01, "Ni")})
        fe = ByDifference("Fe").apply(comp).weight_fraction_u("Fe")
        assert fe.nominal_value == pytest.approx(0.7)
        assert uncertainty_components(fe) == pytest.approx({"Ni": 0.01})

    def test_by_fiat(self):
        rule = ByFiat("C", 0.02)
        assert rule.element == element("C")
        res = rule.apply(Composition.from_mass_fractions(Fe=0.98))
        assert res.weight_fraction("C") == 0.02
        assert str(rule) == "C by fiat = 0.02"

    def test_by_fiat_with_uncertainty(self):
        rule = ByFiat("C", ufloat(0.02, 0.005, "carbon"))
        value = rule.apply(Composition()).weight_fraction_u("C")
        assert uncertainty_components(value) == pytest.approx({"carbon": 0.005})

    def test_by_fiat_negative(self):
        with pytest.raises(ValueError, match="non-negative"):
            ByFiat("C", -0.01)

    def test_oxygen_by_stoichiometry(self, oxidizer):
        rule = OxygenByStoichiometry(["Si", "Mg"], oxidizer)
        assert rule.element == element("O")
        assert rule.cations == (element("Mg"), element("Si"))
        assert rule.uses_oxidizer()
        res = rule.apply(Composition.from_mass_fractions(Si=0.3, Mg=0.2))
        assert res.weight_fraction("O") == pytest.approx(0.3 * 2 * A_O / A_SI + 0.2 * A_O / A_MG)
        assert str(rule) == "O by stoichiometry with Mg, Si"

    def test_oxygen_by_stoichiometry_without_oxidizer(self, oxidizer):
        rule = OxygenByStoichiometry(["Si"])
        comp = Composition.from_mass_fractions(Si=0.3)
        assert rule.apply(comp) == comp

        with_ox = rule.with_oxidizer(oxidizer)
        assert with_ox.oxidizer is oxidizer
        assert rule.oxidizer is None
        assert with_ox == rule
        assert "O" in with_ox.apply(comp)

    def test_waters_of_crystallization(self, oxidizer):
        comp = Composition.from_mass_fractions(Mg=0.4, O=0.5, H=0.3)
        rule = WatersOfCrystallization(["Mg"], oxidizer)
        res = rule.apply(comp)
        excess = 0.5 - 0.4 * A_O / A_MG
        assert res.weight_fraction("H") == pytest.approx(2 * A_H / A_O * excess)
        assert res.weight_fraction("O") == 0.5
        assert rule.element == element("H")

    def test_waters_of_crystallization_no_excess(self, oxidizer):
        comp = Composition.from_mass_fractions(Mg=0.6, O=0.3, H=0.1)
        res = WatersOfCrystallization(["Mg"], oxidizer).apply(comp)
        assert "H" not in res

    def test_rules_are_frozen(self):
        rule = ByDifference("Fe")
        with pytest.raises(dataclasses.FrozenInstanceError):
            rule.element = element("Ni")

    def test_rule_equality(self):
        assert ByDifference("Fe") == ByDifference(26)
        assert ByDifference("Fe") != ByDifference("Ni")
        assert not ByDifference("Fe").uses_oxidizer()


class TestRuleFromConfig:
    """Tests for building rules from configuration entries."""

    def test_all_types(self):
        assert rule_from_config({"type": "by_difference", "element": "Fe"}) == ByDifference("Fe")
        fiat = rule_from_config({"type": "by_fiat", "element": "C", "value": 0.02, "uncertainty": 0.005})
        assert fiat.value.nominal_value == 0.02
        assert fiat.value.std_dev == 0.005
        oxygen = rule_from_config({"type": "oxygen_by_stoichiometry", "cations": ["Si", "Al"]})
        assert oxygen.cations == (element("Al"), element("Si"))
        waters = rule_from_config({"type": "waters_of_crystallization", "cations": ["Mg"]})
        assert isinstance(waters, WatersOfCrystallization)

    @pytest.mark.parametrize("kind", RULE_TYPES)
    def test_every_type_owns_an_element(self, kind):
        entry = {"type": kind, "element": "Fe", "value": 0.1, "cations": ["Si"]}
        rule = rule_from_config(entry)
        assert isinstance(rule, UnmeasuredElementRule)
        assert rule.element != NO_ELEMENT

    def test_element_is_a_required_field(self):
        assert [f.name for f in dataclasses.fields(ByFiat)] == ["element", "value"]
        with pytest.raises(TypeError):
            ByDifference()
        with pytest.raises(TypeError):
            ByFiat("C")

    def test_missing_key(self):
        with pytest.raises(ValueError, match="requires key"):
            rule_from_config({"type": "by_fiat", "element": "C"})

    def test_unknown_type(self):
        with pytest.raises(ValueError, match="Unknown rule type"):
            rule_from_config({"type": "by_magic"})


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
