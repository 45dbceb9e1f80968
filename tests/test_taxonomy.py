import pytest

from src.taxonomy.fuel import FuelCode, FuelTaxonomy, get_taxonomy, is_mapped, normalize


def test_french_longest_alias_wins():
    assert normalize("FR", "Hybride rechargeable") == FuelCode.PHEV
    assert normalize("FR", "Hybride") == FuelCode.HYBRID
    assert normalize("FR", "hybride essence non rechargeable") == FuelCode.HYBRID
    assert normalize("FR", "Gazole (thermique)") == FuelCode.DIESEL


def test_exact_match_is_case_and_space_insensitive():
    assert normalize("FR", "  ELECTRIQUE ") == FuelCode.BEV
    assert normalize("SE", "Plug-in hybrid") == FuelCode.PHEV


def test_empty_and_unmatched_labels():
    assert normalize("FR", None) == FuelCode.UNKNOWN
    assert normalize("FR", "   ") == FuelCode.UNKNOWN
    assert normalize("FR", "Hydrogène") == FuelCode.OTHER


def test_unknown_namespace_raises():
    with pytest.raises(KeyError):
        normalize("XX", "Diesel")


def test_chinese_plugin_hybrid_not_shadowed_by_hybrid():
    assert normalize("CN", "插电式混合动力汽车") == FuelCode.PHEV
    assert normalize("CN", "混合动力") == FuelCode.HYBRID
    assert normalize("CN", "燃料电池汽车") == FuelCode.LPG_CNG_OTHER


def test_dutch_gas_fuels_grouped():
    tax = get_taxonomy("NL")
    assert tax.normalize("Waterstof") == FuelCode.LPG_CNG_OTHER
    assert tax.normalize("Elektriciteit") == FuelCode.BEV
    assert tax.normalize("Benzine") == FuelCode.GASOLINE


def test_tie_goes_to_first_registered():
    tax = FuelTaxonomy("T", {FuelCode.BEV: ["abc"], FuelCode.DIESEL: ["xyz"]})
    assert tax.normalize("abc xyz") == FuelCode.BEV


def test_longest_contained_alias_property():
    # for any label, the resolved code owns the longest alias contained in it
    tax = get_taxonomy("FR")
    labels = [
        "Hybride rechargeable essence",
        "Essence (thermique) hors hybride",
        "Gazole (y compris hybrides non rechargeables)",
        "Diesel hybride rechargeable",
    ]
    for label in labels:
        clean = " ".join(label.lower().split())
        contained = [(a, c) for a, c in tax.aliases if a in clean]
        longest = max(len(a) for a, _ in contained)
        expected = next(c for a, c in contained if len(a) == longest)
        assert tax.normalize(label) == expected


def test_normalize_is_total():
    tax = get_taxonomy("SE")
    for label in ["", "???", "diesel", "12345", "électricité"]:
        assert isinstance(tax.normalize(label), FuelCode)


def test_is_mapped():
    assert is_mapped(FuelCode.BEV)
    assert is_mapped(FuelCode.FOSSIL)
    assert not is_mapped(FuelCode.OTHER)
    assert not is_mapped(FuelCode.UNKNOWN)
