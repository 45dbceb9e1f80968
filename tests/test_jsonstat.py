import pytest

from src.extractors.jsonstat import parse_jsonstat, strides
from src.utils.errors import ParseStructure


def _cube(values, tid_index=None):
    return {
        "id": ["TypeRegistrering", "DrivstoffType", "ContentsCode", "Tid"],
        "size": [1, 2, 1, 3],
        "dimension": {
            "TypeRegistrering": {"category": {"index": {"N": 0}}},
            "DrivstoffType": {"category": {"index": {"20": 1, "19": 0}}},
            "ContentsCode": {"category": {"index": ["Personbiler"]}},
            "Tid": {"category": {"index": tid_index or {"2024M01": 0, "2024M02": 1, "2024M03": 2}}},
        },
        "value": values,
    }


def test_row_major_flattening():
    out = parse_jsonstat(_cube([10, 11, 12, 20, 21, None]), "DrivstoffType", "Tid")
    assert out == {
        "2024M01": {"19": 10, "20": 20},
        "2024M02": {"19": 11, "20": 21},
        "2024M03": {"19": 12, "20": 0},
    }


def test_sparse_values():
    out = parse_jsonstat(_cube({"1": 11, "4": 21}), "DrivstoffType", "Tid")
    assert out["2024M02"] == {"19": 11, "20": 21}
    assert out["2024M01"] == {"19": 0, "20": 0}


def test_strides():
    assert strides([1, 2, 1, 3]) == [6, 3, 3, 1]


def test_value_count_mismatch_raises():
    with pytest.raises(ParseStructure):
        parse_jsonstat(_cube([1, 2, 3]), "DrivstoffType", "Tid")


def test_missing_dimension_raises():
    with pytest.raises(ParseStructure):
        parse_jsonstat(_cube([0] * 6), "Drivstoff", "Tid")


def test_missing_metadata_raises():
    with pytest.raises(ParseStructure):
        parse_jsonstat({"value": [1]}, "A", "B")


def test_unpinned_extra_dimension_raises_and_select_pins_it():
    cube = {
        "id": ["Region", "Fuel", "Tid"],
        "size": [2, 1, 2],
        "dimension": {
            "Region": {"category": {"index": ["N", "S"]}},
            "Fuel": {"category": {"index": ["BEV"]}},
            "Tid": {"category": {"index": ["2024M01", "2024M02"]}},
        },
        "value": [1, 2, 3, 4],
    }
    with pytest.raises(ParseStructure):
        parse_jsonstat(cube, "Fuel", "Tid")
    out = parse_jsonstat(cube, "Fuel", "Tid", select={"Region": "S"})
    assert out == {"2024M01": {"BEV": 3}, "2024M02": {"BEV": 4}}


def test_non_integer_size_raises_parse_structure():
    cube = _cube([0] * 6)
    cube["size"] = [1, "two", 1, 3]
    with pytest.raises(ParseStructure):
        parse_jsonstat(cube, "DrivstoffType", "Tid")


def test_non_integer_category_position_raises_parse_structure():
    cube = _cube([0] * 6, tid_index={"2024M01": "x", "2024M02": 1, "2024M03": 2})
    with pytest.raises(ParseStructure):
        parse_jsonstat(cube, "DrivstoffType", "Tid")
