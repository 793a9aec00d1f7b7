from twx.services.element_properties import (
    DEFAULT_NAME,
    DEFAULT_TYPE,
    UNKNOWN_ID,
    element_properties,
    resolve_element_id,
    resolve_element_type,
    resolve_ifc_type,
)


def test_id_falls_back_through_known_keys() -> None:
    assert resolve_element_id({"id": "abc", "speckle_id": "zzz"}) == "abc"
    assert resolve_element_id({"speckle_id": "zzz"}) == "zzz"
    assert resolve_element_id({"applicationId": "app-1"}) == "app-1"
    assert resolve_element_id({}) == UNKNOWN_ID


def test_type_uses_last_speckle_type_segment() -> None:
    assert resolve_element_type({"speckle_type": "Objects.BuiltElements.Column"}) == "Column"
    assert resolve_element_type({"category": "Structural Columns"}) == "Structural Columns"
    assert resolve_element_type({}) == DEFAULT_TYPE


def test_ifc_type_explicit_or_from_type_path() -> None:
    assert resolve_ifc_type({"ifcType": "IfcBeam"}) == "IfcBeam"
    assert resolve_ifc_type({"speckle_type": "Objects.Other.IfcColumn"}) == "IfcColumn"
    assert resolve_ifc_type({"speckle_type": "Objects.BuiltElements.Wall"}) is None


def test_raw_node_is_normalized() -> None:
    raw = {
        "id": "obj-1",
        "speckle_type": "Objects.BuiltElements.Beam",
        "ifcType": "IfcBeam",
        "category": {"name": "Structural Framing"},
        "level": {"name": "Level 02"},
        "length": 5400,
    }
    props = element_properties(raw)
    assert props["id"] == "obj-1"
    assert props["type"] == "Beam"
    assert props["name"] == DEFAULT_NAME
    assert props["ifc_type"] == "IfcBeam"
    assert props["category"] == "Structural Framing"
    assert props["level"] == "Level 02"
    assert props["properties"]["length"] == 5400


def test_missing_node_does_not_fail() -> None:
    props = element_properties(None)
    assert props["id"] == UNKNOWN_ID
    assert props["type"] == DEFAULT_TYPE
    assert props["properties"] == {}
