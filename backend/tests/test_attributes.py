from __future__ import annotations

from attributes import feature_title, select_attributes

GATE_A = {"Name": "Gate A", "OBJECTID": 12, "Shape__Area": 400.1, "Notes": ""}


def test_gate_a_panel():
    rows = select_attributes(
        GATE_A, ["Name"], 5, deny={"OBJECTID", "Shape__Area"}
    )
    assert rows == [("Name", "Gate A")]


def test_preferred_names_come_first_then_encounter_order():
    attrs = {"ID": "R-3", "Type": "Coaster", "Name": "Manta", "Description": "Fast"}
    rows = select_attributes(attrs, ["Name", "Type"], 10, deny=set())
    assert [k for k, _ in rows] == ["Name", "Type", "ID", "Description"]


def test_limit_truncates():
    attrs = {f"k{i}": i for i in range(20)}
    assert len(select_attributes(attrs, [], 3, deny=set())) == 3
    assert select_attributes(attrs, [], 0, deny=set()) == []


def test_blank_values_are_dropped_but_zero_and_false_are_kept():
    attrs = {"A": None, "B": "", "C": 0, "D": False, "E": "x"}
    assert select_attributes(attrs, ["A", "B"], 10, deny=set()) == [
        ("C", 0),
        ("D", False),
        ("E", "x"),
    ]


def test_deny_applies_to_preferred_names_too():
    attrs = {"OBJECTID": 1, "Name": "Gate A"}
    assert select_attributes(attrs, ["OBJECTID", "Name"], 10, deny={"OBJECTID"}) == [
        ("Name", "Gate A")
    ]


def test_default_deny_drops_arcgis_measures():
    attrs = {"Shape__Length": 10.5, "Shape_Area": 3.0, "Name": "Loop"}
    assert select_attributes(attrs, ["Name"]) == [("Name", "Loop")]


def test_missing_preferences_and_duplicates_are_ignored():
    attrs = {"Name": "Manta"}
    assert select_attributes(attrs, ["Missing", "Name", "Name"], 10) == [("Name", "Manta")]


def test_empty_input():
    assert select_attributes(None, ["Name"], 5) == []
    assert select_attributes({}, None, 5) == []


def test_feature_title():
    assert feature_title({"Name": "Gate A"}, "nodes") == "Gate A"
    assert feature_title({"name": "gate b"}, "nodes") == "gate b"
    assert feature_title({"TITLE": "Main"}, "nodes") == "Main"
    assert feature_title({"Name": "", "ID": 3}, "nodes") == "nodes"
    assert feature_title(None, "nodes") == "nodes"
