import json

import pytest

from stronghold.catalog.catalog import AVAILABLE_EQUIPMENT, CatalogError, CatalogProvider, default_catalog, load_catalog
from stronghold.models.workout import EQUIPMENT_TYPES, WORKOUT_PHASES


def test_default_catalog_loads_packaged_templates():
    catalog = default_catalog()
    assert len(catalog) == 67
    assert catalog.get("easy_rowing").is_duration_based
    assert catalog.get("missing") is None


def test_every_template_uses_known_phase_and_equipment():
    for template in default_catalog():
        assert template.phase in WORKOUT_PHASES
        assert template.equipment in EQUIPMENT_TYPES


def test_filters_keep_catalog_order():
    catalog = default_catalog()
    warmups = catalog.by_phase("warmup")
    assert [t.id for t in warmups] == ["easy_rowing", "band_pull_apart", "band_ytwl"]
    assert all(t.equipment == "cables" for t in catalog.by_equipment("cables"))
    assert all(t.knee_friendly for t in catalog.knee_friendly())
    assert all(t.shoulder_friendly for t in catalog.shoulder_friendly())
    assert catalog.by_equipment("hovercraft") == []


def test_find_by_name_is_case_insensitive():
    catalog = default_catalog()
    assert catalog.find_by_name("  easy ROWING ").id == "easy_rowing"
    assert catalog.find_by_name("") is None
    assert catalog.find_by_name("Underwater Basket Weaving") is None


def test_grouped_by_equipment_covers_all_templates():
    catalog = default_catalog()
    grouped = catalog.grouped_by_equipment()
    assert sum(len(v) for v in grouped.values()) == len(catalog)
    assert set(grouped) <= set(AVAILABLE_EQUIPMENT)


def test_duplicate_ids_are_rejected():
    row = {"id": "x", "name": "X", "equipment": "cables", "phase": "strength"}
    with pytest.raises(CatalogError):
        CatalogProvider.from_dicts([row, dict(row)])


@pytest.mark.parametrize(
    "override",
    [{"phase": "stretching"}, {"equipment": "kettlebell"}, {"difficulty": "elite"}, {"id": ""}],
)
def test_invalid_rows_are_rejected(override):
    row = {"id": "x", "name": "X", "equipment": "cables", "phase": "strength"}
    row.update(override)
    with pytest.raises(CatalogError):
        CatalogProvider.from_dicts([row])


def test_load_catalog_requires_a_list(tmp_path):
    path = tmp_path / "catalog.json"
    path.write_text(json.dumps({"id": "x"}), encoding="utf-8")
    with pytest.raises(CatalogError):
        load_catalog(path)
