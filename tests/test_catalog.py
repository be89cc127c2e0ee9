from utils.catalog import districts_for, list_categories, list_institutions, list_locations


def test_categories_are_nested_and_alphabetical(refs, session):
    categories = list_categories()

    assert [c["name"] for c in categories] == ["Health", "Infrastructure", "Water & Sanitation"]
    infra = categories[1]
    assert infra["code"] == "INF"
    assert [s["name"] for s in infra["subcategories"]] == ["Bridges", "Roads"]
    assert categories[0]["subcategories"] == []
    # Subcategories never appear at the top level.
    assert "Roads" not in [c["name"] for c in categories]


def test_institutions_are_alphabetical(refs, session):
    institutions = list_institutions()

    assert [i["name"] for i in institutions] == [
        "Gasabo District Office",
        "Kicukiro District Office",
        "Ministry of Local Government",
    ]
    assert institutions[2]["district"] is None
    assert set(institutions[0]) == {"id", "name", "code", "description", "province", "district"}


def test_lookups_degrade_to_empty_on_datastore_error(app_ctx, failing_session):
    assert list_categories(session=failing_session) == []
    assert list_institutions(session=failing_session) == []
    assert failing_session.rollbacks == 2


def test_empty_catalog(session):
    assert list_categories() == []
    assert list_institutions() == []


def test_locations_reference_data():
    locations = list_locations()
    assert [p["name"] for p in locations] == ["Kigali", "Eastern", "Northern", "Southern", "Western"]
    assert districts_for("kigali") == ["Gasabo", "Kicukiro", "Nyarugenge"]
    assert districts_for("Atlantis") == []
