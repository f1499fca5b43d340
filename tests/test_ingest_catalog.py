import json

import pytest

from apps.subjects.commands.ingest_catalog import ingest_catalog, read_rows, to_subject
from apps.subjects.models import Subject


def subject_names(db):
    return [s.name for s in db.query(Subject).order_by(Subject.id)]


def test_read_csv_rows(tmp_path):
    path = tmp_path / "subjects.csv"
    path.write_text(
        "name,type,location,city,average_rating,review_count\n"
        "Joe's Diner,restaurant,1420 Larimer St,Denver,4.3,212\n",
        encoding="utf-8",
    )
    assert read_rows(path) == [{
        "name": "Joe's Diner", "type": "restaurant", "location": "1420 Larimer St",
        "city": "Denver", "average_rating": "4.3", "review_count": "212",
    }]


def test_read_json_list_or_wrapped_object(tmp_path):
    rows = [{"name": "A", "type": "cafe"}, "junk"]
    listed = tmp_path / "list.json"
    listed.write_text(json.dumps(rows), encoding="utf-8")
    wrapped = tmp_path / "wrapped.json"
    wrapped.write_text(json.dumps({"subjects": rows}), encoding="utf-8")

    assert read_rows(listed) == [{"name": "A", "type": "cafe"}]
    assert read_rows(wrapped) == [{"name": "A", "type": "cafe"}]


@pytest.mark.parametrize("row", [{"name": "A"}, {"type": "cafe"}, {"name": "  ", "type": "cafe"}])
def test_rows_without_name_or_type_are_rejected(row):
    assert to_subject(row) is None


def test_row_values_are_cleaned():
    subject = to_subject({
        "name": " Bean There Cafe ", "type": "cafe", "location": "",
        "city": "Boston", "average_rating": "-2", "review_count": "12.0",
    })
    assert subject.name == "Bean There Cafe"
    assert subject.location is None
    assert subject.average_rating == 0.0
    assert subject.review_count == 12


def test_ingest_skips_invalid_and_duplicate_rows(db_session):
    rows = [
        {"name": "Joe's Diner", "type": "restaurant", "city": "Denver"},
        {"name": "joe's diner", "type": "restaurant", "city": "denver"},
        {"name": "Joe's Diner", "type": "restaurant", "city": "Austin"},
        {"name": "No Type"},
    ]

    assert ingest_catalog(rows, db=db_session) == {"added": 2, "skipped": 2}
    assert subject_names(db_session) == ["Joe's Diner", "Joe's Diner"]

    # a second run finds everything already present
    assert ingest_catalog(rows, db=db_session) == {"added": 0, "skipped": 4}


def test_dry_run_writes_nothing(db_session):
    result = ingest_catalog([{"name": "A", "type": "cafe"}], db=db_session, dry_run=True)
    assert result == {"added": 1, "skipped": 0}
    assert subject_names(db_session) == []


def test_replace_clears_existing_catalog(catalog):
    result = ingest_catalog([{"name": "Only One", "type": "cafe", "city": "Denver"}], db=catalog, replace=True)
    assert result == {"added": 1, "skipped": 0}
    assert subject_names(catalog) == ["Only One"]
