"""
Load catalog subjects from a CSV or JSON file.

Usage:
    python -m apps.subjects.commands.ingest_catalog data/subjects.csv [--dry-run] [--replace]
"""
import argparse
import csv
import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from apps.core.db import SessionLocal, init_db
from apps.subjects.models import Subject

logger = logging.getLogger(__name__)


def read_rows(path: Path) -> List[Dict[str, Any]]:
    """Rows from a CSV file (header required) or a JSON list of objects"""
    if path.suffix.lower() == ".json":
        with open(path, "r", encoding="utf-8") as fh:
            payload = json.load(fh)
        if isinstance(payload, dict):
            payload = payload.get("subjects") or payload.get("results") or []
        return [row for row in payload if isinstance(row, dict)]

    with open(path, "r", encoding="utf-8", newline="") as fh:
        return list(csv.DictReader(fh))


def _clean(value: Any) -> Optional[str]:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def _number(value: Any, cast, default):
    try:
        number = cast(float(str(value).strip()))
    except (TypeError, ValueError):
        return default
    return number if number >= 0 else default


def to_subject(row: Dict[str, Any]) -> Optional[Subject]:
    """Subject from a raw row, or None when name/type are missing"""
    name = _clean(row.get("name"))
    subject_type = _clean(row.get("type"))
    if not name or not subject_type:
        return None

    return Subject(
        name=name,
        type=subject_type,
        location=_clean(row.get("location")),
        city=_clean(row.get("city")),
        average_rating=_number(row.get("average_rating"), float, 0.0),
        review_count=_number(row.get("review_count"), int, 0),
    )


def _exists(db: Session, subject: Subject) -> bool:
    query = db.query(Subject.id).filter(func.lower(Subject.name) == subject.name.lower())
    if subject.city:
        query = query.filter(func.lower(Subject.city) == subject.city.lower())
    else:
        query = query.filter(Subject.city.is_(None))
    return query.first() is not None


def ingest_catalog(
    rows: Iterable[Dict[str, Any]],
    db: Optional[Session] = None,
    dry_run: bool = False,
    replace: bool = False,
) -> Dict[str, int]:
    """
    Insert subjects, skipping invalid rows and (name, city) duplicates.

    Args:
        rows: raw rows with name/type/location/city/average_rating/review_count
        db: session to use (a new one is opened and closed otherwise)
        dry_run: validate and count without writing
        replace: delete the existing catalog first

    Returns:
        {"added": n, "skipped": m}
    """
    own_session = db is None
    db = db or SessionLocal()
    added = 0
    skipped = 0

    try:
        if replace and not dry_run:
            deleted = db.query(Subject).delete()
            logger.info(f"Removed {deleted} existing subjects")

        pending = []
        for row in rows:
            subject = to_subject(row)
            if subject is None:
                skipped += 1
                continue

            duplicate = any(
                s.name.lower() == subject.name.lower()
                and (s.city or "").lower() == (subject.city or "").lower()
                for s in pending
            )
            if duplicate or (not replace and _exists(db, subject)):
                skipped += 1
                continue

            pending.append(subject)
            added += 1

        if dry_run:
            db.rollback()
            logger.info(f"Dry run: would add {added} subjects, skip {skipped}")
        else:
            db.add_all(pending)
            db.commit()
            logger.info(f"Added {added} subjects, skipped {skipped}")
    except Exception:
        db.rollback()
        logger.exception("Catalog ingestion failed")
        raise
    finally:
        if own_session:
            db.close()

    return {"added": added, "skipped": skipped}


def main(argv: Optional[List[str]] = None) -> Dict[str, int]:
    parser = argparse.ArgumentParser(description="Load catalog subjects from CSV or JSON")
    parser.add_argument("path", type=Path, help="CSV (with header) or JSON file")
    parser.add_argument("--dry-run", action="store_true", help="Validate without writing")
    parser.add_argument("--replace", action="store_true", help="Clear the catalog first")
    args = parser.parse_args(argv)

    init_db()
    return ingest_catalog(read_rows(args.path), dry_run=args.dry_run, replace=args.replace)


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')
    main()
