"""Reference data lookups backing the complaint submission form.

Both lookups are fail-soft: a datastore error is logged and an empty list is
returned, so callers must read an empty result as "unavailable" rather than
"nothing configured".
"""
from __future__ import annotations

from typing import Dict, List, Optional

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from extensions import db
from models import Category, Institution

PROVINCES: tuple[dict, ...] = (
    {"name": "Kigali", "districts": ("Gasabo", "Kicukiro", "Nyarugenge")},
    {
        "name": "Eastern",
        "districts": ("Bugesera", "Gatsibo", "Kayonza", "Kirehe", "Ngoma", "Nyagatare", "Rwamagana"),
    },
    {"name": "Northern", "districts": ("Burera", "Gakenke", "Gicumbi", "Musanze", "Rulindo")},
    {
        "name": "Southern",
        "districts": ("Gisagara", "Huye", "Kamonyi", "Muhanga", "Nyamagabe", "Nyanza", "Nyaruguru", "Ruhango"),
    },
    {
        "name": "Western",
        "districts": ("Karongi", "Ngororero", "Nyabihu", "Nyamasheke", "Rubavu", "Rusizi", "Rutsiro"),
    },
)


def _session(session: Optional[Session]) -> Session:
    return session if session is not None else db.session


def list_categories(session: Optional[Session] = None) -> List[Dict]:
    sess = _session(session)
    try:
        parents = (
            sess.query(Category)
            .filter(Category.parent_id.is_(None))
            .order_by(Category.name)
            .all()
        )
        categories = []
        for parent in parents:
            children = (
                sess.query(Category)
                .filter(Category.parent_id == parent.id)
                .order_by(Category.name)
                .all()
            )
            payload = parent.to_dict()
            payload["subcategories"] = [child.to_dict() for child in children]
            categories.append(payload)
        return categories
    except SQLAlchemyError:
        current_app.logger.exception("Error fetching categories")
        sess.rollback()
        return []


def list_institutions(session: Optional[Session] = None) -> List[Dict]:
    sess = _session(session)
    try:
        institutions = sess.query(Institution).order_by(Institution.name).all()
        return [institution.to_dict() for institution in institutions]
    except SQLAlchemyError:
        current_app.logger.exception("Error fetching institutions")
        sess.rollback()
        return []


def list_locations() -> List[Dict]:
    return [{"name": p["name"], "districts": list(p["districts"])} for p in PROVINCES]


def districts_for(province: str | None) -> List[str]:
    for entry in PROVINCES:
        if entry["name"].lower() == (province or "").strip().lower():
            return list(entry["districts"])
    return []
