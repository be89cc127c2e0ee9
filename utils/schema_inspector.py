"""Live database schema inspection for the admin database inspector."""
from __future__ import annotations

from typing import Dict, List, Optional

from flask import current_app
from sqlalchemy import inspect, types
from sqlalchemy.exc import NoSuchTableError, SQLAlchemyError

from extensions import db

# (column, type family, nullable) the intake code writes to.
EXPECTED_SCHEMA: Dict[str, List[tuple]] = {
    "complaints": [
        ("id", "integer", False),
        ("tracking_id", "string", False),
        ("title", "string", False),
        ("description", "text", False),
        ("category_id", "integer", False),
        ("subcategory_id", "integer", True),
        ("status", "string", False),
        ("priority", "string", False),
        ("location", "text", False),
        ("province", "string", False),
        ("district", "string", False),
        ("sector", "string", True),
        ("citizen_id", "integer", True),
        ("institution_id", "integer", True),
        ("is_anonymous", "boolean", False),
        ("contact_info", "string", True),
        ("created_at", "datetime", False),
        ("updated_at", "datetime", True),
    ],
    "updates": [
        ("id", "integer", False),
        ("complaint_id", "integer", False),
        ("status", "string", False),
        ("comment", "text", True),
        ("user_id", "integer", True),
        ("created_at", "datetime", False),
    ],
    "attachments": [
        ("id", "integer", False),
        ("complaint_id", "integer", False),
        ("file_name", "string", False),
        ("file_type", "string", True),
        ("file_size", "integer", True),
        ("file_url", "string", False),
        ("file_path", "string", False),
        ("created_at", "datetime", False),
    ],
}


def type_family(column_type) -> str:
    # Text subclasses String, so it is checked first.
    if isinstance(column_type, types.Text):
        return "text"
    if isinstance(column_type, types.Boolean):
        return "boolean"
    if isinstance(column_type, types.Integer):
        return "integer"
    if isinstance(column_type, types.String):
        return "string"
    if isinstance(column_type, types.DateTime):
        return "datetime"
    return str(column_type).lower()


def _inspector(engine=None):
    return inspect(engine if engine is not None else db.engine)


def list_tables(engine=None) -> Dict:
    try:
        tables = sorted(_inspector(engine).get_table_names())
    except SQLAlchemyError as exc:
        current_app.logger.exception("Error listing tables")
        return {"success": False, "error": str(exc)}
    return {"success": True, "tables": tables}


def inspect_table(table_name: str, engine=None) -> Dict:
    try:
        columns = _inspector(engine).get_columns(table_name)
    except NoSuchTableError:
        return {"success": False, "error": f"Table '{table_name}' does not exist", "code": "not_found"}
    except SQLAlchemyError as exc:
        current_app.logger.exception("Error inspecting table schema", extra={"table": table_name})
        return {"success": False, "error": str(exc)}

    return {
        "success": True,
        "columns": [
            {
                "column_name": column["name"],
                "data_type": str(column["type"]),
                "type_family": type_family(column["type"]),
                "is_nullable": bool(column.get("nullable", True)),
                "column_default": None if column.get("default") is None else str(column.get("default")),
            }
            for column in columns
        ],
    }


def validate_table(table_name: str, engine=None, expected: Optional[List[tuple]] = None) -> Dict:
    """Compare a live table against the columns the application expects."""
    expected = expected if expected is not None else EXPECTED_SCHEMA.get(table_name)
    if expected is None:
        return {"success": True, "message": f"No expected schema defined for {table_name}"}

    inspected = inspect_table(table_name, engine=engine)
    if not inspected["success"]:
        return inspected

    actual = {col["column_name"]: col for col in inspected["columns"]}
    missing = [
        {"name": name, "type": family, "nullable": nullable}
        for name, family, nullable in expected
        if name not in actual
    ]
    mismatches = []
    for name, family, nullable in expected:
        column = actual.get(name)
        if column is None:
            continue
        if column["type_family"] != family or column["is_nullable"] != nullable:
            mismatches.append(
                {
                    "column": name,
                    "expected_type": family,
                    "actual_type": column["type_family"],
                    "expected_nullable": nullable,
                    "actual_nullable": column["is_nullable"],
                }
            )

    return {
        "success": not missing and not mismatches,
        "missing_columns": missing,
        "type_mismatches": mismatches,
        "actual_columns": inspected["columns"],
    }
