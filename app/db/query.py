# app/db/query.py
from __future__ import annotations

from sqlalchemy import func
from sqlalchemy.sql.elements import ColumnElement

LIKE_ESCAPE = "\\"


def like_escape(value: str) -> str:
    return (
        value.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
        .replace("%", LIKE_ESCAPE + "%")
        .replace("_", LIKE_ESCAPE + "_")
    )


def contains_ci(column, text: str) -> ColumnElement[bool]:
    """
    Case-insensitive substring match. User input is literal: % and _ match themselves.
    SQLite lower() only folds ASCII.
    """
    return func.lower(column).like(f"%{like_escape(text.lower())}%", escape=LIKE_ESCAPE)
