# app/db/types.py
from __future__ import annotations

from sqlalchemy import JSON, Uuid
from sqlalchemy.dialects.postgresql import JSONB

# Postgres in production (native uuid / jsonb), SQLite in tests.
GUID = Uuid(as_uuid=True)
JSONType = JSON().with_variant(JSONB(), "postgresql")

# Python None is stored as SQL NULL instead of JSON 'null'
NullableJSONType = JSON(none_as_null=True).with_variant(JSONB(none_as_null=True), "postgresql")
