"""
Generic record store over one Supabase table.

Every entity (orders, shipments, products, tasks, settings records) shares
the same contract: list, filter, get, create, update, delete, bulk_create.
Records are plain dicts. id and created_date are assigned on create;
updated_date is stamped on every update.

Sort strings follow the "-field" convention: a leading minus sorts
descending.
"""

from __future__ import annotations

from typing import Any, Optional
from datetime import datetime, date
from enum import Enum
import structlog

from config import get_supabase_client
from exceptions import AppError, DatabaseError
from utils.time_utils import utcnow

logger = structlog.get_logger(__name__)


def _serialize(value: Any) -> Any:
    """Make a value JSON-safe for the Supabase client."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, dict):
        return {k: _serialize(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_serialize(v) for v in value]
    return value


def parse_sort(sort: Optional[str]) -> Optional[tuple[str, bool]]:
    """"-created_date" -> ("created_date", True)."""
    if not sort:
        return None
    if sort.startswith("-"):
        return sort[1:], True
    return sort, False


class EntityStore:
    """
    CRUD access to one table.

    Writes are independent single-statement calls; nothing here spans
    more than one request.
    """

    def __init__(self, table: str):
        self.db = get_supabase_client()
        self.table = table

    # ===================
    # READ OPERATIONS
    # ===================

    def list(self, sort: Optional[str] = None, limit: Optional[int] = None) -> list[dict]:
        """All records, optionally sorted and truncated."""
        return self.filter({}, sort=sort, limit=limit)

    def filter(
        self,
        criteria: dict,
        sort: Optional[str] = None,
        limit: Optional[int] = None
    ) -> list[dict]:
        """
        Records matching every criterion.

        A list value matches any of its members; anything else is equality.
        """
        try:
            query = self.db.table(self.table).select("*")

            for column, value in criteria.items():
                if isinstance(value, (list, tuple, set)):
                    query = query.in_(column, [_serialize(v) for v in value])
                else:
                    query = query.eq(column, _serialize(value))

            order = parse_sort(sort)
            if order:
                column, desc = order
                query = query.order(column, desc=desc)

            if limit:
                query = query.limit(limit)

            result = query.execute()
            return result.data or []

        except Exception as e:
            logger.error("entity_filter_failed", table=self.table, error=str(e))
            raise DatabaseError("select", str(e), {"table": self.table})

    def get(self, record_id: str) -> Optional[dict]:
        """One record by id, or None."""
        rows = self.filter({"id": record_id}, limit=1)
        return rows[0] if rows else None

    # ===================
    # WRITE OPERATIONS
    # ===================

    def create(self, record: dict) -> dict:
        """Insert one record and return it as stored."""
        rows = self.bulk_create([record])
        return rows[0]

    def bulk_create(self, records: list[dict]) -> list[dict]:
        """Insert several records in one write."""
        if not records:
            return []

        now = utcnow().isoformat()
        payload = []
        for record in records:
            row = _serialize(record)
            row.setdefault("created_date", now)
            row.setdefault("updated_date", now)
            payload.append(row)

        try:
            result = self.db.table(self.table).insert(payload).execute()

            logger.debug("entities_created", table=self.table, count=len(payload))

            return result.data or []

        except Exception as e:
            logger.error("entity_insert_failed", table=self.table, error=str(e))
            raise DatabaseError("insert", str(e), {"table": self.table})

    def update(self, record_id: str, partial: dict) -> Optional[dict]:
        """
        Merge partial into the record. Last writer wins.

        Returns the updated record, or None if no record has that id.
        """
        return self.update_where(record_id, partial, {})

    def update_where(
        self,
        record_id: str,
        partial: dict,
        expected: dict
    ) -> Optional[dict]:
        """
        Compare-and-swap update.

        The write only applies while every field in expected still holds
        its expected value. Returns None when nothing matched.
        """
        data = _serialize(partial)
        data["updated_date"] = utcnow().isoformat()

        try:
            query = self.db.table(self.table).update(data).eq("id", record_id)
            for column, value in expected.items():
                query = query.eq(column, _serialize(value))

            result = query.execute()
            rows = result.data or []
            return rows[0] if rows else None

        except AppError:
            raise
        except Exception as e:
            logger.error(
                "entity_update_failed",
                table=self.table,
                record_id=record_id,
                error=str(e)
            )
            raise DatabaseError("update", str(e), {"table": self.table, "id": record_id})

    def delete(self, record_id: str) -> bool:
        """Remove a record. True if something was deleted."""
        try:
            result = self.db.table(self.table).delete().eq("id", record_id).execute()
            return bool(result.data)

        except Exception as e:
            logger.error(
                "entity_delete_failed",
                table=self.table,
                record_id=record_id,
                error=str(e)
            )
            raise DatabaseError("delete", str(e), {"table": self.table, "id": record_id})
