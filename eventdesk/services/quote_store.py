# eventdesk/services/quote_store.py
"""Persistence adapter used by the quote engine.

The engine only ever needs a handful of record-store primitives: fetch by id,
fetch by filter, insert, conditional update, delete. Keeping them here means
the engine never builds queries of its own.
"""
from __future__ import annotations

import logging
from sqlalchemy import select, update, func

from ..extensions import db

log = logging.getLogger(__name__)


def _criteria(model, filters: dict):
    out = []
    for field, value in filters.items():
        col = getattr(model, field)
        if isinstance(value, (list, tuple, set, frozenset)):
            out.append(col.in_(list(value)))
        else:
            out.append(col == value)
    return out


class QuoteStore:
    def __init__(self, session=None):
        self.session = session or db.session

    # ---- reads ----

    def get(self, model, pk):
        return self.session.get(model, pk)

    def find(self, model, *, order_by=None, limit: int | None = None, **filters) -> list:
        stmt = select(model).where(*_criteria(model, filters))
        if order_by is not None:
            stmt = stmt.order_by(*(order_by if isinstance(order_by, (list, tuple)) else [order_by]))
        if limit:
            stmt = stmt.limit(limit)
        return list(self.session.scalars(stmt))

    def first(self, model, *, order_by=None, **filters):
        rows = self.find(model, order_by=order_by, limit=1, **filters)
        return rows[0] if rows else None

    def count(self, model, **filters) -> int:
        stmt = select(func.count()).select_from(model).where(*_criteria(model, filters))
        return int(self.session.scalar(stmt) or 0)

    # ---- writes ----

    def insert(self, obj):
        self.session.add(obj)
        self.session.flush()  # assigns obj.id, surfaces constraint violations now
        return obj

    def update_where(self, model, pk, expected: dict, values: dict) -> bool:
        """UPDATE ... WHERE id = pk AND <expected>; True iff exactly one row changed."""
        stmt = (
            update(model)
            .where(model.id == pk, *_criteria(model, expected))
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = self.session.execute(stmt)
        # plain UPDATE keeps rowcount reliable; reload the cached row on next access
        cached = self.session.identity_map.get(self.session.identity_key(model, pk))
        if cached is not None:
            self.session.expire(cached)
        if result.rowcount != 1:
            log.info("conditional update missed: %s id=%s expected=%s", model.__tablename__, pk, expected)
            return False
        return True

    def delete(self, obj):
        self.session.delete(obj)
        self.session.flush()

    def commit(self):
        self.session.commit()

    def rollback(self):
        self.session.rollback()
