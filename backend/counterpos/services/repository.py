# Overview: Generic persistence collaborator (get/create/update/delete/list/search) over the session.

"""
Repository

WHY: Catalog, customer, staff and role services share the same storage
contract. The invoice commit does NOT go through here: it needs several
conditional writes inside one transaction and uses the session directly.

- list() is newest first (created_at desc, id desc) when the model has created_at
- search() is a case-insensitive substring match over the configured columns
"""

from __future__ import annotations

from sqlalchemy import or_

from ..extensions import db


class Repository:
    def __init__(self, model, *, search_fields: tuple[str, ...] = ()):
        self.model = model
        self.search_fields = search_fields

    def _ordered(self, query):
        created = getattr(self.model, "created_at", None)
        if created is not None:
            return query.order_by(created.desc(), self.model.id.desc())
        return query.order_by(self.model.id.desc())

    def get(self, entity_id: int):
        return db.session.get(self.model, entity_id)

    def find_by(self, **filters):
        return db.session.query(self.model).filter_by(**filters).first()

    def create(self, values: dict, *, commit: bool = True):
        entity = self.model(**values)
        db.session.add(entity)
        if commit:
            db.session.commit()
        else:
            db.session.flush()
        return entity

    def update(self, entity_id: int, patch: dict, *, commit: bool = True):
        """Apply a validated patch. Returns None when the row does not exist."""
        entity = self.get(entity_id)
        if entity is None:
            return None
        for key, value in patch.items():
            setattr(entity, key, value)
        if commit:
            db.session.commit()
        return entity

    def delete(self, entity_id: int) -> bool:
        entity = self.get(entity_id)
        if entity is None:
            return False
        db.session.delete(entity)
        db.session.commit()
        return True

    def list(self) -> list:
        return self._ordered(db.session.query(self.model)).all()

    def search(self, query: str | None) -> list:
        term = (query or "").strip()
        if not term or not self.search_fields:
            return self.list()
        pattern = f"%{term}%"
        clauses = [getattr(self.model, name).ilike(pattern) for name in self.search_fields]
        return self._ordered(db.session.query(self.model).filter(or_(*clauses))).all()
