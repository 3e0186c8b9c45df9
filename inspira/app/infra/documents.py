"""Path-addressed document store on top of SQLModel.

Documents live at slash-separated paths such as
``artifacts/{app_id}/public/data/testers/{uid}``; the parent path is the
collection. Writes are keyed upserts and reads are full collection scans.
"""
from __future__ import annotations

from contextlib import AbstractContextManager
import logging
from typing import Any, Callable, Dict, List, Mapping

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from ..domain.errors import StoreReadError, StoreWriteError
from ..domain.models import DocumentRow, utcnow

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], AbstractContextManager[Session]]


def testers_collection(app_id: str) -> str:
    return f"artifacts/{app_id}/public/data/testers"


class DocumentStore:
    def __init__(self, session_factory: SessionFactory) -> None:
        self.session_factory = session_factory

    def upsert(self, collection: str, key: str, data: Mapping[str, Any]) -> DocumentRow:
        """Insert or overwrite ``collection/key`` in one transaction."""
        path = f"{collection}/{key}"
        try:
            with self.session_factory() as session:
                row = session.get(DocumentRow, path)
                if row:
                    row.data = dict(data)
                    row.updated_at = utcnow()
                else:
                    row = DocumentRow(path=path, collection=collection, doc_id=key, data=dict(data))
                    session.add(row)
                session.flush()
                session.refresh(row)
                session.expunge(row)
        except SQLAlchemyError as exc:
            logger.error("upsert failed for %s", path, exc_info=exc, extra={"component": "DocumentStore"})
            raise StoreWriteError(path) from exc
        return row

    def scan(self, collection: str) -> List[Dict[str, Any]]:
        try:
            with self.session_factory() as session:
                rows = session.exec(
                    select(DocumentRow).where(DocumentRow.collection == collection)
                ).all()
                return [dict(row.data) for row in rows]
        except SQLAlchemyError as exc:
            logger.error("scan failed for %s", collection, exc_info=exc, extra={"component": "DocumentStore"})
            raise StoreReadError(collection) from exc
