"""Tester enrollment records kept in the shared document store."""
from __future__ import annotations

from datetime import datetime, timezone
import logging
from typing import Any, Callable, Dict, List, Optional

from pydantic import ValidationError
from starlette.concurrency import run_in_threadpool

from ..domain.errors import NoIdentityError
from ..domain.models import NO_EMAIL, NO_NAME, EnrollmentRecord, Identity
from ..infra.documents import DocumentStore, testers_collection

logger = logging.getLogger(__name__)


def utcnow_iso() -> str:
    now = datetime.now(tz=timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


class EnrollmentStore:
    """Upsert and full-scan access to ``artifacts/{app_id}/public/data/testers``."""

    def __init__(
        self,
        documents: DocumentStore,
        app_id: str,
        clock: Callable[[], str] = utcnow_iso,
    ) -> None:
        self.documents = documents
        self.collection = testers_collection(app_id)
        self.clock = clock

    async def enroll(self, identity: Optional[Identity]) -> EnrollmentRecord:
        if identity is None:
            raise NoIdentityError("enrollment requires an active identity")
        record = EnrollmentRecord.for_identity(identity, applied_at=self.clock())
        await run_in_threadpool(
            self.documents.upsert, self.collection, record.uid, record.to_document()
        )
        logger.info(
            "enrolled tester %s", record.uid,
            extra={"component": "EnrollmentStore", "uid": record.uid},
        )
        return record

    async def list_all(self) -> List[EnrollmentRecord]:
        documents = await run_in_threadpool(self.documents.scan, self.collection)
        records: List[EnrollmentRecord] = []
        repaired = 0
        for document in documents:
            try:
                records.append(EnrollmentRecord.model_validate(document))
            except ValidationError:
                repaired += 1
                records.append(_salvage(document))
        if repaired:
            logger.warning(
                "%s of %s tester documents were malformed and filled with placeholders",
                repaired, len(documents),
                extra={"component": "EnrollmentStore"},
            )
        return records


def _salvage(document: Dict[str, Any]) -> EnrollmentRecord:
    def text(key: str, default: str) -> str:
        value = document.get(key)
        return str(value) if value not in (None, "") else default

    return EnrollmentRecord(
        uid=text("uid", ""),
        email=text("email", NO_EMAIL),
        display_name=text("displayName", NO_NAME),
        applied_at=text("appliedAt", ""),
    )
