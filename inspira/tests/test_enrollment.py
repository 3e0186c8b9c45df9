import asyncio

import pytest
from sqlalchemy.exc import OperationalError
from sqlmodel import Session, select

from inspira.app.domain.errors import NoIdentityError, StoreReadError, StoreWriteError
from inspira.app.domain.models import NO_EMAIL, NO_NAME, DocumentRow, Identity
from inspira.app.infra.documents import DocumentStore
from inspira.app.infra.documents import testers_collection as collection_path
from inspira.app.services.enrollment import EnrollmentStore, utcnow_iso


def _rows(engine):
    with Session(engine) as session:
        return session.exec(select(DocumentRow)).all()


def test_enroll_twice_keeps_one_record_with_latest_timestamp(store, engine, alice):
    asyncio.run(store.enroll(alice))
    second = asyncio.run(store.enroll(alice))

    rows = _rows(engine)
    assert len(rows) == 1
    assert rows[0].path == "artifacts/test-app/public/data/testers/google-alice"
    assert rows[0].data["appliedAt"] == "2026-10-18T05:00:00.000Z"
    assert second.applied_at == "2026-10-18T05:00:00.000Z"


def test_enroll_without_identity_writes_nothing(store, engine):
    with pytest.raises(NoIdentityError):
        asyncio.run(store.enroll(None))
    assert _rows(engine) == []


def test_enroll_anonymous_identity_uses_placeholders(store):
    record = asyncio.run(store.enroll(Identity(uid="U1")))
    assert record.display_name == "이름 없음 (테스트 유저)" == NO_NAME
    assert record.email == "이메일 없음 (테스트 계정)" == NO_EMAIL

    stored = asyncio.run(store.list_all())
    assert stored == [record]


def test_document_keys_follow_store_wire_names(store, engine, alice):
    asyncio.run(store.enroll(alice))
    assert _rows(engine)[0].data == {
        "uid": "google-alice",
        "email": "alice@example.com",
        "displayName": "Alice",
        "appliedAt": "2026-10-18T04:05:06.000Z",
    }


def test_list_all_is_scoped_to_app_collection(documents, store, alice):
    documents.upsert(collection_path("other-app"), "x", {"uid": "x", "email": "e", "displayName": "n", "appliedAt": "t"})
    asyncio.run(store.enroll(alice))
    assert [r.uid for r in asyncio.run(store.list_all())] == ["google-alice"]


def test_list_all_keeps_malformed_documents_with_placeholders(documents, store, alice, caplog):
    documents.upsert(store.collection, "broken", {"uid": "broken", "appliedAt": 17})
    asyncio.run(store.enroll(alice))

    with caplog.at_level("WARNING", logger="inspira.app.services.enrollment"):
        records = {r.uid: r for r in asyncio.run(store.list_all())}

    assert set(records) == {"broken", "google-alice"}
    assert records["broken"].display_name == NO_NAME
    assert records["broken"].email == NO_EMAIL
    assert records["broken"].applied_at == "17"
    assert "1 of 2 tester documents" in caplog.text


def _failing_factory():
    raise OperationalError("INSERT", {}, Exception("disk I/O error"))


def test_store_failures_are_wrapped():
    documents = DocumentStore(_failing_factory)
    with pytest.raises(StoreWriteError):
        documents.upsert("c", "k", {})
    with pytest.raises(StoreReadError):
        documents.scan("c")


def test_failed_overwrite_leaves_prior_record(engine, documents, alice, monkeypatch):
    store = EnrollmentStore(documents, app_id="test-app", clock=lambda: "2026-01-01T00:00:00.000Z")
    asyncio.run(store.enroll(alice))

    original_flush = Session.flush

    def broken_flush(self, *args, **kwargs):
        if self.dirty:
            raise OperationalError("UPDATE", {}, Exception("connection reset"))
        return original_flush(self, *args, **kwargs)

    monkeypatch.setattr(Session, "flush", broken_flush)
    store.clock = lambda: "2026-02-02T00:00:00.000Z"
    with pytest.raises(StoreWriteError):
        asyncio.run(store.enroll(alice))
    monkeypatch.undo()

    rows = _rows(engine)
    assert len(rows) == 1
    assert rows[0].data["appliedAt"] == "2026-01-01T00:00:00.000Z"


def test_utcnow_iso_has_millisecond_z_suffix():
    stamp = utcnow_iso()
    assert stamp.endswith("Z")
    assert len(stamp.split(".")[-1]) == 4


def test_updated_at_is_timezone_aware(engine, store, alice):
    asyncio.run(store.enroll(alice))
    asyncio.run(store.enroll(alice))

    assert DocumentRow.__table__.c.updated_at.type.timezone
    assert _rows(engine)[0].updated_at is not None
