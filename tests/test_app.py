import time
from datetime import datetime, timedelta

from fastapi.testclient import TestClient
from sqlalchemy import inspect

from soundright import main
from soundright.config import settings
from soundright.db import build_engine
from soundright.models.models import Quote
from soundright.services import documents


def test_health(client):
    res = client.get("/api/health")
    assert res.status_code == 200
    assert res.json() == {"success": True, "status": "ok"}


def test_request_id_is_echoed(client):
    res = client.get("/api/health", headers={"X-Request-ID": "req-42"})
    assert res.headers["X-Request-ID"] == "req-42"
    assert client.get("/api/health").headers["X-Request-ID"]


def test_timed_out_request_commits_nothing(client, staff, session_factory, monkeypatch):
    _, headers = staff
    numbering = documents.next_document_number

    def slow_numbering(db, prefix):
        number = numbering(db, prefix)
        time.sleep(0.5)
        return number

    monkeypatch.setattr(documents, "next_document_number", slow_numbering)
    monkeypatch.setattr(settings, "request_timeout_seconds", 0.1)
    res = client.post("/api/quotes", json={"clientName": "Acme Events"}, headers=headers)
    assert res.status_code == 504
    assert res.json() == {"success": False, "error": "Request timed out"}

    monkeypatch.undo()
    # Waits on the write lock until the timed-out transaction has ended
    quote = client.post("/api/quotes", json={"clientName": "Acme Events"}, headers=headers).json()["data"]
    assert quote["quoteNumber"] == f"Q{datetime.now().year}-0001"
    with session_factory() as session:
        assert session.query(Quote).count() == 1


def test_startup_creates_tables(tmp_path, monkeypatch):
    fresh = build_engine(f"sqlite:///{tmp_path / 'startup.db'}")
    monkeypatch.setattr(main, "engine", fresh)
    monkeypatch.setattr(settings, "database_url", str(fresh.url))
    monkeypatch.setattr(settings, "auto_create_db", True)

    with TestClient(main.app) as test_client:
        assert test_client.get("/api/health").status_code == 200

    tables = inspect(fresh).get_table_names()
    assert {"users", "equipment", "quotes", "invoices", "document_sequences"} <= set(tables)
    fresh.dispose()


def test_timestamp_defaults_are_utc_aware():
    stamp = Quote.__table__.c.created_at.default.arg(None)
    assert stamp.utcoffset() == timedelta(0)
