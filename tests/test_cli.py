"""Tests for the CLI wrappers, schemas and connection configuration."""
import json
import uuid
from contextlib import asynccontextmanager
from unittest.mock import AsyncMock, MagicMock

import pytest

import cli
from db import connection
from db.models import Account, Contact, Opportunity
from db.store import Eq, PartialUpsertFailure, RecordFailure, UpsertResult
from reconcilers import ContactReconcileResult, OpportunityReconcileResult
from schemas import ContactIn


@pytest.fixture
def fake_db(monkeypatch, session):
    """Route cli.get_db() to the test session, rolling back on error."""

    @asynccontextmanager
    async def _get_db():
        try:
            yield session
            await session.flush()
        except Exception:
            await session.rollback()
            raise

    monkeypatch.setattr(cli, "get_db", _get_db)
    return session


def test_contact_in_to_model_leaves_id_unset():
    contact = ContactIn(first_name="John", last_name="Doe").to_model()

    assert isinstance(contact, Contact)
    assert contact.id is None
    assert contact.last_name == "Doe"
    assert contact.account_id is None


def test_load_contacts_accepts_list_and_object(tmp_path):
    as_list = tmp_path / "list.json"
    as_list.write_text(json.dumps([{"last_name": "Doe"}, {"last_name": None}]))
    as_object = tmp_path / "object.json"
    as_object.write_text(json.dumps({"contacts": [{"last_name": "Doe", "phone": "555-0100"}]}))

    assert [c.last_name for c in cli.load_contacts(as_list).contacts] == ["Doe", None]
    assert cli.load_contacts(as_object).contacts[0].phone == "555-0100"


@pytest.mark.asyncio
async def test_run_opportunities_summary(fake_db, store):
    summary = await cli.run_opportunities("Acme", ["Renewal", "Renewal", "Upsell"])

    assert summary.account_created is True
    assert summary.account_name == "Acme"
    assert len(summary.created) == 2
    assert summary.failed == []
    accounts = await store.query(Account, Eq("name", "Acme"))
    assert [a.id for a in accounts] == [summary.account_id]


@pytest.mark.asyncio
async def test_run_contacts_summary(fake_db, tmp_path):
    path = tmp_path / "contacts.json"
    path.write_text(json.dumps([
        {"last_name": "Doe"}, {"last_name": "Doe"}, {"last_name": None}, {"last_name": "Jane"},
    ]))

    summary = await cli.run_contacts(path)

    assert sorted(summary.created_accounts) == ["Doe", "Jane"]
    assert summary.linked == 3
    assert summary.skipped == 1
    assert summary.unresolved == 0


@pytest.mark.asyncio
async def test_run_leads_summary(fake_db):
    summary = await cli.run_leads(["Doe", "Roe"], company="Globex")

    assert summary.entity == "lead"
    assert summary.inserted_and_deleted == 2


def test_main_without_command_prints_help():
    assert cli.main([]) == 1


def test_main_reports_row_limit_error(monkeypatch, capsys):
    @asynccontextmanager
    async def _get_db():
        yield MagicMock()

    monkeypatch.setattr(cli, "get_db", _get_db)
    monkeypatch.setattr(cli, "dispose_engine", AsyncMock())

    assert cli.main(["leads", "--names", "Doe", "Roe", "--row-limit", "1"]) == 1
    assert capsys.readouterr().out == ""


def test_build_engine_rejects_unsupported_driver():
    with pytest.raises(RuntimeError, match="postgresql\\+asyncpg"):
        connection.build_engine("mysql://user:pw@localhost/crm")


def test_get_engine_requires_database_url(monkeypatch):
    monkeypatch.delenv("DATABASE_URL", raising=False)
    monkeypatch.setattr(connection, "_engine", None)

    with pytest.raises(RuntimeError, match="DATABASE_URL"):
        connection.get_engine()


@pytest.mark.asyncio
async def test_run_opportunities_strict_rolls_back_on_rejected_record(fake_db, store):
    with pytest.raises(PartialUpsertFailure) as exc_info:
        await cli.run_opportunities("Acme", ["Renewal", None], strict=True)

    assert len(exc_info.value.failures) == 1
    assert await store.query(Opportunity) == []
    assert await store.query(Account) == []


@pytest.mark.asyncio
async def test_run_opportunities_reports_rejected_record_when_not_strict(fake_db):
    summary = await cli.run_opportunities("Acme", ["Renewal", None])

    assert len(summary.created) == 1
    assert len(summary.failed) == 1


def _contact_result_with_failed_account() -> ContactReconcileResult:
    return ContactReconcileResult(
        failed_accounts=[RecordFailure(Account(name="Doe"), "<Account 'Doe'>", "rejected")],
        unresolved=[Contact(last_name="Doe")],
    )


@pytest.mark.asyncio
async def test_run_contacts_strict_raises_on_failed_account(fake_db, monkeypatch, tmp_path):
    path = tmp_path / "contacts.json"
    path.write_text(json.dumps([{"last_name": "Doe"}]))
    reconciler = MagicMock()
    reconciler.return_value.reconcile = AsyncMock(return_value=_contact_result_with_failed_account())
    monkeypatch.setattr(cli, "ContactAccountReconciler", reconciler)

    with pytest.raises(PartialUpsertFailure, match="1 record"):
        await cli.run_contacts(path, strict=True)

    summary = await cli.run_contacts(path)
    assert summary.unresolved == 1
    assert [f.record for f in summary.failed] == ["<Account 'Doe'>"]


@pytest.mark.asyncio
async def test_run_cases_summary(fake_db):
    summary = await cli.run_cases(["Login broken", "Billing"], origin="Phone")

    assert summary.entity == "case"
    assert summary.inserted_and_deleted == 2
    assert len(set(summary.ids)) == 2


@pytest.mark.asyncio
async def test_run_init_db_creates_tables(monkeypatch, engine):
    monkeypatch.setattr(cli, "get_engine", lambda: engine)

    result = await cli.run_init_db()

    assert "crm.accounts" in result["tables"]
    assert "crm.opportunities" in result["tables"]


def test_main_strict_exits_non_zero_on_rejected_record(monkeypatch, capsys):
    failure = RecordFailure(Opportunity(name=None), "<Opportunity None>", "NOT NULL constraint failed")
    result = OpportunityReconcileResult(
        account=Account(id=uuid.uuid4(), name="Acme"),
        account_created=True,
        opportunities=UpsertResult(failed=[failure]),
    )
    reconciler = MagicMock()
    reconciler.return_value.reconcile = AsyncMock(return_value=result)

    @asynccontextmanager
    async def _get_db():
        yield MagicMock()

    monkeypatch.setattr(cli, "OpportunityReconciler", reconciler)
    monkeypatch.setattr(cli, "get_db", _get_db)
    monkeypatch.setattr(cli, "dispose_engine", AsyncMock())

    assert cli.main(["opportunities", "--account", "Acme", "--names", "Renewal", "--strict"]) == 1
    assert capsys.readouterr().out == ""

    assert cli.main(["opportunities", "--account", "Acme", "--names", "Renewal"]) == 0
    assert json.loads(capsys.readouterr().out)["failed"][0]["record"] == "<Opportunity None>"
