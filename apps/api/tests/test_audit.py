"""Tests for the audit log and its best-effort write semantics."""

import logging

import pytest
from httpx import AsyncClient

from app.db.enums import AuditAction, AuditEntityType
from app.services import audit_service


@pytest.mark.asyncio
async def test_audit_visible_to_manager_and_tech_only(
    client: AsyncClient, manager_auth, tech_auth, operator_auth
):
    await client.patch("/sites/site-1001", json={"region": "New England"}, headers=manager_auth.headers)

    response = await client.get("/audit", headers=tech_auth.headers)
    assert response.status_code == 200
    entries = response.json()
    assert len(entries) == 1
    assert entries[0]["entity_id"] == "site-1001"
    assert entries[0]["after_json"]["region"] == "New England"

    response = await client.get("/audit", headers=operator_auth.headers)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_audit_failure_does_not_undo_primary_write(
    client: AsyncClient, manager_auth, seeded, monkeypatch, caplog
):
    def broken_add_audit(entry):
        raise RuntimeError("audit table unavailable")

    monkeypatch.setattr(seeded, "add_audit", broken_add_audit)

    with caplog.at_level(logging.ERROR, logger=audit_service.logger.name):
        response = await client.patch(
            "/sites/site-1002", json={"name": "Hillcrest 2"}, headers=manager_auth.headers
        )

    assert response.status_code == 200
    assert seeded.get_site("site-1002").name == "Hillcrest 2"
    assert "Audit write failed" in caplog.text
    monkeypatch.undo()
    assert seeded.list_audit("org-demo", 300) == []


def test_audit_entries_scoped_to_org(seeded, manager_auth):
    other = manager_auth.session.model_copy(update={"org_id": "org-other", "user_id": "u-x"})
    site = seeded.get_site("site-9001")
    audit_service.record(
        seeded, other, AuditEntityType.SITE, site.id, AuditAction.UPDATE,
        site_id=site.id, after=site,
    )

    assert audit_service.list_entries(seeded, manager_auth.session, 300) == []
    assert len(audit_service.list_entries(seeded, other, 300)) == 1
