"""
Tests for moderated deletion: filing requests, the admin queue and
approval/denial, including the all‑or‑nothing approval write.
"""

import asyncio
import dataclasses
import logging
import sqlite3

import pytest
from fastapi.testclient import TestClient

from hustle_village_api.app.core.errors import ConflictError
from hustle_village_api.app.main import create_app
from hustle_village_api.app.schemas.delete_request import DeleteRequestStatus
from hustle_village_api.app.services.deletion_service import DeletionStateMachine
from hustle_village_api.app.services.user_service import UserDirectory

from conftest import ids, service_payload

ADMIN = "/api/v1/admin/delete-requests"


def request_delete(client, owner, service_id, reason="No longer offering this service"):
    return client.post(
        f"/api/v1/services/{service_id}/request-delete",
        json={"reason": reason},
        headers=owner.headers,
    )


def test_request_deletion(client, seller, create_service):
    service = create_service(seller)
    response = request_delete(client, seller, service["id"])
    assert response.status_code == 201
    body = response.json()
    assert body["message"] == "Delete request submitted successfully. Awaiting admin approval."
    assert body["delete_request"]["status"] == "pending"
    assert body["delete_request"]["reason"] == "No longer offering this service"
    assert body["delete_request"]["seller_id"] == seller.id
    assert body["service"] == {"id": service["id"], "title": service["title"]}


def test_request_deletion_without_body(client, seller, create_service):
    service = create_service(seller)
    response = client.post(
        f"/api/v1/services/{service['id']}/request-delete", headers=seller.headers
    )
    assert response.status_code == 201
    assert response.json()["delete_request"]["reason"] is None


def test_duplicate_pending_request_conflicts(client, seller, create_service):
    service = create_service(seller)
    assert request_delete(client, seller, service["id"]).status_code == 201
    response = request_delete(client, seller, service["id"])
    assert response.status_code == 409
    assert response.json() == {
        "error": "conflict",
        "detail": "A pending delete request already exists for this service",
    }


def test_pending_uniqueness_is_enforced_by_the_store(client, app, seller, create_service):
    service = create_service(seller)
    request_delete(client, seller, service["id"])
    with pytest.raises(sqlite3.IntegrityError):
        with app.state.db.session() as conn:
            conn.execute(
                """
                INSERT INTO service_delete_requests (service_id, seller_id, status, requested_at)
                VALUES (?, ?, 'pending', '2024-01-01T00:00:00+00:00')
                """,
                (service["id"], seller.id),
            )


def test_request_deletion_of_others_service_is_forbidden(client, seller, other_seller, create_service):
    service = create_service(seller)
    assert request_delete(client, other_seller, service["id"]).status_code == 403


def test_request_deletion_of_missing_service(client, seller):
    assert request_delete(client, seller, 999).status_code == 404


def test_admin_queue(client, seller, admin, create_service):
    first = create_service(seller, title="First")
    second = create_service(seller, title="Second")
    first_request = request_delete(client, seller, first["id"]).json()["delete_request"]
    second_request = request_delete(client, seller, second["id"]).json()["delete_request"]

    response = client.get(ADMIN, headers=admin.headers)
    assert response.status_code == 200
    queue = response.json()
    assert ids(queue) == [second_request["id"], first_request["id"]]
    assert queue[0]["service"]["title"] == "Second"
    assert queue[0]["seller"] == {
        "id": seller.id,
        "email": "ama.mensah@ashesi.edu.gh",
        "full_name": "Ama Mensah",
    }

    client.post(f"{ADMIN}/{first_request['id']}/deny", headers=admin.headers)
    pending = client.get(ADMIN, params={"status": "pending"}, headers=admin.headers).json()
    assert ids(pending) == [second_request["id"]]
    denied = client.get(ADMIN, params={"status": "denied"}, headers=admin.headers).json()
    assert ids(denied) == [first_request["id"]]


def test_admin_queue_rejects_unknown_status(client, admin):
    response = client.get(ADMIN, params={"status": "archived"}, headers=admin.headers)
    assert response.status_code == 400


def test_get_delete_request(client, seller, admin, create_service):
    service = create_service(seller)
    created = request_delete(client, seller, service["id"]).json()["delete_request"]
    response = client.get(f"{ADMIN}/{created['id']}", headers=admin.headers)
    assert response.status_code == 200
    assert response.json() == created
    assert client.get(f"{ADMIN}/999", headers=admin.headers).status_code == 404


def test_admin_routes_require_admin_role(client, seller, create_service):
    service = create_service(seller)
    created = request_delete(client, seller, service["id"]).json()["delete_request"]
    assert client.get(ADMIN, headers=seller.headers).status_code == 403
    response = client.post(f"{ADMIN}/{created['id']}/approve", headers=seller.headers)
    assert response.status_code == 403
    assert response.json() == {"error": "forbidden", "detail": "Admin privileges required"}
    assert client.get(ADMIN).status_code == 401


def test_admin_role_enforcement_can_be_disabled(settings, resolver, provider, store):
    relaxed = dataclasses.replace(settings, enforce_admin_role=False)
    app = create_app(relaxed, identity_client=provider, blob_store=store, resolver=resolver)
    with TestClient(app) as client:
        asyncio.run(
            UserDirectory(app.state.db, relaxed).upsert_verified(
                "kofi.boateng@ashesi.edu.gh", "sub", "Kofi", "+233"
            )
        )
        token = resolver.register("kofi.boateng@ashesi.edu.gh")
        response = client.get(ADMIN, headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 200


def test_approve_soft_deletes_service(client, seller, admin, create_service):
    service = create_service(seller)
    created = request_delete(client, seller, service["id"]).json()["delete_request"]

    response = client.post(
        f"{ADMIN}/{created['id']}/approve", json={"admin_comment": "ok"}, headers=admin.headers
    )
    assert response.status_code == 200
    body = response.json()
    assert body["message"] == "Delete request approved successfully. Service has been deleted."
    assert body["action"] == "deleted"
    assert body["delete_request"]["status"] == "approved"
    assert body["delete_request"]["admin_id"] == admin.id
    assert body["delete_request"]["admin_comment"] == "ok"
    assert body["delete_request"]["processed_at"] is not None
    assert body["service"]["is_deleted"] is True
    assert body["service"]["is_active"] is False
    assert body["service"]["deleted_at"] is not None

    assert service["id"] not in ids(client.get("/api/v1/services").json())
    assert client.get(f"/api/v1/services/{service['id']}").status_code == 404
    mine = client.get("/api/v1/services/mine", headers=seller.headers).json()
    assert mine[0]["is_deleted"] is True


def test_deleted_service_is_frozen(client, seller, admin, create_service):
    service = create_service(seller)
    created = request_delete(client, seller, service["id"]).json()["delete_request"]
    client.post(f"{ADMIN}/{created['id']}/approve", headers=admin.headers)

    edit = client.put(
        f"/api/v1/services/{service['id']}", json=service_payload(), headers=seller.headers
    )
    assert edit.status_code == 409
    assert edit.json()["detail"] == "Cannot edit a deleted service"

    toggle = client.patch(f"/api/v1/services/{service['id']}/toggle", headers=seller.headers)
    assert toggle.status_code == 409
    assert toggle.json()["detail"] == "Cannot toggle status of a deleted service"

    again = request_delete(client, seller, service["id"])
    assert again.status_code == 409
    assert again.json()["detail"] == "Service is already deleted"


def test_resolving_twice_conflicts(client, seller, admin, create_service):
    service = create_service(seller)
    created = request_delete(client, seller, service["id"]).json()["delete_request"]
    client.post(f"{ADMIN}/{created['id']}/approve", headers=admin.headers)

    for action in ("approve", "deny"):
        response = client.post(f"{ADMIN}/{created['id']}/{action}", headers=admin.headers)
        assert response.status_code == 409
        assert response.json()["detail"] == "Delete request is already approved"


def test_deny_leaves_service_untouched(client, seller, admin, create_service):
    service = create_service(seller)
    created = request_delete(client, seller, service["id"]).json()["delete_request"]

    response = client.post(
        f"{ADMIN}/{created['id']}/deny", json={"comment": "Still popular"}, headers=admin.headers
    )
    assert response.status_code == 200
    body = response.json()
    assert body["message"] == "Delete request denied successfully."
    assert body["action"] == "denied"
    assert body["delete_request"]["status"] == "denied"
    assert body["delete_request"]["admin_comment"] == "Still popular"
    assert body["service"] is None

    listing = client.get(f"/api/v1/services/{service['id']}").json()
    assert listing["id"] == service["id"]

    # A denied request no longer blocks a new one.
    assert request_delete(client, seller, service["id"]).status_code == 201

    again = client.post(f"{ADMIN}/{created['id']}/approve", headers=admin.headers)
    assert again.status_code == 409
    assert again.json()["detail"] == "Delete request is already denied"


def test_resolve_missing_request(client, admin):
    response = client.post(f"{ADMIN}/999/approve", headers=admin.headers)
    assert response.status_code == 404
    assert response.json()["detail"] == "Delete request not found"


def test_failed_approval_is_rolled_back(client, app, seller, admin, create_service, caplog):
    service = create_service(seller)
    created = request_delete(client, seller, service["id"]).json()["delete_request"]
    with app.state.db.session() as conn:
        conn.execute(
            """
            CREATE TRIGGER block_service_delete BEFORE UPDATE OF is_deleted ON services
            BEGIN
                SELECT RAISE(ABORT, 'service row is locked');
            END
            """
        )

    with caplog.at_level(logging.CRITICAL):
        response = client.post(f"{ADMIN}/{created['id']}/approve", headers=admin.headers)

    assert response.status_code == 500
    assert response.json()["error"] == "fatal"
    assert any(record.levelno == logging.CRITICAL for record in caplog.records)

    still_pending = client.get(f"{ADMIN}/{created['id']}", headers=admin.headers).json()
    assert still_pending["status"] == "pending"
    assert still_pending["admin_id"] is None
    mine = client.get("/api/v1/services/mine", headers=seller.headers).json()
    assert mine[0]["is_deleted"] is False
    assert mine[0]["is_active"] is True


def test_full_moderation_scenario(client, seller, other_seller, admin, create_service):
    tutoring = create_service(seller, title="Tutoring")
    braids = create_service(other_seller, title="Braids", category="beauty_hair")

    # Seller pauses, resumes and then asks to retire the listing.
    client.patch(f"/api/v1/services/{tutoring['id']}/toggle", headers=seller.headers)
    client.patch(f"/api/v1/services/{tutoring['id']}/toggle", headers=seller.headers)
    created = request_delete(client, seller, tutoring["id"]).json()["delete_request"]

    queue = client.get(ADMIN, params={"status": "pending"}, headers=admin.headers).json()
    assert ids(queue) == [created["id"]]

    client.post(f"{ADMIN}/{created['id']}/approve", headers=admin.headers)

    assert ids(client.get("/api/v1/services").json()) == [braids["id"]]
    assert client.get(ADMIN, params={"status": "pending"}, headers=admin.headers).json() == []
    approved = client.get(ADMIN, params={"status": "approved"}, headers=admin.headers).json()
    assert approved[0]["service"]["id"] == tutoring["id"]


# State machine


def test_state_machine_transitions():
    DeletionStateMachine.check_transition(DeleteRequestStatus.PENDING, DeleteRequestStatus.APPROVED)
    DeletionStateMachine.check_transition(DeleteRequestStatus.PENDING, DeleteRequestStatus.DENIED)
    assert DeletionStateMachine.is_terminal(DeleteRequestStatus.APPROVED)
    assert DeletionStateMachine.is_terminal(DeleteRequestStatus.DENIED)
    assert not DeletionStateMachine.is_terminal(DeleteRequestStatus.PENDING)


@pytest.mark.parametrize("current", [DeleteRequestStatus.APPROVED, DeleteRequestStatus.DENIED])
def test_state_machine_terminal_states(current):
    with pytest.raises(ConflictError) as excinfo:
        DeletionStateMachine.check_transition(current, DeleteRequestStatus.APPROVED)
    assert excinfo.value.message == f"Delete request is already {current.value}"


def test_state_machine_rejects_pending_target():
    with pytest.raises(ConflictError):
        DeletionStateMachine.check_transition(DeleteRequestStatus.PENDING, DeleteRequestStatus.PENDING)
