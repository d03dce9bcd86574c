"""
Moderated deletion of service listings.

Sellers cannot delete a listing directly.  They file a deletion
request; an administrator approves or denies it.  Request lifecycle::

    pending → approved   (terminal, service soft‑deleted)
    pending → denied     (terminal, service untouched)

At most one request per service may be pending.  The pre‑check gives a
friendly error; the partial unique index on
``service_delete_requests(service_id) WHERE status = 'pending'`` is what
actually guarantees it when two requests race.

Approval writes two rows.  Both updates run in one transaction; if the
service write does not land, the transaction is rolled back and a
``FatalError`` is raised and logged at CRITICAL so the failure is
visible to operators rather than leaving an approved request next to a
live listing.
"""

import logging
import sqlite3
from typing import Dict, List, Optional, Set

from ..core.db import Database, utcnow
from ..core.errors import ConflictError, FatalError, NotFoundError, ValidationError
from ..schemas.delete_request import (
    DeleteRequestCreated,
    DeleteRequestListItem,
    DeleteRequestRead,
    DeleteRequestResolution,
    DeleteRequestStatus,
    RequestedServiceSummary,
    SellerSummary,
)
from ..schemas.service import ServiceSummary
from ..schemas.user import Caller
from .listing_service import SERVICE_COLUMNS, load_owned_service, service_from_row


logger = logging.getLogger(__name__)

REQUEST_COLUMNS = (
    "id, service_id, seller_id, reason, status, requested_at, admin_id, admin_comment, processed_at"
)

PENDING_EXISTS = "A pending delete request already exists for this service"


# Valid transitions: {from_state: {allowed_to_states}}
_TRANSITIONS: Dict[DeleteRequestStatus, Set[DeleteRequestStatus]] = {
    DeleteRequestStatus.PENDING: {DeleteRequestStatus.APPROVED, DeleteRequestStatus.DENIED},
    # Terminal states: no outgoing transitions
    DeleteRequestStatus.APPROVED: set(),
    DeleteRequestStatus.DENIED: set(),
}


class DeletionStateMachine:
    """Validates deletion request transitions.  Pure; persistence lives in the service."""

    @staticmethod
    def is_terminal(state: DeleteRequestStatus) -> bool:
        return not _TRANSITIONS[state]

    @staticmethod
    def check_transition(current: DeleteRequestStatus, target: DeleteRequestStatus) -> None:
        """Raise ``ConflictError`` unless ``current → target`` is allowed.

        Resolving an already resolved request names its status, since
        "already approved" and "already denied" mean different things
        to the caller.
        """
        if DeletionStateMachine.is_terminal(current):
            raise ConflictError(f"Delete request is already {current.value}")
        if target not in _TRANSITIONS[current]:
            raise ConflictError(
                f"Invalid delete request transition: {current.value} -> {target.value}"
            )


def request_from_row(row: sqlite3.Row) -> DeleteRequestRead:
    return DeleteRequestRead(
        id=row["id"],
        service_id=row["service_id"],
        seller_id=row["seller_id"],
        reason=row["reason"],
        status=DeleteRequestStatus(row["status"]),
        requested_at=row["requested_at"],
        admin_id=row["admin_id"],
        admin_comment=row["admin_comment"],
        processed_at=row["processed_at"],
    )


def _parse_status(status: Optional[str]) -> Optional[DeleteRequestStatus]:
    if status is None or status == "":
        return None
    try:
        return DeleteRequestStatus(status.strip().lower())
    except ValueError as exc:
        allowed = ", ".join(s.value for s in DeleteRequestStatus)
        raise ValidationError(f"Invalid status. Must be one of: {allowed}") from exc


class DeletionService:
    """Files, lists and resolves service deletion requests."""

    def __init__(self, db: Database) -> None:
        self.db = db

    async def request_deletion(
        self, caller: Caller, service_id: int, reason: Optional[str] = None
    ) -> DeleteRequestCreated:
        """File a pending deletion request for a service the caller owns."""
        with self.db.session() as conn:
            service = load_owned_service(conn, caller, service_id)
            if service["is_deleted"]:
                raise ConflictError("Service is already deleted")
            pending = conn.execute(
                "SELECT id FROM service_delete_requests WHERE service_id = ? AND status = 'pending'",
                (service_id,),
            ).fetchone()
            if pending:
                raise ConflictError(PENDING_EXISTS)
            try:
                cursor = conn.execute(
                    """
                    INSERT INTO service_delete_requests (service_id, seller_id, reason, status, requested_at)
                    VALUES (?, ?, ?, 'pending', ?)
                    """,
                    (service_id, caller.id, reason, utcnow()),
                )
            except sqlite3.IntegrityError as exc:
                # Lost the race against a concurrent request.
                raise ConflictError(PENDING_EXISTS) from exc
            row = conn.execute(
                f"SELECT {REQUEST_COLUMNS} FROM service_delete_requests WHERE id = ?",
                (cursor.lastrowid,),
            ).fetchone()
        logger.info(
            "User %s requested deletion of service %s (request %s)",
            caller.id, service_id, row["id"],
        )
        return DeleteRequestCreated(
            delete_request=request_from_row(row),
            service=ServiceSummary(id=service["id"], title=service["title"]),
        )

    async def list_requests(self, status: Optional[str] = None) -> List[DeleteRequestListItem]:
        """Requests, newest first, joined with service and seller summaries."""
        wanted = _parse_status(status)
        query = """
            SELECT r.id, r.service_id, r.seller_id, r.reason, r.status, r.requested_at,
                   r.admin_id, r.admin_comment, r.processed_at,
                   s.id AS s_id, s.title AS s_title, s.description AS s_description,
                   s.seller_id AS s_seller_id, s.created_at AS s_created_at,
                   u.id AS u_id, u.email AS u_email, u.full_name AS u_full_name
            FROM service_delete_requests r
            LEFT JOIN services s ON s.id = r.service_id
            LEFT JOIN users u ON u.id = r.seller_id
        """
        params: list = []
        if wanted is not None:
            query += " WHERE r.status = ?"
            params.append(wanted.value)
        query += " ORDER BY r.requested_at DESC, r.id DESC"
        with self.db.session() as conn:
            rows = conn.execute(query, tuple(params)).fetchall()

        items: List[DeleteRequestListItem] = []
        for row in rows:
            service = None
            if row["s_id"] is not None:
                service = RequestedServiceSummary(
                    id=row["s_id"],
                    title=row["s_title"],
                    description=row["s_description"],
                    seller_id=row["s_seller_id"],
                    created_at=row["s_created_at"],
                )
            seller = None
            if row["u_id"] is not None:
                seller = SellerSummary(
                    id=row["u_id"], email=row["u_email"], full_name=row["u_full_name"] or ""
                )
            items.append(
                DeleteRequestListItem(
                    **request_from_row(row).model_dump(), service=service, seller=seller
                )
            )
        return items

    async def get_request(self, request_id: int) -> DeleteRequestRead:
        with self.db.session() as conn:
            row = conn.execute(
                f"SELECT {REQUEST_COLUMNS} FROM service_delete_requests WHERE id = ?",
                (request_id,),
            ).fetchone()
        if not row:
            raise NotFoundError("Delete request not found")
        return request_from_row(row)

    async def resolve_request(
        self,
        admin: Caller,
        request_id: int,
        decision: DeleteRequestStatus,
        comment: Optional[str] = None,
    ) -> DeleteRequestResolution:
        """Approve or deny a pending request.

        Approval also soft‑deletes the service (``is_deleted = 1``,
        ``is_active = 0``, ``deleted_at`` stamped) in the same
        transaction.  Denial leaves the service untouched.
        """
        decision = DeleteRequestStatus(decision)
        if decision == DeleteRequestStatus.PENDING:
            raise ValidationError('Status must be either "approved" or "denied"')

        now = utcnow()
        with self.db.session() as conn:
            row = conn.execute(
                f"SELECT {REQUEST_COLUMNS} FROM service_delete_requests WHERE id = ?",
                (request_id,),
            ).fetchone()
            if not row:
                raise NotFoundError("Delete request not found")
            DeletionStateMachine.check_transition(DeleteRequestStatus(row["status"]), decision)

            cursor = conn.execute(
                """
                UPDATE service_delete_requests
                SET status = ?, admin_id = ?, admin_comment = ?, processed_at = ?
                WHERE id = ? AND status = 'pending'
                """,
                (decision.value, admin.id, comment, now, request_id),
            )
            if cursor.rowcount == 0:
                # Resolved by someone else between our read and write.
                current = conn.execute(
                    "SELECT status FROM service_delete_requests WHERE id = ?", (request_id,)
                ).fetchone()
                raise ConflictError(f"Delete request is already {current['status']}")

            service = None
            if decision == DeleteRequestStatus.APPROVED:
                service = self._soft_delete_service(conn, row["service_id"], request_id, now)

            updated = conn.execute(
                f"SELECT {REQUEST_COLUMNS} FROM service_delete_requests WHERE id = ?",
                (request_id,),
            ).fetchone()

        if decision == DeleteRequestStatus.APPROVED:
            logger.info(
                "Admin %s approved request %s; service %s deleted",
                admin.id, request_id, row["service_id"],
            )
            return DeleteRequestResolution(
                message="Delete request approved successfully. Service has been deleted.",
                action="deleted",
                delete_request=request_from_row(updated),
                service=service,
            )
        logger.info("Admin %s denied request %s", admin.id, request_id)
        return DeleteRequestResolution(
            message="Delete request denied successfully.",
            action="denied",
            delete_request=request_from_row(updated),
        )

    @staticmethod
    def _soft_delete_service(conn: sqlite3.Connection, service_id: int, request_id: int, now: str):
        """Second half of an approval.  Any failure here is fatal for the approval."""
        try:
            cursor = conn.execute(
                """
                UPDATE services
                SET is_deleted = 1, is_active = 0, deleted_at = ?, updated_at = ?
                WHERE id = ?
                """,
                (now, now, service_id),
            )
            if cursor.rowcount != 1:
                raise sqlite3.IntegrityError(f"expected 1 service row, updated {cursor.rowcount}")
            row = conn.execute(
                f"SELECT {SERVICE_COLUMNS} FROM services WHERE id = ?", (service_id,)
            ).fetchone()
        except sqlite3.Error as exc:
            conn.rollback()
            logger.critical(
                "Approval of delete request %s could not soft-delete service %s: %s. "
                "Request write rolled back.",
                request_id, service_id, exc,
            )
            raise FatalError(
                "Approval could not be applied to the service; no changes were saved"
            ) from exc
        return service_from_row(row)
