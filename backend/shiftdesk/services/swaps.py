"""Peer-to-peer assignment swaps.

pending_partner -> pending_manager -> approved | denied, and either pending
state may be canceled by a participant. Approval only trades the owners of
the two assignments; instances and roles stay where they are.
"""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from shiftdesk.core.db import transaction
from shiftdesk.core.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from shiftdesk.core.roles_registry import MANAGER_ROLE_KEYS
from shiftdesk.models.enums import PENDING_SWAP_STATES, SwapStatus
from shiftdesk.models.shift_assignment import ShiftAssignment
from shiftdesk.models.swap_request import SwapRequest
from shiftdesk.models.user import User
from shiftdesk.schemas import SwapCreateIn
from shiftdesk.services.audit import log_audit
from shiftdesk.services.notify import Notifier, notify_many

log = logging.getLogger("shiftdesk.swaps")

CANCEL_REASON = "Canceled by participant"


def _swap_payload(swap: SwapRequest) -> dict[str, Any]:
    instance = swap.from_assignment.shift_instance
    return {
        "requester_name": swap.requester.display_name,
        "partner_name": swap.partner.display_name,
        "shift_type": instance.shift_type.name if instance.shift_type else None,
        "day": instance.date.isoformat(),
    }


def get_swap(db: Session, swap_id: int, *, for_update: bool = False) -> SwapRequest:
    stmt = select(SwapRequest).where(SwapRequest.id == swap_id)
    if for_update:
        stmt = stmt.with_for_update()
    swap = db.execute(stmt).scalar_one_or_none()
    if swap is None:
        raise NotFoundError("Swap request not found")
    return swap


def create_swap(db: Session, payload: SwapCreateIn, requester_id: int, notifier: Notifier) -> SwapRequest:
    if payload.from_assignment_id == payload.to_assignment_id:
        raise ValidationError("Cannot swap an assignment with itself")
    if payload.partner_id == requester_id:
        raise ValidationError("Cannot swap with yourself")

    with transaction(db):
        source = db.get(ShiftAssignment, payload.from_assignment_id)
        target = db.get(ShiftAssignment, payload.to_assignment_id)
        if source is None or target is None:
            raise NotFoundError("Assignment not found")
        if source.user_id != requester_id:
            raise ForbiddenError("You can only offer your own assignment")
        if target.user_id != payload.partner_id:
            raise ValidationError("Target assignment does not belong to the partner")

        open_swap = db.execute(
            select(SwapRequest.id).where(
                SwapRequest.from_assignment_id == source.id,
                SwapRequest.status.in_(PENDING_SWAP_STATES),
            ).limit(1)
        ).first()
        if open_swap is not None:
            raise ConflictError("This assignment already has an open swap request", swap_id=open_swap[0])

        swap = SwapRequest(
            from_assignment_id=source.id,
            to_assignment_id=target.id,
            requester_id=requester_id,
            partner_id=payload.partner_id,
            status=SwapStatus.PENDING_PARTNER.value,
        )
        db.add(swap)
        db.flush()
        log_audit(
            db,
            actor_id=requester_id,
            action="schedule.swap.create",
            entity="swap_request",
            entity_id=swap.id,
            meta={"from_assignment_id": source.id, "to_assignment_id": target.id},
        )

    notify_many(notifier, [(swap.partner, _swap_payload(swap))], "swap_request")
    return swap


def partner_response(db: Session, swap_id: int, actor_id: int, accept: bool, notifier: Notifier) -> SwapRequest:
    with transaction(db):
        swap = get_swap(db, swap_id, for_update=True)
        if swap.partner_id != actor_id:
            raise ForbiddenError("Only the swap partner can respond")
        if swap.status != SwapStatus.PENDING_PARTNER.value:
            raise ConflictError(f"Swap is {swap.status}, not awaiting the partner")

        swap.status = SwapStatus.PENDING_MANAGER.value if accept else SwapStatus.DENIED.value
        log_audit(
            db,
            actor_id=actor_id,
            action="schedule.swap.partner-accept" if accept else "schedule.swap.partner-decline",
            entity="swap_request",
            entity_id=swap.id,
        )

    if accept:
        notify_many(notifier, [(swap.requester, _swap_payload(swap))], "swap_partner_accept")
    return swap


def cancel_swap(db: Session, swap_id: int, actor_id: int) -> SwapRequest:
    with transaction(db):
        swap = get_swap(db, swap_id, for_update=True)
        if actor_id not in (swap.requester_id, swap.partner_id):
            raise ForbiddenError("Only swap participants can cancel it")
        if swap.status not in PENDING_SWAP_STATES:
            raise ConflictError(f"Swap is already {swap.status}")

        swap.status = SwapStatus.CANCELED.value
        swap.decision_reason = CANCEL_REASON
        log_audit(db, actor_id=actor_id, action="schedule.swap.cancel", entity="swap_request", entity_id=swap.id)
    return swap


def manager_decision(
    db: Session, swap_id: int, manager_id: int, approve: bool, reason: str | None, notifier: Notifier
) -> SwapRequest:
    with transaction(db):
        manager = db.get(User, manager_id)
        if manager is None or manager.role_key not in MANAGER_ROLE_KEYS:
            raise ForbiddenError("Only managers can decide swaps")

        swap = get_swap(db, swap_id, for_update=True)
        if swap.status != SwapStatus.PENDING_MANAGER.value:
            raise ConflictError(f"Swap is {swap.status}, not awaiting a manager")

        rows = {
            a.id: a
            for a in db.scalars(
                select(ShiftAssignment)
                .where(ShiftAssignment.id.in_([swap.from_assignment_id, swap.to_assignment_id]))
                .with_for_update()
            ).all()
        }
        source = rows.get(swap.from_assignment_id)
        target = rows.get(swap.to_assignment_id)
        if source is None or target is None:
            raise NotFoundError("A swapped assignment no longer exists")

        if approve:
            if source.user_id != swap.requester_id or target.user_id != swap.partner_id:
                raise ConflictError("Assignments changed owners since the swap was requested")
            source.user_id, target.user_id = target.user_id, source.user_id
            swap.status = SwapStatus.APPROVED.value
        else:
            swap.status = SwapStatus.DENIED.value
        swap.manager_id = manager_id
        swap.decision_reason = (reason or "").strip() or None

        log_audit(
            db,
            actor_id=manager_id,
            action="schedule.swap.approve" if approve else "schedule.swap.deny",
            entity="swap_request",
            entity_id=swap.id,
            meta={"reason": swap.decision_reason},
        )

    log.info("swap %s %s by %s", swap.id, swap.status, manager_id)
    payload = {
        **_swap_payload(swap),
        "decision": swap.status,
        "reason": swap.decision_reason,
    }
    notify_many(notifier, [(swap.requester, payload), (swap.partner, payload)], "swap_manager_decision")
    return swap


def list_swaps_by_status(db: Session, status: str) -> list[SwapRequest]:
    if status not in {s.value for s in SwapStatus}:
        raise ValidationError(f"Unknown swap status {status}")
    return list(
        db.scalars(
            select(SwapRequest)
            .where(SwapRequest.status == status)
            .order_by(SwapRequest.created_at.desc(), SwapRequest.id.desc())
        ).all()
    )


def list_swaps_for_user(db: Session, user_id: int) -> list[SwapRequest]:
    return list(
        db.scalars(
            select(SwapRequest)
            .where(or_(SwapRequest.requester_id == user_id, SwapRequest.partner_id == user_id))
            .order_by(SwapRequest.created_at.desc(), SwapRequest.id.desc())
        ).all()
    )
