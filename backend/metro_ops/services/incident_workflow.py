"""Incident lifecycle: creation with attachments, role-scoped reads and the
review chain DRAFT -> PENDING_CAPTAIN -> PENDING_ADMIN -> APPROVED.

REJECTED can be reached from either pending state and the reporter may
resubmit from it. How strictly transitions are checked is a deployment
choice (``INCIDENT_TRANSITION_POLICY``), as is who may open an incident's
detail view (``INCIDENT_DETAIL_POLICY``).
"""
import logging
import math
from typing import Callable, Dict, FrozenSet, List, Optional, Sequence, Tuple

from sqlalchemy import or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from metro_ops.core.events import Notifier, discard_event, incident_event
from metro_ops.core.exceptions import Conflict, Forbidden, NotFound, PersistenceFailure, ValidationFailure
from metro_ops.core.security import Identity, Role
from metro_ops.core.storage import BlobStore, UploadedBlob
from metro_ops.models.incident import Attachment, Incident
from metro_ops.schemas.incident import IncidentCreate, IncidentStatus, IncidentUpdate
from metro_ops.services.attachments import classify_attachment

logger = logging.getLogger(__name__)

S = IncidentStatus

SUBMITTED_STATUSES = (S.PENDING_CAPTAIN, S.PENDING_ADMIN, S.APPROVED, S.REJECTED)
CREATABLE_STATUSES = (S.DRAFT, S.PENDING_CAPTAIN)
REPORTER_EDITABLE_STATUSES = (S.DRAFT, S.REJECTED)

TRANSITIONS: Dict[Tuple[IncidentStatus, Role], FrozenSet[IncidentStatus]] = {
    (S.DRAFT, Role.EMPLOYEE): frozenset({S.PENDING_CAPTAIN}),
    (S.REJECTED, Role.EMPLOYEE): frozenset({S.PENDING_CAPTAIN}),
    (S.PENDING_CAPTAIN, Role.CAPTAIN): frozenset({S.PENDING_ADMIN, S.REJECTED}),
    (S.PENDING_ADMIN, Role.ADMIN): frozenset({S.APPROVED, S.REJECTED}),
}


def allowed_targets(current: IncidentStatus, role: Role) -> FrozenSet[IncidentStatus]:
    return TRANSITIONS.get((current, role), frozenset())


def acting_role(incident: Incident, identity: Identity) -> Role:
    # Captains and admins file incidents too; on their own draft or rejected
    # report they act as its reporter.
    if incident.user_id == identity.id and incident.status in REPORTER_EDITABLE_STATUSES:
        return Role.EMPLOYEE
    return identity.role


def _field_updates(incident: Incident, identity: Identity, role: Role, changes: IncidentUpdate) -> dict:
    updates = {}
    if changes.status is not None and changes.status.value != incident.status:
        updates["status"] = changes.status.value
    if role == Role.CAPTAIN:
        if changes.captain_comment:
            updates["captain_comment"] = changes.captain_comment
        updates["approver_id"] = identity.id
    elif role == Role.ADMIN:
        if changes.admin_comment:
            updates["admin_comment"] = changes.admin_comment
        updates["approver_id"] = identity.id
    elif changes.description:
        updates["description"] = changes.description
    return updates


def plan_strict(incident: Incident, identity: Identity, changes: IncidentUpdate) -> dict:
    """Check the request against TRANSITIONS and return the column updates.

    Reviewers only act on the stage addressed to them, so a captain cannot
    push someone else's DRAFT straight to PENDING_ADMIN; the reporter has to
    submit it first. Deployments that want reviewers to set any status use
    the ``permissive`` policy instead.
    """
    current = IncidentStatus(incident.status)
    role = acting_role(incident, identity)
    if role == Role.EMPLOYEE and incident.user_id != identity.id:
        raise Forbidden("Only the reporter can edit this incident")
    targets = allowed_targets(current, role)
    if not targets:
        raise Forbidden(f"{identity.role.value} cannot act on an incident in {current.value}")
    if changes.status is not None and changes.status != current and changes.status not in targets:
        raise Forbidden(f"Cannot move incident from {current.value} to {changes.status.value}")
    return _field_updates(incident, identity, role, changes)


def plan_permissive(incident: Incident, identity: Identity, changes: IncidentUpdate) -> dict:
    """Reviewers may set any status; reporters may only submit from DRAFT/REJECTED."""
    if identity.role != Role.EMPLOYEE:
        return _field_updates(incident, identity, identity.role, changes)
    if incident.status not in REPORTER_EDITABLE_STATUSES:
        raise Forbidden("Current status not editable")
    if changes.status is not None and changes.status != S.PENDING_CAPTAIN:
        changes = changes.model_copy(update={"status": None})
    return _field_updates(incident, identity, Role.EMPLOYEE, changes)


TransitionPlanner = Callable[[Incident, Identity, IncidentUpdate], dict]

TRANSITION_POLICIES: Dict[str, TransitionPlanner] = {
    "strict": plan_strict,
    "permissive": plan_permissive,
}


def visible_in_list(identity: Identity, incident: Incident) -> bool:
    """In-memory form of the rule ``visibility_clause`` applies in SQL."""
    if incident.user_id == identity.id:
        return True
    if identity.role == Role.EMPLOYEE:
        return False
    return incident.status != S.DRAFT.value


def can_view_any(identity: Identity, incident: Incident) -> bool:
    return True


ViewPredicate = Callable[[Identity, Incident], bool]

DETAIL_POLICIES: Dict[str, ViewPredicate] = {
    "organization": can_view_any,
    "scoped": visible_in_list,
}


def visibility_clause(identity: Identity):
    if identity.role == Role.ADMIN:
        return Incident.status != S.DRAFT.value
    if identity.role == Role.CAPTAIN:
        return or_(
            Incident.user_id == identity.id,
            Incident.status.in_([s.value for s in SUBMITTED_STATUSES]),
        )
    return Incident.user_id == identity.id


def parse_coordinate(value: Optional[str], name: str, limit: float) -> Optional[float]:
    if value is None or str(value).strip() == "":
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValidationFailure(f"{name} must be a decimal number")
    if not math.isfinite(number) or abs(number) > limit:
        raise ValidationFailure(f"{name} must be between -{limit:g} and {limit:g}")
    return number


def initial_status(value: Optional[str]) -> IncidentStatus:
    if not value:
        return S.DRAFT
    try:
        status = IncidentStatus(value)
    except ValueError:
        raise ValidationFailure(f"Unknown status: {value}")
    if status not in CREATABLE_STATUSES:
        raise ValidationFailure(f"New incidents cannot start in {status.value}")
    return status


class IncidentWorkflow:
    def __init__(
        self,
        db: AsyncSession,
        blob_store: BlobStore,
        notifier: Optional[Notifier] = None,
        transition_policy: str = "strict",
        can_view: Optional[ViewPredicate] = None,
    ):
        if transition_policy not in TRANSITION_POLICIES:
            raise ValueError(f"Unknown transition policy: {transition_policy}")
        self.db = db
        self.blob_store = blob_store
        self.notifier = notifier or discard_event
        self.plan_transition = TRANSITION_POLICIES[transition_policy]
        self.can_view = can_view or can_view_any

    async def _execute(self, stmt):
        try:
            return await self.db.execute(stmt)
        except SQLAlchemyError as e:
            logger.exception("Incident query failed")
            raise PersistenceFailure("Could not read incidents") from e

    async def _commit(self, what: str):
        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.exception("Could not %s", what)
            raise PersistenceFailure(f"Could not {what}") from e

    def _query(self):
        return select(Incident).options(
            selectinload(Incident.attachments),
            selectinload(Incident.reporter),
            selectinload(Incident.approver),
        )

    async def _load(self, incident_id: int) -> Optional[Incident]:
        result = await self._execute(
            self._query()
            .where(Incident.id == incident_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def _discard_blobs(self, urls: Sequence[str]):
        for url in urls:
            try:
                await self.blob_store.delete(url)
            except Exception as e:
                logger.warning("Could not remove orphaned upload %s: %s", url, e)

    async def create(self, reporter_id: int, payload: IncidentCreate, blobs: Sequence[UploadedBlob] = ()) -> Incident:
        status = initial_status(payload.status)
        latitude = parse_coordinate(payload.latitude, "latitude", 90)
        longitude = parse_coordinate(payload.longitude, "longitude", 180)

        stored: List[Tuple[UploadedBlob, str]] = []
        try:
            for blob in blobs:
                stored.append((blob, await self.blob_store.save(blob)))
        except Exception as e:
            await self._discard_blobs([url for _, url in stored])
            logger.exception("Upload failed for incident by user %s", reporter_id)
            raise PersistenceFailure("Could not store attachment") from e

        incident = Incident(
            user_id=reporter_id,
            description=payload.description or "",
            voice_text=payload.voice_text or None,
            location=payload.location or None,
            latitude=latitude,
            longitude=longitude,
            status=status.value,
        )
        incident.attachments = [
            Attachment(type=classify_attachment(blob.content_type, blob.field_name).value, url=url)
            for blob, url in stored
        ]
        self.db.add(incident)
        try:
            await self._commit("save incident")
        except PersistenceFailure:
            await self._discard_blobs([url for _, url in stored])
            raise

        created = await self._load(incident.id)
        logger.info("User %s created incident %s (%s) with %d attachment(s)",
                    reporter_id, created.id, created.status, len(created.attachments))
        await self.notifier(incident_event("incident_created", created, reporter_id))
        return created

    async def list(self, identity: Identity) -> List[Incident]:
        result = await self._execute(
            self._query()
            .where(visibility_clause(identity))
            .order_by(Incident.created_at.desc(), Incident.id.desc())
        )
        return list(result.scalars().all())

    async def get_detail(self, incident_id: int, identity: Identity) -> Incident:
        incident = await self._load(incident_id)
        if incident is None:
            raise NotFound("Incident not found")
        if not self.can_view(identity, incident):
            raise Forbidden("You cannot view this incident")
        return incident

    async def transition(self, incident_id: int, identity: Identity, changes: IncidentUpdate) -> Incident:
        incident = await self._load(incident_id)
        if incident is None:
            raise NotFound("Incident not found")
        if changes.expected_status is not None and incident.status != changes.expected_status.value:
            raise Conflict(f"Incident is now {incident.status}")

        previous = incident.status
        try:
            updates = self.plan_transition(incident, identity, changes)
        except Forbidden as e:
            logger.warning("Denied %s %s on incident %s: %s",
                           identity.role.value, identity.id, incident_id, e.message)
            raise
        if not updates:
            return incident

        stmt = update(Incident).where(Incident.id == incident_id).values(**updates)
        if changes.expected_status is not None:
            stmt = stmt.where(Incident.status == changes.expected_status.value)
        result = await self._execute(stmt)
        if result.rowcount == 0:
            await self.db.rollback()
            raise Conflict("Incident was changed by someone else")
        await self._commit("update incident")

        updated = await self._load(incident_id)
        logger.info("%s %s updated incident %s: %s -> %s",
                    identity.role.value, identity.id, incident_id, previous, updated.status)
        kind = "incident_status_changed" if updated.status != previous else "incident_updated"
        await self.notifier(incident_event(kind, updated, identity.id))
        return updated
