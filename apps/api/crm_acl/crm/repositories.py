from __future__ import annotations

import logging
import uuid
from collections.abc import Callable, Iterable
from typing import Any

from sqlalchemy import and_, or_, select
from sqlalchemy.orm import Session

from crm_acl.crm.models import CRMAccount, CRMAttachment, CRMEntityTeam, CRMNote, CRMNoteUser, CRMUserTeam
from crm_acl.platform.security.context import Principal
from crm_acl.platform.security.errors import RecordLookupError
from crm_acl.platform.security.records import (
    ATTACHMENT_ENTITY_TYPE,
    NOTE_ENTITY_TYPE,
    Attachment,
    Note,
    NoteTargetType,
    Record,
    RecordRef,
)
from crm_acl.platform.security.repository import BaseRepository
from crm_acl.platform.security.store import NOTE_USERS_RELATION


logger = logging.getLogger("crm_acl.crm")

ACCOUNT_ENTITY_TYPE = "Account"

RowMapper = Callable[["SqlRecordStore", Any], Record]


def _parse_uuid(entity_type: str, entity_id: str) -> uuid.UUID:
    try:
        return uuid.UUID(str(entity_id))
    except ValueError:
        raise RecordLookupError(entity_type, str(entity_id), "malformed id") from None


def _parse_target_type(note_id: uuid.UUID, value: str | None) -> NoteTargetType | None:
    if value is None:
        return None
    try:
        return NoteTargetType(value.strip().lower())
    except ValueError:
        logger.warning(
            "crm.note.unknown_target_type",
            extra={"entity_type": NOTE_ENTITY_TYPE, "entity_id": str(note_id), "reason": value},
        )
        return None


class SqlRecordStore:
    """``RecordStore`` over the CRM tables of one session.

    Soft-deleted rows count as missing. Team links are loaded from
    ``crm_entity_team`` for every entity type.
    """

    def __init__(self, session: Session) -> None:
        self._session = session
        self._models: dict[str, tuple[type[Any], RowMapper]] = {
            ACCOUNT_ENTITY_TYPE: (CRMAccount, SqlRecordStore._to_account),
            NOTE_ENTITY_TYPE: (CRMNote, SqlRecordStore._to_note),
            ATTACHMENT_ENTITY_TYPE: (CRMAttachment, SqlRecordStore._to_attachment),
        }

    def get_entity_by_id(self, entity_type: str, entity_id: str) -> Record | None:
        mapping = self._models.get(entity_type)
        if mapping is None:
            raise RecordLookupError(entity_type, str(entity_id), "unknown entity type")

        model, mapper = mapping
        row = self._session.scalar(
            select(model).where(and_(model.id == _parse_uuid(entity_type, entity_id), model.deleted_at.is_(None)))
        )
        if row is None:
            return None
        return mapper(self, row)

    def get_entity(self, entity_type: str, entity_id: str) -> Record | None:
        return self.get_entity_by_id(entity_type, entity_id)

    def map_row(self, entity_type: str, row: Any) -> Record:
        return self._models[entity_type][1](self, row)

    def is_related(self, record: Record, relation: str, user_id: str) -> bool:
        if record.entity_type != NOTE_ENTITY_TYPE or relation != NOTE_USERS_RELATION:
            raise RecordLookupError(record.entity_type, record.id, f"unknown relation '{relation}'")

        found = self._session.scalar(
            select(CRMNoteUser.note_id)
            .where(
                and_(
                    CRMNoteUser.note_id == _parse_uuid(record.entity_type, record.id),
                    CRMNoteUser.user_id == user_id,
                )
            )
            .limit(1)
        )
        return found is not None

    def _team_ids(self, entity_type: str, entity_id: uuid.UUID) -> list[str]:
        rows = self._session.scalars(
            select(CRMEntityTeam.team_id)
            .where(and_(CRMEntityTeam.entity_type == entity_type, CRMEntityTeam.entity_id == entity_id))
            .order_by(CRMEntityTeam.team_id.asc())
        ).all()
        return [str(row) for row in rows]

    def _to_account(self, row: CRMAccount) -> Record:
        return Record(
            entity_type=ACCOUNT_ENTITY_TYPE,
            id=str(row.id),
            owner_user_id=row.owner_user_id,
            assigned_user_ids=[row.assigned_user_id] if row.assigned_user_id else [],
            created_by_id=row.created_by_user_id,
            team_ids=self._team_ids(ACCOUNT_ENTITY_TYPE, row.id),
            attributes={"name": row.name, "status": row.status},
        )

    def _to_note(self, row: CRMNote) -> Note:
        user_ids = self._session.scalars(
            select(CRMNoteUser.user_id).where(CRMNoteUser.note_id == row.id).order_by(CRMNoteUser.user_id.asc())
        ).all()
        return Note(
            id=str(row.id),
            owner_user_id=row.owner_user_id,
            created_by_id=row.created_by_user_id,
            team_ids=self._team_ids(NOTE_ENTITY_TYPE, row.id),
            parent=RecordRef.of(row.parent_type, row.parent_id),
            related=RecordRef.of(row.related_type, row.related_id),
            target_type=_parse_target_type(row.id, row.target_type),
            user_ids=[str(user_id) for user_id in user_ids],
            attributes={"content": row.content},
        )

    def _to_attachment(self, row: CRMAttachment) -> Attachment:
        return Attachment(
            id=str(row.id),
            name=row.name,
            owner_user_id=row.owner_user_id,
            created_by_id=row.created_by_user_id,
            team_ids=self._team_ids(ATTACHMENT_ENTITY_TYPE, row.id),
            parent=RecordRef.of(row.parent_type, row.parent_id),
            related=RecordRef.of(row.related_type, row.related_id),
            target_field=row.field,
            attributes={"file_id": str(row.file_id) if row.file_id else None},
        )


def load_principal(
    session: Session,
    user_id: str,
    *,
    roles: Iterable[str] = (),
    permissions: Iterable[str] = (),
    is_admin: bool = False,
    correlation_id: str | None = None,
) -> Principal:
    """Build a principal with team memberships in their configured order."""

    team_ids = session.scalars(
        select(CRMUserTeam.team_id)
        .where(CRMUserTeam.user_id == user_id)
        .order_by(CRMUserTeam.position.asc(), CRMUserTeam.team_id.asc())
    ).all()
    return Principal(
        user_id=user_id,
        team_ids=[str(team_id) for team_id in team_ids],
        roles=list(roles),
        permissions=list(permissions),
        is_admin=is_admin,
        correlation_id=correlation_id,
    )


class AttachmentRepository(BaseRepository):
    resource = ATTACHMENT_ENTITY_TYPE

    def list_readable(self, session: Session, principal: Principal, parent: RecordRef) -> list[dict[str, Any]]:
        """Attachments linked to ``parent`` (as parent or related) that the principal may read."""

        parent_id = _parse_uuid(parent.entity_type, parent.id)
        rows = session.scalars(
            select(CRMAttachment)
            .where(
                and_(
                    CRMAttachment.deleted_at.is_(None),
                    or_(
                        and_(CRMAttachment.parent_type == parent.entity_type, CRMAttachment.parent_id == parent_id),
                        and_(CRMAttachment.related_type == parent.entity_type, CRMAttachment.related_id == parent_id),
                    ),
                )
            )
            .order_by(CRMAttachment.created_at.desc())
        ).all()

        store = SqlRecordStore(session)
        readable: list[dict[str, Any]] = []
        for row in rows:
            attachment = store.map_row(ATTACHMENT_ENTITY_TYPE, row)
            if self.can_read(principal, attachment):
                readable.append(attachment.to_dict())
        return self.apply_read_security_many(readable, principal)
