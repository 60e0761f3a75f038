from __future__ import annotations

from collections.abc import Iterable

from sqlalchemy import and_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from crm_acl.authz.models import Permission, Role, RolePermission, UserRole
from crm_acl.authz.schemas import PermissionRead, RoleDefinition, RoleRead
from crm_acl.platform.security.errors import AclError
from crm_acl.platform.security.policies import LEVEL_SCOPE_TYPE


class RoleConflictError(AclError):
    """Raised when a role or role assignment already exists."""


class RoleNotFoundError(AclError, LookupError):
    """Raised when a role name does not exist."""


class AuthorizationAdminService:
    def seed_role(self, session: Session, definition: RoleDefinition, *, user_ids: Iterable[str] = ()) -> RoleRead:
        role = Role(name=definition.name.strip(), description=definition.description, is_system=definition.is_system)
        session.add(role)
        try:
            session.flush()
        except IntegrityError:
            session.rollback()
            raise RoleConflictError(f"role already exists: {definition.name}") from None

        for grant in definition.grants:
            permission = self._get_or_create_permission(
                session,
                resource=grant.scope,
                action=grant.action,
                field=None,
                scope_type=LEVEL_SCOPE_TYPE,
                scope_value=grant.level,
                effect="deny" if grant.level == "no" else "allow",
            )
            session.add(RolePermission(role_id=role.id, permission_id=permission.id))

        for item in definition.forbidden_fields:
            permission = self._get_or_create_permission(
                session,
                resource=item.scope,
                action=f"field.{item.action}",
                field=item.field,
                scope_type=None,
                scope_value=None,
                effect="deny",
            )
            session.add(RolePermission(role_id=role.id, permission_id=permission.id))

        for user_id in user_ids:
            session.add(UserRole(user_id=user_id, role_id=role.id))

        session.commit()
        session.refresh(role)
        return RoleRead.model_validate(role)

    def assign_user_role(self, session: Session, user_id: str, role_name: str) -> None:
        role = session.scalar(select(Role).where(Role.name == role_name))
        if role is None:
            raise RoleNotFoundError(f"role not found: {role_name}")

        session.add(UserRole(user_id=user_id, role_id=role.id))
        try:
            session.commit()
        except IntegrityError:
            session.rollback()
            raise RoleConflictError(f"user {user_id} already has role {role_name}") from None

    def list_role_permissions(self, session: Session, role_name: str) -> list[PermissionRead]:
        rows = session.scalars(
            select(Permission)
            .join(RolePermission, RolePermission.permission_id == Permission.id)
            .join(Role, Role.id == RolePermission.role_id)
            .where(Role.name == role_name)
            .order_by(Permission.resource.asc(), Permission.action.asc(), Permission.field.asc())
        ).all()
        return [PermissionRead.model_validate(row) for row in rows]

    @staticmethod
    def _get_or_create_permission(
        session: Session,
        *,
        resource: str,
        action: str,
        field: str | None,
        scope_type: str | None,
        scope_value: str | None,
        effect: str,
    ) -> Permission:
        existing = session.scalar(
            select(Permission).where(
                and_(
                    Permission.resource == resource,
                    Permission.action == action,
                    Permission.field.is_(None) if field is None else Permission.field == field,
                    Permission.scope_type.is_(None) if scope_type is None else Permission.scope_type == scope_type,
                    Permission.scope_value.is_(None) if scope_value is None else Permission.scope_value == scope_value,
                    Permission.effect == effect,
                )
            )
        )
        if existing is not None:
            return existing

        permission = Permission(
            resource=resource,
            action=action,
            field=field,
            scope_type=scope_type,
            scope_value=scope_value,
            effect=effect,
        )
        session.add(permission)
        session.flush()
        return permission


authorization_admin_service = AuthorizationAdminService()
