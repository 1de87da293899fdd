"""
Tenant isolation boundary.

Every read and write of tenant-owned data goes through one of
``tenant_filter``, ``tenant_id_for_create`` or ``can_access``. The principal
is always passed in explicitly; nothing here reads request state.
"""
import logging
from typing import Optional

from django.contrib.auth import get_user_model
from django.db.models import Q

from ..exceptions import NotFoundError, TenantResolutionError

logger = logging.getLogger(__name__)

SUPER_ADMIN = "SUPER_ADMIN"
ADMIN = "ADMIN"


def _is_authenticated(principal):
    return principal is not None and getattr(principal, "is_authenticated", False)


def is_super_admin(principal) -> bool:
    return _is_authenticated(principal) and principal.role == SUPER_ADMIN


def resolve_tenant(principal) -> Optional[int]:
    """
    SUPER_ADMIN → None (no tenant, system-level access)
    ADMIN       → own pk (they own their tenant)
    others      → pk of the owning ADMIN
    """
    if not _is_authenticated(principal):
        return None
    if principal.role == SUPER_ADMIN:
        return None
    if principal.role == ADMIN:
        return principal.pk
    return principal.admin_id


def tenant_filter(principal) -> Q:
    """Predicate every tenant-owned query must apply."""
    if is_super_admin(principal):
        return Q()  # Super admin sees all

    admin_id = resolve_tenant(principal)
    if admin_id is None:
        # fail closed: a predicate no row can satisfy
        return Q(pk__in=[])
    return Q(admin_id=admin_id)


def tenant_id_for_create(principal) -> int:
    """Tenant id to stamp on records created on behalf of ``principal``."""
    if not _is_authenticated(principal):
        raise TenantResolutionError("Cannot create record: user not authenticated.")

    if principal.role == SUPER_ADMIN:
        # A super admin has no tenant of its own; write into the oldest one
        User = get_user_model()
        first_admin_id = (
            User.objects.filter(role=ADMIN)
            .order_by("date_joined", "pk")
            .values_list("pk", flat=True)
            .first()
        )
        if first_admin_id is None:
            raise TenantResolutionError(
                "Cannot create record: no Admin user found. Create an Admin user first."
            )
        return first_admin_id

    admin_id = resolve_tenant(principal)
    if admin_id is None:
        raise TenantResolutionError(
            "Cannot create record: user does not belong to a tenant. "
            "Please contact your administrator."
        )
    return admin_id


def can_access(principal, record_tenant_id) -> bool:
    if is_super_admin(principal):
        return True
    admin_id = resolve_tenant(principal)
    if admin_id is None:
        return False
    return admin_id == record_tenant_id


def get_scoped(queryset, principal, pk, label):
    """
    Fetch one row inside the principal's tenant.

    Missing rows and rows of another tenant raise the same error so callers
    cannot tell foreign records from missing ones.
    """
    if pk in (None, ""):
        raise NotFoundError(f"{label} not found or you do not have permission to access it.")
    try:
        return queryset.filter(tenant_filter(principal)).get(pk=pk)
    except (queryset.model.DoesNotExist, ValueError, TypeError):
        logger.info("%s %s not visible to user %s", label, pk, getattr(principal, "pk", None))
        raise NotFoundError(
            f"{label} not found or you do not have permission to access it.", id=pk
        )
