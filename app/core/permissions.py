"""
Store permission model.

Defines the fourteen store-level permissions, the member roles and their
default permission sets, and the permissions implied by an access grant.
The resolver in app.services.permission_service only ever works with
frozensets of Permission; raw strings are converted at the persistence edge
by parse_permissions / serialize_permissions.
"""
import enum
from types import MappingProxyType
from typing import FrozenSet, Iterable, List, Mapping

from app.core.logging import get_logger

logger = get_logger(__name__)


class Permission(str, enum.Enum):
    # products
    view_products = "VIEW_PRODUCTS"
    create_products = "CREATE_PRODUCTS"
    edit_products = "EDIT_PRODUCTS"
    delete_products = "DELETE_PRODUCTS"
    # orders
    view_orders = "VIEW_ORDERS"
    process_orders = "PROCESS_ORDERS"
    cancel_orders = "CANCEL_ORDERS"
    # members
    view_members = "VIEW_MEMBERS"
    invite_members = "INVITE_MEMBERS"
    edit_permissions = "EDIT_PERMISSIONS"
    # access grants
    grant_access = "GRANT_ACCESS"
    revoke_access = "REVOKE_ACCESS"
    # analytics
    view_stats = "VIEW_STATS"
    export_reports = "EXPORT_REPORTS"


class MemberRole(str, enum.Enum):
    owner = "owner"
    admin = "admin"
    manager = "manager"
    staff = "staff"
    custom = "custom"


class AccessLevel(str, enum.Enum):
    view = "view"
    view_and_buy = "view_and_buy"


ALL_PERMISSIONS: FrozenSet[Permission] = frozenset(Permission)

# Roles that bypass the member's explicit permission set entirely.
SUPERUSER_ROLES: FrozenSet[MemberRole] = frozenset({MemberRole.owner, MemberRole.admin})

# Granted on any non-private store, member or not.
PUBLIC_STORE_PERMISSIONS: FrozenSet[Permission] = frozenset(
    {Permission.view_products, Permission.view_orders}
)


def _build_role_permissions() -> Mapping[MemberRole, FrozenSet[Permission]]:
    return MappingProxyType({
        MemberRole.owner: ALL_PERMISSIONS,
        MemberRole.admin: ALL_PERMISSIONS,
        MemberRole.manager: frozenset({
            Permission.view_products,
            Permission.create_products,
            Permission.edit_products,
            Permission.view_orders,
            Permission.process_orders,
            Permission.view_stats,
        }),
        MemberRole.staff: frozenset({Permission.view_products, Permission.view_orders}),
        MemberRole.custom: frozenset(),
    })


# Built once at import; PermissionService receives it by injection.
ROLE_PERMISSIONS: Mapping[MemberRole, FrozenSet[Permission]] = _build_role_permissions()

ACCESS_LEVEL_PERMISSIONS: Mapping[AccessLevel, FrozenSet[Permission]] = MappingProxyType({
    AccessLevel.view: frozenset({Permission.view_products, Permission.view_orders}),
    AccessLevel.view_and_buy: frozenset({
        Permission.view_products,
        Permission.view_orders,
        Permission.process_orders,
    }),
})


def parse_permission(value: str) -> Permission:
    """Resolve a permission from its canonical string, ignoring case."""
    return Permission(str(value).strip().upper())


def parse_permissions(raw) -> FrozenSet[Permission]:
    """
    Convert a stored permission list (JSON array of strings) into a typed set.
    Unknown entries are dropped; anything that isn't a list yields an empty set.
    """
    if not isinstance(raw, (list, tuple, set, frozenset)):
        return frozenset()

    parsed = set()
    for value in raw:
        if isinstance(value, Permission):
            parsed.add(value)
            continue
        if not isinstance(value, str):
            continue
        try:
            parsed.add(parse_permission(value))
        except ValueError:
            logger.warning("Ignoring unknown stored permission", value=value)
    return frozenset(parsed)


def serialize_permissions(permissions: Iterable[Permission]) -> List[str]:
    """Canonical storage form: sorted list of permission strings."""
    return sorted({Permission(p).value for p in permissions})
