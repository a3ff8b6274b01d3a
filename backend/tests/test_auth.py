"""Unit tests for auth: JWT helpers, dependency logic and the permission matrix."""

import uuid
from datetime import timedelta

import pytest
from fastapi import HTTPException

from marketplace.core.deps import get_current_user, require_permission, require_role
from marketplace.core.rbac import ROLE_PERMISSIONS, PermissionAction, RoleType, permissions_for
from marketplace.core.security import create_access_token, decode_access_token
from marketplace.schemas.auth import CurrentUser


# ── JWT ────────────────────────────────────────────

def test_create_and_decode_token():
    uid = uuid.uuid4()
    vid = uuid.uuid4()
    token = create_access_token(
        user_id=uid,
        role="vendor",
        permissions=["inventory:read", "inventory:update"],
        vendor_id=vid,
    )
    payload = decode_access_token(token)
    assert payload["sub"] == str(uid)
    assert payload["vendor_id"] == str(vid)
    assert payload["role"] == "vendor"
    assert "inventory:read" in payload["permissions"]


def test_expired_token():
    token = create_access_token(
        user_id=uuid.uuid4(),
        role="customer",
        permissions=[],
        expires_delta=timedelta(seconds=-1),
    )
    with pytest.raises(Exception):
        decode_access_token(token)


# ── Dependencies ───────────────────────────────────

@pytest.mark.asyncio
async def test_get_current_user_from_token():
    uid = uuid.uuid4()
    token = create_access_token(user_id=uid, role="customer", permissions=permissions_for("customer"))

    user = await get_current_user(token)

    assert user.id == uid
    assert user.vendor_id is None
    assert user.is_admin is False
    assert "order:cancel" in user.permissions


@pytest.mark.asyncio
async def test_get_current_user_rejects_garbage():
    with pytest.raises(HTTPException) as exc_info:
        await get_current_user("not-a-jwt")
    assert exc_info.value.status_code == 401


@pytest.mark.asyncio
async def test_require_permission_missing():
    user = CurrentUser(id=uuid.uuid4(), email="", role="vendor", permissions=permissions_for("vendor"))
    checker = require_permission("order:cancel")

    with pytest.raises(HTTPException) as exc_info:
        await checker(user)

    assert exc_info.value.status_code == 403
    assert "order:cancel" in exc_info.value.detail


@pytest.mark.asyncio
async def test_require_role():
    admin = CurrentUser(id=uuid.uuid4(), email="", role="admin", permissions=[])
    assert await require_role("admin")(admin) is admin

    with pytest.raises(HTTPException):
        await require_role("admin")(CurrentUser(id=uuid.uuid4(), email="", role="customer", permissions=[]))


# ── Permission matrix sanity ──────────────────────

def test_rbac_matrix():
    # Admin has ALL permissions
    assert set(ROLE_PERMISSIONS[RoleType.ADMIN]) == set(PermissionAction)

    admin = set(ROLE_PERMISSIONS[RoleType.ADMIN])
    assert set(ROLE_PERMISSIONS[RoleType.VENDOR]) <= admin
    assert set(ROLE_PERMISSIONS[RoleType.CUSTOMER]) <= admin

    # Only admins trigger sweeps or recalculate commissions
    assert PermissionAction.INVENTORY_SWEEP not in ROLE_PERMISSIONS[RoleType.VENDOR]
    assert PermissionAction.COMMISSION_RECALCULATE not in ROLE_PERMISSIONS[RoleType.CUSTOMER]


def test_permissions_for_unknown_role():
    assert permissions_for("cashier") == []
    assert "inventory:delete" in permissions_for("admin")
