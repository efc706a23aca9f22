"""Tests for user account data access."""

import pytest

from app.core.security import verify_password
from app.models.user import UserRole
from app.services.users import (
    UserAlreadyExistsError,
    count_users,
    create_user,
    delete_user,
    get_user_by_email,
    list_users,
    mark_email_verified,
    update_two_factor,
    update_user,
)


@pytest.mark.asyncio
async def test_create_user_normalizes_email_and_hashes_password(test_session):
    user = await create_user(test_session, "  New.User@Example.COM ", "S3curePassword", first_name="New")

    assert user.email == "new.user@example.com"
    assert user.password_hash != "S3curePassword"
    assert verify_password("S3curePassword", user.password_hash)
    assert user.role == UserRole.USER.value
    assert user.email_verified is False
    assert user.token_version == 0
    assert user.display_name == "New"


@pytest.mark.asyncio
async def test_duplicate_email_rejected_case_insensitively(test_session, test_user):
    with pytest.raises(UserAlreadyExistsError):
        await create_user(test_session, "TEST@example.com", "S3curePassword")


@pytest.mark.asyncio
async def test_lookup_is_case_insensitive(test_session, test_user):
    found = await get_user_by_email(test_session, "Test@EXAMPLE.com")

    assert found is not None
    assert found.id == test_user.id


@pytest.mark.asyncio
async def test_password_change_bumps_token_version(test_session, test_user):
    await update_user(test_session, test_user, password="An0therPassword")

    assert test_user.token_version == 1
    assert verify_password("An0therPassword", test_user.password_hash)


@pytest.mark.asyncio
async def test_update_rejects_unknown_fields(test_session, test_user):
    with pytest.raises(ValueError):
        await update_user(test_session, test_user, password_hash="raw")


@pytest.mark.asyncio
async def test_update_rejects_unknown_role(test_session, test_user):
    with pytest.raises(ValueError):
        await update_user(test_session, test_user, role="superuser")


@pytest.mark.asyncio
async def test_invalid_role_leaves_other_fields_untouched(test_session, test_user):
    with pytest.raises(ValueError):
        await update_user(
            test_session, test_user, first_name="Changed", password="An0therPassword", role="superuser"
        )

    assert test_user.first_name == "Test"
    assert test_user.token_version == 0
    assert test_session.dirty == set()


@pytest.mark.asyncio
async def test_list_and_count(test_session, test_user, admin_user):
    users = await list_users(test_session)

    assert await count_users(test_session) == 2
    assert {u.email for u in users} == {"test@example.com", "admin@example.com"}


@pytest.mark.asyncio
async def test_delete_user(test_session, test_user):
    assert await delete_user(test_session, test_user.id) is True
    assert await delete_user(test_session, test_user.id) is False


@pytest.mark.asyncio
async def test_mark_email_verified(test_session):
    user = await create_user(test_session, "verify@example.com", "S3curePassword")

    assert await mark_email_verified(test_session, user.id) is True
    assert user.email_verified is True


@pytest.mark.asyncio
async def test_disabling_two_factor_clears_secret_and_codes(test_session, test_user):
    await update_two_factor(test_session, test_user, enabled=True, secret="JBSWY3DPEHPK3PXP", backup_codes=["x"])
    assert test_user.two_factor_enabled is True
    assert test_user.two_factor_backup_codes == ["x"]

    await update_two_factor(test_session, test_user, enabled=False)

    assert test_user.two_factor_enabled is False
    assert test_user.two_factor_secret is None
    assert test_user.two_factor_backup_codes is None
