"""
Tests for the user directory.
"""

import asyncio
import dataclasses

import pytest

from hustle_village_api.app.core.errors import NotFoundError, ValidationError
from hustle_village_api.app.services.user_service import UserDirectory


@pytest.fixture(name="users")
def users_fixture(client, app):
    return UserDirectory(app.state.db, app.state.settings)


def test_upsert_then_lookup(users):
    created = asyncio.run(users.upsert_verified(" Ama@Ashesi.edu.gh ", "sub-1", "Ama", "+233"))
    assert created.email == "ama@ashesi.edu.gh"
    assert asyncio.run(users.get_by_id(created.id)) == created
    assert asyncio.run(users.get_by_email("AMA@ashesi.edu.gh")) == created
    assert asyncio.run(users.get_by_id(created.id + 1)) is None


def test_upsert_keeps_existing_values_when_blank(users):
    first = asyncio.run(users.upsert_verified("ama@ashesi.edu.gh", "sub-1", "Ama", "+233"))
    second = asyncio.run(users.upsert_verified("ama@ashesi.edu.gh", "sub-1", "", ""))
    assert second.id == first.id
    assert second.full_name == "Ama"
    assert second.phone_number == "+233"


def test_set_role(users):
    asyncio.run(users.upsert_verified("ama@ashesi.edu.gh", "sub-1", "Ama", "+233"))
    assert asyncio.run(users.set_role("ama@ashesi.edu.gh", "admin")).role == "admin"
    assert asyncio.run(users.set_role("ama@ashesi.edu.gh", "user")).role == "user"


def test_set_role_rejects_unknown_role(users):
    with pytest.raises(ValidationError):
        asyncio.run(users.set_role("ama@ashesi.edu.gh", "superuser"))


def test_set_role_unknown_user(users):
    with pytest.raises(NotFoundError):
        asyncio.run(users.set_role("nobody@ashesi.edu.gh", "admin"))


@pytest.mark.parametrize(
    "email, allowed",
    [
        ("ama@ashesi.edu.gh", True),
        ("AMA@ASHESI.EDU.GH", True),
        ("ama@cs.ashesi.edu.gh", True),
        ("ama@gmail.com", False),
        ("ama@fakeashesi.edu.gh", False),
        ("ama@@ashesi.edu.gh", False),
        ("ama", False),
    ],
)
def test_is_allowed_email(users, email, allowed):
    assert users.is_allowed_email(email) is allowed


def test_multiple_allowed_domains(settings, app):
    widened = dataclasses.replace(settings, allowed_email_domains="ashesi.edu.gh, ug.edu.gh")
    users = UserDirectory(app.state.db, widened)
    assert users.is_allowed_email("kofi@ug.edu.gh")


def test_upsert_refuses_other_domains(users, app):
    with pytest.raises(ValidationError):
        asyncio.run(users.upsert_verified("mallory@gmail.com", "sub-x", "Mallory", "+1"))
    assert asyncio.run(users.get_by_email("mallory@gmail.com")) is None
