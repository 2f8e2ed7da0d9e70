"""Tests for resolving token claims to users."""

import pytest

from cubord.exceptions import DataIntegrityError, InvalidArgumentError
from cubord.models.enums import UserRole
from cubord.models.user import User
from cubord.services.auth import TokenClaims, create_access_token, decode_access_token
from cubord.services.identity import IdentityResolver, username_from_email


def test_first_sight_creates_user(db):
    """Test a new subject gets a USER record with derived username."""
    claims = TokenClaims(subject="auth0|42", email="carol@example.com", name="Carol")

    user = IdentityResolver(db).resolve(claims)

    assert user.id is not None
    assert user.subject == "auth0|42"
    assert user.username == "carol"
    assert user.email == "carol@example.com"
    assert user.display_name == "Carol"
    assert user.role == UserRole.USER
    assert user.memberships == []


def test_resolve_is_idempotent(db):
    resolver = IdentityResolver(db)
    claims = TokenClaims(subject="auth0|42", email="carol@example.com", name="Carol")

    first = resolver.resolve(claims)
    second = resolver.resolve(claims)

    assert first.id == second.id
    assert db.query(User).count() == 1


def test_existing_user_is_not_updated_from_claims(db, user):
    claims = TokenClaims(subject=user.subject, email="changed@example.com", name="Changed")

    resolved = IdentityResolver(db).resolve(claims)

    assert resolved.id == user.id
    assert resolved.email == "alice@example.com"


def test_missing_email_and_name_fall_back(db):
    user = IdentityResolver(db).resolve(TokenClaims(subject="abc123"))

    assert user.email == "abc123@unknown.com"
    assert user.username == "abc123"
    assert user.display_name == "User"


@pytest.mark.parametrize("subject", [None, "", "   "])
def test_missing_subject_is_rejected(db, subject):
    with pytest.raises(InvalidArgumentError):
        IdentityResolver(db).resolve(TokenClaims(subject=subject, email="x@example.com"))
    assert db.query(User).count() == 0


def test_email_without_at_is_rejected():
    with pytest.raises(InvalidArgumentError):
        username_from_email("not-an-email")


def test_username_from_email():
    assert username_from_email("first.last@example.com") == "first.last"


def test_username_collision_is_a_data_integrity_error(db):
    """Test two identities sharing an email local part collide on username."""
    resolver = IdentityResolver(db)
    resolver.resolve(TokenClaims(subject="google|1", email="sam@gmail.com"))

    with pytest.raises(DataIntegrityError):
        resolver.resolve(TokenClaims(subject="github|2", email="sam@github.com"))


def test_token_round_trip():
    token = create_access_token("auth0|7", email="dee@example.com", name="Dee")

    claims = TokenClaims.from_payload(decode_access_token(token))

    assert claims == TokenClaims(subject="auth0|7", email="dee@example.com", name="Dee")


def test_decode_rejects_garbage():
    assert decode_access_token("not.a.token") is None
