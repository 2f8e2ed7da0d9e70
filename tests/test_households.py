"""Tests for households and their members."""

import uuid

import pytest

from cubord.exceptions import (
    ConflictError,
    ForbiddenError,
    InsufficientPermissionError,
    NotFoundError,
    ResourceStateError,
    ValidationError,
)
from cubord.models import Household, HouseholdMember, Location
from cubord.models.enums import HouseholdRole
from cubord.schemas.household import HouseholdCreate, HouseholdMemberCreate, HouseholdUpdate
from cubord.services.household_member_service import HouseholdMemberService
from cubord.services.household_service import HouseholdService


@pytest.fixture
def service(db):
    return HouseholdService(db)


@pytest.fixture
def members(db):
    return HouseholdMemberService(db)


def join(db, household, user, role=HouseholdRole.MEMBER):
    membership = HouseholdMember(household_id=household.id, user_id=user.id, role=role.value)
    db.add(membership)
    db.commit()
    db.refresh(membership)
    return membership


def role_of(db, household, user):
    membership = (
        db.query(HouseholdMember)
        .filter(HouseholdMember.household_id == household.id, HouseholdMember.user_id == user.id)
        .first()
    )
    return membership.role if membership else None


# Households


def test_create_household_makes_creator_owner(db, service, user):
    response = service.create_household(user, HouseholdCreate(name="Cabin"))

    assert response.name == "Cabin"
    household = db.query(Household).filter(Household.id == response.id).one()
    assert role_of(db, household, user) == HouseholdRole.OWNER.value


def test_create_household_name_taken(db, service, other_user, household):
    with pytest.raises(ConflictError, match="Home"):
        service.create_household(other_user, HouseholdCreate(name="Home"))
    assert db.query(Household).count() == 1


@pytest.mark.parametrize("name", [None, "", "   "])
def test_create_household_requires_name(service, user, name):
    with pytest.raises(ValidationError):
        service.create_household(user, HouseholdCreate(name=name))


def test_get_household(service, user, other_user, household):
    assert service.get_household(user, household.id).name == "Home"
    with pytest.raises(ForbiddenError):
        service.get_household(other_user, household.id)
    with pytest.raises(NotFoundError):
        service.get_household(user, uuid.uuid4())


def test_user_households_sorted_by_name(service, user, other_user, household):
    service.create_household(user, HouseholdCreate(name="Cabin"))
    service.create_household(other_user, HouseholdCreate(name="Flat"))

    assert [h.name for h in service.get_user_households(user)] == ["Cabin", "Home"]
    assert [h.name for h in service.get_user_households(other_user)] == ["Flat"]


def test_search_only_own_households(service, user, other_user, household):
    service.create_household(other_user, HouseholdCreate(name="Holiday home"))

    assert [h.name for h in service.search_households(user, "HOME")] == ["Home"]
    assert service.search_households(user, "%") == []
    with pytest.raises(ValidationError):
        service.search_households(user, " ")


def test_admin_can_rename(db, service, other_user, household):
    join(db, household, other_user, HouseholdRole.ADMIN)

    response = service.update_household(other_user, household.id, HouseholdUpdate(name="House"))

    assert response.name == "House"


def test_member_cannot_rename(db, service, other_user, household):
    join(db, household, other_user)

    with pytest.raises(InsufficientPermissionError):
        service.update_household(other_user, household.id, HouseholdUpdate(name="House"))


def test_rename_to_taken_name_conflicts(service, user, other_user, household):
    service.create_household(other_user, HouseholdCreate(name="Flat"))

    with pytest.raises(ConflictError):
        service.patch_household(user, household.id, {"name": "Flat"})
    assert service.update_household(user, household.id, HouseholdUpdate(name="Home")).name == "Home"


def test_patch_household_rejects_wrong_type(db, service, user, household):
    with pytest.raises(ValidationError):
        service.patch_household(user, household.id, {"name": 7})

    db.refresh(household)
    assert household.name == "Home"


def test_delete_household_cascades(db, service, user, other_user, household):
    join(db, household, other_user)
    db.add(Location(household_id=household.id, name="Kitchen"))
    db.commit()

    service.delete_household(user, household.id)

    assert db.query(Household).count() == 0
    assert db.query(HouseholdMember).count() == 0
    assert db.query(Location).count() == 0


def test_only_owner_deletes(db, service, other_user, household):
    join(db, household, other_user, HouseholdRole.ADMIN)

    with pytest.raises(InsufficientPermissionError):
        service.delete_household(other_user, household.id)
    assert db.query(Household).count() == 1


def test_leave_household(db, service, other_user, household):
    join(db, household, other_user)

    service.leave_household(other_user, household.id)

    assert role_of(db, household, other_user) is None


def test_owner_cannot_leave(service, user, household):
    with pytest.raises(ResourceStateError):
        service.leave_household(user, household.id)


def test_non_member_cannot_leave(service, other_user, household):
    with pytest.raises(ForbiddenError):
        service.leave_household(other_user, household.id)


def test_transfer_ownership(db, service, user, other_user, household):
    join(db, household, other_user)

    service.transfer_ownership(user, household.id, other_user.id)

    assert role_of(db, household, other_user) == HouseholdRole.OWNER.value
    assert role_of(db, household, user) == HouseholdRole.ADMIN.value


def test_transfer_ownership_rules(db, service, user, other_user, household):
    with pytest.raises(ValidationError):
        service.transfer_ownership(user, household.id, None)
    with pytest.raises(ValidationError, match="already own"):
        service.transfer_ownership(user, household.id, user.id)
    with pytest.raises(NotFoundError):
        service.transfer_ownership(user, household.id, other_user.id)

    join(db, household, other_user, HouseholdRole.ADMIN)
    with pytest.raises(InsufficientPermissionError):
        service.transfer_ownership(other_user, household.id, other_user.id)
    assert role_of(db, household, user) == HouseholdRole.OWNER.value


# Members


def test_add_member(members, user, other_user, household):
    response = members.add_member(user, household.id, HouseholdMemberCreate(user_id=other_user.id, role="MEMBER"))

    assert response.user_id == other_user.id
    assert response.username == "bob"
    assert response.household_name == "Home"
    assert response.role == HouseholdRole.MEMBER


def test_add_member_rules(db, members, user, other_user, household):
    with pytest.raises(ValidationError):
        members.add_member(user, household.id, HouseholdMemberCreate(user_id=other_user.id))
    with pytest.raises(ValidationError, match="Transfer ownership"):
        members.add_member(user, household.id, HouseholdMemberCreate(user_id=other_user.id, role="OWNER"))
    with pytest.raises(NotFoundError):
        members.add_member(user, household.id, HouseholdMemberCreate(user_id=uuid.uuid4(), role="MEMBER"))

    join(db, household, other_user)
    with pytest.raises(ConflictError):
        members.add_member(user, household.id, HouseholdMemberCreate(user_id=other_user.id, role="ADMIN"))


def test_plain_member_cannot_add(db, members, other_user, third_user, household):
    join(db, household, other_user)

    with pytest.raises(InsufficientPermissionError):
        members.add_member(other_user, household.id, HouseholdMemberCreate(user_id=third_user.id, role="MEMBER"))


def test_non_member_cannot_list(members, other_user, household):
    with pytest.raises(ForbiddenError):
        members.get_members(other_user, household.id)


def test_list_and_get_members(db, members, user, other_user, household):
    membership = join(db, household, other_user)

    assert sorted(m.username for m in members.get_members(other_user, household.id)) == ["alice", "bob"]
    assert members.get_member(user, household.id, membership.id).username == "bob"


def test_member_of_other_household_is_not_found(db, members, user, other_user, household):
    flat = Household(name="Flat")
    db.add(flat)
    db.flush()
    foreign = join(db, flat, other_user, HouseholdRole.OWNER)

    with pytest.raises(NotFoundError):
        members.get_member(user, household.id, foreign.id)


def test_remove_member(db, members, user, other_user, household):
    membership = join(db, household, other_user)

    members.remove_member(user, household.id, membership.id)

    assert role_of(db, household, other_user) is None


def test_owner_cannot_be_removed(db, members, user, other_user, household):
    join(db, household, other_user, HouseholdRole.ADMIN)
    owner = db.query(HouseholdMember).filter(HouseholdMember.user_id == user.id).one()

    with pytest.raises(ResourceStateError):
        members.remove_member(other_user, household.id, owner.id)


def test_admin_cannot_act_on_admin(db, members, other_user, third_user, household):
    join(db, household, other_user, HouseholdRole.ADMIN)
    carol = join(db, household, third_user, HouseholdRole.ADMIN)

    with pytest.raises(InsufficientPermissionError):
        members.remove_member(other_user, household.id, carol.id)
    with pytest.raises(InsufficientPermissionError):
        members.update_member_role(other_user, household.id, carol.id, HouseholdRole.MEMBER)


def test_update_member_role(db, members, user, other_user, household):
    membership = join(db, household, other_user)

    response = members.update_member_role(user, household.id, membership.id, HouseholdRole.ADMIN)

    assert response.role == HouseholdRole.ADMIN
    assert role_of(db, household, other_user) == HouseholdRole.ADMIN.value


def test_update_member_role_rules(db, members, user, household):
    owner = db.query(HouseholdMember).filter(HouseholdMember.user_id == user.id).one()

    with pytest.raises(ValidationError):
        members.update_member_role(user, household.id, owner.id, None)
    with pytest.raises(ValidationError):
        members.update_member_role(user, household.id, owner.id, HouseholdRole.OWNER)
    with pytest.raises(ResourceStateError):
        members.update_member_role(user, household.id, owner.id, HouseholdRole.MEMBER)


# API


def test_household_api(client, auth_headers, other_headers, other_user):
    """Test the household and member endpoints end to end."""
    response = client.post("/api/v1/households", headers=auth_headers, json={"name": "Cabin"})
    assert response.status_code == 201
    household_id = response.json()["id"]

    response = client.get("/api/v1/households", headers=auth_headers)
    assert [h["name"] for h in response.json()] == ["Cabin"]

    response = client.get("/api/v1/households/search", headers=auth_headers, params={"q": "cab"})
    assert [h["id"] for h in response.json()] == [household_id]

    response = client.patch(f"/api/v1/households/{household_id}", headers=auth_headers, json={"name": "Lodge"})
    assert response.json()["name"] == "Lodge"

    response = client.post(
        f"/api/v1/households/{household_id}/members",
        headers=auth_headers,
        json={"user_id": str(other_user.id), "role": "MEMBER"},
    )
    assert response.status_code == 201
    member_id = response.json()["id"]

    response = client.put(
        f"/api/v1/households/{household_id}/members/{member_id}/role",
        headers=auth_headers,
        json={"role": "ADMIN"},
    )
    assert response.json()["role"] == "ADMIN"

    response = client.get(f"/api/v1/households/{household_id}/members", headers=other_headers)
    assert sorted(m["username"] for m in response.json()) == ["alice", "bob"]

    response = client.post(
        f"/api/v1/households/{household_id}/transfer-ownership",
        headers=auth_headers,
        json={"new_owner_id": str(other_user.id)},
    )
    assert response.status_code == 204

    response = client.post(f"/api/v1/households/{household_id}/leave", headers=auth_headers)
    assert response.status_code == 204

    response = client.get(f"/api/v1/households/{household_id}", headers=auth_headers)
    assert response.status_code == 403


def test_household_api_owner_rules(client, auth_headers, household):
    response = client.post(f"/api/v1/households/{household.id}/leave", headers=auth_headers)
    assert response.status_code == 409
    assert response.json()["error"]["code"] == "INVALID_RESOURCE_STATE"

    response = client.delete(f"/api/v1/households/{household.id}", headers=auth_headers)
    assert response.status_code == 204


def test_household_api_member_permissions(client, db, other_headers, other_user, household):
    join(db, household, other_user)

    response = client.put(f"/api/v1/households/{household.id}", headers=other_headers, json={"name": "Mine"})

    assert response.status_code == 403
    assert response.json()["error"]["code"] == "INSUFFICIENT_PERMISSION"
