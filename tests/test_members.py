import pytest
from httpx import AsyncClient

from greekdash.models import AuditLog, Membership


@pytest.fixture
def pending_membership(chapter, make_user, add_member) -> Membership:
    user = make_user("pledge@example.com", name="Pat Pledge")
    return add_member(chapter, user, "PENDING_MEMBER")


@pytest.mark.asyncio
async def test_list_members_excludes_pending(client: AsyncClient, member_headers, pending_membership):
    response = await client.get("/api/v1/chapters/alpha/members/", headers=member_headers)

    assert response.status_code == 200
    emails = {m["user_email"] for m in response.json()["items"]}
    assert emails == {"owner@example.com", "member@example.com"}


@pytest.mark.asyncio
async def test_pending_list_admin_only(client: AsyncClient, owner_headers, member_headers, pending_membership):
    denied = await client.get("/api/v1/chapters/alpha/members/pending", headers=member_headers)
    assert denied.status_code == 403
    assert denied.json()["detail"] == "Admin access required"

    response = await client.get("/api/v1/chapters/alpha/members/pending", headers=owner_headers)
    assert response.json()["total"] == 1
    assert response.json()["items"][0]["user_email"] == "pledge@example.com"


@pytest.mark.asyncio
async def test_approve_pending_member(client: AsyncClient, db_session, owner_headers, pending_membership):
    response = await client.post(
        f"/api/v1/chapters/alpha/members/{pending_membership.id}/approve",
        headers=owner_headers,
    )

    assert response.status_code == 200
    assert response.json()["role"] == "MEMBER"
    db_session.refresh(pending_membership)
    assert pending_membership.role == "MEMBER"
    assert db_session.query(AuditLog).filter(AuditLog.action == "MEMBER_APPROVED").count() == 1


@pytest.mark.asyncio
async def test_approve_rejects_confirmed_member(client: AsyncClient, db_session, owner_headers, member):
    membership = db_session.query(Membership).filter(Membership.user_id == member.id).one()

    response = await client.post(
        f"/api/v1/chapters/alpha/members/{membership.id}/approve",
        headers=owner_headers,
    )

    assert response.status_code == 400


@pytest.mark.asyncio
async def test_member_cannot_approve(client: AsyncClient, member_headers, pending_membership):
    response = await client.post(
        f"/api/v1/chapters/alpha/members/{pending_membership.id}/approve",
        headers=member_headers,
    )

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_deny_deletes_request(client: AsyncClient, db_session, admin_headers, pending_membership):
    membership_id = pending_membership.id

    response = await client.post(
        f"/api/v1/chapters/alpha/members/{membership_id}/deny",
        headers=admin_headers,
    )

    assert response.status_code == 200
    assert db_session.query(Membership).filter(Membership.id == membership_id).first() is None


@pytest.mark.asyncio
async def test_membership_in_other_chapter_is_not_found(
    client: AsyncClient, db_session, owner_headers, make_user, add_member
):
    from greekdash.models import Chapter

    other = Chapter(name="Other", slug="other", join_code="OTHER001")
    db_session.add(other)
    db_session.commit()
    stranger = make_user("stranger@example.com")
    foreign = add_member(other, stranger, "PENDING_MEMBER")

    response = await client.post(
        f"/api/v1/chapters/alpha/members/{foreign.id}/approve",
        headers=owner_headers,
    )

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_change_role(client: AsyncClient, db_session, owner_headers, member):
    membership = db_session.query(Membership).filter(Membership.user_id == member.id).one()

    response = await client.put(
        f"/api/v1/chapters/alpha/members/{membership.id}/role",
        headers=owner_headers,
        json={"role": "ADMIN"},
    )

    assert response.status_code == 200
    assert response.json()["role"] == "ADMIN"
    audit = db_session.query(AuditLog).filter(AuditLog.action == "MEMBER_ROLE_CHANGED").one()
    assert audit.meta == {"from": "MEMBER", "to": "ADMIN"}


@pytest.mark.asyncio
async def test_cannot_promote_to_owner(client: AsyncClient, db_session, owner_headers, member):
    membership = db_session.query(Membership).filter(Membership.user_id == member.id).one()

    response = await client.put(
        f"/api/v1/chapters/alpha/members/{membership.id}/role",
        headers=owner_headers,
        json={"role": "OWNER"},
    )

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_owner_role_is_protected(client: AsyncClient, db_session, admin_headers, owner):
    owner_membership = db_session.query(Membership).filter(Membership.user_id == owner.id).one()

    change = await client.put(
        f"/api/v1/chapters/alpha/members/{owner_membership.id}/role",
        headers=admin_headers,
        json={"role": "MEMBER"},
    )
    remove = await client.delete(
        f"/api/v1/chapters/alpha/members/{owner_membership.id}",
        headers=admin_headers,
    )

    assert change.status_code == 403
    assert remove.status_code == 403


@pytest.mark.asyncio
async def test_admin_cannot_remove_self(client: AsyncClient, db_session, admin, admin_headers):
    membership = db_session.query(Membership).filter(Membership.user_id == admin.id).one()

    response = await client.delete(
        f"/api/v1/chapters/alpha/members/{membership.id}",
        headers=admin_headers,
    )

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_remove_member(client: AsyncClient, db_session, owner_headers, member):
    membership = db_session.query(Membership).filter(Membership.user_id == member.id).one()
    membership_id = membership.id

    response = await client.delete(
        f"/api/v1/chapters/alpha/members/{membership_id}",
        headers=owner_headers,
    )

    assert response.status_code == 204
    assert db_session.query(Membership).filter(Membership.id == membership_id).first() is None


@pytest.mark.asyncio
async def test_update_my_profile(client: AsyncClient, member_headers):
    response = await client.put(
        "/api/v1/chapters/alpha/members/me/profile",
        headers=member_headers,
        json={
            "name": "Max Member",
            "phone": "+1 (212) 555-1234",
            "major": "History",
            "grad_year": "2027",
            "bio": "Social chair",
        },
    )

    assert response.status_code == 200
    profile = response.json()["profile"]
    assert profile["phone"] == "+12125551234"
    assert profile["phone_verified"] is False
    assert profile["grad_year"] == "2027"


@pytest.mark.asyncio
async def test_update_profile_rejects_bad_phone(client: AsyncClient, member_headers):
    response = await client.put(
        "/api/v1/chapters/alpha/members/me/profile",
        headers=member_headers,
        json={"name": "Max Member", "phone": "555-1234"},
    )

    assert response.status_code == 422


# ============== Utilisateur ==============

@pytest.mark.asyncio
async def test_my_memberships(client: AsyncClient, member_headers):
    response = await client.get("/api/v1/users/me/memberships", headers=member_headers)

    assert response.status_code == 200
    assert response.json() == [
        {
            "id": response.json()[0]["id"],
            "role": "MEMBER",
            "chapter_id": response.json()[0]["chapter_id"],
            "chapter_slug": "alpha",
            "chapter_name": "Olivia's Chapter",
        }
    ]


@pytest.mark.asyncio
async def test_update_phone_applies_to_all_profiles(
    client: AsyncClient, db_session, chapter, member, member_headers, add_member
):
    from greekdash.models import Chapter

    second = Chapter(name="Second", slug="second", join_code="SECOND01")
    db_session.add(second)
    db_session.commit()
    add_member(second, member, "MEMBER")

    response = await client.put(
        "/api/v1/users/me/phone",
        headers=member_headers,
        json={"phone": "+447911123456", "sms_enabled": False},
    )

    assert response.status_code == 200
    assert response.json()["profiles_updated"] == 2

    memberships = db_session.query(Membership).filter(Membership.user_id == member.id).all()
    for membership in memberships:
        db_session.refresh(membership)
        assert membership.profile.phone == "+447911123456"
        assert membership.profile.sms_enabled is False
