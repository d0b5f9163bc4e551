from datetime import datetime, timedelta
from decimal import Decimal

import pytest
from httpx import AsyncClient

from greekdash.core.exceptions import FinanceAccessError
from greekdash.models import AuditLog, DuesPayment, Expense, Membership, Transaction
from greekdash.services.finance_service import check_finance_access


BASE = "/api/v1/chapters/alpha/finance"


def _budget_payload(**overrides) -> dict:
    start = datetime.utcnow()
    payload = {
        "name": "Fall Semester",
        "amount": "5000.00",
        "start_date": start.isoformat(),
        "end_date": (start + timedelta(days=120)).isoformat(),
        "status": "ACTIVE",
    }
    payload.update(overrides)
    return payload


def _due_date() -> str:
    return (datetime.utcnow() + timedelta(days=30)).isoformat()


@pytest.fixture
def basic_plan(chapter, set_plan):
    set_plan(chapter, "BASIC")
    return chapter


# ============== Contrôle d'accès ==============

@pytest.mark.asyncio
async def test_free_plan_blocks_finance_management(client: AsyncClient, owner_headers):
    response = await client.post(f"{BASE}/budgets", headers=owner_headers, json=_budget_payload())

    assert response.status_code == 403
    assert response.json()["code"] == "FINANCE_ACCESS_DENIED"


@pytest.mark.asyncio
async def test_free_plan_allows_member_read(client: AsyncClient, member_headers):
    budgets = await client.get(f"{BASE}/budgets", headers=member_headers)
    summary = await client.get(f"{BASE}/summary", headers=member_headers)

    assert budgets.status_code == 200
    assert budgets.json() == []
    assert summary.status_code == 200


@pytest.mark.asyncio
async def test_member_cannot_manage_budgets(client: AsyncClient, basic_plan, member_headers):
    response = await client.post(f"{BASE}/budgets", headers=member_headers, json=_budget_payload())

    assert response.status_code == 403
    assert response.json()["detail"] == "Admin role required for this finance operation"


def test_owner_level_requires_owner_and_pro(db_session, chapter, owner, admin, set_plan):
    owner_membership = db_session.query(Membership).filter(Membership.user_id == owner.id).one()
    admin_membership = db_session.query(Membership).filter(Membership.user_id == admin.id).one()

    set_plan(chapter, "BASIC")
    with pytest.raises(FinanceAccessError):
        check_finance_access(owner_membership, chapter, "OWNER")

    set_plan(chapter, "PRO")
    check_finance_access(owner_membership, chapter, "OWNER")
    with pytest.raises(FinanceAccessError):
        check_finance_access(admin_membership, chapter, "OWNER")


def test_pending_member_has_no_finance_access(db_session, chapter, make_user, add_member):
    pending = add_member(chapter, make_user("pending@example.com"), "PENDING_MEMBER")

    with pytest.raises(FinanceAccessError):
        check_finance_access(pending, chapter, "MEMBER")


# ============== Budgets ==============

@pytest.mark.asyncio
async def test_budget_lifecycle(client: AsyncClient, basic_plan, admin_headers):
    created = await client.post(f"{BASE}/budgets", headers=admin_headers, json=_budget_payload())
    assert created.status_code == 201
    budget = created.json()
    assert budget["spent_amount"] == 0
    assert budget["remaining_amount"] == 5000

    bad_dates = await client.put(
        f"{BASE}/budgets/{budget['id']}",
        headers=admin_headers,
        json={"end_date": (datetime.utcnow() - timedelta(days=10)).isoformat()},
    )
    assert bad_dates.status_code == 400

    renamed = await client.put(
        f"{BASE}/budgets/{budget['id']}",
        headers=admin_headers,
        json={"name": "Fall Semester 2026"},
    )
    assert renamed.json()["name"] == "Fall Semester 2026"

    deleted = await client.delete(f"{BASE}/budgets/{budget['id']}", headers=admin_headers)
    assert deleted.status_code == 204


@pytest.mark.asyncio
async def test_budget_with_expenses_cannot_be_deleted(client: AsyncClient, basic_plan, admin_headers):
    budget = (await client.post(f"{BASE}/budgets", headers=admin_headers, json=_budget_payload())).json()
    await client.post(
        f"{BASE}/expenses",
        headers=admin_headers,
        json={"title": "Decorations", "amount": "120.00", "budget_id": budget["id"]},
    )

    response = await client.delete(f"{BASE}/budgets/{budget['id']}", headers=admin_headers)

    assert response.status_code == 400
    assert response.json()["detail"] == "Cannot delete a budget with linked expenses"


# ============== Dépenses ==============

@pytest.mark.asyncio
async def test_paid_expense_records_single_transaction(client: AsyncClient, db_session, basic_plan, admin_headers):
    budget = (await client.post(f"{BASE}/budgets", headers=admin_headers, json=_budget_payload())).json()
    expense = (await client.post(
        f"{BASE}/expenses",
        headers=admin_headers,
        json={"title": "Catering", "amount": "250.50", "budget_id": budget["id"]},
    )).json()
    assert expense["status"] == "PENDING"

    approved = await client.put(f"{BASE}/expenses/{expense['id']}", headers=admin_headers, json={"status": "APPROVED"})
    assert approved.json()["approved_by_id"] is not None

    paid = await client.put(f"{BASE}/expenses/{expense['id']}", headers=admin_headers, json={"status": "PAID"})
    assert paid.status_code == 200
    assert paid.json()["paid_at"] is not None

    transactions = db_session.query(Transaction).filter(Transaction.expense_id == expense["id"]).all()
    assert len(transactions) == 1
    assert transactions[0].type == "EXPENSE"
    assert Decimal(transactions[0].amount) == Decimal("-250.50")

    reverted = await client.put(f"{BASE}/expenses/{expense['id']}", headers=admin_headers, json={"status": "PENDING"})
    assert reverted.status_code == 400

    refreshed = await client.get(f"{BASE}/budgets/{budget['id']}", headers=admin_headers)
    assert refreshed.json()["spent_amount"] == 250.5

    audit_actions = [a.action for a in db_session.query(AuditLog).all()]
    assert audit_actions.count("EXPENSE_STATUS_CHANGED") == 2


@pytest.mark.asyncio
async def test_expense_budget_must_belong_to_chapter(client: AsyncClient, basic_plan, admin_headers):
    response = await client.post(
        f"{BASE}/expenses",
        headers=admin_headers,
        json={"title": "Decorations", "amount": "10.00", "budget_id": 9999},
    )

    assert response.status_code == 400


@pytest.mark.asyncio
async def test_expense_budget_can_be_unlinked(client: AsyncClient, basic_plan, admin_headers):
    budget = (await client.post(f"{BASE}/budgets", headers=admin_headers, json=_budget_payload())).json()
    expense = (await client.post(
        f"{BASE}/expenses",
        headers=admin_headers,
        json={"title": "Banners", "amount": "60.00", "description": "Rush week", "budget_id": budget["id"]},
    )).json()

    response = await client.put(
        f"{BASE}/expenses/{expense['id']}",
        headers=admin_headers,
        json={"budget_id": None, "description": None, "title": None},
    )

    assert response.status_code == 200
    data = response.json()
    assert data["budget_id"] is None
    assert data["description"] is None
    assert data["title"] == "Banners"


@pytest.mark.asyncio
async def test_unknown_budget_not_found(client: AsyncClient, basic_plan, admin_headers):
    response = await client.get(f"{BASE}/budgets/9999", headers=admin_headers)

    assert response.status_code == 404
    assert response.json()["code"] == "BUDGET_NOT_FOUND"


@pytest.mark.asyncio
async def test_member_edits_only_own_pending_expense(
    client: AsyncClient, db_session, basic_plan, member, member_headers, admin, admin_headers
):
    own = Expense(chapter_id=basic_plan.id, title="Snacks", amount=Decimal("20.00"), submitted_by_id=member.id)
    other = Expense(chapter_id=basic_plan.id, title="Banner", amount=Decimal("80.00"), submitted_by_id=admin.id)
    db_session.add_all([own, other])
    db_session.commit()

    edited = await client.put(f"{BASE}/expenses/{own.id}", headers=member_headers, json={"title": "Snacks and drinks"})
    assert edited.status_code == 200

    forbidden = await client.put(f"{BASE}/expenses/{other.id}", headers=member_headers, json={"title": "Mine now"})
    assert forbidden.status_code == 403

    self_approve = await client.put(f"{BASE}/expenses/{own.id}", headers=member_headers, json={"status": "APPROVED"})
    assert self_approve.status_code == 403


@pytest.mark.asyncio
async def test_paid_expense_cannot_be_deleted(client: AsyncClient, basic_plan, admin_headers):
    expense = (await client.post(f"{BASE}/expenses", headers=admin_headers, json={"title": "DJ", "amount": "300.00"})).json()
    await client.put(f"{BASE}/expenses/{expense['id']}", headers=admin_headers, json={"status": "PAID"})

    response = await client.delete(f"{BASE}/expenses/{expense['id']}", headers=admin_headers)

    assert response.status_code == 400


@pytest.mark.asyncio
async def test_list_expenses_by_status(client: AsyncClient, basic_plan, admin_headers, member_headers):
    first = (await client.post(f"{BASE}/expenses", headers=admin_headers, json={"title": "Cups", "amount": "5.00"})).json()
    await client.post(f"{BASE}/expenses", headers=admin_headers, json={"title": "Plates", "amount": "7.00"})
    await client.put(f"{BASE}/expenses/{first['id']}", headers=admin_headers, json={"status": "DENIED"})

    pending = await client.get(f"{BASE}/expenses", headers=member_headers, params={"status": "PENDING"})

    assert [e["title"] for e in pending.json()] == ["Plates"]


# ============== Cotisations ==============

@pytest.mark.asyncio
async def test_dues_paid_creates_income(client: AsyncClient, db_session, basic_plan, member, admin_headers):
    dues = (await client.post(
        f"{BASE}/dues",
        headers=admin_headers,
        json={"user_id": member.id, "amount": "150.00", "due_date": _due_date(), "description": "Spring dues"},
    )).json()
    assert dues["is_paid"] is False

    paid = await client.put(f"{BASE}/dues/{dues['id']}", headers=admin_headers, json={"paid": True})
    assert paid.status_code == 200
    assert paid.json()["is_paid"] is True

    again = await client.put(f"{BASE}/dues/{dues['id']}", headers=admin_headers, json={"paid": True})
    assert again.status_code == 200

    transactions = db_session.query(Transaction).filter(Transaction.dues_payment_id == dues["id"]).all()
    assert len(transactions) == 1
    assert transactions[0].type == "DUES_PAYMENT"
    assert Decimal(transactions[0].amount) == Decimal("150.00")

    locked = await client.put(f"{BASE}/dues/{dues['id']}", headers=admin_headers, json={"amount": "10.00"})
    assert locked.status_code == 400
    undeletable = await client.delete(f"{BASE}/dues/{dues['id']}", headers=admin_headers)
    assert undeletable.status_code == 400

    actions = [a.action for a in db_session.query(AuditLog).all()]
    assert actions.count("DUES_PAID") == 1


@pytest.mark.asyncio
async def test_dues_for_non_member(client: AsyncClient, basic_plan, admin_headers, make_user):
    outsider = make_user("outsider@example.com")

    response = await client.post(
        f"{BASE}/dues",
        headers=admin_headers,
        json={"user_id": outsider.id, "amount": "50.00", "due_date": _due_date()},
    )

    assert response.status_code == 400
    assert response.json()["detail"] == "User is not an active member of this chapter"


@pytest.mark.asyncio
async def test_bulk_dues(client: AsyncClient, db_session, basic_plan, owner, member, admin, admin_headers):
    response = await client.post(
        f"{BASE}/dues/bulk",
        headers=admin_headers,
        json={
            "member_ids": [owner.id, member.id, admin.id, member.id],
            "amount": "75.00",
            "due_date": _due_date(),
        },
    )

    assert response.status_code == 201
    assert response.json()["created"] == 3
    assert db_session.query(DuesPayment).count() == 3


@pytest.mark.asyncio
async def test_bulk_dues_rejects_invalid_ids(client: AsyncClient, db_session, basic_plan, member, admin_headers):
    response = await client.post(
        f"{BASE}/dues/bulk",
        headers=admin_headers,
        json={"member_ids": [member.id, 424242], "amount": "75.00", "due_date": _due_date()},
    )

    assert response.status_code == 400
    assert response.json()["details"] == {"invalid_ids": [424242]}
    assert db_session.query(DuesPayment).count() == 0


@pytest.mark.asyncio
async def test_members_see_only_their_dues(
    client: AsyncClient, db_session, basic_plan, member, admin, member_headers, admin_headers
):
    due = datetime.utcnow() + timedelta(days=30)
    db_session.add_all([
        DuesPayment(chapter_id=basic_plan.id, user_id=member.id, amount=Decimal("100.00"), due_date=due),
        DuesPayment(chapter_id=basic_plan.id, user_id=admin.id, amount=Decimal("100.00"), due_date=due),
    ])
    db_session.commit()

    mine = await client.get(f"{BASE}/dues", headers=member_headers)
    everyone = await client.get(f"{BASE}/dues", headers=admin_headers, params={"status": "unpaid"})
    invalid = await client.get(f"{BASE}/dues", headers=admin_headers, params={"status": "late"})

    assert [d["user_id"] for d in mine.json()] == [member.id]
    assert len(everyone.json()) == 2
    assert invalid.status_code == 422


@pytest.mark.asyncio
async def test_checkout_other_members_dues_forbidden(
    client: AsyncClient, db_session, basic_plan, admin, member_headers
):
    dues = DuesPayment(
        chapter_id=basic_plan.id,
        user_id=admin.id,
        amount=Decimal("100.00"),
        due_date=datetime.utcnow() + timedelta(days=30),
    )
    db_session.add(dues)
    db_session.commit()

    response = await client.post(f"{BASE}/dues/{dues.id}/checkout", headers=member_headers)

    assert response.status_code == 403


# ============== Grand livre, synthèse, export ==============

@pytest.mark.asyncio
async def test_manual_transactions_and_filters(client: AsyncClient, basic_plan, admin_headers, member_headers):
    created = await client.post(
        f"{BASE}/transactions",
        headers=admin_headers,
        json={"amount": "500.00", "type": "INCOME", "description": "Alumni gift", "metadata": {"donor": "Class of 1999"}},
    )
    assert created.status_code == 201
    assert created.json()["metadata"] == {"donor": "Class of 1999"}

    await client.post(f"{BASE}/transactions", headers=admin_headers, json={"amount": "-40.00", "type": "OTHER"})

    income = await client.get(f"{BASE}/transactions", headers=member_headers, params={"type": "INCOME"})
    assert income.json()["total"] == 1
    assert income.json()["items"][0]["description"] == "Alumni gift"


@pytest.mark.asyncio
async def test_transaction_date_bounds_with_offset(client: AsyncClient, db_session, basic_plan, member_headers):
    db_session.add(Transaction(
        chapter_id=basic_plan.id,
        amount=Decimal("75.00"),
        type="INCOME",
        description="Car wash",
        processed_at=datetime(2026, 3, 1, 18, 0),
    ))
    db_session.commit()

    # 12:00-05:00 correspond à 17:00 UTC, avant la transaction
    before = await client.get(
        f"{BASE}/transactions", headers=member_headers, params={"end_date": "2026-03-01T12:00:00-05:00"}
    )
    after = await client.get(
        f"{BASE}/transactions", headers=member_headers, params={"start_date": "2026-03-01T12:00:00-05:00"}
    )

    assert before.json()["total"] == 0
    assert after.json()["total"] == 1


@pytest.mark.asyncio
async def test_summary(client: AsyncClient, db_session, basic_plan, member, admin_headers):
    due = datetime.utcnow() + timedelta(days=30)
    paid = DuesPayment(chapter_id=basic_plan.id, user_id=member.id, amount=Decimal("200.00"), due_date=due,
                       paid_at=datetime.utcnow())
    unpaid = DuesPayment(chapter_id=basic_plan.id, user_id=member.id, amount=Decimal("50.00"), due_date=due)
    spent = Expense(chapter_id=basic_plan.id, title="Venue", amount=Decimal("120.00"), status="PAID")
    waiting = Expense(chapter_id=basic_plan.id, title="Flowers", amount=Decimal("30.00"))
    db_session.add_all([paid, unpaid, spent, waiting])
    db_session.commit()

    response = await client.get(f"{BASE}/summary", headers=admin_headers)

    assert response.json() == {
        "total_income": 200.0,
        "total_expenses": 120.0,
        "balance": 80.0,
        "unpaid_dues": {"amount": 50.0, "count": 1},
        "pending_expenses": {"amount": 30.0, "count": 1},
        "active_budgets_count": 0,
    }


@pytest.mark.asyncio
async def test_export_requires_paid_plan(client: AsyncClient, owner_headers):
    response = await client.get(f"{BASE}/export", headers=owner_headers)

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_export_csv(client: AsyncClient, basic_plan, admin_headers, member_headers):
    await client.post(
        f"{BASE}/transactions",
        headers=admin_headers,
        json={"amount": "25.00", "type": "INCOME", "description": "Bake sale"},
    )

    denied = await client.get(f"{BASE}/export", headers=member_headers)
    assert denied.status_code == 403

    response = await client.get(f"{BASE}/export", headers=admin_headers)
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    assert 'filename="alpha-transactions-' in response.headers["content-disposition"]

    lines = response.text.strip().splitlines()
    assert lines[0] == "id,processed_at,type,amount,description,expense_id,dues_payment_id"
    assert "INCOME,25.00,Bake sale" in lines[1]
