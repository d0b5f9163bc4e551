"""
Routes financières d'un chapitre.
Budgets, dépenses, cotisations, grand livre, synthèse et export CSV.
"""

from datetime import datetime
from typing import Any, List, Optional

from fastapi import APIRouter, Depends, HTTPException, status, Query
from fastapi.responses import Response
from sqlalchemy.orm import Session

from greekdash.database import get_db
from greekdash.core.exceptions import NotFoundError
from greekdash.core.logging import logger
from greekdash.models.chapter import Membership, ACTIVE_ROLES
from greekdash.models.finance import (
    Budget,
    Expense,
    ExpenseStatus,
    DuesPayment,
    Transaction,
    TransactionType,
)
from greekdash.models.audit import AuditAction, AuditTargetType
from greekdash.schemas.finance import (
    BudgetCreate,
    BudgetUpdate,
    BudgetResponse,
    ExpenseCreate,
    ExpenseUpdate,
    ExpenseResponse,
    DuesCreate,
    BulkDuesCreate,
    DuesUpdate,
    DuesResponse,
    BulkDuesResponse,
    CheckoutResponse,
    TransactionCreate,
    TransactionResponse,
    TransactionListResponse,
    FinanceSummary,
)
from greekdash.schemas.event import to_naive_utc
from greekdash.api.deps import ChapterContext, chapter_member, finance_member, finance_admin
from greekdash.services.audit_service import log_audit_entry
from greekdash.services.billing_service import billing_service
from greekdash.services.finance_service import (
    check_finance_access,
    check_export_access,
    record_expense_payment,
    mark_dues_paid,
    create_bulk_dues,
    get_finance_summary,
    export_transactions_csv,
)


router = APIRouter()


def _changes(data, clearable: tuple = ()) -> dict:
    """Champs envoyés par le client ; un null explicite n'efface que les champs facultatifs."""
    return {
        field: value
        for field, value in data.model_dump(exclude_unset=True).items()
        if value is not None or field in clearable
    }


def _get_budget(db: Session, ctx: ChapterContext, budget_id: int) -> Budget:
    budget = db.query(Budget).filter(
        Budget.id == budget_id,
        Budget.chapter_id == ctx.chapter.id,
    ).first()
    if not budget:
        raise NotFoundError("Budget", budget_id)
    return budget


def _get_expense(db: Session, ctx: ChapterContext, expense_id: int) -> Expense:
    expense = db.query(Expense).filter(
        Expense.id == expense_id,
        Expense.chapter_id == ctx.chapter.id,
    ).first()
    if not expense:
        raise NotFoundError("Expense", expense_id)
    return expense


def _get_dues(db: Session, ctx: ChapterContext, dues_id: int) -> DuesPayment:
    dues = db.query(DuesPayment).filter(
        DuesPayment.id == dues_id,
        DuesPayment.chapter_id == ctx.chapter.id,
    ).first()
    if not dues:
        raise NotFoundError("Dues payment", dues_id)
    return dues


def _check_budget_belongs(db: Session, ctx: ChapterContext, budget_id: Optional[int]) -> None:
    """Une dépense ne peut être rattachée qu'à un budget du même chapitre."""
    if budget_id is None:
        return
    exists = db.query(Budget.id).filter(
        Budget.id == budget_id,
        Budget.chapter_id == ctx.chapter.id,
    ).first()
    if not exists:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Budget does not belong to this chapter",
        )


# ============== Budgets ==============

@router.get(
    "/budgets",
    response_model=List[BudgetResponse],
    summary="Budgets du chapitre",
)
async def list_budgets(
    ctx: ChapterContext = Depends(finance_member),
    db: Session = Depends(get_db),
) -> Any:
    return db.query(Budget).filter(
        Budget.chapter_id == ctx.chapter.id,
    ).order_by(Budget.start_date.desc()).all()


@router.post(
    "/budgets",
    response_model=BudgetResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Créer un budget",
)
async def create_budget(
    data: BudgetCreate,
    ctx: ChapterContext = Depends(finance_admin),
    db: Session = Depends(get_db),
) -> Any:
    budget = Budget(
        chapter_id=ctx.chapter.id,
        name=data.name,
        description=data.description,
        amount=data.amount,
        start_date=data.start_date,
        end_date=data.end_date,
        status=data.status.value,
    )
    db.add(budget)
    db.commit()
    db.refresh(budget)

    logger.info(f"Budget '{budget.name}' créé ({ctx.chapter.slug}): {budget.amount} USD")
    return budget


@router.get(
    "/budgets/{budget_id}",
    response_model=BudgetResponse,
    summary="Détails d'un budget",
)
async def get_budget(
    budget_id: int,
    ctx: ChapterContext = Depends(finance_member),
    db: Session = Depends(get_db),
) -> Any:
    return _get_budget(db, ctx, budget_id)


@router.put(
    "/budgets/{budget_id}",
    response_model=BudgetResponse,
    summary="Modifier un budget",
)
async def update_budget(
    budget_id: int,
    data: BudgetUpdate,
    ctx: ChapterContext = Depends(finance_admin),
    db: Session = Depends(get_db),
) -> Any:
    budget = _get_budget(db, ctx, budget_id)
    update_data = _changes(data, ("description",))

    start_date = update_data.get("start_date", budget.start_date)
    end_date = update_data.get("end_date", budget.end_date)
    if end_date <= start_date:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="End date must be after start date",
        )

    if "status" in update_data:
        update_data["status"] = update_data["status"].value

    for field, value in update_data.items():
        setattr(budget, field, value)

    db.commit()
    db.refresh(budget)

    logger.info(f"Budget {budget.id} mis à jour par {ctx.user.email}")
    return budget


@router.delete(
    "/budgets/{budget_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Supprimer un budget",
)
async def delete_budget(
    budget_id: int,
    ctx: ChapterContext = Depends(finance_admin),
    db: Session = Depends(get_db),
) -> None:
    """
    Supprime un budget. Refusé tant que des dépenses y sont rattachées.
    """
    budget = _get_budget(db, ctx, budget_id)

    if budget.expenses:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot delete a budget with linked expenses",
        )

    db.delete(budget)
    db.commit()
    logger.info(f"Budget {budget_id} supprimé ({ctx.chapter.slug})")


# ============== Dépenses ==============

@router.get(
    "/expenses",
    response_model=List[ExpenseResponse],
    summary="Dépenses du chapitre",
)
async def list_expenses(
    status_filter: Optional[ExpenseStatus] = Query(None, alias="status"),
    budget_id: Optional[int] = Query(None),
    ctx: ChapterContext = Depends(finance_member),
    db: Session = Depends(get_db),
) -> Any:
    query = db.query(Expense).filter(Expense.chapter_id == ctx.chapter.id)

    if status_filter:
        query = query.filter(Expense.status == status_filter.value)
    if budget_id is not None:
        query = query.filter(Expense.budget_id == budget_id)

    return query.order_by(Expense.submitted_at.desc(), Expense.id.desc()).all()


@router.post(
    "/expenses",
    response_model=ExpenseResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Soumettre une dépense",
)
async def create_expense(
    data: ExpenseCreate,
    ctx: ChapterContext = Depends(finance_admin),
    db: Session = Depends(get_db),
) -> Any:
    """
    Enregistre une dépense en statut PENDING.

    - **budget_id**: Budget du même chapitre (optionnel)
    """
    _check_budget_belongs(db, ctx, data.budget_id)

    expense = Expense(
        chapter_id=ctx.chapter.id,
        budget_id=data.budget_id,
        title=data.title,
        description=data.description,
        amount=data.amount,
        receipt_url=data.receipt_url,
        status=ExpenseStatus.PENDING.value,
        submitted_by_id=ctx.user.id,
    )
    db.add(expense)
    db.commit()
    db.refresh(expense)

    logger.info(f"Dépense '{expense.title}' soumise par {ctx.user.email}: {expense.amount} USD")
    return expense


@router.get(
    "/expenses/{expense_id}",
    response_model=ExpenseResponse,
    summary="Détails d'une dépense",
)
async def get_expense(
    expense_id: int,
    ctx: ChapterContext = Depends(finance_member),
    db: Session = Depends(get_db),
) -> Any:
    return _get_expense(db, ctx, expense_id)


@router.put(
    "/expenses/{expense_id}",
    response_model=ExpenseResponse,
    summary="Modifier une dépense",
)
async def update_expense(
    expense_id: int,
    data: ExpenseUpdate,
    ctx: ChapterContext = Depends(finance_member),
    db: Session = Depends(get_db),
) -> Any:
    """
    Modifie une dépense.

    - L'auteur peut modifier sa dépense tant qu'elle est PENDING
    - Les administrateurs peuvent modifier toute dépense
    - Le changement de statut est réservé aux administrateurs ;
      le passage à PAID enregistre la transaction de sortie
    """
    expense = _get_expense(db, ctx, expense_id)
    update_data = _changes(data, ("description", "receipt_url", "budget_id"))

    is_submitter = expense.submitted_by_id == ctx.user.id
    if not ctx.is_admin and not (
        is_submitter and expense.status == ExpenseStatus.PENDING.value
    ):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You can only edit your own pending expenses",
        )

    new_status = update_data.pop("status", None)
    if new_status is not None:
        check_finance_access(ctx.membership, ctx.chapter, "ADMIN")

    if "budget_id" in update_data:
        _check_budget_belongs(db, ctx, update_data["budget_id"])

    for field, value in update_data.items():
        setattr(expense, field, value)

    previous_status = expense.status
    if new_status is not None and new_status.value != previous_status:
        if previous_status == ExpenseStatus.PAID.value:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="A paid expense cannot change status",
            )

        now = datetime.utcnow()
        expense.status = new_status.value
        if new_status in (ExpenseStatus.APPROVED, ExpenseStatus.DENIED):
            expense.approved_by_id = ctx.user.id
            expense.approved_at = now
        elif new_status == ExpenseStatus.PAID:
            if expense.approved_by_id is None:
                expense.approved_by_id = ctx.user.id
                expense.approved_at = now
            expense.paid_at = now
            record_expense_payment(db, expense)

    db.commit()
    db.refresh(expense)

    if new_status is not None and expense.status != previous_status:
        logger.info(f"Dépense {expense.id}: {previous_status} -> {expense.status}")
        log_audit_entry(
            db,
            chapter_id=ctx.chapter.id,
            user_id=ctx.user.id,
            action=AuditAction.EXPENSE_STATUS_CHANGED,
            target_type=AuditTargetType.EXPENSE,
            target_id=expense.id,
            metadata={
                "from": previous_status,
                "to": expense.status,
                "amount": str(expense.amount),
            },
        )

    return expense


@router.delete(
    "/expenses/{expense_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Supprimer une dépense",
)
async def delete_expense(
    expense_id: int,
    ctx: ChapterContext = Depends(finance_admin),
    db: Session = Depends(get_db),
) -> None:
    expense = _get_expense(db, ctx, expense_id)

    if expense.status == ExpenseStatus.PAID.value:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot delete a paid expense",
        )

    db.delete(expense)
    db.commit()
    logger.info(f"Dépense {expense_id} supprimée ({ctx.chapter.slug})")


# ============== Cotisations ==============

@router.get(
    "/dues",
    response_model=List[DuesResponse],
    summary="Cotisations",
)
async def list_dues(
    status_filter: Optional[str] = Query(None, alias="status", pattern="^(paid|unpaid)$"),
    ctx: ChapterContext = Depends(finance_member),
    db: Session = Depends(get_db),
) -> Any:
    """
    Les administrateurs voient toutes les cotisations, les membres seulement les leurs.

    - **status**: paid ou unpaid
    """
    query = db.query(DuesPayment).filter(DuesPayment.chapter_id == ctx.chapter.id)

    if not ctx.is_admin:
        query = query.filter(DuesPayment.user_id == ctx.user.id)

    if status_filter == "paid":
        query = query.filter(DuesPayment.paid_at.isnot(None))
    elif status_filter == "unpaid":
        query = query.filter(DuesPayment.paid_at.is_(None))

    return query.order_by(DuesPayment.due_date.asc(), DuesPayment.id.asc()).all()


@router.post(
    "/dues",
    response_model=DuesResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Créer une cotisation",
)
async def create_dues(
    data: DuesCreate,
    ctx: ChapterContext = Depends(finance_admin),
    db: Session = Depends(get_db),
) -> Any:
    member = db.query(Membership).filter(
        Membership.chapter_id == ctx.chapter.id,
        Membership.user_id == data.user_id,
        Membership.role.in_(ACTIVE_ROLES),
    ).first()
    if not member:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="User is not an active member of this chapter",
        )

    dues = DuesPayment(
        chapter_id=ctx.chapter.id,
        user_id=data.user_id,
        amount=data.amount,
        due_date=data.due_date,
        description=data.description,
    )
    db.add(dues)
    db.commit()
    db.refresh(dues)

    logger.info(f"Cotisation {dues.id} créée pour l'utilisateur {dues.user_id}: {dues.amount} USD")

    log_audit_entry(
        db,
        chapter_id=ctx.chapter.id,
        user_id=ctx.user.id,
        action=AuditAction.DUES_CREATED,
        target_type=AuditTargetType.DUES_PAYMENT,
        target_id=dues.id,
        metadata={"member_id": dues.user_id, "amount": str(dues.amount)},
    )

    return dues


@router.post(
    "/dues/bulk",
    response_model=BulkDuesResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Créer des cotisations pour plusieurs membres",
)
async def create_dues_bulk(
    data: BulkDuesCreate,
    ctx: ChapterContext = Depends(finance_admin),
    db: Session = Depends(get_db),
) -> Any:
    """
    Crée une cotisation identique pour chaque membre listé.
    Aucune n'est créée si un des IDs n'est pas un membre confirmé.
    """
    dues_list = create_bulk_dues(
        db,
        ctx.chapter,
        member_ids=data.member_ids,
        amount=data.amount,
        due_date=data.due_date,
        description=data.description,
    )

    log_audit_entry(
        db,
        chapter_id=ctx.chapter.id,
        user_id=ctx.user.id,
        action=AuditAction.DUES_CREATED,
        target_type=AuditTargetType.DUES_PAYMENT,
        metadata={
            "bulk": True,
            "count": len(dues_list),
            "amount": str(data.amount),
        },
    )

    return BulkDuesResponse(
        created=len(dues_list),
        items=[DuesResponse.model_validate(d) for d in dues_list],
    )


@router.put(
    "/dues/{dues_id}",
    response_model=DuesResponse,
    summary="Modifier une cotisation",
)
async def update_dues(
    dues_id: int,
    data: DuesUpdate,
    ctx: ChapterContext = Depends(finance_admin),
    db: Session = Depends(get_db),
) -> Any:
    """
    Modifie une cotisation. **paid=true** l'enregistre comme payée manuellement.
    """
    dues = _get_dues(db, ctx, dues_id)
    update_data = _changes(data, ("description",))
    mark_paid = update_data.pop("paid", False)

    if dues.is_paid and update_data:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot modify a paid dues payment",
        )

    for field, value in update_data.items():
        setattr(dues, field, value)

    transaction = None
    if mark_paid:
        transaction = mark_dues_paid(db, dues, source="manual")

    db.commit()
    db.refresh(dues)

    if transaction is not None:
        log_audit_entry(
            db,
            chapter_id=ctx.chapter.id,
            user_id=ctx.user.id,
            action=AuditAction.DUES_PAID,
            target_type=AuditTargetType.DUES_PAYMENT,
            target_id=dues.id,
            metadata={"amount": str(dues.amount), "source": "manual"},
        )

    return dues


@router.delete(
    "/dues/{dues_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Supprimer une cotisation",
)
async def delete_dues(
    dues_id: int,
    ctx: ChapterContext = Depends(finance_admin),
    db: Session = Depends(get_db),
) -> None:
    dues = _get_dues(db, ctx, dues_id)

    if dues.is_paid:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot delete a paid dues payment",
        )

    db.delete(dues)
    db.commit()
    logger.info(f"Cotisation {dues_id} supprimée ({ctx.chapter.slug})")


@router.post(
    "/dues/{dues_id}/checkout",
    response_model=CheckoutResponse,
    summary="Payer une cotisation en ligne",
)
async def checkout_dues(
    dues_id: int,
    ctx: ChapterContext = Depends(finance_member),
    db: Session = Depends(get_db),
) -> Any:
    """
    Ouvre une session Stripe Checkout pour régler une cotisation.
    Réservé au membre concerné ou à un administrateur.
    """
    dues = _get_dues(db, ctx, dues_id)

    if dues.user_id != ctx.user.id and not ctx.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You can only pay your own dues",
        )
    if dues.is_paid:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Dues payment is already paid",
        )

    session = billing_service.create_dues_checkout(ctx.chapter, dues)
    return CheckoutResponse(url=session["url"], session_id=session["session_id"])


# ============== Transactions ==============

@router.get(
    "/transactions",
    response_model=TransactionListResponse,
    summary="Grand livre",
)
async def list_transactions(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    type_filter: Optional[TransactionType] = Query(None, alias="type"),
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    ctx: ChapterContext = Depends(finance_member),
    db: Session = Depends(get_db),
) -> Any:
    query = db.query(Transaction).filter(Transaction.chapter_id == ctx.chapter.id)

    if type_filter:
        query = query.filter(Transaction.type == type_filter.value)
    if start_date:
        query = query.filter(Transaction.processed_at >= to_naive_utc(start_date))
    if end_date:
        query = query.filter(Transaction.processed_at <= to_naive_utc(end_date))

    total = query.count()
    transactions = query.order_by(
        Transaction.processed_at.desc(), Transaction.id.desc()
    ).offset((page - 1) * page_size).limit(page_size).all()

    return TransactionListResponse(
        items=[TransactionResponse.model_validate(t) for t in transactions],
        total=total,
        page=page,
        page_size=page_size,
        pages=(total + page_size - 1) // page_size,
    )


@router.post(
    "/transactions",
    response_model=TransactionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Enregistrer une transaction",
)
async def create_transaction(
    data: TransactionCreate,
    ctx: ChapterContext = Depends(finance_admin),
    db: Session = Depends(get_db),
) -> Any:
    """
    Écriture manuelle du grand livre (montant signé).
    """
    transaction = Transaction(
        chapter_id=ctx.chapter.id,
        amount=data.amount,
        type=data.type.value,
        description=data.description,
        meta=data.metadata,
        processed_at=data.processed_at or datetime.utcnow(),
    )
    db.add(transaction)
    db.commit()
    db.refresh(transaction)

    logger.info(f"Transaction {transaction.type} de {transaction.amount} USD ({ctx.chapter.slug})")
    return TransactionResponse.model_validate(transaction)


# ============== Synthèse et export ==============

@router.get(
    "/summary",
    response_model=FinanceSummary,
    summary="Synthèse financière",
)
async def finance_summary(
    ctx: ChapterContext = Depends(finance_member),
    db: Session = Depends(get_db),
) -> Any:
    return FinanceSummary(**get_finance_summary(db, ctx.chapter.id))


@router.get(
    "/export",
    summary="Exporter les transactions (CSV)",
)
async def export_transactions(
    ctx: ChapterContext = Depends(chapter_member),
    db: Session = Depends(get_db),
) -> Response:
    """
    Export CSV du grand livre. Nécessite un rôle admin et un plan BASIC ou PRO.
    """
    check_export_access(ctx.membership, ctx.chapter)

    content = export_transactions_csv(db, ctx.chapter.id)
    filename = f"{ctx.chapter.slug}-transactions-{datetime.utcnow():%Y%m%d}.csv"

    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
