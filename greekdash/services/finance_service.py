"""
Service financier des chapitres.
Contrôle d'accès par rôle et par plan, écritures du grand livre,
cotisations groupées, synthèse et export CSV.
"""

import csv
import io
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from greekdash.core.exceptions import BusinessRuleError, FinanceAccessError
from greekdash.core.logging import logger
from greekdash.models.chapter import Chapter, Membership, ACTIVE_ROLES, ADMIN_ROLES, MembershipRole
from greekdash.models.finance import (
    Budget,
    BudgetStatus,
    DuesPayment,
    Expense,
    ExpenseStatus,
    Transaction,
    TransactionType,
)
from greekdash.models.subscription import plan_features


# ============== Contrôle d'accès ==============

def check_finance_access(membership: Membership, chapter: Chapter, level: str) -> None:
    """
    Vérifie le niveau d'accès financier d'un membre.

    - MEMBER : tout membre confirmé, quel que soit le plan
    - ADMIN : rôle ADMIN ou OWNER et plan avec budgets, dépenses ou cotisations
    - OWNER : rôle OWNER et plan avec reporting avancé

    Raises:
        FinanceAccessError: Rôle ou plan insuffisant
    """
    if membership.role not in ACTIVE_ROLES:
        raise FinanceAccessError("You must be an active member to access finances")

    if level == "MEMBER":
        return

    features = plan_features(chapter.plan)

    if level == "ADMIN":
        if membership.role not in ADMIN_ROLES:
            raise FinanceAccessError("Admin role required for this finance operation")
        if not (
            features["budgeting"]
            or features["expense_tracking"]
            or features["dues_collection"]
        ):
            raise FinanceAccessError(
                "Your chapter's plan does not include finance management. "
                "Upgrade to BASIC or PRO."
            )
        return

    if level == "OWNER":
        if membership.role != MembershipRole.OWNER.value:
            raise FinanceAccessError("Only the chapter owner can perform this operation")
        if not features["advanced_reporting"]:
            raise FinanceAccessError(
                "Advanced reporting requires the PRO plan"
            )
        return

    raise FinanceAccessError(f"Unknown finance access level: {level}")


def check_export_access(membership: Membership, chapter: Chapter) -> None:
    """L'export nécessite un rôle admin et la fonctionnalité data_export."""
    if membership.role not in ADMIN_ROLES:
        raise FinanceAccessError("Admin role required to export finance data")
    if not plan_features(chapter.plan)["data_export"]:
        raise FinanceAccessError("Data export requires the BASIC or PRO plan")


# ============== Grand livre ==============

def record_expense_payment(db: Session, expense: Expense) -> Optional[Transaction]:
    """
    Crée la transaction de sortie d'une dépense payée (une seule fois).
    La session n'est pas validée : l'appelant commit.

    Returns:
        La transaction créée, ou None si elle existait déjà
    """
    existing = db.query(Transaction).filter(Transaction.expense_id == expense.id).first()
    if existing:
        logger.debug(f"Transaction déjà enregistrée pour la dépense {expense.id}")
        return None

    transaction = Transaction(
        chapter_id=expense.chapter_id,
        amount=-Decimal(expense.amount),
        type=TransactionType.EXPENSE.value,
        description=f"Expense: {expense.title}",
        meta={"expense_id": expense.id, "budget_id": expense.budget_id},
        processed_at=expense.paid_at or datetime.utcnow(),
        expense_id=expense.id,
    )
    db.add(transaction)
    logger.info(f"Dépense {expense.id} payée: -{expense.amount} USD")
    return transaction


def mark_dues_paid(
    db: Session,
    dues: DuesPayment,
    stripe_payment_id: Optional[str] = None,
    amount: Optional[Decimal] = None,
    source: str = "manual",
) -> Optional[Transaction]:
    """
    Marque une cotisation comme payée et crée sa transaction (une seule fois).
    La session n'est pas validée : l'appelant commit.

    Args:
        db: Session de base de données
        dues: Cotisation à marquer
        stripe_payment_id: Référence du paiement Stripe
        amount: Montant encaissé (par défaut celui de la cotisation)
        source: Origine du paiement (manual, checkout, payment_intent)

    Returns:
        La transaction créée, ou None si la cotisation était déjà payée
    """
    if dues.paid_at is not None:
        logger.info(f"Cotisation {dues.id} déjà payée, ignorée")
        return None

    dues.paid_at = datetime.utcnow()
    if stripe_payment_id:
        dues.stripe_payment_id = stripe_payment_id

    existing = db.query(Transaction).filter(Transaction.dues_payment_id == dues.id).first()
    if existing:
        return None

    received = Decimal(amount) if amount is not None else Decimal(dues.amount)
    transaction = Transaction(
        chapter_id=dues.chapter_id,
        amount=received,
        type=TransactionType.DUES_PAYMENT.value,
        description=dues.description or "Dues payment",
        meta={
            "dues_payment_id": dues.id,
            "user_id": dues.user_id,
            "source": source,
            "stripe_payment_id": stripe_payment_id,
        },
        processed_at=dues.paid_at,
        dues_payment_id=dues.id,
    )
    db.add(transaction)
    logger.info(f"Cotisation {dues.id} payée ({source}): +{received} USD")
    return transaction


# ============== Cotisations ==============

def create_bulk_dues(
    db: Session,
    chapter: Chapter,
    member_ids: List[int],
    amount: Decimal,
    due_date: datetime,
    description: Optional[str] = None,
) -> List[DuesPayment]:
    """
    Crée une cotisation par membre, dans une seule transaction.

    Raises:
        BusinessRuleError: Si un ID n'est pas un membre confirmé du chapitre
    """
    unique_ids = list(dict.fromkeys(member_ids))

    valid_ids = {
        row.user_id
        for row in db.query(Membership.user_id).filter(
            Membership.chapter_id == chapter.id,
            Membership.user_id.in_(unique_ids),
            Membership.role.in_(ACTIVE_ROLES),
        )
    }
    invalid = [user_id for user_id in unique_ids if user_id not in valid_ids]
    if invalid:
        raise BusinessRuleError(
            "Some member IDs are not active members of this chapter",
            details={"invalid_ids": invalid},
        )

    dues_list = [
        DuesPayment(
            chapter_id=chapter.id,
            user_id=user_id,
            amount=amount,
            due_date=due_date,
            description=description,
        )
        for user_id in unique_ids
    ]
    db.add_all(dues_list)
    db.commit()
    for dues in dues_list:
        db.refresh(dues)

    logger.info(f"{len(dues_list)} cotisations créées pour le chapitre {chapter.slug}")
    return dues_list


# ============== Synthèse ==============

def get_finance_summary(db: Session, chapter_id: int) -> Dict[str, Any]:
    """
    Calcule la synthèse financière d'un chapitre.

    Returns:
        total_income, total_expenses, balance, unpaid_dues,
        pending_expenses, active_budgets_count
    """
    total_income = db.query(func.coalesce(func.sum(DuesPayment.amount), 0)).filter(
        DuesPayment.chapter_id == chapter_id,
        DuesPayment.paid_at.isnot(None),
    ).scalar()

    total_expenses = db.query(func.coalesce(func.sum(Expense.amount), 0)).filter(
        Expense.chapter_id == chapter_id,
        Expense.status == ExpenseStatus.PAID.value,
    ).scalar()

    unpaid_amount, unpaid_count = db.query(
        func.coalesce(func.sum(DuesPayment.amount), 0),
        func.count(DuesPayment.id),
    ).filter(
        DuesPayment.chapter_id == chapter_id,
        DuesPayment.paid_at.is_(None),
    ).one()

    pending_amount, pending_count = db.query(
        func.coalesce(func.sum(Expense.amount), 0),
        func.count(Expense.id),
    ).filter(
        Expense.chapter_id == chapter_id,
        Expense.status == ExpenseStatus.PENDING.value,
    ).one()

    active_budgets = db.query(func.count(Budget.id)).filter(
        Budget.chapter_id == chapter_id,
        Budget.status == BudgetStatus.ACTIVE.value,
    ).scalar()

    income = float(total_income or 0)
    expenses = float(total_expenses or 0)

    return {
        "total_income": income,
        "total_expenses": expenses,
        "balance": income - expenses,
        "unpaid_dues": {"amount": float(unpaid_amount or 0), "count": unpaid_count},
        "pending_expenses": {"amount": float(pending_amount or 0), "count": pending_count},
        "active_budgets_count": active_budgets or 0,
    }


# ============== Export ==============

EXPORT_COLUMNS = [
    "id",
    "processed_at",
    "type",
    "amount",
    "description",
    "expense_id",
    "dues_payment_id",
]


def export_transactions_csv(db: Session, chapter_id: int) -> str:
    """Exporte les transactions du chapitre au format CSV (plus récentes d'abord)."""
    transactions = db.query(Transaction).filter(
        Transaction.chapter_id == chapter_id,
    ).order_by(Transaction.processed_at.desc()).all()

    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerow(EXPORT_COLUMNS)
    for t in transactions:
        writer.writerow([
            t.id,
            t.processed_at.isoformat(),
            t.type,
            f"{Decimal(t.amount):.2f}",
            t.description or "",
            t.expense_id or "",
            t.dues_payment_id or "",
        ])

    logger.info(f"Export CSV: {len(transactions)} transactions (chapitre {chapter_id})")
    return buffer.getvalue()


__all__ = [
    "check_finance_access",
    "check_export_access",
    "record_expense_payment",
    "mark_dues_paid",
    "create_bulk_dues",
    "get_finance_summary",
    "export_transactions_csv",
    "EXPORT_COLUMNS",
]
