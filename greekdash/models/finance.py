"""
Modèles financiers - Budgets, dépenses, cotisations et transactions.
Les montants sont en dollars US (Numeric 12,2).
"""

import enum
from datetime import datetime

from sqlalchemy import (
    Column, Integer, String, DateTime, Text,
    Numeric, ForeignKey, Index, CheckConstraint, Enum, JSON,
)
from sqlalchemy.orm import relationship

from greekdash.database import Base


class BudgetStatus(str, enum.Enum):
    """Statuts d'un budget."""
    PLANNING = "PLANNING"
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    ARCHIVED = "ARCHIVED"


class ExpenseStatus(str, enum.Enum):
    """Cycle de vie d'une dépense."""
    PENDING = "PENDING"     # Soumise, en attente de validation
    APPROVED = "APPROVED"
    DENIED = "DENIED"
    PAID = "PAID"           # Payée, une transaction est enregistrée


class TransactionType(str, enum.Enum):
    """Types de transaction du grand livre."""
    INCOME = "INCOME"
    EXPENSE = "EXPENSE"
    TRANSFER = "TRANSFER"
    DUES_PAYMENT = "DUES_PAYMENT"
    REFUND = "REFUND"
    OTHER = "OTHER"


class Budget(Base):
    """
    Enveloppe budgétaire d'un chapitre sur une période.

    Attributes:
        name: Nom du budget
        amount: Montant alloué (> 0)
        start_date: Début de la période
        end_date: Fin de la période
        status: Statut du budget
    """

    __tablename__ = "budgets"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    chapter_id = Column(Integer, ForeignKey("chapters.id", ondelete="CASCADE"), nullable=False)

    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    amount = Column(Numeric(12, 2), nullable=False)
    start_date = Column(DateTime, nullable=False)
    end_date = Column(DateTime, nullable=False)
    status = Column(
        Enum('PLANNING', 'ACTIVE', 'COMPLETED', 'ARCHIVED', name='budgetstatus'),
        default='PLANNING',
        nullable=False,
    )

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    expenses = relationship("Expense", back_populates="budget", lazy="selectin")

    __table_args__ = (
        Index("idx_budget_chapter_status", "chapter_id", "status"),
        CheckConstraint("amount > 0", name="positive_budget_amount"),
    )

    def __repr__(self) -> str:
        return f"<Budget(id={self.id}, name='{self.name}', amount={self.amount})>"

    @property
    def spent_amount(self) -> float:
        """Total des dépenses approuvées ou payées rattachées au budget."""
        return sum(
            float(e.amount) for e in self.expenses
            if e.status in (ExpenseStatus.APPROVED.value, ExpenseStatus.PAID.value)
        )

    @property
    def remaining_amount(self) -> float:
        return float(self.amount) - self.spent_amount


class Expense(Base):
    """
    Dépense soumise par un membre et validée par un administrateur.
    """

    __tablename__ = "expenses"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    chapter_id = Column(Integer, ForeignKey("chapters.id", ondelete="CASCADE"), nullable=False)
    budget_id = Column(Integer, ForeignKey("budgets.id", ondelete="SET NULL"), nullable=True)

    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    amount = Column(Numeric(12, 2), nullable=False)
    receipt_url = Column(String(500), nullable=True)
    status = Column(
        Enum('PENDING', 'APPROVED', 'DENIED', 'PAID', name='expensestatus'),
        default='PENDING',
        nullable=False,
    )

    submitted_by_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    approved_by_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    submitted_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    approved_at = Column(DateTime, nullable=True)
    paid_at = Column(DateTime, nullable=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    budget = relationship("Budget", back_populates="expenses")
    submitted_by = relationship("User", foreign_keys=[submitted_by_id])
    approved_by = relationship("User", foreign_keys=[approved_by_id])
    transaction = relationship("Transaction", back_populates="expense", uselist=False)

    __table_args__ = (
        Index("idx_expense_chapter_status", "chapter_id", "status"),
        CheckConstraint("amount > 0", name="positive_expense_amount"),
    )

    def __repr__(self) -> str:
        return f"<Expense(id={self.id}, title='{self.title}', status={self.status})>"


class DuesPayment(Base):
    """
    Cotisation due par un membre. Payée si paid_at est renseigné.
    """

    __tablename__ = "dues_payments"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    chapter_id = Column(Integer, ForeignKey("chapters.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)

    amount = Column(Numeric(12, 2), nullable=False)
    description = Column(String(300), nullable=True)
    due_date = Column(DateTime, nullable=False)
    paid_at = Column(DateTime, nullable=True)

    # Références Stripe
    stripe_payment_id = Column(String(255), nullable=True)
    stripe_invoice_id = Column(String(255), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = relationship("User", lazy="joined")
    transaction = relationship("Transaction", back_populates="dues_payment", uselist=False)

    __table_args__ = (
        Index("idx_dues_chapter_user", "chapter_id", "user_id"),
        Index("idx_dues_chapter_paid", "chapter_id", "paid_at"),
        CheckConstraint("amount > 0", name="positive_dues_amount"),
    )

    def __repr__(self) -> str:
        return f"<DuesPayment(id={self.id}, user_id={self.user_id}, amount={self.amount})>"

    @property
    def is_paid(self) -> bool:
        return self.paid_at is not None

    @property
    def user_name(self):
        return self.user.name if self.user else None

    @property
    def user_email(self):
        return self.user.email if self.user else None


class Transaction(Base):
    """
    Écriture du grand livre d'un chapitre.
    Montant signé : négatif pour une sortie, positif pour une entrée.
    """

    __tablename__ = "transactions"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    chapter_id = Column(Integer, ForeignKey("chapters.id", ondelete="CASCADE"), nullable=False)

    amount = Column(Numeric(12, 2), nullable=False)
    type = Column(
        Enum(
            'INCOME', 'EXPENSE', 'TRANSFER', 'DUES_PAYMENT', 'REFUND', 'OTHER',
            name='transactiontype',
        ),
        nullable=False,
    )
    description = Column(String(500), nullable=True)
    meta = Column("metadata", JSON, nullable=True)
    processed_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    # Au plus une transaction par dépense et par cotisation
    expense_id = Column(
        Integer,
        ForeignKey("expenses.id", ondelete="SET NULL"),
        unique=True,
        nullable=True,
    )
    dues_payment_id = Column(
        Integer,
        ForeignKey("dues_payments.id", ondelete="SET NULL"),
        unique=True,
        nullable=True,
    )

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    expense = relationship("Expense", back_populates="transaction")
    dues_payment = relationship("DuesPayment", back_populates="transaction")

    __table_args__ = (
        Index("idx_transaction_chapter_processed", "chapter_id", "processed_at"),
        Index("idx_transaction_type", "type"),
    )

    def __repr__(self) -> str:
        return f"<Transaction(id={self.id}, type={self.type}, amount={self.amount})>"
