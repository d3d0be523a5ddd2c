from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from rapidfuzz import fuzz, process, utils
from sqlalchemy import Select, case, func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from aggregation import (
    CategoryBucket,
    MonthBucket,
    Summary,
    bucket_by_month,
    category_buckets,
)
from models import Transaction, TransactionType, User
from periods import ALL_TIME, Period
from schemas import LoginIn, RegisterIn, TransactionIn
from security import IssuedToken, hash_password, issue_token, verify_password

logger = logging.getLogger(__name__)


class DuplicateUser(ValueError):
    pass


class InvalidCredentials(ValueError):
    pass


class TransactionNotFound(ValueError):
    pass


@dataclass(frozen=True)
class AuthResult:
    user: User
    token: IssuedToken


@dataclass
class TransactionFilters:
    type: Optional[TransactionType] = None
    category: Optional[str] = None
    query: Optional[str] = None


def _like_pattern(text: str) -> str:
    escaped = text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def _within(stmt: Select, period: Period) -> Select:
    if period.start is not None:
        stmt = stmt.where(Transaction.date >= period.start)
    if period.end is not None:
        stmt = stmt.where(Transaction.date <= period.end)
    return stmt


class AuthService:
    def __init__(self, session: Session) -> None:
        self.session = session

    def register(self, data: RegisterIn) -> AuthResult:
        email = str(data.email)
        if self.session.scalar(select(User.id).where(User.username == data.username)):
            raise DuplicateUser("Username is already registered")
        if self.session.scalar(select(User.id).where(User.email == email)):
            raise DuplicateUser("Email is already registered")

        user = User(
            username=data.username,
            email=email,
            first_name=data.first_name or "",
            last_name=data.last_name or "",
            password_hash=hash_password(data.password),
        )
        self.session.add(user)
        try:
            self.session.commit()
        except IntegrityError as exc:
            self.session.rollback()
            raise DuplicateUser("Username or email is already registered") from exc
        self.session.refresh(user)
        logger.info(f"user_registered: user_id={user.id}")
        return AuthResult(user=user, token=issue_token(user))

    def login(self, data: LoginIn) -> AuthResult:
        user = self.session.scalar(select(User).where(User.email == data.email))
        if not verify_password(user.password_hash if user else None, data.password):
            logger.info("login_failed")
            raise InvalidCredentials("Invalid credentials")
        logger.info(f"login_succeeded: user_id={user.id}")
        return AuthResult(user=user, token=issue_token(user))

    def get_user(self, user_id: str) -> Optional[User]:
        return self.session.get(User, user_id)


class TransactionService:
    """Transactions of a single owner.

    Every statement issued here is filtered on ``user_id``; a transaction that
    belongs to someone else behaves exactly like one that does not exist.
    """

    def __init__(self, session: Session, user_id: str) -> None:
        self.session = session
        self.user_id = user_id

    def _owned(self) -> Select:
        return select(Transaction).where(Transaction.user_id == self.user_id)

    def _canonical_category(self, label: str, exclude_id: Optional[int] = None) -> str:
        stmt = select(Transaction.category).where(
            Transaction.user_id == self.user_id,
            func.lower(Transaction.category) == func.lower(label),
        )
        if exclude_id is not None:
            stmt = stmt.where(Transaction.id != exclude_id)
        existing = self.session.scalar(stmt.order_by(Transaction.id).limit(1))
        return existing or label

    def list(
        self,
        period: Period = ALL_TIME,
        filters: Optional[TransactionFilters] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> list[Transaction]:
        filters = filters or TransactionFilters()
        stmt = _within(self._owned(), period).order_by(
            Transaction.date.desc(), Transaction.id.desc()
        )
        if filters.type:
            stmt = stmt.where(Transaction.type == filters.type)
        if filters.category:
            stmt = stmt.where(
                func.lower(Transaction.category) == func.lower(filters.category.strip())
            )
        if filters.query:
            like = func.lower(_like_pattern(filters.query.strip()))
            stmt = stmt.where(
                or_(
                    func.lower(Transaction.description).like(like, escape="\\"),
                    func.lower(Transaction.category).like(like, escape="\\"),
                )
            )
        if offset:
            stmt = stmt.offset(offset)
        if limit is not None:
            stmt = stmt.limit(limit)
        return list(self.session.scalars(stmt).all())

    def get(self, transaction_id: int) -> Transaction:
        txn = self.session.scalar(
            self._owned().where(Transaction.id == transaction_id)
        )
        if not txn:
            raise TransactionNotFound("Transaction not found")
        return txn

    def create(self, data: TransactionIn) -> Transaction:
        txn = Transaction(
            user_id=self.user_id,
            description=data.description,
            amount_cents=data.amount_cents,
            type=data.type,
            category=self._canonical_category(data.category),
            date=data.date,
        )
        self.session.add(txn)
        self.session.commit()
        self.session.refresh(txn)
        logger.info(
            f"transaction_created: user_id={self.user_id} id={txn.id} type={txn.type.value}"
        )
        return txn

    def update(self, transaction_id: int, data: TransactionIn) -> Transaction:
        txn = self.get(transaction_id)
        txn.description = data.description
        txn.amount_cents = data.amount_cents
        txn.type = data.type
        txn.category = self._canonical_category(data.category, exclude_id=txn.id)
        txn.date = data.date
        self.session.commit()
        self.session.refresh(txn)
        logger.info(f"transaction_updated: user_id={self.user_id} id={txn.id}")
        return txn

    def delete(self, transaction_id: int) -> None:
        txn = self.get(transaction_id)
        self.session.delete(txn)
        self.session.commit()
        logger.info(f"transaction_deleted: user_id={self.user_id} id={transaction_id}")

    def categories(self) -> list[str]:
        stmt = (
            select(Transaction.category)
            .where(Transaction.user_id == self.user_id)
            .distinct()
            .order_by(Transaction.category)
        )
        return list(self.session.scalars(stmt).all())

    def suggest_categories(self, text: Optional[str], limit: int = 5) -> list[str]:
        labels = self.categories()
        text = (text or "").strip()
        if not text:
            return labels[:limit]
        matches = process.extract(
            text,
            labels,
            scorer=fuzz.WRatio,
            processor=utils.default_process,
            limit=limit,
            score_cutoff=60,
        )
        return [label for label, _score, _index in matches]


class StatisticsService:
    def __init__(self, session: Session, user_id: str) -> None:
        self.session = session
        self.user_id = user_id

    def summary(self, period: Period = ALL_TIME) -> Summary:
        income = func.sum(
            case(
                (Transaction.type == TransactionType.income, Transaction.amount_cents),
                else_=0,
            )
        )
        expenses = func.sum(
            case(
                (Transaction.type == TransactionType.expense, Transaction.amount_cents),
                else_=0,
            )
        )
        stmt = select(
            func.coalesce(income, 0),
            func.coalesce(expenses, 0),
            func.count(Transaction.id),
        ).where(Transaction.user_id == self.user_id)
        total_income, total_expenses, count = self.session.execute(
            _within(stmt, period)
        ).one()
        return Summary(
            total_income_cents=int(total_income or 0),
            total_expenses_cents=int(total_expenses or 0),
            transaction_count=int(count or 0),
        )

    def by_category(self, period: Period = ALL_TIME) -> list[CategoryBucket]:
        stmt = (
            select(Transaction.category, func.sum(Transaction.amount_cents))
            .where(
                Transaction.user_id == self.user_id,
                Transaction.type == TransactionType.expense,
            )
            .group_by(Transaction.category)
        )
        rows = self.session.execute(_within(stmt, period)).all()
        return category_buckets({name: int(total or 0) for name, total in rows})

    def by_month(self, period: Period = ALL_TIME) -> list[MonthBucket]:
        rows = TransactionService(self.session, self.user_id).list(period)
        return bucket_by_month(rows)
