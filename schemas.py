import datetime as dt
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel

from amounts import MAX_AMOUNT_CENTS, from_cents, parse_amount, to_cents
from config import get_settings
from models import Transaction, TransactionType


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RegisterIn(CamelModel):
    username: str = Field(..., min_length=1, max_length=50)
    email: EmailStr
    password: str
    first_name: Optional[str] = Field(default=None, max_length=100)
    last_name: Optional[str] = Field(default=None, max_length=100)

    @field_validator("username")
    @classmethod
    def _username_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Username is required")
        return value

    @field_validator("password")
    @classmethod
    def _password_policy(cls, value: str) -> str:
        min_length = get_settings().password_min_length
        if len(value) < min_length:
            raise ValueError(f"Password must be at least {min_length} characters")
        return value


class LoginIn(CamelModel):
    email: str = Field(..., min_length=1, max_length=254)
    password: str = Field(..., min_length=1)

    @field_validator("email")
    @classmethod
    def _normalize_domain(cls, value: str) -> str:
        local, sep, domain = value.strip().rpartition("@")
        if not sep:
            return value.strip()
        return f"{local}@{domain.lower()}"


class AuthOut(CamelModel):
    token: str
    expiration: dt.datetime
    user_id: str
    user_email: str
    user_name: str
    first_name: str = ""
    last_name: str = ""


class TransactionIn(CamelModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    description: str = Field(..., min_length=1, max_length=100)
    amount: Decimal = Field(..., gt=0, decimal_places=2)
    type: TransactionType
    category: str = Field(..., min_length=1, max_length=50)
    date: dt.date

    @field_validator("amount", mode="before")
    @classmethod
    def _parse_amount(cls, value: object) -> Decimal:
        if isinstance(value, (Decimal, int, float, str)):
            return parse_amount(value)
        raise ValueError("Invalid amount")

    @field_validator("amount")
    @classmethod
    def _amount_in_range(cls, value: Decimal) -> Decimal:
        if to_cents(value) > MAX_AMOUNT_CENTS:
            raise ValueError("Amount is too large")
        return value

    @property
    def amount_cents(self) -> int:
        return to_cents(self.amount)


class TransactionOut(CamelModel):
    id: int
    description: str
    amount: float
    type: TransactionType
    category: str
    date: dt.date
    user_id: str

    @classmethod
    def from_model(cls, txn: Transaction) -> "TransactionOut":
        return cls(
            id=txn.id,
            description=txn.description,
            amount=from_cents(txn.amount_cents),
            type=txn.type,
            category=txn.category,
            date=txn.date,
            user_id=txn.user_id,
        )


class StatisticsOut(CamelModel):
    total_income: float
    total_expenses: float
    balance: float
    transaction_count: int


class CategoryBucketOut(CamelModel):
    category: str
    total: float
    percentage: float


class MonthBucketOut(CamelModel):
    month: str
    income: float
    expenses: float
    net: float
