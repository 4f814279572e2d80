"""Record shapes exchanged with the backend.

``RawRecord`` is whatever the backend sent (decimals as strings, payments as
JSON text, optional keys missing). The ``TypedDict`` classes describe the
canonical records produced by :mod:`ismapos.normalize`; keys the backend adds
beyond these are carried through untouched.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Generic, List, Mapping, Optional, TypeVar, TypedDict

RawRecord = Mapping[str, Any]

T = TypeVar("T")


class Product(TypedDict, total=False):
    id: str
    name: str
    category: str
    cost: float
    salePrice: float
    quantity: int
    minStockLevel: int
    barcode: str
    createdAt: str
    updatedAt: str


class SaleItem(TypedDict, total=False):
    productId: str
    productName: str
    quantity: int
    unitPrice: float
    customPrice: Optional[float]
    discount: float
    discountType: str
    tax: float
    taxType: str
    total: float


class Sale(TypedDict, total=False):
    id: str
    billNumber: str
    items: List[SaleItem]
    subtotal: float
    discount: float
    tax: float
    total: float
    remainingBalance: Optional[float]
    payments: List[Any]
    date: Optional[str]
    customerName: str
    customerCity: Optional[str]
    status: str
    createdAt: str


class Expense(TypedDict, total=False):
    id: str
    amount: float
    category: str
    description: str
    date: str
    createdAt: str


class PurchaseItem(TypedDict, total=False):
    productId: str
    productName: str
    quantity: int
    cost: float
    discount: float
    total: float


class Purchase(TypedDict, total=False):
    id: str
    supplierName: str
    items: List[PurchaseItem]
    subtotal: float
    tax: float
    total: float
    remainingBalance: float
    payments: List[Any]
    status: str
    date: Optional[str]
    createdAt: str


class CardBalance(TypedDict, total=False):
    cardId: str
    balance: float


class BankBalance(TypedDict, total=False):
    bankAccountId: str
    balance: float


class OpeningBalance(TypedDict, total=False):
    id: str
    date: Optional[str]
    cashBalance: float
    cardBalances: List[CardBalance]
    bankBalances: List[BankBalance]
    notes: Optional[str]
    createdAt: str


@dataclass
class Page(Generic[T]):
    """One page of a list endpoint."""

    items: List[T] = field(default_factory=list)
    pagination: dict[str, Any] | None = None

    def __iter__(self):
        return iter(self.items)

    def __len__(self) -> int:
        return len(self.items)
