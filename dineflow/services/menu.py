"""Menu catalogue maintenance.

Price edits only affect orders created afterwards; existing line items keep
their snapshot.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import List
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from ..errors import InvalidRequest, NotFound
from ..models import FoodItem
from ..repos_sqlalchemy import menu_repo_sql
from ..schemas import FoodItemView
from .base import Service

CENTS = Decimal("0.01")
EDITABLE = {"name", "description", "price", "category", "available", "preparation_mins"}


def to_money(value, field: str = "price") -> Decimal:
    """Return ``value`` as a non-negative two-decimal :class:`Decimal`."""
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise InvalidRequest(f"{field} is not a number", details={field: value}) from None
    if not amount.is_finite() or amount < 0:
        raise InvalidRequest(f"{field} must be a non-negative amount", details={field: value})
    return amount.quantize(CENTS)


class MenuService(Service):
    async def list_items(
        self,
        session: AsyncSession,
        category: str | None = None,
        available_only: bool = False,
    ) -> List[FoodItemView]:
        items = await menu_repo_sql.list_items(session, category, available_only)
        return [FoodItemView.model_validate(i) for i in items]

    async def get_item(self, session: AsyncSession, item_id: UUID) -> FoodItemView:
        return FoodItemView.model_validate(await _load(session, item_id))

    async def create_item(
        self,
        session: AsyncSession,
        name: str,
        price,
        category: str,
        description: str | None = None,
        available: bool = True,
        preparation_mins: int | None = None,
    ) -> FoodItemView:
        if not name or not category:
            raise InvalidRequest(
                "name and category are required",
                details={"name": name, "category": category},
            )
        _check_prep(preparation_mins)
        async with self.transaction(session, "create_item"):
            item = await menu_repo_sql.add(
                session,
                FoodItem(
                    name=name,
                    price=to_money(price),
                    category=category,
                    description=description,
                    available=available,
                    preparation_mins=preparation_mins,
                ),
            )
            view = FoodItemView.model_validate(item)
        return view

    async def update_item(self, session: AsyncSession, item_id: UUID, **fields) -> FoodItemView:
        unknown = set(fields) - EDITABLE
        if unknown or not fields:
            raise InvalidRequest(
                "no editable fields supplied" if not fields else "unknown fields",
                details={"fields": ",".join(sorted(unknown))},
            )
        if "price" in fields:
            fields["price"] = to_money(fields["price"])
        if "preparation_mins" in fields:
            _check_prep(fields["preparation_mins"])
        async with self.transaction(session, "update_item"):
            item = await _load(session, item_id)
            for key, value in fields.items():
                setattr(item, key, value)
            await session.flush()
            view = FoodItemView.model_validate(item)
        return view

    async def delete_item(self, session: AsyncSession, item_id: UUID) -> None:
        async with self.transaction(session, "delete_item"):
            item = await _load(session, item_id)
            await menu_repo_sql.delete(session, item)


async def _load(session: AsyncSession, item_id: UUID) -> FoodItem:
    item = await menu_repo_sql.get(session, item_id)
    if item is None:
        raise NotFound(f"food item {item_id} not found", details={"item_id": item_id})
    return item


def _check_prep(minutes: int | None) -> None:
    if minutes is not None and minutes < 0:
        raise InvalidRequest(
            "preparation time cannot be negative", details={"preparation_mins": minutes}
        )
