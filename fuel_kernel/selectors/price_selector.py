"""
PriceSelector -- read path for price records.

Scope matching is always by id (counterparty_id, basis_id) plus the enum
columns; display names never participate.
"""

from __future__ import annotations

from datetime import date
from uuid import UUID

from sqlalchemy import select

from fuel_engines.overlap import DateRange
from fuel_kernel.domain.dtos import PriceRecordInfo
from fuel_kernel.domain.values import PriceScope
from fuel_kernel.models.price import PriceRecord
from fuel_kernel.selectors.base import BaseSelector


def _scope_filters(scope: PriceScope) -> list:
    return [
        PriceRecord.counterparty_id == scope.counterparty_id,
        PriceRecord.counterparty_type == scope.counterparty_type.value,
        PriceRecord.counterparty_role == scope.counterparty_role.value,
        PriceRecord.product == scope.product.value,
        PriceRecord.basis_id == scope.basis_id,
    ]


class PriceSelector(BaseSelector[PriceRecord]):
    def get(self, price_id: UUID) -> PriceRecordInfo | None:
        price = self.session.get(PriceRecord, price_id)
        return PriceRecordInfo.from_model(price) if price else None

    def active_ranges_intersecting(
        self,
        scope: PriceScope,
        date_from: date,
        date_to: date,
    ) -> list[tuple[UUID, DateRange]]:
        """
        Active records of the exact scope whose range intersects
        [date_from, date_to].
        """
        rows = self.session.execute(
            select(PriceRecord.id, PriceRecord.date_from, PriceRecord.date_to).where(
                *_scope_filters(scope),
                PriceRecord.is_active.is_(True),
                PriceRecord.date_from <= date_to,
                PriceRecord.date_to >= date_from,
            )
        ).all()
        return [
            (price_id, DateRange(date_from=start, date_to=end))
            for price_id, start, end in rows
        ]

    def find_active(self, scope: PriceScope, on_date: date) -> list[PriceRecordInfo]:
        """Active records of the scope whose range contains ``on_date``."""
        rows = self.session.execute(
            select(PriceRecord)
            .where(
                *_scope_filters(scope),
                PriceRecord.is_active.is_(True),
                PriceRecord.date_from <= on_date,
                PriceRecord.date_to >= on_date,
            )
            .order_by(PriceRecord.date_from, PriceRecord.created_at)
        ).scalars().all()
        return [PriceRecordInfo.from_model(p) for p in rows]
