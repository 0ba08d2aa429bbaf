"""
DealSelector -- read path for deals, including volume aggregation.

All deal types live in one table; the counterparty type selects the
deal_type and the role selects which counterparty column is matched.
Supplier-side and buyer-side filters are mutually exclusive, never a union.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select

from fuel_kernel.domain.values import CounterpartyRole, DealType
from fuel_kernel.models.deal import DealRecord
from fuel_kernel.selectors.base import BaseSelector


class DealSelector(BaseSelector[DealRecord]):
    def get(self, deal_id: UUID) -> DealRecord | None:
        return self.session.get(DealRecord, deal_id)

    def sum_volume(
        self,
        *,
        deal_type: DealType,
        role: CounterpartyRole,
        counterparty_id: UUID,
        basis_id: UUID,
        product: str,
        date_from: date,
        date_to: date,
    ) -> tuple[Decimal, int]:
        """
        Total quantity_kg and deal count of live deals matching the filter.

        Deal dates are inclusive on both ends.  No match returns (0, 0).
        """
        counterparty_column = (
            DealRecord.supplier_id
            if CounterpartyRole(role) is CounterpartyRole.SUPPLIER
            else DealRecord.buyer_id
        )
        total, count = self.session.execute(
            select(
                func.coalesce(func.sum(DealRecord.quantity_kg), 0),
                func.count(DealRecord.id),
            ).where(
                DealRecord.deal_type == DealType(deal_type).value,
                counterparty_column == counterparty_id,
                DealRecord.basis_id == basis_id,
                DealRecord.product == product,
                DealRecord.deal_date >= date_from,
                DealRecord.deal_date <= date_to,
                DealRecord.deleted_at.is_(None),
            )
        ).one()
        return Decimal(str(total)), int(count)
