"""
VolumeSelectionService -- how much volume a price scope has sold.

Sums quantity_kg over live deals of the scope's counterparty type, matched
on the supplier or buyer column according to the scope's role, at the
scope's basis and product, with deal_date inside [date_from, date_to].
When a price id is supplied the total is written back to that record's
sold_volume cache.
"""

from __future__ import annotations

from datetime import date
from uuid import UUID

from sqlalchemy.orm import Session

from fuel_engines.overlap import DateRange
from fuel_kernel.domain.dtos import SelectionResult
from fuel_kernel.domain.values import DealType, PriceScope
from fuel_kernel.logging_config import get_logger
from fuel_kernel.models.deal import DealRecord
from fuel_kernel.selectors.deal_selector import DealSelector
from fuel_kernel.services.base import BaseService
from fuel_kernel.services.price_service import PriceService

logger = get_logger("services.volume_selection")


class VolumeSelectionService(BaseService[DealRecord]):
    def __init__(self, session: Session, price_service: PriceService | None = None):
        super().__init__(session)
        self._deals = DealSelector(session)
        self._prices = price_service or PriceService(session)

    def calculate_selection(
        self,
        scope: PriceScope,
        date_from: date,
        date_to: date,
        price_id: UUID | None = None,
        actor_id: UUID | None = None,
    ) -> SelectionResult:
        """
        Total deal volume for ``scope`` over an inclusive date range.

        Returns total 0 and count 0 when nothing matches.

        Raises:
            InvalidDateRangeError: If date_from is after date_to.
            PriceRecordNotFoundError: If price_id is given and unknown.
        """
        period = DateRange(date_from=date_from, date_to=date_to)
        total, count = self._deals.sum_volume(
            deal_type=DealType.for_counterparty(scope.counterparty_type),
            role=scope.counterparty_role,
            counterparty_id=scope.counterparty_id,
            basis_id=scope.basis_id,
            product=scope.product.value,
            date_from=period.date_from,
            date_to=period.date_to,
        )

        if price_id is not None:
            self._prices.set_sold_volume(price_id, total, actor_id)

        logger.info(
            "selection_calculated",
            extra={
                "counterparty_id": str(scope.counterparty_id),
                "counterparty_type": scope.counterparty_type.value,
                "counterparty_role": scope.counterparty_role.value,
                "product": scope.product.value,
                "basis_id": str(scope.basis_id),
                "date_from": date_from.isoformat(),
                "date_to": date_to.isoformat(),
                "total_volume": str(total),
                "deal_count": count,
                "price_id": str(price_id) if price_id else None,
            },
        )
        return SelectionResult(
            total_volume=total,
            deal_count=count,
            date_from=date_from,
            date_to=date_to,
            price_id=price_id,
        )

    def refresh_sold_volume(self, price_id: UUID, actor_id: UUID | None = None) -> SelectionResult:
        """Recompute a price record's sold_volume over its own scope and range."""
        price = self._prices.get_price(price_id)
        scope = PriceScope.from_values(
            counterparty_id=price.counterparty_id,
            counterparty_type=price.counterparty_type,
            counterparty_role=price.counterparty_role,
            product=price.product,
            basis_id=price.basis_id,
        )
        return self.calculate_selection(
            scope,
            price.date_from,
            price.date_to,
            price_id=price_id,
            actor_id=actor_id,
        )
