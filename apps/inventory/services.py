"""
Stock adjustment service for Tessera Platform.
Single entry point for every warehouse quantity change made by order settlement.
"""

from __future__ import annotations

import logging
import uuid
from typing import Any

from django.db import transaction
from django.db.models import F

from apps.common.types import InsufficientStockError
from apps.products.models import AffiliateProduct, Product

from .models import WarehouseStock

logger = logging.getLogger(__name__)


class StockService:
    """Applies signed deltas to warehouse stock under a row lock"""

    @staticmethod
    def _resolve_product(product_id: uuid.UUID | str) -> tuple[str, Any] | None:
        product = Product.objects.filter(id=product_id).only(
            'id', 'manage_stock', 'allow_backorders'
        ).first()
        if product is not None:
            return 'product', product
        affiliate = AffiliateProduct.objects.filter(id=product_id).only(
            'id', 'manage_stock', 'allow_backorders'
        ).first()
        if affiliate is not None:
            return 'affiliate_product', affiliate
        return None

    @staticmethod
    @transaction.atomic
    def adjust(
        product_id: uuid.UUID | str,
        variation_id: uuid.UUID | str | None,
        country: str,
        delta: int,
    ) -> int | None:
        """
        Add ``delta`` to the stock counter for a product in a country.

        Returns the new quantity, or None when nothing was tracked (zero delta,
        unknown product, or a product that does not manage stock).

        Raises InsufficientStockError when a decrement would take the counter
        below zero and the product does not allow backorders. Backorder
        products are allowed to go negative so a later release restores the
        exact prior value.
        """
        if not delta:
            return None

        resolved = StockService._resolve_product(product_id)
        if resolved is None:
            logger.warning(f"⚠️ [Stock] Unknown product {product_id}, skipping adjustment")
            return None
        product_field, product = resolved
        if not product.manage_stock:
            return None

        lookup: dict[str, Any] = {product_field: product, 'country': country}
        if variation_id:
            lookup['variation_id'] = variation_id
        else:
            lookup['variation__isnull'] = True

        row = (
            WarehouseStock.objects.select_for_update()
            .filter(**lookup)
            .order_by('created_at', 'id')
            .first()
        )
        current = row.quantity if row else 0
        new_quantity = current + delta

        if delta < 0 and not product.allow_backorders and new_quantity < 0:
            raise InsufficientStockError(product_id, country, current, -delta)

        if row is None:
            create_kwargs: dict[str, Any] = {
                product_field: product,
                'country': country,
                'quantity': new_quantity,
            }
            if variation_id:
                create_kwargs['variation_id'] = variation_id
            WarehouseStock.objects.create(**create_kwargs)
        else:
            WarehouseStock.objects.filter(pk=row.pk).update(quantity=F('quantity') + delta)

        logger.info(
            f"📦 [Stock] {product_field} {product_id} [{country}] {current} → {new_quantity} ({delta:+d})"
        )
        return new_quantity
