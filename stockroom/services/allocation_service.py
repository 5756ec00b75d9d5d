"""
Inventory Allocation Service

Reserves on-hand stock for the lines of a PENDING order across one or more
locations. For each line, locations are ranked by available quantity
(on_hand - reserved), largest first, and consumed greedily until the line is
covered.

What happens on a shortfall depends on the AllocationMode:

    STRICT     Raise InsufficientInventoryError. The caller's unit of work
               rolls back, so no inventory row is modified.
    BACKORDER  Reserve what exists, record an OPEN BackOrder for the rest and
               move the order to ALLOCATED.
    COUNT      Reserve nothing for the short line, open a cycle count for
               the variant and leave the order PENDING.
"""
import logging
from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple, TypeVar
import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from stockroom.core.enum_utils import get_enum_value, is_status
from stockroom.core.exceptions import ConflictError, InsufficientInventoryError, NotFoundError
from stockroom.models.inventory import (
    Inventory,
    InventoryReservation,
    BackOrder,
    ReservationStatus,
    BackOrderStatus,
)
from stockroom.models.order import Order, OrderStatus
from stockroom.models.product import ProductVariant
from stockroom.models.cycle_count import CountType
from stockroom.services.audit_service import AuditService
from stockroom.services.cycle_count_service import CycleCountService
from stockroom.services.inventory_service import InventoryService
from stockroom.services.order_status_service import OrderStatusService


logger = logging.getLogger(__name__)

K = TypeVar("K")


class AllocationMode(str, Enum):
    STRICT = "STRICT"
    BACKORDER = "BACKORDER"
    COUNT = "COUNT"


@dataclass
class ShortItem:
    order_item_id: str
    variant_id: str
    sku: str
    requested: int
    allocated: int
    shortfall: int


@dataclass
class AllocationResult:
    order_id: str
    order_number: str
    mode: str
    status: str
    locations_used: int = 0
    reserved_quantity: int = 0
    reservations: List[Dict[str, Any]] = field(default_factory=list)
    insufficient_items: List[ShortItem] = field(default_factory=list)
    back_orders_created: int = 0
    cycle_count_campaign_id: Optional[str] = None

    @property
    def fully_allocated(self) -> bool:
        return not self.insufficient_items

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["fully_allocated"] = self.fully_allocated
        return data


def plan_reservations(
    stock: Sequence[Tuple[K, int]],
    requested: int,
) -> Tuple[List[Tuple[K, int]], int]:
    """
    Greedy split of a requested quantity over candidate locations.

    Args:
        stock: (key, available) pairs; non-positive availability is ignored
        requested: quantity to cover

    Returns:
        ([(key, quantity_to_reserve), ...], shortfall)
    """
    plan: List[Tuple[K, int]] = []
    remaining = requested
    candidates = sorted(
        ((key, available) for key, available in stock if available > 0),
        key=lambda pair: pair[1],
        reverse=True,
    )
    for key, available in candidates:
        if remaining <= 0:
            break
        take = min(available, remaining)
        plan.append((key, take))
        remaining -= take
    return plan, max(remaining, 0)


class AllocationService:

    def __init__(self, db: AsyncSession):
        self.db = db
        self.inventory = InventoryService(db)
        self.audit = AuditService(db)
        self.order_status = OrderStatusService(db)

    async def _lock_order(self, order_id: uuid.UUID) -> Order:
        stmt = (
            select(Order)
            .where(Order.id == order_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        order = (await self.db.execute(stmt)).scalar_one_or_none()
        if order is None:
            raise NotFoundError("Order not found")
        return order

    async def _reserved_by_line(self, order_id: uuid.UUID) -> Dict[uuid.UUID, int]:
        """Quantities already held by ACTIVE reservations, keyed by order line."""
        stmt = select(InventoryReservation).where(
            InventoryReservation.order_id == order_id,
            InventoryReservation.status == ReservationStatus.ACTIVE.value,
        )
        held: Dict[uuid.UUID, int] = {}
        for reservation in (await self.db.execute(stmt)).scalars().all():
            held[reservation.order_item_id] = held.get(reservation.order_item_id, 0) + reservation.quantity
        return held

    async def allocate_order(
        self,
        order_id: uuid.UUID,
        mode: AllocationMode = AllocationMode.STRICT,
        user_id: Optional[uuid.UUID] = None,
    ) -> AllocationResult:
        mode = AllocationMode(get_enum_value(mode))
        order = await self._lock_order(order_id)

        if not is_status(order.status, OrderStatus.PENDING):
            raise ConflictError(
                f"Order {order.order_number} is {order.status}; only PENDING orders can be allocated"
            )

        result = AllocationResult(
            order_id=str(order.id),
            order_number=order.order_number,
            mode=mode.value,
            status=order.status,
        )
        already_held = await self._reserved_by_line(order.id)
        locations_used = set()
        count_inventory_ids: List[uuid.UUID] = []

        for item in await order.awaitable_attrs.items:
            needed = item.quantity - already_held.get(item.id, 0)
            if needed <= 0:
                continue

            rows = await self.inventory.lock_rows_for_variant(item.variant_id)
            plan, shortfall = plan_reservations(
                [(row, row.quantity_available) for row in rows],
                needed,
            )
            variant = await self.db.get(ProductVariant, item.variant_id)
            sku = variant.sku if variant else str(item.variant_id)

            if shortfall:
                if mode == AllocationMode.STRICT:
                    raise InsufficientInventoryError(sku, shortfall)

                allocated = item.quantity - needed
                if mode == AllocationMode.BACKORDER:
                    allocated += needed - shortfall
                result.insufficient_items.append(ShortItem(
                    order_item_id=str(item.id),
                    variant_id=str(item.variant_id),
                    sku=sku,
                    requested=item.quantity,
                    allocated=allocated,
                    shortfall=shortfall,
                ))

                if mode == AllocationMode.COUNT:
                    count_inventory_ids.extend(row.id for row in rows)
                    continue

                self.db.add(BackOrder(
                    order_id=order.id,
                    order_item_id=item.id,
                    variant_id=item.variant_id,
                    quantity_backordered=shortfall,
                    status=BackOrderStatus.OPEN.value,
                ))
                result.back_orders_created += 1

            for row, quantity in plan:
                self._reserve(order, item.id, row, quantity, user_id)
                locations_used.add(row.location_id)
                result.reserved_quantity += quantity
                result.reservations.append({
                    "order_item_id": str(item.id),
                    "sku": sku,
                    "location_id": str(row.location_id),
                    "quantity": quantity,
                })

        result.locations_used = len(locations_used)

        if mode == AllocationMode.COUNT and result.insufficient_items:
            await self._defer_for_count(order, result, count_inventory_ids, user_id)
        else:
            if mode == AllocationMode.BACKORDER and result.insufficient_items:
                note = (
                    f"Partial allocation - {result.locations_used} location(s) allocated, "
                    f"{result.back_orders_created} back order(s) created"
                )
            else:
                note = f"Inventory allocated successfully - {result.locations_used} location(s)"
            await self.order_status.change_status(order, OrderStatus.ALLOCATED, user_id, note)

        result.status = order.status
        await self.audit.log(
            action="ALLOCATE",
            entity_type="ORDER",
            entity_id=order.id,
            user_id=user_id,
            new_values={
                "mode": mode.value,
                "reserved_quantity": result.reserved_quantity,
                "locations_used": result.locations_used,
                "short_lines": len(result.insufficient_items),
            },
        )
        await self.db.flush()

        logger.info(
            f"Allocated order {order.order_number} ({mode.value}): "
            f"{result.reserved_quantity} units over {result.locations_used} location(s), "
            f"{len(result.insufficient_items)} short line(s)"
        )
        return result

    def _reserve(
        self,
        order: Order,
        order_item_id: uuid.UUID,
        row: Inventory,
        quantity: int,
        user_id: Optional[uuid.UUID],
    ) -> InventoryReservation:
        self.inventory.reserve(
            row,
            quantity,
            reference_id=order.id,
            user_id=user_id,
            notes=f"Reserved for order {order.order_number}",
        )
        reservation = InventoryReservation(
            order_id=order.id,
            order_item_id=order_item_id,
            inventory_id=row.id,
            quantity=quantity,
            status=ReservationStatus.ACTIVE.value,
        )
        self.db.add(reservation)
        return reservation

    async def _defer_for_count(
        self,
        order: Order,
        result: AllocationResult,
        inventory_ids: List[uuid.UUID],
        user_id: Optional[uuid.UUID],
    ) -> None:
        skus = ", ".join(item.sku for item in result.insufficient_items)
        if inventory_ids:
            campaign = await CycleCountService(self.db).create_campaign(
                name=f"Shortage count for order {order.order_number}",
                description=f"Stock short for {skus}",
                inventory_ids=inventory_ids,
                count_type=CountType.SHORTAGE,
                source_order_id=order.id,
                user_id=user_id,
            )
            result.cycle_count_campaign_id = str(campaign.id)
        else:
            logger.warning(
                f"Order {order.order_number} short on {skus} with no stocked locations to count"
            )

        await self.audit.log(
            action="ALLOCATION_DEFERRED",
            entity_type="ORDER",
            entity_id=order.id,
            user_id=user_id,
            new_values={"campaign_id": result.cycle_count_campaign_id, "skus": skus},
            description=f"Allocation deferred pending cycle count for {skus}",
        )
