"""
Inventory Service

Every change to quantity_on_hand / quantity_reserved goes through this
service so that each mutation is paired with an InventoryTransaction ledger
entry in the same transaction.

Rows are read with SELECT ... FOR UPDATE. Under READ COMMITTED this makes a
concurrent allocation of the same row wait for the first transaction to
commit and then re-read the committed quantities.
"""
import logging
from typing import List, Optional, Dict, Any
import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from stockroom.core.enum_utils import get_enum_value
from stockroom.core.exceptions import ConflictError, NotFoundError
from stockroom.models.inventory import Inventory, InventoryTransaction, TransactionType, ReferenceType
from stockroom.models.location import Location, LocationType


logger = logging.getLogger(__name__)


class InventoryService:

    def __init__(self, db: AsyncSession):
        self.db = db

    # ==================== READS ====================

    async def lock_rows_for_variant(self, variant_id: uuid.UUID) -> List[Inventory]:
        """All inventory rows of a variant, locked for the rest of the transaction."""
        stmt = (
            select(Inventory)
            .where(Inventory.variant_id == variant_id)
            .order_by(Inventory.id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return list((await self.db.execute(stmt)).scalars().all())

    async def get_locked(self, inventory_id: uuid.UUID) -> Inventory:
        stmt = (
            select(Inventory)
            .where(Inventory.id == inventory_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        inventory = (await self.db.execute(stmt)).scalar_one_or_none()
        if inventory is None:
            raise NotFoundError(f"Inventory {inventory_id} not found")
        return inventory

    async def find(self, variant_id: uuid.UUID, location_id: uuid.UUID, lock: bool = True) -> Optional[Inventory]:
        stmt = select(Inventory).where(
            Inventory.variant_id == variant_id,
            Inventory.location_id == location_id,
        )
        if lock:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        return (await self.db.execute(stmt)).scalar_one_or_none()

    async def get_or_create(self, variant_id: uuid.UUID, location_id: uuid.UUID) -> Inventory:
        inventory = await self.find(variant_id, location_id)
        if inventory is None:
            inventory = Inventory(
                variant_id=variant_id,
                location_id=location_id,
                quantity_on_hand=0,
                quantity_reserved=0,
            )
            self.db.add(inventory)
            await self.db.flush()
        return inventory

    async def first_location_of_type(self, location_type: str) -> Optional[Location]:
        stmt = (
            select(Location)
            .where(
                Location.type == get_enum_value(location_type),
                Location.is_active == True,  # noqa: E712
            )
            .order_by(Location.pick_sequence, Location.name)
            .limit(1)
        )
        return (await self.db.execute(stmt)).scalar_one_or_none()

    # ==================== LEDGER ====================

    def record_transaction(
        self,
        variant_id: uuid.UUID,
        location_id: Optional[uuid.UUID],
        transaction_type: TransactionType,
        quantity_change: int,
        reference_type: Optional[ReferenceType] = None,
        reference_id: Optional[Any] = None,
        user_id: Optional[uuid.UUID] = None,
        notes: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> InventoryTransaction:
        entry = InventoryTransaction(
            variant_id=variant_id,
            location_id=location_id,
            transaction_type=get_enum_value(transaction_type),
            quantity_change=quantity_change,
            reference_type=get_enum_value(reference_type),
            reference_id=str(reference_id) if reference_id is not None else None,
            user_id=user_id,
            notes=notes,
            details=details,
        )
        self.db.add(entry)
        return entry

    # ==================== MUTATIONS ====================

    def adjust_on_hand(
        self,
        inventory: Inventory,
        delta: int,
        transaction_type: TransactionType,
        reference_type: Optional[ReferenceType] = None,
        reference_id: Optional[Any] = None,
        user_id: Optional[uuid.UUID] = None,
        notes: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> InventoryTransaction:
        """Add (or remove, for negative delta) physical stock at a location."""
        new_on_hand = (inventory.quantity_on_hand or 0) + delta
        if new_on_hand < 0:
            raise ConflictError(
                f"Adjustment of {delta} would leave negative stock at location {inventory.location_id}"
            )
        if new_on_hand < (inventory.quantity_reserved or 0):
            raise ConflictError(
                f"Adjustment of {delta} would leave {new_on_hand} on hand below "
                f"{inventory.quantity_reserved} reserved at location {inventory.location_id}"
            )
        inventory.quantity_on_hand = new_on_hand
        return self.record_transaction(
            inventory.variant_id,
            inventory.location_id,
            transaction_type,
            delta,
            reference_type,
            reference_id,
            user_id,
            notes,
            details,
        )

    def reserve(
        self,
        inventory: Inventory,
        quantity: int,
        reference_id: Any,
        user_id: Optional[uuid.UUID] = None,
        notes: Optional[str] = None,
    ) -> InventoryTransaction:
        if quantity <= 0:
            raise ValueError("Reservation quantity must be positive")
        if inventory.quantity_available < quantity:
            raise ConflictError(
                f"Only {inventory.quantity_available} units available at location {inventory.location_id}"
            )
        inventory.quantity_reserved = (inventory.quantity_reserved or 0) + quantity
        return self.record_transaction(
            inventory.variant_id,
            inventory.location_id,
            TransactionType.ALLOCATION,
            -quantity,
            ReferenceType.ORDER,
            reference_id,
            user_id,
            notes,
        )

    def release(
        self,
        inventory: Inventory,
        quantity: int,
        reference_type: ReferenceType,
        reference_id: Any,
        user_id: Optional[uuid.UUID] = None,
        notes: Optional[str] = None,
    ) -> Optional[InventoryTransaction]:
        """Give reserved units back to the available pool."""
        quantity = min(quantity, inventory.quantity_reserved or 0)
        if quantity <= 0:
            return None
        inventory.quantity_reserved = inventory.quantity_reserved - quantity
        return self.record_transaction(
            inventory.variant_id,
            inventory.location_id,
            TransactionType.ALLOCATION,
            quantity,
            reference_type,
            reference_id,
            user_id,
            notes,
        )

    def consume(
        self,
        inventory: Inventory,
        quantity: int,
        reference_type: ReferenceType,
        reference_id: Any,
        user_id: Optional[uuid.UUID] = None,
        notes: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> InventoryTransaction:
        """Remove picked units: both on-hand and reserved drop by quantity."""
        if quantity > (inventory.quantity_on_hand or 0):
            raise ConflictError(
                f"Cannot pick {quantity} units, only {inventory.quantity_on_hand} on hand"
            )
        inventory.quantity_on_hand = inventory.quantity_on_hand - quantity
        inventory.quantity_reserved = max(0, (inventory.quantity_reserved or 0) - quantity)
        return self.record_transaction(
            inventory.variant_id,
            inventory.location_id,
            TransactionType.SALE,
            -quantity,
            reference_type,
            reference_id,
            user_id,
            notes,
            details,
        )
