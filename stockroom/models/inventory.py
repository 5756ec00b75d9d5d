"""Inventory models: per-location stock, the movement ledger, reservations,
backorders and location-to-location transfers."""
from enum import Enum
from datetime import datetime, timezone
from sqlalchemy import Column, String, Text, ForeignKey, Integer, DateTime
from sqlalchemy import UniqueConstraint, CheckConstraint, Index, event
from sqlalchemy.orm import relationship
import uuid

from stockroom.database import Base
from stockroom.db_types import UUIDType, JSONType


class TransactionType(str, Enum):
    """Ledger entry type."""
    SALE = "SALE"  # Picked and leaving the building
    ALLOCATION = "ALLOCATION"  # Reserved against an order (or released)
    TRANSFER = "TRANSFER"  # Location to location move
    COUNT = "COUNT"  # Cycle count adjustment
    RETURNS = "RETURNS"  # Customer return restocked
    RECEIPT = "RECEIPT"  # Purchase order receiving
    ADJUSTMENT = "ADJUSTMENT"  # Manual correction


class ReferenceType(str, Enum):
    ORDER = "ORDER"
    PICK_LIST = "PICK_LIST"
    CYCLE_COUNT = "CYCLE_COUNT"
    TRANSFER = "TRANSFER"
    RETURN = "RETURN"
    RECEIVING = "RECEIVING"


class ReservationStatus(str, Enum):
    ACTIVE = "ACTIVE"
    PICKED = "PICKED"
    RELEASED = "RELEASED"


class BackOrderStatus(str, Enum):
    OPEN = "OPEN"
    FULFILLED = "FULFILLED"
    CANCELLED = "CANCELLED"


class TransferStatus(str, Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class Inventory(Base):
    """Stock of one product variant at one location."""

    __tablename__ = "inventory"
    __table_args__ = (
        UniqueConstraint("variant_id", "location_id", name="uq_inventory_variant_location"),
        CheckConstraint("quantity_on_hand >= 0", name="chk_inventory_on_hand_non_negative"),
        CheckConstraint("quantity_reserved >= 0", name="chk_inventory_reserved_non_negative"),
        CheckConstraint("quantity_reserved <= quantity_on_hand", name="chk_inventory_reserved_within_on_hand"),
    )

    id = Column(UUIDType, primary_key=True, default=uuid.uuid4)
    variant_id = Column(UUIDType, ForeignKey("product_variants.id"), nullable=False, index=True)
    location_id = Column(UUIDType, ForeignKey("locations.id"), nullable=False, index=True)

    quantity_on_hand = Column(Integer, default=0, nullable=False)
    quantity_reserved = Column(Integer, default=0, nullable=False)

    last_counted_at = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    variant = relationship("ProductVariant", lazy="selectin")
    location = relationship("Location", lazy="selectin")

    @property
    def quantity_available(self) -> int:
        return (self.quantity_on_hand or 0) - (self.quantity_reserved or 0)

    def __repr__(self) -> str:
        return (
            f"<Inventory(variant={self.variant_id}, location={self.location_id}, "
            f"on_hand={self.quantity_on_hand}, reserved={self.quantity_reserved})>"
        )


class InventoryTransaction(Base):
    """Append-only ledger of signed quantity changes."""

    __tablename__ = "inventory_transactions"
    __table_args__ = (
        Index("ix_inventory_transactions_reference", "reference_type", "reference_id"),
    )

    id = Column(UUIDType, primary_key=True, default=uuid.uuid4)
    variant_id = Column(UUIDType, ForeignKey("product_variants.id"), nullable=False, index=True)
    location_id = Column(UUIDType, ForeignKey("locations.id"), index=True)

    transaction_type = Column(
        String(50), nullable=False, index=True,
        comment="SALE, ALLOCATION, TRANSFER, COUNT, RETURNS, RECEIPT, ADJUSTMENT"
    )
    quantity_change = Column(Integer, nullable=False)

    reference_type = Column(String(50), comment="ORDER, PICK_LIST, CYCLE_COUNT, TRANSFER, RETURN, RECEIVING")
    reference_id = Column(String(100))

    user_id = Column(UUIDType, ForeignKey("users.id", ondelete="SET NULL"))
    notes = Column(Text)
    details = Column("metadata", JSONType)

    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        index=True,
    )


@event.listens_for(InventoryTransaction, "before_update")
def _reject_ledger_update(mapper, connection, target):
    raise RuntimeError(
        f"Inventory transaction {target.id} is immutable; post a new entry instead"
    )


class InventoryReservation(Base):
    """Quantity of one inventory row held for one order line."""

    __tablename__ = "inventory_reservations"

    id = Column(UUIDType, primary_key=True, default=uuid.uuid4)
    order_id = Column(UUIDType, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    order_item_id = Column(UUIDType, ForeignKey("order_items.id", ondelete="CASCADE"), nullable=False, index=True)
    inventory_id = Column(UUIDType, ForeignKey("inventory.id"), nullable=False, index=True)

    quantity = Column(Integer, nullable=False)
    quantity_picked = Column(Integer, default=0, nullable=False)
    status = Column(String(50), default="ACTIVE", nullable=False, index=True, comment="ACTIVE, PICKED, RELEASED")

    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    released_at = Column(DateTime(timezone=True))

    inventory = relationship("Inventory", lazy="selectin")
    order_item = relationship("OrderItem", lazy="selectin")

    @property
    def quantity_outstanding(self) -> int:
        return self.quantity - (self.quantity_picked or 0)


class BackOrder(Base):
    """Shortfall accepted against an order line."""

    __tablename__ = "back_orders"

    id = Column(UUIDType, primary_key=True, default=uuid.uuid4)
    order_id = Column(UUIDType, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    order_item_id = Column(UUIDType, ForeignKey("order_items.id", ondelete="CASCADE"), nullable=False)
    variant_id = Column(UUIDType, ForeignKey("product_variants.id"), nullable=False, index=True)

    quantity_backordered = Column(Integer, nullable=False)
    reason = Column(String(100), default="INSUFFICIENT_INVENTORY")
    status = Column(String(50), default="OPEN", nullable=False, index=True, comment="OPEN, FULFILLED, CANCELLED")

    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), index=True)
    fulfilled_at = Column(DateTime(timezone=True))

    variant = relationship("ProductVariant", lazy="selectin")


class InventoryTransfer(Base):
    """Requested move of stock between two locations, pending supervisor approval."""

    __tablename__ = "inventory_transfers"
    __table_args__ = (
        CheckConstraint("quantity > 0", name="chk_transfer_quantity_positive"),
    )

    id = Column(UUIDType, primary_key=True, default=uuid.uuid4)
    variant_id = Column(UUIDType, ForeignKey("product_variants.id"), nullable=False, index=True)
    from_location_id = Column(UUIDType, ForeignKey("locations.id"), nullable=False)
    to_location_id = Column(UUIDType, ForeignKey("locations.id"), nullable=False)
    quantity = Column(Integer, nullable=False)
    reason = Column(Text)

    status = Column(String(50), default="PENDING", nullable=False, index=True, comment="PENDING, APPROVED, REJECTED")

    requested_by = Column(UUIDType, ForeignKey("users.id", ondelete="SET NULL"))
    confirmed_by = Column(UUIDType, ForeignKey("users.id", ondelete="SET NULL"))
    rejection_reason = Column(Text)

    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    processed_at = Column(DateTime(timezone=True))

    variant = relationship("ProductVariant", lazy="selectin")
    from_location = relationship("Location", foreign_keys=[from_location_id], lazy="selectin")
    to_location = relationship("Location", foreign_keys=[to_location_id], lazy="selectin")
