"""Seed a small warehouse for local testing and print access tokens."""
import asyncio
import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from stockroom.core.security import create_access_token
from stockroom.database import async_session_factory, init_db
from stockroom.models import (
    User, UserRole, Product, ProductVariant, Location, LocationType,
    Inventory, Order, OrderItem,
)
from stockroom.models.order import OrderStatus


async def seed():
    """Seed initial data."""
    await init_db()

    async with async_session_factory() as db:
        try:
            print("Seeding data...")

            # 1. Users
            print("Creating users...")
            admin = User(id=uuid.uuid4(), email="admin@stockroom.local", name="Admin", role=UserRole.ADMIN.value)
            manager = User(id=uuid.uuid4(), email="manager@stockroom.local", name="Floor Manager", role=UserRole.MANAGER.value)
            picker = User(id=uuid.uuid4(), email="picker@stockroom.local", name="Picker", role=UserRole.STAFF.value)
            db.add_all([admin, manager, picker])

            # 2. Locations, in walk order
            print("Creating locations...")
            locations = {}
            for sequence, (name, location_type) in enumerate([
                ("RCV-DOCK-1", LocationType.RECEIVING),
                ("A-01-01", LocationType.STORAGE),
                ("A-01-02", LocationType.STORAGE),
                ("B-02-01", LocationType.PICKING),
                ("PACK-1", LocationType.PACKING),
                ("RET-1", LocationType.RETURNS),
            ], start=1):
                location = Location(
                    id=uuid.uuid4(),
                    name=name,
                    type=location_type.value,
                    barcode=f"LOC-{name}",
                    pick_sequence=sequence,
                )
                db.add(location)
                locations[name] = location

            # 3. Products
            print("Creating products...")
            variants = {}
            for sku, name, price in [
                ("WIDGET-RED", "Widget (red)", Decimal("25.00")),
                ("WIDGET-BLUE", "Widget (blue)", Decimal("25.00")),
                ("GADGET-XL", "Gadget XL", Decimal("150.00")),
            ]:
                product = Product(id=uuid.uuid4(), name=name, sku=f"P-{sku}")
                variant = ProductVariant(
                    id=uuid.uuid4(),
                    product_id=product.id,
                    name=name,
                    sku=sku,
                    upc=str(uuid.uuid4().int)[:12],
                    price=price,
                )
                db.add_all([product, variant])
                variants[sku] = variant

            # 4. Stock
            print("Creating inventory...")
            for sku, location_name, quantity in [
                ("WIDGET-RED", "A-01-01", 100),
                ("WIDGET-RED", "A-01-02", 40),
                ("WIDGET-BLUE", "B-02-01", 60),
                ("GADGET-XL", "A-01-01", 12),
            ]:
                db.add(Inventory(
                    variant_id=variants[sku].id,
                    location_id=locations[location_name].id,
                    quantity_on_hand=quantity,
                    quantity_reserved=0,
                ))

            # 5. Orders
            print("Creating orders...")
            now = datetime.now(timezone.utc)
            for number, status, lines in [
                ("ORD-1001", OrderStatus.PENDING, [("WIDGET-RED", 120), ("WIDGET-BLUE", 5)]),
                ("ORD-1002", OrderStatus.PENDING, [("GADGET-XL", 20)]),
                ("ORD-1003", OrderStatus.SHIPPED, [("GADGET-XL", 1)]),
            ]:
                order = Order(
                    id=uuid.uuid4(),
                    order_number=number,
                    external_order_id=f"ext-{number}",
                    customer_name="Sample Customer",
                    customer_email="customer@example.com",
                    status=status.value,
                    shipped_at=now - timedelta(days=2) if status == OrderStatus.SHIPPED else None,
                    tracking_number="1Z999" if status == OrderStatus.SHIPPED else None,
                )
                total = Decimal("0")
                for sku, quantity in lines:
                    price = variants[sku].price
                    order.items.append(OrderItem(variant_id=variants[sku].id, quantity=quantity, unit_price=price))
                    total += price * quantity
                order.total_amount = total
                db.add(order)

            await db.commit()
            print("Data seeded successfully!")

            print("\nAccess tokens:")
            for user in (admin, manager, picker):
                token = create_access_token(user.id, expires_delta=timedelta(days=7))
                print(f"  {user.email} ({user.role}): {token}")

        except Exception as e:
            print(f"Error seeding data: {e}")
            await db.rollback()
            raise


if __name__ == "__main__":
    asyncio.run(seed())
