"""Create the tables, an admin account and, optionally, demo orders waiting for verification.

    python -m wingx.seed --admin-email admin@wingx.com --admin-password secreto --demo-orders 3
"""

import argparse
import asyncio
import os
import random

import bcrypt
from sqlalchemy.exc import IntegrityError

from wingx.application.schemas import CustomerInfo, OrderCreate, OrderItemCreate, PaymentProof
from wingx.core_settings import get_settings
from wingx.domain.models import Role
from wingx.infrastructure.db import SessionLocal, init_engine, init_models
from wingx.infrastructure.live_query import ChangeSignal
from wingx.infrastructure.repositories import OrderRepository, UserRepository

DEMO_CUSTOMERS = [
    ("María González", "0414-555.1234", "banesco"),
    ("José Rodríguez", "0412 765 4321", "mercantil"),
    ("Ana Pérez", "(0424) 111-2233", "bdv"),
    ("Carlos Hernández", "+58 416 998 7766", "provincial"),
]
DEMO_ITEMS = [
    ("Franela Oversize", 15.0),
    ("Jeans Cargo", 32.5),
    ("Bikini Verano", 22.0),
    ("Gorra Wingx", 12.0),
]


def bootstrap_admin(users: UserRepository, email: str, password: str, display_name: str) -> None:
    password_hash = bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")
    try:
        user = users.create(
            email=email.strip().lower(),
            display_name=display_name,
            password_hash=password_hash,
            provider="password",
            role=Role.ADMIN.value,
        )
    except IntegrityError:
        print(f"Account {email} already exists; skipping")
        return
    print(f"Created admin account {user.email}")


def demo_order(index: int) -> OrderCreate:
    name, phone, bank = DEMO_CUSTOMERS[index % len(DEMO_CUSTOMERS)]
    product, price = DEMO_ITEMS[index % len(DEMO_ITEMS)]
    quantity = random.randint(1, 3)
    return OrderCreate(
        items=[OrderItemCreate(product_id=f"demo-{index}", name=product, price=price, quantity=quantity,
                               selected_size="M")],
        total_price=price * quantity,
        customer=CustomerInfo(name=name, phone=phone, address="Caracas", delivery_method="pickup"),
        payment_proof=PaymentProof(
            origin_bank=bank,
            origin_phone=phone,
            payer_id=f"V-{random.randint(10_000_000, 30_000_000)}",
            reference_number=str(random.randint(100_000, 999_999)),
            payment_date="2024-01-15",
        ),
    )


async def create_demo_orders(orders: OrderRepository, count: int) -> None:
    for i in range(count):
        order = await orders.create(demo_order(i))
        print(f"Created pending order {order.id} for {order.display_name}")


def main(argv=None):
    parser = argparse.ArgumentParser(description="Bootstrap the Wingx admin database")
    parser.add_argument("--admin-email", default=os.getenv("SEED_ADMIN_EMAIL"))
    parser.add_argument("--admin-password", default=os.getenv("SEED_ADMIN_PASSWORD"))
    parser.add_argument("--admin-name", default=os.getenv("SEED_ADMIN_NAME", "Administrador"))
    parser.add_argument("--demo-orders", type=int, default=0)
    args = parser.parse_args(argv)

    init_engine(get_settings().database_url)
    init_models()
    print("Tables created")

    if args.admin_email and args.admin_password:
        bootstrap_admin(UserRepository(SessionLocal), args.admin_email, args.admin_password, args.admin_name)
    else:
        print("No admin credentials given; skipping account bootstrap")

    if args.demo_orders > 0:
        asyncio.run(create_demo_orders(OrderRepository(SessionLocal, ChangeSignal()), args.demo_orders))


if __name__ == "__main__":
    main()
