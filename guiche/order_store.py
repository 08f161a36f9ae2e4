"""Persistence for orders.

One row per transaction id. Status changes are a single conditional UPDATE so
duplicate or racing webhook deliveries converge on the same row state without
any multi-row transaction.
"""
from decimal import Decimal

import structlog
from sqlalchemy import or_, select, update
from sqlalchemy.exc import SQLAlchemyError

from guiche.database import SessionLocal
from guiche.errors import PersistenceError
from guiche.models import Order, utcnow

logger = structlog.get_logger(component="order_store")

PENDING = "pending"
PAID = "paid"
REFUNDED = "refunded"

# target status -> statuses it may be reached from
ALLOWED_PREDECESSORS = {
    PAID: (PENDING,),
    REFUNDED: (PENDING, PAID),
}

UPDATED = "updated"
UNCHANGED = "unchanged"
NOT_FOUND = "not_found"
IGNORED = "ignored"


def create_pending(
    transaction_id: str,
    provisional_id: str,
    customer: dict,
    items: list,
    total_amount: Decimal,
) -> Order:
    db = SessionLocal()
    try:
        order = Order(
            transaction_id=transaction_id,
            provisional_id=provisional_id,
            customer_name=customer["name"],
            customer_email=customer["email"],
            customer_cpf=customer["cpf"],
            customer_phone=customer["phone"],
            items=[
                {
                    "name": item["name"],
                    "quantity": item["quantity"],
                    "unit_price": str(item["unit_price"]),
                }
                for item in items
            ],
            total_amount=total_amount,
            status=PENDING,
        )
        db.add(order)
        db.commit()
        db.refresh(order)
        logger.info("order_created", transaction_id=transaction_id, total_amount=str(total_amount))
        return order
    except SQLAlchemyError as exc:
        db.rollback()
        raise PersistenceError(f"could not insert order {transaction_id}: {exc}") from exc
    finally:
        db.close()


def _matches(order_id: str):
    return or_(Order.transaction_id == order_id, Order.provisional_id == order_id)


def mark_status(transaction_id: str, status: str) -> str:
    """Move an order to ``paid`` or ``refunded``.

    ``transaction_id`` may be the gateway id or the provisional id. Returns
    UPDATED, UNCHANGED (already there), NOT_FOUND, or IGNORED when the row is
    in a status the target cannot be reached from.
    """
    if status not in ALLOWED_PREDECESSORS:
        raise ValueError(f"unsupported target status: {status}")

    db = SessionLocal()
    try:
        result = db.execute(
            update(Order)
            .where(
                _matches(transaction_id),
                Order.status.in_(ALLOWED_PREDECESSORS[status]),
            )
            .values(status=status, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        db.commit()
        if result.rowcount:
            logger.info("order_status_changed", transaction_id=transaction_id, status=status)
            return UPDATED

        current = db.execute(
            select(Order.status).where(_matches(transaction_id))
        ).scalars().first()
    except SQLAlchemyError as exc:
        db.rollback()
        raise PersistenceError(f"could not update order {transaction_id}: {exc}") from exc
    finally:
        db.close()

    if current is None:
        logger.info("order_not_found", transaction_id=transaction_id, status=status)
        return NOT_FOUND
    if current == status:
        return UNCHANGED
    logger.warning(
        "order_status_regression_ignored",
        transaction_id=transaction_id,
        current=current,
        requested=status,
    )
    return IGNORED


def get_order(transaction_id: str) -> Order | None:
    db = SessionLocal()
    try:
        return db.execute(select(Order).where(_matches(transaction_id))).scalars().first()
    except SQLAlchemyError as exc:
        raise PersistenceError(f"could not read order {transaction_id}: {exc}") from exc
    finally:
        db.close()


def find_paid_orders(cpf: str | None = None, email: str | None = None) -> list[Order]:
    query = select(Order).where(Order.status == PAID)
    if cpf:
        query = query.where(Order.customer_cpf == cpf)
    elif email:
        query = query.where(Order.customer_email == email)
    else:
        return []

    db = SessionLocal()
    try:
        return list(db.execute(query.order_by(Order.created_at.desc())).scalars())
    except SQLAlchemyError as exc:
        raise PersistenceError(f"could not search paid orders: {exc}") from exc
    finally:
        db.close()


def list_orders(limit: int = 200) -> list[Order]:
    db = SessionLocal()
    try:
        return list(
            db.execute(
                select(Order)
                .order_by(Order.created_at.desc())
                .limit(max(1, min(limit, 500)))
            ).scalars()
        )
    except SQLAlchemyError as exc:
        raise PersistenceError(f"could not list orders: {exc}") from exc
    finally:
        db.close()
