import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from storefront.models.cart import CartItem
from storefront.models.product import Product
from storefront.services.pricing import CartLine

logger = logging.getLogger(__name__)


def get_cart_item(session: Session, user_id: int, product_id: int) -> Optional[CartItem]:
    return session.exec(
        select(CartItem).where(
            CartItem.user_id == user_id,
            CartItem.product_id == product_id,
        )
    ).first()


def add_to_cart(session: Session, user_id: int, product_id: int, quantity: int = 1) -> CartItem:
    """Upsert: adding a product already in the cart increments its quantity"""
    existing_item = get_cart_item(session, user_id, product_id)

    if existing_item:
        existing_item.quantity += quantity
        existing_item.updated_at = datetime.utcnow()
        session.add(existing_item)
        session.commit()
        session.refresh(existing_item)
        return existing_item

    new_item = CartItem(user_id=user_id, product_id=product_id, quantity=quantity)
    session.add(new_item)
    try:
        session.commit()
    except IntegrityError:
        # a concurrent add created the row first; fold into it
        session.rollback()
        return add_to_cart(session, user_id, product_id, quantity)

    session.refresh(new_item)
    return new_item


def set_quantity(session: Session, user_id: int, product_id: int, quantity: int) -> Optional[CartItem]:
    """Last write wins. quantity <= 0 removes the line; returns None then"""
    item = get_cart_item(session, user_id, product_id)
    if item is None:
        return None

    if quantity <= 0:
        session.delete(item)
        session.commit()
        return None

    item.quantity = quantity
    item.updated_at = datetime.utcnow()
    session.add(item)
    session.commit()
    session.refresh(item)
    return item


def remove_from_cart(session: Session, user_id: int, product_id: int) -> bool:
    item = get_cart_item(session, user_id, product_id)
    if item is None:
        return False

    session.delete(item)
    session.commit()
    return True


def clear_cart(session: Session, user_id: int, commit: bool = True) -> int:
    """
    Delete every cart row of the user. Clearing an already empty cart is
    not an error, it simply removes nothing.
    """
    items = session.exec(
        select(CartItem).where(CartItem.user_id == user_id)
    ).all()

    for item in items:
        session.delete(item)
    removed = len(items)

    if commit:
        session.commit()

    logger.info(f"Cleared {removed} cart item(s) for user {user_id}")
    return removed


def cart_snapshot(session: Session, user_id: int) -> List[CartLine]:
    """Cart joined with the live catalog; inactive products are skipped"""
    rows = session.exec(
        select(CartItem, Product)
        .join(Product, CartItem.product_id == Product.id)
        .where(CartItem.user_id == user_id)
        .where(Product.is_active == True)  # noqa: E712
        .order_by(CartItem.id)
    ).all()

    return [
        CartLine(
            product_id=product.id,
            product_name=product.name,
            unit_price=product.price,
            quantity=cart_item.quantity,
            weight_kg=product.weight_kg,
        )
        for cart_item, product in rows
        if cart_item.quantity > 0
    ]
