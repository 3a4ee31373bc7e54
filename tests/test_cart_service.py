from sqlmodel import select

from storefront.models.cart import CartItem
from storefront.models.product import Product
from storefront.services import cart_service


def test_adding_same_product_increments_quantity(session, user, product):
    cart_service.add_to_cart(session, user.id, product.id, 1)
    item = cart_service.add_to_cart(session, user.id, product.id, 2)

    assert item.quantity == 3
    rows = session.exec(select(CartItem).where(CartItem.user_id == user.id)).all()
    assert len(rows) == 1


def test_set_quantity_zero_removes_line(session, user, product):
    cart_service.add_to_cart(session, user.id, product.id, 2)

    assert cart_service.set_quantity(session, user.id, product.id, 0) is None
    assert cart_service.get_cart_item(session, user.id, product.id) is None


def test_set_quantity_overwrites(session, user, product):
    cart_service.add_to_cart(session, user.id, product.id, 2)
    item = cart_service.set_quantity(session, user.id, product.id, 7)
    assert item.quantity == 7


def test_clear_cart_is_idempotent(session, user, product):
    cart_service.add_to_cart(session, user.id, product.id, 2)

    assert cart_service.clear_cart(session, user.id) == 1
    assert cart_service.clear_cart(session, user.id) == 0


def test_clear_cart_only_touches_owner(session, user, other_user, product):
    cart_service.add_to_cart(session, user.id, product.id, 1)
    cart_service.add_to_cart(session, other_user.id, product.id, 4)

    cart_service.clear_cart(session, user.id)

    assert cart_service.get_cart_item(session, other_user.id, product.id).quantity == 4


def test_snapshot_uses_live_price_and_skips_inactive(session, user, product):
    retired = Product(name="Retired", price=10.0, is_active=False)
    session.add(retired)
    session.commit()
    session.refresh(retired)

    cart_service.add_to_cart(session, user.id, product.id, 2)
    cart_service.add_to_cart(session, user.id, retired.id, 1)

    product.price = 120.0
    session.add(product)
    session.commit()

    lines = cart_service.cart_snapshot(session, user.id)

    assert [line.product_id for line in lines] == [product.id]
    assert lines[0].unit_price == 120.0
    assert lines[0].line_total == 240.0


def test_remove_missing_item_returns_false(session, user, product):
    assert cart_service.remove_from_cart(session, user.id, product.id) is False


def test_product_columns_are_what_checkout_reads():
    assert set(Product.__table__.columns.keys()) == {
        "id", "name", "price", "weight_kg", "is_active", "created_at", "updated_at",
    }
