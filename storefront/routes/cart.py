from fastapi import APIRouter, Depends, HTTPException
from sqlmodel import Session
from storefront.config import settings
from storefront.database import get_session
from storefront.models.product import Product
from storefront.models.user import User
from storefront.schemas.cart_schemas import CartAddRequest, CartUpdateRequest
from storefront.services import cart_service
from storefront.services.pricing import compute_totals
from storefront.utils.token import get_current_user


router = APIRouter()

# Add to Cart

@router.post("/add")
def add_to_cart(
    data: CartAddRequest,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user)
):
    product = session.get(Product, data.product_id)
    if not product or not product.is_active:
        raise HTTPException(status_code=404, detail="Product not found")

    item = cart_service.add_to_cart(session, current_user.id, product.id, data.quantity)
    return {"message": "Cart updated", "item": item}


# View Cart

@router.get("/")
def get_cart(
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user)
):
    lines = cart_service.cart_snapshot(session, current_user.id)
    totals = compute_totals(lines, settings.TAX_RATE, settings.FLAT_SHIPPING_COST if lines else 0)

    return {
        "items": [
            {
                "product_id": line.product_id,
                "product_name": line.product_name,
                "price": line.unit_price,
                "quantity": line.quantity,
                "total": line.line_total,
            }
            for line in lines
        ],
        "summary": {
            "subtotal": totals.subtotal,
            "tax": totals.tax,
            "shipping": totals.shipping,
            "total": totals.total,
        },
    }

# Update Cart

@router.put("/update/{product_id}")
def update_cart_item(
    product_id: int,
    data: CartUpdateRequest,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user)
):
    if cart_service.get_cart_item(session, current_user.id, product_id) is None:
        raise HTTPException(404, "Cart item not found")

    item = cart_service.set_quantity(session, current_user.id, product_id, data.quantity)
    if item is None:
        return {"message": "Item removed"}

    return {"message": "Quantity updated", "item": item}

# Remove Cart

@router.delete("/remove/{product_id}")
def remove_item(
    product_id: int,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user)
):
    if not cart_service.remove_from_cart(session, current_user.id, product_id):
        raise HTTPException(404, "Item not found")

    return {"message": "Item removed from cart"}

# Clear Cart

@router.delete("/clear")
def clear_cart_endpoint(
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user)
):
    removed = cart_service.clear_cart(session, current_user.id)
    return {"message": "Cart cleared", "removed": removed}
