from sqlmodel import Field, SQLModel

class CartAddRequest(SQLModel):
    product_id: int
    quantity: int = Field(default=1, ge=1)

class CartUpdateRequest(SQLModel):
    quantity: int
