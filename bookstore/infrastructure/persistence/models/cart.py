"""Cart ORM model. Rows are soft-removed (is_uncarted) rather than deleted."""

from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer
from sqlalchemy.orm import Mapped, mapped_column

from bookstore.infrastructure.persistence.database import Base
from bookstore.shared.utils.datetime import utc_now


class CartItem(Base):
    """One book in a user's cart. Table: cart.

    Active lines have is_uncarted=False and is_ordered=False.
    """

    __tablename__ = "cart"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    book_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("books.id", ondelete="CASCADE"), nullable=False
    )
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    is_ordered: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_uncarted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now
    )
