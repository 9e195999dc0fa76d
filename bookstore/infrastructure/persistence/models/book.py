"""Book ORM model."""

from sqlalchemy import CheckConstraint, Float, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from bookstore.infrastructure.persistence.database import Base


class Book(Base):
    """Book in the catalogue. Table: books. author_id is the listing user (NULL once deleted)."""

    __tablename__ = "books"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    author_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True
    )
    book_name: Mapped[str] = mapped_column(String, unique=True, nullable=False)
    book_image: Mapped[str] = mapped_column(String, nullable=False, default="")
    author_name: Mapped[str] = mapped_column(String, nullable=False, default="")
    description: Mapped[str] = mapped_column(String, nullable=False, default="")
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    price: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)

    __table_args__ = (CheckConstraint("quantity >= 0", name="book_quantity_check"),)
