"""Address ORM model."""

from sqlalchemy import BigInteger, CheckConstraint, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from bookstore.domain.enums import AddressType
from bookstore.infrastructure.persistence.database import Base


class Address(Base):
    """Delivery address. Table: addresses. At most one per (user, address_type)."""

    __tablename__ = "addresses"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    first_name: Mapped[str] = mapped_column(String, nullable=False, default="")
    address: Mapped[str] = mapped_column(String, nullable=False, default="")
    city: Mapped[str] = mapped_column(String, nullable=False, default="")
    state: Mapped[str] = mapped_column(String, nullable=False, default="")
    address_type: Mapped[str] = mapped_column(String, nullable=False)
    locality: Mapped[str] = mapped_column(String, nullable=False, default="")
    phone_number: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

    __table_args__ = (
        CheckConstraint(
            "address_type IN ({})".format(
                ", ".join("'{}'".format(v) for v in AddressType.values())
            ),
            name="address_type_check",
        ),
        UniqueConstraint("user_id", "address_type", name="address_user_type_uq"),
    )
