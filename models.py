# models.py

import enum
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import DateTime, Integer, Numeric, String, create_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, sessionmaker
from sqlalchemy.pool import StaticPool


class OrderStatus(str, enum.Enum):
    PENDING = "PENDING"
    SHIPPED = "SHIPPED"
    DELIVERED = "DELIVERED"


def utcnow():
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    pass


class Order(Base):
    __tablename__ = "orders"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    customer_name: Mapped[str] = mapped_column(String(255), nullable=False)
    product_code: Mapped[str] = mapped_column(String(64), nullable=False)
    units_ordered: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    status: Mapped[str] = mapped_column(
        String(16), nullable=False, default=OrderStatus.PENDING.value
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    def to_dict(self):
        return {
            "id": self.id,
            "customer_name": self.customer_name,
            "product_code": self.product_code,
            "units_ordered": self.units_ordered,
            "unit_price": self.unit_price,
            "status": self.status,
        }

    def __repr__(self):
        return f"<Order {self.id} {self.product_code} x{self.units_ordered}>"


class Spreadsheet(Base):
    """A spreadsheet created for the orders table.

    `id` is the Google spreadsheetId; `sheet_id` is the data sheet the
    orders are written to and `pivot_sheet_id` holds the pivot table and chart.
    """

    __tablename__ = "spreadsheets"

    id: Mapped[str] = mapped_column(String(128), primary_key=True)
    sheet_id: Mapped[int] = mapped_column(Integer, nullable=False)
    pivot_sheet_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    @property
    def url(self):
        return f"https://docs.google.com/spreadsheets/d/{self.id}/edit"


# ---------- ENGINE ----------
def make_engine(url):
    if url in ("sqlite://", "sqlite:///:memory:"):
        # one shared connection, otherwise every session sees an empty database
        return create_engine(
            url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    return create_engine(url)


def make_session_factory(url):
    """Create the tables for `url` and return a session factory bound to it."""
    engine = make_engine(url)
    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine, expire_on_commit=False)
