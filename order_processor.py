# order_processor.py

import logging
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from sqlalchemy import select

from models import Order, OrderStatus, Spreadsheet

logger = logging.getLogger(__name__)


class OrderValidationError(ValueError):
    pass


class OrderNotFound(LookupError):
    def __init__(self, order_id):
        self.order_id = order_id
        super().__init__(f"Order not found: {order_id}")


class SpreadsheetNotFound(LookupError):
    def __init__(self, spreadsheet_id):
        self.spreadsheet_id = spreadsheet_id
        super().__init__(f"Spreadsheet not found: {spreadsheet_id}")


# ---------- FORM ----------
# orders.units_ordered is a signed 32-bit INTEGER column
MAX_UNITS = 2**31 - 1


class OrderForm(BaseModel):
    """Submitted order form. `id` is only present when editing an order."""

    model_config = ConfigDict(str_strip_whitespace=True, extra="ignore")

    id: int | None = Field(default=None, ge=1)
    customer_name: str = Field(..., min_length=1, max_length=255)
    product_code: str = Field(..., min_length=1, max_length=64)
    units_ordered: int = Field(..., ge=0, le=MAX_UNITS)
    # matches orders.unit_price Numeric(10, 2)
    unit_price: Decimal = Field(..., ge=0, max_digits=10, decimal_places=2)
    status: OrderStatus = OrderStatus.PENDING

    @field_validator("id", mode="before")
    @classmethod
    def _blank_id(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("status", mode="before")
    @classmethod
    def _status_name(cls, value):
        if value is None or (isinstance(value, str) and not value.strip()):
            return OrderStatus.PENDING
        if isinstance(value, str):
            return value.strip().upper()
        return value


def _describe(err):
    problems = []
    for error in err.errors():
        field = ".".join(str(part) for part in error["loc"]) or "form"
        problems.append(f"{field}: {error['msg']}")
    return "; ".join(problems)


def parse_order_form(form):
    """Validate a submitted order form and return the column values."""
    try:
        order = OrderForm.model_validate(dict(form.items()))
    except ValidationError as err:
        raise OrderValidationError(_describe(err)) from err
    values = order.model_dump(exclude_none=True)
    values["unit_price"] = order.unit_price.quantize(Decimal("0.01"))
    values["status"] = order.status.value
    return values


# ---------- ORDERS ----------
def list_orders(session):
    return session.scalars(
        select(Order).order_by(Order.created_at.desc(), Order.id.desc())
    ).all()


def get_order(session, order_id):
    order = session.get(Order, order_id)
    if order is None:
        raise OrderNotFound(order_id)
    return order


def upsert_order(session, values):
    """Insert a new order, or update the one with the given `id`."""
    values = dict(values)
    order_id = values.pop("id", None)
    order = session.get(Order, order_id) if order_id is not None else None
    if order is None:
        order = Order(id=order_id)
        session.add(order)
    for name, value in values.items():
        setattr(order, name, value)
    session.commit()
    logger.info("Saved order %s", order.id)
    return order


def delete_order(session, order_id):
    order = get_order(session, order_id)
    session.delete(order)
    session.commit()
    logger.info("Deleted order %s", order_id)


# ---------- SPREADSHEETS ----------
def list_spreadsheets(session):
    return session.scalars(
        select(Spreadsheet).order_by(Spreadsheet.created_at.desc())
    ).all()


def spreadsheet_title(now=None):
    now = now or datetime.now()
    return f"Orders ({now.strftime('%H:%M:%S')})"


def bearer_token(header):
    """Access token from an `Authorization: Bearer <token>` header value."""
    if not header:
        return None
    scheme, _, token = header.strip().partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def create_spreadsheet(session, helper, title):
    """Create the spreadsheet through `helper` and store a reference to it."""
    created = helper.create_spreadsheet(title)
    sheets = created["sheets"]
    spreadsheet = Spreadsheet(
        id=created["spreadsheetId"],
        sheet_id=sheets[0]["properties"]["sheetId"],
        pivot_sheet_id=sheets[1]["properties"]["sheetId"],
        name=created["properties"]["title"],
    )
    session.add(spreadsheet)
    session.commit()
    return spreadsheet


def sync_spreadsheet(session, helper, spreadsheet_id):
    """Write every order to the spreadsheet's data sheet; returns the count."""
    spreadsheet = session.get(Spreadsheet, spreadsheet_id)
    if spreadsheet is None:
        raise SpreadsheetNotFound(spreadsheet_id)
    orders = session.scalars(select(Order).order_by(Order.id)).all()
    helper.sync(spreadsheet.id, spreadsheet.sheet_id, orders)
    return len(orders)
