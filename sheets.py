# sheets.py

import enum
import logging
from collections.abc import Mapping
from decimal import Decimal
from typing import Any, NamedTuple, Sequence

from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build

from models import OrderStatus

logger = logging.getLogger(__name__)


class SheetRequestError(ValueError):
    """A Sheets request could not be built from the given input."""


class EmptyTitleError(SheetRequestError):
    pass


class MissingFieldError(SheetRequestError):
    def __init__(self, field, row=None):
        self.field = field
        self.row = row
        where = f" (order #{row})" if row is not None else ""
        super().__init__(f"Order is missing required field '{field}'{where}")


# ---------- COLUMNS ----------
class ColumnKind(enum.Enum):
    TEXT = "text"
    NUMBER = "number"
    CURRENCY = "currency"
    STATUS = "status"


class Column(NamedTuple):
    index: int
    field: str
    header: str
    kind: ColumnKind


COLUMNS = tuple(
    Column(i, field, header, kind)
    for i, (field, header, kind) in enumerate([
        ("id", "ID", ColumnKind.TEXT),
        ("customer_name", "Customer Name", ColumnKind.TEXT),
        ("product_code", "Product Code", ColumnKind.TEXT),
        ("units_ordered", "Units Ordered", ColumnKind.NUMBER),
        ("unit_price", "Unit Price", ColumnKind.CURRENCY),
        ("status", "Status", ColumnKind.STATUS),
    ])
)

COLUMNS_BY_FIELD = {column.field: column for column in COLUMNS}

NUMBER_PATTERN = "#,##0"
CURRENCY_PATTERN = "$#,##0.00"
STATUS_VALUES = tuple(status.value for status in OrderStatus)

DATA_SHEET_TITLE = "Data"
PIVOT_SHEET_TITLE = "Pivot"
CHART_TITLE = "Revenue per Product"


def column_for_field(field: str) -> Column:
    return COLUMNS_BY_FIELD[field]


# ---------- CREATE ----------
def build_create_request(title: str) -> dict:
    """Body for spreadsheets.create: a "Data" sheet and a "Pivot" sheet."""
    if not title or not title.strip():
        raise EmptyTitleError("Spreadsheet title must not be empty")
    return {
        "properties": {"title": title},
        "sheets": [
            {
                "properties": {
                    "title": DATA_SHEET_TITLE,
                    "gridProperties": {
                        "columnCount": len(COLUMNS),
                        "frozenRowCount": 1,
                    },
                }
            },
            {
                "properties": {
                    "title": PIVOT_SHEET_TITLE,
                    "gridProperties": {"hideGridlines": True},
                }
            },
        ],
    }


def build_header_request(data_sheet_id: int) -> dict:
    cells = [
        {
            "userEnteredValue": {"stringValue": column.header},
            "userEnteredFormat": {"textFormat": {"bold": True}},
        }
        for column in COLUMNS
    ]
    return {
        "updateCells": {
            "start": {"sheetId": data_sheet_id, "rowIndex": 0, "columnIndex": 0},
            "rows": [{"values": cells}],
            "fields": "userEnteredValue,userEnteredFormat.textFormat.bold",
        }
    }


def build_pivot_request(data_sheet_id: int, pivot_sheet_id: int) -> dict:
    """Pivot on the product code: total units and revenue per product.

    Revenue is a calculated value; the formula refers to the source columns
    by their header text.
    """
    units = column_for_field("units_ordered")
    price = column_for_field("unit_price")
    pivot_table = {
        "source": {
            "sheetId": data_sheet_id,
            "startRowIndex": 0,
            "startColumnIndex": 0,
            "endColumnIndex": len(COLUMNS),
        },
        "rows": [
            {
                "sourceColumnOffset": column_for_field("product_code").index,
                "showTotals": False,
                "sortOrder": "ASCENDING",
            }
        ],
        "values": [
            {"summarizeFunction": "SUM", "sourceColumnOffset": units.index},
            {
                "summarizeFunction": "SUM",
                "name": "Revenue",
                "formula": f"='{units.header}' * '{price.header}'",
            },
        ],
    }
    return {
        "updateCells": {
            "start": {"sheetId": pivot_sheet_id, "rowIndex": 0, "columnIndex": 0},
            "rows": [{"values": [{"pivotTable": pivot_table}]}],
            "fields": "*",
        }
    }


def build_format_pivot_request(pivot_sheet_id: int) -> dict:
    # revenue is the third pivot column, below the pivot header row
    return {
        "repeatCell": {
            "range": {"sheetId": pivot_sheet_id, "startRowIndex": 1, "startColumnIndex": 2},
            "cell": {
                "userEnteredFormat": {
                    "numberFormat": {"type": "CURRENCY", "pattern": CURRENCY_PATTERN}
                }
            },
            "fields": "userEnteredFormat.numberFormat",
        }
    }


def _pivot_column_range(sheet_id, column_index):
    return {
        "sourceRange": {
            "sources": [
                {
                    "sheetId": sheet_id,
                    "startRowIndex": 0,
                    "startColumnIndex": column_index,
                    "endColumnIndex": column_index + 1,
                }
            ]
        }
    }


def build_chart_request(pivot_sheet_id: int) -> dict:
    spec = {
        "title": CHART_TITLE,
        "basicChart": {
            "chartType": "BAR",
            "legendPosition": "RIGHT_LEGEND",
            # one bar per product code, length from its revenue
            "domains": [{"domain": _pivot_column_range(pivot_sheet_id, 0)}],
            "series": [{"series": _pivot_column_range(pivot_sheet_id, 2)}],
        },
    }
    position = {
        "overlayPosition": {
            "anchorCell": {"sheetId": pivot_sheet_id, "rowIndex": 0, "columnIndex": 3},
            "widthPixels": 600,
            "heightPixels": 400,
        }
    }
    return {"addChart": {"chart": {"spec": spec, "position": position}}}


def build_setup_requests(data_sheet_id: int, pivot_sheet_id: int) -> list:
    """Requests sent right after a spreadsheet is created."""
    return [
        build_header_request(data_sheet_id),
        build_pivot_request(data_sheet_id, pivot_sheet_id),
        build_format_pivot_request(pivot_sheet_id),
        build_chart_request(pivot_sheet_id),
    ]


# ---------- SYNC ----------
def _field_value(order, field, row):
    if isinstance(order, Mapping):
        value = order.get(field)
    else:
        value = getattr(order, field, None)
    if value is None:
        raise MissingFieldError(field, row)
    return value


def _number(value):
    if isinstance(value, Decimal):
        return float(value)
    return value


def _text_cell(value):
    if isinstance(value, enum.Enum):
        value = value.value
    return {"userEnteredValue": {"stringValue": str(value)}}


def _number_cell(value):
    return {
        "userEnteredValue": {"numberValue": _number(value)},
        "userEnteredFormat": {"numberFormat": {"type": "NUMBER", "pattern": NUMBER_PATTERN}},
    }


def _currency_cell(value):
    return {
        "userEnteredValue": {"numberValue": _number(value)},
        "userEnteredFormat": {"numberFormat": {"type": "CURRENCY", "pattern": CURRENCY_PATTERN}},
    }


def _status_cell(value):
    cell = _text_cell(value)
    # the spreadsheet rejects anything outside the list, not us
    cell["dataValidation"] = {
        "condition": {
            "type": "ONE_OF_LIST",
            "values": [{"userEnteredValue": status} for status in STATUS_VALUES],
        },
        "strict": True,
        "showCustomUi": True,
    }
    return cell


CELL_BUILDERS = {
    ColumnKind.TEXT: _text_cell,
    ColumnKind.NUMBER: _number_cell,
    ColumnKind.CURRENCY: _currency_cell,
    ColumnKind.STATUS: _status_cell,
}


def build_row(order, row=None) -> dict:
    """RowData for a single order, one cell per column in column order."""
    return {
        "values": [
            CELL_BUILDERS[column.kind](_field_value(order, column.field, row))
            for column in COLUMNS
        ]
    }


def build_rows(orders: Sequence[Any]) -> list:
    return [build_row(order, row) for row, order in enumerate(orders, start=1)]


def build_sync_request(sheet_id: int, orders: Sequence[Any]) -> dict:
    """Body for spreadsheets.batchUpdate that rewrites the data sheet.

    The grid is resized to the header plus one row per order, then every
    order is written starting at the second row.
    """
    rows = build_rows(orders)
    resize = {
        "updateSheetProperties": {
            "properties": {
                "sheetId": sheet_id,
                "gridProperties": {
                    "rowCount": len(orders) + 1,
                    "columnCount": len(COLUMNS),
                },
            },
            "fields": "gridProperties(rowCount,columnCount)",
        }
    }
    update = {
        "updateCells": {
            "start": {"sheetId": sheet_id, "rowIndex": 1, "columnIndex": 0},
            "rows": rows,
            "fields": "*",
        }
    }
    return {"requests": [resize, update]}


# ---------- GOOGLE SHEETS ----------
def get_service(access_token):
    creds = Credentials(token=access_token)
    return build("sheets", "v4", credentials=creds, cache_discovery=False)


class SheetsHelper:
    """Sends the built requests with the caller's OAuth2 access token.

    API errors (googleapiclient.errors.HttpError) are not caught here.
    """

    def __init__(self, access_token, service=None):
        self.service = service if service is not None else get_service(access_token)

    def create_spreadsheet(self, title):
        body = build_create_request(title)
        spreadsheet = self.service.spreadsheets().create(body=body).execute()
        spreadsheet_id = spreadsheet["spreadsheetId"]
        data_sheet_id = spreadsheet["sheets"][0]["properties"]["sheetId"]
        pivot_sheet_id = spreadsheet["sheets"][1]["properties"]["sheetId"]
        logger.info("Created spreadsheet %s (%s)", spreadsheet_id, title)

        self.service.spreadsheets().batchUpdate(
            spreadsheetId=spreadsheet_id,
            body={"requests": build_setup_requests(data_sheet_id, pivot_sheet_id)},
        ).execute()
        return spreadsheet

    def sync(self, spreadsheet_id, sheet_id, orders):
        body = build_sync_request(sheet_id, orders)
        response = self.service.spreadsheets().batchUpdate(
            spreadsheetId=spreadsheet_id, body=body
        ).execute()
        logger.info("Synced %d orders to spreadsheet %s", len(orders), spreadsheet_id)
        return response
