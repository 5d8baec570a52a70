# server.py

import logging
import threading

from flask import Flask, jsonify, redirect, render_template, request, url_for
from googleapiclient.errors import HttpError
from werkzeug.exceptions import HTTPException

import config
import order_processor
from models import OrderStatus, make_session_factory
from order_processor import OrderNotFound, OrderValidationError, SpreadsheetNotFound
from sheets import SheetRequestError, SheetsHelper

logging.basicConfig(
    level=getattr(logging, config.LOG_LEVEL, logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger("order-sheets")

app = Flask(__name__)
app.config.update(
    SECRET_KEY=config.SECRET_KEY,
    DATABASE_URL=config.DATABASE_URL,
    GOOGLE_CLIENT_ID=config.GOOGLE_CLIENT_ID,
    SESSION_FACTORY=None,
)


_factory_lock = threading.Lock()


def open_session():
    factory = app.config["SESSION_FACTORY"]
    if factory is None:
        with _factory_lock:
            factory = app.config["SESSION_FACTORY"]
            if factory is None:
                factory = make_session_factory(app.config["DATABASE_URL"])
                app.config["SESSION_FACTORY"] = factory
    return factory()


def error_response(message, code):
    return jsonify({"status": "error", "message": message}), code


def sheets_helper():
    token = order_processor.bearer_token(request.headers.get("Authorization"))
    if token is None:
        return None
    return SheetsHelper(token)


# ---------- ORDERS ----------
@app.route("/", methods=["GET"])
def index():
    with open_session() as session:
        orders = order_processor.list_orders(session)
        spreadsheets = order_processor.list_spreadsheets(session)
    return render_template(
        "index.html",
        orders=orders,
        spreadsheets=spreadsheets,
        google_client_id=app.config["GOOGLE_CLIENT_ID"],
        sheets_scope=" ".join(config.SHEETS_SCOPES),
    )


@app.route("/create", methods=["GET"])
def create():
    return render_template("upsert.html", order=None, statuses=list(OrderStatus))


@app.route("/edit/<int:order_id>", methods=["GET"])
def edit(order_id):
    with open_session() as session:
        order = order_processor.get_order(session, order_id)
    return render_template("upsert.html", order=order.to_dict(), statuses=list(OrderStatus))


@app.route("/delete/<int:order_id>", methods=["GET"])
def delete(order_id):
    with open_session() as session:
        order_processor.delete_order(session, order_id)
    return redirect(url_for("index"))


@app.route("/upsert", methods=["POST"])
def upsert():
    values = order_processor.parse_order_form(request.form)
    with open_session() as session:
        order_processor.upsert_order(session, values)
    return redirect(url_for("index"))


# ---------- SPREADSHEETS ----------
@app.route("/spreadsheets", methods=["POST"])
def create_spreadsheet():
    helper = sheets_helper()
    if helper is None:
        return error_response("Authorization required.", 401)
    title = order_processor.spreadsheet_title()
    with open_session() as session:
        spreadsheet = order_processor.create_spreadsheet(session, helper, title)
        model = {
            "id": spreadsheet.id,
            "sheetId": spreadsheet.sheet_id,
            "pivotSheetId": spreadsheet.pivot_sheet_id,
            "name": spreadsheet.name,
        }
    return jsonify(model)


@app.route("/spreadsheets/<spreadsheet_id>/sync", methods=["POST"])
def sync_spreadsheet(spreadsheet_id):
    helper = sheets_helper()
    if helper is None:
        return error_response("Authorization required.", 401)
    with open_session() as session:
        count = order_processor.sync_spreadsheet(session, helper, spreadsheet_id)
    return jsonify(count)


@app.route("/health", methods=["GET"])
def health():
    missing = config.validate_config()
    return jsonify({
        "status": "ok",
        "config_valid": len(missing) == 0,
        "missing_keys": missing,
    })


# ---------- ERRORS ----------
@app.errorhandler(OrderValidationError)
@app.errorhandler(SheetRequestError)
def handle_bad_input(err):
    return error_response(str(err), 400)


@app.errorhandler(OrderNotFound)
@app.errorhandler(SpreadsheetNotFound)
def handle_not_found(err):
    return error_response(str(err), 404)


@app.errorhandler(HttpError)
def handle_sheets_error(err):
    logger.error("Google Sheets API error: %s", err)
    return error_response(err.reason or str(err), err.resp.status)


@app.errorhandler(HTTPException)
def handle_http_exception(err):
    return error_response(err.description, err.code)


@app.errorhandler(Exception)
def handle_unexpected(err):
    logger.exception("Unhandled error on %s %s", request.method, request.path)
    return error_response(str(err) or err.__class__.__name__, 500)


if __name__ == "__main__":
    app.run(host=config.HOST, port=config.PORT, debug=config.DEBUG)
