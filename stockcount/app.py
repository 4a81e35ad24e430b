from __future__ import annotations

import logging
import os
from datetime import datetime
from functools import wraps
from io import BytesIO

from flask import (
    Blueprint, Flask, abort, current_app, jsonify, request, send_file
)
from flask_login import (
    LoginManager, current_user, login_required, login_user, logout_user
)
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException
from werkzeug.security import check_password_hash

from . import counting, db, reports, settings
from .counting import CountInputError
from .ledger import SqlLedgerStore
from .logger import setup_logger
from .schemas import (
    CountSubmission, HistoryQuery, SummaryQuery, TheftCheckRequest, load
)

logger = logging.getLogger(__name__)

login_manager = LoginManager()
bp = Blueprint("counts", __name__)


# ---------------------------
# App setup
# ---------------------------

def create_app(config: dict | None = None, store=None) -> Flask:
    """Build the app; ``store`` replaces the SQL-backed ledger when given."""
    app = Flask(__name__)
    app.config.update(settings.as_dict())
    if config:
        app.config.update(config)

    setup_logger("stockcount", app.config["LOG_LEVEL"], app.config["LOG_DIR"])

    engine, SessionLocal = db.make_session_factory(app.config["DATABASE_URL"])
    db.init_db_and_seed(engine, SessionLocal, app.config["ADMIN_PASSWORD"], app.config["STAFF_PASSWORD"])
    app.extensions["stockcount.sessions"] = SessionLocal
    app.extensions["stockcount.ledger"] = store if store is not None else SqlLedgerStore(SessionLocal)

    login_manager.init_app(app)
    app.register_blueprint(bp)

    @app.teardown_appcontext
    def shutdown_session(exception=None):
        SessionLocal.remove()

    @app.errorhandler(CountInputError)
    def bad_input(e):
        return jsonify({"error": str(e), "fields": e.fields}), 400

    @app.errorhandler(SQLAlchemyError)
    def database_error(e):
        logger.exception("Database error on %s %s", request.method, request.path)
        return jsonify({"error": "Database operation failed"}), 500

    @app.errorhandler(HTTPException)
    def http_error(e):
        if e.code is None or e.code < 400:
            return e
        return jsonify({"error": e.description, "code": e.name.upper().replace(" ", "_")}), e.code

    return app


def _sessions():
    return current_app.extensions["stockcount.sessions"]


def _store():
    return current_app.extensions["stockcount.ledger"]


def _today():
    return counting.today(current_app.config["DAY_BOUNDARY"])


def _payload() -> dict:
    data = request.get_json(silent=True)
    if data is None:
        data = request.form.to_dict()
    if not isinstance(data, dict):
        return {}
    return data


def _query_args() -> dict:
    # Blank query values come from empty filter inputs and mean "not given".
    return {k: v for k, v in request.args.items() if v.strip()}


# ---------------------------
# Helpers / auth
# ---------------------------

@login_manager.user_loader
def load_user(user_id: str):
    s = _sessions()()
    try:
        return s.get(db.User, int(user_id))
    finally:
        s.close()


@login_manager.unauthorized_handler
def unauthorized():
    return jsonify({"error": "Login required", "code": "UNAUTHORIZED"}), 401


def role_required(*roles: str):
    roles_set = set(roles)

    def deco(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            if not current_user.is_authenticated:
                return login_manager.unauthorized()
            if getattr(current_user, "role", None) not in roles_set:
                abort(403)
            return fn(*args, **kwargs)
        return wrapper
    return deco


def _user_json(user) -> dict:
    return {"id": user.id, "username": user.username, "role": user.role}


# ---------------------------
# Routes: Auth
# ---------------------------

@bp.post("/login")
def login_post():
    data = _payload()
    username = str(data.get("username") or "").strip()
    password = str(data.get("password") or "").strip()

    s = _sessions()()
    try:
        user = s.query(db.User).filter(db.User.username == username).first()
    finally:
        s.close()

    if not user or not check_password_hash(user.password_hash, password):
        logger.warning("Failed login for %r", username)
        return jsonify({"error": "Invalid username or password"}), 401

    login_user(user)
    return jsonify({"success": True, "user": _user_json(user)})


@bp.post("/logout")
@login_required
def logout():
    logout_user()
    return jsonify({"success": True})


@bp.get("/api/me")
@login_required
def me():
    return jsonify(_user_json(current_user))


# ---------------------------
# Daily counts
# ---------------------------

@bp.post("/api/counts")
@login_required
def submit_count():
    sub = load(CountSubmission, _payload())
    result = counting.record_daily_count(
        _store(), sub.item_name, _today(), sub.current_count, sub.restocks_received
    )
    rec = result.record
    return jsonify({
        "success": True,
        "message": result.message,
        "is_first_day": result.is_first_day,
        "item_name": rec.item_name,
        "date": rec.date.isoformat(),
        "starting_count": rec.yesterday_count,
        "current_count": rec.current_count,
        "restocks_received": rec.restocks_received,
        "sold_calculated": rec.sold_calculated,
        "record": rec.to_dict(),
    })


@bp.get("/api/counts/today")
@login_required
def counts_today():
    return jsonify([r.to_dict() for r in _store().list_for_date(_today())])


@bp.delete("/api/counts/<path:item_name>/<day>")
@login_required
@role_required("ADMIN")
def delete_count(item_name: str, day: str):
    entry_date = counting.parse_day(day)
    if not _store().delete(item_name, entry_date):
        logger.info("Delete of missing entry: item=%s date=%s", item_name, day)
        return jsonify({"success": False, "error": "Entry not found"}), 404

    logger.info("Deleted entry: item=%s date=%s by %s", item_name, day, current_user.username)
    return jsonify({"success": True, "message": "Entry deleted successfully"})


# ---------------------------
# History / summary
# ---------------------------

@bp.get("/api/history")
@login_required
def history():
    args = _query_args()
    args.setdefault("limit", current_app.config["HISTORY_DEFAULT_LIMIT"])
    q = load(HistoryQuery, args)
    max_limit = current_app.config["HISTORY_MAX_LIMIT"]
    if q.limit > max_limit:
        raise CountInputError(f"limit must be at most {max_limit}", {"limit": f"at most {max_limit}"})

    store = _store()
    total = store.count()
    rows = store.page((q.page - 1) * q.limit, q.limit)
    return jsonify({
        "data": [r.to_dict() for r in rows],
        "pagination": {
            "page": q.page,
            "limit": q.limit,
            "total": total,
            "totalPages": -(-total // q.limit),
        },
    })


def _summary_filter():
    q = load(SummaryQuery, _query_args())
    return counting.resolve_date_filter(q.days, q.start_date, q.end_date, today=_today())


@bp.get("/api/summary")
@login_required
def summary():
    rows = counting.summarize_ledger(_store(), _summary_filter())
    return jsonify([r.to_dict() for r in rows])


# ---------------------------
# Theft check
# ---------------------------

@bp.post("/api/theft-check")
@login_required
def theft_check():
    req = load(TheftCheckRequest, _payload())
    calculated = req.calculated_sales
    if req.item_name is not None:
        day = req.day or _today()
        rec = _store().get(req.item_name, day)
        if rec is None:
            return jsonify({"error": f"No count recorded for {req.item_name} on {day.isoformat()}"}), 404
        calculated = rec.sold_calculated

    check = counting.compare_sales(calculated, req.actual_sales)
    if check.status is not counting.SalesStatus.MATCH:
        logger.warning(
            "Sales mismatch for %s: calculated=%d actual=%d (%s)",
            req.item_name or "-", check.calculated_sales, check.actual_sales, check.status.value,
        )
    return jsonify(check.to_dict())


# ---------------------------
# Exports
# ---------------------------

@bp.get("/export/history.csv")
@login_required
def export_history_csv():
    data = reports.history_csv_bytes(_store().between())
    return send_file(
        BytesIO(data),
        mimetype="text/csv",
        as_attachment=True,
        download_name="inventory_history.csv"
    )


@bp.get("/reports/summary.pdf")
@login_required
def summary_pdf():
    date_filter = _summary_filter()
    rows = counting.summarize_ledger(_store(), date_filter)
    pdf_bytes = reports.summary_pdf_bytes(rows, date_filter, datetime.now())
    return send_file(
        BytesIO(pdf_bytes),
        mimetype="application/pdf",
        as_attachment=True,
        download_name="stock_summary.pdf",
    )


# ---------------------------
# Run
# ---------------------------

if __name__ == "__main__":
    app = create_app()
    app.run(host="0.0.0.0", port=int(os.getenv("PORT", "5000")), debug=False)
