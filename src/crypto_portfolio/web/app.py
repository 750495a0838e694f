"""Flask web application for the crypto portfolio tracker."""

import asyncio
from pathlib import Path

from flask import Flask, current_app, jsonify, render_template, request
from jinja2 import TemplateNotFound

from crypto_portfolio.core.cache import DiskCache
from crypto_portfolio.core.config import get_setting, load_settings
from crypto_portfolio.core.logger import get_logger
from crypto_portfolio.core.response import ApiResponse
from crypto_portfolio.ledger.store import TransactionStore
from crypto_portfolio.ledger.transaction import (
    TransactionValidationError,
    create_transaction,
    normalize_asset,
)
from crypto_portfolio.prices.coingecko import CoinGeckoClient, PriceQuoteService
from crypto_portfolio.report.charts import (
    fig_to_base64,
    plot_coin_price,
    plot_portfolio_value,
)
from crypto_portfolio.report.formatting import (
    display_name,
    history_rows,
    holding_rows,
    totals_row,
)
from crypto_portfolio.service.tracker import PortfolioTracker

logger = get_logger("web.app")

_PROJECT_ROOT = Path(__file__).parent.parent.parent.parent
_CONFIG_DIR = _PROJECT_ROOT / "config"
_TRACKER_KEY = "portfolio_tracker"


def create_app(config: dict | None = None) -> Flask:
    app = Flask(
        __name__,
        template_folder=str(_PROJECT_ROOT / "templates" / "web"),
    )
    app.config["TESTING"] = False
    if config:
        app.config.update(config)

    tracker = app.config.get("PORTFOLIO_TRACKER")
    if tracker is None:
        tracker = _build_tracker(app.config)
    app.extensions[_TRACKER_KEY] = tracker

    _register_routes(app)
    return app


def _build_tracker(app_config) -> PortfolioTracker:
    settings = load_settings(
        app_config.get("SETTINGS_PATH", str(_CONFIG_DIR / "settings.yaml"))
    )
    transactions_path = app_config.get(
        "TRANSACTIONS_PATH", get_setting(settings, "storage.transactions_path")
    )

    cache = None
    cache_dir = get_setting(settings, "prices.cache_dir", None)
    if cache_dir:
        cache = DiskCache(
            cache_dir,
            ttl_seconds=get_setting(settings, "prices.cache_ttl_seconds", None),
        )
    client = CoinGeckoClient(
        base_url=get_setting(settings, "prices.base_url"),
        timeout=float(get_setting(settings, "prices.timeout_seconds")),
    )
    service = PriceQuoteService(
        client, vs_currency=get_setting(settings, "prices.vs_currency"), cache=cache
    )
    return PortfolioTracker(
        store=TransactionStore(transactions_path),
        price_service=service,
        history_days=int(get_setting(settings, "history.days")),
    )


def _tracker() -> PortfolioTracker:
    return current_app.extensions[_TRACKER_KEY]


def _portfolio_payload(tracker: PortfolioTracker) -> dict:
    result = asyncio.run(tracker.refresh())
    if result is None:
        result = tracker.latest
    if result is None:
        return {
            "holdings": [],
            "totals": {},
            "history": [],
            "valuation": None,
            "warnings": ["Refresh superseded before any portfolio was computed"],
        }
    return {
        "holdings": holding_rows(result.valuation),
        "totals": totals_row(result.valuation),
        "history": [p.to_dict() for p in result.history],
        "valuation": result.valuation.to_dict(),
        "warnings": result.warnings,
    }


def _coin_chart_payload(tracker: PortfolioTracker, asset: str, days: int):
    coin = normalize_asset(asset)
    resp = asyncio.run(tracker.coin_history(coin, days))
    points = resp.data_or([])
    result = {
        "asset": coin,
        "days": days,
        "prices": [{"date": p.date.isoformat(), "price": p.price} for p in points],
        "chart": None,
    }
    if points:
        result["chart"] = fig_to_base64(
            plot_coin_price(points, coin, days, tracker.vs_currency)
        )
    return resp, result


def _register_routes(app: Flask) -> None:
    @app.route("/api/health")
    def health():
        return jsonify(ApiResponse.success(data={"status": "ok"}).to_dict())

    @app.route("/api/transactions", methods=["GET"])
    def list_transactions():
        rows = history_rows(_tracker().transactions)
        return jsonify(ApiResponse.success(data=rows).to_dict())

    @app.route("/api/transactions", methods=["POST"])
    def add_transaction():
        body = request.get_json(silent=True)
        if body is None:
            body = {}
        if not isinstance(body, dict):
            error = ApiResponse.error("Transaction body must be a JSON object")
            return jsonify(error.to_dict()), 400
        try:
            tx = create_transaction(
                asset=body.get("asset", body.get("coin")),
                action=body.get("action"),
                quantity=body.get("quantity"),
                unit_price=body.get("unitPrice", body.get("price")),
                trade_date=body.get("date"),
            )
        except TransactionValidationError as e:
            return jsonify(ApiResponse.error(str(e)).to_dict()), 400
        try:
            _tracker().add_transaction(tx)
            logger.info(f"Recorded {tx.action.value} {tx.quantity} {tx.asset}")
            return jsonify(ApiResponse.success(data=tx.to_dict()).to_dict()), 201
        except Exception as e:
            logger.error(f"Add transaction error: {e}")
            return jsonify(ApiResponse.error(str(e)).to_dict()), 500

    @app.route("/api/transactions/<int:index>", methods=["DELETE"])
    def delete_transaction(index: int):
        try:
            removed = _tracker().delete_transaction(index)
            return jsonify(ApiResponse.success(data=removed.to_dict()).to_dict())
        except IndexError as e:
            return jsonify(ApiResponse.error(str(e)).to_dict()), 404
        except Exception as e:
            logger.error(f"Delete transaction error: {e}")
            return jsonify(ApiResponse.error(str(e)).to_dict()), 500

    @app.route("/api/transactions", methods=["DELETE"])
    def clear_transactions():
        try:
            _tracker().clear()
            return jsonify(
                ApiResponse.success(message="All transactions deleted").to_dict()
            )
        except Exception as e:
            logger.error(f"Clear transactions error: {e}")
            return jsonify(ApiResponse.error(str(e)).to_dict()), 500

    @app.route("/api/portfolio")
    def portfolio():
        try:
            payload = _portfolio_payload(_tracker())
            if payload.get("warnings"):
                return jsonify(
                    ApiResponse.warning(
                        data=payload, message="; ".join(payload["warnings"])
                    ).to_dict()
                )
            return jsonify(ApiResponse.success(data=payload).to_dict())
        except Exception as e:
            logger.error(f"Portfolio error: {e}")
            return jsonify(ApiResponse.error(str(e)).to_dict()), 500

    @app.route("/api/coins/<asset>/chart")
    def coin_chart(asset: str):
        try:
            tracker = _tracker()
            days = request.args.get("days", tracker.history_days, type=int)
            if days <= 0:
                error = ApiResponse.error("days must be positive")
                return jsonify(error.to_dict()), 400
            resp, result = _coin_chart_payload(tracker, asset, days)
            if not resp.ok:
                return jsonify(
                    ApiResponse.warning(data=result, message=resp.message).to_dict()
                )
            return jsonify(ApiResponse.success(data=result).to_dict())
        except Exception as e:
            logger.error(f"Coin chart error: {e}")
            return jsonify(ApiResponse.error(str(e)).to_dict()), 500

    @app.route("/")
    def dashboard():
        tracker = _tracker()
        try:
            payload = _portfolio_payload(tracker)
            chart = None
            if tracker.latest is not None and tracker.latest.history:
                chart = fig_to_base64(
                    plot_portfolio_value(tracker.latest.history, tracker.vs_currency)
                )
            return render_template(
                "dashboard.html",
                holdings=payload.get("holdings", []),
                totals=payload.get("totals", {}),
                warnings=payload.get("warnings", []),
                transactions=history_rows(tracker.transactions),
                value_chart=chart,
            )
        except TemplateNotFound:
            return jsonify(
                ApiResponse.error("Dashboard template not found").to_dict()
            ), 404

    @app.route("/coins/<asset>")
    def coin_page(asset: str):
        tracker = _tracker()
        days = request.args.get("days", tracker.history_days, type=int)
        if days <= 0:
            days = tracker.history_days
        try:
            resp, result = _coin_chart_payload(tracker, asset, days)
            return render_template(
                "coin.html",
                coin=result["asset"],
                name=display_name(result["asset"]),
                days=days,
                chart=result["chart"],
                warning=None if resp.ok else resp.message,
            )
        except TemplateNotFound:
            return jsonify(
                ApiResponse.error("Coin template not found").to_dict()
            ), 404
