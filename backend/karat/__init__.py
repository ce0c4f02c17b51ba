# backend/karat/__init__.py
from flask import Flask

from .config import Config
from .extensions import db, migrate
from .services.metrics import resolve


def create_app(config_object=None, metrics=None) -> Flask:
    """
    Application factory.

    config_object overrides Config (tests pass TestConfig). metrics is the
    sink routes and CLI jobs report to; it defaults to NullMetrics.
    """
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(config_object or Config)

    db.init_app(app)
    migrate.init_app(app, db)

    app.extensions["karat.metrics"] = resolve(metrics)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    from .routes.system import system_bp
    from .routes.auth import auth_bp
    from .routes.rates import rate_master_bp
    from .routes.customers import customers_bp
    from .routes.products import products_bp
    from .routes.pricing import pricing_bp
    from .routes.stock import stock_bp
    from .routes.sales_orders import sales_orders_bp
    from .routes.emi import emi_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(rate_master_bp)
    app.register_blueprint(customers_bp)
    app.register_blueprint(products_bp)
    app.register_blueprint(pricing_bp)
    app.register_blueprint(stock_bp)
    app.register_blueprint(sales_orders_bp)
    app.register_blueprint(emi_bp)

    from .cli import register_commands
    register_commands(app)

    return app
