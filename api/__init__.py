import logging

from flask import Flask
from flasgger import Swagger
from flask_cors import CORS

from .config import get_config
from .errors import register_error_handlers
from models import storage  # DBStorage singleton (scoped_session)
from services.auth_service import AuthService
from services.cart_service import CartService
from services.events import build_publisher
from services.order_service import OrderService
from services.product_service import ProductService
from services.user_service import UserService
from utils.security import TokenSettings

# Minimal Swagger config: exposes /swagger.json and UI at /apidocs
SWAGGER_TEMPLATE = {
    "swagger": "2.0.0",
    "info": {
        "title": "Storefront API",
        "version": "1.0.0",
        "description": "REST API for accounts, carts, orders and the product catalog.",
    },
    "basePath": "/",  # Blueprints are mounted under /api/v1
    "schemes": ["http"],
    "securityDefinitions": {
        "Bearer": {
            "type": "apiKey",
            "name": "Authorization",
            "in": "header",
            "description": "Enter the token with the `Bearer ` prefix, e.g. \"Bearer abcde12345\"."
        }
    }
}

SWAGGER_CONFIG = {
    "headers": [],
    "specs": [
        {
            "endpoint": "apispec_1",
            "route": "/swagger.json",
            "rule_filter": lambda rule: True,   # include all endpoints
            "model_filter": lambda tag: True,   # include all models
        }
    ],
    "static_url_path": "/flasgger_static",
    "swagger_ui": True,
    "specs_route": "/apidocs/",
}


def init_services(app: Flask, publisher=None) -> None:
    """Build the service objects once per app and park them in app.extensions."""
    publisher = publisher or build_publisher(app.config)
    app.extensions["event_publisher"] = publisher
    app.extensions["auth_service"] = AuthService(
        storage,
        TokenSettings.from_config(app.config),
        publisher,
        password_max_bytes=app.config["PASSWORD_MAX_BYTES"],
    )
    app.extensions["cart_service"] = CartService(storage)
    app.extensions["order_service"] = OrderService(storage)
    app.extensions["product_service"] = ProductService(storage)
    app.extensions["user_service"] = UserService(storage)


def create_app(config_name: str | None = None, overrides: dict | None = None, publisher=None) -> Flask:
    """
    Application factory: creates and configures the Flask app.
      - config_name picks the config class (dev/test/prod)
      - overrides are applied on top (tests pass a temporary DATABASE_URL)
      - publisher replaces the configured event publisher
    """
    app = Flask(__name__)

    # Load configuration (reads .env via get_config)
    app.config.from_object(get_config(config_name))
    if overrides:
        app.config.update(overrides)

    logging.basicConfig(
        level=app.config.get("LOG_LEVEL", "INFO"),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # Bind the storage singleton to this app's database
    storage.reload(
        app.config["DATABASE_URL"],
        echo=app.config["SQLALCHEMY_ECHO"],
        lock_timeout=app.config["DB_LOCK_TIMEOUT_SECONDS"],
    )
    init_services(app, publisher)

    # Cross-Origin Resource Sharing: enable for dev, configurable for prod
    CORS(app, resources={r"/*": {"origins": app.config.get("CORS_ORIGINS", "*")}})

    # Swagger UI and JSON
    Swagger(app, template=SWAGGER_TEMPLATE, config=SWAGGER_CONFIG)

    # Register global error handlers that return the uniform error envelope
    register_error_handlers(app)

    from .health import bp as health_bp
    from .auth import bp as auth_bp
    from .users import bp as users_bp
    from .categories import bp as categories_bp
    from .products import bp as products_bp
    from .transactions import bp as tx_bp
    from .cart import bp as cart_bp
    from .orders import bp as orders_bp

    app.register_blueprint(health_bp, url_prefix="/api/v1")
    app.register_blueprint(auth_bp, url_prefix="/api/v1")
    app.register_blueprint(users_bp, url_prefix="/api/v1")
    app.register_blueprint(categories_bp, url_prefix="/api/v1")
    app.register_blueprint(products_bp, url_prefix="/api/v1")
    app.register_blueprint(tx_bp, url_prefix="/api/v1")
    app.register_blueprint(cart_bp, url_prefix="/api/v1")
    app.register_blueprint(orders_bp, url_prefix="/api/v1")

    # Ensure the DB session is removed at the end of each request/app context
    @app.teardown_appcontext
    def remove_session(exception=None):
        # This calls scoped_session.remove(), preventing connection leaks
        storage.close()

    @app.route("/")
    def root():
        return {
            "message": "Welcome to Storefront API",
            "docs": "/apidocs/",
            "health": "/api/v1/health",
        }, 200

    return app
