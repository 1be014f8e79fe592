# vat_checker/__init__.py
# Створення Flask-додатку, реєстрація розширень і blueprint'ів.

from flask import Flask
from .config import Config
from .extensions import ApiKeyGuard, RateLimiter
from .routes.api import api_bp
from .utils.logging import set_level


def create_app(config_object: type[Config] = Config) -> Flask:
    app = Flask(__name__)
    app.config.from_object(config_object)
    set_level(app.config.get("LOG_LEVEL", "INFO"))

    # Розширення: спочатку ключ, потім ліміт (відхилені ключі не з'їдають квоту)
    ApiKeyGuard(app)
    RateLimiter(app)

    # Blueprints
    app.register_blueprint(api_bp)

    return app
