from flask import Flask
from flasgger import Swagger
from flask_cors import CORS

from .config import get_config
from .errors import register_error_handlers
from models import storage  # DBStorage singleton (scoped_session)
from models.credential_store import CredentialStore
from services.account_manager import AccountManager
from services.notifier import notifier_from_config
from services.session_manager import SessionManager
from utils.security import TokenCodec

# Minimal Swagger config: exposes /swagger.json and UI at /apidocs
SWAGGER_TEMPLATE = {
    "swagger": "2.0.0",
    "info": {
        "title": "Accounting Web App API",
        "version": "1.0.0",
        "description": "REST API for accounts, sessions and companies of the accounting web application.",
    },
    "basePath": "/",  # blueprints are mounted under /api/v1
    "schemes": ["http", "https"],
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


def create_app(config_name: str | None = None, notifier=None, clock=None) -> Flask:
    """
    Application factory: creates and configures the Flask app.
    Token secrets, the notifier and the clock are built once here and
    handed to the session/account managers; a missing secret aborts startup.
    """
    app = Flask(__name__)

    # Load configuration (reads .env via get_config)
    app.config.from_object(get_config(config_name))

    codec_kwargs = {"clock": clock} if clock else {}
    codec = TokenCodec.from_config(app.config, **codec_kwargs)
    codec.ensure_configured()

    storage.reload(app.config["DATABASE_URL"])
    store = CredentialStore(storage)
    app.extensions["session_manager"] = SessionManager(store, codec, **codec_kwargs)
    app.extensions["account_manager"] = AccountManager(
        store,
        codec,
        notifier or notifier_from_config(app.config),
        app.config["FRONTEND_URL"],
    )

    # Cross-Origin Resource Sharing; credentials are needed for the refresh cookie
    CORS(
        app,
        resources={r"/*": {"origins": app.config.get("CORS_ORIGINS", "*")}},
        supports_credentials=app.config.get("CORS_ORIGINS", "*") != "*",
    )

    # Swagger UI and JSON
    Swagger(app, template=SWAGGER_TEMPLATE, config=SWAGGER_CONFIG)

    # Register global error handlers that return the uniform error envelope
    register_error_handlers(app)

    from .health import bp as health_bp
    from .auth import bp as auth_bp
    from .users import bp as users_bp
    from .companies import bp as companies_bp

    app.register_blueprint(health_bp, url_prefix="/api/v1")
    app.register_blueprint(auth_bp, url_prefix="/api/v1/auth")
    app.register_blueprint(users_bp, url_prefix="/api/v1")
    app.register_blueprint(companies_bp, url_prefix="/api/v1")

    # Ensure the DB session is removed at the end of each request/app context
    @app.teardown_appcontext
    def remove_session(exception=None):
        storage.close()

    @app.route("/")
    def root():
        return {
            "message": "Welcome to the Accounting Web App API",
            "docs": "/apidocs/",
            "health": "/api/v1/health",
        }, 200

    return app
