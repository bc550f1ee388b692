import logging

from flask import Flask, current_app, request
from flasgger import Swagger
from flask_cors import CORS

from .config import get_config
from .errors import register_error_handlers
from models import storage
from models.credential_store import CredentialStore
from models.relation_store import RelationStore
from services.relation_ledger import RelationLedger
from services.session_manager import SessionManager
from utils.deadline import Deadline
from utils.security import TokenCodec, ACCESS, REFRESH

# Minimal Swagger config: exposes /swagger.json and UI at /apidocs
SWAGGER_TEMPLATE = {
    "swagger": "2.0.0",
    "info": {
        "title": "Media Share API",
        "version": "1.0.0",
        "description": "Sessions (access/refresh tokens) and like/subscribe relations for the media-sharing backend.",
    },
    "basePath": "/",
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


def build_session_manager(config) -> SessionManager:
    """Signing keys are read once here and never change for the life of the process."""
    access_codec = TokenCodec(
        config["JWT_SECRET"], ACCESS, algorithm=config["JWT_ALGORITHM"], issuer=config.get("JWT_ISSUER")
    )
    refresh_codec = TokenCodec(
        config["JWT_REFRESH_SECRET"], REFRESH, algorithm=config["JWT_ALGORITHM"], issuer=config.get("JWT_ISSUER")
    )
    return SessionManager(
        CredentialStore(storage),
        access_codec,
        refresh_codec,
        access_ttl=config["ACCESS_TOKEN_EXPIRES"],
        refresh_ttl=config["REFRESH_TOKEN_EXPIRES"],
        revoke_on_password_change=config.get("REVOKE_SESSIONS_ON_PASSWORD_CHANGE", False),
    )


def get_session_manager() -> SessionManager:
    return current_app.extensions["session_manager"]


def get_relation_ledger() -> RelationLedger:
    return current_app.extensions["relation_ledger"]


def request_deadline() -> Deadline:
    """
    Deadline for the current request: REQUEST_TIMEOUT_SECONDS, shortened by an
    X-Request-Timeout header (seconds) when the client sends a smaller one.
    """
    timeout = float(current_app.config.get("REQUEST_TIMEOUT_SECONDS", 10))
    raw = request.headers.get("X-Request-Timeout")
    if raw:
        try:
            timeout = min(timeout, max(0.0, float(raw)))
        except ValueError:
            pass
    return Deadline.after(timeout)


def create_app(config_name: str | None = None, config_overrides: dict | None = None) -> Flask:
    """
    Application factory: creates and configures the Flask app.
    Tests build an isolated app per test with their own DATABASE_URL override.
    """
    app = Flask(__name__)

    app.config.from_object(get_config(config_name))
    if config_overrides:
        app.config.update(config_overrides)

    logging.basicConfig(
        level=app.config.get("LOG_LEVEL", "INFO"),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # Cookies carry the tokens, so CORS must allow credentials
    CORS(
        app,
        resources={r"/*": {"origins": app.config.get("CORS_ORIGINS", "*")}},
        supports_credentials=True,
    )

    Swagger(app, template=SWAGGER_TEMPLATE, config=SWAGGER_CONFIG)

    register_error_handlers(app)

    storage.reload(app.config["DATABASE_URL"])
    app.extensions["session_manager"] = build_session_manager(app.config)
    app.extensions["relation_ledger"] = RelationLedger(RelationStore(storage))

    from .health import bp as health_bp
    from .auth import bp as auth_bp
    from .users import bp as users_bp
    from .relations import bp as relations_bp
    from .likes import bp as likes_bp
    from .subscriptions import bp as subscriptions_bp

    app.register_blueprint(health_bp, url_prefix="/api/v1")
    app.register_blueprint(auth_bp, url_prefix="/api/v1/auth")
    app.register_blueprint(users_bp, url_prefix="/api/v1")
    app.register_blueprint(relations_bp, url_prefix="/api/v1")
    app.register_blueprint(likes_bp, url_prefix="/api/v1/likes")
    app.register_blueprint(subscriptions_bp, url_prefix="/api/v1/subscriptions")

    # Ensure the DB session is removed at the end of each request/app context
    @app.teardown_appcontext
    def remove_session(exception=None):
        storage.close()

    @app.route("/")
    def root():
        return {
            "message": "Welcome to Media Share API",
            "docs": "/apidocs/",
            "health": "/api/v1/health",
        }, 200

    return app
