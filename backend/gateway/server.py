"""
API gateway: mounts every service blueprint under /api.
This is the local entrypoint for development.
"""

from flask import Flask, jsonify
from flask_cors import CORS
import os
import logging
import sys
from dotenv import load_dotenv

load_dotenv()

# Basic console logging during API requests
logging.basicConfig(level=logging.INFO, format="[%(levelname)s] %(asctime)s - %(message)s")

DEFAULT_CORS_ORIGINS = "http://localhost:5173,http://localhost:3000"


def cors_origins() -> list:
    """
    Allowed browser origins, from the comma-separated CORS_ORIGINS variable.
    """
    raw = os.getenv("CORS_ORIGINS", DEFAULT_CORS_ORIGINS)
    return [o.strip() for o in raw.split(",") if o.strip()]


def create_app() -> Flask:
    """
    Application factory for creating the Flask app.

    Returns:
        Flask: The configured Flask application.
    """
    app = Flask(__name__)
    # "/api/events" and "/api/events/" are the same resource
    app.url_map.strict_slashes = False

    CORS(app, resources={
        r"/api/*": {
            "origins": cors_origins(),
            "methods": ["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
            "allow_headers": ["Content-Type", "Authorization"],
            "expose_headers": ["Content-Type", "Authorization", "Content-Disposition"],
            "supports_credentials": True
        }
    })

    # Add the project root to Python path
    # This allows imports like 'from backend.auth_service.routes import auth_bp'
    sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))))

    # --- REGISTER BLUEPRINTS ---
    try:
        from backend.auth_service.routes import auth_bp
        from backend.events_service.routes import events_bp
        from backend.registrations_service.routes import registrations_bp
        from backend.admin_service.routes import admin_bp
        from backend.notifications_service.routes import notifications_bp
        from backend.subscriptions_service.routes import subscriptions_bp
        from backend.locations_service.routes import locations_bp

        app.register_blueprint(auth_bp, url_prefix="/api/auth")
        app.register_blueprint(events_bp, url_prefix="/api/events")
        app.register_blueprint(registrations_bp, url_prefix="/api/registrations")
        app.register_blueprint(admin_bp, url_prefix="/api/admin")
        app.register_blueprint(notifications_bp, url_prefix="/api/notifications")
        app.register_blueprint(subscriptions_bp, url_prefix="/api/subscriptions")
        app.register_blueprint(locations_bp, url_prefix="/api/locations")

        logging.info("All blueprints registered successfully.")

    except ImportError as e:
        logging.error(f"Failed to import blueprints. Module not found: {e}")
        sys.exit(1)

    # --- BASIC HEALTH CHECKPOINTS ---
    @app.route("/")
    def ping():
        """
        Root URL for simple 'online' check.
        """
        return jsonify({"status": "gateway_ok"}), 200

    @app.route("/health")
    def health():
        """
        Health check endpoint.
        """
        return jsonify({"status": "ok"}), 200

    @app.errorhandler(404)
    def not_found(_):
        return jsonify({"error": "Route not found"}), 404

    return app


if __name__ == "__main__":
    app = create_app()
    port = int(os.getenv("GATEWAY_PORT", 5050))
    app.run(host="0.0.0.0", port=port, debug=True)
