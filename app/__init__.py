"""
Creates and returns main flask app
"""

import threading

from flask import Flask, jsonify
from flask_cors import CORS

from .automation.routes import automation, start_manager


def create_app(chain_id=None, start_background=True):
    """Create Flask app serving the automation engine for the specified chain ID"""
    app = Flask(__name__)
    CORS(app)

    @app.route("/health", methods=["GET"])
    def health_check():
        return jsonify({"status": "healthy"}), 200

    if start_background:
        manager_thread = threading.Thread(target=start_manager, args=(chain_id,), daemon=True)
        manager_thread.start()

    # Register the automation blueprint after starting the manager
    app.register_blueprint(automation, url_prefix="/automation")

    return app
