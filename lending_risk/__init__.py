"""
Creates and returns main flask app
"""

import os
from typing import Optional

from flask import Flask, jsonify
from flask_cors import CORS

from .engine.config_loader import load_engine_config
from .engine.risk_engine import RiskEngine
from .engine.routes import risk


def create_app(market: Optional[str] = None, engine: Optional[RiskEngine] = None):
    """Create Flask app serving the risk engine of one market"""
    app = Flask(__name__)
    CORS(app)

    @app.route("/health", methods=["GET"])
    def health_check():
        return jsonify({"status": "healthy"}), 200

    if engine is None:
        config = load_engine_config(market or os.environ.get("MARKET", "mainnet"))
        engine = RiskEngine.from_config(config)

    app.config["RISK_ENGINE"] = engine
    app.register_blueprint(risk, url_prefix="/risk")

    return app
