"""Flask application factory for the Reelsmith API."""

import os
import tempfile
from pathlib import Path

from flask import Flask, jsonify

from reelsmith.logging_utils import configure_logging


def create_app(work_dir: Path | None = None, assets_dir: Path | None = None) -> Flask:
    configure_logging()
    app = Flask(__name__)
    app.config["WORK_DIR"] = work_dir or Path(tempfile.mkdtemp(prefix="reelsmith_"))
    app.config["ASSETS_DIR"] = Path(
        assets_dir or os.getenv("REELSMITH_ASSETS_DIR") or Path.cwd() / "assets"
    )
    app.config["MAX_CONTENT_LENGTH"] = 100 * 1024 * 1024  # 100 MB
    app.config["PROGRESS_TTL"] = float(os.getenv("REELSMITH_PROGRESS_TTL", 3600))  # seconds

    from reelsmith.web.routes import bp
    app.register_blueprint(bp)

    @app.errorhandler(413)
    def request_entity_too_large(error):
        return jsonify({"success": False, "error": "File too large. Maximum size is 100MB."}), 413

    return app
