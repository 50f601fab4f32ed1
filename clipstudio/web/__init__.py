"""Flask application factory for the ClipStudio job API."""

import tempfile
from pathlib import Path

from flask import Flask, jsonify


def create_app(
    work_dir: Path | None = None,
    max_upload_bytes: int = 10 * 1024 ** 3,
    max_finished_jobs: int = 50,
) -> Flask:
    app = Flask(__name__)
    app.config["WORK_DIR"] = work_dir or Path(tempfile.mkdtemp(prefix="clipstudio_"))
    app.config["MAX_CONTENT_LENGTH"] = max_upload_bytes
    app.config["MAX_FINISHED_JOBS"] = max_finished_jobs

    from clipstudio.web.routes import bp
    app.register_blueprint(bp)

    # JSON-only API; no HTML error pages.
    @app.errorhandler(404)
    def not_found(error):
        return jsonify({"error": "Not found"}), 404

    @app.errorhandler(413)
    def request_entity_too_large(error):
        return jsonify({"error": "File too large"}), 413

    return app
