from flask import Flask, jsonify, request, send_file
from io import BytesIO
import logging

from config.settings import MAX_FILE_SIZE, OUTPUT_MEDIA_TYPE, WEB_HOST, WEB_PORT
from services.compression_service import CompressionService
from services.exceptions import DecodeError, EncodeError, InvalidTarget, TargetUnreachable
from utils.file_utils import compressed_filename
from utils.format_utils import format_file_size

logger = logging.getLogger(__name__)

app = Flask(__name__)
app.config["MAX_CONTENT_LENGTH"] = MAX_FILE_SIZE
compression_service = CompressionService()

TRUE_VALUES = ("1", "true", "yes", "on")


@app.errorhandler(413)
def too_large(e):
    return jsonify({"error": f"File too large. The limit is {format_file_size(MAX_FILE_SIZE)}."}), 413


@app.route('/')
def home():
    return "running."


@app.route('/compress', methods=['POST'])
def compress():
    if "file" not in request.files:
        return jsonify({"error": "No file uploaded"}), 400

    file = request.files["file"]
    target_kb = request.form.get("target_kb")
    if target_kb is None:
        return jsonify({"error": "Missing target_kb"}), 400
    best_effort = request.form.get("best_effort", "").lower() in TRUE_VALUES

    try:
        result = compression_service.compress(file.read(), target_kb, allow_best_effort=best_effort)
    except (InvalidTarget, DecodeError) as e:
        return jsonify({"error": str(e)}), 400
    except TargetUnreachable as e:
        return jsonify({"error": str(e), "last_size": e.last_size}), 422
    except EncodeError as e:
        logger.error(f"Error encoding {file.filename}: {e}")
        return jsonify({"error": str(e)}), 500

    response = send_file(
        BytesIO(result.data),
        mimetype=OUTPUT_MEDIA_TYPE,
        as_attachment=True,
        download_name=compressed_filename(file.filename),
    )
    response.headers["X-Compressed-Size"] = str(result.size)
    response.headers["X-Quality"] = f"{result.quality:.4f}"
    response.headers["X-Dimensions"] = f"{result.width}x{result.height}"
    response.headers["X-Within-Budget"] = "true" if result.within_budget else "false"
    return response


# Start Flask web server
def run_flask():
    app.run(host=WEB_HOST, port=WEB_PORT)
