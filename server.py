# server.py
import os
import re
import uuid
import logging
import threading
import tempfile
from pathlib import Path
from typing import Callable

from flask import Flask, request, jsonify, send_file
from flask_cors import CORS

from application.dto.trim_dto import TrimJobDTO, TrimRequestDTO
from infrastructure.audio.pydub_audio_decoder import PydubAudioDecoder
from infrastructure.storage.file_wave_sink import FileWaveSink
from infrastructure.web.job_store import delete_job, get_job, set_job, update_job_unless
from trimmer.analyzer import suggest_trim
from trimmer.buffer import SampleBuffer
from trimmer.controller import TrimRangeController
from trimmer.core import AudioAnalysis, analyze_buffer, load_audio
from trimmer.errors import DecodingError, EncodingError, FrameRangeError
from trimmer.utils import DEFAULT_PARAMS, format_time

# ── Logging ──────────────────────────────────────────────────────────
logging.basicConfig(
    level=getattr(logging, os.environ.get("LOG_LEVEL", "INFO").upper(), logging.INFO),
    format="%(asctime)s [%(levelname)s] %(message)s",
)
logger = logging.getLogger("audio_trimmer")

# ── Flask app ────────────────────────────────────────────────────────
app = Flask(__name__)

# Upload size limit (100 MB hard cap)
app.config["MAX_CONTENT_LENGTH"] = 100 * 1024 * 1024

_LOCAL_ORIGINS = ["http://localhost:5000", "http://127.0.0.1:5000"]
CORS(app, resources={
    r"/analyze":    {"origins": _LOCAL_ORIGINS},
    r"/trim":       {"origins": _LOCAL_ORIGINS},
    r"/status/*":   {"origins": _LOCAL_ORIGINS},
    r"/download/*": {"origins": _LOCAL_ORIGINS},
    r"/cancel/*":   {"origins": _LOCAL_ORIGINS},
})

app.config["SECRET_KEY"] = os.environ.get("FLASK_SECRET_KEY") or os.urandom(32)

_decoder = PydubAudioDecoder()
_sink = FileWaveSink()

# ════════════════════════════════════════════════════════════════════
# Security helpers
# ════════════════════════════════════════════════════════════════════

# Magic bytes for known audio formats
AUDIO_MAGIC_BYTES: dict[bytes, str] = {
    b"\xff\xfb":              ".mp3",  # MP3 (MPEG layer 3)
    b"\xff\xf3":              ".mp3",
    b"\xff\xf2":              ".mp3",
    b"ID3":                   ".mp3",  # MP3 with ID3 tag
    b"RIFF":                  ".wav",  # WAV
    b"fLaC":                  ".flac", # FLAC
    b"OggS":                  ".ogg",  # OGG
    b"\x00\x00\x00\x20ftyp": ".m4a",
    b"\x00\x00\x00\x1cftyp": ".m4a",
}

FINAL_STATUSES: frozenset = frozenset({"done", "error", "cancelled"})

MAX_UPLOAD_BYTES: int = 100 * 1024 * 1024  # 100 MB
MAX_RANGE_MS: float = 3_600_000.0


def _validate_magic_bytes(file_bytes: bytes) -> bool:
    """Return True only if the file starts with a known audio signature."""
    for magic in AUDIO_MAGIC_BYTES:
        if file_bytes[:len(magic)] == magic:
            return True
    return False


def _sanitize_filename(name: str) -> str:
    """Strip path components, control chars, and limit length."""
    name = Path(name).name                        # strip directory traversal
    name = re.sub(r"[^\w\s\-.]", "", name)        # only safe chars
    name = re.sub(r"\.{2,}", ".", name)            # no double-extension tricks
    return name[:128].strip()


def _is_valid_job_id(job_id: str) -> bool:
    """Return True only for valid UUID4 strings."""
    try:
        val = uuid.UUID(job_id, version=4)
        return str(val) == job_id
    except ValueError:
        return False


SAFE_TEMP_DIR: str = os.path.realpath(tempfile.gettempdir())


def _is_safe_path(path: str) -> bool:
    """Return True only if path resolves inside the OS temp directory."""
    resolved = os.path.realpath(path)
    return resolved.startswith(SAFE_TEMP_DIR + os.sep)


def _safe_float(value, default: float, min_v: float, max_v: float) -> float:
    """Parse float from form input, clamp to valid range, never raise."""
    try:
        v = float(value)
    except (TypeError, ValueError):
        return default
    return max(min_v, min(max_v, v))


def _safe_bool(value) -> bool:
    return str(value or "").strip().lower() in {"1", "true", "yes", "on"}


def _safe_delete(path: str) -> None:
    """Delete a file without raising if it does not exist."""
    try:
        if path and os.path.exists(path):
            os.unlink(path)
    except OSError as e:
        logger.warning("Could not delete %s: %s", path, e)


def _expire_job(job_id: str, path: str) -> None:
    """Drop a finished job together with its output file."""
    _safe_delete(path)
    delete_job(job_id)


def _schedule_output_cleanup(job_id: str, path: str, delay_s: int = 1800) -> None:
    """Expire the job and its output file after *delay_s* seconds (default 30 min)."""
    timer = threading.Timer(delay_s, _expire_job, args=[job_id, path])
    timer.daemon = True
    timer.start()


def _start_worker(target: Callable, args: tuple) -> None:
    """Run a job in a daemon thread."""
    threading.Thread(target=target, args=args, daemon=True).start()


# ════════════════════════════════════════════════════════════════════
# Upload handling
# ════════════════════════════════════════════════════════════════════


def _save_upload():
    """
    Validate the multipart 'file' field and store it in a temp file.

    Returns (temp_path, None) on success or (None, error_response).
    """
    if "file" not in request.files:
        return None, (jsonify({"error": "No file uploaded."}), 400)

    audio_file = request.files["file"]

    # Magic-byte validation — read header before saving
    header = audio_file.read(16)
    audio_file.seek(0)

    if not _validate_magic_bytes(header):
        logger.warning(
            "upload rejected ip=%s reason=invalid_magic_bytes",
            request.remote_addr,
        )
        return None, (jsonify({"error": "Unsupported or invalid audio file."}), 415)

    safe_name = _sanitize_filename(audio_file.filename or "upload.wav")
    suffix = Path(safe_name).suffix or ".wav"

    tmp_fd_in, tmp_in = tempfile.mkstemp(suffix=suffix)
    os.close(tmp_fd_in)
    try:
        audio_file.save(tmp_in)
    except Exception:
        _safe_delete(tmp_in)
        raise

    actual_size = os.path.getsize(tmp_in)
    if actual_size > MAX_UPLOAD_BYTES:
        _safe_delete(tmp_in)
        return None, (jsonify({"error": "File too large after save."}), 413)
    if actual_size == 0:
        _safe_delete(tmp_in)
        return None, (jsonify({"error": "Empty file uploaded."}), 400)

    logger.info("upload accepted ip=%s size=%dB", request.remote_addr, actual_size)
    return tmp_in, None


def _decode_upload():
    """Save and decode the upload. Returns (SampleBuffer, None) or (None, error_response)."""
    tmp_in, error = _save_upload()
    if error is not None:
        return None, error
    try:
        return load_audio(tmp_in, _decoder), None
    except DecodingError as e:
        logger.warning("decode failed ip=%s: %s", request.remote_addr, e)
        return None, (jsonify({"error": "Could not decode audio file."}), 415)
    except ValueError as e:
        return None, (jsonify({"error": str(e).splitlines()[0]}), 400)
    finally:
        # Samples are in memory now; the upload is never needed again
        _safe_delete(tmp_in)


# ════════════════════════════════════════════════════════════════════
# Trim jobs
# ════════════════════════════════════════════════════════════════════


def _fail_job(job_id: str, message: str, output_path: str) -> None:
    # A job cancelled meanwhile keeps its cancelled status
    update_job_unless(job_id, {"status": "error", "error": message, "step": "Failed"}, FINAL_STATUSES)
    _safe_delete(output_path)
    _schedule_output_cleanup(job_id, output_path, delay_s=1800)


def _run_trim(job_id: str, buffer: SampleBuffer, session: TrimRangeController, output_path: str) -> None:
    """Background thread target: encode the session's range and store the WAV."""
    update_job_unless(
        job_id, {"status": "processing", "progress": 50, "step": "Encoding WAV"}, FINAL_STATUSES
    )
    try:
        wave = session.save(buffer)
        if wave is None:
            logger.info("job=%s cancelled before completion", job_id[:8])
            _safe_delete(output_path)
            return

        _sink.save(wave, output_path)
        finished = update_job_unless(job_id, {
            "status": "done",
            "progress": 100,
            "step": "Done",
            "mime_type": wave.mime_type,
        }, FINAL_STATUSES)
        if not finished:
            _safe_delete(output_path)
            return
        _schedule_output_cleanup(job_id, output_path, delay_s=1800)
        logger.info("job=%s completed bytes=%d", job_id[:8], len(wave))
    except (EncodingError, FrameRangeError) as e:
        # Session is editable again; the client keeps its selection
        logger.error("job=%s failed: %s", job_id[:8], e)
        _fail_job(job_id, "Could not process audio.", output_path)
    except OSError as e:
        logger.error("job=%s could not write output: %s", job_id[:8], e)
        _fail_job(job_id, "Could not save audio.", output_path)
    except Exception as e:
        logger.error("job=%s crashed: %s", job_id[:8], e, exc_info=True)
        _fail_job(job_id, "Could not process audio.", output_path)


def _job_view(job_id: str, job: dict) -> dict:
    return TrimJobDTO(
        job_id=job_id,
        status=job["status"],
        progress=job["progress"],
        step=job["step"],
        error=job["error"],
        start_ms=job["start_ms"],
        end_ms=job["end_ms"],
    ).to_dict()


# ════════════════════════════════════════════════════════════════════
# Routes
# ════════════════════════════════════════════════════════════════════


@app.route("/analyze", methods=["POST"])
def analyze_upload():
    """
    POST /analyze
    Form fields:
      - file              : audio file (multipart)
      - quiet_threshold   : float, optional
      - silence_threshold : float, optional
    Returns: volume, silence flags, suggested range and waveform envelope.
    """
    buffer, error = _decode_upload()
    if error is not None:
        return error

    analysis: AudioAnalysis = analyze_buffer(
        buffer,
        quiet_threshold=_safe_float(
            request.form.get("quiet_threshold"), DEFAULT_PARAMS["quiet_threshold"], 0.0, 1.0
        ),
        silence_threshold=_safe_float(
            request.form.get("silence_threshold"), DEFAULT_PARAMS["silence_threshold"], 0.0, 1.0
        ),
    )
    return jsonify(analysis.to_dict())


@app.route("/trim", methods=["POST"])
def start_trim():
    """
    POST /trim
    Form fields:
      - file      : audio file (multipart)
      - start_ms  : float, trim start in milliseconds
      - end_ms    : float, trim end in milliseconds
      - auto_trim : "true" to start from the silence-based suggestion
    Returns: { jobId, startMs, endMs } with 202, or 422 if the range is not savable.
    """
    buffer, error = _decode_upload()
    if error is not None:
        return error

    session: TrimRangeController = TrimRangeController.for_buffer(buffer)
    req = TrimRequestDTO(
        start_ms=_safe_float(request.form.get("start_ms"), 0.0, 0.0, MAX_RANGE_MS),
        end_ms=_safe_float(request.form.get("end_ms"), session.duration_ms, 0.0, MAX_RANGE_MS),
        auto_trim=_safe_bool(request.form.get("auto_trim")),
    )

    if req.auto_trim:
        session.apply_suggestion(suggest_trim(buffer))
        current = session.range
        if "start_ms" not in request.form:
            req.start_ms = current.start_ms
        if "end_ms" not in request.form:
            req.end_ms = current.end_ms
    selected = session.set_range(req.start_ms, req.end_ms)

    if not session.is_savable():
        return jsonify({
            "error": (
                f"Trim length must be between {session.min_sec:g} and "
                f"{session.max_sec:g} seconds."
            ),
            "startMs": selected.start_ms,
            "endMs": selected.end_ms,
            "durationLabel": format_time(selected.duration_sec),
        }), 422

    tmp_fd_out, tmp_out = tempfile.mkstemp(suffix=".wav")
    os.close(tmp_fd_out)
    req.output_path = os.path.realpath(tmp_out)

    job_id: str = str(uuid.uuid4())
    set_job(job_id, {
        "status":      "queued",
        "progress":    0,
        "step":        "Waiting to start",
        "output_path": req.output_path,
        "error":       None,
        "start_ms":    selected.start_ms,
        "end_ms":      selected.end_ms,
        "session":     session,
    })

    _start_worker(_run_trim, (job_id, buffer, session, req.output_path))

    return jsonify({
        "jobId": job_id,
        "startMs": selected.start_ms,
        "endMs": selected.end_ms,
    }), 202


@app.route("/status/<job_id>", methods=["GET"])
def get_status(job_id: str):
    """
    GET /status/<jobId>
    Returns: { jobId, status, progress, step, error, startMs, endMs }
    """
    if not _is_valid_job_id(job_id):
        return jsonify({"error": "Invalid job ID."}), 400

    job = get_job(job_id)
    if not job:
        return jsonify({"error": "Job not found."}), 404
    return jsonify(_job_view(job_id, job))


@app.route("/cancel/<job_id>", methods=["POST"])
def cancel_job(job_id: str):
    """
    POST /cancel/<jobId>
    Closes the trim session; an encode already running is discarded.
    """
    if not _is_valid_job_id(job_id):
        return jsonify({"error": "Invalid job ID."}), 400

    job = get_job(job_id)
    if not job:
        return jsonify({"error": "Job not found."}), 404

    if not update_job_unless(job_id, {"status": "cancelled", "step": "Cancelled"}, FINAL_STATUSES):
        return jsonify({"error": f"Job already {job['status']}."}), 409

    job["session"].cancel()
    _schedule_output_cleanup(job_id, job["output_path"], delay_s=1800)
    logger.info("job=%s cancelled", job_id[:8])
    return jsonify({"jobId": job_id, "status": "cancelled"})


@app.route("/download/<job_id>", methods=["GET"])
def download_file(job_id: str):
    """
    GET /download/<jobId>
    Returns the trimmed WAV as a binary download.
    """
    if not _is_valid_job_id(job_id):
        return jsonify({"error": "Invalid job ID."}), 400

    job = get_job(job_id)
    if not job or job["status"] != "done":
        return jsonify({"error": "File not ready."}), 404

    output_path: str = job["output_path"]

    # Path traversal defense — verify file is in temp dir
    if not _is_safe_path(output_path):
        logger.warning("path traversal attempt job=%s path=%s", job_id[:8], output_path)
        return jsonify({"error": "Access denied."}), 403

    if not os.path.exists(output_path):
        return jsonify({"error": "File has expired. Please trim again."}), 410

    download_name = _sanitize_filename(request.args.get("name", "trimmed_audio.wav"))
    if not download_name.lower().endswith(".wav"):
        download_name = "trimmed_audio.wav"

    return send_file(
        output_path,
        mimetype=job.get("mime_type", "audio/wav"),
        as_attachment=True,
        download_name=download_name,
    )


# ════════════════════════════════════════════════════════════════════
# Error handlers & Security headers
# ════════════════════════════════════════════════════════════════════

@app.errorhandler(413)
def request_entity_too_large(e):
    return jsonify({"error": "File too large. Maximum size is 100 MB."}), 413


@app.errorhandler(404)
def not_found(e):
    path = request.path
    suspicious = any(p in path for p in ["..", "etc", "passwd", "wp-admin", ".env"])
    if suspicious:
        logger.warning("suspicious 404 ip=%s path=%s", request.remote_addr, path)
    return jsonify({"error": "Not found."}), 404


@app.errorhandler(Exception)
def handle_exception(e):
    """Generic handler — never leak internal details to client."""
    logger.error("unhandled exception: %s", e, exc_info=True)
    return jsonify({"error": "An internal error occurred."}), 500


@app.after_request
def set_security_headers(response):
    """Add security headers to every response."""
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none';"
    response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
    return response


# ════════════════════════════════════════════════════════════════════
# Entry point
# ════════════════════════════════════════════════════════════════════

if __name__ == "__main__":
    debug_mode = os.environ.get("FLASK_DEBUG", "false").lower() == "true"
    app.run(debug=debug_mode, port=5000)
