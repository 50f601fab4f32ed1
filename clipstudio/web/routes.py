"""Job API routes for ClipStudio."""

import json
import logging
import queue
import shutil
import threading
import time
import uuid
from pathlib import Path

from flask import (
    Blueprint,
    Response,
    current_app,
    jsonify,
    request,
    send_file,
)

from clipstudio.engine import process
from clipstudio.ffutil import (
    CancelToken,
    InvalidInputError,
    MediaProcessingError,
    OperationCancelled,
    ProbeError,
)
from clipstudio.manifest import CaptionConfig, Manifest, SilenceCutConfig, ToolConfig

logger = logging.getLogger(__name__)

bp = Blueprint("web", __name__)

GENERIC_FAILURE = "Processing failed, please try again."

# In-memory job store: job_id -> job dict. Single-process only; finished jobs
# beyond MAX_FINISHED_JOBS are evicted with their files on each upload.
_jobs: dict[str, dict] = {}
_jobs_lock = threading.Lock()

FINISHED = ("done", "error")


def _describe_failure(exc: Exception) -> str:
    """User-facing error text. ffmpeg diagnostics go to the log only."""
    if isinstance(exc, OperationCancelled):
        return "Processing cancelled."
    if isinstance(exc, MediaProcessingError):
        logger.error("Media processing failed: %s", exc)
        return GENERIC_FAILURE
    if isinstance(exc, (InvalidInputError, ProbeError)):
        return str(exc)
    logger.exception("Unexpected processing failure")
    return GENERIC_FAILURE


def _evict_finished(limit: int) -> None:
    """Drop the oldest finished jobs beyond *limit*, along with their work dirs."""
    with _jobs_lock:
        finished = sorted(
            (item for item in _jobs.items() if item[1]["status"] in FINISHED),
            key=lambda item: item[1].get("finished_at", 0.0),
        )
        stale = finished[: max(len(finished) - limit, 0)]
        for job_id, _ in stale:
            del _jobs[job_id]

    for job_id, job in stale:
        try:
            shutil.rmtree(job["dir"])
        except OSError as e:
            logger.warning("Could not remove work dir of job %s: %s", job_id, e)
        logger.info("Evicted finished job %s", job_id)


def _build_manifest(job: dict, config: dict) -> Manifest:
    input_path = job["input_path"]
    output_path = job["dir"] / f"output{input_path.suffix}"

    sc = config.get("silence_cut", {})
    cc = config.get("captions", {})

    return Manifest(
        input=input_path,
        output=output_path,
        silence_cut=SilenceCutConfig(
            enabled=bool(sc.get("enabled", False)),
            noise_db=float(sc.get("noise_db", -35.0)),
            min_duration=float(sc.get("min_duration", 0.5)),
            padding=float(sc.get("padding", 0.15)),
        ),
        captions=CaptionConfig(
            enabled=bool(cc.get("enabled", False)),
            model=cc.get("model", "base"),
            language=cc.get("language"),
            font_size=int(cc.get("font_size", 24)),
            font_name=cc.get("font_name", "Arial"),
        ),
        tools=ToolConfig(temp_dir=job["dir"] / "tmp"),
    )


@bp.route("/api/upload", methods=["POST"])
def upload():
    if "file" not in request.files:
        return jsonify({"error": "No file provided"}), 400

    f = request.files["file"]
    if not f.filename:
        return jsonify({"error": "Empty filename"}), 400

    job_id = uuid.uuid4().hex[:12]
    job_dir = Path(current_app.config["WORK_DIR"]) / job_id
    job_dir.mkdir(parents=True, exist_ok=True)

    ext = Path(f.filename).suffix or ".mp4"
    input_path = job_dir / f"input{ext}"
    f.save(input_path)

    _evict_finished(current_app.config["MAX_FINISHED_JOBS"])
    with _jobs_lock:
        _jobs[job_id] = {
            "dir": job_dir,
            "input_path": input_path,
            "filename": f.filename,
            "status": "uploaded",
        }

    return jsonify({"job_id": job_id, "filename": f.filename})


@bp.route("/api/jobs/<job_id>/process", methods=["POST"])
def start_process(job_id: str):
    job = _jobs.get(job_id)
    if job is None:
        return jsonify({"error": "Job not found"}), 404

    try:
        manifest = _build_manifest(job, request.get_json(silent=True) or {})
    except (InvalidInputError, TypeError, ValueError) as e:
        return jsonify({"error": str(e)}), 400

    progress_queue: queue.Queue = queue.Queue()
    cancel = CancelToken()
    with _jobs_lock:
        if job["status"] not in ("uploaded", *FINISHED):
            return jsonify({"error": f"Job is already {job['status']}"}), 409
        job["progress_queue"] = progress_queue
        job["cancel"] = cancel
        job["status"] = "processing"
        job["error"] = None

    def run():
        try:
            def on_progress(stage: str, frac: float):
                progress_queue.put({"stage": stage, "progress": round(frac, 3)})

            result = process(manifest, on_progress=on_progress, cancel=cancel)
            summary = {
                "output_path": str(result.output_path),
                "duration_original": result.duration_original,
                "duration_final": result.duration_final,
                "segments_removed": result.segments_removed,
                "cue_count": result.cue_count,
            }
            with _jobs_lock:
                job["result"] = summary
                job["status"] = "done"
                job["finished_at"] = time.monotonic()
        except Exception as e:
            error = _describe_failure(e)
            with _jobs_lock:
                job["status"] = "error"
                job["error"] = error
                job["finished_at"] = time.monotonic()
        finally:
            progress_queue.put(None)  # sentinel

    threading.Thread(target=run, daemon=True).start()
    return jsonify({"status": "started"})


@bp.route("/api/jobs/<job_id>/cancel", methods=["POST"])
def cancel_process(job_id: str):
    job = _jobs.get(job_id)
    if job is None:
        return jsonify({"error": "Job not found"}), 404

    if job["status"] != "processing":
        return jsonify({"error": "Job is not processing"}), 409

    job["cancel"].cancel()
    return jsonify({"status": "cancelling"})


@bp.route("/api/jobs/<job_id>/progress")
def progress_stream(job_id: str):
    job = _jobs.get(job_id)
    if job is None:
        return jsonify({"error": "Job not found"}), 404

    q = job.get("progress_queue")

    if q is None:
        return jsonify({"error": "No processing in progress"}), 409

    def generate():
        while True:
            try:
                msg = q.get(timeout=120)
            except queue.Empty:
                yield "data: {\"error\": \"timeout\"}\n\n"
                break
            if msg is None:
                if job["status"] == "error":
                    data = json.dumps({"error": job["error"]})
                else:
                    data = json.dumps({
                        "stage": "complete",
                        "progress": 1.0,
                        "result": job.get("result"),
                    })
                yield f"data: {data}\n\n"
                break
            yield f"data: {json.dumps(msg)}\n\n"

    return Response(generate(), mimetype="text/event-stream")


@bp.route("/api/jobs/<job_id>/result")
def download_result(job_id: str):
    job = _jobs.get(job_id)
    if job is None:
        return jsonify({"error": "Job not found"}), 404

    if job["status"] != "done":
        return jsonify({"error": "Job not complete"}), 409

    output_path = Path(job["result"]["output_path"])
    return send_file(output_path, as_attachment=False)


@bp.route("/api/jobs/<job_id>/status")
def job_status(job_id: str):
    job = _jobs.get(job_id)
    if job is None:
        return jsonify({"error": "Job not found"}), 404

    resp = {"status": job["status"], "filename": job.get("filename")}
    if job["status"] == "done":
        resp["result"] = job.get("result")
    if job["status"] == "error":
        resp["error"] = job.get("error")
    return jsonify(resp)
