"""
api_server.py
~~~~~~~~~~~~~

Flask web server with WebSocket support for the MNIST inference demo.

This module provides:
- The demo page: every evaluated digit with its actual and predicted label,
  plus the overall accuracy
- JSON endpoints for server status and the evaluation report
- Streaming evaluation, emitting one WebSocket event per evaluated sample

The server uses:
- Flask for the page and REST endpoints
- Flask-SocketIO for WebSocket communication
- Gevent for the background evaluation task
"""

import os
import sys
import uuid
import logging
from typing import Dict, Any, Optional

import gevent
from flask import Flask, request, jsonify, render_template, send_from_directory
from flask_cors import CORS
from flask_socketio import SocketIO

from mnist_demo.checkpoint import CheckpointError
from mnist_demo.demo import (
    load_variables,
    load_sample_data,
    iter_results,
    summarize,
    run_demo
)
from mnist_demo.inference import DimensionMismatchError
from mnist_demo.samples import SampleDataError

# ============================================================================
# LOGGING SETUP
# ============================================================================

def configure_logging() -> None:
    """
    Set up logging based on environment.

    - In production: Show fewer logs (less noise) but keep important logs
    - In development: Show more detailed logs for debugging
    """
    log_level_str = os.getenv('LOG_LEVEL', 'INFO').upper()
    log_level = getattr(logging, log_level_str, logging.INFO)
    is_production = os.getenv('FLASK_ENV') == 'production'

    logging.basicConfig(
        level=log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    # In production, silence noisy third-party logs but keep our logs visible
    if is_production:
        for logger_name in ['socketio', 'engineio', 'engineio.server',
                            'socketio.server', 'werkzeug']:
            logging.getLogger(logger_name).setLevel(logging.WARNING)
        logging.getLogger('mnist_demo').setLevel(logging.INFO)
    else:
        logging.getLogger('socketio').setLevel(logging.INFO)
        logging.getLogger('engineio').setLevel(logging.INFO)


configure_logging()
logger = logging.getLogger(__name__)

# ============================================================================
# FLASK APP SETUP
# ============================================================================

app = Flask(__name__, static_folder='static', template_folder='templates')
CORS(app, resources={r"/*": {"origins": "*"}})

# Directory holding manifest.json, the variable files and sample_data.json
app.config['DEMO_DIR'] = os.getenv('MNIST_DEMO_DIR', 'demo_data')

is_production = os.getenv('FLASK_ENV') == 'production'

socketio = SocketIO(
    app,
    cors_allowed_origins="*",
    async_mode='gevent',
    logger=not is_production,
    engineio_logger=not is_production,
    ping_timeout=60,
    ping_interval=25
)

# Errors a demo directory can produce while loading or evaluating
DEMO_ERRORS = (CheckpointError, SampleDataError, DimensionMismatchError, OSError)

MAX_JOB_ID_LENGTH = 64

# ============================================================================
# GLOBAL STATE
# ============================================================================

# Evaluation reports computed so far: {demo_dir: report}
reports: Dict[str, Dict[str, Any]] = {}

# Streaming evaluations being tracked: {job_id: job_info}
evaluation_jobs: Dict[str, Dict[str, Any]] = {}


def get_report() -> Dict[str, Any]:
    """
    Return the evaluation report for the configured demo directory.

    The report is computed on first use and cached afterwards.
    """
    demo_dir = app.config['DEMO_DIR']
    if demo_dir not in reports:
        logger.info(f"Evaluating demo directory {demo_dir}...")
        reports[demo_dir] = run_demo(demo_dir)
    return reports[demo_dir]


def cleanup_finished_jobs() -> None:
    """Remove completed or failed evaluation jobs from memory."""
    finished_statuses = {'completed', 'failed'}
    jobs_to_remove = [
        job_id for job_id, job in evaluation_jobs.items()
        if job.get('status') in finished_statuses
    ]

    for job_id in jobs_to_remove:
        del evaluation_jobs[job_id]

    if jobs_to_remove:
        logger.info(f"Cleaned up {len(jobs_to_remove)} finished evaluation job(s)")


def clear_reports() -> None:
    """Forget cached reports and finished jobs so the next request re-evaluates."""
    reports.clear()
    cleanup_finished_jobs()


# ============================================================================
# PAGE
# ============================================================================

@app.route('/')
def index():
    """Render the demo page with every result and the overall accuracy."""
    try:
        report = get_report()
    except DEMO_ERRORS as e:
        logger.error(f"Could not build demo page: {e}")
        return render_template('index.html', report=None, error=str(e)), 500

    return render_template('index.html', report=report, error=None)


# ============================================================================
# API ENDPOINTS
# ============================================================================

@app.route('/api/status', methods=['GET'])
def get_status():
    """Return server status and the configured demo directory."""
    active_statuses = ('pending', 'running')
    active_jobs = sum(
        1 for job in evaluation_jobs.values()
        if job.get('status') in active_statuses
    )

    return jsonify({
        'status': 'online',
        'demo_dir': app.config['DEMO_DIR'],
        'report_cached': app.config['DEMO_DIR'] in reports,
        'evaluation_jobs': active_jobs
    }), 200


@app.route('/api/results', methods=['GET'])
def get_results():
    """Return the evaluation report as JSON."""
    try:
        report = get_report()
    except DEMO_ERRORS as e:
        logger.error(f"Could not evaluate demo: {e}")
        return jsonify({'error': f'Failed to evaluate demo: {str(e)}'}), 500

    return jsonify(report), 200


@app.route('/api/evaluate', methods=['POST'])
def start_evaluation():
    """
    Start a streaming evaluation in the background.

    Progress is sent over WebSocket as 'evaluation_started',
    'evaluation_result' (one per sample) and 'evaluation_complete'
    or 'evaluation_error'.

    Request body (optional):
        {'job_id': '<id>'}  # lets the client filter events before the reply arrives

    Returns:
        JSON with job_id and status
    """
    data = request.get_json(silent=True) or {}
    job_id = data.get('job_id') or str(uuid.uuid4())

    if not isinstance(job_id, str) or len(job_id) > MAX_JOB_ID_LENGTH:
        return jsonify({
            'error': f'job_id must be a string of at most {MAX_JOB_ID_LENGTH} characters'
        }), 400
    if job_id in evaluation_jobs:
        return jsonify({'error': f'Evaluation job {job_id} already exists'}), 409

    cleanup_finished_jobs()
    demo_dir = app.config['DEMO_DIR']

    evaluation_jobs[job_id] = {
        'demo_dir': demo_dir,
        'status': 'pending',
        'progress': 0
    }

    logger.info(f"Created evaluation job {job_id} for {demo_dir}")

    socketio.start_background_task(evaluate_task, job_id, demo_dir)

    return jsonify({
        'job_id': job_id,
        'demo_dir': demo_dir,
        'status': 'evaluation_started'
    }), 202


@app.route('/api/evaluate/<job_id>', methods=['GET'])
def get_evaluation_status(job_id: str):
    """Get the current status of an evaluation job."""
    if job_id not in evaluation_jobs:
        logger.warning(f"Status requested for non-existent job: {job_id}")
        return jsonify({'error': 'Evaluation job not found'}), 404

    return jsonify(evaluation_jobs[job_id]), 200


def evaluate_task(job_id: str, demo_dir: str) -> None:
    """
    Background task that evaluates the demo and streams every result.

    The finished report is cached for later page and API requests.
    """
    job = evaluation_jobs[job_id]

    try:
        variables = load_variables(demo_dir)
        samples = load_sample_data(demo_dir)
        total = len(samples)

        job['status'] = 'running'
        job['total'] = total
        socketio.emit('evaluation_started', {'job_id': job_id, 'total': total})
        gevent.sleep(0)

        num_correct = 0
        results = []
        for result in iter_results(samples, variables):
            if result['correct']:
                num_correct += 1
            results.append(result)
            job['progress'] = len(results) / total * 100

            socketio.emit('evaluation_result', dict(result, job_id=job_id))
            # Let gevent send the message immediately
            gevent.sleep(0)

        report = summarize(num_correct, total)
        report['results'] = results
        reports[demo_dir] = report

        job['status'] = 'completed'
        job['accuracy'] = report['accuracy']
        job['progress'] = 100

        logger.info(f"Evaluation job {job_id} completed: {report['accuracy_text']}")

        socketio.emit('evaluation_complete', {
            'job_id': job_id,
            'total': report['total'],
            'correct': report['correct'],
            'accuracy': report['accuracy'],
            'accuracy_text': report['accuracy_text']
        })
        gevent.sleep(0)

    except Exception as e:
        logger.exception(f"Evaluation failed for job {job_id}: {e}")

        job['status'] = 'failed'
        job['error'] = str(e)

        socketio.emit('evaluation_error', {
            'job_id': job_id,
            'status': 'failed',
            'error': str(e)
        })
        gevent.sleep(0)


@app.route('/api/reload', methods=['POST'])
def reload_demo():
    """Drop cached reports so the demo directory is read again."""
    clear_reports()
    logger.info("Cleared cached evaluation reports")
    return jsonify({'status': 'cleared'}), 200


# ============================================================================
# STATIC FILE SERVING
# ============================================================================

@app.route('/<path:path>')
def serve_static(path: str):
    """Serve static files (CSS, JS)."""
    return send_from_directory(app.static_folder, path)


# ============================================================================
# SERVER STARTUP
# ============================================================================

def main(port: Optional[int] = None) -> None:
    """Run the demo server with WebSocket support."""
    is_cloud = bool(os.environ.get('PORT'))
    port = port or int(os.environ.get('PORT', 8000))

    if is_cloud:
        logger.info(f"Starting server in production mode on port {port}")
    else:
        logger.info(f"Starting server at http://localhost:{port}/")

    try:
        socketio.run(
            app,
            host='0.0.0.0',
            port=port,
            debug=not is_cloud,
            use_reloader=False
        )
    except OSError as e:
        if "Address already in use" in str(e):
            logger.error(f"Port {port} is already in use.")
            sys.exit(1)
        else:
            raise


if __name__ == '__main__':
    main()
