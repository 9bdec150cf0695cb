"""
bunfs dumper Flask Server

Features:
- Chunked file uploads
- Real-time SSE streaming for job progress
- Job queue management
- Robust error handling and validation
"""

import os
import re
import uuid
import shutil
import threading
import queue
import time
import json
from pathlib import Path
from typing import Dict, Optional, List
from dataclasses import dataclass, field
from flask import Flask, request, jsonify, send_file, redirect, url_for, Response

from werkzeug.utils import secure_filename

# Import the dumper modules
from bunfs_dumper.config import Config
from bunfs_dumper.cli import init, dump

app = Flask(__name__)

# Configuration
app.config['MAX_CONTENT_LENGTH'] = 500 * 1024 * 1024  # 500MB max upload
app.config['UPLOAD_FOLDER'] = '/tmp/bunfs_uploads'
app.config['OUTPUT_FOLDER'] = '/tmp/bunfs_outputs'

# Security settings
MAX_TOTAL_SIZE = 500 * 1024 * 1024  # 500MB total
MAGIC_MZ = b'MZ'


@dataclass
class Job:
    """Represents an extraction job."""
    id: str
    status: str = 'created'  # created, uploading, processing, completed, failed
    progress: int = 0
    error: Optional[str] = None
    created: float = field(default_factory=time.time)
    files: list = field(default_factory=list)
    output_files: List[str] = field(default_factory=list)
    upload_dir: str = ''
    output_dir: str = ''
    exe_path: Optional[str] = None
    module_count: int = 0
    event_queue: queue.Queue = field(default_factory=queue.Queue)
    chunks_received: Dict[str, Dict[int, bool]] = field(default_factory=dict)

    def send_event(self, event_type: str, **data):
        """Send an event to connected SSE clients."""
        event = {'type': event_type, **data}
        try:
            self.event_queue.put_nowait(event)
        except queue.Full:
            pass  # Drop event if queue is full

    def log(self, level: str, message: str):
        """Send a log event."""
        self.send_event('log', level=level, message=message)

    def update_progress(self, progress: int, message: str = ''):
        """Update job progress."""
        self.progress = progress
        self.send_event('progress', progress=progress, message=message)


# Job storage
jobs: Dict[str, Job] = {}
jobs_lock = threading.Lock()


def ensure_dirs():
    """Ensure upload and output directories exist."""
    Path(app.config['UPLOAD_FOLDER']).mkdir(parents=True, exist_ok=True)
    Path(app.config['OUTPUT_FOLDER']).mkdir(parents=True, exist_ok=True)


def new_job(**kwargs) -> Job:
    """Create and register a job with its own upload and output directories."""
    job_id = str(uuid.uuid4())
    job = Job(
        id=job_id,
        upload_dir=str(Path(app.config['UPLOAD_FOLDER']) / job_id),
        output_dir=str(Path(app.config['OUTPUT_FOLDER']) / job_id),
        **kwargs
    )
    Path(job.upload_dir).mkdir(parents=True, exist_ok=True)

    with jobs_lock:
        jobs[job_id] = job
    return job


def get_job(job_id: str) -> Optional[Job]:
    """Get a job by ID with validation."""
    try:
        uuid.UUID(job_id)
    except ValueError:
        return None

    with jobs_lock:
        return jobs.get(job_id)


def sanitize_filename(filename: str) -> str:
    """Sanitize filename to prevent path traversal."""
    filename = secure_filename(filename)
    filename = re.sub(r'[^\w\-_\.]', '_', filename)
    if len(filename) > 255:
        name, ext = os.path.splitext(filename)
        filename = name[:250] + ext
    return filename


def validate_file_magic(filepath: str) -> tuple[str | None, str | None]:
    """Validate an uploaded executable by checking its size and magic bytes."""
    try:
        with open(filepath, 'rb') as f:
            data = f.read(2)
    except OSError as e:
        return None, str(e)

    if len(data) < 2:
        return None, "File too small"
    if data == MAGIC_MZ:
        return 'pe', None
    # Files without an MZ header may still carry a trailing blob
    return 'binary', None


def list_output_files(output_dir: str) -> List[str]:
    """List every file under the output directory, as '/'-separated relative paths."""
    root = Path(output_dir)
    return sorted(
        p.relative_to(root).as_posix()
        for p in root.rglob('*')
        if p.is_file()
    )


def process_extract_job(job: Job):
    """Process the extraction in a background thread with streaming updates."""
    try:
        job.status = 'processing'
        job.log('info', 'Starting extraction...')

        if not job.exe_path:
            raise ValueError("Missing executable")

        config = Config.load(None)
        job.update_progress(10, 'Reading executable...')

        bundle = init(job.exe_path, config)
        job.module_count = len(bundle.modules)
        job.log('success', f'Parsed {job.module_count} modules (record size {bundle.record_size})')
        if bundle.compile_exec_argv:
            job.log('info', f'compile_exec_argv: {bundle.compile_exec_argv}')
        job.update_progress(50, 'Writing modules...')

        manifest = dump(bundle, job.output_dir, config)

        job.update_progress(90, 'Finalizing...')
        job.output_files = list_output_files(job.output_dir)

        job.log('success', f'Extracted {len(manifest.modules)} modules, {len(job.output_files)} files')

        job.status = 'completed'
        job.progress = 100
        job.send_event('completed', files=job.output_files)

    except Exception as e:
        job.status = 'failed'
        job.error = str(e)
        job.log('error', f'Extraction failed: {e}')
        job.send_event('failed', error=str(e))


def start_worker(job: Job) -> None:
    """Run a job on a daemon thread."""
    thread = threading.Thread(target=process_extract_job, args=(job,), daemon=True)
    thread.start()


def save_upload(job: Job, file_storage) -> Optional[str]:
    """Save an uploaded executable into the job's upload directory."""
    safe_filename = sanitize_filename(file_storage.filename or '')
    if not safe_filename:
        return None

    filepath = Path(job.upload_dir) / safe_filename
    file_storage.save(str(filepath))

    _, error = validate_file_magic(str(filepath))
    if error:
        filepath.unlink(missing_ok=True)
        return None

    job.exe_path = str(filepath)
    return safe_filename


# ============== Routes ==============

@app.route('/')
def index():
    """Redirect to the API documentation."""
    return redirect(url_for('api_docs'))


# ============== Job API ==============

@app.route('/api/jobs', methods=['POST'])
def create_job():
    """Create a new extraction job."""
    ensure_dirs()

    data = request.get_json(silent=True)
    if not data or 'files' not in data:
        return jsonify({'error': 'No files specified'}), 400

    files = data['files']
    if len(files) != 1:
        return jsonify({'error': 'Exactly one executable is required'}), 400

    # Validate total size
    total_size = sum(f.get('size', 0) for f in files)
    if total_size > MAX_TOTAL_SIZE:
        return jsonify({'error': f'Total size exceeds {MAX_TOTAL_SIZE // (1024*1024)}MB limit'}), 400

    job = new_job(status='uploading', files=files)

    # Initialize chunk tracking
    for f in files:
        job.chunks_received[f['name']] = {}

    return jsonify({'job_id': job.id})


@app.route('/api/jobs/<job_id>/upload', methods=['POST'])
def upload_chunk(job_id: str):
    """Upload a file chunk."""
    job = get_job(job_id)
    if not job:
        return jsonify({'error': 'Job not found'}), 404

    if job.status not in ('created', 'uploading'):
        return jsonify({'error': 'Job is not accepting uploads'}), 400

    # Get chunk data
    if 'chunk' not in request.files:
        return jsonify({'error': 'No chunk provided'}), 400

    chunk = request.files['chunk']
    filename = request.form.get('filename', '')
    try:
        chunk_index = int(request.form.get('chunk_index', 0))
        total_chunks = int(request.form.get('total_chunks', 1))
    except ValueError:
        return jsonify({'error': 'Invalid chunk numbering'}), 400
    if total_chunks < 1 or not 0 <= chunk_index < total_chunks:
        return jsonify({'error': 'Invalid chunk numbering'}), 400

    # Validate filename
    safe_filename = sanitize_filename(filename)
    if not safe_filename:
        return jsonify({'error': 'Invalid filename'}), 400

    # Ensure file is in expected list
    expected_file = next((f for f in job.files if f['name'] == filename), None)
    if not expected_file:
        return jsonify({'error': 'Unexpected file'}), 400

    # Write chunk to temp file
    chunk_dir = Path(job.upload_dir) / 'chunks' / safe_filename
    chunk_dir.mkdir(parents=True, exist_ok=True)
    chunk_path = chunk_dir / f'{chunk_index:05d}'

    chunk.save(str(chunk_path))

    # Track chunk
    job.chunks_received[filename][chunk_index] = True

    # Check if all chunks received
    if len(job.chunks_received[filename]) == total_chunks:
        # Assemble file
        final_path = Path(job.upload_dir) / safe_filename
        with open(final_path, 'wb') as outfile:
            for i in range(total_chunks):
                chunk_file = chunk_dir / f'{i:05d}'
                with open(chunk_file, 'rb') as infile:
                    outfile.write(infile.read())

        # Clean up chunks
        shutil.rmtree(chunk_dir, ignore_errors=True)

        file_type, error = validate_file_magic(str(final_path))
        if error:
            return jsonify({'error': f'Invalid file: {error}'}), 400

        job.exe_path = str(final_path)

        return jsonify({
            'status': 'complete',
            'filename': safe_filename,
            'type': file_type
        })

    return jsonify({
        'status': 'partial',
        'chunk': chunk_index,
        'received': len(job.chunks_received[filename]),
        'total': total_chunks
    })


@app.route('/api/jobs/<job_id>/upload-direct', methods=['POST'])
def upload_direct(job_id: str):
    """Direct upload of a complete executable (for smaller files)."""
    job = get_job(job_id)
    if not job:
        return jsonify({'error': 'Job not found'}), 404

    if job.status not in ('created', 'uploading'):
        return jsonify({'error': 'Job is not accepting uploads'}), 400

    if 'file' not in request.files:
        return jsonify({'error': 'No file provided'}), 400

    filename = save_upload(job, request.files['file'])
    if not filename:
        return jsonify({'error': 'Invalid file'}), 400

    return jsonify({'status': 'complete', 'filename': filename})


@app.route('/api/jobs/<job_id>/start', methods=['POST'])
def start_job(job_id: str):
    """Start processing a job."""
    job = get_job(job_id)
    if not job:
        return jsonify({'error': 'Job not found'}), 404

    if job.status not in ('created', 'uploading'):
        return jsonify({'error': f'Job cannot be started (status: {job.status})'}), 400

    if not job.exe_path:
        return jsonify({'error': 'Executable not uploaded'}), 400

    job.status = 'processing'
    start_worker(job)

    return jsonify({'status': 'started'})


@app.route('/api/jobs/<job_id>/stream')
def stream_job(job_id: str):
    """SSE endpoint for job events."""
    job = get_job(job_id)
    if not job:
        return jsonify({'error': 'Job not found'}), 404

    from flask import stream_with_context

    def generate():
        """Generate SSE events."""
        # Send initial status immediately
        yield f"data: {json.dumps({'type': 'status', 'status': job.status, 'progress': job.progress})}\n\n"

        # If already completed/failed, send that and close
        if job.status == 'completed':
            yield f"data: {json.dumps({'type': 'completed', 'files': job.output_files})}\n\n"
            return
        elif job.status == 'failed':
            yield f"data: {json.dumps({'type': 'failed', 'error': job.error})}\n\n"
            return

        # Stream events
        while True:
            try:
                event = job.event_queue.get(timeout=1.0)
                yield f"data: {json.dumps(event)}\n\n"

                if event.get('type') in ('completed', 'failed'):
                    break

            except queue.Empty:
                # Send comment as keepalive
                yield ":keepalive\n\n"

                # Check if job finished without sending event
                if job.status == 'completed':
                    yield f"data: {json.dumps({'type': 'completed', 'files': job.output_files})}\n\n"
                    break
                elif job.status == 'failed':
                    yield f"data: {json.dumps({'type': 'failed', 'error': job.error})}\n\n"
                    break

    return Response(
        stream_with_context(generate()),
        mimetype='text/event-stream',
        headers={
            'Cache-Control': 'no-cache',
            'X-Accel-Buffering': 'no',
            'Connection': 'keep-alive',
        }
    )


@app.route('/api/jobs/<job_id>')
def get_job_status(job_id: str):
    """Get job status."""
    job = get_job(job_id)
    if not job:
        return jsonify({'error': 'Job not found'}), 404

    return jsonify({
        'id': job.id,
        'status': job.status,
        'progress': job.progress,
        'error': job.error,
        'modules': job.module_count,
        'files': job.output_files,
        'created': job.created
    })


@app.route('/api/download/<job_id>/all.zip')
def download_all_zip(job_id: str):
    """Download all output files as a ZIP archive."""
    import zipfile
    import io

    job = get_job(job_id)
    if not job:
        return jsonify({'error': 'Job not found'}), 404

    if job.status != 'completed':
        return jsonify({'error': 'Job not completed'}), 400

    if not job.output_files:
        return jsonify({'error': 'No output files'}), 404

    # Create ZIP in memory
    zip_buffer = io.BytesIO()
    with zipfile.ZipFile(zip_buffer, 'w', zipfile.ZIP_DEFLATED) as zf:
        for filename in job.output_files:
            filepath = Path(job.output_dir) / filename
            if filepath.exists():
                zf.write(filepath, filename)

    zip_buffer.seek(0)

    return send_file(
        zip_buffer,
        mimetype='application/zip',
        as_attachment=True,
        download_name=f'bunfs_{job_id[:8]}.zip'
    )


@app.route('/api/download/<job_id>/<path:filename>')
def download_file(job_id: str, filename: str):
    """Download one extracted file."""
    job = get_job(job_id)
    if not job:
        return jsonify({'error': 'Job not found'}), 404

    if job.status != 'completed':
        return jsonify({'error': 'Job not completed'}), 400

    # Only files the job produced can be served
    if filename not in job.output_files:
        return jsonify({'error': 'File not found'}), 404

    root = Path(job.output_dir).resolve()
    filepath = (root / filename).resolve()

    # Prevent path traversal
    if root not in filepath.parents:
        return jsonify({'error': 'Invalid path'}), 400

    if not filepath.exists():
        return jsonify({'error': 'File not found'}), 404

    return send_file(str(filepath), as_attachment=True)


# ============== Single-request API ==============

@app.route('/api/extract', methods=['POST'])
def api_extract():
    """Single-request upload and extraction endpoint."""
    ensure_dirs()

    if 'file' not in request.files:
        return jsonify({'error': 'No file uploaded'}), 400

    job = new_job()
    if not save_upload(job, request.files['file']):
        with jobs_lock:
            jobs.pop(job.id, None)
        shutil.rmtree(job.upload_dir, ignore_errors=True)
        return jsonify({'error': 'Could not read executable'}), 400

    job.status = 'processing'
    start_worker(job)

    return jsonify({'job_id': job.id})


@app.route('/api/docs')
def api_docs():
    """API documentation."""
    return jsonify({
        'name': 'bunfs dumper API',
        'version': '1.0.0',
        'endpoints': {
            'POST /api/jobs': {
                'description': 'Create a new extraction job',
                'body': {'files': [{'name': 'string', 'size': 'number'}]},
                'response': {'job_id': 'uuid'}
            },
            'POST /api/jobs/{id}/upload': {
                'description': 'Upload a file chunk',
                'content_type': 'multipart/form-data',
                'fields': {
                    'chunk': 'file blob',
                    'filename': 'original filename',
                    'chunk_index': 'chunk number (0-based)',
                    'total_chunks': 'total number of chunks'
                }
            },
            'POST /api/jobs/{id}/upload-direct': {
                'description': 'Upload the whole executable as the "file" field'
            },
            'POST /api/jobs/{id}/start': {
                'description': 'Start processing the job'
            },
            'GET /api/jobs/{id}/stream': {
                'description': 'SSE stream for real-time job events',
                'events': ['log', 'progress', 'completed', 'failed']
            },
            'GET /api/jobs/{id}': {
                'description': 'Get job status'
            },
            'GET /api/download/{id}/{path}': {
                'description': 'Download one extracted file'
            },
            'GET /api/download/{id}/all.zip': {
                'description': 'Download all extracted files as ZIP'
            },
            'POST /api/extract': {
                'description': 'Single-request upload and extraction'
            }
        },
        'limits': {
            'max_upload_size': '500 MB',
            'job_retention': '30 minutes'
        }
    })


# ============== Cleanup ==============

# Cleanup settings
JOB_RETENTION_SECONDS = 30 * 60  # 30 minutes
CLEANUP_INTERVAL_SECONDS = 60  # Check every minute


def cleanup_old_jobs(now: Optional[float] = None) -> List[str]:
    """Remove jobs older than JOB_RETENTION_SECONDS along with their files."""
    current_time = now if now is not None else time.time()
    to_delete = []

    with jobs_lock:
        for job_id, job in jobs.items():
            age = current_time - job.created
            if age > JOB_RETENTION_SECONDS:
                to_delete.append(job_id)

        for job_id in to_delete:
            del jobs[job_id]

    for job_id in to_delete:
        shutil.rmtree(Path(app.config['UPLOAD_FOLDER']) / job_id, ignore_errors=True)
        shutil.rmtree(Path(app.config['OUTPUT_FOLDER']) / job_id, ignore_errors=True)
        print(f"Cleaned up job {job_id[:8]}...")

    return to_delete


def cleanup_loop():
    """Periodically clean up old jobs."""
    while True:
        time.sleep(CLEANUP_INTERVAL_SECONDS)
        removed = cleanup_old_jobs()
        if removed:
            print(f"Cleaned up {len(removed)} old job(s)")


if __name__ == '__main__':
    ensure_dirs()

    # Start cleanup thread
    cleanup_thread = threading.Thread(target=cleanup_loop, daemon=True)
    cleanup_thread.start()

    print("=" * 60)
    print("bunfs dumper server")
    print("=" * 60)
    print("API Docs: http://localhost:5000/api/docs")
    print("=" * 60)

    app.run(host='0.0.0.0', port=5000, debug=False, threaded=True)
