"""Gunicorn configuration for production deployment.

Run with: gunicorn -c gunicorn.conf.py agencydesk.main:app
"""

import multiprocessing
import os

# Server socket
bind = os.getenv("GUNICORN_BIND", "0.0.0.0:8000")
backlog = 2048

# Worker processes
# Billing requests are short and I/O bound; a few async workers are plenty
workers = int(os.getenv("GUNICORN_WORKERS", min(multiprocessing.cpu_count() * 2 + 1, 4)))
worker_class = "uvicorn.workers.UvicornWorker"
max_requests = 5000  # Recycle workers periodically
max_requests_jitter = 500

# Timeout configuration
timeout = 30
graceful_timeout = 20
keepalive = 5

# Process naming
proc_name = "agencydesk-api"

# Logging
accesslog = "-"  # stdout
errorlog = "-"  # stderr
loglevel = os.getenv("GUNICORN_LOG_LEVEL", "info")
access_log_format = '%(h)s "%(r)s" %(s)s %(b)s %(D)s "%({x-correlation-id}o)s"'

# SSL configuration: set via environment variables GUNICORN_KEYFILE and GUNICORN_CERTFILE
keyfile = os.getenv("GUNICORN_KEYFILE")
certfile = os.getenv("GUNICORN_CERTFILE")


def post_fork(server, worker):
    """Called just after a worker has been forked."""
    server.log.info("Worker spawned (pid: %s)", worker.pid)


def worker_abort(worker):
    """Called when a worker receives SIGABRT (usually a timeout)."""
    worker.log.warning("Worker aborted (pid: %s), request exceeded %ss", worker.pid, timeout)
