"""
Gunicorn WSGI Server Configuration

    gunicorn --config gunicorn.conf.py "app:application"

Values are read from the environment so the same file serves containers and
local runs.
"""

import multiprocessing
import os

# =============================================================================
# SERVER SOCKET CONFIGURATION
# =============================================================================

bind = os.getenv("GUNICORN_BIND", "0.0.0.0:8000")
backlog = 2048

# =============================================================================
# WORKER PROCESS CONFIGURATION
# =============================================================================

# (2 * CPU_COUNT) + 1, between 2 and 8
workers = int(os.getenv("GUNICORN_WORKERS", max(2, min(8, (2 * multiprocessing.cpu_count()) + 1))))
worker_class = "sync"
max_requests = 1000
max_requests_jitter = 500
timeout = int(os.getenv("GUNICORN_TIMEOUT", "120"))
keepalive = 5
graceful_timeout = 30

# =============================================================================
# LOGGING
# =============================================================================

# application logs are structlog JSON on stdout
accesslog = "-"
errorlog = "-"
loglevel = os.getenv("GUNICORN_LOG_LEVEL", "info")
capture_output = True

# MongoClient is created lazily, once per worker
preload_app = True


def on_starting(server):
    server.log.info("Gunicorn master process starting with %d workers", workers)


def post_fork(server, worker):
    worker.log.info("Worker %s ready to handle requests", worker.pid)


def worker_int(worker):
    worker.log.info("Worker %s shutting down gracefully", worker.pid)
