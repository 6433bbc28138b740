"""
Gunicorn configuration for the LocalPerks API.
"""
import os

bind = f"0.0.0.0:{os.getenv('PORT', '8080')}"

# Sync workers: each request is one database transaction
workers = int(os.getenv('GUNICORN_WORKERS', '2'))
worker_class = 'sync'
timeout = 60
keepalive = 5

# Logging
accesslog = '-'  # stdout
errorlog = '-'   # stderr
loglevel = os.getenv('LOG_LEVEL', 'info')
capture_output = True

proc_name = 'localperks'

preload_app = True
graceful_timeout = 30


def on_starting(server):
    server.log.info("Starting LocalPerks server...")


def on_exit(server):
    server.log.info("LocalPerks server shutting down...")
