"""Gunicorn configuration for the blog mailer.

Access and error logs go to stdout/stderr so `docker compose logs` shows
them next to the application log. The bind address is replaced at
start-up with ``server.port`` from config.yml.
"""

import sys

bind = "0.0.0.0:5000"

# One sync worker: the feed state file and the notification lock are
# per-process, so a second worker could mail the same post twice
workers = 1
worker_class = "sync"

# Feed fetch (5s) plus a Mailgun send (10s) must fit inside one request
timeout = 30
keepalive = 2

accesslog = "-"
errorlog = "-"
loglevel = "info"

# remote address, request line, status, size, referer, user agent, duration (us)
access_log_format = '%(h)s "%(r)s" %(s)s %(b)s "%(f)s" "%(a)s" %(D)s'

capture_output = True

# GitHub webhook bodies are small; sign-up forms even more so
limit_request_line = 4096
limit_request_fields = 50


def when_ready(server):
    server.log.info(f"Blog mailer listening on {', '.join(server.cfg.bind)}")


def worker_abort(worker):
    worker.log.error("Worker aborted, a feed fetch or Mailgun call probably exceeded the timeout")


logconfig_dict = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "mailer": {
            "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            "datefmt": "%Y-%m-%d %H:%M:%S",
        }
    },
    "handlers": {
        "stdout": {"class": "logging.StreamHandler", "formatter": "mailer", "stream": sys.stdout},
        "stderr": {"class": "logging.StreamHandler", "formatter": "mailer", "stream": sys.stderr},
    },
    "loggers": {
        "gunicorn.error": {"level": "INFO", "handlers": ["stderr"], "propagate": False},
        "gunicorn.access": {"level": "INFO", "handlers": ["stdout"], "propagate": False},
    },
}
