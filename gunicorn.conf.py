"""
Gunicorn configuration file cho Quiz Master API
Chạy: gunicorn -c gunicorn.conf.py wsgi:app
"""

import os

# ==================== WORKER CONFIGURATION ====================
# Công thức: (2 × CPU cores) + 1, mặc định 2 cho instance nhỏ
workers = int(os.environ.get('WEB_CONCURRENCY', '2'))

# Threads per worker
threads = 2

worker_class = 'sync'

# ==================== TIMEOUT ====================
timeout = 60
graceful_timeout = 30
keepalive = 5

# ==================== MEMORY MANAGEMENT ====================
# Restart worker sau N requests để tránh memory leak
max_requests = 1000
max_requests_jitter = 50

# ==================== PRELOAD ====================
# wsgi.py tạo bảng + admin một lần trước khi fork
preload_app = True

# ==================== BINDING ====================
bind = f"0.0.0.0:{os.environ.get('PORT', '5000')}"

# ==================== LOGGING ====================
accesslog = '-'
errorlog = '-'
loglevel = os.environ.get('LOG_LEVEL', 'info')

backlog = 2048


# ==================== HOOKS ====================
def on_starting(server):
    server.log.info(f'[Quiz Master] Starting with {workers} workers x {threads} threads, timeout {timeout}s')


def post_fork(server, worker):
    server.log.info(f'[Worker {worker.pid}] Spawned')


def worker_abort(worker):
    worker.log.warning(f'[Worker {worker.pid}] Aborted (request exceeded {timeout}s?)')


def worker_exit(server, worker):
    server.log.info(f'[Worker {worker.pid}] Exited')
