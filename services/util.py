# services/util.py

import os
import time

def get_data_path():
    path = get_env('MAGNET_DATA_PATH')
    return path.strip() if path else 'data'

def get_env(env: str):
    return os.environ.get(env)

def now_ms() -> int:
    """Monotonic clock in whole milliseconds, used for request throttling."""
    return int(time.monotonic() * 1000)
