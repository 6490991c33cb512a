import os
import tempfile

# Keep log files out of the working tree; must run before the package is imported
os.environ.setdefault('LOG_DIR', os.path.join(tempfile.gettempdir(), 'bowling_brackets_test_logs'))
# Locks stay in-process unless a test wires a Redis client explicitly
os.environ['REDIS_URL'] = ''

import pytest


@pytest.fixture
def db_path(tmp_path):
    """Path of a fresh SQLite database file for one test"""
    return tmp_path / "test_brackets.db"
