import os
from typing import Optional
from dotenv import load_dotenv

load_dotenv()


def _optional_float(name: str) -> Optional[float]:
    raw = os.getenv(name, '').strip()
    return float(raw) if raw else None


class Config:
    """Engine configuration settings"""
    
    # Database settings
    DATABASE_URL = os.getenv('DATABASE_URL', 'sqlite:///brackets.db')
    
    # Logging settings
    DEBUG = os.getenv('DEBUG', 'False').lower() == 'true'
    LOG_DIR = os.getenv('LOG_DIR', 'logs')
    
    # Score bounds for a single game
    MIN_GAME_SCORE = int(os.getenv('MIN_GAME_SCORE', 0))
    MAX_GAME_SCORE = int(os.getenv('MAX_GAME_SCORE', 300))
    
    # Storage retry settings
    RETRY_MAX_ATTEMPTS = int(os.getenv('RETRY_MAX_ATTEMPTS', 3))
    RETRY_BASE_DELAY = float(os.getenv('RETRY_BASE_DELAY', 0.5))  # seconds
    RETRY_MAX_DELAY = float(os.getenv('RETRY_MAX_DELAY', 4.0))    # seconds
    
    # Deadline for bulk operations, None disables it
    OPERATION_TIMEOUT = _optional_float('OPERATION_TIMEOUT')
    
    # Cross-process locking, enabled when REDIS_URL is set
    REDIS_URL = os.getenv('REDIS_URL') or None
    LOCK_TTL = int(os.getenv('LOCK_TTL', 30))                        # seconds
    LOCK_WAIT_TIMEOUT = float(os.getenv('LOCK_WAIT_TIMEOUT', 10.0))   # seconds
    
    @classmethod
    def get_async_database_url(cls, database_url: str = None) -> str:
        """Convert a sqlite URL to its aiosqlite form if needed"""
        url = database_url or cls.DATABASE_URL
        if url.startswith('sqlite:///'):
            url = url.replace('sqlite:///', 'sqlite+aiosqlite:///')
        return url
    
    @classmethod
    def validate(cls):
        """Validate that configuration values are consistent"""
        if cls.MAX_GAME_SCORE < cls.MIN_GAME_SCORE:
            raise ValueError("MAX_GAME_SCORE must not be lower than MIN_GAME_SCORE")
        if cls.RETRY_MAX_ATTEMPTS < 1:
            raise ValueError("RETRY_MAX_ATTEMPTS must be at least 1")
        if cls.RETRY_BASE_DELAY < 0 or cls.RETRY_MAX_DELAY < 0:
            raise ValueError("Retry delays must not be negative")
        if cls.OPERATION_TIMEOUT is not None and cls.OPERATION_TIMEOUT <= 0:
            raise ValueError("OPERATION_TIMEOUT must be positive when set")
        if cls.LOCK_TTL < 1 or cls.LOCK_WAIT_TIMEOUT <= 0:
            raise ValueError("LOCK_TTL and LOCK_WAIT_TIMEOUT must be positive")
