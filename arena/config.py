import os
from dotenv import load_dotenv

load_dotenv()

class Config:
    """Arena configuration settings"""

    # Database settings
    DATABASE_URL = os.getenv('DATABASE_URL', 'sqlite:///arena.db')

    # General settings
    DEBUG = os.getenv('DEBUG', 'False').lower() == 'true'
    LOG_DIR = os.getenv('LOG_DIR', 'logs')
    LOG_TO_FILE = os.getenv('LOG_TO_FILE', 'True').lower() == 'true'

    # Notification settings
    REDIS_URL = os.getenv('REDIS_URL')
    NOTIFICATION_CHANNEL = os.getenv('NOTIFICATION_CHANNEL', 'arena:events')

    # Evaluation service settings
    CODE_RUNNER_HOST = os.getenv('CODE_RUNNER_HOST', 'localhost:5000')
    MICROSERVICE_AUTHORIZATION = os.getenv('MICROSERVICE_AUTHORIZATION', '')
    EVALUATION_TIMEOUT = float(os.getenv('EVALUATION_TIMEOUT', 60))  # seconds
    STRATEGY_LOADING_TIMEOUT = float(os.getenv('STRATEGY_LOADING_TIMEOUT', 5000))  # ms
    STRATEGY_EXECUTION_TIMEOUT = float(os.getenv('STRATEGY_EXECUTION_TIMEOUT', 100))  # ms

    # Grading settings
    MIN_SCORE = 0
    MAX_SCORE = 1000

    @classmethod
    def get_async_database_url(cls, database_url: str = None) -> str:
        """Get the database URL rewritten for the async sqlite driver if needed"""
        database_url = database_url or cls.DATABASE_URL
        if database_url.startswith('sqlite:///'):
            database_url = database_url.replace('sqlite:///', 'sqlite+aiosqlite:///')
        return database_url

    @classmethod
    def validate(cls):
        """Validate that the configuration is consistent"""
        if not cls.DATABASE_URL:
            raise ValueError("DATABASE_URL is required")
        if cls.MIN_SCORE >= cls.MAX_SCORE:
            raise ValueError("MIN_SCORE must be lower than MAX_SCORE")
        if cls.EVALUATION_TIMEOUT <= 0:
            raise ValueError("EVALUATION_TIMEOUT must be positive")
        if cls.STRATEGY_LOADING_TIMEOUT <= 0 or cls.STRATEGY_EXECUTION_TIMEOUT <= 0:
            raise ValueError("Strategy timeouts must be positive")
        if not cls.DEBUG and not cls.MICROSERVICE_AUTHORIZATION:
            raise ValueError("MICROSERVICE_AUTHORIZATION is required outside debug mode")
