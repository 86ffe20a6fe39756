"""
Runtime configuration loaded from environment variables.

Values can also be placed in a .env file in the working directory.
"""
import os

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# Redis connection
REDIS_HOST = os.getenv("REDIS_HOST", "127.0.0.1")
REDIS_PORT = int(os.getenv("REDIS_PORT", "6379"))
REDIS_DB = int(os.getenv("REDIS_DB", "0"))
REDIS_TIMEOUT_SECONDS = float(os.getenv("REDIS_TIMEOUT_SECONDS", "1.0"))

# How long a message body lives before Redis expires it
MESSAGE_EXPIRE_SECONDS = int(os.getenv("MESSAGE_EXPIRE_SECONDS", "1800"))

# When enabled, system errors include the underlying reason in the response.
# Never enable in production.
DEBUG = os.getenv("GEOMESS_DEBUG", "false").lower() in ("1", "true", "yes")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
