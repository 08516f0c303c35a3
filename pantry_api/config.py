import logging
import os

from dotenv import load_dotenv

# load .env first thing
load_dotenv()

JWT_SECRET = os.getenv("JWT_SECRET")
if JWT_SECRET is None:
    raise ValueError("JWT_SECRET environment variable not set")

JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", str(60 * 24 * 7)))

REDIS_URL = os.getenv("REDIS_URL", "redis://redis:6379/0")
BCRYPT_ROUNDS = int(os.getenv("BCRYPT_ROUNDS", "12"))
EXPIRY_WARNING_DAYS = int(os.getenv("EXPIRY_WARNING_DAYS", "3"))
FRONTEND_URL = os.getenv("FRONTEND_URL", "*")
DEBUG = os.getenv("DEBUG", "false").lower() in ("1", "true", "yes")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
