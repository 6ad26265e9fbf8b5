import os
from pathlib import Path

# Base directory of the project
BASE_DIR = Path(__file__).resolve().parent

APP_ENV = os.environ.get("APP_ENV", "development").lower()
IS_PRODUCTION = APP_ENV in {"prod", "production"}

# Any SQLAlchemy URL; SQLite file next to the code by default
DATABASE_URL = os.environ.get("DATABASE_URL", f"sqlite:///{BASE_DIR / 'dtr.db'}")

# Session token signing
SECRET_KEY = os.environ.get("JWT_SECRET", "change-this-secret-key")
TOKEN_ALGORITHM = "HS256"
SESSION_LIFETIME_DAYS = int(os.environ.get("SESSION_LIFETIME_DAYS", "30"))

# Session cookie
SESSION_COOKIE_NAME = "authToken"
SESSION_COOKIE_SECURE = IS_PRODUCTION

# Registration policy
MIN_PASSWORD_LENGTH = 6
REQUIRE_FACE_CAPTURE = bool(int(os.environ.get("REQUIRE_FACE_CAPTURE", "1")))

# Hours beyond this count as overtime. Fixed policy, not per user.
STANDARD_SHIFT_HOURS = 9.0

# Face descriptor: number of sampled pixels and match distance threshold.
# Lower distance => closer frames.
DESCRIPTOR_LENGTH = 256
FACE_MATCH_THRESHOLD = 0.5

# Upper bound on the posted reference frame (data URL characters)
MAX_FACE_IMAGE_LENGTH = int(os.environ.get("MAX_FACE_IMAGE_LENGTH", "2000000"))

# Seconds to wait for the first ready frame from a local camera
CAMERA_TIMEOUT = float(os.environ.get("CAMERA_TIMEOUT", "5"))

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()
