import os
from decimal import Decimal
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./marketplace.db")

# Security
SECRET_KEY = os.getenv("SECRET_KEY")
if not SECRET_KEY:
    import warnings

    warnings.warn(
        "SECRET_KEY not set! Using insecure default - DO NOT USE IN PRODUCTION", RuntimeWarning, stacklevel=2
    )
    SECRET_KEY = "INSECURE-DEV-KEY-CHANGE-IN-PRODUCTION"  # noqa: S105 - Dev fallback only
ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "60"))

# Platform cut of every settled payment
COMMISSION_RATE = Decimal(os.getenv("COMMISSION_RATE", "0.15"))

# Booking rules
MIN_DESCRIPTION_LENGTH = int(os.getenv("MIN_DESCRIPTION_LENGTH", "10"))

# Provider discovery
SEARCH_PAGE_SIZE = int(os.getenv("SEARCH_PAGE_SIZE", "10"))
MAP_DEFAULT_RADIUS_KM = float(os.getenv("MAP_DEFAULT_RADIUS_KM", "50"))
MAP_CANDIDATE_LIMIT = int(os.getenv("MAP_CANDIDATE_LIMIT", "500"))
MAP_RESULT_LIMIT = int(os.getenv("MAP_RESULT_LIMIT", "100"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
