"""Configuration management for the location engine."""
import os
from pathlib import Path
from typing import Optional
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# Base paths
PROJECT_ROOT = Path(__file__).parent.parent.parent
DATA_DIR = Path(os.getenv("DATA_DIR", PROJECT_ROOT / "data"))
DUCKDB_PATH = Path(os.getenv("DATABASE_PATH", DATA_DIR / "duckdb" / "locator.duckdb"))

# Search settings
DEFAULT_LIMIT: int = int(os.getenv("DEFAULT_LIMIT", "10"))
AUTOCOMPLETE_LIMIT: int = int(os.getenv("AUTOCOMPLETE_LIMIT", "30"))
SEARCH_LANGUAGE: str = os.getenv("SEARCH_LANGUAGE", "english")  # snowball stemmer language
DEFAULT_ISO_LANGUAGE: str = os.getenv("DEFAULT_ISO_LANGUAGE", "en")

# Relevance loses one point per 100 meters of effective distance
DISTANCE_PENALTY_FACTOR: float = 0.01

# Admin hierarchy settings
ADMIN_RADIUS_METERS: int = int(os.getenv("ADMIN_RADIUS_METERS", "20000"))

# Store settings
_timeout = os.getenv("QUERY_TIMEOUT_SECONDS")
QUERY_TIMEOUT_SECONDS: Optional[float] = float(_timeout) if _timeout else None

LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

# Feature classes accepted in filters
FEATURE_CLASSES = ("A", "H", "L", "P", "R", "S", "T", "U", "V")
