# src/config.py

import os
import json
import logging
from pathlib import Path

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

# --- Configuration Files ---
CONFIG_PATH = Path(os.getenv("SEGMENT_CONFIG_PATH", "config.json"))
LEGACY_API_KEYS_PATH = Path("config/apiKeys.json")

DEFAULT_PROMPTS_DIR = Path(__file__).resolve().parent / "pipelines" / "segmentExtraction" / "prompts"

_DEFAULTS = {
    "paths": {
        "outputs_dir": "data/outputs",
        "prompts_dir": str(DEFAULT_PROMPTS_DIR),
    },
    "api_keys": {},
    "gemini": {
        "model": "gemini-2.5-flash",
        "location": "us-central1",
        "project": None,
        "max_retries": 3,
        "retry_min_wait": 4,
        "retry_max_wait": 30,
    },
    "segment_extraction": {
        "workers": 4,
        "default_content_type": "movie",
    },
    "telemetry": {
        "service_name": "media-segment-extraction",
        "otlp_endpoint": None,
    },
}


def _load_config() -> dict:
    """Load configuration from config.json or fall back to defaults."""
    if CONFIG_PATH.exists():
        logger.info(f"[CONFIG] Loading from {CONFIG_PATH}")
        with open(CONFIG_PATH, "r") as f:
            return json.load(f)

    logger.info(f"[CONFIG] {CONFIG_PATH} not found, using defaults")
    return _DEFAULTS


def _setup_api_keys(config_data: dict):
    """Load API keys into environment variables."""
    api_keys = config_data.get("api_keys", {})

    for key, value in api_keys.items():
        if not key.startswith("_"):  # Skip comment fields
            os.environ[key] = str(value)

    # Also try legacy apiKeys.json for backward compatibility
    if LEGACY_API_KEYS_PATH.exists():
        with open(LEGACY_API_KEYS_PATH, "r") as f:
            legacy_keys = json.load(f)
            for key, value in legacy_keys.items():
                if key not in os.environ:  # Don't override config.json
                    os.environ[key] = str(value)


def _section(name: str) -> dict:
    merged = dict(_DEFAULTS.get(name, {}))
    merged.update(_config.get(name, {}) or {})
    return merged


# --- Load Configuration ---
load_dotenv()
_config = _load_config()
_setup_api_keys(_config)

# --- Path Settings ---
_paths = _section("paths")
OUTPUTS_DIR = Path(_paths["outputs_dir"])
PROMPTS_DIR = Path(_paths["prompts_dir"])

# --- Gemini Settings ---
_gemini = _section("gemini")
GEMINI_MODEL = os.getenv("GEMINI_MODEL", _gemini["model"])
GEMINI_LOCATION = os.getenv("GOOGLE_CLOUD_LOCATION", _gemini["location"])
GEMINI_PROJECT = os.getenv("GOOGLE_CLOUD_PROJECT", _gemini["project"])
GEMINI_MAX_RETRIES = int(_gemini["max_retries"])
GEMINI_RETRY_MIN_WAIT = float(_gemini["retry_min_wait"])
GEMINI_RETRY_MAX_WAIT = float(_gemini["retry_max_wait"])

# --- Segment Extraction Settings ---
_extraction = _section("segment_extraction")
SEGMENT_WORKERS = max(1, int(os.getenv("SEGMENT_WORKERS", _extraction["workers"])))
DEFAULT_CONTENT_TYPE = _extraction["default_content_type"]

# --- Telemetry Settings ---
_telemetry = _section("telemetry")
OTEL_SERVICE_NAME = _telemetry["service_name"]
OTEL_EXPORTER_ENDPOINT = os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT", _telemetry["otlp_endpoint"])


def ensure_local_directories():
    """Create local output directories."""
    OUTPUTS_DIR.mkdir(parents=True, exist_ok=True)
    logger.info(f"[CONFIG] Local directories ready: {OUTPUTS_DIR}")
