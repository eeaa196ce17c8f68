"""
Mitr Configuration System
=========================

This file contains ALL configuration for the Mitr therapeutic pipeline.
- User settings at the top (things deployments might want to change)
- Internal constants at the bottom (technical defaults)

Everything here is process-wide and read once at startup.
"""
import os
from dataclasses import dataclass
from typing import Optional


# =============================================================================
# USER SETTINGS - Edit these to customize Mitr's behavior
# =============================================================================

# REQUIRED: Set your Google Cloud project
GOOGLE_CLOUD_PROJECT = "your-project-id"  # Change this!
GOOGLE_APPLICATION_CREDENTIALS = None  # Optional: path to credentials JSON

# Model settings
VERTEX_LOCATION = "us-central1"
MODEL_NAME = "gemini-2.5-flash"
IMAGE_MODEL_NAME = "gemini-2.0-flash-preview-image-generation"
TEMPERATURE = 0.7
STREAM = False

# Run the real wearables analysis inside the comprehensive flow.
# Off by default: the comprehensive flow uses a static health summary to keep latency down.
ANALYZE_WEARABLES_IN_COMPREHENSIVE = False

# Server
API_HOST = "127.0.0.1"
API_PORT = 8000

# Logging
LOG_FILE = "./_mitr/mitr.log"
LOG_LEVEL = "INFO"


# =============================================================================
# INTERNAL CONSTANTS - Don't change these unless you know what you're doing
# =============================================================================

# LLM
LLM_TIMEOUT = 12
MAX_RETRIES = 1
MAX_OUTPUT_TOKENS = 2048
RETRY_BACKOFF_SECONDS = 0.5
AUTH_SCOPES = ["https://www.googleapis.com/auth/cloud-platform"]

# Conversation windows
INTENT_HISTORY_WINDOW = 5
SAFETY_HISTORY_WINDOW = 3
FAST_HISTORY_WINDOW = 3

# Knowledge base
KNOWLEDGE_TOP_N = 5

# Multimodal fusion reliability weights (applied by the model, stated in the prompt)
MODALITY_WEIGHTS = {
    "facial": 0.40,
    "voice": 0.35,
    "text": 0.25,
}

# Caches
CACHE_EXPIRY_SECONDS = 24 * 60 * 60

# Metrics
METRICS_HISTORY = 100

# Crisis screen thresholds (score -> risk floor)
CRISIS_CRITICAL_THRESHOLD = 0.85
CRISIS_HIGH_THRESHOLD = 0.7
CRISIS_MEDIUM_THRESHOLD = 0.5

CRISIS_RESOURCES = [
    "988 Suicide & Crisis Lifeline (call or text 988)",
    "Crisis Text Line (text HOME to 741741)",
    "If you are in immediate danger, call your local emergency number",
]


# =============================================================================
# MAIN CONFIG OBJECT
# =============================================================================

def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class Config:
    """Main configuration object."""
    google_cloud_project: str
    google_application_credentials: Optional[str] = None
    vertex_location: str = VERTEX_LOCATION
    model_name: str = MODEL_NAME
    image_model_name: str = IMAGE_MODEL_NAME
    llm_timeout: int = LLM_TIMEOUT
    max_retries: int = MAX_RETRIES
    temperature: float = TEMPERATURE
    max_output_tokens: int = MAX_OUTPUT_TOKENS
    stream: bool = STREAM
    analyze_wearables: bool = ANALYZE_WEARABLES_IN_COMPREHENSIVE
    api_host: str = API_HOST
    api_port: int = API_PORT
    log_file: str = LOG_FILE
    log_level: str = LOG_LEVEL


def get_config() -> Config:
    """Load configuration, letting environment variables override the constants above."""
    project = os.getenv("GOOGLE_CLOUD_PROJECT") or GOOGLE_CLOUD_PROJECT
    credentials = os.getenv("GOOGLE_APPLICATION_CREDENTIALS") or GOOGLE_APPLICATION_CREDENTIALS

    if project == "your-project-id":
        raise ValueError("Please set GOOGLE_CLOUD_PROJECT in config.py or as environment variable")

    return Config(
        google_cloud_project=project,
        google_application_credentials=credentials,
        vertex_location=os.getenv("VERTEX_LOCATION", VERTEX_LOCATION),
        model_name=os.getenv("MITR_MODEL_NAME", MODEL_NAME),
        image_model_name=os.getenv("MITR_IMAGE_MODEL_NAME", IMAGE_MODEL_NAME),
        llm_timeout=int(os.getenv("MITR_LLM_TIMEOUT", LLM_TIMEOUT)),
        max_retries=int(os.getenv("MITR_MAX_RETRIES", MAX_RETRIES)),
        temperature=float(os.getenv("MITR_TEMPERATURE", TEMPERATURE)),
        max_output_tokens=int(os.getenv("MITR_MAX_OUTPUT_TOKENS", MAX_OUTPUT_TOKENS)),
        stream=_env_bool("MITR_STREAM", STREAM),
        analyze_wearables=_env_bool("MITR_ANALYZE_WEARABLES", ANALYZE_WEARABLES_IN_COMPREHENSIVE),
        api_host=os.getenv("MITR_API_HOST", API_HOST),
        api_port=int(os.getenv("MITR_API_PORT", API_PORT)),
        log_file=os.getenv("MITR_LOG_FILE", LOG_FILE),
        log_level=os.getenv("MITR_LOG_LEVEL", LOG_LEVEL),
    )
