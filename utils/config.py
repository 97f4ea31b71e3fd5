"""
Reel Batch - Configuration
Environment-driven settings, loaded once and passed explicitly
"""

import os
from dataclasses import dataclass, asdict
from pathlib import Path
from typing import Optional, Mapping


DEFAULTS = {
    'OUTPUT_DIR': './output',
    'DOWNLOAD_DIR': './output/downloads',
    'WHISPER_MODEL': 'base',  # tiny, base, small, medium, large
    'MAX_CONCURRENT_DOWNLOADS': '3',
    'LOG_LEVEL': 'info',  # debug, info, warn, error
    'STAGE_TIMEOUT': '300',
    'STAGE_RETRIES': '0',
    'ANTHROPIC_MODEL': 'claude-3-haiku-20240307',
    'OLLAMA_MODEL': 'llama3.2',
}

WHISPER_MODELS = ('tiny', 'base', 'small', 'medium', 'large')


class ConfigError(ValueError):
    """Invalid configuration value"""


@dataclass
class AppConfig:
    """Settings shared by the batch pool and its collaborators."""
    version: str = "1.0.0"

    # API keys
    anthropic_api_key: Optional[str] = None
    openai_api_key: Optional[str] = None

    # Directories
    output_dir: str = DEFAULTS['OUTPUT_DIR']
    download_dir: str = DEFAULTS['DOWNLOAD_DIR']

    # Transcription
    whisper_model: str = DEFAULTS['WHISPER_MODEL']

    # Processing
    max_concurrent_downloads: int = 3
    stage_timeout: int = 300  # seconds, per subprocess / HTTP call
    stage_retries: int = 0

    # LLM
    anthropic_model: str = DEFAULTS['ANTHROPIC_MODEL']
    ollama_model: str = DEFAULTS['OLLAMA_MODEL']

    log_level: str = DEFAULTS['LOG_LEVEL']

    @property
    def batch_output_dir(self) -> Path:
        return Path(self.output_dir) / 'batch-results'

    def masked(self) -> dict:
        """Config as a dict with API keys shortened for display"""
        data = asdict(self)
        for key in ('anthropic_api_key', 'openai_api_key'):
            value = data.get(key)
            data[key] = f"{value[:10]}..." if value else 'NOT SET'
        return data


def _get_int(env: Mapping[str, str], key: str, minimum: int) -> int:
    raw = env.get(key) or DEFAULTS[key]
    try:
        value = int(raw)
    except (TypeError, ValueError):
        raise ConfigError(f"{key} must be an integer, got {raw!r}")
    if value < minimum:
        raise ConfigError(f"{key} must be >= {minimum}, got {value}")
    return value


def load_config(env: Optional[Mapping[str, str]] = None) -> AppConfig:
    """
    Build an AppConfig from environment variables.

    Args:
        env: Mapping to read instead of os.environ (used by tests)

    Raises:
        ConfigError: If a numeric setting is malformed
    """
    env = os.environ if env is None else env

    def get(key: str) -> str:
        return env.get(key) or DEFAULTS[key]

    whisper_model = get('WHISPER_MODEL')
    if whisper_model not in WHISPER_MODELS:
        raise ConfigError(f"WHISPER_MODEL must be one of {WHISPER_MODELS}, got {whisper_model!r}")

    return AppConfig(
        anthropic_api_key=env.get('ANTHROPIC_API_KEY') or None,
        openai_api_key=env.get('OPENAI_API_KEY') or None,
        output_dir=get('OUTPUT_DIR'),
        download_dir=get('DOWNLOAD_DIR'),
        whisper_model=whisper_model,
        max_concurrent_downloads=_get_int(env, 'MAX_CONCURRENT_DOWNLOADS', 1),
        stage_timeout=_get_int(env, 'STAGE_TIMEOUT', 1),
        stage_retries=_get_int(env, 'STAGE_RETRIES', 0),
        anthropic_model=get('ANTHROPIC_MODEL'),
        ollama_model=get('OLLAMA_MODEL'),
        log_level=get('LOG_LEVEL'),
    )
