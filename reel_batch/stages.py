"""
Pipeline stage wiring.

PipelineStages bundles the collaborators the worker pool calls for each
item. Tests pass fakes; the CLI uses build_default_stages().
"""

import functools
from dataclasses import dataclass
from typing import Any, Callable, Optional

from .analyzer import analyze_structure
from .llm_client import build_provider_chain
from .models import ReelMetadata, Transcript


@dataclass
class PipelineStages:
    """
    Collaborators for one item's pipeline.

    download:      url -> ReelMetadata (needs file_path and video_id)
    extract_audio: video path -> audio path; None transcribes the video directly
    transcribe:    audio path -> Transcript
    analyze:       Transcript -> analysis dict
    """
    download: Callable[[str], ReelMetadata]
    transcribe: Callable[[str], Transcript]
    analyze: Callable[[Transcript], Any]
    extract_audio: Optional[Callable[[str], str]] = None


def build_default_stages(config, llm=None) -> PipelineStages:
    """
    yt-dlp download, ffmpeg audio, Whisper transcription, LLM analysis.

    Args:
        config: utils.config.AppConfig
        llm: Optional LLM client/chain; defaults to build_provider_chain(config)
    """
    # scraper.core imports reel_batch.models, so import it lazily here
    from scraper.core import download_video, extract_audio, transcribe_audio

    llm = llm or build_provider_chain(config)

    return PipelineStages(
        download=functools.partial(
            download_video,
            download_dir=config.download_dir,
            timeout=config.stage_timeout
        ),
        extract_audio=functools.partial(extract_audio, timeout=config.stage_timeout),
        transcribe=functools.partial(
            transcribe_audio,
            openai_api_key=config.openai_api_key,
            whisper_model=config.whisper_model,
            timeout=config.stage_timeout
        ),
        analyze=functools.partial(analyze_structure, llm=llm),
    )
