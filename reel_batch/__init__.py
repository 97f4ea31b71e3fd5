"""
Reel Batch - concurrent download, transcription and structural analysis
of short-form videos.

Usage:
    from reel_batch import build_default_stages, process_batch
    from utils.config import load_config

    config = load_config()
    result = process_batch(
        ['https://www.tiktok.com/@creator/video/123'],
        build_default_stages(config),
        config=config
    )

    print(result.successful, result.failed, result.summary_path)
"""

from .models import (
    ItemStatus,
    WorkItem,
    BatchResult,
    ReelMetadata,
    Transcript,
    TranscriptSegment,
)
from .pool import (
    BatchWorkerPool,
    BatchError,
    EmptyInputError,
    BatchFileNotFoundError,
    OutputDirectoryError,
    process_batch,
    process_batch_file,
    read_batch_file,
)
from .stages import PipelineStages, build_default_stages
from .analyzer import analyze_structure, AnalysisError
from .llm_client import LLMClient, ProviderChain, get_available_providers

__all__ = [
    # Batch processing
    'BatchWorkerPool',
    'process_batch',
    'process_batch_file',
    'read_batch_file',
    'PipelineStages',
    'build_default_stages',

    # Models
    'ItemStatus',
    'WorkItem',
    'BatchResult',
    'ReelMetadata',
    'Transcript',
    'TranscriptSegment',

    # Errors
    'BatchError',
    'EmptyInputError',
    'BatchFileNotFoundError',
    'OutputDirectoryError',
    'AnalysisError',

    # Analysis
    'analyze_structure',
    'LLMClient',
    'ProviderChain',
    'get_available_providers',
]
