"""
Reel Batch - Download and Transcription
Short-form video download (yt-dlp), audio extraction (ffmpeg) and
transcription (OpenAI Whisper API or local Whisper)
"""

import json
import os
import re
import subprocess
import threading
from pathlib import Path
from typing import Optional
from urllib.parse import urlparse

import requests

from reel_batch.models import ReelMetadata, Transcript, TranscriptSegment
from utils.logger import get_logger
from utils.retry import first_success, FallbackError

# Optional: Whisper for local transcription
try:
    import whisper
    WHISPER_AVAILABLE = True
except ImportError:
    WHISPER_AVAILABLE = False

logger = get_logger()

OPENAI_TRANSCRIPTION_URL = "https://api.openai.com/v1/audio/transcriptions"
VIDEO_EXTENSIONS = re.compile(r'\.(mp4|mov|webm|mkv)$', re.IGNORECASE)
YT_DLP_FORMAT = 'bestvideo[ext=mp4]+bestaudio[ext=m4a]/best[ext=mp4]/best'


class DownloadError(Exception):
    """Video could not be downloaded"""


class TranscriptionError(Exception):
    """Audio could not be extracted or transcribed"""


class TranscriptionFailedError(FallbackError, TranscriptionError):
    """Every transcription backend failed"""


# =============================================================================
# URL VALIDATION
# =============================================================================

def validate_url(url):
    """Return the platform for a supported short-form video URL, else None"""
    try:
        parsed = urlparse(url)
    except (TypeError, ValueError):
        return None

    if parsed.scheme not in ('http', 'https'):
        return None

    hostname = (parsed.hostname or '').lower()
    path = parsed.path

    if hostname.endswith('instagram.com'):
        if '/reel/' in path or '/reels/' in path or '/p/' in path:
            return 'instagram'
        return None

    if hostname.endswith('tiktok.com'):
        return 'tiktok'

    if hostname.endswith('youtube.com'):
        return 'youtube' if '/shorts/' in path else None

    if hostname.endswith('youtu.be'):
        return 'youtube'

    return None


# =============================================================================
# DOWNLOAD
# =============================================================================

def _parse_yt_dlp_output(stdout):
    """Find the metadata JSON line in yt-dlp --print-json output"""
    for line in stdout.strip().splitlines():
        line = line.strip()
        if not line.startswith('{'):
            continue
        try:
            parsed = json.loads(line)
        except json.JSONDecodeError:
            continue
        if parsed.get('id') and parsed.get('title'):
            return parsed
    return None


def download_video(url, download_dir, timeout=300):
    """
    Download a video with yt-dlp.

    Returns:
        ReelMetadata with the local file path

    Raises:
        DownloadError: On unsupported URL, missing yt-dlp, non-zero exit,
            or unparseable output
    """
    platform = validate_url(url)
    if not platform:
        raise DownloadError(f"Invalid or unsupported URL: {url}")

    download_dir = Path(download_dir)
    download_dir.mkdir(parents=True, exist_ok=True)
    output_template = str(download_dir / '%(title)s [%(id)s].%(ext)s')

    logger.debug("DOWNLOAD", f"yt-dlp {url}")
    try:
        result = subprocess.run([
            'yt-dlp',
            url,
            '-o', output_template,
            '--no-playlist',
            '--print-json',
            '--no-simulate',
            '--no-warnings',
            '-f', YT_DLP_FORMAT
        ], capture_output=True, text=True, timeout=timeout)
    except FileNotFoundError:
        raise DownloadError("yt-dlp executable not found in PATH. Please install yt-dlp.")
    except subprocess.TimeoutExpired:
        raise DownloadError(f"yt-dlp timed out after {timeout}s")

    if result.returncode != 0:
        logger.debug("DOWNLOAD", f"yt-dlp stderr: {result.stderr.strip()[:500]}")
        raise DownloadError(f"yt-dlp process exited with code {result.returncode}")

    info = _parse_yt_dlp_output(result.stdout)
    if not info:
        raise DownloadError("Could not parse yt-dlp output metadata")

    file_path = info.get('_filename') or info.get('filename')
    if not file_path:
        raise DownloadError(f"yt-dlp did not report a file for {url}")

    return ReelMetadata(
        url=url,
        platform=platform,
        video_id=str(info['id']),
        file_path=file_path,
        title=info.get('title'),
        author=info.get('uploader'),
        duration=info.get('duration'),
    )


# =============================================================================
# AUDIO
# =============================================================================

def extract_audio(video_path, timeout=300):
    """Extract an mp3 track next to the video. Returns the audio path."""
    if not os.path.exists(video_path):
        raise TranscriptionError(f"Video file not found: {video_path}")

    audio_path = VIDEO_EXTENSIONS.sub('.mp3', str(video_path))
    if audio_path == str(video_path):
        audio_path = f"{video_path}.mp3"

    if os.path.exists(audio_path):
        return audio_path

    try:
        result = subprocess.run([
            'ffmpeg',
            '-i', str(video_path),
            '-vn',
            '-acodec', 'libmp3lame',
            '-q:a', '4',
            '-y',
            audio_path
        ], capture_output=True, text=True, timeout=timeout)
    except FileNotFoundError:
        raise TranscriptionError("ffmpeg not found. Please install ffmpeg to extract audio.")
    except subprocess.TimeoutExpired:
        raise TranscriptionError(f"ffmpeg timed out after {timeout}s")

    if result.returncode != 0:
        raise TranscriptionError(f"ffmpeg exited with code {result.returncode}: {result.stderr.strip()[-300:]}")

    return audio_path


# =============================================================================
# TRANSCRIPTION
# =============================================================================

def _segments_from(raw_segments):
    return [
        TranscriptSegment(
            start=float(seg.get('start', 0)),
            end=float(seg.get('end', 0)),
            text=str(seg.get('text', '')).strip()
        )
        for seg in raw_segments or []
    ]


def transcribe_audio_openai(audio_path, api_key, timeout=300):
    """Transcribe using the OpenAI Whisper API with segment timestamps"""
    with open(audio_path, 'rb') as audio_file:
        response = requests.post(
            OPENAI_TRANSCRIPTION_URL,
            headers={'Authorization': f'Bearer {api_key}'},
            files={'file': (os.path.basename(audio_path), audio_file, 'audio/mpeg')},
            data={
                'model': 'whisper-1',
                'response_format': 'verbose_json',
                'timestamp_granularities[]': 'segment'
            },
            timeout=timeout
        )
    response.raise_for_status()
    data = response.json()

    segments = _segments_from(data.get('segments'))
    duration = data.get('duration')
    if duration is None:
        duration = segments[-1].end if segments else 0.0

    return Transcript(
        segments=segments,
        full_text=(data.get('text') or '').strip(),
        language=data.get('language'),
        duration=float(duration)
    )


_whisper_models = {}
# Guards loading and inference; one model instance is shared by all workers
_whisper_lock = threading.Lock()


def load_whisper_model(model_name='base'):
    """Load (and memoize) a local Whisper model"""
    if not WHISPER_AVAILABLE:
        raise TranscriptionError("Local whisper not installed. Install with: pip install openai-whisper")
    with _whisper_lock:
        if model_name not in _whisper_models:
            logger.info("TRANSCRIBE", f"Loading Whisper model ({model_name})...")
            _whisper_models[model_name] = whisper.load_model(model_name)
        return _whisper_models[model_name]


def transcribe_audio_local(audio_path, model_name='base'):
    """Transcribe using a local Whisper model"""
    model = load_whisper_model(model_name)
    with _whisper_lock:
        result = model.transcribe(str(audio_path))

    segments = _segments_from(result.get('segments'))
    full_text = ' '.join(s.text for s in segments) if segments else result.get('text', '').strip()

    return Transcript(
        segments=segments,
        full_text=full_text,
        language=result.get('language'),
        duration=segments[-1].end if segments else 0.0
    )


def transcribe_audio(audio_path, openai_api_key=None, whisper_model='base', timeout=300):
    """
    Transcribe audio, trying the OpenAI API first and local Whisper second.

    Raises:
        TranscriptionError: If the file is missing or every backend fails
    """
    if not os.path.exists(audio_path):
        raise TranscriptionError(f"Audio file not found: {audio_path}")

    backends = []
    if openai_api_key:
        backends.append(('openai', lambda: transcribe_audio_openai(audio_path, openai_api_key, timeout)))
    backends.append(('local', lambda: transcribe_audio_local(audio_path, whisper_model)))

    return first_success(
        backends,
        label="transcription",
        category="TRANSCRIBE",
        error_cls=TranscriptionFailedError
    )
