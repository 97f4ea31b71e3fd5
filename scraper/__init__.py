# Reel Batch - Scraper Module
# Instagram Reels, TikTok and YouTube Shorts via yt-dlp, ffmpeg and Whisper

from .core import (
    validate_url,
    download_video,
    extract_audio,
    transcribe_audio,
    DownloadError,
    TranscriptionError,
    WHISPER_AVAILABLE,
)
