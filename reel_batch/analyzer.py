"""
Structural analysis of a single reel transcript.

Sends the transcript to the LLM (or provider chain), pulls the JSON object
out of the reply and fills defaults for anything the model left out.
"""

import json
import re
from typing import Any, Optional

from .models import Transcript
from utils.logger import get_logger

logger = get_logger()


HOOK_TYPES = ('question', 'shock', 'empathy', 'list', 'promise', 'story', 'other')
CTA_TYPES = ('follow', 'like', 'comment', 'save', 'share', 'link', 'none')
CUT_FREQUENCIES = ('low', 'medium', 'high')

MAX_PROMPT_SEGMENTS = 50

SYSTEM_PROMPT = (
    "You are an expert social media analyst specializing in short-form video content "
    "(Reels, TikTok, Shorts). Analyze the structure of a video transcript and reply with "
    "a structured JSON object. Output ONLY valid JSON, no other text."
)


class AnalysisError(Exception):
    """LLM reply could not be turned into an analysis"""


def build_analysis_prompt(transcript: Transcript) -> str:
    segments = [
        {'start': s.start, 'end': s.end, 'text': s.text}
        for s in transcript.segments[:MAX_PROMPT_SEGMENTS]
    ]
    return f"""Here is the transcript of a short-form video:

<transcript>
{transcript.full_text}
</transcript>

Timestamped segments (first {MAX_PROMPT_SEGMENTS} at most):
{json.dumps(segments, ensure_ascii=False)}

Total duration: {transcript.duration} seconds.

Reply with a JSON object with these fields:
- hook_time: duration of the hook in seconds
- hook_type: one of {list(HOOK_TYPES)}
- hook_text: exact text of the hook
- sections: list of {{name ('hook'|'body'|'cta'), start_time, end_time, content, purpose}}
- cta_type: one of {list(CTA_TYPES)}
- cta_text: the call to action text, if any
- summary: 1-2 sentence summary
- engagement_hooks: 2-3 phrases that keep viewers watching
- editing_style: {{cut_frequency ('low'|'medium'|'high'), text_overlay (bool), transition_effects (list)}}
- audio_style: {{has_voiceover, has_trending_sound, subtitle_dependent (bools), sound_type (string)}}
"""


def parse_json_from_llm(response: str) -> dict:
    """
    Extract a JSON object from raw LLM text.

    Handles markdown code fences, chatter around the object and
    trailing commas.

    Raises:
        AnalysisError: If no JSON object can be parsed
    """
    text = (response or '').strip()

    fence = re.search(r'```(?:json)?\s*([\s\S]*?)\s*```', text)
    if fence:
        text = fence.group(1).strip()

    match = re.search(r'\{[\s\S]*\}', text)
    if not match:
        raise AnalysisError(f"Invalid JSON received from LLM: no object found in {text[:80]!r}")
    text = match.group(0)

    text = re.sub(r',\s*([\]}])', r'\1', text)

    try:
        parsed = json.loads(text)
    except json.JSONDecodeError as e:
        logger.debug("ANALYZE", f"JSON parse failed: {e}. First 200 chars: {text[:200]}")
        raise AnalysisError(f"Invalid JSON received from LLM: {e}")

    if not isinstance(parsed, dict):
        raise AnalysisError("Invalid JSON received from LLM: expected an object")
    return parsed


def _pick(value: Any, allowed: tuple, default: str) -> str:
    return value if value in allowed else default


def _as_list(value: Any) -> list:
    return value if isinstance(value, list) else []


def normalize_analysis(parsed: dict, total_duration: float) -> dict:
    """Fill defaults so every analysis has the same shape."""
    editing = parsed.get('editing_style') if isinstance(parsed.get('editing_style'), dict) else {}
    audio = parsed.get('audio_style') if isinstance(parsed.get('audio_style'), dict) else {}

    hook_time = parsed.get('hook_time')
    if not isinstance(hook_time, (int, float)) or isinstance(hook_time, bool) or hook_time <= 0:
        hook_time = 3

    return {
        'hook_time': hook_time,
        'hook_type': _pick(parsed.get('hook_type'), HOOK_TYPES, 'other'),
        'hook_text': parsed.get('hook_text') or '',
        'sections': _as_list(parsed.get('sections')),
        'cta_type': _pick(parsed.get('cta_type'), CTA_TYPES, 'none'),
        'cta_text': parsed.get('cta_text'),
        'editing_style': {
            'cut_frequency': _pick(editing.get('cut_frequency'), CUT_FREQUENCIES, 'medium'),
            'text_overlay': bool(editing.get('text_overlay', False)),
            'transition_effects': _as_list(editing.get('transition_effects')),
        },
        'audio_style': {
            'has_voiceover': bool(audio.get('has_voiceover', True)),
            'has_trending_sound': bool(audio.get('has_trending_sound', False)),
            'subtitle_dependent': bool(audio.get('subtitle_dependent', False)),
            'sound_type': audio.get('sound_type'),
        },
        'total_duration': total_duration,
        'engagement_hooks': _as_list(parsed.get('engagement_hooks')),
        'summary': parsed.get('summary') or '',
    }


def analyze_structure(transcript: Transcript, llm, temperature: Optional[float] = 0.0) -> dict:
    """
    Analyze the hook/body/CTA structure of a transcript.

    Args:
        transcript: Transcript to analyze
        llm: Anything with chat(user_prompt, system_prompt=..., temperature=...)

    Raises:
        AnalysisError: On a malformed LLM reply
    """
    response = llm.chat(
        build_analysis_prompt(transcript),
        system_prompt=SYSTEM_PROMPT,
        temperature=temperature
    )
    return normalize_analysis(parse_json_from_llm(response), transcript.duration)
