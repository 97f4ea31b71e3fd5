"""
Trend tally across many analyzed reels.

Reads the analysis-<id>.json files a batch leaves behind and counts which
hooks, formats, CTAs and editing choices keep showing up.
"""

import json
import math
import time
from collections import Counter
from datetime import datetime
from pathlib import Path
from typing import Iterable

from .pool import write_json
from utils.logger import get_logger

logger = get_logger()

MAX_HOOK_EXAMPLES = 3
TOP_FORMATS = 3
TOP_CTAS = 3
TOP_TRANSITIONS = 5
CUT_SCORES = {'low': 1, 'medium': 2, 'high': 3}

FORMAT_DESCRIPTIONS = {
    'Short & Snappy': 'Under 15s videos focusing on quick impact',
    'Long-form Story': 'Over 45s videos with narrative depth',
    'Listicle/Tips': 'Educational content structured as a list',
    'Q&A / Engagement': 'Videos starting with a question to drive comments',
    'Standard Reel': 'General purpose reel format',
}


class TrendsError(Exception):
    """Analysis files could not be read"""


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


# =============================================================================
# LOADING
# =============================================================================

def _expand(paths: Iterable) -> list[Path]:
    files = []
    for raw in paths:
        path = Path(raw)
        if path.is_dir():
            files.extend(sorted(path.glob('analysis-*.json')))
        else:
            files.append(path)
    return files


def load_analyses(paths: Iterable) -> list[dict]:
    """
    Collect the 'analysis' object from each result file.

    Directories contribute every analysis-*.json inside them. Missing
    files and files without an analysis are skipped with a warning.

    Raises:
        TrendsError: If a file is not valid JSON
    """
    analyses = []
    for path in _expand(paths):
        if not path.is_file():
            logger.warning("TRENDS", f"Skipping {path}: file not found")
            continue
        try:
            content = json.loads(path.read_text(encoding='utf-8'))
        except json.JSONDecodeError as e:
            raise TrendsError(f"{path} is not valid JSON: {e}") from e

        analysis = content.get('analysis') if isinstance(content, dict) else None
        if not isinstance(analysis, dict):
            logger.warning("TRENDS", f"Skipping {path}: no analysis data found")
            continue
        analyses.append(analysis)
    return analyses


# =============================================================================
# TALLY
# =============================================================================

def _hook_patterns(analyses: list[dict]) -> list[dict]:
    counts = Counter()
    examples = {}
    for a in analyses:
        hook_type = a.get('hook_type') or 'other'
        counts[hook_type] += 1
        texts = examples.setdefault(hook_type, [])
        if len(texts) < MAX_HOOK_EXAMPLES and a.get('hook_text'):
            texts.append(a['hook_text'])
    return [
        {'type': hook_type, 'frequency': count, 'examples': examples[hook_type]}
        for hook_type, count in counts.most_common()
    ]


def _format_name(analysis: dict) -> str:
    duration = analysis.get('total_duration') or 0
    if duration <= 15:
        return 'Short & Snappy'
    if duration > 45:
        return 'Long-form Story'
    if analysis.get('hook_type') == 'list':
        return 'Listicle/Tips'
    if analysis.get('hook_type') == 'question':
        return 'Q&A / Engagement'
    return 'Standard Reel'


def _popular_formats(analyses: list[dict]) -> list[dict]:
    counts = Counter(_format_name(a) for a in analyses)
    return [
        {'name': name, 'description': FORMAT_DESCRIPTIONS[name], 'frequency': count}
        for name, count in counts.most_common(TOP_FORMATS)
    ]


def _common_ctas(analyses: list[dict]) -> list[str]:
    counts = Counter(a.get('cta_type') for a in analyses if a.get('cta_type') not in (None, 'none'))
    return [cta for cta, _ in counts.most_common(TOP_CTAS)]


def _editing_trends(analyses: list[dict]) -> dict:
    styles = [a.get('editing_style') or {} for a in analyses]

    score = sum(CUT_SCORES.get(s.get('cut_frequency'), 2) for s in styles) / len(styles)
    if score < 1.5:
        cut_frequency = 'low'
    elif score > 2.5:
        cut_frequency = 'high'
    else:
        cut_frequency = 'medium'

    overlays = sum(1 for s in styles if s.get('text_overlay'))
    transitions = Counter(t for s in styles for t in s.get('transition_effects') or [])

    return {
        'average_cut_frequency': cut_frequency,
        'text_overlay_usage': _round_half_up(overlays / len(styles) * 100),
        'popular_transitions': [t for t, _ in transitions.most_common(TOP_TRANSITIONS)],
    }


def analyze_trends(analyses: list[dict]) -> dict:
    """Tally hooks, formats, CTAs and editing style over many analyses."""
    if not analyses:
        patterns = {
            'hook_patterns': [],
            'popular_formats': [],
            'average_duration': 0,
            'common_ctas': [],
            'editing_trends': {
                'average_cut_frequency': 'medium',
                'text_overlay_usage': 0,
                'popular_transitions': [],
            },
        }
    else:
        durations = [float(a.get('total_duration') or 0) for a in analyses]
        patterns = {
            'hook_patterns': _hook_patterns(analyses),
            'popular_formats': _popular_formats(analyses),
            'average_duration': _round_half_up(sum(durations) / len(durations)),
            'common_ctas': _common_ctas(analyses),
            'editing_trends': _editing_trends(analyses),
        }

    return {
        'analyzed_count': len(analyses),
        'patterns': patterns,
        'analyzed_at': datetime.now().isoformat(),
    }


def save_trends(trends: dict, output_dir) -> Path:
    """Write trends-<epoch ms>.json into output_dir"""
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    path = output_dir / f"trends-{int(time.time() * 1000)}.json"
    write_json(path, trends)
    logger.info("TRENDS", f"Trend analysis of {trends['analyzed_count']} reels saved to {path}")
    return path
