"""
Tests for transcript structural analysis.
Run: python -m pytest reel_batch/test_analyzer.py
"""

import pytest

from reel_batch.analyzer import (
    AnalysisError,
    SYSTEM_PROMPT,
    analyze_structure,
    build_analysis_prompt,
    normalize_analysis,
    parse_json_from_llm,
)
from reel_batch.models import Transcript, TranscriptSegment


class FakeLLM:
    def __init__(self, reply):
        self.reply = reply
        self.calls = []

    def chat(self, user_prompt, system_prompt=None, temperature=0.0):
        self.calls.append((user_prompt, system_prompt, temperature))
        return self.reply


def sample_transcript():
    return Transcript(
        segments=[
            TranscriptSegment(0.0, 2.0, 'Stop scrolling!'),
            TranscriptSegment(2.0, 10.0, 'Here are three tips.'),
            TranscriptSegment(10.0, 12.0, 'Follow for more.'),
        ],
        full_text='Stop scrolling! Here are three tips. Follow for more.',
        language='en',
        duration=12.0
    )


def test_parse_plain_json():
    assert parse_json_from_llm('{"hook_type": "shock"}') == {'hook_type': 'shock'}


def test_parse_code_fenced_json_with_chatter():
    reply = 'Sure! Here is the analysis:\n```json\n{"hook_type": "list", "summary": "Tips"}\n```\nHope it helps.'
    assert parse_json_from_llm(reply) == {'hook_type': 'list', 'summary': 'Tips'}


def test_parse_removes_trailing_commas():
    reply = '{"engagement_hooks": ["a", "b",], "summary": "x",}'
    assert parse_json_from_llm(reply) == {'engagement_hooks': ['a', 'b'], 'summary': 'x'}


@pytest.mark.parametrize('reply', ['', 'no json here', '{"broken": }', '[1, 2]'])
def test_parse_rejects_malformed_reply(reply):
    with pytest.raises(AnalysisError):
        parse_json_from_llm(reply)


def test_normalize_fills_defaults():
    analysis = normalize_analysis({}, 12.0)

    assert analysis['hook_time'] == 3
    assert analysis['hook_type'] == 'other'
    assert analysis['cta_type'] == 'none'
    assert analysis['sections'] == []
    assert analysis['editing_style'] == {
        'cut_frequency': 'medium', 'text_overlay': False, 'transition_effects': []
    }
    assert analysis['audio_style']['has_voiceover'] is True
    assert analysis['total_duration'] == 12.0
    assert analysis['summary'] == ''


def test_normalize_rejects_unknown_enum_values():
    analysis = normalize_analysis({'hook_type': 'clickbait', 'cta_type': 'buy', 'hook_time': -1}, 5.0)

    assert analysis['hook_type'] == 'other'
    assert analysis['cta_type'] == 'none'
    assert analysis['hook_time'] == 3


def test_normalize_keeps_valid_values():
    analysis = normalize_analysis({
        'hook_time': 2.5,
        'hook_type': 'question',
        'hook_text': 'Did you know?',
        'cta_type': 'follow',
        'cta_text': 'Follow for more',
        'editing_style': {'cut_frequency': 'high', 'text_overlay': True, 'transition_effects': ['zoom']},
        'audio_style': {'has_voiceover': False, 'sound_type': 'music'},
        'engagement_hooks': ['three tips'],
    }, 12.0)

    assert analysis['hook_time'] == 2.5
    assert analysis['hook_type'] == 'question'
    assert analysis['cta_type'] == 'follow'
    assert analysis['editing_style']['cut_frequency'] == 'high'
    assert analysis['editing_style']['transition_effects'] == ['zoom']
    assert analysis['audio_style']['has_voiceover'] is False
    assert analysis['audio_style']['sound_type'] == 'music'


def test_prompt_includes_transcript_and_duration():
    prompt = build_analysis_prompt(sample_transcript())

    assert 'Stop scrolling! Here are three tips. Follow for more.' in prompt
    assert 'Total duration: 12.0 seconds' in prompt
    assert '"text": "Follow for more."' in prompt


def test_analyze_structure_calls_llm_and_normalizes():
    llm = FakeLLM('```json\n{"hook_type": "shock", "cta_type": "follow", "summary": "Three tips"}\n```')
    analysis = analyze_structure(sample_transcript(), llm)

    assert analysis['hook_type'] == 'shock'
    assert analysis['cta_type'] == 'follow'
    assert analysis['total_duration'] == 12.0
    assert len(llm.calls) == 1
    assert llm.calls[0][1] == SYSTEM_PROMPT
    assert llm.calls[0][2] == 0.0


def test_silent_reel_is_still_analyzed():
    llm = FakeLLM('{"hook_type": "shock", "audio_style": {"has_voiceover": false, "has_trending_sound": true}}')
    analysis = analyze_structure(Transcript(full_text='', duration=12.0), llm)

    assert len(llm.calls) == 1
    assert 'Total duration: 12.0 seconds' in llm.calls[0][0]
    assert analysis['audio_style']['has_voiceover'] is False
    assert analysis['audio_style']['has_trending_sound'] is True
    assert analysis['total_duration'] == 12.0


def test_analyze_structure_propagates_malformed_reply():
    with pytest.raises(AnalysisError):
        analyze_structure(sample_transcript(), FakeLLM('I cannot analyze this video.'))
