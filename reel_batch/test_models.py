"""Tests for model serialization"""

import json
from datetime import datetime

from reel_batch.models import (
    BatchResult,
    ItemStatus,
    ReelMetadata,
    Transcript,
    TranscriptSegment,
    WorkItem,
)


def test_reel_metadata_to_dict():
    meta = ReelMetadata(
        url='https://youtu.be/abc', platform='youtube', video_id='abc',
        file_path='/tmp/abc.mp4', downloaded_at=datetime(2024, 5, 1, 12, 0, 0)
    )
    data = meta.to_dict()

    assert data['downloaded_at'] == '2024-05-01T12:00:00'
    assert data['video_id'] == 'abc'
    assert data['title'] is None


def test_transcript_to_dict_nests_segments():
    transcript = Transcript(segments=[TranscriptSegment(0.0, 1.5, 'Hi')], full_text='Hi', duration=1.5)

    assert transcript.to_dict() == {
        'segments': [{'start': 0.0, 'end': 1.5, 'text': 'Hi'}],
        'full_text': 'Hi',
        'language': None,
        'duration': 1.5,
    }


def test_batch_result_serializes_to_json():
    started = datetime(2024, 5, 1, 12, 0, 0)
    item = WorkItem(url='https://youtu.be/abc', status=ItemStatus.FAILED, error='boom')
    result = BatchResult(
        batch_id='batch_1234abcd', items=[item], started_at=started,
        failed=1, completed_at=datetime(2024, 5, 1, 12, 0, 30)
    )

    data = json.loads(json.dumps(result.to_dict()))

    assert data['items'][0]['status'] == 'failed'
    assert data['items'][0]['error'] == 'boom'
    assert data['started_at'] == '2024-05-01T12:00:00'
    assert result.duration_seconds == 30.0
    assert result.failed_items() == [item]


def test_terminal_statuses():
    assert ItemStatus.COMPLETED.is_terminal
    assert ItemStatus.FAILED.is_terminal
    assert not ItemStatus.ANALYZING.is_terminal
