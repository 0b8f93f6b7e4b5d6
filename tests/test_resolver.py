#!/usr/bin/env python3

import os
import sys

REPO_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if REPO_ROOT not in sys.path:
	sys.path.insert(0, REPO_ROOT)

from fakes import FakeProber
from montagelib.core import graph
from montagelib.core import models
from montagelib.core.resolver import DurationResolver

#============================================

def _video(path: str) -> models.MediaSegment:
	return models.MediaSegment(path, models.MediaKind.VIDEO)

#============================================

def _image(path: str, duration: float = 0.0) -> models.MediaSegment:
	return models.MediaSegment(path, models.MediaKind.IMAGE, duration)

#============================================

def test_trimmed_duration_policy() -> None:
	"""Unknown durations fall back; long clips are capped by the maximum."""
	prober = FakeProber(durations={'long.mp4': 40.0, 'short.mp4': 4.25})
	resolver = DurationResolver(prober)
	assert resolver.trimmed_duration('long.mp4', 10) == 10.0
	assert resolver.trimmed_duration('long.mp4', 0) == 40.0
	assert resolver.trimmed_duration('short.mp4', 10) == 4.25
	assert resolver.trimmed_duration('missing.mp4', 10) == 10.0
	assert resolver.trimmed_duration('missing.mp4', 0) == 1.0

#============================================

def test_resolve_duration_rejects_bad_text() -> None:
	prober = FakeProber(durations={'a.mp4': 'N/A', 'b.mp4': 'nan', 'c.mp4': ' 7.5\n'})
	resolver = DurationResolver(prober)
	assert resolver.resolve_duration('a.mp4') == 0.0
	assert resolver.resolve_duration('b.mp4') == 0.0
	assert resolver.resolve_duration('c.mp4') == 7.5

#============================================

def test_has_audio_stream_fails_closed() -> None:
	prober = FakeProber(audio={'talk.mp4': True})
	resolver = DurationResolver(prober)
	assert resolver.has_audio_stream('talk.mp4') is True
	assert resolver.has_audio_stream('mute.mp4') is False

#============================================

def test_media_duration_fallback() -> None:
	resolver = DurationResolver(FakeProber(durations={'song.mp3': 95.0}))
	assert resolver.media_duration('song.mp3') == 95.0
	assert resolver.media_duration('broken.mp3') == 1.0

#============================================

def test_resolve_timeline_fills_copy() -> None:
	"""The resolved timeline is a copy; the input keeps its zero durations."""
	prober = FakeProber(durations={'clip.mp4': 12.5}, audio={'clip.mp4': True})
	resolver = DurationResolver(prober)
	timeline = models.Timeline(name='demo', segments=[_video('clip.mp4'),
		_image('still.png', 0.2)])
	resolved = resolver.resolve_timeline(timeline)
	assert timeline.segments[0].duration == 0.0
	assert resolved.segments[0].duration == 12.5
	assert resolved.segments[0].has_audio is True
	assert resolved.segments[1].duration == models.MIN_ITEM_SECONDS
	assert resolved.segments[1].has_audio is False
	assert ('duration', 'still.png') not in prober.calls

#============================================

def test_slide_show_images_use_slide_duration() -> None:
	resolver = DurationResolver(FakeProber())
	timeline = models.Timeline(name='slides',
		project_type=models.ProjectType.SLIDE_SHOW,
		segments=[_image('a.png'), _image('b.png', 5.0)], slide_seconds=4.0)
	resolved = resolver.resolve_timeline(timeline)
	assert [segment.duration for segment in resolved.segments] == [4.0, 5.0]

#============================================

def test_audio_items_only_probed_without_track_audio() -> None:
	prober = FakeProber(durations={'clip.mp4': 6.0, 'song.mp3': 30.0})
	timeline = models.Timeline(name='music', segments=[_video('clip.mp4')],
		audio_items=[models.AudioItem('song.mp3')])
	DurationResolver(prober).resolve_timeline(timeline)
	assert ('duration', 'song.mp3') not in prober.calls
	timeline.use_track_audio = False
	prober = FakeProber(durations={'clip.mp4': 6.0, 'song.mp3': 30.0})
	resolved = DurationResolver(prober).resolve_timeline(timeline)
	assert ('duration', 'song.mp3') in prober.calls
	assert resolved.audio_items[0].duration == 30.0
	assert ('audio', 'clip.mp4') not in prober.calls

#============================================

def test_legacy_audio_path_becomes_audio_item() -> None:
	prober = FakeProber(durations={'clip.mp4': 6.0})
	timeline = models.Timeline(name='legacy', segments=[_video('clip.mp4')],
		audio_path='old.mp3', audio_duration=20.0, use_track_audio=False)
	resolved = DurationResolver(prober).resolve_timeline(timeline)
	assert resolved.audio_path is None
	assert len(resolved.audio_items) == 1
	assert resolved.audio_items[0].path == 'old.mp3'
	assert resolved.audio_items[0].duration == 20.0

#============================================

def test_concurrent_probing_matches_sequential() -> None:
	"""Worker count never changes results or their order."""
	durations = {f"clip{index}.mp4": 1.0 + index for index in range(12)}
	audio = {f"clip{index}.mp4": index % 2 == 0 for index in range(12)}
	segments = [_video(path) for path in sorted(durations)]
	timeline = models.Timeline(name='many', segments=segments, max_clip_seconds=8)
	sequential = DurationResolver(FakeProber(durations, audio)).resolve_timeline(timeline)
	concurrent = DurationResolver(FakeProber(durations, audio),
		max_workers=4).resolve_timeline(timeline)
	first = [(s.path, s.duration, s.has_audio) for s in sequential.segments]
	second = [(s.path, s.duration, s.has_audio) for s in concurrent.segments]
	assert first == second
	assert max(s.duration for s in concurrent.segments) == 8.0

#============================================

def test_absurd_duration_reading_is_unknown() -> None:
	"""An out-of-range duration reading falls back instead of breaking the graph."""
	prober = FakeProber(durations={'a.mp4': '1e30', 'b.mp4': '-3'})
	resolver = DurationResolver(prober)
	assert resolver.resolve_duration('a.mp4') == 0.0
	assert resolver.trimmed_duration('a.mp4', 0) == 1.0
	timeline = models.Timeline(name='huge', segments=[_video('a.mp4'), _video('b.mp4')])
	resolved = resolver.resolve_timeline(timeline)
	assert [segment.duration for segment in resolved.segments] == [1.0, 1.0]
	assert "trim=0:1," in graph.compile_timeline(resolved).filter_complex()
