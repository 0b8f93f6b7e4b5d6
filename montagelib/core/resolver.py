#!/usr/bin/env python3

import concurrent.futures
import functools
import math
from montagelib import medialib
from montagelib.core import models

#============================================

# probed values beyond this are garbage, roughly 31 years of media
MAX_PROBE_SECONDS = 1e9

#============================================

class DurationResolver():
	"""
	Fill segment and audio item durations by probing media files.

	Probe failures are never fatal: an unreadable duration is reported as 0
	and replaced by the fallback policy, an unreadable stream list counts as
	no audio.
	"""
	def __init__(self, prober=None, max_workers: int = 1):
		if prober is None:
			prober = medialib.FfprobeProber()
		self.prober = prober
		self.max_workers = max(1, int(max_workers))

	#============================
	def resolve_duration(self, path: str) -> float:
		text = self.prober.duration_text(path)
		if text is None:
			return 0.0
		try:
			duration = float(str(text).strip())
		except ValueError:
			return 0.0
		if math.isnan(duration) or math.isinf(duration):
			return 0.0
		if duration > MAX_PROBE_SECONDS:
			return 0.0
		return duration

	#============================
	def has_audio_stream(self, path: str) -> bool:
		text = self.prober.audio_stream_text(path)
		if text is None:
			return False
		return str(text).strip() != ''

	#============================
	def trimmed_duration(self, path: str, max_seconds: float) -> float:
		max_seconds = float(max_seconds or 0.0)
		duration = self.resolve_duration(path)
		if duration <= 0:
			return max(1.0, max_seconds)
		if max_seconds > 0 and duration > max_seconds:
			return max_seconds
		return duration

	#============================
	def media_duration(self, path: str) -> float:
		duration = self.resolve_duration(path)
		if duration > 0:
			return duration
		return 1.0

	#============================
	def resolve_timeline(self, timeline: models.Timeline) -> models.Timeline:
		"""
		Return a copy of the timeline with every duration filled in.
		"""
		resolved = timeline.copy()
		resolved.audio_items = resolved.audio_sequence()
		resolved.audio_path = None
		if resolved.project_type == models.ProjectType.SLIDE_SHOW:
			for segment in resolved.segments:
				if segment.is_image() and segment.duration <= 0:
					segment.duration = max(1.0, resolved.slide_seconds)
		jobs = []
		targets = []
		for segment in resolved.segments:
			if segment.is_image():
				segment.duration = max(models.MIN_ITEM_SECONDS, segment.duration)
				segment.has_audio = False
				continue
			jobs.append(functools.partial(self.trimmed_duration, segment.path,
				resolved.max_clip_seconds))
			targets.append((segment, 'duration'))
			if resolved.use_track_audio:
				jobs.append(functools.partial(self.has_audio_stream, segment.path))
				targets.append((segment, 'has_audio'))
		if not resolved.use_track_audio:
			for item in resolved.audio_items:
				if item.duration > 0:
					continue
				jobs.append(functools.partial(self.media_duration, item.path))
				targets.append((item, 'duration'))
		results = self._run_jobs(jobs)
		for (target, attribute), value in zip(targets, results):
			setattr(target, attribute, value)
		for item in resolved.audio_items:
			item.duration = max(models.MIN_ITEM_SECONDS, item.duration)
		return resolved

	#============================
	def _run_jobs(self, jobs: list) -> list:
		if self.max_workers <= 1 or len(jobs) <= 1:
			return [job() for job in jobs]
		with concurrent.futures.ThreadPoolExecutor(max_workers=self.max_workers) as executor:
			futures = [executor.submit(job) for job in jobs]
			return [future.result() for future in futures]
