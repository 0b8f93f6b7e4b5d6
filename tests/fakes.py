#!/usr/bin/env python3

"""
Shared fakes for probing and running without ffmpeg installed.
"""

# Standard Library
import threading

#============================================

class FakeProber():
	"""
	Answers ffprobe questions from dictionaries keyed by path.
	"""
	def __init__(self, durations: dict = None, audio: dict = None):
		self.durations = dict(durations or {})
		self.audio = dict(audio or {})
		self.calls = []
		self.lock = threading.Lock()

	#============================
	def duration_text(self, path: str) -> str:
		with self.lock:
			self.calls.append(('duration', path))
		value = self.durations.get(path)
		if value is None:
			return ''
		return str(value)

	#============================
	def audio_stream_text(self, path: str) -> str:
		with self.lock:
			self.calls.append(('audio', path))
		if self.audio.get(path, False):
			return 'audio\n'
		return ''

#============================================

class FakeCommandRunner():
	"""
	Stands in for utils.run_command; returns scripted (returncode, stderr) pairs.
	"""
	def __init__(self, results: list = None):
		self.results = list(results or [])
		self.calls = []

	#============================
	def __call__(self, args: list) -> tuple:
		self.calls.append(list(args))
		if len(self.results) == 0:
			return (0, '')
		return self.results.pop(0)
