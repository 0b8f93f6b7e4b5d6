#!/usr/bin/env python3

import copy
import enum
from montagelib.core import utils

#============================================

DEFAULT_WIDTH = 1920
DEFAULT_HEIGHT = 1080
DEFAULT_FPS = 30
DEFAULT_TRANSITION_SECONDS = 1.0
MIN_TRANSITION_SECONDS = 0.1
DEFAULT_SLIDE_SECONDS = 3.0
MIN_ITEM_SECONDS = 0.5
DEFAULT_OUTPUT_FORMAT = 'mp4'

#============================================

class MediaKind(enum.Enum):
	VIDEO = 'Video'
	IMAGE = 'Image'

#============================================

class ProjectType(enum.Enum):
	VIDEO_COLLAGE = 'VideoCollage'
	SLIDE_SHOW = 'SlideShow'

#============================================

class JoinMode(enum.Enum):
	CONCAT = 'concat'
	CROSSFADE = 'crossfade'

#============================================

class MediaSegment():
	def __init__(self, path: str, kind: MediaKind = MediaKind.VIDEO,
		duration: float = 0.0, has_audio: bool = None):
		self.path = path
		self.kind = kind
		self.duration = float(duration or 0.0)
		# filled by the duration resolver when track audio is used
		self.has_audio = has_audio

	#============================
	def is_image(self) -> bool:
		return self.kind == MediaKind.IMAGE

	#============================
	def __repr__(self) -> str:
		return (f"MediaSegment({self.path!r}, {self.kind.value}, "
			f"duration={self.duration})")

#============================================

class AudioItem():
	def __init__(self, path: str, duration: float = 0.0):
		self.path = path
		self.duration = float(duration or 0.0)

	#============================
	def __repr__(self) -> str:
		return f"AudioItem({self.path!r}, duration={self.duration})"

#============================================

class Timeline():
	"""
	Project data for one render: ordered segments, soundtrack plan, geometry.
	"""
	def __init__(self, name: str = '', project_type: ProjectType = ProjectType.VIDEO_COLLAGE,
		segments: list = None, audio_items: list = None, audio_path: str = None,
		audio_duration: float = 0.0, use_track_audio: bool = True,
		width: int = DEFAULT_WIDTH, height: int = DEFAULT_HEIGHT, fps: int = DEFAULT_FPS,
		transition_seconds: float = DEFAULT_TRANSITION_SECONDS,
		slide_seconds: float = DEFAULT_SLIDE_SECONDS, max_clip_seconds: float = 0.0,
		output_format: str = DEFAULT_OUTPUT_FORMAT, join_mode: JoinMode = None):
		self.name = name
		self.project_type = project_type
		self.segments = list(segments or [])
		self.audio_items = list(audio_items or [])
		self.audio_path = audio_path
		self.audio_duration = float(audio_duration or 0.0)
		self.use_track_audio = bool(use_track_audio)
		self.width = utils.normalize_even_dimension(width, DEFAULT_WIDTH)
		self.height = utils.normalize_even_dimension(height, DEFAULT_HEIGHT)
		self.fps = normalize_fps(fps)
		self.transition_seconds = normalize_transition(transition_seconds)
		self.slide_seconds = float(slide_seconds)
		self.max_clip_seconds = max(0.0, float(max_clip_seconds or 0.0))
		self.output_format = str(output_format or DEFAULT_OUTPUT_FORMAT).lower()
		self.join_mode = join_mode

	#============================
	def effective_join_mode(self) -> JoinMode:
		if self.join_mode is not None:
			return self.join_mode
		if self.project_type == ProjectType.SLIDE_SHOW:
			return JoinMode.CROSSFADE
		return JoinMode.CONCAT

	#============================
	def audio_sequence(self) -> list:
		"""
		Audio items with the legacy single audio path folded in.
		"""
		if len(self.audio_items) > 0:
			return [copy.copy(item) for item in self.audio_items]
		if self.audio_path is not None and self.audio_path.strip() != '':
			return [AudioItem(self.audio_path, self.audio_duration)]
		return []

	#============================
	def copy(self):
		return copy.deepcopy(self)

#============================================

def normalize_fps(value) -> int:
	try:
		fps = int(value)
	except (TypeError, ValueError):
		return DEFAULT_FPS
	if fps <= 0:
		return DEFAULT_FPS
	return fps

#============================================

def normalize_transition(value) -> float:
	if value is None:
		return DEFAULT_TRANSITION_SECONDS
	return max(MIN_TRANSITION_SECONDS, float(value))
