#!/usr/bin/env python3

import os
import yaml
from montagelib.core.errors import ValidationError

#============================================

DEFAULT_SETTINGS_FILE = os.path.join('~', '.config', 'montage', 'settings.yml')
TRACK_MANAGER_DIR = 'TrackManager'

#============================================

class MontageConfig():
	"""
	Settings handed to the compiler collaborators at construction time.
	"""
	def __init__(self, root_path: str = None, ffmpeg_bin: str = 'ffmpeg',
		ffprobe_bin: str = 'ffprobe', probe_workers: int = 1, cache_dir: str = None):
		self.root_path = root_path
		self.ffmpeg_bin = ffmpeg_bin
		self.ffprobe_bin = ffprobe_bin
		self.probe_workers = max(1, int(probe_workers))
		self.cache_dir = cache_dir

	#============================
	def require_root(self) -> str:
		if self.root_path is None or str(self.root_path).strip() == '':
			raise ValidationError("root path is not set")
		return self.root_path

	#============================
	@property
	def track_manager_dir(self) -> str:
		return os.path.join(self.require_root(), TRACK_MANAGER_DIR)

	#============================
	@property
	def queue_dir(self) -> str:
		return os.path.join(self.track_manager_dir, 'Queue')

	#============================
	@property
	def processed_dir(self) -> str:
		return os.path.join(self.track_manager_dir, 'Processed')

	#============================
	@property
	def projects_dir(self) -> str:
		return os.path.join(self.track_manager_dir, 'Projects')

	#============================
	def ensure_processed_dir(self) -> str:
		processed_dir = self.processed_dir
		if not os.path.exists(processed_dir):
			os.makedirs(processed_dir)
		return processed_dir

#============================================

def load_config(settings_file: str = None, **overrides) -> MontageConfig:
	"""
	Read settings from yaml, then apply any non-None keyword overrides.
	"""
	data = {}
	explicit = settings_file is not None
	if settings_file is None:
		settings_file = DEFAULT_SETTINGS_FILE
	settings_file = os.path.expanduser(settings_file)
	if os.path.exists(settings_file):
		with open(settings_file, 'r') as data_file:
			data = yaml.safe_load(data_file) or {}
		if not isinstance(data, dict):
			raise ValidationError("settings file must be a mapping at the top level")
	elif explicit:
		raise ValidationError(f"settings file not found: {settings_file}")
	values = {
		'root_path': data.get('root_path'),
		'ffmpeg_bin': data.get('ffmpeg', 'ffmpeg'),
		'ffprobe_bin': data.get('ffprobe', 'ffprobe'),
		'probe_workers': data.get('probe_workers', 1),
		'cache_dir': data.get('cache_dir'),
	}
	for key, value in overrides.items():
		if key not in values:
			raise TypeError(f"unknown config override: {key}")
		if value is not None:
			values[key] = value
	return MontageConfig(**values)
