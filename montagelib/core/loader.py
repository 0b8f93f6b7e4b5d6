#!/usr/bin/env python3

import os
import yaml
from montagelib import medialib
from montagelib.core import models
from montagelib.core import utils
from montagelib.core.errors import ValidationError

#============================================

# persisted project records written by the desktop editor use these keys
LEGACY_KEYS = {
	'Name': 'name',
	'Type': 'type',
	'Items': 'segments',
	'AudioItems': 'audio',
	'AudioPath': 'audio_path',
	'AudioDurationSeconds': 'audio_duration',
	'UseVideoAudio': 'use_track_audio',
	'UseTrackAudio': 'use_track_audio',
	'OutputFormat': 'output_format',
	'Width': 'width',
	'Height': 'height',
	'Fps': 'fps',
	'TransitionSeconds': 'transition',
	'SlideDurationSeconds': 'slide_duration',
	'MaxClipDurationSeconds': 'max_clip_duration',
	'JoinMode': 'join',
}

LEGACY_ITEM_KEYS = {
	'Path': 'file',
	'path': 'file',
	'DurationSeconds': 'duration',
	'Kind': 'kind',
}

# ordinals follow the declaration order of the persisted enums
KIND_NAMES = {
	'video': models.MediaKind.VIDEO,
	'image': models.MediaKind.IMAGE,
	'photo': models.MediaKind.IMAGE,
	0: models.MediaKind.VIDEO,
	1: models.MediaKind.IMAGE,
}

PROJECT_TYPE_NAMES = {
	'videocollage': models.ProjectType.VIDEO_COLLAGE,
	'video_collage': models.ProjectType.VIDEO_COLLAGE,
	'collage': models.ProjectType.VIDEO_COLLAGE,
	'slideshow': models.ProjectType.SLIDE_SHOW,
	'slide_show': models.ProjectType.SLIDE_SHOW,
	0: models.ProjectType.VIDEO_COLLAGE,
	1: models.ProjectType.SLIDE_SHOW,
}

JOIN_NAMES = {
	'concat': models.JoinMode.CONCAT,
	'crossfade': models.JoinMode.CROSSFADE,
	'xfade': models.JoinMode.CROSSFADE,
}

#============================================

class TimelineLoader():
	def __init__(self, yaml_file: str):
		self.yaml_file = yaml_file

	#============================
	def load(self) -> models.Timeline:
		data = self._load_yaml()
		timeline = timeline_from_dict(data)
		if timeline.name == '':
			base = os.path.basename(self.yaml_file)
			timeline.name = os.path.splitext(base)[0]
		return timeline

	#============================
	def _load_yaml(self) -> dict:
		utils.ensure_file_exists(self.yaml_file)
		file_size = os.path.getsize(self.yaml_file)
		if file_size > 10 ** 7:
			raise ValidationError("project file is larger than 10MB")
		with open(self.yaml_file, 'r', encoding='utf-8-sig') as data_file:
			data = yaml.safe_load(data_file)
		if not isinstance(data, dict):
			raise ValidationError("project file must be a mapping at the top level")
		return data

#============================================

def timeline_from_dict(data: dict) -> models.Timeline:
	data = _rename_keys(data, LEGACY_KEYS)
	resolution = data.get('resolution')
	width = data.get('width', models.DEFAULT_WIDTH)
	height = data.get('height', models.DEFAULT_HEIGHT)
	if resolution is not None:
		if not isinstance(resolution, (list, tuple)) or len(resolution) != 2:
			raise ValidationError("resolution must be [width, height]")
		width, height = resolution
	segments = [_parse_segment(entry) for entry in _as_list(data.get('segments'), 'segments')]
	audio_items = [_parse_audio_item(entry) for entry in _as_list(data.get('audio'), 'audio')]
	join_mode = None
	if data.get('join') is not None:
		join_mode = _lookup(JOIN_NAMES, data.get('join'), 'join')
	project_type = models.ProjectType.VIDEO_COLLAGE
	if data.get('type') is not None:
		project_type = _lookup(PROJECT_TYPE_NAMES, data.get('type'), 'type')
	return models.Timeline(
		name=str(data.get('name') or ''),
		project_type=project_type,
		segments=segments,
		audio_items=audio_items,
		audio_path=data.get('audio_path'),
		audio_duration=utils.parse_seconds(data.get('audio_duration'), 0.0),
		use_track_audio=_parse_bool(data.get('use_track_audio', True)),
		width=width,
		height=height,
		fps=data.get('fps', models.DEFAULT_FPS),
		transition_seconds=utils.parse_seconds(data.get('transition'),
			models.DEFAULT_TRANSITION_SECONDS),
		slide_seconds=utils.parse_seconds(data.get('slide_duration'),
			models.DEFAULT_SLIDE_SECONDS),
		max_clip_seconds=utils.parse_seconds(data.get('max_clip_duration'), 0.0),
		output_format=data.get('output_format', models.DEFAULT_OUTPUT_FORMAT),
		join_mode=join_mode,
	)

#============================================

def _parse_segment(entry) -> models.MediaSegment:
	if isinstance(entry, str):
		entry = {'file': entry}
	if not isinstance(entry, dict):
		raise ValidationError("segment entries must be mappings or paths")
	entry = _rename_keys(entry, LEGACY_ITEM_KEYS)
	path = entry.get('file')
	if path is None or str(path).strip() == '':
		raise ValidationError("segment requires a file")
	path = os.path.expanduser(str(path))
	if entry.get('kind') is None:
		kind = medialib.detectMediaKind(path)
	else:
		kind = _lookup(KIND_NAMES, entry.get('kind'), 'segment kind')
	duration = utils.parse_seconds(entry.get('duration'), 0.0)
	return models.MediaSegment(path, kind, duration)

#============================================

def _parse_audio_item(entry) -> models.AudioItem:
	if isinstance(entry, str):
		entry = {'file': entry}
	if not isinstance(entry, dict):
		raise ValidationError("audio entries must be mappings or paths")
	entry = _rename_keys(entry, LEGACY_ITEM_KEYS)
	path = entry.get('file')
	if path is None or str(path).strip() == '':
		raise ValidationError("audio item requires a file")
	duration = utils.parse_seconds(entry.get('duration'), 0.0)
	return models.AudioItem(os.path.expanduser(str(path)), duration)

#============================================

def _rename_keys(data: dict, aliases: dict) -> dict:
	renamed = {}
	for key, value in data.items():
		renamed[aliases.get(key, key)] = value
	return renamed

#============================================

def _as_list(value, name: str) -> list:
	if value is None:
		return []
	if not isinstance(value, list):
		raise ValidationError(f"{name} must be a list")
	return value

#============================================

def _lookup(table: dict, raw_value, name: str):
	key = raw_value
	if isinstance(raw_value, str):
		key = raw_value.strip().lower()
	if key not in table:
		raise ValidationError(f"unknown {name}: {raw_value}")
	return table[key]

#============================================

def _parse_bool(raw_value) -> bool:
	if isinstance(raw_value, str):
		return raw_value.strip().lower() in ('1', 'true', 'yes', 'on')
	return bool(raw_value)
