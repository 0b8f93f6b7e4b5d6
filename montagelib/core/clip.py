#!/usr/bin/env python3

import os
from montagelib.core import utils
from montagelib.core.errors import ValidationError
from montagelib.core.serializer import GLOBAL_ARGUMENTS
from montagelib.core.serializer import EncodeOptions
from montagelib.core.serializer import Invocation
from montagelib.core.serializer import two_pass_invocations

#============================================

class ClipOptions():
	def __init__(self, crop: str = None, scale: str = None, alpha: bool = False,
		fps: str = None, remove_audio: bool = False, extract_opus: bool = False):
		self.crop = crop
		self.scale = scale
		self.alpha = alpha
		self.fps = fps
		self.remove_audio = remove_audio
		self.extract_opus = extract_opus

#============================================

def output_path_for(directory: str, name: str, output_format: str) -> str:
	"""
	Destination for a named output; refuses bad names and existing files.
	"""
	if name is None or name.strip() == '':
		raise ValidationError("output name is required")
	name = name.strip()
	if not utils.is_valid_file_name(name):
		raise ValidationError(f"output name contains invalid characters: {name}")
	output_path = os.path.join(directory, f"{name}.{output_format}")
	if os.path.exists(output_path):
		raise ValidationError(f"output file already exists: {output_path}")
	return output_path

#============================================

class ClipJob():
	"""
	Trim and re-encode a single media file.
	"""
	def __init__(self, input_path: str, output_path: str, start=None, end=None,
		encode: EncodeOptions = None, options: ClipOptions = None):
		self.input_path = input_path
		self.output_path = output_path
		self.start = start
		self.end = end
		self.encode = encode or EncodeOptions()
		self.options = options or ClipOptions()

	#============================
	def validate(self) -> None:
		if self.input_path is None or not os.path.isfile(self.input_path):
			raise ValidationError(f"input file not found: {self.input_path}")
		if os.path.exists(self.output_path):
			raise ValidationError(f"output file already exists: {self.output_path}")
		self.encode.validate()
		if (self.options.crop is None) != (self.options.scale is None):
			raise ValidationError("crop and scale must be given together")

	#============================
	def video_filters(self) -> list:
		filters = []
		if self.options.crop is not None and self.options.scale is not None:
			filters.append(f"crop={self.options.crop}")
			filters.append(f"scale={self.options.scale}")
		if self.options.alpha:
			filters.append("colorkey=0x000000:0.1:0.1")
			filters.append("format=yuva420p")
		return filters

	#============================
	def base_arguments(self) -> list:
		video_codec, audio_codec = self.encode.codecs()
		extract_opus = self.options.extract_opus and not self.options.remove_audio
		if extract_opus:
			audio_codec = 'libopus'
		arguments = []
		arguments += GLOBAL_ARGUMENTS
		arguments += ['-i', self.input_path]
		if self.start is not None and str(self.start).strip() != '':
			arguments += ['-ss', utils.format_seconds(utils.parse_timecode(self.start))]
		if self.end is not None and str(self.end).strip() != '':
			arguments += ['-to', utils.format_seconds(utils.parse_timecode(self.end))]
		if self.encode.two_pass:
			arguments += ['-b:v', str(self.encode.video_bitrate)]
		if self.encode.fast:
			arguments += ['-preset', 'ultrafast']
		if self.options.fps is not None:
			arguments += ['-r', str(self.options.fps)]
		if extract_opus:
			arguments.append('-vn')
		filters = self.video_filters()
		if not extract_opus and len(filters) > 0:
			arguments += ['-vf', ','.join(filters)]
		if self.options.remove_audio:
			arguments.append('-an')
		else:
			arguments += ['-c:a', audio_codec]
		if not extract_opus:
			arguments += ['-c:v', video_codec]
			if self.encode.vp9:
				arguments += ['-crf', str(self.encode.vp9_crf), '-b:v', '0']
		return arguments

	#============================
	def invocations(self) -> list:
		self.validate()
		base = self.base_arguments()
		if self.encode.two_pass:
			return two_pass_invocations(base, self.output_path,
				self.encode.pass_log_prefix)
		return [Invocation(base + [self.output_path], output_path=self.output_path)]

#============================================

class CustomCommand():
	"""
	User supplied ffmpeg argument template with {input} and {output} slots.
	"""
	def __init__(self, template: str, input_path: str, output_path: str):
		self.template = template
		self.input_path = input_path
		self.output_path = output_path

	#============================
	def render(self) -> str:
		if self.template is None or self.template.strip() == '':
			raise ValidationError("custom command template is empty")
		command = self.template.replace('{input}', self.input_path)
		command = command.replace('{output}', self.output_path)
		return command

	#============================
	def invocations(self) -> list:
		if os.path.exists(self.output_path):
			raise ValidationError(f"output file already exists: {self.output_path}")
		return [Invocation(shell_command=self.render(), output_path=self.output_path)]
