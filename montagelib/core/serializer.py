#!/usr/bin/env python3

import os
import shlex
from montagelib.core.errors import ValidationError
from montagelib.core.graph import CompiledGraph

#============================================

# container -> (video codec, audio codec)
FORMAT_CODECS = {
	'mp4': ('libx264', 'aac'),
	'mkv': ('libx264', 'aac'),
	'avi': ('mpeg4', 'libmp3lame'),
}

GLOBAL_ARGUMENTS = ['-y', '-hide_banner']

#============================================

class EncodeOptions():
	def __init__(self, output_format: str = 'mp4', crf: int = 20,
		preset: str = 'medium', audio_bitrate: str = '320k', two_pass: bool = False,
		video_bitrate: str = None, fast: bool = False, vp9: bool = False,
		vp9_crf: int = 31, pass_log_prefix: str = None, qscale: int = 3):
		self.output_format = str(output_format).lower()
		self.crf = crf
		self.preset = preset
		self.audio_bitrate = audio_bitrate
		self.two_pass = two_pass
		self.video_bitrate = video_bitrate
		self.fast = fast
		self.vp9 = vp9
		self.vp9_crf = vp9_crf
		self.pass_log_prefix = pass_log_prefix
		# mpeg4 has no crf mode, it takes a fixed quantizer instead
		self.qscale = qscale

	#============================
	def codecs(self) -> tuple:
		codecs = FORMAT_CODECS.get(self.output_format)
		if codecs is None:
			raise ValidationError(f"unknown output format: {self.output_format}")
		video_codec, audio_codec = codecs
		if self.vp9:
			video_codec = 'libvpx-vp9'
		return (video_codec, audio_codec)

	#============================
	def validate(self) -> None:
		self.codecs()
		if self.two_pass and not self.video_bitrate:
			raise ValidationError("two-pass encoding requires a video bitrate")

	#============================
	def effective_preset(self) -> str:
		if self.fast:
			return 'ultrafast'
		return self.preset

#============================================

class Invocation():
	"""
	One ffmpeg run: an argument list, or a raw command line for custom templates.
	"""
	def __init__(self, arguments: list = None, pass_number: int = None,
		output_path: str = None, shell_command: str = None):
		self.arguments = list(arguments or [])
		self.pass_number = pass_number
		self.output_path = output_path
		self.shell_command = shell_command

	#============================
	def command_line(self, ffmpeg_bin: str = 'ffmpeg') -> str:
		if self.shell_command is not None:
			return f"{ffmpeg_bin} {self.shell_command}"
		return shlex.join([ffmpeg_bin] + self.arguments)

	#============================
	def __eq__(self, other) -> bool:
		if not isinstance(other, Invocation):
			return NotImplemented
		return (self.arguments == other.arguments
			and self.pass_number == other.pass_number
			and self.shell_command == other.shell_command)

	#============================
	def __repr__(self) -> str:
		return f"Invocation(pass={self.pass_number}, {self.command_line()!r})"

#============================================

def two_pass_invocations(base: list, output_path: str, pass_log_prefix: str = None,
	null_device: str = os.devnull) -> list:
	log_arguments = []
	if pass_log_prefix is not None:
		log_arguments = ['-passlogfile', pass_log_prefix]
	first = base + ['-pass', '1'] + log_arguments + ['-an', '-f', 'null', null_device]
	second = base + ['-pass', '2'] + log_arguments + [output_path]
	return [
		Invocation(first, pass_number=1),
		Invocation(second, pass_number=2, output_path=output_path),
	]

#============================================

class ArgumentSerializer():
	def __init__(self, options: EncodeOptions = None, null_device: str = os.devnull):
		if options is None:
			options = EncodeOptions()
		self.options = options
		self.null_device = null_device

	#============================
	def serialize(self, graph: CompiledGraph, output_path: str) -> list:
		"""
		Linearize a compiled graph into one invocation, or two for two-pass.
		"""
		self.options.validate()
		base = []
		base += GLOBAL_ARGUMENTS
		base += self.input_arguments(graph)
		base += ['-filter_complex', graph.filter_complex()]
		base += self.map_arguments(graph)
		base += self.encoding_arguments(graph)
		if self.options.two_pass:
			return two_pass_invocations(base, output_path,
				self.options.pass_log_prefix, self.null_device)
		return [Invocation(base + [output_path], output_path=output_path)]

	#============================
	def input_arguments(self, graph: CompiledGraph) -> list:
		arguments = []
		for binding in sorted(graph.inputs, key=lambda item: item.index):
			arguments += binding.arguments()
		return arguments

	#============================
	def map_arguments(self, graph: CompiledGraph) -> list:
		arguments = ['-map', graph.video_label.pad()]
		if graph.audio_label is None:
			arguments.append('-an')
		else:
			arguments += ['-map', graph.audio_label.pad()]
		return arguments

	#============================
	def encoding_arguments(self, graph: CompiledGraph) -> list:
		video_codec, audio_codec = self.options.codecs()
		arguments = ['-shortest', '-c:v', video_codec, '-pix_fmt', 'yuv420p']
		if video_codec == 'libx264':
			arguments += ['-profile:v', 'high', '-level', '4.0']
			arguments += ['-preset', self.options.effective_preset()]
		if self.options.two_pass:
			arguments += ['-b:v', str(self.options.video_bitrate)]
		elif video_codec == 'libvpx-vp9':
			arguments += ['-crf', str(self.options.vp9_crf), '-b:v', '0']
		elif video_codec == 'mpeg4':
			arguments += ['-q:v', str(self.options.qscale)]
		else:
			arguments += ['-crf', str(self.options.crf)]
		if graph.audio_label is not None:
			arguments += ['-c:a', audio_codec, '-b:a', self.options.audio_bitrate]
		if self.options.output_format == 'mp4':
			arguments += ['-movflags', '+faststart']
		return arguments
