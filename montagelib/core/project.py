#!/usr/bin/env python3

import glob
import os
from montagelib import medialib
from montagelib.core import utils
from montagelib.core.config import MontageConfig
from montagelib.core.errors import ValidationError
from montagelib.core.graph import FilterGraphBuilder
from montagelib.core.loader import TimelineLoader
from montagelib.core.resolver import DurationResolver
from montagelib.core.runner import PipelineRunner
from montagelib.core.serializer import ArgumentSerializer
from montagelib.core.serializer import EncodeOptions

#============================================

class MontageProject():
	def __init__(self, yaml_file: str = None, timeline=None, config: MontageConfig = None,
		output_override: str = None, dry_run: bool = False, keep_temp: bool = False,
		encode: EncodeOptions = None, resolver: DurationResolver = None,
		runner: PipelineRunner = None):
		if timeline is None:
			if yaml_file is None:
				raise ValidationError("a project file or timeline is required")
			timeline = TimelineLoader(yaml_file).load()
		if config is None:
			config = MontageConfig()
		self.yaml_file = yaml_file
		self.timeline = timeline
		self.config = config
		self.output_override = output_override
		self.dry_run = dry_run
		self.keep_temp = keep_temp
		if encode is None:
			encode = EncodeOptions(output_format=timeline.output_format)
		self.encode = encode
		if resolver is None:
			prober = medialib.FfprobeProber(config.ffprobe_bin)
			resolver = DurationResolver(prober, max_workers=config.probe_workers)
		self.resolver = resolver
		if runner is None:
			runner = PipelineRunner(config.ffmpeg_bin)
		self.runner = runner
		self.resolved = None
		self.graph = None

	#============================
	def output_path(self) -> str:
		if self.output_override is not None:
			return self.output_override
		file_name = f"{self.timeline.name}.{self.encode.output_format}"
		return os.path.join(self.config.processed_dir, file_name)

	#============================
	def validate(self) -> None:
		"""
		Reject the project before any probe or ffmpeg process is started.
		"""
		name = self.timeline.name
		if name is None or name.strip() == '':
			raise ValidationError("project name is required")
		if not utils.is_valid_file_name(name):
			raise ValidationError(f"project name contains invalid characters: {name}")
		if len(self.timeline.segments) == 0:
			raise ValidationError("timeline has no segments")
		for segment in self.timeline.segments:
			if not os.path.isfile(segment.path):
				raise ValidationError(f"timeline file not found: {segment.path}")
		if not self.timeline.use_track_audio:
			for item in self.timeline.audio_sequence():
				if not os.path.isfile(item.path):
					raise ValidationError(f"audio file not found: {item.path}")
		self.encode.validate()
		output_path = self.output_path()
		if os.path.exists(output_path):
			raise ValidationError(f"output file already exists: {output_path}")

	#============================
	def compile(self) -> list:
		self.validate()
		self.resolved = self.resolver.resolve_timeline(self.timeline)
		self.graph = FilterGraphBuilder(self.resolved).build()
		output_path = self.output_path()
		if self.encode.two_pass and self.encode.pass_log_prefix is None:
			self.encode.pass_log_prefix = self._pass_log_prefix(output_path)
		serializer = ArgumentSerializer(self.encode)
		return serializer.serialize(self.graph, output_path)

	#============================
	def plan(self) -> dict:
		invocations = self.compile()
		return {
			'project': self.timeline.name,
			'output': self.output_path(),
			'graph': self.graph.describe(),
			'commands': [
				invocation.command_line(self.config.ffmpeg_bin)
				for invocation in invocations
			],
		}

	#============================
	def estimate_command_total(self) -> int:
		if self.encode.two_pass:
			return 2
		return 1

	#============================
	def run(self, invocations: list = None):
		if invocations is None:
			invocations = self.compile()
		if self.dry_run:
			if not utils.is_quiet_mode():
				for invocation in invocations:
					print(invocation.command_line(self.config.ffmpeg_bin))
				print("dry run: validation complete")
			return None
		output_dir = os.path.dirname(self.output_path())
		if output_dir and not os.path.exists(output_dir):
			os.makedirs(output_dir)
		try:
			result = self.runner.run_passes(invocations)
		finally:
			if not self.keep_temp:
				self._cleanup_pass_logs()
		result.raise_for_status()
		if not utils.is_quiet_mode():
			print(f"mpv {self.output_path()}")
		return result

	#============================
	def _pass_log_prefix(self, output_path: str) -> str:
		directory = self.config.cache_dir
		if directory is None:
			directory = os.path.dirname(output_path)
		return os.path.join(directory, f".{self.timeline.name}-passlog")

	#============================
	def _cleanup_pass_logs(self) -> None:
		prefix = self.encode.pass_log_prefix
		if prefix is None:
			return
		for filepath in glob.glob(glob.escape(prefix) + '*'):
			if os.path.isfile(filepath):
				os.remove(filepath)
