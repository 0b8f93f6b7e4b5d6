#!/usr/bin/env python3

from montagelib.core import utils
from montagelib.core.errors import PipelineFailure

#============================================

class PipelineResult():
	def __init__(self, returncode: int, diagnostic: str, pass_number: int = None):
		self.returncode = returncode
		self.diagnostic = diagnostic
		self.pass_number = pass_number

	#============================
	@property
	def ok(self) -> bool:
		return self.returncode == 0

	#============================
	def raise_for_status(self) -> None:
		if not self.ok:
			raise PipelineFailure(self.returncode, self.diagnostic, self.pass_number)

	#============================
	def __repr__(self) -> str:
		return (f"PipelineResult(returncode={self.returncode}, "
			f"pass_number={self.pass_number})")

#============================================

class PipelineRunner():
	"""
	Execute ffmpeg invocations one at a time, blocking until each exits.
	"""
	def __init__(self, ffmpeg_bin: str = 'ffmpeg', command_runner=None,
		shell_runner=None):
		self.ffmpeg_bin = ffmpeg_bin
		if command_runner is None:
			command_runner = utils.run_command
		if shell_runner is None:
			shell_runner = utils.run_shell
		self.command_runner = command_runner
		self.shell_runner = shell_runner

	#============================
	def run(self, arguments: list, pass_number: int = None) -> PipelineResult:
		returncode, diagnostic = self.command_runner([self.ffmpeg_bin] + list(arguments))
		return PipelineResult(returncode, diagnostic, pass_number)

	#============================
	def run_invocation(self, invocation) -> PipelineResult:
		if invocation.shell_command is not None:
			returncode, diagnostic = self.shell_runner(
				invocation.command_line(self.ffmpeg_bin))
			return PipelineResult(returncode, diagnostic, invocation.pass_number)
		return self.run(invocation.arguments, invocation.pass_number)

	#============================
	def run_passes(self, invocations: list) -> PipelineResult:
		"""
		Run invocations in order and stop at the first failure.

		Returns the failing result, or the last result when all succeed.
		"""
		if len(invocations) == 0:
			raise ValueError("no invocations to run")
		result = None
		for invocation in invocations:
			result = self.run_invocation(invocation)
			if not result.ok:
				return result
		return result
