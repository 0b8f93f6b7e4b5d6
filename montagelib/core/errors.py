#!/usr/bin/env python3

#============================================

class MontageError(RuntimeError):
	pass

#============================================

class ValidationError(MontageError):
	"""
	Bad timeline, name, or destination; raised before any subprocess runs.
	"""
	pass

#============================================

class CompilationInvariantViolation(MontageError):
	"""
	Internal defect in graph construction, never a user-facing condition.
	"""
	pass

#============================================

class PipelineFailure(MontageError):
	def __init__(self, returncode: int, diagnostic: str, pass_number: int = None):
		self.returncode = returncode
		self.diagnostic = diagnostic
		self.pass_number = pass_number
		if pass_number is None:
			message = f"ffmpeg failed with exit code {returncode}"
		else:
			message = f"ffmpeg failed with exit code {returncode} (pass {pass_number})"
		if diagnostic:
			message += f"\n{diagnostic}"
		super().__init__(message)
