#!/usr/bin/env python3

import os
import re
import shlex
import subprocess
import time
from decimal import Decimal
from decimal import ROUND_HALF_UP
from montagelib.core.errors import ValidationError

#============================================

_QUIET_MODE = False
_COMMAND_REPORTER = None
_COMMAND_TOTAL = None
_COMMAND_INDEX = 0

# characters that cannot appear in a project or output file name
INVALID_NAME_CHARS = set('<>:"/\\|?*')

#============================================

def set_quiet_mode(value: bool) -> None:
	global _QUIET_MODE
	_QUIET_MODE = bool(value)

#============================================

def is_quiet_mode() -> bool:
	return _QUIET_MODE

#============================================

def set_command_reporter(reporter) -> None:
	global _COMMAND_REPORTER
	_COMMAND_REPORTER = reporter

#============================================

def clear_command_reporter() -> None:
	global _COMMAND_REPORTER
	_COMMAND_REPORTER = None

#============================================

def set_command_total(total) -> None:
	global _COMMAND_TOTAL
	global _COMMAND_INDEX
	_COMMAND_TOTAL = total
	_COMMAND_INDEX = 0

#============================================

def command_prefix(index, total) -> str:
	if index is None or index <= 0:
		return ""
	if total is None or total <= 0:
		return f"[{index}]"
	return f"[{index}/{total}]"

#============================================

def _report(event: dict) -> None:
	reporter = _COMMAND_REPORTER
	if reporter is None:
		return
	reporter(event)

#============================================

def _start_command(showcmd: str) -> int:
	global _COMMAND_INDEX
	_COMMAND_INDEX += 1
	index = _COMMAND_INDEX
	if not is_quiet_mode():
		prefix = command_prefix(index, _COMMAND_TOTAL)
		if prefix:
			print(f"{prefix} CMD: '{showcmd}'")
		else:
			print(f"CMD: '{showcmd}'")
	_report({
		'event': 'start',
		'command': showcmd,
		'index': index,
		'total': _COMMAND_TOTAL,
	})
	return index

#============================================

def _end_command(showcmd: str, index: int, returncode: int, seconds: float,
	stderr_text: str) -> None:
	_report({
		'event': 'end',
		'command': showcmd,
		'index': index,
		'total': _COMMAND_TOTAL,
		'returncode': returncode,
		'seconds': seconds,
		'stderr': stderr_text,
	})

#============================================

def run_command(args: list) -> tuple:
	"""
	Run an argument list without a shell and capture stderr.

	Returns:
		(returncode, stderr_text)
	"""
	showcmd = shlex.join(str(arg) for arg in args)
	index = _start_command(showcmd)
	t0 = time.time()
	try:
		proc = subprocess.Popen([str(arg) for arg in args],
			stderr=subprocess.PIPE, stdout=subprocess.PIPE)
	except FileNotFoundError as exc:
		stderr_text = f"command not found: {exc.filename}"
		_end_command(showcmd, index, 127, time.time() - t0, stderr_text)
		return (127, stderr_text)
	stdout, stderr = proc.communicate()
	stderr_text = stderr.decode('utf-8', errors='replace')
	_end_command(showcmd, index, proc.returncode, time.time() - t0, stderr_text)
	return (proc.returncode, stderr_text)

#============================================

def run_shell(cmd: str) -> tuple:
	"""
	Run a command line through the shell exactly as written.
	"""
	showcmd = re.sub("  *", " ", cmd.strip())
	index = _start_command(showcmd)
	t0 = time.time()
	proc = subprocess.Popen(cmd, shell=True, stderr=subprocess.PIPE,
		stdout=subprocess.PIPE)
	stdout, stderr = proc.communicate()
	stderr_text = stderr.decode('utf-8', errors='replace')
	_end_command(showcmd, index, proc.returncode, time.time() - t0, stderr_text)
	return (proc.returncode, stderr_text)

#============================================

def parse_timecode(raw_time) -> Decimal:
	if raw_time is None:
		raise ValidationError("time value is required")
	if isinstance(raw_time, bool):
		raise ValidationError("time values must be int, float, or timecode string")
	if isinstance(raw_time, int):
		return Decimal(raw_time)
	if isinstance(raw_time, float):
		return Decimal(str(raw_time))
	if isinstance(raw_time, str):
		value = raw_time.strip()
		try:
			if ':' not in value:
				return Decimal(value)
			parts = value.split(':')
			seconds = Decimal(parts.pop())
			minutes = Decimal(parts.pop())
			hours = Decimal(0)
			if len(parts) > 0:
				hours = Decimal(parts.pop())
		except ArithmeticError:
			raise ValidationError(f"invalid time value: {raw_time}")
		return hours * Decimal(3600) + minutes * Decimal(60) + seconds
	raise ValidationError("time values must be int, float, or timecode string")

#============================================

def parse_seconds(raw_value, default: float = 0.0) -> float:
	if raw_value is None or raw_value == '':
		return float(default)
	return float(parse_timecode(raw_value))

#============================================

def format_seconds(value) -> str:
	"""
	Locale-independent fixed decimal text for filter graph numbers.

	At most six fractional digits, trailing zeros dropped, never an exponent.
	"""
	number = Decimal(str(value)).quantize(Decimal('0.000001'), rounding=ROUND_HALF_UP)
	text = format(number, 'f')
	if '.' in text:
		text = text.rstrip('0').rstrip('.')
	if text in ('', '-0'):
		text = '0'
	return text

#============================================

def normalize_even_dimension(value, default_value: int) -> int:
	try:
		normalized = int(value)
	except (TypeError, ValueError):
		normalized = 0
	if normalized <= 0:
		normalized = default_value
	if normalized % 2 != 0:
		normalized -= 1
	return max(2, normalized)

#============================================

def is_valid_file_name(name: str) -> bool:
	if name is None or name.strip() == '':
		return False
	for char in name:
		if char in INVALID_NAME_CHARS or ord(char) < 32:
			return False
	return True

#============================================

def ensure_file_exists(filepath: str) -> None:
	if not os.path.exists(filepath):
		raise ValidationError(f"file not found: {filepath}")
	return
