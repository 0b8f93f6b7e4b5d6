#!/usr/bin/env python3

import os
import sys
from decimal import Decimal

import pytest

REPO_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if REPO_ROOT not in sys.path:
	sys.path.insert(0, REPO_ROOT)

from montagelib.core import utils
from montagelib.core.errors import ValidationError

#============================================

def test_format_seconds_strips_trailing_zeros() -> None:
	"""Filter numbers never carry trailing zeros or exponents."""
	assert utils.format_seconds(12.5) == "12.5"
	assert utils.format_seconds(3.0) == "3"
	assert utils.format_seconds(0) == "0"
	assert utils.format_seconds(1e-7) == "0"
	assert utils.format_seconds(1234567.25) == "1234567.25"

#============================================

def test_format_seconds_rounds_to_six_places() -> None:
	assert utils.format_seconds(1.0000004) == "1"
	assert utils.format_seconds(1.0000005) == "1.000001"
	assert utils.format_seconds(Decimal("2.1234567")) == "2.123457"
	assert utils.format_seconds(1.0 / 3.0) == "0.333333"

#============================================

def test_normalize_even_dimension() -> None:
	assert utils.normalize_even_dimension(1920, 1280) == 1920
	assert utils.normalize_even_dimension(1081, 1080) == 1080
	assert utils.normalize_even_dimension(0, 1080) == 1080
	assert utils.normalize_even_dimension(-4, 720) == 720
	assert utils.normalize_even_dimension(1, 720) == 2
	assert utils.normalize_even_dimension("bad", 720) == 720

#============================================

def test_parse_timecode_forms() -> None:
	assert utils.parse_timecode(5) == Decimal(5)
	assert utils.parse_timecode(1.5) == Decimal("1.5")
	assert utils.parse_timecode("01:02.5") == Decimal("62.5")
	assert utils.parse_timecode("1:00:00") == Decimal(3600)
	assert utils.parse_seconds(None, 3.0) == 3.0

#============================================

def test_parse_timecode_rejects_garbage() -> None:
	with pytest.raises(ValidationError):
		utils.parse_timecode("abc")
	with pytest.raises(ValidationError):
		utils.parse_timecode(True)
	with pytest.raises(ValidationError):
		utils.parse_timecode(None)

#============================================

def test_is_valid_file_name() -> None:
	assert utils.is_valid_file_name("holiday 2024")
	assert not utils.is_valid_file_name("bad/name")
	assert not utils.is_valid_file_name("what?")
	assert not utils.is_valid_file_name("tab\tname")
	assert not utils.is_valid_file_name("   ")

#============================================

def test_command_prefix() -> None:
	assert utils.command_prefix(0, 3) == ""
	assert utils.command_prefix(2, None) == "[2]"
	assert utils.command_prefix(2, 3) == "[2/3]"
