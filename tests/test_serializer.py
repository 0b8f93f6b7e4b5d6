#!/usr/bin/env python3

import os
import sys
import unittest

import pytest

REPO_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if REPO_ROOT not in sys.path:
	sys.path.insert(0, REPO_ROOT)

from montagelib.core import graph
from montagelib.core import models
from montagelib.core.errors import ValidationError
from montagelib.core.serializer import ArgumentSerializer
from montagelib.core.serializer import EncodeOptions

#============================================

def _compiled(use_track_audio: bool = True) -> graph.CompiledGraph:
	segment = models.MediaSegment('/media/clip.mp4', models.MediaKind.VIDEO, 12.5, True)
	timeline = models.Timeline(name='one', segments=[segment],
		use_track_audio=use_track_audio)
	return graph.compile_timeline(timeline)

#============================================

class ArgumentSerializerTest(unittest.TestCase):
	#============================================
	def test_single_pass_argument_order(self) -> None:
		"""Inputs, graph, maps, encoder settings, then the output path."""
		compiled = _compiled()
		invocations = ArgumentSerializer().serialize(compiled, '/out/one.mp4')
		self.assertEqual(len(invocations), 1)
		expected = [
			'-y', '-hide_banner',
			'-i', '/media/clip.mp4',
			'-filter_complex', compiled.filter_complex(),
			'-map', '[vout]', '-map', '[a0]',
			'-shortest', '-c:v', 'libx264', '-pix_fmt', 'yuv420p',
			'-profile:v', 'high', '-level', '4.0', '-preset', 'medium',
			'-crf', '20',
			'-c:a', 'aac', '-b:a', '320k',
			'-movflags', '+faststart',
			'/out/one.mp4',
		]
		self.assertEqual(invocations[0].arguments, expected)
		self.assertIsNone(invocations[0].pass_number)

	#============================================
	def test_silence_input_precedes_filter_complex(self) -> None:
		compiled = _compiled(use_track_audio=False)
		arguments = ArgumentSerializer().serialize(compiled, 'out.mp4')[0].arguments
		lavfi = arguments.index('lavfi')
		self.assertLess(lavfi, arguments.index('-filter_complex'))
		self.assertIn('[silent]', arguments)

	#============================================
	def test_two_pass_pair(self) -> None:
		options = EncodeOptions(two_pass=True, video_bitrate='2M',
			pass_log_prefix='/tmp/cache/.one-passlog')
		invocations = ArgumentSerializer(options, null_device='/dev/null').serialize(
			_compiled(), '/out/one.mp4')
		self.assertEqual([item.pass_number for item in invocations], [1, 2])
		first, second = invocations
		self.assertEqual(first.arguments[-8:],
			['-pass', '1', '-passlogfile', '/tmp/cache/.one-passlog',
			'-an', '-f', 'null', '/dev/null'])
		self.assertEqual(second.arguments[-5:],
			['-pass', '2', '-passlogfile', '/tmp/cache/.one-passlog', '/out/one.mp4'])
		self.assertEqual(first.arguments[:-8], second.arguments[:-5])
		self.assertIn('2M', first.arguments)
		self.assertNotIn('-crf', first.arguments)

	#============================================
	def test_two_pass_requires_bitrate(self) -> None:
		options = EncodeOptions(two_pass=True)
		with self.assertRaises(ValidationError):
			ArgumentSerializer(options).serialize(_compiled(), 'out.mp4')

	#============================================
	def test_repeat_serialization_is_identical(self) -> None:
		first = ArgumentSerializer().serialize(_compiled(), 'out.mp4')
		second = ArgumentSerializer().serialize(_compiled(), 'out.mp4')
		self.assertEqual(first, second)

#============================================

def test_avi_codecs_and_no_faststart() -> None:
	options = EncodeOptions(output_format='avi')
	arguments = ArgumentSerializer(options).serialize(_compiled(), 'out.avi')[0].arguments
	assert arguments[arguments.index('-c:v') + 1] == 'mpeg4'
	assert arguments[arguments.index('-c:a') + 1] == 'libmp3lame'
	assert '-profile:v' not in arguments
	assert '-movflags' not in arguments

#============================================

def test_vp9_and_fast_options() -> None:
	options = EncodeOptions(output_format='mkv', vp9=True, vp9_crf=28)
	arguments = ArgumentSerializer(options).serialize(_compiled(), 'out.mkv')[0].arguments
	assert arguments[arguments.index('-c:v') + 1] == 'libvpx-vp9'
	assert arguments[arguments.index('-crf') + 1] == '28'
	assert arguments[arguments.index('-b:v') + 1] == '0'
	fast = EncodeOptions(fast=True)
	arguments = ArgumentSerializer(fast).serialize(_compiled(), 'out.mp4')[0].arguments
	assert arguments[arguments.index('-preset') + 1] == 'ultrafast'

#============================================

def test_unknown_format_is_rejected() -> None:
	with pytest.raises(ValidationError):
		ArgumentSerializer(EncodeOptions(output_format='webm')).serialize(
			_compiled(), 'out.webm')

#============================================

def test_command_line_quotes_filter_graph() -> None:
	invocation = ArgumentSerializer().serialize(_compiled(), 'my out.mp4')[0]
	line = invocation.command_line('ffmpeg')
	assert line.startswith("ffmpeg -y -hide_banner -i /media/clip.mp4 -filter_complex '")
	assert line.endswith("'my out.mp4'")

#============================================

def test_mpeg4_uses_quantizer_not_crf() -> None:
	options = EncodeOptions(output_format='avi', qscale=5)
	arguments = ArgumentSerializer(options).serialize(_compiled(), 'out.avi')[0].arguments
	assert '-crf' not in arguments
	assert arguments[arguments.index('-q:v') + 1] == '5'
