#!/usr/bin/env python3

import os
import sys
import tempfile
import unittest

import pytest

REPO_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if REPO_ROOT not in sys.path:
	sys.path.insert(0, REPO_ROOT)

from montagelib.core.clip import ClipJob
from montagelib.core.clip import ClipOptions
from montagelib.core.clip import CustomCommand
from montagelib.core.clip import output_path_for
from montagelib.core.errors import ValidationError
from montagelib.core.serializer import EncodeOptions

#============================================

class ClipJobTest(unittest.TestCase):
	#============================================
	def setUp(self) -> None:
		self.temp = tempfile.TemporaryDirectory()
		self.input_path = os.path.join(self.temp.name, "raw.mp4")
		with open(self.input_path, "w") as handle:
			handle.write("")
		self.output_path = os.path.join(self.temp.name, "cut.mp4")

	#============================================
	def tearDown(self) -> None:
		self.temp.cleanup()

	#============================================
	def test_trim_arguments(self) -> None:
		"""Trim points are normalized to plain seconds."""
		job = ClipJob(self.input_path, self.output_path, start="00:00:05", end=10)
		invocations = job.invocations()
		self.assertEqual(len(invocations), 1)
		self.assertEqual(invocations[0].arguments, [
			'-y', '-hide_banner', '-i', self.input_path,
			'-ss', '5', '-to', '10',
			'-c:a', 'aac', '-c:v', 'libx264',
			self.output_path,
		])

	#============================================
	def test_crop_scale_and_alpha_filters(self) -> None:
		options = ClipOptions(crop="640:360:0:0", scale="1280:720", alpha=True)
		job = ClipJob(self.input_path, self.output_path, options=options)
		arguments = job.base_arguments()
		self.assertEqual(arguments[arguments.index('-vf') + 1],
			"crop=640:360:0:0,scale=1280:720,colorkey=0x000000:0.1:0.1,format=yuva420p")

	#============================================
	def test_crop_without_scale_rejected(self) -> None:
		job = ClipJob(self.input_path, self.output_path,
			options=ClipOptions(crop="640:360:0:0"))
		with self.assertRaises(ValidationError):
			job.invocations()

	#============================================
	def test_opus_extract_drops_video(self) -> None:
		options = ClipOptions(extract_opus=True)
		job = ClipJob(self.input_path, self.output_path, options=options)
		arguments = job.base_arguments()
		self.assertIn('-vn', arguments)
		self.assertEqual(arguments[arguments.index('-c:a') + 1], 'libopus')
		self.assertNotIn('-c:v', arguments)

	#============================================
	def test_remove_audio_and_two_pass(self) -> None:
		encode = EncodeOptions(two_pass=True, video_bitrate='1M')
		job = ClipJob(self.input_path, self.output_path, encode=encode,
			options=ClipOptions(remove_audio=True, fps='24'))
		first, second = job.invocations()
		self.assertIn('-an', first.arguments)
		self.assertNotIn('-c:a', first.arguments)
		self.assertEqual(first.arguments[first.arguments.index('-r') + 1], '24')
		self.assertEqual(first.pass_number, 1)
		self.assertEqual(second.arguments[-1], self.output_path)

	#============================================
	def test_existing_output_rejected(self) -> None:
		job = ClipJob(self.input_path, self.input_path)
		with self.assertRaises(ValidationError):
			job.invocations()

#============================================

def test_custom_command_substitutes_paths() -> None:
	command = CustomCommand("-i {input} -vf hflip {output}", "in.mp4", "/no/such/out.mp4")
	invocation = command.invocations()[0]
	assert invocation.shell_command == "-i in.mp4 -vf hflip /no/such/out.mp4"
	assert invocation.command_line('ffmpeg') == "ffmpeg -i in.mp4 -vf hflip /no/such/out.mp4"

#============================================

def test_output_path_for_validates_name() -> None:
	with tempfile.TemporaryDirectory() as temp_dir:
		assert output_path_for(temp_dir, " cut ", "mkv") == os.path.join(temp_dir, "cut.mkv")
		for bad_name in ("", "a|b", None):
			with pytest.raises(ValidationError):
				output_path_for(temp_dir, bad_name, "mp4")
		with open(os.path.join(temp_dir, "taken.mp4"), "w") as handle:
			handle.write("")
		with pytest.raises(ValidationError):
			output_path_for(temp_dir, "taken", "mp4")
