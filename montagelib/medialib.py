#python wrapper for ffprobe

import os
import subprocess
import PIL.Image
from montagelib.core.models import MediaKind

#===============================

VIDEO_EXTENSIONS = ('.mp4', '.avi', '.mkv', '.mov', '.wmv')
IMAGE_EXTENSIONS = ('.jpg', '.jpeg', '.png', '.bmp', '.gif')

#===============================
def runProbe(args, timeout=None):
	try:
		proc = subprocess.Popen(args, stderr=subprocess.PIPE, stdout=subprocess.PIPE)
	except ValueError as exc:
		if "fds_to_keep" in str(exc):
			proc = subprocess.Popen(args, stderr=subprocess.PIPE,
				stdout=subprocess.PIPE, close_fds=False)
		else:
			raise
	try:
		stdout, stderr = proc.communicate(timeout=timeout)
	except subprocess.TimeoutExpired:
		proc.kill()
		proc.communicate()
		return ''
	if proc.returncode != 0:
		return ''
	return stdout.decode('utf-8', errors='replace')

#===============================
class FfprobeProber():
	def __init__(self, ffprobe_bin='ffprobe', timeout=60):
		self.ffprobe_bin = ffprobe_bin
		self.timeout = timeout

	#===============================
	def duration_text(self, mediafile):
		args = [self.ffprobe_bin, '-v', 'error',
			'-show_entries', 'format=duration',
			'-of', 'default=noprint_wrappers=1:nokey=1', mediafile]
		return self._probe(args)

	#===============================
	def audio_stream_text(self, mediafile):
		args = [self.ffprobe_bin, '-v', 'error',
			'-select_streams', 'a',
			'-show_entries', 'stream=codec_type',
			'-of', 'csv=p=0', mediafile]
		return self._probe(args)

	#===============================
	def _probe(self, args):
		# a missing binary or unreadable file means "unknown", not an error
		try:
			return runProbe(args, timeout=self.timeout)
		except OSError:
			return ''

#===============================
def detectMediaKind(mediafile):
	extension = os.path.splitext(mediafile)[1].lower()
	if extension in IMAGE_EXTENSIONS:
		return MediaKind.IMAGE
	if extension in VIDEO_EXTENSIONS:
		return MediaKind.VIDEO
	try:
		with PIL.Image.open(mediafile) as image:
			image.verify()
	except (OSError, SyntaxError, ValueError):
		return MediaKind.VIDEO
	return MediaKind.IMAGE
