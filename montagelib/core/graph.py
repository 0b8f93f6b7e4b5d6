#!/usr/bin/env python3

import enum
from decimal import Decimal
from montagelib.core import utils
from montagelib.core.errors import CompilationInvariantViolation
from montagelib.core.errors import ValidationError
from montagelib.core.models import JoinMode
from montagelib.core.models import Timeline

#============================================

SAMPLE_RATE = 48000
CHANNEL_LAYOUT = 'stereo'
PIXEL_FORMAT = 'yuv420p'
SILENCE_SOURCE = f"anullsrc=channel_layout={CHANNEL_LAYOUT}:sample_rate={SAMPLE_RATE}"

#============================================

class LabelKind(enum.Enum):
	VIDEO_SEGMENT = 'v'
	TRACK_AUDIO = 'a'
	TRACK_SILENCE = 'asil'
	AUDIO_ITEM = 'aseq'
	VIDEO_CROSSFADE = 'xv'
	AUDIO_CROSSFADE = 'xa'
	AUDIO_ALIGN = 'xpad'
	VIDEO_CONCAT = 'vcat'
	AUDIO_CONCAT = 'acat'
	AUDIO_SEQUENCE = 'audio'
	SILENCE_FILL = 'silent'
	VIDEO_OUT = 'vout'

	#============================
	def is_indexed(self) -> bool:
		return self in INDEXED_KINDS

INDEXED_KINDS = frozenset((
	LabelKind.VIDEO_SEGMENT,
	LabelKind.TRACK_AUDIO,
	LabelKind.TRACK_SILENCE,
	LabelKind.AUDIO_ITEM,
	LabelKind.VIDEO_CROSSFADE,
	LabelKind.AUDIO_CROSSFADE,
	LabelKind.AUDIO_ALIGN,
))

#============================================

class Label():
	def __init__(self, kind: LabelKind, index, serial: int):
		self.kind = kind
		self.index = index
		self.serial = serial
		if index is None:
			self.text = kind.value
		else:
			self.text = f"{kind.value}{index}"

	#============================
	def pad(self) -> str:
		return f"[{self.text}]"

	#============================
	def __str__(self) -> str:
		return self.text

	#============================
	def __repr__(self) -> str:
		return f"Label({self.text!r}, serial={self.serial})"

#============================================

class LabelAllocator():
	"""
	Issues node labels for one compile call, in increasing serial order.
	"""
	def __init__(self):
		self._serial = 0
		self._issued = {}

	#============================
	def issue(self, kind: LabelKind, index: int = None) -> Label:
		if kind.is_indexed() and index is None:
			raise CompilationInvariantViolation(f"label kind {kind.name} needs an index")
		if not kind.is_indexed() and index is not None:
			raise CompilationInvariantViolation(f"label kind {kind.name} takes no index")
		label = Label(kind, index, self._serial)
		if label.text in self._issued:
			raise CompilationInvariantViolation(f"duplicate filter label: {label.text}")
		self._issued[label.text] = label
		self._serial += 1
		return label

#============================================

class StreamRef():
	def __init__(self, input_index: int, stream: str):
		self.input_index = input_index
		self.stream = stream

	#============================
	def pad(self) -> str:
		return f"[{self.input_index}:{self.stream}]"

	#============================
	def __str__(self) -> str:
		return f"{self.input_index}:{self.stream}"

#============================================

def format_value(value) -> str:
	if isinstance(value, bool):
		return '1' if value else '0'
	if isinstance(value, int):
		return str(value)
	if isinstance(value, (float, Decimal)):
		return utils.format_seconds(value)
	return str(value)

#============================================

class FilterStep():
	def __init__(self, name: str, *positional, **options):
		self.name = name
		self.positional = positional
		self.options = options

	#============================
	def render(self) -> str:
		parts = [format_value(value) for value in self.positional]
		for key, value in self.options.items():
			parts.append(f"{key}={format_value(value)}")
		if len(parts) == 0:
			return self.name
		return f"{self.name}={':'.join(parts)}"

#============================================

class FilterNode():
	def __init__(self, inputs: list, steps: list, output: Label, offset: float = None):
		self.inputs = list(inputs)
		self.steps = list(steps)
		self.output = output
		# cross-fade start time in the composed output
		self.offset = offset

	#============================
	@property
	def operation(self) -> str:
		return self.steps[0].name

	#============================
	@property
	def label(self) -> str:
		return self.output.text

	#============================
	def predecessors(self) -> list:
		return [str(ref) for ref in self.inputs]

	#============================
	def render(self) -> str:
		head = ''.join(ref.pad() for ref in self.inputs)
		body = ','.join(step.render() for step in self.steps)
		return f"{head}{body}{self.output.pad()}"

#============================================

class InputBinding():
	def __init__(self, index: int, path: str, options: list = None,
		synthetic: bool = False):
		self.index = index
		self.path = path
		self.options = list(options or [])
		# lavfi sources have no file on disk
		self.synthetic = synthetic

	#============================
	def arguments(self) -> list:
		return self.options + ['-i', self.path]

#============================================

class CompiledGraph():
	def __init__(self, inputs: list, nodes: list, video_label: Label,
		audio_label: Label, duration: float, join_mode: JoinMode):
		self.inputs = inputs
		self.nodes = nodes
		self.video_label = video_label
		self.audio_label = audio_label
		self.duration = duration
		self.join_mode = join_mode

	#============================
	def filter_complex(self) -> str:
		return ';'.join(node.render() for node in self.nodes)

	#============================
	def node(self, label: str) -> FilterNode:
		for node in self.nodes:
			if node.label == label:
				return node
		return None

	#============================
	def nodes_by_operation(self, operation: str) -> list:
		return [node for node in self.nodes if node.operation == operation]

	#============================
	def crossfade_nodes(self) -> list:
		return self.nodes_by_operation('xfade')

	#============================
	def describe(self) -> dict:
		return {
			'inputs': [
				{'index': binding.index, 'path': binding.path,
					'options': list(binding.options), 'synthetic': binding.synthetic}
				for binding in self.inputs
			],
			'nodes': [
				{'label': node.label, 'operation': node.operation,
					'inputs': node.predecessors(), 'filter': node.render()}
				for node in self.nodes
			],
			'video': self.video_label.text,
			'audio': self.audio_label.text if self.audio_label is not None else None,
			'duration': float(self.duration),
			'join': self.join_mode.value,
		}

#============================================

class FilterGraphBuilder():
	"""
	Compile a resolved timeline into input bindings and a labeled filter graph.

	Every segment becomes a normalized video node; the nodes are joined with
	concat or a left fold of xfade nodes. The audio lane follows one of three
	policies: per-segment track audio, the audio item sequence, or silence.
	"""
	def __init__(self, timeline: Timeline):
		self.timeline = timeline
		self._labels = None
		self._inputs = []
		self._nodes = []
		self.width = timeline.width
		self.height = timeline.height
		self.fps = timeline.fps
		self.transition = timeline.transition_seconds
		self.join_mode = timeline.effective_join_mode()

	#============================
	def build(self) -> CompiledGraph:
		segments = self.timeline.segments
		if len(segments) == 0:
			raise ValidationError("timeline has no segments")
		for segment in segments:
			if segment.duration <= 0:
				raise CompilationInvariantViolation(
					f"segment duration not resolved: {segment.path}")
		self._labels = LabelAllocator()
		self._inputs = []
		self._nodes = []
		self.width = utils.normalize_even_dimension(self.timeline.width, 1920)
		self.height = utils.normalize_even_dimension(self.timeline.height, 1080)
		self.fps = self.timeline.fps
		self.transition = self.timeline.transition_seconds
		self.join_mode = self.timeline.effective_join_mode()
		durations = [segment.duration for segment in segments]
		offsets = crossfade_offsets(durations, self.transition)
		video_labels = []
		track_labels = []
		for index, segment in enumerate(segments):
			video_labels.append(self._add_video_segment(index, segment))
			if self.timeline.use_track_audio:
				track_labels.append(self._add_track_audio(index, segment))
		if len(video_labels) == 0:
			raise CompilationInvariantViolation("no video labels were produced")
		video_label = self._join(video_labels, offsets, 'video')
		duration = self._composed_duration(durations)
		if self.timeline.use_track_audio:
			audio_label = self._join(track_labels, offsets, 'audio')
		elif len(self.timeline.audio_sequence()) > 0:
			audio_label = self._add_audio_sequence(self.timeline.audio_sequence())
		else:
			audio_label = self._add_silence_fill(duration)
		final_label = self._finalize_video(video_label)
		return CompiledGraph(self._inputs, self._nodes, final_label, audio_label,
			duration, self.join_mode)

	#============================
	def _bind_input(self, path: str, options: list = None,
		synthetic: bool = False) -> InputBinding:
		binding = InputBinding(len(self._inputs), path, options, synthetic)
		self._inputs.append(binding)
		return binding

	#============================
	def _audio_format(self) -> FilterStep:
		return FilterStep('aformat', sample_fmts='fltp', sample_rates=SAMPLE_RATE,
			channel_layouts=CHANNEL_LAYOUT)

	#============================
	def _add_video_segment(self, index: int, segment) -> Label:
		if segment.is_image():
			binding = self._bind_input(segment.path,
				['-loop', '1', '-t', utils.format_seconds(segment.duration)])
		else:
			binding = self._bind_input(segment.path)
		label = self._labels.issue(LabelKind.VIDEO_SEGMENT, index)
		steps = [
			FilterStep('trim', 0, segment.duration),
			FilterStep('setpts', 'PTS-STARTPTS'),
			FilterStep('scale', self.width, self.height,
				force_original_aspect_ratio='increase'),
			FilterStep('crop', self.width, self.height),
			FilterStep('fps', self.fps),
			FilterStep('format', PIXEL_FORMAT),
		]
		self._nodes.append(FilterNode([StreamRef(binding.index, 'v')], steps, label))
		return label

	#============================
	def _add_track_audio(self, index: int, segment) -> Label:
		# input index equals segment index for timeline inputs
		if not segment.is_image() and segment.has_audio:
			label = self._labels.issue(LabelKind.TRACK_AUDIO, index)
			steps = [
				FilterStep('atrim', 0, segment.duration),
				FilterStep('asetpts', 'PTS-STARTPTS'),
				self._audio_format(),
			]
			self._nodes.append(FilterNode([StreamRef(index, 'a')], steps, label))
			return label
		label = self._labels.issue(LabelKind.TRACK_SILENCE, index)
		steps = [
			FilterStep('anullsrc', r=SAMPLE_RATE, cl=CHANNEL_LAYOUT),
			FilterStep('atrim', 0, segment.duration),
			FilterStep('asetpts', 'PTS-STARTPTS'),
			self._audio_format(),
		]
		self._nodes.append(FilterNode([], steps, label))
		return label

	#============================
	def _join(self, labels: list, offsets: list, lane: str) -> Label:
		if len(labels) == 1:
			return labels[0]
		if self.join_mode == JoinMode.CROSSFADE:
			return self._crossfade(labels, offsets, lane)
		if lane == 'video':
			label = self._labels.issue(LabelKind.VIDEO_CONCAT)
			step = FilterStep('concat', n=len(labels), v=1, a=0)
		else:
			label = self._labels.issue(LabelKind.AUDIO_CONCAT)
			step = FilterStep('concat', n=len(labels), v=0, a=1)
		self._nodes.append(FilterNode(labels, [step], label))
		return label

	#============================
	def _crossfade(self, labels: list, offsets: list, lane: str) -> Label:
		current = labels[0]
		for index in range(1, len(labels)):
			offset = offsets[index - 1]
			if lane == 'video':
				label = self._labels.issue(LabelKind.VIDEO_CROSSFADE, index)
				step = FilterStep('xfade', transition='fade', duration=self.transition,
					offset=offset)
			else:
				current = self._align_audio(current, index, offset)
				label = self._labels.issue(LabelKind.AUDIO_CROSSFADE, index)
				step = FilterStep('acrossfade', d=self.transition, c1='tri', c2='tri')
			self._nodes.append(FilterNode([current, labels[index]], [step], label,
				offset=offset))
			current = label
		return current

	#============================
	def _align_audio(self, current: Label, index: int, offset: float) -> Label:
		"""
		Pad or cut the running audio to offset + T so acrossfade, which fades
		over the tail of its first input, starts where the matching xfade does.
		"""
		label = self._labels.issue(LabelKind.AUDIO_ALIGN, index)
		steps = [
			FilterStep('apad'),
			FilterStep('atrim', 0, offset + self.transition),
		]
		self._nodes.append(FilterNode([current], steps, label, offset=offset))
		return label

	#============================
	def _composed_duration(self, durations: list) -> float:
		total = sum(durations)
		if self.join_mode != JoinMode.CROSSFADE or len(durations) < 2:
			return total
		return max(0.0, total - (len(durations) - 1) * self.transition)

	#============================
	def _add_audio_sequence(self, items: list) -> Label:
		labels = []
		for index, item in enumerate(items):
			binding = self._bind_input(item.path)
			duration = item.duration
			if duration <= 0:
				raise CompilationInvariantViolation(
					f"audio item duration not resolved: {item.path}")
			fade = min(self.transition, duration / 2.0)
			label = self._labels.issue(LabelKind.AUDIO_ITEM, index)
			steps = [
				FilterStep('atrim', 0, duration),
				FilterStep('asetpts', 'PTS-STARTPTS'),
				FilterStep('afade', t='in', st=0, d=fade),
				FilterStep('afade', t='out', st=max(0.0, duration - fade), d=fade),
				self._audio_format(),
			]
			self._nodes.append(FilterNode([StreamRef(binding.index, 'a')], steps, label))
			labels.append(label)
		if len(labels) == 1:
			return labels[0]
		label = self._labels.issue(LabelKind.AUDIO_SEQUENCE)
		step = FilterStep('concat', n=len(labels), v=0, a=1)
		self._nodes.append(FilterNode(labels, [step], label))
		return label

	#============================
	def _add_silence_fill(self, duration: float) -> Label:
		length = max(0.5, duration)
		binding = self._bind_input(SILENCE_SOURCE,
			['-f', 'lavfi', '-t', utils.format_seconds(length)], synthetic=True)
		label = self._labels.issue(LabelKind.SILENCE_FILL)
		steps = [
			FilterStep('atrim', 0, length),
			FilterStep('asetpts', 'PTS-STARTPTS'),
			self._audio_format(),
		]
		self._nodes.append(FilterNode([StreamRef(binding.index, 'a')], steps, label))
		return label

	#============================
	def _finalize_video(self, current: Label) -> Label:
		label = self._labels.issue(LabelKind.VIDEO_OUT)
		steps = [
			FilterStep('fps', self.fps),
			FilterStep('format', PIXEL_FORMAT),
			FilterStep('setsar', 1),
		]
		self._nodes.append(FilterNode([current], steps, label))
		return label

#============================================

def crossfade_offsets(durations: list, transition: float) -> list:
	"""
	Start time of each cross-fade in a left fold over the segments.

	The fade into segment i starts one transition length before the end of
	the segments that precede it, never before zero.
	"""
	offsets = []
	cumulative = 0.0
	for index in range(1, len(durations)):
		cumulative += durations[index - 1]
		offsets.append(max(0.0, cumulative - transition))
	return offsets

#============================================

def compile_timeline(timeline: Timeline) -> CompiledGraph:
	return FilterGraphBuilder(timeline).build()
