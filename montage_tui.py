#!/usr/bin/env python3

"""
Textual TUI wrapper for montage renders.
"""

# Standard Library
import argparse
import os
import re
import shlex
import sys
import threading
import time
import traceback

script_dir = os.path.dirname(os.path.abspath(__file__))
repo_root = script_dir
if repo_root not in sys.path:
	sys.path.insert(0, repo_root)

# PIP3 modules
from textual.app import App, ComposeResult
from textual.containers import Horizontal, Vertical
from textual.widgets import RichLog, Static
from rich.text import Text

# local repo modules
from montagelib.core import utils
from montagelib.core.config import load_config
from montagelib.core.project import MontageProject
from montagelib.core.serializer import EncodeOptions

#============================================

NORD_COLORS = {
	'background': "#2E3440",
	'foreground': "#D8DEE9",
	'dim': "#4C566A",
	'header': "#88C0D0",
	'command': "#ECEFF4",
	'flags': "#81A1C1",
	'numbers': "#B48EAD",
	'paths': "#A3BE8C",
	'strings': "#EBCB8B",
	'error': "#BF616A",
}

# lines of ffmpeg stderr shown in the log when a command fails
DIAGNOSTIC_TAIL = 20

#============================================

def parse_args():
	"""
	Parse command-line arguments.
	"""
	parser = argparse.ArgumentParser(description="montage TUI wrapper")
	parser.add_argument('-y', '--yaml', dest='yamlfile', required=True,
		help='project yaml file describing the timeline to render')
	parser.add_argument('-o', '--output', dest='output_file',
		help='override the computed output path')
	parser.add_argument('-r', '--root', dest='root_path',
		help='root folder holding TrackManager/Processed')
	parser.add_argument('-s', '--settings', dest='settings_file',
		help='settings yaml file')
	parser.add_argument('-n', '--dry-run', dest='dry_run', action='store_true',
		help='validate only, do not render')
	parser.add_argument('--two-pass', dest='two_pass_bitrate', metavar='BITRATE',
		help='two-pass encode at the given video bitrate, e.g. 2M')
	parser.add_argument('--fast', dest='fast', action='store_true',
		help='use the ultrafast preset')
	parser.add_argument('-d', '--debug', dest='debug_log', action='store_true',
		help='write debug log to montage_tui.log in the current directory')
	args = parser.parse_args()
	return args

#============================================

class MontageTuiApp(App):
	BINDINGS = [
		("q", "quit", "Quit"),
	]

	CSS = """
	#root {
		height: 1fr;
	}

	#top_row {
		height: 30%;
		min-height: 8;
	}

	#left_panel {
		width: 40%;
		height: 1fr;
		border: solid gray;
	}

	#right_panel {
		width: 60%;
		height: 1fr;
		border: solid gray;
	}

	#metrics_title {
		height: 1;
		color: #88C0D0;
	}

	#metrics {
		height: 1fr;
	}

	#project_title {
		height: 1;
		color: #88C0D0;
	}

	#project_info {
		height: 1fr;
	}

	#footer_note {
		height: 1;
		color: #4C566A;
	}

	#log {
		height: 1fr;
		border: solid gray;
	}
	"""

	def __init__(self, yaml_file: str, output_override: str = None,
		dry_run: bool = False, config=None, encode: EncodeOptions = None,
		debug_log: bool = False):
		super().__init__()
		self.yaml_file = yaml_file
		self.output_override = output_override
		self.dry_run = dry_run
		self.config = config
		self.encode = encode
		self.command_count = 0
		self.command_total = None
		self.current_summary = ""
		self.segment_count = None
		self.composed_duration = None
		self.start_time = None
		self.finish_time = None
		self.error_text = None
		self.output_file = None
		self.metrics_widget = None
		self.project_widget = None
		self.log_widget = None
		self.finished = False
		self.command_styles = self._build_command_styles()
		self.debug_mode = debug_log
		self.log_path = None
		self.log_lock = threading.Lock()
		if self.debug_mode:
			self.log_path = os.path.join(os.getcwd(), "montage_tui.log")
			self._reset_log()
			self._write_log(f"debug log: {self.log_path}")

	#============================
	def compose(self) -> ComposeResult:
		yield Static("MONTAGE TUI", id="header")
		with Vertical(id="root"):
			with Horizontal(id="top_row"):
				with Vertical(id="left_panel"):
					yield Static("Dashboard", id="metrics_title")
					yield Static("", id="metrics")
					yield Static("Press q to quit", id="footer_note")
				with Vertical(id="right_panel"):
					yield Static("Project", id="project_title")
					yield Static("", id="project_info")
			yield RichLog(id="log", wrap=True, highlight=False)

	#============================
	def on_mount(self) -> None:
		self.metrics_widget = self.query_one("#metrics", Static)
		self.project_widget = self.query_one("#project_info", Static)
		self.log_widget = self.query_one(RichLog)
		self.start_time = time.time()
		self._update_project_info()
		if self.debug_mode and self.log_widget is not None and self.log_path is not None:
			self.log_widget.write(f"debug log: {self.log_path}")
		# ffmpeg blocks, so the render runs off the UI thread
		thread = threading.Thread(target=self._run_project, daemon=True)
		thread.start()
		self.set_interval(0.5, self._refresh_status)

	#============================
	def _refresh_status(self) -> None:
		self._update_metrics()

	#============================
	def _run_project(self) -> None:
		utils.set_quiet_mode(True)
		utils.set_command_reporter(self._report_command)
		try:
			project = MontageProject(self.yaml_file, config=self.config,
				output_override=self.output_override,
				dry_run=self.dry_run,
				encode=self.encode)
			self.output_file = project.output_path()
			self.command_total = project.estimate_command_total()
			utils.set_command_total(self.command_total)
			invocations = project.compile()
			self.segment_count = len(project.resolved.segments)
			self.composed_duration = project.graph.duration
			self.call_from_thread(self._set_plan_ready, len(invocations))
			project.run(invocations)
		except Exception as exc:
			self.call_from_thread(self._set_error, str(exc), traceback.format_exc())
		finally:
			utils.set_command_total(None)
			utils.clear_command_reporter()
			utils.set_quiet_mode(False)
			self.call_from_thread(self._finish)

	#============================
	def _set_error(self, text: str, trace_text: str = None) -> None:
		self.error_text = text
		if trace_text:
			self._write_log(trace_text)
		if self.log_widget is not None:
			self.log_widget.write(
				Text(f"error: {text}", style=f"bold {NORD_COLORS['error']}")
			)

	#============================
	def _finish(self) -> None:
		if self.log_widget is None or self.metrics_widget is None:
			return
		self.finished = True
		if self.start_time is not None and self.finish_time is None:
			self.finish_time = time.time() - self.start_time
		if self.error_text is None:
			if self.dry_run or self.output_file is None:
				self.log_widget.write("complete")
				self._write_log("complete")
			else:
				self.log_widget.write(f"complete: {self.output_file}")
				self._write_log(f"complete: {self.output_file}")
		else:
			self.log_widget.write("complete with errors")
			self._write_log("complete with errors")
		self._update_metrics()
		self._update_project_info()

	#============================
	def _report_command(self, event: dict) -> None:
		self.call_from_thread(self._handle_command_event, event)

	#============================
	def _handle_command_event(self, event: dict) -> None:
		if self.log_widget is None:
			return
		event_type = event.get('event')
		command = event.get('command', '')
		summary = self._summarize_command(command)
		if event_type == 'start':
			self.command_count = event.get('index', self.command_count + 1)
			self.command_total = event.get('total', self.command_total)
			self.current_summary = summary
			prefix = utils.command_prefix(self.command_count, self.command_total)
			if prefix:
				self.log_widget.write("")
				self.log_widget.write(Text(prefix, style=f"bold {NORD_COLORS['header']}"))
			self.log_widget.write(self._highlight_command(command))
			self._write_log(f"start: {command}")
			self._update_metrics()
		if event_type == 'end' and event.get('returncode', 0) != 0:
			code = event.get('returncode')
			self.log_widget.write(
				Text(f"error ({code}): {summary}", style=f"bold {NORD_COLORS['error']}")
			)
			for line in self._diagnostic_tail(event.get('stderr', '')):
				self.log_widget.write(Text(line, style=NORD_COLORS['dim']))
			self._write_log(f"error ({code}): {command}")
			self._write_log(event.get('stderr', ''))
			self._update_metrics()
		if event_type == 'end' and event.get('returncode', 0) == 0:
			seconds = event.get('seconds', 0.0)
			self._write_log(f"end ({seconds:.3f}s): {command}")
			self._update_metrics()

	#============================
	def _diagnostic_tail(self, stderr_text: str) -> list:
		if not stderr_text:
			return []
		lines = [line for line in stderr_text.splitlines() if line.strip() != '']
		return lines[-DIAGNOSTIC_TAIL:]

	#============================
	def _write_log(self, message: str) -> None:
		if not self.debug_mode or self.log_path is None:
			return
		timestamp = time.strftime("%Y-%m-%d %H:%M:%S")
		line = f"[{timestamp}] {message}\n"
		with self.log_lock:
			with open(self.log_path, "a", encoding="utf-8") as handle:
				handle.write(line)

	#============================
	def _reset_log(self) -> None:
		if not self.debug_mode or self.log_path is None:
			return
		with self.log_lock:
			with open(self.log_path, "w", encoding="utf-8"):
				return

	#============================
	def _summarize_command(self, command: str) -> str:
		if command is None or command == "":
			return "command"
		try:
			parts = shlex.split(command)
		except ValueError:
			return command
		if len(parts) == 0:
			return command
		tool = os.path.basename(parts[0])
		pass_number = None
		if "-pass" in parts:
			index = parts.index("-pass")
			if index + 1 < len(parts):
				pass_number = parts[index + 1]
		output_file = None
		if len(parts) > 1:
			output_file = os.path.basename(parts[-1])
		if output_file is None:
			return f"{tool}: {command}"
		if pass_number is not None:
			return f"{tool} pass {pass_number}: {output_file}"
		return f"{tool}: {output_file}"

	#============================
	def _update_metrics(self) -> None:
		if self.metrics_widget is None:
			return
		if self.start_time is None:
			elapsed = 0.0
		elif self.finished:
			elapsed = self.finish_time or (time.time() - self.start_time)
		else:
			elapsed = time.time() - self.start_time
		if self.error_text is not None:
			status = "failed"
		elif self.finished:
			status = "done"
		else:
			status = "running"
		metrics = Text()
		status_style = NORD_COLORS['foreground']
		if status == "failed":
			status_style = NORD_COLORS['error']
		elif status == "done":
			status_style = NORD_COLORS['paths']
		metrics.append("Status: ", style=NORD_COLORS['dim'])
		metrics.append(status, style=status_style)
		metrics.append("\n")
		metrics.append("Elapsed: ", style=NORD_COLORS['dim'])
		metrics.append(self._format_duration(elapsed), style=NORD_COLORS['numbers'])
		metrics.append("\n")
		metrics.append("Commands: ", style=NORD_COLORS['dim'])
		metrics.append(f"{self.command_count}", style=NORD_COLORS['numbers'])
		if self.command_total:
			metrics.append(f"/{self.command_total}", style=NORD_COLORS['numbers'])
		metrics.append("\n")
		metrics.append("Current: ", style=NORD_COLORS['dim'])
		metrics.append(self.current_summary, style=NORD_COLORS['foreground'])
		self.metrics_widget.update(metrics)

	#============================
	def _update_project_info(self) -> None:
		if self.project_widget is None:
			return
		project = Text()
		project.append("Project: ", style=NORD_COLORS['dim'])
		project.append(self.yaml_file, style=NORD_COLORS['paths'])
		project.append("\n")
		output_value = self.output_override or self.output_file or "N/A"
		project.append("Output: ", style=NORD_COLORS['dim'])
		output_style = NORD_COLORS['paths']
		if output_value == "N/A":
			output_style = NORD_COLORS['dim']
		project.append(output_value, style=output_style)
		project.append("\n")
		project.append("Segments: ", style=NORD_COLORS['dim'])
		if self.segment_count is None:
			project.append("N/A", style=NORD_COLORS['dim'])
		else:
			project.append(f"{self.segment_count}", style=NORD_COLORS['numbers'])
		project.append("\n")
		project.append("Duration: ", style=NORD_COLORS['dim'])
		if self.composed_duration is None:
			project.append("N/A", style=NORD_COLORS['dim'])
		else:
			project.append(self._format_duration(self.composed_duration),
				style=NORD_COLORS['numbers'])
		project.append("\n")
		project.append("Dry run: ", style=NORD_COLORS['dim'])
		project.append(
			"yes" if self.dry_run else "no",
			style=NORD_COLORS['paths'] if self.dry_run else NORD_COLORS['foreground'],
		)
		if self.debug_mode and self.log_path is not None:
			project.append("\n")
			project.append("Debug log: ", style=NORD_COLORS['dim'])
			project.append(self.log_path, style=NORD_COLORS['paths'])
		self.project_widget.update(project)

	#============================
	def _set_plan_ready(self, total: int) -> None:
		if self.log_widget is not None:
			self.log_widget.write(f"Compiled {self.segment_count} segments into {total} command(s)")
		self._write_log(f"command total: {total}")
		self._update_metrics()
		self._update_project_info()

	#============================
	def _build_command_styles(self) -> list:
		return [
			(re.compile(r"\blibx264\b|\blibvpx-vp9\b|\bmpeg4\b|\baac\b|\blibmp3lame\b|\blibopus\b"),
				NORD_COLORS['foreground']),
			(re.compile(r"--?[A-Za-z0-9][A-Za-z0-9_:-]*"), NORD_COLORS['flags']),
			(re.compile(r"\b\d+\.\d+\b"), NORD_COLORS['numbers']),
			(re.compile(r"\b\d+\b(?!\.\d)"), NORD_COLORS['numbers']),
			(re.compile(r"'[^']*'|\"[^\"]*\""), NORD_COLORS['strings']),
			(re.compile(r"(?:/|~|\./|\.\./)[^\s'\"`]+"), NORD_COLORS['paths']),
		]

	#============================
	def _highlight_command(self, command: str):
		if command is None or command == "":
			return ""
		text = Text(command, style=f"bold {NORD_COLORS['command']}")
		for pattern, style in self.command_styles:
			for match in pattern.finditer(command):
				text.stylize(style, match.start(), match.end())
		return text

	#============================
	def _format_duration(self, seconds: float) -> str:
		if seconds < 60:
			return f"{seconds:.1f}s"
		minutes = int(seconds // 60)
		remaining = seconds - (minutes * 60)
		seconds_text = f"{remaining:04.1f}"
		if minutes < 60:
			return f"{minutes}m {seconds_text}s"
		hours = int(minutes // 60)
		minutes = minutes - (hours * 60)
		return f"{hours}h {minutes:02d}m {seconds_text}s"

#============================================

def main():
	args = parse_args()
	config = load_config(args.settings_file, root_path=args.root_path)
	encode = None
	if args.two_pass_bitrate is not None or args.fast:
		# output format comes from the project file, read it before the app starts
		project = MontageProject(args.yamlfile, config=config)
		project_format = project.timeline.output_format
		encode = EncodeOptions(output_format=project_format,
			two_pass=args.two_pass_bitrate is not None,
			video_bitrate=args.two_pass_bitrate, fast=args.fast)
	app = MontageTuiApp(args.yamlfile,
		output_override=args.output_file,
		dry_run=args.dry_run,
		config=config,
		encode=encode,
		debug_log=args.debug_log)
	app.run()

#============================================

if __name__ == '__main__':
	main()
