#!/usr/bin/env python3

import argparse
import os
import sys
import yaml
from montagelib.core import utils
from montagelib.core.clip import ClipJob
from montagelib.core.clip import ClipOptions
from montagelib.core.clip import CustomCommand
from montagelib.core.clip import output_path_for
from montagelib.core.config import load_config
from montagelib.core.errors import MontageError
from montagelib.core.project import MontageProject
from montagelib.core.runner import PipelineRunner
from montagelib.core.serializer import EncodeOptions

#============================================

def parse_args(argv=None):
	"""
	Parse command-line arguments.
	"""
	parser = argparse.ArgumentParser(description="Timeline to ffmpeg compiler")
	source = parser.add_mutually_exclusive_group(required=True)
	source.add_argument('-y', '--yaml', dest='yamlfile',
		help='project yaml file describing the timeline to render')
	source.add_argument('-i', '--input', dest='input_file',
		help='single media file to trim and re-encode')
	parser.add_argument('-N', '--name', dest='output_name',
		help='output name (without extension) for single file processing')
	parser.add_argument('-o', '--output', dest='output_file',
		help='override the computed output path')
	parser.add_argument('-f', '--format', dest='output_format',
		choices=('mp4', 'mkv', 'avi'), help='output container')
	parser.add_argument('-r', '--root', dest='root_path',
		help='root folder holding TrackManager/Processed')
	parser.add_argument('-s', '--settings', dest='settings_file',
		help='settings yaml file')
	parser.add_argument('-c', '--cache-dir', dest='cache_dir',
		help='directory for two-pass log files')
	parser.add_argument('-j', '--probe-workers', dest='probe_workers', type=int,
		help='number of concurrent ffprobe processes')
	parser.add_argument('-n', '--dry-run', dest='dry_run', action='store_true',
		help='validate and print the ffmpeg commands, do not run them')
	parser.add_argument('-p', '--dump-plan', dest='dump_plan', action='store_true',
		help='print the compiled filter graph as yaml')
	parser.add_argument('-k', '--keep-temp', dest='keep_temp', action='store_true',
		help='keep two-pass log files')
	parser.add_argument('-q', '--quiet', dest='quiet', action='store_true',
		help='do not echo commands')
	encode = parser.add_argument_group('encoding')
	encode.add_argument('--two-pass', dest='two_pass_bitrate', metavar='BITRATE',
		help='two-pass encode at the given video bitrate, e.g. 2M')
	encode.add_argument('--fast', dest='fast', action='store_true',
		help='use the ultrafast preset')
	encode.add_argument('--vp9', dest='vp9_crf', type=int, metavar='CRF',
		help='encode video with libvpx-vp9 at the given crf')
	clip = parser.add_argument_group('single file processing')
	clip.add_argument('--start', dest='start', help='trim start, seconds or HH:MM:SS')
	clip.add_argument('--end', dest='end', help='trim end, seconds or HH:MM:SS')
	clip.add_argument('--crop', dest='crop', help='crop expression w:h:x:y')
	clip.add_argument('--scale', dest='scale', help='scale expression w:h')
	clip.add_argument('--alpha', dest='alpha', action='store_true',
		help='key out black into an alpha channel')
	clip.add_argument('--fps', dest='fps', help='change the output frame rate')
	clip.add_argument('--remove-audio', dest='remove_audio', action='store_true',
		help='drop the audio stream')
	clip.add_argument('--opus', dest='extract_opus', action='store_true',
		help='extract the audio to opus')
	clip.add_argument('--custom', dest='custom_template',
		help='raw ffmpeg arguments with {input} and {output} placeholders')
	args = parser.parse_args(argv)
	return args

#============================================

def build_encode_options(args, output_format: str) -> EncodeOptions:
	return EncodeOptions(
		output_format=output_format,
		two_pass=args.two_pass_bitrate is not None,
		video_bitrate=args.two_pass_bitrate,
		fast=args.fast,
		vp9=args.vp9_crf is not None,
		vp9_crf=args.vp9_crf if args.vp9_crf is not None else 31,
	)

#============================================

def run_project(args, config) -> None:
	project = MontageProject(args.yamlfile, config=config,
		output_override=args.output_file, dry_run=args.dry_run,
		keep_temp=args.keep_temp)
	if args.output_format is not None:
		project.encode = build_encode_options(args, args.output_format)
	else:
		project.encode = build_encode_options(args, project.timeline.output_format)
	if args.dump_plan:
		print(yaml.safe_dump(project.plan(), sort_keys=False))
		return
	project.run()

#============================================

def run_single_file(args, config) -> None:
	output_format = args.output_format or 'mp4'
	if args.output_file is not None:
		output_path = args.output_file
	else:
		output_path = output_path_for(config.processed_dir, args.output_name,
			output_format)
	if args.custom_template is not None:
		invocations = CustomCommand(args.custom_template, args.input_file,
			output_path).invocations()
	else:
		encode = build_encode_options(args, output_format)
		if encode.two_pass:
			directory = config.cache_dir or os.path.dirname(output_path)
			encode.pass_log_prefix = os.path.join(directory, ".clip-passlog")
		options = ClipOptions(crop=args.crop, scale=args.scale, alpha=args.alpha,
			fps=args.fps, remove_audio=args.remove_audio,
			extract_opus=args.extract_opus)
		invocations = ClipJob(args.input_file, output_path, start=args.start,
			end=args.end, encode=encode, options=options).invocations()
	if args.dry_run or args.dump_plan:
		for invocation in invocations:
			print(invocation.command_line(config.ffmpeg_bin))
		return
	output_dir = os.path.dirname(output_path)
	if output_dir and not os.path.exists(output_dir):
		os.makedirs(output_dir)
	runner = PipelineRunner(config.ffmpeg_bin)
	result = runner.run_passes(invocations)
	result.raise_for_status()
	if not utils.is_quiet_mode():
		print(f"mpv {output_path}")

#============================================

def main(argv=None):
	args = parse_args(argv)
	utils.set_quiet_mode(args.quiet)
	try:
		config = load_config(args.settings_file, root_path=args.root_path,
			cache_dir=args.cache_dir, probe_workers=args.probe_workers)
		if args.yamlfile is not None:
			run_project(args, config)
		else:
			run_single_file(args, config)
	except MontageError as exc:
		print(f"error: {exc}", file=sys.stderr)
		sys.exit(1)


if __name__ == '__main__':
	main()
