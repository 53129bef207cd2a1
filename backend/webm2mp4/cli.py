#!/usr/bin/env python3
"""
webm2mp4 CLI - Thin entrypoint for the converter.

Commands:
- serve:   Run the local control API
- convert: Convert one WebM file headlessly

Design Principles:
==================
- CLI is a dispatcher only
- Conversion logic lives in the controller, never here
- Surface errors verbatim from the controller
- Exit non-zero on failure
- No interactive prompts

Exit Codes:
===========
- 0: Success
- 1: Validation error (wrong declared file type)
- 2: Conversion error
- 3: Engine load error
- 4: System error (file not found, permissions, etc.)
"""

import argparse
import asyncio
import logging
import mimetypes
import sys
from pathlib import Path
from typing import List, Optional

from .config import ConverterSettings
from .execution.formats import SOURCE_EXTENSION, SOURCE_MEDIA_TYPE
from .jobs.models import Job, JobStatus, SourceFile
from .main import build_controller, create_app

EXIT_SUCCESS = 0
EXIT_VALIDATION_ERROR = 1
EXIT_CONVERSION_ERROR = 2
EXIT_ENGINE_ERROR = 3
EXIT_SYSTEM_ERROR = 4

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


def _guess_media_type(path: Path) -> str:
    """Declared type for a local file: its extension, nothing else."""
    if path.suffix.lower() == SOURCE_EXTENSION:
        return SOURCE_MEDIA_TYPE
    guessed, _ = mimetypes.guess_type(path.name)
    return guessed or "application/octet-stream"


def _settings_from_args(args: argparse.Namespace) -> ConverterSettings:
    settings = ConverterSettings.from_env()
    changes = {"ffmpeg_path": args.ffmpeg, "log_level": args.log_level}
    if args.ffmpeg:
        changes["bootstrap_strategy"] = "explicit"
    return settings.with_overrides(**changes)


def _print_progress(job: Job) -> None:
    if job.status == JobStatus.CONVERTING:
        print(f"\r  Converting... {job.progress_percent:3d}%", end="", file=sys.stderr, flush=True)
    elif job.status == JobStatus.SUCCEEDED:
        print(f"\r  Converting... {job.progress_percent:3d}%", file=sys.stderr, flush=True)


async def _run_convert(source: SourceFile, output_dir: Path, settings: ConverterSettings, force: bool) -> int:
    controller = build_controller(settings)
    controller.subscribe(_print_progress)
    controller.notifications.subscribe(
        lambda n: print(f"\n✗ {n.title}: {n.description}", file=sys.stderr)
    )

    try:
        job = await controller.start()
        if job.engine_failed:
            return EXIT_ENGINE_ERROR

        if not controller.select_file(source):
            return EXIT_VALIDATION_ERROR

        job = await controller.convert()
        if job.status != JobStatus.SUCCEEDED or job.output_handle is None:
            if job.failure_reason:
                print(f"  Reason: {job.failure_reason}", file=sys.stderr)
            return EXIT_CONVERSION_ERROR

        handle, data = controller.handles.fetch(job.output_handle.token)
        target = output_dir / handle.filename
        if target.exists() and not force:
            print(f"ERROR: Output already exists: {target} (use --force)", file=sys.stderr)
            return EXIT_SYSTEM_ERROR

        try:
            output_dir.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
        except OSError as e:
            print(f"ERROR: Cannot write {target}: {e}", file=sys.stderr)
            return EXIT_SYSTEM_ERROR

        print(f"✓ Converted {source.name} → {target} ({handle.size_bytes} bytes)")
        return EXIT_SUCCESS
    finally:
        await controller.teardown()


def cmd_convert(args: argparse.Namespace) -> int:
    source_path = Path(args.source).expanduser().resolve()
    if not source_path.is_file():
        print(f"ERROR: Source file not found: {source_path}", file=sys.stderr)
        return EXIT_SYSTEM_ERROR

    try:
        data = source_path.read_bytes()
    except OSError as e:
        print(f"ERROR: Cannot read {source_path}: {e}", file=sys.stderr)
        return EXIT_SYSTEM_ERROR

    source = SourceFile(
        name=source_path.name,
        media_type=args.media_type or _guess_media_type(source_path),
        data=data,
    )
    output_dir = Path(args.output_dir).expanduser() if args.output_dir else source_path.parent

    settings = _settings_from_args(args)
    return asyncio.run(_run_convert(source, output_dir, settings, args.force))


def cmd_serve(args: argparse.Namespace) -> int:
    import uvicorn

    settings = _settings_from_args(args).with_overrides(host=args.host, port=args.port)
    logger.info(f"Serving on http://{settings.host}:{settings.port}")
    uvicorn.run(
        create_app(settings),
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )
    return EXIT_SUCCESS


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="webm2mp4",
        description="Convert WebM video to MP4 locally with ffmpeg.",
    )
    parser.add_argument("--ffmpeg", help="Explicit ffmpeg binary (skips PATH discovery)")
    parser.add_argument("--log-level", default=None, help="Logging level (default: INFO)")

    subparsers = parser.add_subparsers(dest="command", required=True)

    convert = subparsers.add_parser("convert", help="Convert one WebM file")
    convert.add_argument("source", help="Path to the .webm file")
    convert.add_argument("-o", "--output-dir", help="Directory for the .mp4 (default: next to source)")
    convert.add_argument("--media-type", help="Declared media type (default: from extension)")
    convert.add_argument("--force", action="store_true", help="Overwrite an existing output file")
    convert.set_defaults(func=cmd_convert)

    serve = subparsers.add_parser("serve", help="Run the local control API")
    serve.add_argument("--host", default=None)
    serve.add_argument("--port", type=int, default=None)
    serve.set_defaults(func=cmd_serve)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = _settings_from_args(args)
    except ValueError as e:
        print(f"ERROR: Invalid configuration: {e}", file=sys.stderr)
        return EXIT_SYSTEM_ERROR

    configure_logging(settings.log_level)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
