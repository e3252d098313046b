#!/usr/bin/env python3
"""
Command-line entry point for the subfix subtitle app.
"""
import sys
import asyncio
import logging
import argparse
import mimetypes
from pathlib import Path

from subfix_app.config import GOOGLE_API_KEY, Status
from subfix_app.controllers.editor_ctrl import EditorController
from subfix_app.controllers.pipeline_ctrl import PipelineController
from subfix_app.core.errors import SubfixError
from subfix_app.core.model_client import ModelClient
from subfix_app.data.job_store import JobStore

logger = logging.getLogger(__name__)


# Configure logging
def setup_logging(verbose=False):
    """Set up logging configuration."""
    log_level = logging.DEBUG if verbose else logging.INFO
    log_format = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

    # Configure root logger
    logging.basicConfig(
        level=log_level,
        format=log_format,
        handlers=[
            logging.StreamHandler(),
            logging.FileHandler(Path.home() / '.subfix.log')
        ]
    )

    # Set more restrictive log level for noisy libraries
    logging.getLogger('httpx').setLevel(logging.WARNING)
    logging.getLogger('google_genai').setLevel(logging.WARNING)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Generate and review subtitles for an MP3/MP4 file')
    parser.add_argument('file', type=Path, help='Audio or video file to transcribe')
    parser.add_argument('-c', '--context', help='Up to 100 words on topic, names and terminology')
    parser.add_argument('-o', '--output', type=Path, help='Where to write the .srt (default: next to the input)')
    parser.add_argument('--apply-suggestions', action='store_true',
                        help='Accept every remaining suggestion before exporting')
    parser.add_argument('-v', '--verbose', action='store_true', help='Enable verbose logging')
    return parser


async def run(args, client=None) -> int:
    """Run one file through the pipeline and export it. Returns an exit code."""
    media = args.file
    if not media.exists():
        logger.error("File not found: %s", media)
        return 2

    store = JobStore()
    pipeline = PipelineController(store, client or ModelClient())
    editor = EditorController(store)

    mime_type = mimetypes.guess_type(media.name)[0] or "application/octet-stream"
    try:
        job = pipeline.create_job(
            media.name, media.stat().st_size, mime_type, media,
            context=args.context, owns_file=False,
            progress_cb=lambda status, pct: logger.info("%-12s %3d%%", status, pct),
        )
    except SubfixError as e:
        logger.error("%s", e)
        return 2

    job = await pipeline.wait(job.id)
    if job.status != Status.COMPLETED:
        logger.error("Job failed: %s", job.error_message)
        return 1

    open_issues = [a for a in job.anomalies if not a.resolved]
    for anomaly in job.anomalies:
        state = "fixed" if anomaly.resolved else "open "
        print(f"[{state}] #{anomaly.segment_id} {anomaly.type}: "
              f"{anomaly.flagged_text!r} -> {anomaly.suggestion!r} ({anomaly.confidence:.2f})")

    if args.apply_suggestions:
        applied = editor.apply_corrections(job.id, [(a.id, a.suggestion) for a in open_issues])
        logger.info("Applied %d suggestion(s)", applied)

    file_name, _ = editor.export_srt(job.id)
    dest = args.output or media.with_name(file_name)
    editor.write_srt(job.id, dest)
    print(dest)
    return 0


def main(argv=None):
    """Main entry point."""
    args = build_parser().parse_args(argv)
    setup_logging(args.verbose)

    logger.info("Starting subfix")
    if not GOOGLE_API_KEY:
        logger.warning("GOOGLE_API_KEY is not set. Model calls will fail.")

    sys.exit(asyncio.run(run(args)))


if __name__ == '__main__':
    main()
