import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from lib.utils.media import get_video_duration
from lib.utils.tracing import configure_tracing
from src.config import (
    DEFAULT_CONTENT_TYPE,
    OTEL_EXPORTER_ENDPOINT,
    OTEL_SERVICE_NAME,
    OUTPUTS_DIR,
    SEGMENT_WORKERS,
    ensure_local_directories,
)
from src.pipelines.segmentExtraction.schema import MediaObject, MediaSummary
from src.pipelines.segmentExtraction.segmentExtractionPipeline import SegmentExtractionPipeline

# --- Initialize logging ---
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def load_summary(path: str) -> MediaSummary:
    with open(path, "r", encoding="utf-8") as f:
        return MediaSummary.model_validate(json.load(f))


def resolve_length(args, summary: MediaSummary) -> int:
    if args.length is not None:
        return args.length
    if summary.length_in_seconds:
        return summary.length_in_seconds
    if args.video:
        return int(get_video_duration(args.video))
    raise ValueError("Media length unknown: pass --length, --video or set lengthInSeconds in the summary")


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Extract a time-segmented script from a media asset.")
    parser.add_argument("summary", help="Path to the media summary JSON")
    parser.add_argument("--media", help="gs:// URI of the media asset (defaults to the summary's mediaUrl)")
    parser.add_argument("--mime-type", default="video/mp4")
    parser.add_argument("--content-type", default=DEFAULT_CONTENT_TYPE, help="Prompt template to use")
    parser.add_argument("--length", type=int, help="Media length in seconds")
    parser.add_argument("--video", help="Local copy of the media, probed with ffprobe for its length")
    parser.add_argument("--workers", type=int, default=SEGMENT_WORKERS)
    parser.add_argument("--output", help="Where to write the media JSON")
    parser.add_argument("--metrics", help="Where to write the metrics report JSON")
    return parser.parse_args(argv)


async def main(argv=None) -> int:
    args = parse_args(argv)
    configure_tracing(OTEL_SERVICE_NAME, OTEL_EXPORTER_ENDPOINT)
    ensure_local_directories()

    summary = load_summary(args.summary)
    try:
        media_object = MediaObject.from_uri(args.media or summary.media_url, args.mime_type)
        length = resolve_length(args, summary)
    except ValueError as e:
        logger.error(f"[ERROR] {e}")
        return 1

    pipeline = SegmentExtractionPipeline(number_of_workers=args.workers)
    media = await pipeline.run(summary, media_object, args.content_type, length)

    for stage, errs in pipeline.context.errors.items():
        for err in errs:
            logger.error(f"[ERROR] {stage}: {err}")

    pipeline.metrics.print_report()
    if args.metrics:
        pipeline.metrics.write_report(args.metrics)

    if media is None:
        logger.error("[FAILURE] No media assembled")
        return 1

    output_path = Path(args.output or OUTPUTS_DIR / f"{Path(args.summary).stem}_media.json")
    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, "w", encoding="utf-8") as f:
        f.write(media.model_dump_json(by_alias=True, indent=2))
    logger.info(f"[SUCCESS] Saved media {media.id} with {len(media.segments)} segments to {output_path}")
    return 0


def cli():
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    cli()
