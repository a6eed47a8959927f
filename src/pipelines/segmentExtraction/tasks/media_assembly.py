import json
import logging
from typing import List, Optional

from opentelemetry.trace import Tracer
from pydantic import ValidationError

from lib.utils.media import seconds_to_hhmmss, split_hhmmss, hhmmss_to_seconds
from lib.utils.metrics_collector import MetricsCollector
from src.pipeline.command import BaseCommand
from src.pipeline.context import CTX_OUT, PipelineContext
from src.pipelines.segmentExtraction.schema import Media, MediaSummary, Segment, Segments

logger = logging.getLogger(__name__)


def correct_timestamp(timestamp_str: str, video_length: int) -> str:
    """
    Fix an HH:MM:SS timestamp that lies past the end of the video.

    Gemini regularly writes MM:SS as HH:MM (45 minutes 30 seconds becomes
    "45:30:00"), so an out of range value is first read as 00:HH:MM. Values
    still out of range are clamped to the video length. Anything that is not
    three integer components is returned untouched.
    """
    try:
        h, m, s = split_hhmmss(timestamp_str)
    except ValueError:
        return timestamp_str

    if h * 3600 + m * 60 + s <= video_length:
        return timestamp_str

    if h * 60 + m <= video_length:
        return f"00:{h:02d}:{m:02d}"

    logger.debug(f"[FIX] Clamping {timestamp_str} to video length {video_length}s")
    return seconds_to_hhmmss(video_length)


def _start_sort_key(segment: Segment) -> int:
    # Unparsable starts sort first
    try:
        return hhmmss_to_seconds(segment.start)
    except ValueError:
        return 0


def parse_segments(json_segments: List[str]) -> List[Segment]:
    """
    Parse the raw payloads as one JSON array. A payload holding an array of
    segments is flattened into the batch. Raises json.JSONDecodeError or
    pydantic.ValidationError when the combined document is malformed.
    """
    items = json.loads(f"[ {','.join(json_segments)} ]")
    flat = []
    for item in items:
        if isinstance(item, list):
            flat.extend(item)
        else:
            flat.append(item)
    return Segments.model_validate(flat).root


def default_segment(summary: MediaSummary, media_length: int) -> Segment:
    return Segment(
        sequence_number=0,
        start="00:00:00",
        end=seconds_to_hhmmss(media_length),
        script=summary.summary,
    )


def build_timeline(segments: List[Segment], summary: MediaSummary, media_length: int) -> List[Segment]:
    """Fallback, timestamp repair, chronological sort and re-sequencing. Never raises."""
    if not segments:
        logger.info("[INFO] No segments extracted, using the summary as a single segment")
        segments = [default_segment(summary, media_length)]

    for segment in segments:
        segment.start = correct_timestamp(segment.start, media_length)
        segment.end = correct_timestamp(segment.end, media_length)

    segments = sorted(segments, key=_start_sort_key)
    for i, segment in enumerate(segments):
        segment.sequence_number = i
    return segments


def assemble_media(summary: MediaSummary, segments: List[Segment], media_length: int) -> Media:
    media = Media.create(summary.title)
    media.category = summary.category
    media.summary = summary.summary
    media.media_url = summary.media_url
    media.length_in_seconds = media_length
    media.director = summary.director
    media.release_year = summary.release_year
    media.genre = summary.genre
    media.rating = summary.rating
    media.cast = [c.model_copy() for c in summary.cast]
    media.segments = list(segments)
    return media


class MediaAssembly(BaseCommand):
    def __init__(
        self,
        name: str,
        summary_param: str,
        segment_param: str,
        media_param: str,
        media_length_param: str,
        metrics: Optional[MetricsCollector] = None,
        tracer: Optional[Tracer] = None,
    ):
        super().__init__(name, summary_param, media_param, metrics, tracer)
        self.summary_param = summary_param
        self.segment_param = segment_param
        self.media_param = media_param
        self.media_length_param = media_length_param

    def is_executable(self, context: PipelineContext) -> bool:
        return (
            context is not None
            and context.get(self.summary_param) is not None
            and context.get(self.segment_param) is not None
        )

    def execute(self, context: PipelineContext) -> Optional[Media]:
        summary: MediaSummary = context.get(self.summary_param)
        json_segments: List[str] = context.get(self.segment_param)
        media_length: int = context.get(self.media_length_param, summary.length_in_seconds)

        with self.metrics.track_step(self.name):
            try:
                segments = parse_segments(json_segments)
            except (json.JSONDecodeError, ValidationError) as e:
                logger.error(f"[ERROR] Could not parse {len(json_segments)} segment payloads: {e}")
                self.record_failure(context, e)
                return None

            segments = build_timeline(segments, summary, media_length)
            media = assemble_media(summary, segments, media_length)

        self.record_success()
        logger.info(f"[INFO] Assembled media {media.id} with {len(media.segments)} segments")

        context.add(self.media_param, media)
        context.add(CTX_OUT, media)
        return media
