import logging
from typing import Optional

from opentelemetry import trace
from opentelemetry.trace import Tracer

from lib.llm.GeminiGenaiManager import GeminiGenaiManager
from lib.utils.metrics_collector import MetricsCollector
from src.config import SEGMENT_WORKERS, DEFAULT_CONTENT_TYPE
from src.pipeline.context import PipelineContext
from src.pipelines.segmentExtraction.schema import Media, MediaObject, MediaSummary
from src.pipelines.segmentExtraction.tasks.media_assembly import MediaAssembly
from src.pipelines.segmentExtraction.tasks.segment_extractor import SegmentExtractor
from src.pipelines.segmentExtraction.templates import TemplateService

logger = logging.getLogger(__name__)

SUMMARY_PARAM = "summary"
MEDIA_OBJECT_PARAM = "media_object"
CONTENT_TYPE_PARAM = "content_type"
SEGMENTS_PARAM = "segments"
MEDIA_LENGTH_PARAM = "media_length"
MEDIA_PARAM = "media"


class SegmentExtractionPipeline:
    """
    Extracts a time-segmented script from a media asset.

    Runs the segment extractor (one Gemini call per time window of the summary)
    followed by media assembly (parse, repair, sort, re-sequence). Each run gets
    its own context and metrics, so a pipeline object can be reused safely.
    """

    def __init__(
        self,
        llm=None,
        template_service: Optional[TemplateService] = None,
        number_of_workers: int = SEGMENT_WORKERS,
        tracer: Optional[Tracer] = None,
    ):
        self.llm = llm or GeminiGenaiManager()
        self.template_service = template_service or TemplateService()
        self.number_of_workers = number_of_workers
        self.tracer = tracer or trace.get_tracer(__name__)
        self.context: Optional[PipelineContext] = None
        self.metrics: Optional[MetricsCollector] = None

    def _build_commands(self, metrics: MetricsCollector):
        extractor = SegmentExtractor(
            name="segment_extractor",
            llm=self.llm,
            template_service=self.template_service,
            number_of_workers=self.number_of_workers,
            content_type_param=CONTENT_TYPE_PARAM,
            media_object_param=MEDIA_OBJECT_PARAM,
            input_param=SUMMARY_PARAM,
            output_param=SEGMENTS_PARAM,
            metrics=metrics,
            tracer=self.tracer,
        )
        assembly = MediaAssembly(
            name="media_assembly",
            summary_param=SUMMARY_PARAM,
            segment_param=SEGMENTS_PARAM,
            media_param=MEDIA_PARAM,
            media_length_param=MEDIA_LENGTH_PARAM,
            metrics=metrics,
            tracer=self.tracer,
        )
        return extractor, assembly

    async def run(
        self,
        summary: MediaSummary,
        media_object: MediaObject,
        content_type: str = DEFAULT_CONTENT_TYPE,
        media_length: Optional[int] = None,
    ) -> Optional[Media]:
        """
        Returns the assembled Media, or None when a stage could not run or the
        segment payloads could not be parsed. Errors are in self.context.errors.
        """
        self.metrics = MetricsCollector()
        self.context = PipelineContext({
            SUMMARY_PARAM: summary,
            MEDIA_OBJECT_PARAM: media_object,
            CONTENT_TYPE_PARAM: content_type,
            MEDIA_LENGTH_PARAM: summary.length_in_seconds if media_length is None else media_length,
        })
        extractor, assembly = self._build_commands(self.metrics)

        logger.info(f"[INFO] Starting segment extraction for '{summary.title}' ({media_object.uri})")

        if not extractor.is_executable(self.context):
            logger.error("[ERROR] Segment extractor is missing its inputs")
            return None
        await extractor.execute(self.context)

        if not assembly.is_executable(self.context):
            logger.error("[ERROR] Media assembly is missing its inputs")
            return None
        media = assembly.execute(self.context)

        if self.context.has_errors():
            logger.warning(f"[WARN] Segment extraction completed with {self.context.error_count()} errors")
        return media
