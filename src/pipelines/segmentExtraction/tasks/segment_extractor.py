"""
Fans out one Gemini request per time window of a media summary and collects
the raw segment payloads.

A fixed pool of worker coroutines drains a shared job queue; each worker hands
the blocking Gemini call to a thread with asyncio.to_thread. Every job puts
exactly one SegmentResult on the result queue (success, empty or failure), and
the aggregation only starts once every worker has finished.
"""
import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import List, Optional

from opentelemetry.trace import Span, Status, StatusCode, Tracer

from lib.utils.metrics_collector import MetricsCollector
from src.pipeline.command import BaseCommand
from src.pipeline.context import CTX_OUT, PipelineContext
from src.pipelines.segmentExtraction.schema import (
    MediaObject,
    MediaSummary,
    Segment,
    TimeSpan,
    get_example_segment,
)
from src.pipelines.segmentExtraction.templates import TemplateService

logger = logging.getLogger(__name__)

EMPTY_OBJECT = "{}"


@dataclass
class SegmentJob:
    sequence: int
    time_span: TimeSpan
    prompt: Optional[str] = None
    media: Optional[MediaObject] = None
    span: Optional[Span] = None
    err: Optional[Exception] = None

    def close(self, status: StatusCode, description: str = ""):
        if self.span is None:
            return
        if status == StatusCode.ERROR:
            self.span.set_status(Status(status, description))
        else:
            self.span.set_status(Status(status))
        self.span.end()
        self.span = None


@dataclass
class SegmentResult:
    sequence: int
    time_span: TimeSpan
    value: str = ""
    err: Optional[Exception] = None
    empty: bool = False

    @property
    def ok(self) -> bool:
        return self.err is None and not self.empty


@dataclass
class DispatchOutcome:
    """What the aggregation hands back: raw payloads in arrival order plus the failures."""
    payloads: List[str] = field(default_factory=list)
    failures: List[SegmentResult] = field(default_factory=list)
    empty: int = 0


def build_summary_document(summary: MediaSummary) -> str:
    cast = "".join(f"{c.character_name} - {c.actor_name}\n" for c in summary.cast)
    return f"Title:{summary.title}\nSummary:\n\n{summary.summary}\nCast:\n\n{cast}\n"


def is_empty_response(text: Optional[str]) -> bool:
    """True for a blank reply or one that decodes to an empty JSON object, however padded."""
    if text is None or not text.strip():
        logger.debug("[INFO] Gemini returned a blank response")
        return True
    stripped = text.strip()
    if stripped != EMPTY_OBJECT:
        try:
            decoded = json.loads(stripped)
        except json.JSONDecodeError:
            # Malformed payloads are the assembler's to reject
            return False
        if decoded != {}:
            return False
    logger.debug("[INFO] Gemini returned an empty object, no script in window")
    return True


def create_job(
    tracer: Tracer,
    command_name: str,
    sequence: int,
    time_span: TimeSpan,
    template_service: TemplateService,
    template_key: str,
    summary_document: str,
    example_json: str,
    media: MediaObject,
) -> SegmentJob:
    """Render the prompt for one window. Rendering errors are kept on the job, not raised."""
    span = tracer.start_span(
        f"{command_name}_genai",
        attributes={
            "sequence": sequence,
            "start": time_span.start,
            "end": time_span.end,
        },
    )
    job = SegmentJob(sequence=sequence, time_span=time_span, media=media, span=span)
    vocabulary = {
        "SEQUENCE": str(sequence),
        "SUMMARY_DOCUMENT": summary_document,
        "TIME_START": time_span.start,
        "TIME_END": time_span.end,
        "EXAMPLE_JSON": example_json,
    }
    try:
        job.prompt = template_service.render(template_key, vocabulary)
    except Exception as e:
        job.err = e
    return job


class SegmentExtractor(BaseCommand):
    def __init__(
        self,
        name: str,
        llm,
        template_service: TemplateService,
        number_of_workers: int,
        content_type_param: str,
        media_object_param: str = "media_object",
        input_param: str = "summary",
        output_param: str = "segments",
        metrics: Optional[MetricsCollector] = None,
        tracer: Optional[Tracer] = None,
    ):
        super().__init__(name, input_param, output_param, metrics, tracer)
        if llm is None:
            raise ValueError("llm is required")
        if template_service is None:
            raise ValueError("template_service is required")
        self.llm = llm
        self.template_service = template_service
        self.number_of_workers = max(1, int(number_of_workers))
        self.content_type_param = content_type_param
        self.media_object_param = media_object_param

    def is_executable(self, context: PipelineContext) -> bool:
        return (
            super().is_executable(context)
            and context.get(self.media_object_param) is not None
        )

    async def _segment_worker(self, worker_id: int, jobs: asyncio.Queue, results: asyncio.Queue):
        while True:
            try:
                job = jobs.get_nowait()
            except asyncio.QueueEmpty:
                return

            if job.err is not None:
                job.close(StatusCode.ERROR, "segment prompt render failed")
                results.put_nowait(SegmentResult(job.sequence, job.time_span, err=job.err))
                continue

            logger.debug(f"[TASK] Worker {worker_id} extracting segment {job.sequence}: "
                         f"{job.time_span.start}-{job.time_span.end}")
            try:
                out = await asyncio.to_thread(
                    self.llm.LLM_request,
                    [job.prompt, job.media],
                    Segment,
                    context=self.name,
                    metrics=self.metrics,
                )
            except Exception as e:
                job.close(StatusCode.ERROR, "segment extract failed")
                results.put_nowait(SegmentResult(job.sequence, job.time_span, err=e))
                continue

            if is_empty_response(out):
                results.put_nowait(SegmentResult(job.sequence, job.time_span, empty=True))
            else:
                results.put_nowait(SegmentResult(job.sequence, job.time_span, value=out))
            job.close(StatusCode.OK, "completed segment")

    async def dispatch(
        self,
        summary: MediaSummary,
        media: MediaObject,
        content_type: str,
    ) -> List[SegmentResult]:
        """Run every window through the worker pool; returns one result per window, in completion order."""
        windows = summary.segment_time_stamps
        if not windows:
            return []

        summary_document = build_summary_document(summary)
        example_json = get_example_segment().model_dump_json(by_alias=True)

        jobs: asyncio.Queue = asyncio.Queue()
        results: asyncio.Queue = asyncio.Queue()
        created = []
        for i, ts in enumerate(windows):
            job = create_job(
                self.tracer, self.name, i, ts, self.template_service,
                content_type, summary_document, example_json, media,
            )
            created.append(job)
            jobs.put_nowait(job)

        workers = [
            self._segment_worker(w, jobs, results)
            for w in range(1, min(self.number_of_workers, len(windows)) + 1)
        ]
        try:
            await asyncio.gather(*workers)
        finally:
            # Jobs still queued or in flight when the dispatch is cancelled
            for job in created:
                job.close(StatusCode.ERROR, "segment dispatch cancelled")

        out = []
        while not results.empty():
            out.append(results.get_nowait())
        return out

    def aggregate(self, context: PipelineContext, results: List[SegmentResult]) -> DispatchOutcome:
        outcome = DispatchOutcome()
        for r in results:
            if r.err is not None:
                logger.warning(f"[WARN] Segment {r.sequence} ({r.time_span.start}-{r.time_span.end}) failed: {r.err}")
                outcome.failures.append(r)
                self.record_failure(context, r.err)
            elif r.empty:
                outcome.empty += 1
            else:
                outcome.payloads.append(r.value)
        return outcome

    async def execute(self, context: PipelineContext) -> List[str]:
        summary: MediaSummary = context.get(self.input_param)
        media: MediaObject = context.get(self.media_object_param)
        content_type = context.get(self.content_type_param) or "default"

        logger.info(f"[INFO] Extracting {len(summary.segment_time_stamps)} segments "
                    f"with {self.number_of_workers} workers")

        with self.metrics.track_step(self.name):
            results = await self.dispatch(summary, media, content_type)

        outcome = self.aggregate(context, results)
        logger.info(f"[INFO] Segment extraction finished: {len(outcome.payloads)} segments, "
                    f"{outcome.empty} empty, {len(outcome.failures)} failed")

        if not context.has_errors():
            self.record_success()

        context.add(self.output_param, outcome.payloads)
        context.add(CTX_OUT, outcome.payloads)
        return outcome.payloads
