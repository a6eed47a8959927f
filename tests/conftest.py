import threading
import time
from types import SimpleNamespace
from typing import Dict, List, Optional, Union

import pytest
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter

from lib.utils.metrics_collector import MetricsCollector
from src.pipeline.context import PipelineContext
from src.pipelines.segmentExtraction.schema import MediaObject, MediaSummary, TimeSpan
from src.pipelines.segmentExtraction.templates import TemplateService


class StubLLM:
    """
    Stands in for GeminiGenaiManager. The test prompt template renders as
    "SEQUENCE|TIME_START|TIME_END|...", so responses are keyed by window start.
    A response that is an Exception instance is raised instead of returned.
    """

    def __init__(self, responses: Dict[str, Union[str, Exception]] = None, delay: float = 0.0,
                 default: Union[str, Exception] = "{}"):
        self.responses = responses or {}
        self.delay = delay
        self.default = default
        self.calls: List[dict] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self._lock = threading.Lock()

    def LLM_request(self, prompt_contents: list, schema=None, context: Optional[str] = None,
                    metrics: Optional[MetricsCollector] = None):
        prompt = prompt_contents[0]
        sequence, start, end = prompt.split("|")[:3]
        with self._lock:
            self.calls.append({"sequence": int(sequence), "start": start, "end": end,
                               "media": prompt_contents[1], "schema": schema})
            self.in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                time.sleep(self.delay)
            response = self.responses.get(start, self.default)
            if isinstance(response, Exception):
                raise response
            if metrics and context:
                metrics.log_tokens(context, SimpleNamespace(
                    prompt_token_count=100, candidates_token_count=20, total_token_count=120))
            return response
        finally:
            with self._lock:
                self.in_flight -= 1


@pytest.fixture
def prompts_dir(tmp_path):
    default = tmp_path / "default"
    default.mkdir()
    (default / "segment_prompt.j2").write_text("{{ SEQUENCE }}|{{ TIME_START }}|{{ TIME_END }}|{{ EXAMPLE_JSON }}")
    broken = tmp_path / "broken"
    broken.mkdir()
    (broken / "segment_prompt.j2").write_text("{{ SEQUENCE }}|{{ NOT_PROVIDED }}")
    return tmp_path


@pytest.fixture
def template_service(prompts_dir):
    return TemplateService(prompts_dir)


@pytest.fixture
def span_exporter():
    return InMemorySpanExporter()


@pytest.fixture
def tracer(span_exporter):
    provider = TracerProvider()
    provider.add_span_processor(SimpleSpanProcessor(span_exporter))
    return provider.get_tracer("tests")


@pytest.fixture
def metrics():
    return MetricsCollector()


@pytest.fixture
def context():
    return PipelineContext()


@pytest.fixture
def media_object():
    return MediaObject(bucket="media-bucket", name="films/night_train.mp4", mime_type="video/mp4")


def seconds_window(start: int, end: int) -> TimeSpan:
    def fmt(s):
        return f"{s // 3600:02d}:{(s % 3600) // 60:02d}:{s % 60:02d}"
    return TimeSpan(start=fmt(start), end=fmt(end))


@pytest.fixture
def make_summary():
    def _make(windows: int = 0, length: int = 3600, window_seconds: int = 60, **kwargs):
        return MediaSummary(
            title=kwargs.pop("title", "Night Train"),
            summary=kwargs.pop("summary", "A conductor investigates a disappearance aboard a sleeper train."),
            length_in_seconds=length,
            segment_time_stamps=[
                seconds_window(i * window_seconds, (i + 1) * window_seconds) for i in range(windows)
            ],
            **kwargs,
        )
    return _make
