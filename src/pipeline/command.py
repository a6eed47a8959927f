from typing import Optional

from opentelemetry import trace
from opentelemetry.trace import Tracer

from lib.utils.metrics_collector import MetricsCollector
from src.pipeline.context import PipelineContext


class BaseCommand:
    """A named pipeline stage with its declared parameters, counters and tracer."""

    def __init__(
        self,
        name: str,
        input_param: Optional[str] = None,
        output_param: Optional[str] = None,
        metrics: Optional[MetricsCollector] = None,
        tracer: Optional[Tracer] = None,
    ):
        if not name:
            raise ValueError("command name is required")
        self.name = name
        self.input_param = input_param
        self.output_param = output_param
        self.metrics = metrics or MetricsCollector()
        self.tracer = tracer or trace.get_tracer(__name__)

    def is_executable(self, context: PipelineContext) -> bool:
        return context is not None and (
            self.input_param is None or context.get(self.input_param) is not None
        )

    def record_success(self):
        self.metrics.log_success(self.name)

    def record_failure(self, context: PipelineContext, err: Exception):
        self.metrics.log_failure(self.name)
        context.add_error(self.name, err)
