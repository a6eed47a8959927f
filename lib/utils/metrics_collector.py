"""
Metrics collection for a single pipeline invocation.

Tracks Gemini token usage, retries, success and failure counts and execution
time for each named step. A collector is created per invocation and handed to
the commands that report into it, so concurrent runs never share counters.
"""

import json
import logging
import os
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from typing import Dict, Any

logger = logging.getLogger(__name__)


@dataclass
class StepMetrics:
    """Metrics collected for a single processing step"""
    duration_seconds: float = 0.0

    # Token usage (Gemini)
    tokens: Dict[str, int] = field(default_factory=lambda: {
        "input": 0,
        "output": 0,
        "total": 0,
    })

    retries: int = 0
    successes: int = 0
    failures: int = 0

    timestamp: str = ""


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class MetricsCollector:
    """Collector for all metrics across the steps of one invocation"""

    def __init__(self):
        self.steps: Dict[str, StepMetrics] = {}
        # Workers report from executor threads
        self._lock = threading.Lock()

    def _step(self, step_name: str) -> StepMetrics:
        if step_name not in self.steps:
            self.steps[step_name] = StepMetrics(timestamp=_utc_now())
        return self.steps[step_name]

    @contextmanager
    def track_step(self, step_name: str):
        """Context manager accumulating wall-clock time for a step"""
        start_time = time.time()
        try:
            yield self
        finally:
            with self._lock:
                self._step(step_name).duration_seconds += time.time() - start_time

    def log_tokens(self, step_name: str, usage_metadata: Any):
        """Log token usage from a Gemini API response"""
        if usage_metadata is None:
            return
        with self._lock:
            metrics = self._step(step_name)
            metrics.tokens["input"] += getattr(usage_metadata, "prompt_token_count", None) or 0
            metrics.tokens["output"] += getattr(usage_metadata, "candidates_token_count", None) or 0
            metrics.tokens["total"] += getattr(usage_metadata, "total_token_count", None) or 0

    def log_retry(self, step_name: str, count: int = 1):
        with self._lock:
            self._step(step_name).retries += count

    def log_success(self, step_name: str, count: int = 1):
        with self._lock:
            self._step(step_name).successes += count

    def log_failure(self, step_name: str, count: int = 1):
        with self._lock:
            self._step(step_name).failures += count

    def get(self, step_name: str) -> StepMetrics:
        with self._lock:
            return self._step(step_name)

    def calculate_totals(self) -> Dict[str, Any]:
        """Calculate aggregate totals across all steps"""
        totals = {
            "duration_seconds": 0.0,
            "input_tokens": 0,
            "output_tokens": 0,
            "total_tokens": 0,
            "retries": 0,
            "successes": 0,
            "failures": 0,
        }
        for step_metrics in self.steps.values():
            totals["duration_seconds"] += step_metrics.duration_seconds
            totals["input_tokens"] += step_metrics.tokens.get("input", 0)
            totals["output_tokens"] += step_metrics.tokens.get("output", 0)
            totals["total_tokens"] += step_metrics.tokens.get("total", 0)
            totals["retries"] += step_metrics.retries
            totals["successes"] += step_metrics.successes
            totals["failures"] += step_metrics.failures
        return totals

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": _utc_now(),
            "steps": {
                name: asdict(metrics)
                for name, metrics in self.steps.items()
            },
            "totals": self.calculate_totals(),
        }

    def write_report(self, filepath: str):
        """Write metrics report to JSON file"""
        directory = os.path.dirname(filepath)
        if directory:
            os.makedirs(directory, exist_ok=True)

        with open(filepath, 'w') as f:
            json.dump(self.to_dict(), f, indent=2)

    def print_report(self):
        """Log a formatted metrics report"""
        lines = ["", "=" * 80, "SEGMENT EXTRACTION REPORT".center(80), "=" * 80]

        for step_name, metrics in self.steps.items():
            lines.append(f"Step: {step_name}")
            lines.append(f"  Duration:          {metrics.duration_seconds:.1f}s")
            if metrics.tokens["total"] > 0:
                lines.append(f"  Tokens:            {metrics.tokens['total']:,} "
                             f"({metrics.tokens['input']:,} input + "
                             f"{metrics.tokens['output']:,} output)")
            if metrics.retries:
                lines.append(f"  Retries:           {metrics.retries}")
            lines.append(f"  Successes:         {metrics.successes}")
            lines.append(f"  Failures:          {metrics.failures}")
            lines.append("")

        totals = self.calculate_totals()
        lines.append("─" * 80)
        lines.append("TOTALS:")
        lines.append(f"  Total Duration:    {totals['duration_seconds']:.1f}s")
        if totals["total_tokens"] > 0:
            lines.append(f"  Total Tokens:      {totals['total_tokens']:,}")
        lines.append(f"  Failures:          {totals['failures']}")
        lines.append("=" * 80)

        logger.info("\n".join(lines))
