import logging
import threading
from collections import defaultdict
from typing import Any, Dict, List

logger = logging.getLogger(__name__)

# Key holding the output of the most recently executed command
CTX_OUT = "__OUT__"


class PipelineContext:
    """
    Named-value store shared by the commands of one pipeline invocation.

    Commands read their declared inputs, write their declared outputs and
    report stage-local errors here instead of raising, so one failing stage
    does not halt the others.
    """

    def __init__(self, values: Dict[str, Any] = None):
        self._values: Dict[str, Any] = dict(values or {})
        self.errors: Dict[str, List[Exception]] = defaultdict(list)
        self._lock = threading.Lock()

    def get(self, key: str, default: Any = None) -> Any:
        return self._values.get(key, default)

    def add(self, key: str, value: Any):
        self._values[key] = value

    def add_error(self, stage: str, err: Exception):
        with self._lock:
            self.errors[stage].append(err)
        logger.warning(f"[WARN] {stage}: {err}")

    def has_errors(self) -> bool:
        return any(self.errors.values())

    def error_count(self) -> int:
        return sum(len(errs) for errs in self.errors.values())

    def __contains__(self, key: str) -> bool:
        return key in self._values
