from google import genai
from google.genai import errors
from google.genai.types import (
    Part,
    Blob,
    FileData,
    GenerateContentConfig,
)
from google.genai.types import SafetySetting, HarmCategory, HarmBlockThreshold

from pathlib import Path
import logging
import mimetypes
from typing import Any, Dict, Optional, Tuple

from tenacity import (
    Retrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from lib.utils.metrics_collector import MetricsCollector
from src.config import (
    GEMINI_MODEL,
    GEMINI_LOCATION,
    GEMINI_PROJECT,
    GEMINI_MAX_RETRIES,
    GEMINI_RETRY_MIN_WAIT,
    GEMINI_RETRY_MAX_WAIT,
)

logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = {408, 429, 500, 502, 503, 504}


class EmptyResponseError(ValueError):
    """Gemini returned no text at all (blocked or no candidates)."""


def gemini_retry_condition(exc: BaseException) -> bool:
    if isinstance(exc, EmptyResponseError):
        return True
    if isinstance(exc, errors.ServerError):
        return True
    if isinstance(exc, errors.APIError):
        return exc.code in RETRYABLE_STATUS_CODES
    return False


SAFETY_SETTINGS = [
    SafetySetting(category=HarmCategory.HARM_CATEGORY_HARASSMENT, threshold=HarmBlockThreshold.BLOCK_NONE),
    SafetySetting(category=HarmCategory.HARM_CATEGORY_HATE_SPEECH, threshold=HarmBlockThreshold.BLOCK_NONE),
    SafetySetting(category=HarmCategory.HARM_CATEGORY_SEXUALLY_EXPLICIT, threshold=HarmBlockThreshold.BLOCK_NONE),
    SafetySetting(category=HarmCategory.HARM_CATEGORY_DANGEROUS_CONTENT, threshold=HarmBlockThreshold.BLOCK_NONE),
    SafetySetting(category=HarmCategory.HARM_CATEGORY_CIVIC_INTEGRITY, threshold=HarmBlockThreshold.BLOCK_NONE),
]


class GeminiGenaiManager:
    def __init__(
        self,
        model: str = GEMINI_MODEL,
        location: str = GEMINI_LOCATION,
        project: Optional[str] = GEMINI_PROJECT,
        max_retries: int = GEMINI_MAX_RETRIES,
        retry_min_wait: float = GEMINI_RETRY_MIN_WAIT,
        retry_max_wait: float = GEMINI_RETRY_MAX_WAIT,
        metrics: Optional[MetricsCollector] = None,
        client: Optional[genai.Client] = None,
    ):
        self.model = model
        self.max_retries = max(1, max_retries)
        self.retry_min_wait = retry_min_wait
        self.retry_max_wait = retry_max_wait
        self.metrics = metrics
        self.genai_client = client or genai.Client(
            vertexai=True,
            location=location,
            project=project
        )

    def _convert_to_part(self, item) -> Part:
        """Convert Path, media reference, GCS URI, or string into Gemini-compatible Part"""
        if isinstance(item, Path):
            if not item.exists():
                raise FileNotFoundError(f"File not found: {item}")
            mime_type, _ = mimetypes.guess_type(item)
            if mime_type is None:
                raise ValueError(f"Could not guess MIME type for: {item}")
            return Part(inline_data=Blob(data=item.read_bytes(), mime_type=mime_type))
        elif hasattr(item, "uri") and hasattr(item, "mime_type"):
            return Part(file_data=FileData(file_uri=item.uri, mime_type=item.mime_type))
        elif isinstance(item, str) and (item.startswith("gs://") or item.startswith("https://")):
            mime_type, _ = mimetypes.guess_type(item)
            return Part(file_data=FileData(file_uri=item, mime_type=mime_type))
        else:
            return Part(text=str(item))

    def _resolve_schema(self, schema: Any) -> Tuple[Optional[Dict[str, Any]], Optional[str]]:
        """Build a JSON schema dict and MIME type from a pydantic model or a raw dict."""
        if schema is None:
            return None, None

        # Pydantic BaseModel (class or instance) expose model_json_schema directly
        if hasattr(schema, "model_json_schema"):
            return schema.model_json_schema(), "application/json"

        if isinstance(schema, dict):
            return schema, "application/json"

        # Fallback: no structured schema available, so return plain text
        return None, None

    def _build_config(self, schema: Any) -> GenerateContentConfig:
        response_schema, response_mime_type = self._resolve_schema(schema)
        return GenerateContentConfig(
            response_schema=response_schema,
            response_mime_type=response_mime_type,
            safety_settings=SAFETY_SETTINGS,
        )

    def LLM_request(
        self,
        prompt_contents: list,
        schema: Any = None,
        context: Optional[str] = None,
        metrics: Optional[MetricsCollector] = None,
    ) -> str:
        """
        Call Gemini with prompt and optional structured output schema.

        Args:
            prompt_contents: List of content items (strings, Paths, GCS URIs, media references)
            schema: Optional Pydantic model or JSON schema dict describing the output shape
            context: Step name used for token and retry accounting
            metrics: Collector for this invocation; defaults to the one given at construction

        Returns:
            The raw response text. Structured responses are NOT parsed here.

        Raises:
            RuntimeError: when every attempt failed; chained to the last error.
        """
        metrics = metrics or self.metrics
        parts = [self._convert_to_part(p) for p in prompt_contents]
        config = self._build_config(schema)

        def _on_retry(retry_state: RetryCallState):
            exc = retry_state.outcome.exception() if retry_state.outcome else None
            logger.warning(
                f"[WARN] Gemini call failed: {exc} "
                f"(Attempt {retry_state.attempt_number}/{self.max_retries}), retrying"
            )
            if metrics and context:
                metrics.log_retry(context)

        retrying = Retrying(
            stop=stop_after_attempt(self.max_retries),
            wait=wait_exponential(multiplier=2, min=self.retry_min_wait, max=self.retry_max_wait),
            retry=retry_if_exception(gemini_retry_condition),
            before_sleep=_on_retry,
            reraise=True,
        )

        try:
            for attempt in retrying:
                with attempt:
                    response = self.genai_client.models.generate_content(
                        model=self.model,
                        contents=[{"role": "user", "parts": parts}],
                        config=config,
                    )

                    if response.text is None:
                        raise EmptyResponseError("Response text is None, likely an error occurred.")

                    if metrics and context:
                        metrics.log_tokens(context, getattr(response, "usage_metadata", None))

                    return response.text
        except Exception as e:
            logger.error(f"[ERROR] Gemini call failed: {e}")
            raise RuntimeError("Gemini failed after all retries.") from e
