import logging
from pathlib import Path
from typing import Dict, Optional

from jinja2 import Environment, FileSystemLoader, StrictUndefined, TemplateNotFound

from src.config import PROMPTS_DIR

logger = logging.getLogger(__name__)

SEGMENT_PROMPT = "segment_prompt.j2"
DEFAULT_TEMPLATE_KEY = "default"


class TemplateService:
    """
    Renders prompt templates stored as <content type>/<prompt>.j2 under prompts_dir.

    Undefined variables are errors, so a template expecting a value the caller
    did not supply fails to render instead of silently producing a blank.
    """

    def __init__(self, prompts_dir: Optional[Path] = None):
        self.prompts_dir = Path(prompts_dir or PROMPTS_DIR)
        self.env = Environment(
            loader=FileSystemLoader(str(self.prompts_dir)),
            undefined=StrictUndefined,
            keep_trailing_newline=True,
        )

    def _template_name(self, template_key: str, prompt_name: str) -> str:
        candidate = f"{template_key}/{prompt_name}"
        if (self.prompts_dir / template_key / prompt_name).exists():
            return candidate
        logger.debug(f"No {prompt_name} for '{template_key}', using {DEFAULT_TEMPLATE_KEY}")
        return f"{DEFAULT_TEMPLATE_KEY}/{prompt_name}"

    def get_template(self, template_key: str, prompt_name: str = SEGMENT_PROMPT):
        """Raises jinja2.TemplateNotFound when neither the key nor the default exists."""
        return self.env.get_template(self._template_name(template_key, prompt_name))

    def render(self, template_key: str, variables: Dict[str, str], prompt_name: str = SEGMENT_PROMPT) -> str:
        return self.get_template(template_key, prompt_name).render(**variables)

    def has_template(self, template_key: str, prompt_name: str = SEGMENT_PROMPT) -> bool:
        try:
            self.get_template(template_key, prompt_name)
        except TemplateNotFound:
            return False
        return True
