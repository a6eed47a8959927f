import pytest
from jinja2 import TemplateNotFound, UndefinedError

from src.config import PROMPTS_DIR
from src.pipelines.segmentExtraction.templates import TemplateService

VOCABULARY = {
    "SEQUENCE": "4",
    "SUMMARY_DOCUMENT": "Title:Night Train\nSummary:\n\nA mystery.\nCast:\n\n",
    "TIME_START": "00:04:00",
    "TIME_END": "00:05:00",
    "EXAMPLE_JSON": '{"sequenceNumber":0,"start":"00:00:00","end":"00:00:20","script":"..."}',
}


@pytest.mark.parametrize("content_type", ["movie", "trailer", "default"])
def test_bundled_prompts_render(content_type):
    prompt = TemplateService(PROMPTS_DIR).render(content_type, VOCABULARY)
    assert "00:04:00" in prompt
    assert "00:05:00" in prompt
    assert "Night Train" in prompt
    assert VOCABULARY["EXAMPLE_JSON"] in prompt


def test_unknown_content_type_uses_default(template_service):
    assert template_service.render("documentary", VOCABULARY).startswith("4|00:04:00|00:05:00|")


def test_missing_variable_is_an_error(template_service):
    with pytest.raises(UndefinedError):
        template_service.render("default", {"SEQUENCE": "1"})


def test_missing_template_is_an_error(tmp_path):
    service = TemplateService(tmp_path)
    assert not service.has_template("movie")
    with pytest.raises(TemplateNotFound):
        service.render("movie", VOCABULARY)
