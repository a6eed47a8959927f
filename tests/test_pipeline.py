import json

import pytest

from src.pipelines.segmentExtraction.segmentExtractionPipeline import SegmentExtractionPipeline
from tests.conftest import StubLLM


def _pipeline(llm, template_service, tracer, workers=2):
    return SegmentExtractionPipeline(
        llm=llm,
        template_service=template_service,
        number_of_workers=workers,
        tracer=tracer,
    )


@pytest.mark.asyncio
async def test_end_to_end_one_failure_one_success(template_service, tracer, make_summary, media_object):
    llm = StubLLM({
        "00:00:00": RuntimeError("window 1 failed"),
        "00:01:00": json.dumps({"start": "00:01:00", "end": "00:02:00", "script": "B"}),
    })
    summary = make_summary(2, length=120)
    pipeline = _pipeline(llm, template_service, tracer)

    media = await pipeline.run(summary, media_object, "default")

    assert media is not None
    assert len(media.segments) == 1
    segment = media.segments[0]
    assert (segment.sequence_number, segment.start, segment.end, segment.script) == (0, "00:01:00", "00:02:00", "B")
    assert len(pipeline.context.errors["segment_extractor"]) == 1
    assert not pipeline.context.errors.get("media_assembly")
    assert pipeline.metrics.get("segment_extractor").failures == 1
    assert pipeline.metrics.get("media_assembly").successes == 1


@pytest.mark.asyncio
@pytest.mark.parametrize("no_script", ["{}\n", "{ }", " {}"])
async def test_padded_empty_object_is_not_fatal(no_script, template_service, tracer, make_summary, media_object):
    llm = StubLLM({
        "00:00:00": no_script,
        "00:01:00": json.dumps({"start": "00:01:00", "end": "00:02:00", "script": "B"}),
    })
    summary = make_summary(2, length=120)
    pipeline = _pipeline(llm, template_service, tracer)

    media = await pipeline.run(summary, media_object, "default")

    assert media is not None
    assert [(s.sequence_number, s.start, s.script) for s in media.segments] == [(0, "00:01:00", "B")]
    assert not pipeline.context.has_errors()


@pytest.mark.asyncio
@pytest.mark.parametrize("response", [RuntimeError("unavailable"), "{}", ""])
async def test_fallback_when_nothing_usable(response, template_service, tracer, make_summary, media_object):
    llm = StubLLM(default=response)
    summary = make_summary(3, length=5400)

    media = await _pipeline(llm, template_service, tracer).run(summary, media_object, "default")

    assert len(media.segments) == 1
    segment = media.segments[0]
    assert (segment.sequence_number, segment.start, segment.end) == (0, "00:00:00", "01:30:00")
    assert segment.script == summary.summary


@pytest.mark.asyncio
async def test_partial_failure_timeline_valid(template_service, tracer, make_summary, media_object):
    responses = {}
    for i in range(8):
        start = f"00:{i:02d}:00"
        if i in (2, 5):
            responses[start] = RuntimeError(f"window {i}")
        else:
            # Unit-shifted timestamps as Gemini tends to produce them
            responses[start] = json.dumps({
                "sequenceNumber": 99 - i,
                "start": f"{i:02d}:00:00",
                "end": f"{i:02d}:50:00",
                "script": f"line {i}",
            })
    llm = StubLLM(responses)

    pipeline = _pipeline(llm, template_service, tracer, workers=3)
    media = await pipeline.run(make_summary(8, length=600), media_object, "default")

    assert [s.script for s in media.segments] == [f"line {i}" for i in (0, 1, 3, 4, 6, 7)]
    assert [s.sequence_number for s in media.segments] == list(range(6))
    assert media.segments[1].start == "00:01:00"
    assert media.segments[1].end == "00:01:50"
    assert pipeline.context.error_count() == 2


@pytest.mark.asyncio
async def test_corrupt_payload_is_fatal(template_service, tracer, make_summary, media_object):
    llm = StubLLM({
        "00:00:00": json.dumps({"start": "00:00:00", "end": "00:01:00", "script": "A"}),
        "00:01:00": "Sorry, I cannot help with that.",
    })
    pipeline = _pipeline(llm, template_service, tracer)

    media = await pipeline.run(make_summary(2, length=120), media_object, "default")

    assert media is None
    assert len(pipeline.context.errors["media_assembly"]) == 1
    assert pipeline.context.get("media") is None


@pytest.mark.asyncio
async def test_media_length_override(template_service, tracer, make_summary, media_object):
    llm = StubLLM(default="{}")
    media = await _pipeline(llm, template_service, tracer).run(
        make_summary(1, length=0), media_object, "default", media_length=95)
    assert media.length_in_seconds == 95
    assert media.segments[0].end == "00:01:35"


@pytest.mark.asyncio
async def test_each_run_gets_fresh_context(template_service, tracer, make_summary, media_object):
    llm = StubLLM(default=RuntimeError("down"))
    pipeline = _pipeline(llm, template_service, tracer)

    await pipeline.run(make_summary(2), media_object, "default")
    first_context = pipeline.context
    llm.default = "{}"
    await pipeline.run(make_summary(2), media_object, "default")

    assert first_context.error_count() == 2
    assert pipeline.context is not first_context
    assert not pipeline.context.has_errors()
    assert pipeline.metrics.get("segment_extractor").successes == 1


@pytest.mark.asyncio
async def test_serialized_media_uses_wire_names(template_service, tracer, make_summary, media_object):
    llm = StubLLM(default=json.dumps({"start": "00:00:00", "end": "00:00:10", "script": "hi"}))
    media = await _pipeline(llm, template_service, tracer).run(make_summary(1), media_object, "default")

    data = json.loads(media.model_dump_json(by_alias=True))
    assert data["lengthInSeconds"] == 3600
    assert data["segments"][0] == {"sequenceNumber": 0, "start": "00:00:00", "end": "00:00:10", "script": "hi"}
