import asyncio
import json

import httpx

from mockloop.core.persistence import HttpResultSink, NullResultSink, build_sink, result_record
from mockloop.core.result_finalizer import ResultFinalizer
from mockloop.models.interview import InterviewConfig, InterviewType, SessionState, TurnRole


def _result():
    state = SessionState(config=InterviewConfig(interview_type=InterviewType.OS))
    state.add_turn(TurnRole.AI, "What is a process?")
    state.add_turn(TurnRole.CANDIDATE, "A running program.")
    state.score_total, state.evaluations_count, state.overall_score = 64, 1, 64
    return ResultFinalizer().build(state)


def test_record_uses_store_field_names():
    record = result_record(_result())

    assert record["interviewType"] == "os"
    assert record["overallScore"] == 64
    assert record["scores"]["problemSolving"] == 64
    assert record["questionsAttempted"] == 1
    assert record["conversation"][0]["role"] == "ai"
    assert set(record["config"]) == {"difficulty", "companyTarget", "techStack", "duration"}


def test_http_sink_posts_record():
    received = {}

    def handler(request):
        received["body"] = json.loads(request.content)
        return httpx.Response(201)

    async def scenario():
        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        sink = HttpResultSink("https://store.test/interviews", client=client)
        ok = await sink.save(_result())
        await sink.close()
        return ok

    assert asyncio.run(scenario()) is True
    assert received["body"]["overallScore"] == 64


def test_http_sink_failure_returns_false():
    async def scenario():
        client = httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(500)))
        sink = HttpResultSink("https://store.test/interviews", client=client)
        ok = await sink.save(_result())
        await sink.close()
        return ok

    assert asyncio.run(scenario()) is False


def test_build_sink_without_url_is_null(test_settings):
    assert isinstance(build_sink(test_settings), NullResultSink)
    assert asyncio.run(NullResultSink().save(_result())) is False
