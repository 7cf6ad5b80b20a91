import asyncio

import httpx

from conftest import RecordingSink
from mockloop.core.provider_pool import ProviderPool
from mockloop.core.provider_router import ProviderRouter
from mockloop.core.sessions import SessionRegistry
from mockloop.models.interview import InterviewConfig, InterviewType, SessionStep
from mockloop.models.provider import ProviderChain, ProviderConfig, RequestShape

GROQ = ProviderConfig(
    provider_id="groq",
    endpoint="https://groq.test/v1/chat/completions",
    model="groq-model",
    request_shape=RequestShape.OPENAI_CHAT,
)


def _config() -> InterviewConfig:
    return InterviewConfig(interview_type=InterviewType.OS, narration_enabled=False)


def _outage_registry(client: httpx.AsyncClient) -> SessionRegistry:
    pool = ProviderPool({"groq": ["gq-1", "gq-2"]})
    router = ProviderRouter(pool, ProviderChain(providers=(GROQ,)), client=client)
    return SessionRegistry(router=router, result_sink=RecordingSink())


def test_new_session_keeps_failures_of_a_running_session():
    def unavailable(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503, json={"error": "overloaded"})

    async def scenario():
        client = httpx.AsyncClient(transport=httpx.MockTransport(unavailable))
        registry = _outage_registry(client)
        pool = registry.router.pool
        try:
            first = await registry.start_session(_config())
            await first.start_task
            failed_during_first = pool.failed_count
            epoch_during_first = pool.epoch

            second = await registry.start_session(_config())
            await second.start_task
            failed_after_second = pool.failed_count
            epoch_after_second = pool.epoch
            live_before_end = registry.live_count

            await registry.end_session(first)
            await registry.end_session(second)
            assert registry.live_count == 0

            registry.create_session(_config())
            return (
                failed_during_first, epoch_during_first,
                failed_after_second, epoch_after_second,
                live_before_end, pool.failed_count, pool.epoch,
                first.controller.state.step,
            )
        finally:
            await registry.close()
            await client.aclose()

    (
        failed_during_first, epoch_during_first,
        failed_after_second, epoch_after_second,
        live_before_end, failed_after_all_ended, final_epoch,
        first_step,
    ) = asyncio.run(scenario())

    assert failed_during_first == 2
    assert failed_after_second == 2
    assert epoch_after_second == epoch_during_first
    assert live_before_end == 2
    # Nothing running any more, so the next session starts fresh
    assert failed_after_all_ended == 0
    assert final_epoch == epoch_during_first + 1
    assert first_step == SessionStep.COMPLETE


def test_created_but_unlaunched_sessions_are_not_live():
    async def scenario():
        client = httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(500)))
        registry = _outage_registry(client)
        try:
            registry.create_session(_config())
            registry.create_session(_config())
            return registry.live_count, registry.router.pool.epoch
        finally:
            await registry.close()
            await client.aclose()

    live, epoch = asyncio.run(scenario())

    assert live == 0
    assert epoch == 2
