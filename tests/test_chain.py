import time

import pytest

from studio_api.chain import CascadeExhausted, NoProviderConfigured, run_cascade, select_start
from studio_api.providers.base import ContentPolicyError, MalformedResponseError, UpstreamError

from .conftest import FakeImageProvider


def _attempt(prompt: str = "a red kite", count: int = 2):
    return lambda p: p.invoke(None, prompt, count, None)


def test_select_start_first_configured(app_settings):
    chain = [FakeImageProvider("a", configured=False), FakeImageProvider("b"), FakeImageProvider("c")]
    assert select_start(chain, app_settings) == 1


def test_select_start_override_wins(app_settings):
    chain = [FakeImageProvider("a"), FakeImageProvider("b"), FakeImageProvider("c")]
    assert select_start(chain, app_settings, override="c") == 2


def test_select_start_unknown_override_scans(app_settings):
    chain = [FakeImageProvider("a", configured=False), FakeImageProvider("b")]
    assert select_start(chain, app_settings, override="nope") == 1


def test_select_start_nothing_configured(app_settings):
    chain = [FakeImageProvider("a", configured=False), FakeImageProvider("b", configured=False)]
    assert select_start(chain, app_settings) is None


@pytest.mark.asyncio
async def test_cascade_returns_first_success(app_settings):
    first, second = FakeImageProvider("a"), FakeImageProvider("b")
    provider, images = await run_cascade([first, second], app_settings, _attempt())

    assert provider is first
    assert images == ["https://img.test/a/0.png", "https://img.test/a/1.png"]
    assert second.prompts == []


@pytest.mark.asyncio
async def test_cascade_skips_unconfigured_provider(app_settings):
    first = FakeImageProvider("a", error=UpstreamError("a", "API error 500", 500))
    skipped = FakeImageProvider("b", configured=False)
    last = FakeImageProvider("c")

    provider, _ = await run_cascade([first, skipped, last], app_settings, _attempt())

    assert provider is last
    assert first.prompts == ["a red kite"]
    assert skipped.prompts == []


@pytest.mark.asyncio
async def test_cascade_never_walks_backwards(app_settings):
    earlier = FakeImageProvider("a")
    chosen = FakeImageProvider("b", error=UpstreamError("b", "down"))

    with pytest.raises(CascadeExhausted) as exc:
        await run_cascade([earlier, chosen], app_settings, _attempt(), override="b")

    assert earlier.prompts == []
    assert [f.provider for f in exc.value.failures] == ["b"]


@pytest.mark.asyncio
async def test_cascade_exhausted_collects_failures(app_settings):
    chain = [
        FakeImageProvider("a", error=UpstreamError("a", "API error 503", 503)),
        FakeImageProvider("b", error=MalformedResponseError("b", "no data")),
    ]
    with pytest.raises(CascadeExhausted) as exc:
        await run_cascade(chain, app_settings, _attempt())

    assert [f.kind for f in exc.value.failures] == ["upstream", "malformed"]
    assert not isinstance(exc.value, NoProviderConfigured)


@pytest.mark.asyncio
async def test_cascade_without_configured_provider(app_settings):
    chain = [FakeImageProvider("a", configured=False)]
    with pytest.raises(NoProviderConfigured):
        await run_cascade(chain, app_settings, _attempt())
    assert chain[0].prompts == []


@pytest.mark.asyncio
async def test_cascade_stops_on_content_policy(app_settings):
    first = FakeImageProvider("a", error=ContentPolicyError("a", "blocked"))
    second = FakeImageProvider("b")

    with pytest.raises(ContentPolicyError):
        await run_cascade([first, second], app_settings, _attempt())

    assert second.prompts == []


@pytest.mark.asyncio
async def test_cascade_timeout_advances(app_settings, monkeypatch):
    monkeypatch.setattr(app_settings, "provider_timeout", 0.05)
    slow = FakeImageProvider("slow", delay=2.0)
    fast = FakeImageProvider("fast")

    start = time.perf_counter()
    provider, _ = await run_cascade([slow, fast], app_settings, _attempt())
    elapsed = time.perf_counter() - start

    assert provider is fast
    assert elapsed < 1.0


@pytest.mark.asyncio
async def test_cascade_partial_result_is_failure(app_settings):
    class ShortProvider(FakeImageProvider):
        async def generate(self, client, prompt, count, settings):
            return ["https://img.test/only-one.png"]

    fallback = FakeImageProvider("b")
    provider, images = await run_cascade([ShortProvider("a"), fallback], app_settings, _attempt(count=2))

    assert provider is fallback
    assert len(images) == 2


@pytest.mark.asyncio
async def test_every_attempt_sees_same_prompt(app_settings):
    chain = [
        FakeImageProvider("a", error=UpstreamError("a", "down")),
        FakeImageProvider("b", error=UpstreamError("b", "down")),
        FakeImageProvider("c"),
    ]
    await run_cascade(chain, app_settings, _attempt("a city skyline, cinematic lighting"))

    assert {p.prompts[0] for p in chain} == {"a city skyline, cinematic lighting"}


def test_select_start_unconfigured_override_with_nothing_after(app_settings):
    chain = [FakeImageProvider("a", configured=False), FakeImageProvider("b", configured=False)]
    assert select_start(chain, app_settings, override="b") is None


def test_select_start_unconfigured_override_continues_forward(app_settings):
    chain = [FakeImageProvider("a"), FakeImageProvider("b", configured=False), FakeImageProvider("c")]
    assert select_start(chain, app_settings, override="b") == 1


@pytest.mark.asyncio
async def test_cascade_unconfigured_override_is_not_configured(app_settings):
    chain = [FakeImageProvider("a", configured=False), FakeImageProvider("b", configured=False)]

    with pytest.raises(NoProviderConfigured):
        await run_cascade(chain, app_settings, _attempt(), override="a")
