"""Provider selection and the fallback cascade.

The cascade is an ordered walk over a fixed registry:

    TRY(i) --success--> SUCCESS
    TRY(i) --failure--> TRY(next configured provider after i) | EXHAUSTED

Providers whose credential is absent are skipped, never attempted. Providers are
tried one at a time, never raced against each other. A content-policy rejection
ends the walk immediately since it is a property of the prompt, not the provider.
"""

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from typing import TypeVar

from loguru import logger

from studio_api.config import Settings
from studio_api.providers.base import ContentPolicyError, Provider, ProviderError, ProviderTimeoutError

P = TypeVar("P", bound=Provider)
T = TypeVar("T")


class CascadeExhausted(Exception):
    """Every configured provider in the chain failed."""

    def __init__(self, failures: list[ProviderError]) -> None:
        self.failures = failures
        summary = "; ".join(str(f) for f in failures) or "no provider attempted"
        super().__init__(f"All providers failed: {summary}")


class NoProviderConfigured(CascadeExhausted):
    """Nothing in the chain has a credential, so nothing was attempted."""

    def __init__(self) -> None:
        super().__init__([])


def select_start(chain: Sequence[Provider], settings: Settings, override: str = "") -> int | None:
    """Index of the first provider to try, or None if nothing is configured.

    A recognised override wins as long as it, or something after it, has a
    credential; otherwise the first provider with a credential.
    """
    names = [p.name for p in chain]
    if override and override not in names:
        logger.warning(
            "Unknown provider override '{override}', expected one of {names}",
            override=override,
            names=names,
        )
        override = ""

    first = names.index(override) if override else 0
    for index in range(first, len(chain)):
        if chain[index].is_configured(settings):
            return first if override else index
    return None


async def run_cascade(
    chain: Sequence[P],
    settings: Settings,
    attempt: Callable[[P], Awaitable[T]],
    override: str = "",
) -> tuple[P, T]:
    """Walk the chain from the selected provider until one attempt succeeds.

    Each attempt is bounded by ``settings.provider_timeout``. Returns the winning
    provider with its result; raises ``CascadeExhausted`` (or its subclass
    ``NoProviderConfigured``) otherwise. ``ContentPolicyError`` propagates as-is.
    """
    start = select_start(chain, settings, override)
    if start is None:
        raise NoProviderConfigured()

    failures: list[ProviderError] = []
    for provider in chain[start:]:
        with logger.contextualize(provider=provider.name):
            if not provider.is_configured(settings):
                logger.debug("Skipping: not configured")
                continue

            logger.info("Trying provider")
            try:
                result = await asyncio.wait_for(attempt(provider), timeout=settings.provider_timeout)
            except TimeoutError:
                failure: ProviderError = ProviderTimeoutError(
                    provider.name, f"no response within {settings.provider_timeout:g}s"
                )
            except ContentPolicyError as e:
                logger.warning("Rejected by content policy: {message}", message=e.message)
                raise
            except ProviderError as e:
                failure = e
            else:
                logger.info("Provider succeeded")
                return provider, result

            logger.warning(
                "Attempt failed ({kind}): {message}", kind=failure.kind, message=failure.message
            )
            failures.append(failure)

    raise CascadeExhausted(failures)
