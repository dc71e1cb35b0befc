from typing import List

import httpx
from loguru import logger

from peerpod.config import ProviderConfig
from peerpod.exceptions import UnsupportedProviderException
from peerpod.providers.aws import AWSUserDataProvider
from peerpod.providers.azure import AzureUserDataProvider
from peerpod.providers.base import UserDataProvider
from peerpod.providers.docker import DockerUserDataProvider


# Detection order: the docker check is a local file lookup and needs no
# HTTP round trip, so it goes first.
PROVIDER_TYPES = (
    DockerUserDataProvider,
    AzureUserDataProvider,
    AWSUserDataProvider,
)


def candidate_providers(config: ProviderConfig, client: httpx.AsyncClient) -> List[UserDataProvider]:
    return [provider_type(config, client) for provider_type in PROVIDER_TYPES]


async def select_provider(
    config: ProviderConfig,
    client: httpx.AsyncClient,
    candidates: List[UserDataProvider] = None,
) -> UserDataProvider:
    """
    Return the first provider whose environment check matches.

    Args:
        config: Provider endpoints and timings
        client: Shared HTTP client used by network checks
        candidates: Ordered providers to try, defaults to every known provider

    Raises:
        UnsupportedProviderException: If no provider matched
    """
    if candidates is None:
        candidates = candidate_providers(config, client)

    for provider in candidates:
        if await provider.is_this_provider():
            logger.info(f"Detected user data provider: {provider.name}")
            return provider
        logger.debug(f"Not running on {provider.name}")

    raise UnsupportedProviderException(
        f"unsupported user data provider, tried: {', '.join(p.name for p in candidates)}"
    )
