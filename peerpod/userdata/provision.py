import asyncio
from typing import List, Optional

import httpx
from loguru import logger

from peerpod.config import ProviderConfig, ProvisionConfig
from peerpod.exceptions import (
    ProvisionException,
    UnsupportedProviderException,
)
from peerpod.models import ProvisionReport
from peerpod.providers.base import UserDataProvider
from peerpod.providers.selector import select_provider
from peerpod.userdata.fetch import fetch_cloud_config
from peerpod.userdata.initdata import calculate_digest
from peerpod.userdata.materialize import process_cloud_config


async def _detect_provider(
    provider_config: ProviderConfig,
    client: httpx.AsyncClient,
    timeout: float,
    candidates: Optional[List[UserDataProvider]],
) -> Optional[UserDataProvider]:
    try:
        return await asyncio.wait_for(
            select_provider(provider_config, client, candidates),
            timeout=timeout,
        )
    except UnsupportedProviderException as e:
        logger.warning(f"{e}, calculating initdata hash only")
    except asyncio.TimeoutError:
        logger.warning(
            f"no user data provider detected within {timeout}s, calculating initdata hash only"
        )
    return None


async def provision_files(
    config: ProvisionConfig,
    provider_config: ProviderConfig = None,
    client: httpx.AsyncClient = None,
    candidates: Optional[List[UserDataProvider]] = None,
) -> ProvisionReport:
    """
    Provision configuration files from cloud user-data and compute the initdata digest.

    Some providers deliver the config files through user-data, others rely
    on cloud-init to put them in place; every provider needs the digest for
    the attester. When no provider is detected the run degrades to digest
    only, which the returned report records with ``provider=None``.

    Provider detection and fetching share one deadline of
    ``config.fetch_timeout`` seconds.

    Raises:
        ProvisionException: On any fatal failure; guest boot should halt
    """
    if provider_config is None:
        provider_config = ProviderConfig()

    report = ProvisionReport()
    loop = asyncio.get_running_loop()
    deadline = loop.time() + config.fetch_timeout

    owns_client = client is None
    if owns_client:
        client = httpx.AsyncClient()

    try:
        provider = await _detect_provider(provider_config, client, config.fetch_timeout, candidates)

        if provider is not None:
            report.provider = provider.name
            remaining = max(deadline - loop.time(), 0)
            try:
                cloud_config = await fetch_cloud_config(provider, remaining)
            except ProvisionException as e:
                logger.error(f"failed to retrieve cloud config: {e}")
                raise

            try:
                report.written_files = process_cloud_config(config, cloud_config)
            except ProvisionException as e:
                logger.error(f"failed to process cloud config: {e}")
                raise
    finally:
        if owns_client:
            await client.aclose()

    try:
        report.digest = calculate_digest(config)
    except ProvisionException as e:
        logger.error(f"failed to calculate initdata hash: {e}")
        raise

    return report
