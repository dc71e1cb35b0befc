import asyncio
from typing import List

import backoff
from loguru import logger

from peerpod.exceptions import (
    CloudConfigParseException,
    FetchTimeoutException,
    UserDataFetchException,
)
from peerpod.models import CloudConfig, FetchOutcome
from peerpod.providers.base import UserDataProvider
from peerpod.userdata.cloud_config import parse_user_data


async def fetch_and_validate(provider: UserDataProvider) -> FetchOutcome:
    """
    Fetch user-data once and run the full parse over it.

    The VM's user-data is not always available right after boot, and a
    half-written or empty payload looks the same as a missing one, so
    parse failures are retryable here just like transport failures.
    """
    try:
        user_data = await provider.get_user_data()
    except UserDataFetchException as e:
        if e.retryable:
            return FetchOutcome.retry(e)
        return FetchOutcome.fatal(e)

    try:
        cloud_config = parse_user_data(user_data)
    except CloudConfigParseException as e:
        return FetchOutcome.retry(e)

    return FetchOutcome.success(cloud_config)


def _log_retry(details):
    outcome = details["value"]
    logger.warning(f"Retry attempt {details['tries']}: {outcome.error}")


async def fetch_cloud_config(provider: UserDataProvider, timeout: float) -> CloudConfig:
    """
    Retrieve and parse the cloud config, retrying until ``timeout`` expires.

    Attempts are spaced by the provider's fixed retry delay and share one
    deadline; a request still in flight when it passes is cancelled.

    Raises:
        FetchTimeoutException: Deadline passed without valid user data,
            chained to the last error seen
        UserDataFetchException: The provider reported a non-retryable error
    """
    attempts: List[FetchOutcome] = []

    @backoff.on_predicate(
        backoff.constant,
        predicate=lambda outcome: outcome.retryable,
        interval=provider.retry_delay,
        jitter=None,
        max_time=timeout,
        on_backoff=_log_retry,
        logger=None,
    )
    async def _attempt() -> FetchOutcome:
        outcome = await fetch_and_validate(provider)
        attempts.append(outcome)
        return outcome

    try:
        outcome = await asyncio.wait_for(_attempt(), timeout=timeout)
    except asyncio.TimeoutError:
        last_error = attempts[-1].error if attempts else None
        raise FetchTimeoutException(
            f"timed out after {timeout}s waiting for user data from {provider.name}: {last_error}"
        ) from last_error

    if outcome.ok:
        return outcome.cloud_config

    if outcome.retryable:
        raise FetchTimeoutException(
            f"gave up after {len(attempts)} attempts to get user data from {provider.name}: {outcome.error}"
        ) from outcome.error

    logger.error(f"Failed to get user data from {provider.name}: {outcome.error}")
    raise outcome.error
