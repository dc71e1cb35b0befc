import asyncio

import pytest

from fixtures.userdata import FakeProvider, cloud_config_document, not_ready
from peerpod.exceptions import (
    CloudConfigParseException,
    FetchTimeoutException,
    UserDataFetchException,
)
from peerpod.userdata.fetch import fetch_and_validate, fetch_cloud_config


VALID = cloud_config_document([("/run/peerpod/agent-config.toml", "x = 1\n")])


@pytest.mark.asyncio
async def test_fetch_and_validate_success():
    outcome = await fetch_and_validate(FakeProvider([VALID]))

    assert outcome.ok
    assert outcome.error is None
    assert outcome.cloud_config.write_files[0].path == "/run/peerpod/agent-config.toml"


@pytest.mark.asyncio
async def test_fetch_and_validate_parse_failure_is_retryable():
    outcome = await fetch_and_validate(FakeProvider([b"%$#"]))

    assert not outcome.ok
    assert outcome.retryable
    assert isinstance(outcome.error, CloudConfigParseException)


@pytest.mark.asyncio
async def test_fetch_and_validate_non_retryable_fetch_error_is_fatal():
    error = UserDataFetchException("HTTP 400", retryable=False)

    outcome = await fetch_and_validate(FakeProvider([error]))

    assert not outcome.ok
    assert not outcome.retryable
    assert outcome.error is error


@pytest.mark.asyncio
async def test_fetch_cloud_config_first_attempt():
    provider = FakeProvider([b"write_files: []"])

    cloud_config = await fetch_cloud_config(provider, timeout=1)

    assert cloud_config.write_files == []
    assert provider.calls == 1


@pytest.mark.asyncio
async def test_fetch_cloud_config_retries_until_valid():
    """Failures of both kinds are retried and the successful attempt wins."""
    provider = FakeProvider([not_ready(), b"%$#", b"", VALID])

    cloud_config = await fetch_cloud_config(provider, timeout=2)

    assert provider.calls == 4
    assert cloud_config.write_files[0].content == "x = 1\n"


@pytest.mark.asyncio
async def test_fetch_cloud_config_never_valid_times_out():
    provider = FakeProvider([b"%$#"], retry_delay=0.01)

    with pytest.raises(FetchTimeoutException) as exc_info:
        await fetch_cloud_config(provider, timeout=0.2)

    assert provider.calls > 1
    assert isinstance(exc_info.value.__cause__, CloudConfigParseException)


@pytest.mark.asyncio
async def test_fetch_cloud_config_fatal_error_is_not_retried():
    provider = FakeProvider([UserDataFetchException("HTTP 400", retryable=False), VALID])

    with pytest.raises(UserDataFetchException, match="HTTP 400"):
        await fetch_cloud_config(provider, timeout=2)

    assert provider.calls == 1


@pytest.mark.asyncio
async def test_fetch_cloud_config_cancels_hanging_request():
    class HangingProvider(FakeProvider):
        async def get_user_data(self) -> bytes:
            self.calls += 1
            await asyncio.sleep(60)

    provider = HangingProvider([VALID])

    with pytest.raises(FetchTimeoutException):
        await fetch_cloud_config(provider, timeout=0.1)

    assert provider.calls == 1
