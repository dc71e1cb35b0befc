from typing import Protocol, runtime_checkable

import httpx
from loguru import logger

from peerpod.exceptions import UserDataFetchException


# Status codes meaning the metadata service is not ready (yet). 401 and 403
# show up while IMDS access or the instance identity is still being set up.
# Any other 4xx is a request error and fails fast.
RETRYABLE_STATUS_CODES = {401, 403, 404, 408, 410, 429}


@runtime_checkable
class UserDataProvider(Protocol):
    """Capabilities every cloud user-data source exposes."""

    name: str

    @property
    def retry_delay(self) -> float:
        ...

    async def is_this_provider(self) -> bool:
        ...

    async def get_user_data(self) -> bytes:
        ...


def raise_for_status(response: httpx.Response, provider: str) -> None:
    """Translate a failing metadata response into a fetch exception."""
    if response.is_success:
        return

    code = response.status_code
    retryable = code in RETRYABLE_STATUS_CODES or code >= 500
    raise UserDataFetchException(
        f"{provider} metadata service returned HTTP {code} for {response.request.url}",
        retryable=retryable,
    )


async def endpoint_available(client: httpx.AsyncClient, method: str, url: str, provider: str, **kwargs) -> bool:
    """Return True when the endpoint answers with a success status."""
    try:
        response = await client.request(method, url, **kwargs)
    except httpx.HTTPError as e:
        logger.debug(f"{provider} check {method} {url} failed: {e!r}")
        return False

    logger.debug(f"{provider} check {method} {url} returned HTTP {response.status_code}")
    return response.is_success
