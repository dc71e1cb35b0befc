import base64
import binascii

import httpx
from loguru import logger

from peerpod.config import ProviderConfig
from peerpod.exceptions import UserDataFetchException
from peerpod.providers.base import endpoint_available, raise_for_status


IMDS_HEADERS = {"Metadata": "true"}


class AzureUserDataProvider:
    """User-data from the Azure Instance Metadata Service."""

    name = "azure"

    def __init__(self, config: ProviderConfig, client: httpx.AsyncClient):
        self.config = config
        self.client = client

    @property
    def retry_delay(self) -> float:
        return self.config.retry_delay

    async def is_this_provider(self) -> bool:
        return await endpoint_available(
            self.client,
            "GET",
            self.config.azure_identity_url,
            "Azure",
            headers=IMDS_HEADERS,
            timeout=self.config.request_timeout,
        )

    async def get_user_data(self) -> bytes:
        url = self.config.azure_user_data_url
        logger.info(f"provider: Azure, userDataUrl: {url}")
        try:
            response = await self.client.get(url, headers=IMDS_HEADERS, timeout=self.config.request_timeout)
        except httpx.HTTPError as e:
            raise UserDataFetchException(f"Failed to get user data from {url}: {e!r}")

        raise_for_status(response, "Azure")

        # IMDS hands out user-data base64 encoded, plain text is not supported
        try:
            return base64.b64decode(response.content.strip(), validate=True)
        except binascii.Error as e:
            raise UserDataFetchException(f"Azure user data is not valid base64: {e}")
