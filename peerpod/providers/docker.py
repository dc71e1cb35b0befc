import httpx
from loguru import logger

from peerpod.config import ProviderConfig
from peerpod.exceptions import UserDataFetchException
from peerpod.providers.base import raise_for_status


class DockerUserDataProvider:
    """User-data served to pod VMs running as docker containers."""

    name = "docker"

    def __init__(self, config: ProviderConfig, client: httpx.AsyncClient):
        self.config = config
        self.client = client

    @property
    def retry_delay(self) -> float:
        return self.config.retry_delay

    async def is_this_provider(self) -> bool:
        # Local file check only, no network round trip
        return self.config.docker_marker_file.exists()

    async def get_user_data(self) -> bytes:
        url = self.config.docker_user_data_url
        logger.info(f"provider: Docker, userDataUrl: {url}")
        try:
            response = await self.client.get(url, timeout=self.config.request_timeout)
        except httpx.HTTPError as e:
            raise UserDataFetchException(f"Failed to get user data from {url}: {e!r}")

        raise_for_status(response, "Docker")
        return response.content
