import httpx
from loguru import logger

from peerpod.config import ProviderConfig
from peerpod.exceptions import UserDataFetchException
from peerpod.providers.base import endpoint_available, raise_for_status


TOKEN_TTL_HEADER = "X-aws-ec2-metadata-token-ttl-seconds"
TOKEN_HEADER = "X-aws-ec2-metadata-token"


class AWSUserDataProvider:
    """User-data from the EC2 instance metadata service (IMDSv2)."""

    name = "aws"

    def __init__(self, config: ProviderConfig, client: httpx.AsyncClient):
        self.config = config
        self.client = client

    @property
    def retry_delay(self) -> float:
        return self.config.retry_delay

    async def is_this_provider(self) -> bool:
        return await endpoint_available(
            self.client,
            "PUT",
            self.config.aws_token_url,
            "AWS",
            headers={TOKEN_TTL_HEADER: str(self.config.aws_token_ttl)},
            timeout=self.config.request_timeout,
        )

    async def _get_token(self) -> str:
        response = await self.client.put(
            self.config.aws_token_url,
            headers={TOKEN_TTL_HEADER: str(self.config.aws_token_ttl)},
            timeout=self.config.request_timeout,
        )
        raise_for_status(response, "AWS")
        return response.text

    async def get_user_data(self) -> bytes:
        url = self.config.aws_user_data_url
        logger.info(f"provider: AWS, userDataUrl: {url}")
        try:
            token = await self._get_token()
            response = await self.client.get(
                url,
                headers={TOKEN_HEADER: token},
                timeout=self.config.request_timeout,
            )
        except httpx.HTTPError as e:
            raise UserDataFetchException(f"Failed to get user data from {url}: {e!r}")

        raise_for_status(response, "AWS")
        return response.content
