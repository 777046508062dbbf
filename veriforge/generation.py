"""
fal.ai generation adapter.

Submits the invocation plan to the generative-model provider and extracts the
address of the first produced image. The reply is parsed into a schema with
optional fields so a missing field becomes an explicit ExternalProviderError
instead of a KeyError.
"""

import logging
from typing import List, Optional

import httpx
from pydantic import BaseModel, ConfigDict, ValidationError

from veriforge.config import Settings
from veriforge.errors import ConfigurationError, ExternalProviderError, redact
from veriforge.normalizer import InvocationPlan

logger = logging.getLogger(__name__)

# Provider bodies can be large; keep error details readable
_MAX_ERROR_BODY_CHARS = 2000


class ProviderImage(BaseModel):
    model_config = ConfigDict(extra="allow")

    url: Optional[str] = None
    content_type: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None


class ProviderResponse(BaseModel):
    model_config = ConfigDict(extra="allow")

    images: Optional[List[ProviderImage]] = None
    seed: Optional[int] = None

    def first_image_url(self) -> Optional[str]:
        if not self.images:
            return None
        return self.images[0].url or None


class GenerationAdapter:
    """Client for the external generation provider."""

    def __init__(self, settings: Settings, client: httpx.AsyncClient):
        self.settings = settings
        self.client = client
        self.base_url = settings.FAL_BASE_URL.rstrip("/")

    def _credential(self) -> str:
        api_key = self.settings.FAL_KEY
        if not api_key:
            raise ConfigurationError("generation provider credential (FAL_KEY) is missing", stage="generate")
        return api_key

    def _body_excerpt(self, text: str) -> str:
        return redact(text, self.settings.FAL_KEY)[:_MAX_ERROR_BODY_CHARS]

    async def generate(self, plan: InvocationPlan) -> str:
        """
        Invoke the provider for one plan.

        Args:
            plan: Normalized invocation plan

        Returns:
            Fetchable URL of the first produced image

        Raises:
            ConfigurationError: If the provider credential is missing
            ExternalProviderError: On transport failure, bad status or a reply without an image URL
        """
        api_key = self._credential()
        url = f"{self.base_url}/{plan.endpoint.lstrip('/')}"
        headers = {
            "Authorization": f"Key {api_key}",
            "Content-Type": "application/json",
        }

        logger.info(f"Calling generation provider: {plan.endpoint} (mode={plan.mode.value}, seed={plan.seed})")

        try:
            response = await self.client.post(
                url,
                json=plan.params,
                headers=headers,
                timeout=self.settings.PROVIDER_TIMEOUT_SECONDS,
            )
        except httpx.TimeoutException as e:
            raise ExternalProviderError(
                f"generation provider did not answer within {self.settings.PROVIDER_TIMEOUT_SECONDS}s"
            ) from e
        except httpx.HTTPError as e:
            raise ExternalProviderError(
                f"generation request failed: {self._body_excerpt(str(e))}"
            ) from e

        body = response.text
        if not response.is_success:
            logger.error(f"Generation provider {response.status_code} response for {plan.endpoint}")
            raise ExternalProviderError(
                f"generation provider returned HTTP {response.status_code}",
                status=response.status_code,
                response_body=self._body_excerpt(body),
            )

        try:
            parsed = ProviderResponse.model_validate_json(body)
        except ValidationError as e:
            raise ExternalProviderError(
                "generation provider returned an unparseable body",
                status=response.status_code,
                response_body=self._body_excerpt(body),
            ) from e

        image_url = parsed.first_image_url()
        if not image_url:
            raise ExternalProviderError(
                "generation provider response missing images[0].url",
                status=response.status_code,
                response_body=self._body_excerpt(body),
            )

        return image_url
