"""
Request normalization.

Classifies a request into Generate or Edit mode, resolves the source reference
to a fetchable address and builds the provider invocation plan from the
configured constants.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Optional
from urllib.parse import urlparse

from veriforge.config import Settings
from veriforge.errors import InvalidRequest
from veriforge.models import U64_MAX, GenerationRequest, Mode

logger = logging.getLogger(__name__)

# Walrus blob ids are URL-safe base64
_BLOB_ID_RE = re.compile(r"^[A-Za-z0-9_-]+$")


@dataclass(frozen=True)
class InvocationPlan:
    """Everything the rest of the pipeline needs to know about one request."""

    mode: Mode
    prompt: str
    model: str
    seed: int
    endpoint: str
    source_url: Optional[str] = None
    params: Dict[str, Any] = field(default_factory=dict)


def is_network_address(reference: str) -> bool:
    try:
        parsed = urlparse(reference)
    except ValueError:
        # e.g. "http://[bad" (unterminated IPv6 literal)
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


class RequestNormalizer:
    """Turns a GenerationRequest into an InvocationPlan."""

    def __init__(self, settings: Settings):
        self.settings = settings

    def resolve_source(self, reference: str) -> str:
        """
        Resolve a source reference to a URL.

        Fully-qualified http(s) addresses are used verbatim; anything else is
        treated as a blob id and prefixed with the gateway address.

        Raises:
            InvalidRequest: If the reference is neither a URL nor a valid blob id
        """
        reference = reference.strip()
        if is_network_address(reference):
            return reference
        if not _BLOB_ID_RE.match(reference):
            raise InvalidRequest(
                f"sourceImageReference is neither an http(s) URL nor a blob id: {reference[:80]!r}",
                field="sourceImageReference",
            )
        return f"{self.settings.BLOB_GATEWAY_URL.rstrip('/')}/{reference}"

    def normalize(self, request: GenerationRequest) -> InvocationPlan:
        prompt = request.prompt
        if not prompt or not prompt.strip():
            raise InvalidRequest("prompt must be non-empty", field="prompt")

        endpoints = self.settings.MODEL_ENDPOINTS.get(request.model)
        if endpoints is None:
            raise InvalidRequest(
                f"unknown model {request.model!r}; supported: {', '.join(self.settings.supported_models)}",
                field="model",
            )

        seed = self.settings.DEFAULT_SEED if request.seed is None else request.seed
        if not 0 <= seed <= U64_MAX:
            raise InvalidRequest("seed must be an unsigned 64-bit integer", field="seed")

        mode = request.mode
        common = {
            "prompt": prompt,
            "seed": seed,
            "guidance_scale": self.settings.GUIDANCE_SCALE,
            "enable_safety_checker": self.settings.ENABLE_SAFETY_CHECKER,
        }

        if mode is Mode.EDIT:
            if not request.source_image_reference.strip():
                raise InvalidRequest("sourceImageReference must be non-empty", field="sourceImageReference")
            source_url = self.resolve_source(request.source_image_reference)
            # The provider receives the address only, never the bytes
            params = {
                **common,
                "image_url": source_url,
                "strength": self.settings.EDIT_STRENGTH,
                "num_inference_steps": self.settings.EDIT_INFERENCE_STEPS,
            }
            endpoint = endpoints["edit"]
        else:
            source_url = None
            params = {
                **common,
                "image_size": self.settings.GENERATE_IMAGE_SIZE,
                "num_inference_steps": self.settings.GENERATE_INFERENCE_STEPS,
            }
            endpoint = endpoints["generate"]

        logger.debug(f"Normalized request: mode={mode.value} model={request.model} seed={seed}")

        return InvocationPlan(
            mode=mode,
            prompt=prompt,
            model=request.model,
            seed=seed,
            endpoint=endpoint,
            source_url=source_url,
            params=params,
        )
