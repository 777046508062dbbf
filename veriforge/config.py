"""
Configuration settings for the VeriForge enclave service.
Loads settings from environment variables (and an optional .env file) with sensible defaults.
"""

from typing import Dict, List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Zero seed keeps the enclave public key identical across restarts.
DEFAULT_ENCLAVE_KEY_SEED_HEX = "00" * 32


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    # Application
    APP_ENV: str = Field(default="development", description="Application environment")
    LOG_LEVEL: str = Field(default="INFO", description="Logging level")
    HOST: str = Field(default="0.0.0.0", description="Bind address")
    PORT: int = Field(default=3000, description="Bind port")

    # Generation provider (fal.ai)
    FAL_KEY: str = Field(default="", description="Generation provider credential")
    FAL_BASE_URL: str = Field(default="https://fal.run", description="Generation provider base URL")
    MODEL_ENDPOINTS: Dict[str, Dict[str, str]] = Field(
        default={
            "flux-dev": {
                "generate": "fal-ai/flux/dev",
                "edit": "fal-ai/flux/dev/image-to-image",
            },
        },
        description="Model id -> provider endpoint path per mode",
    )

    # Invocation constants (not negotiated per request)
    DEFAULT_SEED: int = Field(default=42, description="Seed used when the request omits one")
    GENERATE_IMAGE_SIZE: str = Field(default="square_hd", description="Resolution class for generation")
    GENERATE_INFERENCE_STEPS: int = Field(default=28, description="Inference steps for generation")
    EDIT_STRENGTH: float = Field(default=0.85, description="Edit strength factor (0.0 to 1.0)")
    EDIT_INFERENCE_STEPS: int = Field(default=40, description="Inference steps for image-to-image")
    GUIDANCE_SCALE: float = Field(default=3.5, description="Classifier-free guidance scale")
    ENABLE_SAFETY_CHECKER: bool = Field(default=True, description="Provider safety filter flag")

    # Content-addressed storage (Walrus)
    BLOB_GATEWAY_URL: str = Field(
        default="https://aggregator.walrus-testnet.walrus.space/v1/blobs",
        description="Gateway prefix used to expand bare blob ids",
    )
    WALRUS_PUBLISHER_URL: str = Field(
        default="https://publisher.walrus-testnet.walrus.space",
        description="Publisher base URL for blob writes",
    )
    WALRUS_EPOCHS: int = Field(default=1, description="Storage retention in epochs")

    # Enclave key
    ENCLAVE_KEY_SEED_HEX: str = Field(
        default=DEFAULT_ENCLAVE_KEY_SEED_HEX,
        description="32-byte Ed25519 seed (hex) for the fixed enclave key",
    )

    # Per-call deadlines
    PROVIDER_TIMEOUT_SECONDS: float = Field(default=120.0, description="Generation call deadline")
    FETCH_TIMEOUT_SECONDS: float = Field(default=30.0, description="Artifact fetch deadline")
    STORAGE_TIMEOUT_SECONDS: float = Field(default=60.0, description="Storage write deadline")
    MAX_ARTIFACT_BYTES: int = Field(default=50 * 1024 * 1024, description="Largest artifact accepted")

    # CORS
    CORS_ALLOWED_ORIGINS: List[str] = Field(default=["*"], description="Allowed CORS origins")

    @property
    def supported_models(self) -> List[str]:
        return sorted(self.MODEL_ENDPOINTS.keys())

    @property
    def enclave_key_seed(self) -> bytes:
        """Decode the enclave seed. Raises ValueError if it is not 32 bytes of hex."""
        seed = bytes.fromhex(self.ENCLAVE_KEY_SEED_HEX)
        if len(seed) != 32:
            raise ValueError(f"ENCLAVE_KEY_SEED_HEX must decode to 32 bytes, got {len(seed)}")
        return seed

    def validate_settings(self) -> List[str]:
        """
        Collect configuration problems.

        Returns:
            List of human readable problems (empty when the config is usable)
        """
        errors = []

        if not self.FAL_KEY:
            errors.append("FAL_KEY is not set")

        try:
            self.enclave_key_seed
        except ValueError as e:
            errors.append(f"ENCLAVE_KEY_SEED_HEX is invalid: {e}")

        for name in ("PROVIDER_TIMEOUT_SECONDS", "FETCH_TIMEOUT_SECONDS", "STORAGE_TIMEOUT_SECONDS"):
            if getattr(self, name) <= 0:
                errors.append(f"{name} must be positive")

        if self.MAX_ARTIFACT_BYTES <= 0:
            errors.append("MAX_ARTIFACT_BYTES must be positive")

        for model_id, endpoints in self.MODEL_ENDPOINTS.items():
            missing = {"generate", "edit"} - set(endpoints)
            if missing:
                errors.append(f"MODEL_ENDPOINTS[{model_id!r}] is missing {sorted(missing)}")

        if not 0 <= self.DEFAULT_SEED < 2**64:
            errors.append("DEFAULT_SEED must fit in an unsigned 64-bit integer")

        return errors


# Global settings instance
settings = Settings()
