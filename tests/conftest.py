import pytest

from enclave_tee import enclave_signer
from tests.fakes import TEST_FAL_KEY, ZERO_SEED, FakeServices
from veriforge.config import Settings


@pytest.fixture(scope="session", autouse=True)
def enclave_key():
    # The enclave key is process-wide; every test sees the zero-seed key
    return enclave_signer.initialize_enclave_keypair(ZERO_SEED)


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        FAL_KEY=TEST_FAL_KEY,
        MODEL_ENDPOINTS={
            "flux-dev": {
                "generate": "fal-ai/flux/dev",
                "edit": "fal-ai/flux/dev/image-to-image",
            },
            "flux-schnell": {
                "generate": "fal-ai/flux/schnell",
                "edit": "fal-ai/flux/schnell/image-to-image",
            },
        },
    )


@pytest.fixture
def fake():
    return FakeServices()
