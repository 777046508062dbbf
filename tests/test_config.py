"""
Tests for settings loading and validation.
"""

from veriforge.config import Settings


class TestSettingsDefaults:
    """Defaults that make up the provider invocation contract."""

    def test_invocation_constants(self):
        settings = Settings(_env_file=None)
        assert settings.DEFAULT_SEED == 42
        assert settings.GENERATE_IMAGE_SIZE == "square_hd"
        assert settings.GENERATE_INFERENCE_STEPS == 28
        assert settings.EDIT_STRENGTH == 0.85
        assert settings.EDIT_INFERENCE_STEPS == 40
        assert settings.GUIDANCE_SCALE == 3.5
        assert settings.ENABLE_SAFETY_CHECKER is True

    def test_default_endpoints(self):
        settings = Settings(_env_file=None)
        assert settings.MODEL_ENDPOINTS["flux-dev"]["generate"] == "fal-ai/flux/dev"
        assert settings.MODEL_ENDPOINTS["flux-dev"]["edit"] == "fal-ai/flux/dev/image-to-image"
        assert settings.supported_models == ["flux-dev"]

    def test_default_enclave_seed_is_zero(self):
        settings = Settings(_env_file=None)
        assert settings.enclave_key_seed == bytes(32)

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("DEFAULT_SEED", "7")
        monkeypatch.setenv("WALRUS_EPOCHS", "5")
        settings = Settings(_env_file=None)
        assert settings.DEFAULT_SEED == 7
        assert settings.WALRUS_EPOCHS == 5


class TestValidateSettings:
    """validate_settings() reports problems instead of raising."""

    def test_valid(self, settings):
        assert settings.validate_settings() == []

    def test_missing_fal_key(self):
        settings = Settings(_env_file=None, FAL_KEY="")
        problems = settings.validate_settings()
        assert any("FAL_KEY" in p for p in problems)

    def test_bad_seed_length(self, settings):
        settings = settings.model_copy(update={"ENCLAVE_KEY_SEED_HEX": "00" * 16})
        problems = settings.validate_settings()
        assert any("ENCLAVE_KEY_SEED_HEX" in p for p in problems)

    def test_bad_seed_hex(self, settings):
        settings = settings.model_copy(update={"ENCLAVE_KEY_SEED_HEX": "zz" * 32})
        problems = settings.validate_settings()
        assert any("ENCLAVE_KEY_SEED_HEX" in p for p in problems)

    def test_incomplete_model_endpoints(self, settings):
        settings = settings.model_copy(update={"MODEL_ENDPOINTS": {"half": {"generate": "x"}}})
        problems = settings.validate_settings()
        assert any("half" in p and "edit" in p for p in problems)

    def test_non_positive_timeout(self, settings):
        settings = settings.model_copy(update={"FETCH_TIMEOUT_SECONDS": 0})
        problems = settings.validate_settings()
        assert any("FETCH_TIMEOUT_SECONDS" in p for p in problems)
