"""
Configuration Tests
===================

Environment parsing and validation of the deployment configuration.
"""

import pytest

from adapter.providers import GeminiProvider, MockProvider
from discovery.config import CanvasConfig, DiscoveryConfig, ProviderConfig


class TestDefaults:

    def test_defaults_filled(self):
        config = DiscoveryConfig()

        assert config.provider.provider == "mock"
        assert config.agents.text_model == "gemini-2.5-flash"
        assert config.canvas.tick_ms == 16.0
        assert config.forces.link_distance == 180.0
        assert config.view.scale_max == 4.0
        assert config.interaction.drag_threshold == 3.0

    def test_viewport(self):
        viewport = CanvasConfig(viewport_width=800.0, viewport_height=600.0).viewport
        assert (viewport.width, viewport.height) == (800.0, 600.0)


class TestFromEnv:

    def test_no_key_means_mock(self):
        config = DiscoveryConfig.from_env({})
        assert config.provider.provider == "mock"
        assert isinstance(config.provider.create_provider(), MockProvider)

    def test_key_selects_gemini(self):
        config = DiscoveryConfig.from_env({"GEMINI_API_KEY": "secret"})

        assert config.provider.provider == "gemini"
        assert config.provider.api_key == "secret"
        assert isinstance(config.provider.create_provider(), GeminiProvider)

    def test_explicit_provider_wins(self):
        config = DiscoveryConfig.from_env({"GEMINI_API_KEY": "secret", "SYNAPSE_PROVIDER": "MOCK"})
        assert config.provider.provider == "mock"

    def test_model_overrides(self):
        config = DiscoveryConfig.from_env({
            "SYNAPSE_TEXT_MODEL": "text-x",
            "SYNAPSE_IMAGE_MODEL": "image-x",
            "SYNAPSE_REPORT_MODEL": "report-x",
        })

        assert config.agents.text_model == "text-x"
        assert config.agents.image_model == "image-x"
        assert config.agents.report_model == "report-x"

    def test_tick_override(self):
        assert DiscoveryConfig.from_env({"SYNAPSE_TICK_MS": "33"}).canvas.tick_ms == 33.0


class TestValidation:

    def test_unknown_provider(self):
        with pytest.raises(ValueError):
            ProviderConfig(provider="openai")

    def test_unknown_provider_from_env(self):
        with pytest.raises(ValueError):
            DiscoveryConfig.from_env({"SYNAPSE_PROVIDER": "other"})

    @pytest.mark.parametrize("fields", [
        {"viewport_width": 0.0},
        {"viewport_height": -1.0},
        {"tick_ms": 0.0},
    ])
    def test_canvas_bounds(self, fields):
        with pytest.raises(ValueError):
            CanvasConfig(**fields)
