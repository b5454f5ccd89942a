"""
Unit tests for the OCR provider factory and its circuit breaker.
"""

from __future__ import annotations

import asyncio

import pytest

from docintake.config import OcrConfig
from docintake.exceptions import (
    ConfigurationError,
    ImageProcessingError,
    RecognitionError,
)
from docintake.ocr.factory import (
    OcrProviderFactory,
    ProviderHealth,
    TrackedOcrProvider,
    configured_registry,
)
from docintake.ocr.providers import DoctrProvider, TesseractProvider


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def providers(make_provider):
    """Primary provider that always fails, and a working fallback."""
    return {
        "doctr": make_provider("doctr", error=RecognitionError("engine crashed")),
        "tesseract": make_provider("tesseract", text="fallback text"),
    }


@pytest.fixture
def factory(providers, clock) -> OcrProviderFactory:
    registry = {name: (lambda p=p: p) for name, p in providers.items()}
    return OcrProviderFactory(registry, clock=clock)


async def fail_times(provider, file, count: int) -> None:
    for _ in range(count):
        with pytest.raises(RecognitionError):
            await provider.extract_text(file)


# =============================================================================
# RESOLUTION
# =============================================================================


class TestGetProvider:
    """Test name resolution and memoization."""

    def test_returns_tracked_provider(self, factory, providers):
        provider = factory.get_provider("tesseract")

        assert isinstance(provider, TrackedOcrProvider)
        assert provider.inner is providers["tesseract"]
        assert provider.name == "tesseract"

    def test_memoized(self, factory):
        assert factory.get_provider("doctr") is factory.get_provider("doctr")

    def test_name_normalized(self, factory):
        assert factory.get_provider("  DocTR ") is factory.get_provider("doctr")

    def test_unknown_name_uses_fallback(self, factory, caplog):
        provider = factory.get_provider("azure")

        assert provider.name == "tesseract"
        assert "Unknown OCR provider" in caplog.text

    def test_missing_fallback_is_configuration_error(self, make_provider):
        factory = OcrProviderFactory({"doctr": make_provider}, fallback_name="tesseract")

        with pytest.raises(ConfigurationError, match="tesseract"):
            factory.get_provider("azure")

    def test_available_providers(self, factory):
        assert sorted(factory.available_providers()) == ["doctr", "tesseract"]

    def test_default_registry(self):
        factory = OcrProviderFactory()

        assert sorted(factory.available_providers()) == ["doctr", "tesseract"]

    def test_is_language_supported(self, factory):
        assert factory.is_language_supported("doctr", "spa")
        assert not factory.is_language_supported("doctr", "jpn")
        assert not factory.is_language_supported("azure", "eng")


# =============================================================================
# CIRCUIT BREAKER
# =============================================================================


class TestCircuitBreaker:
    """Test failure tracking and fallback routing."""

    def test_failures_counted(self, factory, png_file):
        asyncio.run(fail_times(factory.get_provider("doctr"), png_file, 2))

        health = factory.health("doctr")
        assert health.failure_count == 2
        assert health.last_failure == 1000.0
        assert factory.is_healthy("doctr")

    def test_threshold_opens_circuit(self, factory, png_file):
        asyncio.run(fail_times(factory.get_provider("doctr"), png_file, 3))

        assert not factory.is_healthy("doctr")
        provider = factory.get_provider("doctr")
        assert provider.name == "tesseract"
        assert asyncio.run(provider.extract_text(png_file)).text == "fallback text"

    def test_window_measured_from_last_failure(self, factory, png_file, clock):
        asyncio.run(fail_times(factory.get_provider("doctr"), png_file, 3))

        clock.now += 599
        assert factory.get_provider("doctr").name == "tesseract"

        clock.now += 2
        assert factory.get_provider("doctr").name == "doctr"

    def test_success_resets_count(self, make_provider, png_file):
        flaky = make_provider("doctr", error=RecognitionError("boom"))
        factory = OcrProviderFactory({"doctr": lambda: flaky, "tesseract": make_provider})
        provider = factory.get_provider("doctr")

        asyncio.run(fail_times(provider, png_file, 2))
        flaky.error = None
        asyncio.run(provider.extract_text(png_file))

        assert factory.health("doctr").failure_count == 0

    def test_input_errors_not_counted(self, make_provider, png_file):
        rejecting = make_provider(
            "doctr", error=ImageProcessingError("too small", ImageProcessingError.IMAGE_TOO_SMALL)
        )
        factory = OcrProviderFactory({"doctr": lambda: rejecting, "tesseract": make_provider})
        provider = factory.get_provider("doctr")

        async def run():
            for _ in range(5):
                with pytest.raises(ImageProcessingError):
                    await provider.extract_text(png_file)

        asyncio.run(run())

        assert factory.health("doctr").failure_count == 0
        assert factory.is_healthy("doctr")

    def test_count_without_timestamp_is_healthy(self, factory):
        factory._health["doctr"] = ProviderHealth(failure_count=3)

        assert factory.is_healthy("doctr")
        assert factory.get_provider("doctr").name == "doctr"

    def test_fallback_used_even_when_unhealthy(self, make_provider, png_file):
        broken = make_provider("tesseract", error=RecognitionError("no binary"))
        factory = OcrProviderFactory({"doctr": make_provider, "tesseract": lambda: broken})

        asyncio.run(fail_times(factory.get_provider("tesseract"), png_file, 4))

        assert factory.get_provider("tesseract").name == "tesseract"


# =============================================================================
# DISPOSAL
# =============================================================================


class TestDisposeAll:
    def test_disposes_instances_and_forgets_state(self, factory, providers, png_file):
        first = factory.get_provider("doctr")
        asyncio.run(fail_times(first, png_file, 3))

        asyncio.run(factory.dispose_all())

        assert providers["doctr"].disposed == 1
        assert factory.health("doctr").failure_count == 0
        assert factory.get_provider("doctr") is not first

    def test_dispose_errors_logged(self, make_provider, caplog):
        class Stubborn(type(make_provider())):
            async def dispose(self):
                raise RuntimeError("still busy")

        factory = OcrProviderFactory({"doctr": Stubborn, "tesseract": make_provider})
        factory.get_provider("doctr")
        factory.get_provider("tesseract")

        asyncio.run(factory.dispose_all())

        assert "still busy" in caplog.text


# =============================================================================
# CONFIGURED REGISTRY
# =============================================================================


class TestFromConfig:
    def test_breaker_settings(self):
        config = OcrConfig(failure_threshold=5, failure_window_seconds=60, fallback_provider="doctr")

        factory = OcrProviderFactory.from_config(config)

        assert factory.failure_threshold == 5
        assert factory.failure_window == 60
        assert factory.fallback_name == "doctr"

    def test_providers_follow_settings(self):
        config = OcrConfig(
            init_attempts=2, recognition_attempts=4, cache_size=7, cache_ttl_seconds=30
        )
        registry = configured_registry(config)

        doctr = registry["doctr"]()

        assert isinstance(doctr, DoctrProvider)
        assert doctr.engine_manager.attempts == 2
        assert doctr.attempts == 4
        assert doctr.cache.max_entries == 7
        assert doctr.cache.ttl == 30
        assert isinstance(registry["tesseract"](), TesseractProvider)
