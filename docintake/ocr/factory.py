"""
OCR provider factory with a failure-count circuit breaker.

The factory memoizes one provider instance per normalized name and wraps each
in a TrackedOcrProvider, which records the outcome of every extract_text call.
Once a provider accumulates ``failure_threshold`` failures and the latest is
within ``failure_window`` seconds, get_provider routes to the fallback
provider instead.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from docintake.exceptions import ConfigurationError, ImageProcessingError
from docintake.models import AUTO_LANGUAGE
from docintake.normalizers.image import ImageNormalizer
from docintake.ocr.engine import OcrEngineManager
from docintake.ocr.providers import DoctrProvider, OcrProvider, RecognitionCache, TesseractProvider

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

    from docintake.config import ImageLimits, OcrConfig
    from docintake.models import DocumentFile, OcrResult
    from docintake.ocr.providers import ProgressCallback

logger = logging.getLogger(__name__)

FAILURE_THRESHOLD = 3
FAILURE_WINDOW_SECONDS = 600.0  # 10 minutes since the last failure
FALLBACK_PROVIDER = "tesseract"


def default_registry() -> dict[str, Callable[[], OcrProvider]]:
    """Constructors of the built-in providers, keyed by name."""
    return {
        DoctrProvider.name: DoctrProvider,
        TesseractProvider.name: TesseractProvider,
    }


def normalize_name(name: str) -> str:
    return name.strip().lower()


@dataclass
class ProviderHealth:
    """Failure bookkeeping for one provider name."""

    failure_count: int = 0
    last_failure: float | None = None


# =============================================================================
# TRACKING WRAPPER
# =============================================================================


class TrackedOcrProvider(OcrProvider):
    """
    Provider decorator that reports each extraction outcome to the factory.

    A successful call resets the failure count; a failed call increments it.
    Input errors (ImageProcessingError) say nothing about provider health and
    are passed through untracked.
    """

    def __init__(self, inner: OcrProvider, name: str, factory: OcrProviderFactory):
        self.inner = inner
        self.name = name
        self.supported_languages = inner.supported_languages
        self._factory = factory

    async def extract_text(
        self,
        file: DocumentFile,
        on_progress: ProgressCallback | None = None,
        language: str = AUTO_LANGUAGE,
        options: Mapping[str, Any] | None = None,
    ) -> OcrResult:
        try:
            result = await self.inner.extract_text(file, on_progress, language, options)
        except ImageProcessingError:
            raise
        except Exception:
            self._factory.record_failure(self.name)
            raise
        self._factory.record_success(self.name)
        return result

    def get_supported_file_types(self) -> list[str]:
        return self.inner.get_supported_file_types()

    def supports_file_type(self, mime_type: str) -> bool:
        return self.inner.supports_file_type(mime_type)

    async def dispose(self) -> None:
        await self.inner.dispose()

    def __repr__(self) -> str:
        return f"TrackedOcrProvider({self.inner!r})"


# =============================================================================
# FACTORY
# =============================================================================


class OcrProviderFactory:
    """
    Resolves provider names to memoized, failure-tracked instances.

    Attributes:
        fallback_name: Provider substituted for unhealthy or unknown ones.
        failure_threshold: Failures that open the circuit.
        failure_window: Seconds after the last failure the circuit stays open.

    Example:
        >>> factory = OcrProviderFactory()
        >>> provider = factory.get_provider("doctr")
        >>> result = await provider.extract_text(file)
        >>> await factory.dispose_all()
    """

    def __init__(
        self,
        registry: Mapping[str, Callable[[], OcrProvider]] | None = None,
        *,
        fallback_name: str = FALLBACK_PROVIDER,
        failure_threshold: int = FAILURE_THRESHOLD,
        failure_window: float = FAILURE_WINDOW_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        source = registry if registry is not None else default_registry()
        self._registry = {normalize_name(k): v for k, v in source.items()}
        self.fallback_name = normalize_name(fallback_name)
        self.failure_threshold = failure_threshold
        self.failure_window = failure_window
        self._clock = clock

        self._instances: dict[str, TrackedOcrProvider] = {}
        self._health: dict[str, ProviderHealth] = {}

    @classmethod
    def from_config(
        cls,
        config: OcrConfig,
        images: ImageLimits | None = None,
        registry: Mapping[str, Callable[[], OcrProvider]] | None = None,
    ) -> OcrProviderFactory:
        """Build a factory whose providers follow the given OCR and image settings."""
        if registry is None:
            registry = configured_registry(config, images)
        return cls(
            registry,
            fallback_name=config.fallback_provider,
            failure_threshold=config.failure_threshold,
            failure_window=config.failure_window_seconds,
        )

    def get_provider(self, name: str) -> OcrProvider:
        """
        Return the provider for ``name``, or the fallback if it is unhealthy.

        Raises:
            ConfigurationError: If neither the provider nor the fallback is
                registered.
        """
        key = normalize_name(name)

        if key not in self._registry:
            logger.warning("Unknown OCR provider %r, using %s", name, self.fallback_name)
            key = self.fallback_name

        if key != self.fallback_name and not self.is_healthy(key):
            logger.info(
                "Provider %s is unhealthy (%d failures), using %s instead",
                key,
                self._health[key].failure_count,
                self.fallback_name,
            )
            key = self.fallback_name

        return self._instance(key)

    def _instance(self, key: str) -> TrackedOcrProvider:
        if key not in self._instances:
            constructor = self._registry.get(key)
            if constructor is None:
                raise ConfigurationError(f"No OCR provider registered under {key!r}")
            self._instances[key] = TrackedOcrProvider(constructor(), key, self)
            logger.debug("Created OCR provider %s", key)
        return self._instances[key]

    # -------------------------------------------------------------------------
    # Health tracking
    # -------------------------------------------------------------------------

    def record_failure(self, name: str) -> None:
        health = self._health.setdefault(normalize_name(name), ProviderHealth())
        health.failure_count += 1
        health.last_failure = self._clock()
        logger.warning("OCR provider %s failure count: %d", name, health.failure_count)

    def record_success(self, name: str) -> None:
        health = self._health.get(normalize_name(name))
        if health is not None:
            health.failure_count = 0

    def health(self, name: str) -> ProviderHealth:
        return self._health.get(normalize_name(name), ProviderHealth())

    def is_healthy(self, name: str) -> bool:
        health = self._health.get(normalize_name(name))
        if health is None or health.failure_count < self.failure_threshold:
            return True
        if health.last_failure is None:
            return True
        return self._clock() - health.last_failure >= self.failure_window

    # -------------------------------------------------------------------------
    # Catalogue
    # -------------------------------------------------------------------------

    def available_providers(self) -> list[str]:
        return list(self._registry)

    def is_language_supported(self, name: str, language: str) -> bool:
        key = normalize_name(name)
        if key not in self._registry:
            return False
        return language in self._instance(key).supported_languages

    async def dispose_all(self) -> None:
        """Dispose every cached provider and forget all state."""
        instances = list(self._instances.values())
        self._instances.clear()
        self._health.clear()
        for provider in instances:
            try:
                await provider.dispose()
            except Exception as e:
                logger.warning("Error disposing OCR provider %s: %s", provider.name, e)


def configured_registry(
    config: OcrConfig, images: ImageLimits | None = None
) -> dict[str, Callable[[], OcrProvider]]:
    """Built-in provider constructors parameterized by the OCR and image settings."""

    def doctr() -> OcrProvider:
        return DoctrProvider(
            engine_manager=OcrEngineManager(
                attempts=config.init_attempts,
                retry_delay=config.init_retry_delay,
                timeout=config.init_timeout,
            ),
            normalizer=ImageNormalizer(images),
            cache=RecognitionCache(config.cache_size, config.cache_ttl_seconds),
            attempts=config.recognition_attempts,
            retry_delay=config.recognition_retry_delay,
            line_threshold=config.line_threshold_px,
        )

    def tesseract() -> OcrProvider:
        return TesseractProvider(normalizer=ImageNormalizer(images))

    return {DoctrProvider.name: doctr, TesseractProvider.name: tesseract}
