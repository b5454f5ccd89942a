"""
Configuration for docintake document processing.

All options have sensible defaults. Create a config only if you need to
customize behavior.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from docintake.models import DEFAULT_PAGE_BREAK, ExtractionStrategy

MB = 1024 * 1024


@dataclass
class OcrConfig:
    """
    Configuration for OCR providers, the engine lifecycle and PDF rasterization.

    Example:
        >>> config = IntakeConfig(ocr=OcrConfig(provider="tesseract", language="spa"))
    """

    # Provider routing
    provider: str = "doctr"
    fallback_provider: str = "tesseract"
    language: str = "auto"

    # Circuit breaker
    failure_threshold: int = 3
    failure_window_seconds: float = 600.0

    # Engine initialization
    init_attempts: int = 3
    init_retry_delay: float = 1.5  # fixed delay between attempts
    init_timeout: float = 60.0  # bounds the whole initialization

    # Recognition
    recognition_attempts: int = 3
    recognition_retry_delay: float = 1.0  # multiplied by attempt number
    cache_size: int = 10
    cache_ttl_seconds: float = 300.0
    line_threshold_px: float = 20.0

    # PDF processing
    pdf_batch_size: int = 3
    pdf_render_scale: float = 2.0

    def __post_init__(self):
        """Validate configuration."""
        for name in (
            "failure_threshold",
            "init_attempts",
            "recognition_attempts",
            "cache_size",
            "pdf_batch_size",
        ):
            value = getattr(self, name)
            if value < 1:
                raise ValueError(f"{name} must be >= 1, got {value}")
        for name in (
            "failure_window_seconds",
            "init_retry_delay",
            "init_timeout",
            "recognition_retry_delay",
            "cache_ttl_seconds",
            "line_threshold_px",
        ):
            value = getattr(self, name)
            if value < 0:
                raise ValueError(f"{name} must be >= 0, got {value}")
        if self.pdf_render_scale <= 0:
            raise ValueError(f"pdf_render_scale must be > 0, got {self.pdf_render_scale}")


@dataclass
class ImageLimits:
    """Bounds and filter parameters for the image normalizer."""

    max_file_bytes: int = 20 * MB
    min_width: int = 50
    min_height: int = 50
    max_width: int = 2048
    max_height: int = 2048

    # Enhancement filters
    contrast: float = 1.2
    brightness: float = 1.1

    allowed_types: tuple[str, ...] = (
        "image/jpeg",
        "image/jpg",
        "image/png",
        "image/webp",
        "image/bmp",
    )

    def __post_init__(self):
        """Validate configuration."""
        if self.min_width > self.max_width or self.min_height > self.max_height:
            raise ValueError(
                f"minimum dimensions ({self.min_width}x{self.min_height}) exceed "
                f"maximum dimensions ({self.max_width}x{self.max_height})"
            )
        if self.max_file_bytes <= 0:
            raise ValueError(f"max_file_bytes must be > 0, got {self.max_file_bytes}")
        if self.contrast < 0 or self.brightness < 0:
            raise ValueError("contrast and brightness must be non-negative")


@dataclass
class ExtractionConfig:
    """Which pages feed classification, and how much of them."""

    strategy: ExtractionStrategy = ExtractionStrategy.FIRST_PAGE
    max_classification_length: int = 2000
    page_break_markers: list[str] = field(default_factory=lambda: [DEFAULT_PAGE_BREAK])

    def __post_init__(self):
        """Validate configuration."""
        if isinstance(self.strategy, str) and not isinstance(self.strategy, ExtractionStrategy):
            valid = tuple(s.value for s in ExtractionStrategy)
            if self.strategy not in valid:
                raise ValueError(f"strategy must be one of {valid}, got {self.strategy!r}")
            self.strategy = ExtractionStrategy(self.strategy)
        if self.max_classification_length < 1:
            raise ValueError(
                f"max_classification_length must be >= 1, got {self.max_classification_length}"
            )


@dataclass
class MarkupOptions:
    """
    Toggles for the markup renderer.

    ``enhance_formatting`` is accepted but currently has no effect.
    """

    include_positional_data: bool = True
    enhance_formatting: bool = True
    detect_lists: bool = True
    detect_tables: bool = True
    detect_headings: bool = True


@dataclass
class IntakeConfig:
    """
    Configuration for the full intake pipeline.

    Example:
        >>> config = IntakeConfig(
        ...     extraction=ExtractionConfig(strategy=ExtractionStrategy.FIRST_LAST),
        ...     model_id="mistral",
        ... )
    """

    ocr: OcrConfig = field(default_factory=OcrConfig)
    images: ImageLimits = field(default_factory=ImageLimits)
    extraction: ExtractionConfig = field(default_factory=ExtractionConfig)
    markup: MarkupOptions = field(default_factory=MarkupOptions)

    # Classification
    model_id: str = "openai"

    # Persistence
    project_id: str | None = None
