"""
OCR engine lifecycle management.

The recognition engine (a docTR predictor by default) is heavyweight and
loaded lazily. OcrEngineManager guarantees:

- Single-flight initialization: concurrent callers share one load.
- Retries with a fixed delay, each attempt followed by a self-test that
  renders a known string and checks the engine reads it back.
- A wall-clock timeout around the shared initialization. A timeout seen by
  any waiter becomes the failure for every waiter.
- Sticky failure: once initialization fails, the stored error is raised on
  every request until dispose() is called.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import TYPE_CHECKING, Any

from PIL import Image, ImageDraw, ImageFont

from docintake.exceptions import EngineInitializationError

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)


# =============================================================================
# CONSTANTS
# =============================================================================

MAX_INIT_ATTEMPTS = 3
INIT_RETRY_DELAY = 1.5  # seconds, fixed
INIT_TIMEOUT = 60.0  # seconds, whole initialization
SELF_TEST_TEXT = "Hello World"


class EngineState(Enum):
    """Lifecycle states of the engine."""

    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"
    FAILED = "failed"


# =============================================================================
# DOCTR ADAPTER
# =============================================================================


def _check_gpu_available() -> bool:
    """Check if CUDA GPU is available for PyTorch."""
    try:
        import torch

        return torch.cuda.is_available()
    except ImportError:
        logger.debug("PyTorch not installed; GPU detection unavailable")
        return False


def load_doctr_predictor() -> Any:
    """Load a pretrained docTR OCR predictor, on GPU when available."""
    from doctr.models import ocr_predictor

    device = "cuda" if _check_gpu_available() else "cpu"
    logger.info("Loading docTR predictor on %s...", device)
    return ocr_predictor(pretrained=True).to(device)


def predict_raw_blocks(predictor: Any, image: Image.Image) -> list[dict[str, Any]]:
    """
    Run a docTR predictor and flatten its output into raw line blocks.

    Each block is ``{"words": [{"value", "confidence"}], "box": [8 floats]}``
    with the polygon in image pixels.
    """
    import numpy as np

    result = predictor([np.asarray(image.convert("RGB"))])
    blocks: list[dict[str, Any]] = []

    for page in result.export().get("pages", []):
        height, width = page.get("dimensions", image.size[::-1])
        for block in page.get("blocks", []):
            for line in block.get("lines", []):
                (x0, y0), (x1, y1) = line["geometry"]
                x0, x1 = x0 * width, x1 * width
                y0, y1 = y0 * height, y1 * height
                blocks.append(
                    {
                        "words": [
                            {"value": w["value"], "confidence": w["confidence"]}
                            for w in line.get("words", [])
                        ],
                        "box": [x0, y0, x1, y0, x1, y1, x0, y1],
                    }
                )

    return blocks


def recognize_plain_text(predictor: Any, image: Image.Image) -> str:
    """Recognize an image and return its words joined by spaces."""
    words = []
    for block in predict_raw_blocks(predictor, image):
        words.extend(w["value"] for w in block["words"])
    return " ".join(words)


def render_test_image(text: str = SELF_TEST_TEXT) -> Image.Image:
    """Render black text centered on a clean white 300x100 canvas."""
    image = Image.new("RGB", (300, 100), (255, 255, 255))
    draw = ImageDraw.Draw(image)
    font = ImageFont.load_default(size=36)
    left, top, right, bottom = draw.textbbox((0, 0), text, font=font)
    x = (image.width - (right - left)) / 2 - left
    y = (image.height - (bottom - top)) / 2 - top
    draw.text((x, y), text, fill=(0, 0, 0), font=font)
    return image


# =============================================================================
# ENGINE MANAGER
# =============================================================================


class OcrEngineManager:
    """
    Owns one lazily-initialized recognition engine.

    Attributes:
        attempts: Initialization attempts before failing.
        retry_delay: Fixed delay between attempts (seconds).
        timeout: Bound on the whole initialization, per waiter (seconds).

    Example:
        >>> manager = OcrEngineManager()
        >>> engine = await manager.get_engine()  # loads and self-tests once
        >>> await manager.dispose()
    """

    def __init__(
        self,
        load_engine: Callable[[], Any] = load_doctr_predictor,
        recognize_text: Callable[[Any, Image.Image], str] = recognize_plain_text,
        *,
        attempts: int = MAX_INIT_ATTEMPTS,
        retry_delay: float = INIT_RETRY_DELAY,
        timeout: float = INIT_TIMEOUT,
        test_text: str = SELF_TEST_TEXT,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self._load_engine = load_engine
        self._recognize_text = recognize_text
        self.attempts = attempts
        self.retry_delay = retry_delay
        self.timeout = timeout
        self.test_text = test_text
        self._sleep = sleep

        self._state = EngineState.UNINITIALIZED
        self._engine: Any = None
        self._error: EngineInitializationError | None = None
        self._ready: asyncio.Future[Any] | None = None
        self._task: asyncio.Task[None] | None = None

    @property
    def state(self) -> EngineState:
        return self._state

    @property
    def is_ready(self) -> bool:
        return self._state is EngineState.READY

    async def get_engine(self) -> Any:
        """
        Return the ready engine, initializing it on first use.

        Raises:
            EngineInitializationError: If initialization failed or timed out,
                now or on an earlier call.
        """
        if self._state is EngineState.FAILED and self._error is not None:
            raise self._error
        if self._state is EngineState.READY:
            return self._engine

        if self._ready is None:
            self._ready = asyncio.get_running_loop().create_future()
            self._state = EngineState.INITIALIZING
            self._task = asyncio.create_task(self._initialize(self._ready))

        ready = self._ready
        try:
            return await asyncio.wait_for(asyncio.shield(ready), self.timeout)
        except asyncio.TimeoutError:
            error = EngineInitializationError(
                f"Timeout waiting for OCR engine initialization ({self.timeout:.0f}s)"
            )
            self._fail(ready, error)
            raise (self._error or error) from None

    async def _initialize(self, ready: asyncio.Future[Any]) -> None:
        """Load and self-test the engine, resolving ``ready`` for all waiters."""
        logger.info("Initializing OCR engine...")
        last_error: Exception | None = None

        for attempt in range(1, self.attempts + 1):
            if attempt > 1:
                logger.info("Retry attempt %d of %d...", attempt, self.attempts)
                await self._sleep(self.retry_delay)
            if ready.done():
                return  # timed out or disposed meanwhile

            try:
                engine = await asyncio.to_thread(self._load_engine)
                await self._self_test(engine)
            except Exception as e:
                last_error = e
                logger.warning("OCR engine initialization attempt %d failed: %s", attempt, e)
                continue

            if ready is self._ready and not ready.done():
                self._engine = engine
                self._state = EngineState.READY
                ready.set_result(engine)
                logger.info("OCR engine ready")
            return

        error = EngineInitializationError(f"Failed to initialize OCR engine: {last_error}")
        error.__cause__ = last_error
        self._fail(ready, error)

    async def _self_test(self, engine: Any) -> None:
        """Fail unless the engine reads back a clean synthetic sample."""
        image = render_test_image(self.test_text)
        recognized = (await asyncio.to_thread(self._recognize_text, engine, image)).strip()
        logger.debug("Self-test recognition result: %r", recognized)
        if self.test_text.lower() not in recognized.lower():
            raise EngineInitializationError(
                f'Engine self-test failed: expected "{self.test_text}" but got "{recognized}"'
            )

    def _fail(self, ready: asyncio.Future[Any], error: EngineInitializationError) -> None:
        """Record the canonical failure for the current initialization."""
        if ready is not self._ready or ready.done():
            return

        self._error = error
        self._state = EngineState.FAILED
        ready.set_exception(error)
        ready.exception()  # mark retrieved; waiters re-raise it themselves
        logger.error("%s", error)

    async def dispose(self) -> None:
        """Release the engine and reset to the uninitialized state."""
        ready, task, engine = self._ready, self._task, self._engine

        self._ready = None
        self._task = None
        self._engine = None
        self._error = None
        self._state = EngineState.UNINITIALIZED

        if ready is not None and not ready.done():
            ready.set_exception(EngineInitializationError("OCR engine disposed during initialization"))
            ready.exception()
        if task is not None and not task.done():
            task.cancel()

        release = getattr(engine, "dispose", None)
        if callable(release):
            try:
                result = release()
                if asyncio.iscoroutine(result):
                    await result
            except Exception as e:
                logger.warning("Error during OCR engine disposal: %s", e)
