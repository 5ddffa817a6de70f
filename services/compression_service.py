"""
Service layer for compressing images to a target file size

The search runs in two phases. Bisection narrows a [low, high] quality
interval for a fixed number of encodes and keeps the latest attempt that fits
the budget. If none fits, the shrink fallback probes at a low quality and then
reduces both dimensions by 10% per attempt until the buffer fits or the
shorter side reaches the dimension floor.

Each phase transition is made by the pure ``step`` function so the search can
be driven with scripted sizes instead of a real encoder.
"""
from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable, Optional
import logging

from config.settings import (
    BISECTION_ITERATIONS,
    FALLBACK_PROBE_QUALITY,
    FALLBACK_RESIZE_QUALITY,
    MIN_WIDTH,
    SHRINK_FACTOR,
)
from services.exceptions import CompressionCancelled, InvalidTarget, TargetUnreachable
from services.image_service import ImageService, SourceImage

logger = logging.getLogger(__name__)


class Phase(Enum):
    BISECTING = "bisection"
    PROBING = "probe"
    SHRINKING = "shrink"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class SearchConfig:
    iterations: int = BISECTION_ITERATIONS
    min_width: int = MIN_WIDTH
    probe_quality: float = FALLBACK_PROBE_QUALITY
    resize_quality: float = FALLBACK_RESIZE_QUALITY
    shrink_factor: float = SHRINK_FACTOR


@dataclass(frozen=True)
class EncodeAttempt:
    quality: float
    width: int
    height: int
    data: bytes
    phase: Phase = Phase.BISECTING

    @property
    def size(self):
        return len(self.data)


@dataclass(frozen=True)
class CompressionResult:
    data: bytes
    quality: float
    width: int
    height: int
    phase: str
    within_budget: bool

    @property
    def size(self):
        return len(self.data)

    @property
    def size_kb(self):
        return self.size / 1024


@dataclass(frozen=True)
class SearchState:
    """Search progress. ``width`` and ``height`` stay fractional while shrinking."""
    phase: Phase
    width: float
    height: float
    low: float = 0.0
    high: float = 1.0
    iteration: int = 0
    best: Optional[EncodeAttempt] = None
    last_size: Optional[int] = None

    @property
    def finished(self):
        return self.phase in (Phase.DONE, Phase.FAILED)


def initial_state(width, height):
    return SearchState(phase=Phase.BISECTING, width=float(width), height=float(height))


def next_request(state, config=SearchConfig()):
    """Return the (quality, width, height) the next encode must use."""
    width, height = round(state.width), round(state.height)
    if state.phase is Phase.BISECTING:
        return (state.low + state.high) / 2, width, height
    if state.phase is Phase.PROBING:
        return config.probe_quality, width, height
    if state.phase is Phase.SHRINKING:
        return config.resize_quality, width, height
    raise ValueError(f"No encode is pending in phase {state.phase.value}")


def can_shrink(width, height, config=SearchConfig()):
    return min(round(width), round(height)) > config.min_width


def shrink(width, height, config=SearchConfig()):
    """Scale both sides by the shrink factor, stopping the shorter side at the floor."""
    factor = config.shrink_factor
    shorter = min(width, height)
    if shorter * factor < config.min_width:
        factor = config.min_width / shorter
    return width * factor, height * factor


def step(state, attempt, target_bytes, config=SearchConfig()):
    """Advance the search by one encode attempt and return the new state."""
    state = replace(state, last_size=attempt.size)
    fits = attempt.size <= target_bytes

    if state.phase is Phase.BISECTING:
        mid = (state.low + state.high) / 2
        if fits:
            state = replace(state, low=mid, best=attempt)
        else:
            state = replace(state, high=mid)
        state = replace(state, iteration=state.iteration + 1)
        if state.iteration < config.iterations:
            return state
        if state.best is not None:
            return replace(state, phase=Phase.DONE)
        return replace(state, phase=Phase.PROBING)

    if state.phase in (Phase.PROBING, Phase.SHRINKING):
        # latest attempt always replaces the previous one
        state = replace(state, best=attempt)
        if fits:
            return replace(state, phase=Phase.DONE)
        if can_shrink(state.width, state.height, config):
            width, height = shrink(state.width, state.height, config)
            return replace(state, phase=Phase.SHRINKING, width=width, height=height)
        return replace(state, phase=Phase.FAILED)

    raise ValueError(f"Search already finished in phase {state.phase.value}")


def to_result(attempt, target_bytes):
    return CompressionResult(
        data=attempt.data,
        quality=attempt.quality,
        width=attempt.width,
        height=attempt.height,
        phase=Phase.BISECTING.value if attempt.phase is Phase.BISECTING else Phase.SHRINKING.value,
        within_budget=attempt.size <= target_bytes,
    )


class TargetSizeEncoder:
    """Runs the target size search against an encode primitive.

    ``encode`` is called as ``encode(image, quality, width, height)`` and must
    return the encoded bytes; it defaults to ImageService.encode.
    """

    def __init__(self, encode: Optional[Callable] = None, config: SearchConfig = SearchConfig()):
        self.encode = encode or ImageService().encode
        self.config = config

    def compress(self, source: SourceImage, target_bytes: int, cancel_event=None,
                 allow_best_effort=False) -> CompressionResult:
        """Encode source at or under target_bytes.

        Raises TargetUnreachable when nothing fits, unless allow_best_effort is
        set and the shrink fallback produced a buffer, in which case that
        buffer is returned with ``within_budget`` False.
        """
        if target_bytes <= 0:
            raise InvalidTarget(f"Target size must be positive, got {target_bytes} bytes.")

        state = initial_state(source.width, source.height)
        attempts = 0
        while not state.finished:
            if cancel_event is not None and cancel_event.is_set():
                logger.info(f"Compression cancelled after {attempts} attempts")
                raise CompressionCancelled("Compression was cancelled.", last_size=state.last_size)

            quality, width, height = next_request(state, self.config)
            data = self.encode(source.image, quality, width, height)
            attempt = EncodeAttempt(quality=quality, width=width, height=height, data=data, phase=state.phase)
            attempts += 1
            logger.debug(
                f"{state.phase.value} attempt {attempts}: quality={quality:.4f} "
                f"{width}x{height} -> {attempt.size} bytes (target {target_bytes})"
            )
            state = step(state, attempt, target_bytes, self.config)

        if state.phase is Phase.FAILED and not (allow_best_effort and state.best is not None):
            logger.info(f"Target {target_bytes} bytes unreachable, last attempt {state.last_size} bytes")
            raise TargetUnreachable(target_bytes, last_size=state.last_size)

        result = to_result(state.best, target_bytes)
        logger.info(
            f"Compressed to {result.size} bytes (target {target_bytes}) at quality "
            f"{result.quality:.3f}, {result.width}x{result.height}, {result.phase}, {attempts} attempts"
        )
        return result


class CompressionService:
    def __init__(self, image_service=None, encoder=None):
        self.image_service = image_service or ImageService()
        self.encoder = encoder or TargetSizeEncoder(encode=self.image_service.encode)

    def compress(self, data, target_kb, cancel_event=None, allow_best_effort=False):
        """Decode raw image bytes and compress them to target_kb kilobytes"""
        target_bytes = target_bytes_from_kb(target_kb)
        source = self.image_service.decode(data)
        logger.info(
            f"Decoded {source.original_size} byte {source.source_format} image "
            f"as {source.width}x{source.height}"
        )
        return self.encoder.compress(
            source, target_bytes, cancel_event=cancel_event, allow_best_effort=allow_best_effort
        )


def target_bytes_from_kb(target_kb):
    try:
        target_bytes = int(float(target_kb) * 1024)
    except (TypeError, ValueError, OverflowError) as e:
        raise InvalidTarget(f"Invalid target size: {target_kb!r}") from e
    if target_bytes <= 0:
        raise InvalidTarget("Please enter a positive file size.")
    return target_bytes
