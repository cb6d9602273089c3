"""
Windowed processing for very large bundle text.

Windows are produced lazily and strictly in order. ``iter_windows`` is a
plain generator, so callers that do not need to yield control can simply
loop over it; ``process_windows`` adds the cooperative pause between
windows for callers running inside an event loop.
"""

import asyncio
import logging
from typing import Any, Callable, Iterator, List, Tuple

logger = logging.getLogger("chunkhound.windows")

DEFAULT_WINDOW_SIZE = 100 * 1024
DEFAULT_THRESHOLD = 500 * 1024


def needs_windowing(content: str, threshold: int = DEFAULT_THRESHOLD) -> bool:
    return bool(content) and len(content) > threshold


def recommended_window_size(content: str) -> int:
    if not content:
        return DEFAULT_WINDOW_SIZE
    size = len(content)
    if size < 100 * 1024:
        return size
    if size < 500 * 1024:
        return 100 * 1024
    if size < 1024 * 1024:
        return 200 * 1024
    return 500 * 1024


def iter_windows(content: str, size: int = DEFAULT_WINDOW_SIZE) -> Iterator[Tuple[int, str]]:
    """Yield ``(offset, window)`` pairs covering ``content``"""
    if size <= 0:
        raise ValueError("window size must be positive")
    if not content:
        return
    for start in range(0, len(content), size):
        yield start, content[start:start + size]


def window_count(content: str, size: int = DEFAULT_WINDOW_SIZE) -> int:
    """Number of windows a processor run sees; empty text still counts once"""
    if size <= 0:
        raise ValueError("window size must be positive")
    return max(1, -(-len(content or "") // size))


def _windows_or_whole(content: str, size: int) -> Iterator[Tuple[int, str]]:
    if not content:
        yield 0, content or ""
        return
    yield from iter_windows(content, size)


def run_windows(
    content: str,
    processor: Callable[[str, int], Any],
    size: int = DEFAULT_WINDOW_SIZE,
) -> List[Any]:
    """
    Apply ``processor(window, index)`` to every window and flatten results.

    A window whose processor raises is logged and skipped.
    """
    results: List[Any] = []
    total = window_count(content, size)
    for index, (_, window) in enumerate(_windows_or_whole(content, size)):
        try:
            _collect(results, processor(window, index))
        except Exception as e:
            logger.warning("window %d/%d failed: %s", index + 1, total, e)
    return results


async def process_windows(
    content: str,
    processor: Callable[[str, int], Any],
    size: int = DEFAULT_WINDOW_SIZE,
    delay: float = 0.0,
) -> List[Any]:
    """Async variant of ``run_windows`` that pauses ``delay`` seconds between windows"""
    results: List[Any] = []
    total = window_count(content, size)
    for index, (_, window) in enumerate(_windows_or_whole(content, size)):
        try:
            result = processor(window, index)
            if asyncio.iscoroutine(result):
                result = await result
            _collect(results, result)
        except Exception as e:
            logger.warning("window %d/%d failed: %s", index + 1, total, e)
        if delay > 0 and index < total - 1:
            await asyncio.sleep(delay)
    return results


def _collect(results: List[Any], result: Any) -> None:
    if not result:
        return
    if isinstance(result, list):
        results.extend(result)
    else:
        results.append(result)
