"""
Resilience Utilities

Retry with exponential backoff, ordered fallback strategies, and an
isolated fan-out where each task has its own error boundary.

The connection supervisor retries the primary store with
``resilient_call`` and falls back with ``with_fallback``; analytics
views fan their aggregations out through ``gather_isolated``.

Usage:
    from utils.resilience import resilient_call, with_fallback, gather_isolated

    await resilient_call(open_engine, url, max_retries=2, retry_on=(OSError,))
    await with_fallback([connect_primary, connect_fallback])
    results = await gather_isolated({"devices": (count_devices(), [])})
"""

import asyncio
import inspect
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Tuple, Type, TypeVar

from utils.logging import get_logger

logger = get_logger(__name__)

T = TypeVar('T')


async def _invoke(func: Callable[..., Any], *args, **kwargs) -> Any:
    if inspect.iscoroutinefunction(func):
        return await func(*args, **kwargs)
    return func(*args, **kwargs)


def _name(func: Callable[..., Any], index: int) -> str:
    return getattr(func, '__name__', f'strategy_{index}')


async def resilient_call(
    func: Callable[..., T],
    *args,
    max_retries: int = 3,
    initial_delay: float = 1.0,
    max_delay: float = 30.0,
    exponential_base: float = 2.0,
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
    **kwargs
) -> T:
    """
    Call ``func`` until it succeeds or retries run out.

    The delay starts at ``initial_delay`` and is multiplied by
    ``exponential_base`` after every failure, capped at ``max_delay``.
    Exceptions outside ``retry_on`` propagate immediately.

    Args:
        func: Sync or async callable
        max_retries: Retries after the first attempt
        retry_on: Exception types worth retrying

    Raises:
        The last exception once all ``max_retries + 1`` attempts failed
    """
    delay = initial_delay
    attempts = max_retries + 1

    for attempt in range(1, attempts + 1):
        try:
            return await _invoke(func, *args, **kwargs)
        except retry_on as e:
            if attempt == attempts:
                logger.error(f"{_name(func, 0)} failed after {attempts} attempts: {e}")
                raise
            logger.warning(
                f"{_name(func, 0)} attempt {attempt}/{attempts} failed: {e}. "
                f"Retrying in {delay:.1f}s"
            )
            await asyncio.sleep(delay)
            delay = min(delay * exponential_base, max_delay)


async def with_fallback(
    functions: List[Callable[..., T]],
    *args,
    **kwargs
) -> T:
    """
    Run strategies in order and return the first result.

    Raises:
        The last strategy's exception when every strategy failed
    """
    errors: List[Exception] = []

    for index, func in enumerate(functions):
        try:
            result = await _invoke(func, *args, **kwargs)
        except Exception as e:
            errors.append(e)
            logger.warning(f"Strategy {_name(func, index)} ({index + 1}/{len(functions)}) failed: {e}")
            continue
        if index > 0:
            logger.info(f"Recovered with fallback strategy {_name(func, index)}")
        return result

    logger.error(f"All {len(functions)} strategies failed")
    raise errors[-1]


async def _isolated(name: str, awaitable: Awaitable[Any], default: Any) -> Any:
    try:
        return await awaitable
    except asyncio.CancelledError:
        raise
    except Exception as e:
        logger.error(f"Aggregation '{name}' failed, using default: {e}", exc_info=True)
        return default


async def gather_isolated(tasks: Mapping[str, Tuple[Awaitable[Any], Any]]) -> Dict[str, Any]:
    """
    Run awaitables concurrently, each behind its own error boundary.

    A failing task yields its default instead of aborting the batch.

    Args:
        tasks: Mapping of name -> (awaitable, default)

    Returns:
        dict: name -> result or default, in the mapping's order
    """
    names = list(tasks)
    results = await asyncio.gather(
        *(_isolated(name, *tasks[name]) for name in names)
    )
    return dict(zip(names, results))
