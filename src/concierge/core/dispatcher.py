"""Dispatches tool calls registered on a ``ToolRegistry`` and wraps errors into tool results."""

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import (
    Dict,
    List,
    Sequence,
)

from concierge.core.errors import (
    InvalidToolArguments,
    ToolExecutionFailed,
)
from concierge.core.schema import (
    ToolCallRequest,
    ToolResult,
)
from concierge.tools import ToolRegistry

logger = logging.getLogger(__name__)


class ToolDispatcher:
    """
    Resolve tool calls by name and execute them.

    Every tool-originated failure is converted into a ``ToolResult(failed=True)`` so the model
    always gets a response for each call it made.
    """

    def __init__(self, registry: ToolRegistry, max_workers: int = 4) -> None:
        self._registry = registry
        self._max_workers = max(1, max_workers)

    def dispatch(self, request: ToolCallRequest) -> ToolResult:
        """
        Look up ``request.name`` and invoke it with ``request.arguments``.

        Parameters
        ----------
        request:
            The model-issued call.

        Returns
        -------
        ToolResult
            Paired with ``request.id``; ``failed`` is set when the tool is unknown, the
            arguments are invalid or the handler raised.
        """
        try:
            content = self._execute(request)
        except InvalidToolArguments as exc:
            logger.warning("Rejected tool call '%s' (%s): %s", request.name, request.id, exc)
            return ToolResult(
                tool_call_id=request.id, name=request.name, content=str(exc), failed=True
            )
        except ToolExecutionFailed as exc:
            return ToolResult(
                tool_call_id=request.id, name=request.name, content=str(exc), failed=True
            )

        logger.info("Tool '%s' (%s) returned: %s", request.name, request.id, content)
        return ToolResult(tool_call_id=request.id, name=request.name, content=content)

    def dispatch_all(self, requests: Sequence[ToolCallRequest]) -> List[ToolResult]:
        """
        Execute every request and return the results in request order.

        Calls to different tools run concurrently; calls to the same tool run one after the other.
        Returns only once all calls have completed.
        """
        if not requests:
            return []

        groups: Dict[str, List[int]] = {}
        for idx, request in enumerate(requests):
            groups.setdefault(request.name, []).append(idx)

        results: List[ToolResult | None] = [None] * len(requests)

        def run_group(indices: List[int]) -> None:
            for idx in indices:
                results[idx] = self.dispatch(requests[idx])

        if len(groups) == 1:
            run_group(next(iter(groups.values())))
        else:
            workers = min(self._max_workers, len(groups))
            with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="tool") as pool:
                futures = [pool.submit(run_group, indices) for indices in groups.values()]
                for future in futures:
                    future.result()

        return [result for result in results if result is not None]

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #
    def _execute(self, request: ToolCallRequest) -> str:
        tool = self._registry.get(request.name)
        if tool is None:
            raise InvalidToolArguments(f"Tool '{request.name}' is not registered.")

        try:
            logger.debug("Executing tool '%s' with args=%s", request.name, request.arguments)
            return tool.execute(request.arguments)
        except InvalidToolArguments:
            raise
        except Exception as exc:  # noqa: BLE001
            logger.exception("Unhandled error in tool '%s'", request.name)
            raise ToolExecutionFailed(f"Tool '{request.name}' raised an error: {exc}") from exc
