import concurrent.futures
import logging
from typing import Any, Callable, Dict, Optional

from ..workflow.errors import ToolNotFoundError, ToolTimeoutError

logger = logging.getLogger(__name__)

_TOOLS: Dict[str, Callable] = {}


def register_tool(name: str):
    def _wrap(fn):
        if name in _TOOLS and _TOOLS[name] is not fn:
            logger.debug("Re-registering tool %s", name)
        _TOOLS[name] = fn
        return fn
    return _wrap


def unregister_tool(name: str) -> None:
    _TOOLS.pop(name, None)


def get_tool(name: str) -> Callable:
    if name not in _TOOLS:
        raise ToolNotFoundError(f"Tool not found: {name}")
    return _TOOLS[name]


def list_tools():
    return sorted(_TOOLS)


class RegistryToolCaller:
    """
    Tool caller backed by the module registry.

    Tools are called with the resolved parameters as keyword arguments. A
    non-dict return value is wrapped as ``{"result": value}``. When
    ``timeout`` is set, a call that runs longer raises ToolTimeoutError; the
    worker thread is left to finish on its own.
    """

    def __init__(self, timeout: Optional[float] = None):
        self.timeout = timeout

    def execute(self, tool_id: str, parameters: Dict[str, Any]) -> Dict[str, Any]:
        fn = get_tool(tool_id)
        if self.timeout is None:
            result = fn(**parameters)
        else:
            result = self._call_with_timeout(tool_id, fn, parameters)

        # Ensure result is a dict
        if result is None:
            return {}
        if not isinstance(result, dict):
            result = {"result": result}
        return result

    def _call_with_timeout(self, tool_id: str, fn: Callable, parameters: Dict[str, Any]) -> Any:
        pool = concurrent.futures.ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"tool-{tool_id}")
        try:
            future = pool.submit(fn, **parameters)
            try:
                return future.result(timeout=self.timeout)
            except concurrent.futures.TimeoutError:
                future.cancel()
                raise ToolTimeoutError(tool_id, self.timeout)
        finally:
            pool.shutdown(wait=False)
