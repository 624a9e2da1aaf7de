"""
Tool registry for Concierge.

A tool is a subclass of :class:`BaseTool` that declares a unique ``name``, a model-facing
``description`` and a pydantic ``Args`` model describing its parameters.  Tools are registered on a
:class:`ToolRegistry` instance once at startup; the dispatcher only ever looks them up by name, so
adding a tool never touches the dispatch code:

    registry = ToolRegistry()
    registry.register(MyTool())

The parameter schema sent to the model is derived from ``Args.model_json_schema()``.
"""

import json
import logging
from abc import (
    ABC,
    abstractmethod,
)
from typing import (
    Any,
    ClassVar,
    Dict,
    List,
    Type,
)

from pydantic import (
    BaseModel,
    ValidationError,
)

from concierge.core.errors import InvalidToolArguments
from concierge.core.schema import ToolDefinition

logger = logging.getLogger(__name__)


class NoArgs(BaseModel):
    """Argument model for tools that take no parameters."""


class BaseTool(ABC):
    """Uniform capability: ``execute(arguments) -> text``, may fail."""

    name: ClassVar[str]
    description: ClassVar[str]
    Args: ClassVar[Type[BaseModel]] = NoArgs

    def definition(self) -> ToolDefinition:
        """Build the model-facing definition from the class attributes."""
        schema = self.Args.model_json_schema()
        schema.pop("title", None)
        schema.setdefault("properties", {})
        return ToolDefinition(name=self.name, description=self.description, parameters=schema)

    def parse_arguments(self, arguments: str | Dict[str, Any] | None) -> BaseModel:
        """
        Validate raw model-supplied *arguments* against ``Args``.

        Raises
        ------
        InvalidToolArguments
            If the arguments are not a JSON object or fail validation.
        """
        if arguments is None or (isinstance(arguments, str) and not arguments.strip()):
            arguments = {}
        if isinstance(arguments, str):
            try:
                arguments = json.loads(arguments)
            except json.JSONDecodeError as exc:
                raise InvalidToolArguments(
                    f"Invalid arguments for tool '{self.name}': not valid JSON ({exc.msg})"
                ) from exc
        if not isinstance(arguments, dict):
            raise InvalidToolArguments(
                f"Invalid arguments for tool '{self.name}': expected an object, "
                f"got {type(arguments).__name__}"
            )
        try:
            return self.Args.model_validate(arguments)
        except ValidationError as exc:
            problems = "; ".join(
                f"{'.'.join(str(p) for p in err['loc']) or '<root>'}: {err['msg']}"
                for err in exc.errors()
            )
            raise InvalidToolArguments(
                f"Invalid arguments for tool '{self.name}': {problems}"
            ) from exc

    def execute(self, arguments: str | Dict[str, Any] | None = None) -> str:
        """Parse *arguments* then run the tool."""
        return self.run(self.parse_arguments(arguments))

    @abstractmethod
    def run(self, args: Any) -> str:
        """Do the work with already-validated *args* and return text for the model."""


class ToolRegistry:
    """Static, process-wide catalog mapping tool names to handlers."""

    def __init__(self) -> None:
        self._tools: Dict[str, BaseTool] = {}

    def register(self, tool: BaseTool) -> BaseTool:
        """
        Register *tool* under its ``name``.

        Raises
        ------
        ValueError
            If a tool with the same name is already registered.
        """
        if tool.name in self._tools:
            raise ValueError(f"Tool '{tool.name}' is already registered.")
        logger.debug("Registering tool '%s'", tool.name)
        self._tools[tool.name] = tool
        return tool

    def get(self, name: str) -> BaseTool | None:
        return self._tools.get(name)

    def names(self) -> List[str]:
        return list(self._tools)

    def definitions(self) -> List[ToolDefinition]:
        """Definitions of every registered tool, in registration order."""
        return [tool.definition() for tool in self._tools.values()]

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)
