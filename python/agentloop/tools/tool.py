import json
import inspect
import re

from functools import wraps
from typing import Any, Callable, Dict, Literal, Optional, Union, get_args, get_origin, get_type_hints, TYPE_CHECKING
from docstring_parser import parse

from .protocol import InvokableTool
from ..errors import ConfigurationError, ToolArgumentsError
from ..logs.logs import InfoContext, get_logger

if TYPE_CHECKING:
  from ..agents.context import AgentContext


# Name of the parameter through which a tool receives the run's AgentContext.
CONTEXT_PARAMETER = "context"

MAX_ARGUMENTS_SIZE = 1024 * 1024

# *args and **kwargs are never listed in the schema or required.
VARIADIC_KINDS = (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD)

TOOL_NAME_PATTERN = re.compile(r"^[a-z0-9_-]+$")


def check_tool_name(name: str):
  if not name or TOOL_NAME_PATTERN.match(name) is None:
    raise ConfigurationError("Tool name may only contain [a-z0-9_-] characters", {"tool": name})


class Tool(InvokableTool, InfoContext):
  """
  A tool backed by a plain Python function, sync or async.

  The name, description and parameter schema are derived from the function:
  its name, its docstring (parsed with docstring_parser) and its type hints.
  A parameter called ``context`` is not exposed to the model, it receives the
  AgentContext of the run that invokes the tool.
  """

  def __init__(self, func: Callable, name: Optional[str] = None):
    self.logger = get_logger("tool")
    self.func = wrap(func)
    self.signature = inspect.signature(func)
    self.wants_context = CONTEXT_PARAMETER in self.signature.parameters
    self.name, self._spec = function_spec(func, name)
    check_tool_name(self.name)
    try:
      self.type_hints = get_type_hints(func)
    except (NameError, TypeError):
      self.type_hints = {}

  async def spec(self) -> dict:
    return self._spec

  async def invoke(self, json_argument: Optional[str], context: Optional["AgentContext"] = None) -> Any:
    with self.info(f"Invoke tool: '{self.name}'", f"Invoked tool: '{self.name}'"):
      self.logger.debug(f"The tool arguments are: {json_argument}")
      args = self.parse_arguments(json_argument)
      if self.wants_context:
        args[CONTEXT_PARAMETER] = context
      result = await self.func(**args)
      self.logger.debug(f"The tool returned: {result!r}")
      return result

  def parse_arguments(self, json_argument: Optional[str]) -> dict:
    args = load_arguments(self.name, json_argument)

    parameters = {
      n: p
      for n, p in self.signature.parameters.items()
      if n != CONTEXT_PARAMETER and p.kind not in VARIADIC_KINDS
    }
    accepts_any = any(p.kind is inspect.Parameter.VAR_KEYWORD for p in self.signature.parameters.values())
    unexpected = set() if accepts_any else set(args) - set(parameters)
    if unexpected:
      raise ToolArgumentsError(f"Unexpected arguments: {', '.join(sorted(unexpected))}", self.name)

    missing = [n for n, p in parameters.items() if p.default is inspect.Parameter.empty and n not in args]
    if missing:
      raise ToolArgumentsError(f"Missing required arguments: {', '.join(sorted(missing))}", self.name)

    return {n: self.coerce_argument(n, v) for n, v in args.items()}

  def coerce_argument(self, name: str, value):
    expected = self.type_hints.get(name)
    if expected is None:
      return value

    if get_origin(expected) is Union:
      expected = next((t for t in get_args(expected) if t is not type(None)), expected)

    try:
      coerced = coerce_value(value, expected)
    except (ValueError, TypeError):
      type_name = getattr(expected, "__name__", str(expected))
      raise ToolArgumentsError(
        f"Argument '{name}' has invalid type: expected {type_name}, got {type(value).__name__} (value: {value!r})",
        self.name,
      ) from None

    if type(coerced) is not type(value):
      self.logger.debug(f"Coerced argument '{name}': {value!r} -> {coerced!r}")
    return coerced


class ToolDefinition(InvokableTool, InfoContext):
  """
  A tool declared with an explicit JSON schema.

  ``function`` is called with the decoded arguments dict and the run's
  AgentContext, and may be sync or async.
  """

  def __init__(self, name: str, description: str, parameters: Dict[str, Any], function: Callable):
    check_tool_name(name)
    self.logger = get_logger("tool")
    self.name = name
    self.description = description
    self.parameters = parameters or {"type": "object", "properties": {}, "required": []}
    self.function = function

  async def spec(self) -> dict:
    return {
      "type": "function",
      "function": {"name": self.name, "description": self.description, "parameters": self.parameters},
    }

  async def invoke(self, json_argument: Optional[str], context: Optional["AgentContext"] = None) -> Any:
    with self.info(f"Invoke tool: '{self.name}'", f"Invoked tool: '{self.name}'"):
      args = load_arguments(self.name, json_argument)
      missing = [n for n in self.parameters.get("required", []) if n not in args]
      if missing:
        raise ToolArgumentsError(f"Missing required arguments: {', '.join(sorted(missing))}", self.name)

      result = self.function(args, context)
      if inspect.isawaitable(result):
        result = await result
      return result


def load_arguments(tool_name: str, json_argument: Optional[str]) -> dict:
  if json_argument is None or json_argument.strip() == "":
    return {}

  if len(json_argument) > MAX_ARGUMENTS_SIZE:
    raise ToolArgumentsError(
      f"Arguments too large: {len(json_argument):,} bytes (max: {MAX_ARGUMENTS_SIZE:,})", tool_name
    )

  try:
    args = json.loads(json_argument)
  except json.JSONDecodeError as e:
    raise ToolArgumentsError(f"Invalid JSON arguments: {e}", tool_name) from e

  if not isinstance(args, dict):
    raise ToolArgumentsError(f"Arguments must be a JSON object, got {type(args).__name__}", tool_name)
  return args


def coerce_value(value, expected_type):
  """
  Coerce a decoded JSON value to the annotated parameter type.

  Models frequently send numbers and booleans as strings, those are
  converted. Containers are only checked against their origin type.
  """
  if value is None:
    return None

  origin = get_origin(expected_type)
  if origin is Literal:
    choices = get_args(expected_type)
    if value in choices:
      return value
    raise ValueError(f"expected one of {list(choices)}")
  if origin is not None:
    if not isinstance(origin, type) or isinstance(value, origin):
      return value
    raise TypeError(f"expected {origin.__name__}")

  if expected_type is Any:
    return value

  if expected_type is bool:
    if isinstance(value, bool):
      return value
    if isinstance(value, str):
      lowered = value.strip().lower()
      if lowered in ("true", "1", "yes", "on"):
        return True
      if lowered in ("false", "0", "no", "off"):
        return False
      raise ValueError(f"cannot read '{value}' as a boolean")
    if isinstance(value, (int, float)):
      return bool(value)
    raise TypeError("expected bool")

  if expected_type is int:
    if isinstance(value, bool):
      raise TypeError("expected int")
    if isinstance(value, float) and not value.is_integer():
      raise ValueError("expected a whole number")
    if isinstance(value, (str, int, float)):
      return int(value)
    raise TypeError("expected int")

  if expected_type is float:
    if isinstance(value, (str, int, float)) and not isinstance(value, bool):
      return float(value)
    raise TypeError("expected float")

  if expected_type is str:
    if isinstance(value, (dict, list)):
      return json.dumps(value)
    return str(value)

  if isinstance(expected_type, type) and not isinstance(value, expected_type):
    raise TypeError(f"expected {expected_type.__name__}")
  return value


def wrap(f) -> Callable:
  @wraps(f)
  async def wrapper(**kwargs):
    r = f(**kwargs)
    if inspect.isawaitable(r):
      return await r
    return r

  return wrapper


def function_spec(f, name: Optional[str] = None) -> tuple:
  f_name = name or f.__name__
  docstring = parse(f.__doc__) if f.__doc__ else None
  if docstring and (docstring.short_description or docstring.long_description):
    f_description = "\n\n".join(d for d in (docstring.short_description, docstring.long_description) if d)
  else:
    f_description = f"Function {f_name}"
  return f_name, {
    "type": "function",
    "function": {"name": f_name, "description": f_description, "parameters": parameters_spec(f, docstring)},
  }


def parameters_spec(f, docstring=None) -> dict:
  f_parameters = {"type": "object", "properties": {}, "required": []}

  try:
    type_hints = get_type_hints(f)
  except (NameError, TypeError):
    type_hints = {}

  documented = {p.arg_name: p for p in docstring.params} if docstring else {}
  for p_name, p in inspect.signature(f).parameters.items():
    if p_name == CONTEXT_PARAMETER or p.kind in VARIADIC_KINDS:
      continue

    # A type in the docstring wins over the annotation.
    doc = documented.get(p_name)
    hint = type_hints.get(p_name)
    choices = literal_choices(hint)
    if doc and doc.type_name:
      p_type = doc.type_name
    elif choices:
      p_type = type(choices[0]).__name__
    else:
      p_type = python_type_name(hint)
    description = doc.description if doc and doc.description else f"parameter {p_name}"

    f_parameters["properties"][p_name] = {"type": to_json_schema_type(p_type), "description": description}
    if choices:
      f_parameters["properties"][p_name]["enum"] = list(choices)
    if p.default is inspect.Parameter.empty:
      f_parameters["required"].append(p_name)

  return f_parameters


def literal_choices(annotation) -> tuple:
  if get_origin(annotation) is Union:
    args = [a for a in get_args(annotation) if a is not type(None)]
    if len(args) == 1:
      annotation = args[0]
  if get_origin(annotation) is Literal:
    return get_args(annotation)
  return ()


def python_type_name(annotation) -> str:
  if annotation is None:
    return "Any"
  if get_origin(annotation) is Union:
    args = [a for a in get_args(annotation) if a is not type(None)]
    if len(args) == 1:
      annotation = args[0]
  origin = get_origin(annotation)
  if origin is not None:
    annotation = origin
  return getattr(annotation, "__name__", str(annotation))


def to_json_schema_type(p_type: str) -> str:
  return {
    "bool": "boolean",
    "int": "integer",
    "float": "number",
    "str": "string",
    "list": "array",
    "dict": "object",
  }.get(p_type, "string")
