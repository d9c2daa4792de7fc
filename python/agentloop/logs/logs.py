import logging
import logging.config
import os

from contextlib import contextmanager
from typing import Dict, Optional, Protocol

LOG_FORMAT = os.getenv(
  "AGENTLOOP_LOG_FORMAT", "%(asctime)s %(log_color)s%(levelname)5s%(reset)s %(name)-8s %(message)s"
)
if os.getenv("AGENTLOOP_LOG_SHOW_SOURCE"):
  LOG_FORMAT += " [%(pathname)s:%(lineno)d]"

DEFAULT_LEVEL = "INFO"

LEVELS: Dict[str, int] = {name: logging.getLevelName(name.upper()) for name in ["critical", "error", "warning", "info", "debug"]}

LOG_COLORS = {
  "DEBUG": "blue",
  "INFO": "green",
  "WARNING": "yellow",
  "ERROR": "red",
  "CRITICAL": "bold_red",
}

# Loggers owned by this package. Each one falls back to the "default" level.
PACKAGE_LOGGERS = ["engine", "router", "model", "tool", "http", "channel", "config"]

# Chatty third-party loggers, kept at WARNING unless named in the levels.
THIRD_PARTY_LOGGERS = [
  "asyncio",
  "uvicorn",
  "uvicorn.error",
  "uvicorn.access",
  "uvicorn.asgi",
  "httpcore",
  "httpx",
  "LiteLLM",
  "LiteLLM Router",
  "LiteLLM Proxy",
]

_levels: Dict[str, str] = {}


def logging_enabled() -> bool:
  return os.environ.get("AGENTLOOP_LOGGING", "1") != "0"


def current_levels() -> Dict[str, str]:
  if not _levels:
    _levels.update(create_log_levels(os.environ.get("AGENTLOOP_LOG_LEVELS")))
  return _levels


def get_logging_config() -> dict:
  if not logging_enabled():
    return {"version": 1, "disable_existing_loggers": False}
  return create_logging_config(current_levels(), LOG_FORMAT)


def get_log_levels() -> Dict[str, str]:
  return dict(current_levels())


def set_log_level(module_name: str, level: str):
  """Set the level of one logger, e.g. set_log_level("tool", "debug")."""
  current_levels()[module_name] = level.upper()


def set_log_levels(log_levels: Optional[str]):
  _levels.clear()
  _levels.update(create_log_levels(log_levels))


def apply_log_levels():
  """Reconfigure every logger with the current levels."""
  logging.config.dictConfig(get_logging_config())


def logger_config(level: str) -> dict:
  return {"handlers": ["console"], "level": level, "propagate": False}


def create_logging_config(levels: Dict[str, str], log_format: str) -> dict:
  default = levels.get("default", DEFAULT_LEVEL)
  loggers = {name: logger_config(levels.get(name, "WARNING")) for name in THIRD_PARTY_LOGGERS}
  loggers.update({name: logger_config(levels.get(name, default)) for name in PACKAGE_LOGGERS})

  return {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
      "colored": {
        "()": "agentloop.logs.formatter.Formatter",
        "format": log_format,
        "log_colors": LOG_COLORS,
      },
    },
    "handlers": {
      # no level on the handler, each logger filters for itself
      "console": {"class": "logging.StreamHandler", "formatter": "colored"},
    },
    "loggers": loggers,
    "root": {"level": default, "handlers": ["console"]},
  }


def create_log_levels(log_levels: Optional[str]) -> Dict[str, str]:
  """
  Parse levels from a string like "DEBUG,tool=info".

  A bare level sets the default, "module=level" pairs set per-module levels.
  """
  result = {"default": DEFAULT_LEVEL}
  for entry in (log_levels or "").split(","):
    module, separator, level = entry.partition("=")
    if not separator:
      module, level = "default", module
    module, level = module.strip(), level.strip()
    if module and level:
      result[module] = level.upper()
  return result


def get_logger(logger_name: str) -> logging.Logger:
  logging.config.dictConfig(get_logging_config())
  return logging.getLogger(logger_name)


class LoggerAware(Protocol):
  logger: logging.Logger


class InfoContext(LoggerAware):
  """Logs a message before a block and another once it completes. Failures are logged and re-raised."""

  @contextmanager
  def info(self, before_msg, after_msg):
    self.logger.info(before_msg)
    try:
      yield
    except Exception as e:
      self.logger.info(f"{before_msg} failed: {e}")
      raise
    else:
      self.logger.info(after_msg)
