from colorlog import ColoredFormatter
from datetime import datetime, UTC


class Formatter(ColoredFormatter):
  """
  Colored log lines with UTC timestamps.

  Each package logger (engine, router, model, ...) gets its own color so a run
  can be followed across components. Other loggers are printed in grey.
  """

  GREY = "\033[38;5;245m"
  YELLOW = "\033[33m"
  RESET = "\033[0m"

  LOGGER_COLORS = {
    "engine": "\033[36m",
    "router": "\033[34m",
    "model": "\033[35m",
    "tool": "\033[32m",
    "http": "\033[38;5;208m",
    "channel": "\033[38;5;110m",
    "config": "\033[38;5;180m",
  }

  def format(self, record):
    if record.levelname == "WARNING":
      record.levelname = f"{self.YELLOW} WARN{self.RESET}"
    return super().format(record)

  def formatTime(self, record, datefmt=None) -> str:
    timestamp = datetime.fromtimestamp(record.created, UTC)
    if datefmt:
      return timestamp.strftime(datefmt)
    return timestamp.isoformat(timespec="milliseconds").replace("+00:00", "Z")

  def formatMessage(self, record) -> str:
    color = self.LOGGER_COLORS.get(record.name, self.GREY)
    record.name = f"{color}{record.name}{self.RESET}"
    record.asctime = f"{self.GREY}{self.formatTime(record, self.datefmt)}{self.RESET}"
    return super().formatMessage(record)
