import asyncio
import os

from .agents.configurer import AgentConfigurer
from .agents.http import HttpServer
from .agents.instructions import SystemPromptBuilder
from .agents.runner import AgentRunner
from .agents.validation import max_messages_from_environment
from .models.router import ProviderRouter
from .tools.registry import ToolRegistry


def main():
  """Serve the configured agent over HTTP, everything configured from the environment."""
  runner = AgentRunner(
    ProviderRouter.from_environment(),
    ToolRegistry(),
    SystemPromptBuilder(os.environ.get("AGENTLOOP_WORKSPACE_DIR", "./workspace")),
    max_messages_from_environment(),
  )
  server = HttpServer(runner, AgentConfigurer.from_environment())
  asyncio.run(server.serve())


if __name__ == "__main__":
  main()
