"""
HTTP adapter exposing the engine under /api, with FastAPI.

  POST /api/chat          run the configured agent, answer with the final message
  POST /api/chat/stream   same run, answered as server-sent events
  GET  /api/health
  GET  /api/settings      current agent settings
  PUT  /api/settings      publish new agent settings
  GET  /api/messages      drain the messages buffered on the REST channel
  GET  /api/logs/levels   current log levels
  POST /api/logs/levels   change a log level at runtime
"""

import json
import os
import uuid
import uvicorn

from dataclasses import replace
from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse, StreamingResponse
from typing import Optional

from .configurer import AgentConfigurer
from .context import AgentContext
from .runner import AgentRunner
from ..channels.registry import ChannelRegistry
from ..errors import ProviderError, ValidationError
from ..logs.logs import (
  InfoContext,
  LEVELS,
  apply_log_levels,
  get_log_levels,
  get_logger,
  get_logging_config,
  set_log_level,
  set_log_levels,
)
from ..messages.wire import ChatRequest, ChatResponse, parse_chat_request, response_to_wire, to_chat_messages

DEFAULT_HOST = os.environ.get("DEFAULT_HOST_HTTP", "0.0.0.0")
DEFAULT_PORT = int(os.environ.get("DEFAULT_PORT_HTTP", "8000"))


class HttpServer(InfoContext):
  def __init__(
    self,
    runner: AgentRunner,
    configurer: Optional[AgentConfigurer] = None,
    channels: Optional[ChannelRegistry] = None,
    listen_address: str = f"{DEFAULT_HOST}:{DEFAULT_PORT}",
    app: Optional[FastAPI] = None,
  ):
    self.logger = get_logger("http")
    self.runner = runner
    self.configurer = configurer or AgentConfigurer()
    self.channels = channels or ChannelRegistry()
    self.host, self.port = parse_listen_address(listen_address)
    self.app = app or FastAPI()
    self._setup_error_handlers()
    self._setup_routes()

  def _setup_error_handlers(self):
    @self.app.exception_handler(ValidationError)
    async def validation_failed(request: Request, e: ValidationError):
      self.logger.warning(f"Rejected request to {request.url.path}: {e}")
      return JSONResponse(status_code=400, content={"error": e.message})

    @self.app.exception_handler(ProviderError)
    async def provider_failed(request: Request, e: ProviderError):
      self.logger.error(f"Model provider failed for {request.url.path}: {e}")
      return JSONResponse(status_code=502, content={"error": e.message})

  def _setup_routes(self):
    @self.app.post("/api/chat")
    async def chat(request: Request):
      chat_request = parse_chat_request(await read_json(request))
      agent, messages, context, max_turns = self.prepare_run(chat_request)

      with self.info(f"Chat with agent '{agent.name}'", f"Answered chat with agent '{agent.name}'"):
        response = await self.runner.run(agent, messages, context, max_turns)

      return response_to_wire(
        ChatResponse(
          response=response.last_message(),
          agent=response.agent.name,
          context_variables=response.context_variables,
          session_id=context.session_id,
          truncated=response.truncated,
        )
      )

    @self.app.post("/api/chat/stream")
    async def chat_stream(request: Request):
      chat_request = parse_chat_request(await read_json(request))
      agent, messages, context, max_turns = self.prepare_run(chat_request)
      stream = self.runner.run_streaming(agent, messages, context, max_turns)

      async def events():
        yield server_sent_event(context.session_id, event="session")
        try:
          async for fragment in stream:
            yield server_sent_event(fragment)
        except ProviderError as e:
          self.logger.error(f"Streaming chat with agent '{agent.name}' failed: {e}")
          yield server_sent_event(e.message, event="error")
        finally:
          await stream.aclose()

        if stream.response is not None and stream.response.truncated:
          yield server_sent_event("turn budget exhausted", event="truncated")

      return StreamingResponse(events(), media_type="text/event-stream")

    @self.app.get("/api/health")
    async def health():
      return {"status": "ok", "service": "agentloop"}

    @self.app.get("/api/settings")
    async def get_settings():
      settings = self.configurer.snapshot()
      return {
        "agentName": settings.name,
        "model": settings.to_agent().resolved_model,
        "instructions": settings.instructions,
        "maxTurns": settings.max_turns,
      }

    @self.app.put("/api/settings")
    async def update_settings(request: Request):
      data = await read_json(request)
      if not isinstance(data, dict):
        raise ValidationError("Settings must be a JSON object")
      max_turns = data.get("maxTurns")
      if max_turns is not None and (not isinstance(max_turns, int) or isinstance(max_turns, bool)):
        raise ValidationError("maxTurns must be an integer", {"maxTurns": max_turns})
      for key in ("agentName", "model", "instructions"):
        if data.get(key) is not None and not isinstance(data[key], str):
          raise ValidationError(f"{key} must be a string", {key: data[key]})

      self.configurer.update(
        name=data.get("agentName"),
        model=data.get("model"),
        instructions=data.get("instructions"),
        max_turns=max_turns,
      )
      return {"status": "saved"}

    @self.app.get("/api/messages")
    async def get_messages():
      return {"messages": self.channels.rest_channel.drain_messages()}

    @self.app.get("/api/logs/levels")
    async def get_logging_levels():
      return {"levels": get_log_levels(), "available_levels": list(LEVELS.keys())}

    @self.app.post("/api/logs/levels")
    async def set_logging_levels(request: Request):
      """
      Change log levels at runtime.

        {"level": "DEBUG"}                    sets the default level
        {"level": "DEBUG", "module": "tool"}  sets the level of one module
      """
      data = await read_json(request)
      level = data.get("level") if isinstance(data, dict) else None
      if not level or not isinstance(level, str):
        raise HTTPException(status_code=400, detail="'level' is required")

      level_upper = level.upper()
      if level_upper.lower() not in LEVELS:
        raise HTTPException(status_code=400, detail=f"Invalid level '{level}'. Must be one of: {list(LEVELS.keys())}")

      module = data.get("module")
      if module:
        set_log_level(module, level_upper)
      else:
        set_log_levels(level_upper)
      apply_log_levels()
      self.logger.info(f"Log level for '{module or 'default'}' set to {level_upper}")
      return {"status": "ok", "module": module or "default", "level": level_upper, "levels": get_log_levels()}

  def prepare_run(self, chat_request: ChatRequest):
    """Build the agent, messages, context and turn budget of one chat request."""
    settings = self.configurer.snapshot()
    agent = settings.to_agent()
    if chat_request.model and chat_request.model.strip():
      agent = replace(agent, model=chat_request.model.strip())

    messages = to_chat_messages(chat_request)
    session_id = chat_request.session_id if chat_request.session_id and chat_request.session_id.strip() else None
    session_id = session_id or str(uuid.uuid4())

    context = AgentContext(session_id=session_id)
    context.merge(chat_request.context_variables)
    context.set("session_id", session_id)

    # a given budget is checked by the runner, only a missing one falls back to the settings
    max_turns = chat_request.max_turns if chat_request.max_turns is not None else settings.max_turns
    self.channels.mark_active(self.channels.rest_channel.name)
    return agent, messages, context, max_turns

  async def serve(self):
    self.logger.info(f"Starting http server at {self.host}:{self.port}")
    config = uvicorn.Config(self.app, host=self.host, port=self.port, log_config=get_logging_config(), access_log=True)
    server = uvicorn.Server(config)
    await server.serve()


async def read_json(request: Request):
  try:
    return await request.json()
  except (json.JSONDecodeError, UnicodeDecodeError) as e:
    raise ValidationError(f"Invalid JSON body: {e}") from e


def server_sent_event(data: str, event: Optional[str] = None) -> str:
  lines = [f"event: {event}"] if event else []
  lines.extend(f"data: {line}" for line in data.split("\n"))
  return "\n".join(lines) + "\n\n"


def parse_listen_address(listen_address: str):
  host, separator, port = listen_address.rpartition(":")
  if not separator or not host or not port.isdigit():
    raise ValueError(f"Invalid listen_address: {listen_address}")
  return host, int(port)
