"""
aiohttp application exposing the orchestrator over HTTP.

User identity comes from the X-User-Id header set by the upstream auth
gateway; requests without it get 401. X-Timezone (IANA name) sets the
request timezone, default UTC. X-Request-Id (generated when absent) tags
every log line for the request and is echoed in the response.

Endpoints:
  POST /api/ai/query                        natural-language query (includes rawData)
  GET  /api/ai/tools                        all tools
  GET  /api/ai/tools/category/{category}    tools in one category
  GET  /api/ai/tools/search?q=              free-text tool search
  POST /api/conversation/text               query, speech-cleaned answer
  POST /api/conversation/speak              audio in, audio out
  POST /api/conversation/tts                text to audio
  POST /api/conversation/enable|disable     conversation mode
  GET  /api/conversation/status
  GET  /api/sessions, POST /api/sessions
  GET  /api/sessions/{session_id}/messages
  GET  /api/user/preferences, POST /api/user/preferences
  GET  /api/health                          {"status": "ok", "uptime_s": N}
"""

from __future__ import annotations

import asyncio
import functools
import json
import logging
import os
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Awaitable, Callable

from aiohttp import web
from pydantic import ValidationError

from ..config import settings
from ..constants import ERROR_MESSAGES
from ..logging_config import request_context
from ..models import AIResponse, ResponsePreferences, UserContext, utc_now_iso
from ..voice.speech import clean_text_for_speech

if TYPE_CHECKING:
    from ..ai.claude_client import ClaudeClient
    from ..ai.orchestrator import QueryOrchestrator
    from ..memory.preferences import PreferenceStore
    from ..memory.sessions import SessionStore
    from ..tools.registry import ToolRegistry
    from ..voice.speech import SpeechService

logger = logging.getLogger(__name__)

_START_TIME = time.monotonic()

_dumps = functools.partial(json.dumps, default=str)

Handler = Callable[[web.Request, str], Awaitable[web.StreamResponse]]


@dataclass
class AppServices:
    """Everything the handlers need, built once at startup."""
    orchestrator: QueryOrchestrator
    registry: ToolRegistry
    sessions: SessionStore | None = None
    preferences: PreferenceStore | None = None
    speech: SpeechService | None = None
    claude: ClaudeClient | None = None
    background: set[asyncio.Task] = field(default_factory=set)


SERVICES = web.AppKey("services", AppServices)


def _services(request: web.Request) -> AppServices:
    return request.app[SERVICES]


def _error(message: str, status: int, **extra) -> web.Response:
    return web.json_response(
        {"success": False, "error": message, "timestamp": utc_now_iso(), **extra}, status=status
    )


def _ok(data, **extra) -> web.Response:
    return web.json_response({"success": True, "data": data, "timestamp": utc_now_iso(), **extra})


def requires_user(handler: Handler) -> Callable[[web.Request], Awaitable[web.StreamResponse]]:
    """Resolve X-User-Id and pass it to the handler; 401 if absent."""
    @functools.wraps(handler)
    async def wrapper(request: web.Request) -> web.StreamResponse:
        user_id = request.headers.get("X-User-Id", "").strip()
        if not user_id:
            return _error(ERROR_MESSAGES["auth_required"], 401)
        with request_context(user_id, request.headers.get("X-Request-Id", "")[:64] or None) as request_id:
            response = await handler(request, user_id)
        if not response.prepared:
            response.headers["X-Request-Id"] = request_id
        return response
    return wrapper


@web.middleware
async def error_middleware(request: web.Request, handler) -> web.StreamResponse:
    """Turn any unhandled exception into a JSON 500 without a traceback."""
    try:
        return await handler(request)
    except web.HTTPException:
        raise
    except Exception as e:
        logger.exception("Unhandled error on %s %s: %s", request.method, request.path, e)
        return _error(ERROR_MESSAGES["internal"], 500)


async def _read_json(request: web.Request) -> dict | None:
    try:
        body = await request.json()
    except ValueError:
        return None
    return body if isinstance(body, dict) else None


def _spawn(services: AppServices, coro, label: str) -> None:
    """Run coro in the background; failures are logged, never raised."""
    async def _run():
        try:
            await coro
        except Exception as e:
            logger.warning("Background task %s failed: %s", label, e)

    task = asyncio.create_task(_run())
    services.background.add(task)
    task.add_done_callback(services.background.discard)


async def drain_background(services: AppServices) -> None:
    """Wait for in-flight background writes so nothing touches a closed database."""
    if services.background:
        logger.info("Waiting for %d background task(s)", len(services.background))
        await asyncio.gather(*list(services.background), return_exceptions=True)


async def _drain_on_cleanup(app: web.Application) -> None:
    await drain_background(app[SERVICES])


async def _persist_turn(
    services: AppServices,
    user_id: str,
    session_id: str,
    user_text: str,
    response: AIResponse,
    is_voice: bool,
) -> None:
    store = services.sessions
    if store is None:
        return
    await store.add_message(session_id, user_id, "user", user_text, {"isVoice": is_voice})
    await store.add_message(
        session_id, user_id, "assistant", response.natural_response,
        {"isVoice": is_voice, "toolUsed": response.tool_used, "reasoning": response.reasoning},
    )
    tools = response.chained_tools or ([response.tool_used] if response.tool_used else [])
    for tool_name in tools:
        await store.record_tool_call(session_id, tool_name, success=response.success)


def _context_from(request: web.Request, query: str, session_id, preferences: ResponsePreferences) -> UserContext:
    return UserContext(
        query=query,
        timezone=request.headers.get("X-Timezone") or "UTC",
        session_id=session_id.strip() if isinstance(session_id, str) and session_id.strip() else None,
        preferences=preferences,
    )


def _session_for(services: AppServices, user_id: str, requested) -> str | None:
    if isinstance(requested, str) and requested.strip():
        return requested.strip()
    mode = services.speech.get_conversation_mode(user_id) if services.speech else None
    return mode.session_id if mode else None


# --------------------------------------------------------------------------- #
# AI endpoints                                                                #
# --------------------------------------------------------------------------- #

@requires_user
async def handle_query(request: web.Request, user_id: str) -> web.Response:
    body = await _read_json(request)
    query = body.get("query") if body else None
    if not isinstance(query, str) or not query.strip():
        return _error(ERROR_MESSAGES["query_required"], 400)
    try:
        preferences = ResponsePreferences.model_validate(body.get("preferences") or {})
    except ValidationError as e:
        return _error(f"Invalid preferences: {e.errors()[0]['msg']}", 400)

    services = _services(request)
    context = _context_from(request, query, body.get("sessionId"), preferences)
    result = await services.orchestrator.process_query(context, user_id)
    return web.json_response({
        "success": result.success,
        "data": {
            "query": context.query,
            "response": result.natural_response,
            "toolUsed": result.tool_used,
            "reasoning": result.reasoning,
            "suggestedActions": result.suggested_actions,
            "chainedTools": result.chained_tools,
            "rawData": result.raw_data,
        },
        "error": result.error,
        "timestamp": utc_now_iso(),
    }, dumps=_dumps)


def _tool_summary(meta, with_category: bool = True) -> dict:
    summary = {
        "name": meta.name,
        "description": meta.description,
        "examples": [ex.query for ex in meta.examples],
        "dataAccess": meta.data_access,
        "parameters": [p.model_dump(by_alias=True) for p in meta.parameters],
    }
    if with_category:
        summary["category"] = meta.category
    return summary


@requires_user
async def handle_tools(request: web.Request, user_id: str) -> web.Response:
    registry = _services(request).registry
    tools = registry.get_all_metadata()
    return _ok({
        "tools": [_tool_summary(m) for m in tools],
        "totalCount": len(tools),
        "categories": registry.categories(),
    })


@requires_user
async def handle_tools_by_category(request: web.Request, user_id: str) -> web.Response:
    category = request.match_info["category"]
    tools = _services(request).registry.get_by_category(category)
    return _ok({
        "category": category,
        "tools": [_tool_summary(m, with_category=False) for m in tools],
        "count": len(tools),
    })


@requires_user
async def handle_tools_search(request: web.Request, user_id: str) -> web.Response:
    text = request.query.get("q", "").strip()
    if not text:
        return _error("Search text is required (?q=...)", 400)
    tools = _services(request).registry.search(text)
    return _ok({"query": text, "tools": [_tool_summary(m) for m in tools], "count": len(tools)})


# --------------------------------------------------------------------------- #
# Conversation endpoints                                                      #
# --------------------------------------------------------------------------- #

@requires_user
async def handle_conversation_text(request: web.Request, user_id: str) -> web.Response:
    body = await _read_json(request)
    query = body.get("query") if body else None
    if not isinstance(query, str) or not query.strip():
        return _error(ERROR_MESSAGES["query_required"], 400)

    services = _services(request)
    session_id = _session_for(services, user_id, body.get("sessionId"))
    context = _context_from(
        request, query, session_id,
        ResponsePreferences(response_style="conversational", include_actions=False, clean_for_speech=True),
    )
    result = await services.orchestrator.process_query(context, user_id)
    if session_id:
        _spawn(services, _persist_turn(services, user_id, session_id, context.query, result, False), "persist text turn")

    return web.json_response({
        "success": result.success,
        "data": {
            "query": context.query,
            "response": clean_text_for_speech(result.natural_response),
            "originalResponse": result.natural_response,
            "toolUsed": result.tool_used,
            "reasoning": result.reasoning,
            "chainedTools": result.chained_tools,
        },
        "error": result.error,
        "timestamp": utc_now_iso(),
    })


@requires_user
async def handle_conversation_speak(request: web.Request, user_id: str) -> web.StreamResponse:
    services = _services(request)
    if services.speech is None:
        return _error("Speech service not configured", 503)

    form = await request.post()
    audio_field = form.get("audio")
    if not isinstance(audio_field, web.FileField):
        return _error(ERROR_MESSAGES["audio_required"], 400)
    audio = audio_field.file.read()
    if len(audio) > settings.max_audio_bytes:
        return _error(ERROR_MESSAGES["audio_too_large"], 413)
    suffix = os.path.splitext(audio_field.filename or "")[1] or ".wav"

    heard = await services.speech.speech_to_text(audio, suffix=suffix)
    if not heard.success or not heard.text:
        return _error(heard.error or ERROR_MESSAGES["speech_failed"], 400)
    logger.info("Speech recognised for user %s: %r", user_id, heard.text[:200])

    session_id = _session_for(services, user_id, form.get("sessionId"))
    context = _context_from(
        request, heard.text, session_id,
        ResponsePreferences(
            response_style="conversational", include_actions=False,
            is_voice_mode=True, is_voice_query=True, clean_for_speech=True,
        ),
    )
    result = await services.orchestrator.process_query(context, user_id)

    spoken = await services.speech.text_to_speech(result.natural_response)
    if not spoken.success or not spoken.audio_data:
        return _error(spoken.error or ERROR_MESSAGES["tts_failed"], 500)

    if session_id:
        _spawn(services, _persist_turn(services, user_id, session_id, heard.text, result, True), "persist voice turn")

    return web.Response(
        body=spoken.audio_data,
        content_type="audio/wav",
        headers={
            "X-User-Text": _header_safe(heard.text),
            "X-AI-Text": _header_safe(result.natural_response),
            "X-Tool-Used": result.tool_used or "",
        },
    )


def _header_safe(text: str, limit: int = 2000) -> str:
    """HTTP headers carry a single latin-1 line."""
    flat = " ".join(text.split())[:limit]
    return flat.encode("latin-1", "replace").decode("latin-1")


@requires_user
async def handle_tts(request: web.Request, user_id: str) -> web.StreamResponse:
    services = _services(request)
    if services.speech is None:
        return _error("Speech service not configured", 503)
    body = await _read_json(request)
    text = body.get("text") if body else None
    if not isinstance(text, str) or not text.strip():
        return _error(ERROR_MESSAGES["text_required"], 400)
    spoken = await services.speech.text_to_speech(text)
    if not spoken.success or not spoken.audio_data:
        return _error(spoken.error or ERROR_MESSAGES["tts_failed"], 500)
    return web.Response(body=spoken.audio_data, content_type="audio/wav")


@requires_user
async def handle_conversation_enable(request: web.Request, user_id: str) -> web.Response:
    services = _services(request)
    if services.speech is None:
        return _error("Speech service not configured", 503)
    body = await _read_json(request) or {}
    session_id = body.get("sessionId") if isinstance(body.get("sessionId"), str) else None
    mode = services.speech.enable_conversation_mode(user_id, session_id)
    return _ok({"enabled": True, "sessionId": mode.session_id, "enabledAt": mode.enabled_at})


@requires_user
async def handle_conversation_disable(request: web.Request, user_id: str) -> web.Response:
    services = _services(request)
    if services.speech is not None:
        services.speech.disable_conversation_mode(user_id)
    return _ok({"enabled": False})


@requires_user
async def handle_conversation_status(request: web.Request, user_id: str) -> web.Response:
    services = _services(request)
    mode = services.speech.get_conversation_mode(user_id) if services.speech else None
    return _ok({
        "enabled": mode is not None,
        "sessionId": mode.session_id if mode else None,
        "enabledAt": mode.enabled_at if mode else None,
        "canSpeak": bool(services.speech and services.speech.can_synthesize),
    })


# --------------------------------------------------------------------------- #
# Sessions and preferences                                                    #
# --------------------------------------------------------------------------- #

def _store_missing(name: str) -> web.Response:
    return _error(f"{name} store not configured", 503)


@requires_user
async def handle_list_sessions(request: web.Request, user_id: str) -> web.Response:
    store = _services(request).sessions
    if store is None:
        return _store_missing("Session")
    sessions = await store.list_sessions(user_id)
    return _ok([s.model_dump(by_alias=True) for s in sessions])


@requires_user
async def handle_create_session(request: web.Request, user_id: str) -> web.Response:
    store = _services(request).sessions
    if store is None:
        return _store_missing("Session")
    body = await _read_json(request) or {}
    title = body.get("title") if isinstance(body.get("title"), str) else None
    session = await store.create_session(user_id, title)
    return web.json_response(
        {"success": True, "data": session.model_dump(by_alias=True), "timestamp": utc_now_iso()},
        status=201,
    )


@requires_user
async def handle_session_messages(request: web.Request, user_id: str) -> web.Response:
    store = _services(request).sessions
    if store is None:
        return _store_missing("Session")
    session_id = request.match_info["session_id"]
    if await store.get_session(session_id, user_id) is None:
        return _error(ERROR_MESSAGES["session_not_found"], 404)
    messages = await store.get_messages(session_id, user_id)
    return _ok({"sessionId": session_id, "messages": [m.model_dump(by_alias=True) for m in messages]})


@requires_user
async def handle_get_preferences(request: web.Request, user_id: str) -> web.Response:
    store = _services(request).preferences
    if store is None:
        return _store_missing("Preference")
    record = await store.get(user_id)
    preferences, onboarding_completed = record if record else ({}, False)
    return _ok({"preferences": preferences, "onboardingCompleted": onboarding_completed})


@requires_user
async def handle_save_preferences(request: web.Request, user_id: str) -> web.Response:
    store = _services(request).preferences
    if store is None:
        return _store_missing("Preference")
    body = await _read_json(request)
    preferences = body.get("preferences") if body else None
    if not isinstance(preferences, dict):
        return _error("preferences must be an object", 400)
    onboarding_completed = bool(body.get("onboardingCompleted", False))
    await store.save(user_id, preferences, onboarding_completed)
    return _ok({"preferences": preferences, "onboardingCompleted": onboarding_completed})


# --------------------------------------------------------------------------- #
# Health                                                                      #
# --------------------------------------------------------------------------- #

async def handle_health(request: web.Request) -> web.Response:
    services = _services(request)
    body = {
        "status": "ok",
        "uptime_s": int(time.monotonic() - _START_TIME),
        "tools": len(services.registry),
        "cache": services.orchestrator.executor.cache.stats(),
    }
    if request.query.get("deep") and services.claude is not None:
        body["model_reachable"] = await services.claude.ping()
    return web.json_response(body)


# --------------------------------------------------------------------------- #
# App factory and runner                                                      #
# --------------------------------------------------------------------------- #

def create_app(services: AppServices) -> web.Application:
    app = web.Application(
        middlewares=[error_middleware],
        client_max_size=settings.max_audio_bytes + 64 * 1024,
    )
    app[SERVICES] = services
    app.on_cleanup.append(_drain_on_cleanup)

    app.router.add_post("/api/ai/query", handle_query)
    app.router.add_get("/api/ai/tools", handle_tools)
    app.router.add_get("/api/ai/tools/category/{category}", handle_tools_by_category)
    app.router.add_get("/api/ai/tools/search", handle_tools_search)

    app.router.add_post("/api/conversation/text", handle_conversation_text)
    app.router.add_post("/api/conversation/speak", handle_conversation_speak)
    app.router.add_post("/api/conversation/tts", handle_tts)
    app.router.add_post("/api/conversation/enable", handle_conversation_enable)
    app.router.add_post("/api/conversation/disable", handle_conversation_disable)
    app.router.add_get("/api/conversation/status", handle_conversation_status)

    app.router.add_get("/api/sessions", handle_list_sessions)
    app.router.add_post("/api/sessions", handle_create_session)
    app.router.add_get("/api/sessions/{session_id}/messages", handle_session_messages)

    app.router.add_get("/api/user/preferences", handle_get_preferences)
    app.router.add_post("/api/user/preferences", handle_save_preferences)

    app.router.add_get("/api/health", handle_health)
    return app


async def run_server(app: web.Application, host: str | None = None, port: int | None = None) -> None:
    """
    Serve app until cancelled. Call with asyncio.create_task() or await directly.
    """
    host = host or settings.http_host
    port = port or settings.http_port
    runner = web.AppRunner(app, access_log=None)
    await runner.setup()
    site = web.TCPSite(runner, host, port)
    try:
        await site.start()
        logger.info("API server listening on http://%s:%d", host, port)
        while True:
            await asyncio.sleep(3600)
    except asyncio.CancelledError:
        logger.info("API server shutting down")
    finally:
        await runner.cleanup()
