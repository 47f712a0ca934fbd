"""Request/response API (aiohttp.web) in front of the command dispatcher.

Routes::

    GET  /getState /getParam?type= /getOutput?key= /getExternalCheck /getAll
    POST /setState /sendParam /getParam /setOutput /sendOutput
         /setExternalCheck /triggerExternalCheck /sendHeartbeat
         /restartComplete /restartConfig /media/upload /media/download
    POST /command        {"action": ..., ...} for any supported command

Every response carries ``Access-Control-Allow-Origin: *``; ``OPTIONS`` on
any path answers the CORS preflight with 204.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from aiohttp import web

from pypuzzle._redact import summarize_for_log
from pypuzzle.dispatcher import CommandDispatcher
from pypuzzle.exceptions import MalformedInputError, MediaError, PuzzleError, PuzzleValidationError

_logger = logging.getLogger(__name__)

DISPATCHER_KEY: web.AppKey[CommandDispatcher] = web.AppKey("dispatcher", CommandDispatcher)

Handler = Callable[[web.Request], Awaitable[web.Response]]

_CORS_HEADERS = {"Access-Control-Allow-Origin": "*"}
_PREFLIGHT_HEADERS = {
    **_CORS_HEADERS,
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}

_GET_ROUTES: dict[str, str] = {
    "/getState": "getState",
    "/getOutput": "getOutput",
    "/getExternalCheck": "getExternalCheck",
    "/getAll": "getAll",
}

_POST_ROUTES: dict[str, str] = {
    "/setState": "setState",
    "/sendParam": "sendParam",
    "/getParam": "getParam",
    "/setOutput": "setOutput",
    "/sendOutput": "sendOutput",
    "/setExternalCheck": "setExternalCheck",
    "/triggerExternalCheck": "triggerExternalCheck",
    "/sendHeartbeat": "sendHeartbeat",
    "/restartComplete": "restartComplete",
    "/restartConfig": "restartConfig",
    "/media/upload": "mediaUpload",
    "/media/download": "mediaDownload",
}

_FALLBACK_ERRORS: dict[str, str] = {
    "setState": "State transition failed",
    "mediaUpload": "Upload failed",
    "mediaDownload": "Download failed",
}


def _error(message: str, status: int) -> web.Response:
    return web.json_response({"error": message}, status=status)


async def _read_json_body(request: web.Request) -> dict[str, Any]:
    """Parse the request body as a JSON object.

    Raises
    ------
    MalformedInputError
        The body is not UTF-8 JSON or not an object.
    """
    try:
        text = await request.text()
    except UnicodeDecodeError as exc:
        raise MalformedInputError(f"Body is not valid UTF-8: {exc}") from exc
    if not text.strip():
        return {}
    try:
        body = json.loads(text)
    except json.JSONDecodeError as exc:
        raise MalformedInputError(f"Invalid JSON body: {exc}") from exc
    if not isinstance(body, dict):
        raise MalformedInputError("JSON body is not an object")
    return body


async def _read_body(request: web.Request) -> dict[str, Any]:
    try:
        body = await _read_json_body(request)
    except MalformedInputError as exc:
        _logger.debug("%s %s: %s, continuing with empty arguments", request.method, request.path, exc)
        return {}
    _logger.debug("Request %s %s %s", request.method, request.path, summarize_for_log(body))
    return body


async def _run(
    request: web.Request,
    args: dict[str, Any],
    action: str | None,
    *,
    shape: Callable[[dict[str, Any]], dict[str, Any]] | None = None,
) -> web.Response:
    dispatcher = request.app[DISPATCHER_KEY]
    try:
        reply = await dispatcher.dispatch_payload(args, action=action)
    except PuzzleValidationError as exc:
        return _error(str(exc), 400)
    except MediaError as exc:
        _logger.warning("%s failed: %s", action or args.get("action"), exc)
        return _error(str(exc) or _FALLBACK_ERRORS.get(action or "", "Media operation failed"), 500)
    except PuzzleError as exc:
        _logger.warning("%s failed: %s", action or args.get("action"), exc)
        return _error(str(exc) or _FALLBACK_ERRORS.get(action or "", "Command failed"), 500)
    if shape is not None:
        reply = shape(reply)
    _logger.debug("Response %s %s", request.path, summarize_for_log(reply))
    return web.json_response(reply)


def _query_handler(action: str) -> Handler:
    async def handle(request: web.Request) -> web.Response:
        return await _run(request, dict(request.query), action)

    return handle


def _body_handler(action: str | None) -> Handler:
    async def handle(request: web.Request) -> web.Response:
        return await _run(request, await _read_body(request), action)

    return handle


async def _handle_get_param(request: web.Request) -> web.Response:
    """``GET /getParam?type=`` replies ``{type, data}``; ``?key=`` replies ``{key, data}``."""
    if "key" in request.query:
        return await _run(request, dict(request.query), "getParam")
    return await _run(
        request,
        dict(request.query),
        "getParam",
        shape=lambda reply: {"type": reply.get("key"), "data": reply.get("data")},
    )


@web.middleware
async def _cors_middleware(request: web.Request, handler: Handler) -> web.StreamResponse:
    if request.method == "OPTIONS":
        return web.Response(status=204, headers=_PREFLIGHT_HEADERS)
    try:
        response = await handler(request)
    except (web.HTTPNotFound, web.HTTPMethodNotAllowed):
        response = _error("Not found", 404)
    response.headers.update(_CORS_HEADERS)
    return response


def create_app(dispatcher: CommandDispatcher) -> web.Application:
    """Build the aiohttp application serving *dispatcher*."""
    app = web.Application(middlewares=[_cors_middleware])
    app[DISPATCHER_KEY] = dispatcher

    routes = [web.get("/getParam", _handle_get_param)]
    routes.extend(web.get(path, _query_handler(action)) for path, action in _GET_ROUTES.items())
    routes.extend(web.post(path, _body_handler(action)) for path, action in _POST_ROUTES.items())
    routes.append(web.post("/command", _body_handler(None)))
    app.add_routes(routes)
    return app
