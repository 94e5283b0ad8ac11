#!/usr/bin/env python3
"""
Mock server for manual runs of the uptime monitor.

Routes:
- /ok           200 after a short random delay
- /slow         200 after 5-30s, to exercise monitor timeouts
- /flaky        500 for about a third of the requests
- /keyword/{w}  200 with a body containing the word w
- /status/{n}   answers with status code n
- /api/notifications  accepts notification payloads and prints them
"""

import asyncio
import json
import random

from aiohttp import web

# Constants
PORT = 8080
HOST = "localhost"
FAST_RESPONSE_MIN_MS = 5
FAST_RESPONSE_MAX_MS = 500
SLOW_RESPONSE_MIN_S = 5
SLOW_RESPONSE_MAX_S = 30
FLAKY_FAILURE_PROBABILITY = 0.33


async def handle_ok(request: web.Request) -> web.Response:
    await asyncio.sleep(random.uniform(FAST_RESPONSE_MIN_MS, FAST_RESPONSE_MAX_MS) / 1000)
    return web.Response(text="ok")


async def handle_slow(request: web.Request) -> web.Response:
    await asyncio.sleep(random.uniform(SLOW_RESPONSE_MIN_S, SLOW_RESPONSE_MAX_S))
    return web.Response(text="finally")


async def handle_flaky(request: web.Request) -> web.Response:
    if random.random() < FLAKY_FAILURE_PROBABILITY:
        return web.Response(status=500, text="internal error")
    return web.Response(text="ok")


async def handle_keyword(request: web.Request) -> web.Response:
    word = request.match_info["word"]
    return web.Response(text=f"<html><body>Service status: {word}</body></html>", content_type="text/html")


async def handle_status(request: web.Request) -> web.Response:
    return web.Response(status=int(request.match_info["code"]), text="")


async def handle_notification(request: web.Request) -> web.Response:
    payload = await request.json()
    print(json.dumps(payload, indent=2))
    return web.json_response({"received": True})


async def init_app() -> web.Application:
    app = web.Application()
    app.add_routes(
        [
            web.get("/ok", handle_ok),
            web.get("/slow", handle_slow),
            web.get("/flaky", handle_flaky),
            web.get("/keyword/{word}", handle_keyword),
            web.get(r"/status/{code:\d{3}}", handle_status),
            web.post("/api/notifications", handle_notification),
        ]
    )
    return app


def run_server() -> None:
    web.run_app(init_app(), host=HOST, port=PORT)


if __name__ == "__main__":
    print(f"Starting mock server at http://{HOST}:{PORT}")
    run_server()
