"""Vercel ASGI function entrypoint for the EduAssess backend.

Vercel routes every request under ``/api``; the prefix is removed before the
request reaches the FastAPI app, whose CORS middleware answers preflights.
"""

from eduassess.main import app as inner_app


class StripPrefix:
    def __init__(self, app, prefix: str):
        self.app = app
        self.prefix = prefix

    async def __call__(self, scope, receive, send):
        if scope["type"] in ("http", "websocket"):
            path = scope.get("path", "")
            if path == self.prefix or path.startswith(f"{self.prefix}/"):
                scope = dict(scope)
                scope["path"] = path[len(self.prefix):] or "/"
        await self.app(scope, receive, send)


app = StripPrefix(inner_app, "/api")
