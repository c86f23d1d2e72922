from fastapi import FastAPI, Request
from starlette.responses import Response

ROBOTS_HEADER = "noindex, nofollow, noarchive"

# Queue state changes every few seconds; no response may be cached.
RESPONSE_HEADERS = {
    "X-Robots-Tag": ROBOTS_HEADER,
    "X-Content-Type-Options": "nosniff",
    "Cache-Control": "no-store",
}


def install_security_headers(app: FastAPI) -> None:
    @app.middleware("http")
    async def add_response_headers(request: Request, call_next):
        response: Response = await call_next(request)
        for name, value in RESPONSE_HEADERS.items():
            response.headers.setdefault(name, value)
        return response
