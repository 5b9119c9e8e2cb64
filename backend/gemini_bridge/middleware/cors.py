"""
Permissive CORS Middleware

The bridge is called from browsers on arbitrary origins: every OPTIONS request
gets a wildcard preflight answer and every response carries
`Access-Control-Allow-Origin: *`.
"""

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

ALLOW_ORIGIN_HEADER = "Access-Control-Allow-Origin"

PREFLIGHT_HEADERS = {
    ALLOW_ORIGIN_HEADER: "*",
    "Access-Control-Allow-Methods": "*",
    "Access-Control-Allow-Headers": "*",
}


class PermissiveCORSMiddleware(BaseHTTPMiddleware):
    """
    Answers OPTIONS itself; adds the wildcard origin header to everything else.
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        if request.method == "OPTIONS":
            return Response(status_code=204, headers=PREFLIGHT_HEADERS)

        response = await call_next(request)
        response.headers[ALLOW_ORIGIN_HEADER] = "*"
        return response
