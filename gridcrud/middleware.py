"""
Middleware for the FastAPI application.
"""

import logging
import time

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

NO_CACHE_HEADERS = {
    "Cache-Control": "no-cache, must-revalidate",
    "Expires": "Mon, 26 Jul 1997 05:00:00 GMT",
}


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Middleware to log all requests with timing information.
    """

    async def dispatch(self, request: Request, call_next):
        """
        Process the request and log timing information.

        Args:
            request: The FastAPI request object
            call_next: The next middleware or endpoint handler

        Returns:
            Response: The response object
        """
        start_time = time.time()

        client_ip = request.client.host if request.client else "unknown"
        user_agent = request.headers.get("user-agent", "unknown")

        try:
            response = await call_next(request)

            process_time = time.time() - start_time
            logging.info(
                f"Request: {request.method} {request.url.path} "
                f"- Status: {response.status_code} "
                f"- Time: {process_time:.4f}s "
                f"- IP: {client_ip} "
                f"- UA: {user_agent}"
            )

            return response
        except Exception as e:
            process_time = time.time() - start_time
            logging.exception(
                f"Request failed: {request.method} {request.url.path} "
                f"- Time: {process_time:.4f}s "
                f"- IP: {client_ip} "
                f"- UA: {user_agent} "
                f"- Error: {str(e)}"
            )
            raise


class NoCacheMiddleware(BaseHTTPMiddleware):
    """
    Stamp no-cache headers on edit protocol responses, i.e. every
    response whose path ends with one of ``suffixes``.
    """

    def __init__(self, app: ASGIApp, suffixes: tuple = ("/ajax",)):
        super().__init__(app)
        self.suffixes = suffixes

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        if request.url.path.rstrip("/").endswith(self.suffixes):
            for header, value in NO_CACHE_HEADERS.items():
                response.headers[header] = value
        return response
