"""
Global error handling middleware.
"""
import logging
from fastapi import Request, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from typing import Callable

from agripay.domain.errors import ConfigurationError, RemoteServiceError


logger = logging.getLogger(__name__)


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """
    Global error handling middleware.

    Maps domain errors to consistent JSON error responses.
    """

    async def dispatch(self, request: Request, call_next: Callable):
        """
        Process the request and handle any exceptions.

        Args:
            request: The incoming request
            call_next: The next middleware or route handler

        Returns:
            Response object
        """
        try:
            response = await call_next(request)
            return response

        except RemoteServiceError as e:
            logger.error(
                f"Remote service error: {str(e)}",
                extra={
                    "path": request.url.path,
                    "method": request.method,
                    "status_code": e.status,
                }
            )
            # Pass through the remote error status; anything else is a bad gateway
            remote_failed = e.status is not None and e.status >= 400
            return JSONResponse(
                status_code=e.status if remote_failed else status.HTTP_502_BAD_GATEWAY,
                content={
                    "error": "Remote service error",
                    "detail": e.message,
                }
            )

        except ConfigurationError as e:
            logger.error(
                f"Configuration error: {str(e)}",
                extra={
                    "path": request.url.path,
                    "method": request.method,
                }
            )
            return JSONResponse(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                content={
                    "error": "Service not configured",
                    "detail": str(e),
                }
            )

        except ValueError as e:
            logger.warning(
                f"Validation error: {str(e)}",
                extra={
                    "path": request.url.path,
                    "method": request.method,
                }
            )
            return JSONResponse(
                status_code=status.HTTP_400_BAD_REQUEST,
                content={
                    "error": "Invalid request",
                    "detail": str(e),
                }
            )

        except Exception as e:
            logger.exception(
                f"Unhandled exception: {str(e)}",
                extra={
                    "path": request.url.path,
                    "method": request.method,
                }
            )
            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content={
                    "error": "Internal server error",
                    "detail": "An unexpected error occurred",
                }
            )
