from typing import Any, Dict, List, Optional

from fastapi import Request, status
from fastapi.responses import JSONResponse

from app.config.settings import settings
from app.schemas.response_schemas import ApiResponse, ResponseStatus


def _envelope(request: Request, status_code: int, **fields: Any) -> JSONResponse:
    response = ApiResponse(
        request_id=getattr(request.state, "request_id", None),
        path=str(request.url.path),
        version=settings.VERSION,
        **fields,
    )
    return JSONResponse(
        status_code=status_code,
        content=response.model_dump(exclude_none=True),
    )


class ResponseBuilder:
    """Builder class for creating standardized responses"""

    @staticmethod
    def success(
        request: Request,
        data: Any = None,
        message: str = "Request successful",
        meta: Optional[Dict[str, Any]] = None,
        status_code: int = status.HTTP_200_OK,
    ) -> JSONResponse:
        """Create a success response"""
        return _envelope(
            request,
            status_code,
            success=True,
            status=ResponseStatus.SUCCESS,
            message=message,
            data=data,
            meta=meta,
        )

    @staticmethod
    def error(
        request: Request,
        message: str = "An error occurred",
        errors: Optional[List[Dict[str, Any]]] = None,
        error_code: Optional[str] = None,
        status_code: int = status.HTTP_400_BAD_REQUEST,
        data: Any = None,
        meta: Optional[Dict[str, Any]] = None,
    ) -> JSONResponse:
        """Create an error response; ``error_code`` lands in ``meta.error_code``"""
        response_meta = dict(meta or {})
        if error_code:
            response_meta["error_code"] = error_code

        return _envelope(
            request,
            status_code,
            success=False,
            status=ResponseStatus.ERROR,
            message=message,
            data=data,
            meta=response_meta or None,
            errors=errors,
        )

    @staticmethod
    def warning(
        request: Request,
        data: Any = None,
        message: str = "Request completed with warnings",
        warnings: Optional[List[str]] = None,
        meta: Optional[Dict[str, Any]] = None,
        status_code: int = status.HTTP_200_OK,
    ) -> JSONResponse:
        """Create a warning response: the request succeeded but side effects reported problems"""
        return _envelope(
            request,
            status_code,
            success=True,
            status=ResponseStatus.WARNING,
            message=message,
            data=data,
            meta=meta,
            warnings=warnings,
        )

    @staticmethod
    def with_warnings(
        request: Request,
        data: Any,
        message: str,
        warnings: Optional[List[str]] = None,
        status_code: int = status.HTTP_200_OK,
    ) -> JSONResponse:
        """Success when ``warnings`` is empty, otherwise a warning with the same data"""
        if warnings:
            return ResponseBuilder.warning(
                request=request,
                data=data,
                message=f"{message}, but scheduling reported problems",
                warnings=list(warnings),
                status_code=status_code,
            )
        return ResponseBuilder.success(
            request=request, data=data, message=message, status_code=status_code
        )
