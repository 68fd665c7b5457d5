from typing import Any, Optional

from fastapi import Request
from fastapi.responses import JSONResponse

from app.shared.errors import AppError

def ok(data: Any = None, **extra):
    return {"ok": True, "data": data, **extra}

def error_body(message: str, code: str = "bad_request", details: Optional[Any] = None, **extra) -> dict:
    return {"ok": False, "error": {"code": code, "message": message, "details": details}, **extra}

async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status,
        content=error_body(exc.message, code=exc.code, details=exc.details, **exc.extra()),
    )
