"""HTTP error type rendered as ``{"message": ..., "code": ...}``."""

from typing import Any, Dict, Optional

from fastapi import HTTPException

# Sent only when a bearer token is correctly signed but past its expiry
EXPIRED_TOKEN_CODE = 1


class APIError(HTTPException):
    """HTTPException with an optional machine-readable ``code``."""

    def __init__(
        self,
        status_code: int,
        message: str,
        code: Optional[int] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        super().__init__(status_code=status_code, detail=message, headers=headers)
        self.code = code


def error_body(message: Any, code: Optional[int] = None) -> Dict[str, Any]:
    body: Dict[str, Any] = {"message": message}
    if code is not None:
        body["code"] = code
    return body
