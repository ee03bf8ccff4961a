from pydantic import BaseModel
from typing import Optional, Any


class ErrorResponse(BaseModel):
    """
    Standard error response structure.
    """
    message: str
    code: str
    details: Optional[Any] = None


class MessageResponse(BaseModel):
    """
    Plain acknowledgement returned by endpoints with nothing else to report.
    """
    message: str
