"""``{"detail": ...}`` body shared by 404, 406, 500, 502 and 503 responses."""

from pydantic import BaseModel, ConfigDict


class ErrorDetail(BaseModel):
    """Error body produced by HTTPException and the catch-all 500 handler."""

    model_config = ConfigDict(extra="forbid")

    detail: str
