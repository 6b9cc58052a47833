from typing import Optional

from pydantic import BaseModel


class SyncResult(BaseModel):
    """Issue d'une tentative de synchronisation"""
    success: bool
    records_count: int = 0
    duration_ms: int = 0
    error: Optional[str] = None

    @classmethod
    def failure(cls, error: str, duration_ms: int = 0) -> "SyncResult":
        return cls(success=False, records_count=0, duration_ms=duration_ms, error=error)
