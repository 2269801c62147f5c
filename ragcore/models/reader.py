"""
Data models for remote reader results.
"""

from typing import Optional
from pydantic import BaseModel, ConfigDict, Field


class ReaderData(BaseModel):
    """Extracted page content returned by the reader."""

    model_config = ConfigDict(extra="allow")

    title: str = ""
    url: str = ""
    content: str = Field(..., description="Page content as markdown")
    description: Optional[str] = None


class ReaderResult(BaseModel):
    """Full reader response body."""

    model_config = ConfigDict(extra="allow")

    code: int = 200
    status: int = 20000
    data: ReaderData
