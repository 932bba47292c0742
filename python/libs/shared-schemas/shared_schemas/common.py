"""
Common schemas and utilities shared across all services.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """
    Base model serialized with camelCase keys on the wire.

    Python code keeps snake_case attributes; the browser client and the
    media client both speak camelCase.
    """
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ErrorResponse(CamelModel):
    """Standard error response."""
    error: str
    details: Optional[str] = None
    retry_after: Optional[int] = None
    category: Optional[str] = None
    kind: Optional[str] = None

    def to_content(self) -> dict:
        """JSON body with camelCase keys and unset fields left out."""
        return self.model_dump(by_alias=True, exclude_none=True)
