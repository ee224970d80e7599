from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from clayminds.schemas.schema_diary import DiaryEntry
from clayminds.schemas.schema_diet import DietPlan


class CloudConfig(BaseModel):
    url: str = ""
    key: str = ""
    enabled: bool = False

    @field_validator("url", "key")
    @classmethod
    def ascii_only(cls, v: str) -> str:
        # both end up in request headers / the request line
        v = v.strip()
        if not v.isascii():
            raise ValueError("solo se permiten caracteres ASCII")
        return v


class ConnectionTestResult(BaseModel):
    success: bool
    message: str


class SyncResult(BaseModel):
    success: bool
    message: Optional[str] = None


class ExportBundle(BaseModel):
    diary: List[DiaryEntry] = Field(default_factory=list)
    diet: Optional[DietPlan] = None
