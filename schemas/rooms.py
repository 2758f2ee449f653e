from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class PdfInfo(CamelModel):
    filename: str
    original_name: str


class RoomSummary(CamelModel):
    room_id: str
    privacy: Literal["public", "private"]
    client_count: int
    has_pdf: bool
    created_at: datetime


class RoomListResponse(CamelModel):
    success: bool = True
    rooms: list[RoomSummary]


class UploadResponse(CamelModel):
    success: bool = True
    pdf: PdfInfo


class ErrorResponse(CamelModel):
    success: bool = False
    error: str


class HealthResponse(CamelModel):
    status: str = "ok"
    rooms: int
    connections: int
