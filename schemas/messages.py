"""Session protocol envelopes.

Inbound frames are parsed into one of four models keyed on ``type``. A frame
with a known ``type`` but bad fields becomes an ``InvalidMessage`` so the
dispatcher can still answer it. Outbound messages are plain dicts built by the
helpers at the bottom so they can be serialized once and written to many
sockets.
"""
import json
from dataclasses import dataclass
from typing import Any, Literal, Optional, Union

from pydantic import Field, ValidationError

from schemas.rooms import CamelModel, PdfInfo


class MalformedEnvelopeError(ValueError):
    """Raised when a frame is not a JSON object."""


class CreateRoom(CamelModel):
    type: Literal["create_room"]
    room_id: Optional[str] = None
    privacy: Optional[str] = "public"
    password: Optional[str] = None


class JoinRoom(CamelModel):
    type: Literal["join_room"]
    room_id: Optional[str] = None
    password: Optional[str] = None


class UploadPdf(CamelModel):
    type: Literal["upload_pdf"]
    pdf: PdfInfo


class PageChange(CamelModel):
    type: Literal["page_change"]
    page: int = Field(ge=1)


@dataclass(frozen=True)
class InvalidMessage:
    """A known message type whose fields failed validation."""

    type: str
    fields: frozenset
    data: dict

    def without_invalid_fields(self) -> "InboundMessage":
        """Re-validate with the failing fields left out so their defaults apply.

        Only meaningful for types whose fields are all optional.
        """
        model = INBOUND_MODELS[self.type]
        drop = set(self.fields)
        for name in self.fields:
            info = model.model_fields.get(name)
            if info is not None and info.alias:
                drop.add(info.alias)
        return model.model_validate({k: v for k, v in self.data.items() if k not in drop})


InboundMessage = Union[CreateRoom, JoinRoom, UploadPdf, PageChange]

INBOUND_MODELS = {
    "create_room": CreateRoom,
    "join_room": JoinRoom,
    "upload_pdf": UploadPdf,
    "page_change": PageChange,
}


def parse_envelope(raw: Union[str, bytes]) -> Union[InboundMessage, InvalidMessage, None]:
    """Parse one frame.

    Returns None for a well-formed envelope whose ``type`` is not part of the
    protocol, so newer clients can send extra message kinds harmlessly.
    """
    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise MalformedEnvelopeError(f"invalid JSON: {e}") from e

    if not isinstance(data, dict):
        raise MalformedEnvelopeError("envelope must be a JSON object")
    message_type = data.get("type")
    model = INBOUND_MODELS.get(message_type) if isinstance(message_type, str) else None
    if model is None:
        return None

    try:
        return model.model_validate(data)
    except ValidationError as e:
        # report failing fields by attribute name, not wire alias
        names = {info.alias or name: name for name, info in model.model_fields.items()}
        fields = frozenset(names.get(str(err["loc"][0]), str(err["loc"][0])) for err in e.errors() if err["loc"])
        return InvalidMessage(type=message_type, fields=fields, data=data)


def room_joined(room_id: str, is_host: bool, privacy: str) -> dict[str, Any]:
    return {"type": "room_joined", "roomId": room_id, "isHost": is_host, "privacy": privacy}


def error(message: str) -> dict[str, Any]:
    return {"type": "error", "message": message}


def pdf_loaded(pdf: PdfInfo, page: int) -> dict[str, Any]:
    return {"type": "pdf_loaded", "pdf": pdf.model_dump(by_alias=True), "page": page}


def page_change(page: int) -> dict[str, Any]:
    return {"type": "page_change", "page": page}
