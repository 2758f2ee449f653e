import pytest

from schemas import messages
from schemas.messages import (
    CreateRoom,
    InvalidMessage,
    JoinRoom,
    MalformedEnvelopeError,
    PageChange,
    UploadPdf,
    parse_envelope,
)
from schemas.rooms import PdfInfo


def test_parse_create_room_uses_camel_case_fields():
    message = parse_envelope('{"type": "create_room", "roomId": "ABC123", "privacy": "private", "password": "pw"}')
    assert isinstance(message, CreateRoom)
    assert message.room_id == "ABC123"
    assert message.privacy == "private"
    assert message.password == "pw"


def test_parse_create_room_defaults_privacy_to_public():
    message = parse_envelope('{"type": "create_room", "roomId": "r"}')
    assert message.privacy == "public"


def test_parse_join_room_without_room_id_is_left_to_dispatcher():
    message = parse_envelope('{"type": "join_room"}')
    assert isinstance(message, JoinRoom)
    assert message.room_id is None


def test_parse_upload_pdf():
    message = parse_envelope('{"type": "upload_pdf", "pdf": {"filename": "x1.pdf", "originalName": "slides.pdf"}}')
    assert isinstance(message, UploadPdf)
    assert message.pdf == PdfInfo(filename="x1.pdf", original_name="slides.pdf")


def test_parse_page_change():
    message = parse_envelope(b'{"type": "page_change", "page": 3}')
    assert isinstance(message, PageChange)
    assert message.page == 3


def test_unknown_type_is_not_an_error():
    assert parse_envelope('{"type": "cursor_move", "x": 1}') is None
    assert parse_envelope('{"no_type": true}') is None


@pytest.mark.parametrize(
    "raw",
    [
        "not json",
        "[1, 2, 3]",
        "\"just a string\"",
    ],
)
def test_malformed_envelopes_raise(raw):
    with pytest.raises(MalformedEnvelopeError):
        parse_envelope(raw)


@pytest.mark.parametrize(
    "raw, message_type, fields",
    [
        ('{"type": "page_change", "page": 0}', "page_change", {"page"}),
        ('{"type": "page_change", "page": "three"}', "page_change", {"page"}),
        ('{"type": "upload_pdf", "pdf": {"filename": "x1.pdf"}}', "upload_pdf", {"pdf"}),
        ('{"type": "upload_pdf"}', "upload_pdf", {"pdf"}),
        ('{"type": "create_room", "roomId": 123, "privacy": []}', "create_room", {"room_id", "privacy"}),
        ('{"type": "join_room", "roomId": "r1", "password": 1234}', "join_room", {"password"}),
    ],
)
def test_bad_fields_on_known_type_are_reported(raw, message_type, fields):
    message = parse_envelope(raw)
    assert isinstance(message, InvalidMessage)
    assert message.type == message_type
    assert message.fields == fields


def test_without_invalid_fields_falls_back_to_defaults():
    message = parse_envelope('{"type": "create_room", "roomId": "r1", "privacy": 7, "password": "pw"}')
    cleaned = message.without_invalid_fields()
    assert cleaned == CreateRoom(type="create_room", room_id="r1", privacy="public", password="pw")


def test_unhashable_type_is_treated_as_unknown():
    assert parse_envelope('{"type": ["create_room"]}') is None


def test_outbound_builders():
    pdf = PdfInfo(filename="x1.pdf", original_name="slides.pdf")
    assert messages.pdf_loaded(pdf, 4) == {
        "type": "pdf_loaded",
        "pdf": {"filename": "x1.pdf", "originalName": "slides.pdf"},
        "page": 4,
    }
    assert messages.room_joined("r", True, "public") == {
        "type": "room_joined",
        "roomId": "r",
        "isHost": True,
        "privacy": "public",
    }
    assert messages.page_change(2) == {"type": "page_change", "page": 2}
    assert messages.error("nope") == {"type": "error", "message": "nope"}
