from datetime import datetime, timezone

import pytest

from vcon import (
    MIME_TYPES,
    Analysis,
    Attachment,
    CivicAddress,
    Dialog,
    DialogIndex,
    DialogIndices,
    Encoding,
    InvalidMimeTypeError,
    Party,
    PartyHistory,
    Signature,
    ValidationError,
)
from vcon.models import AUDIO_MIME_TYPES, VIDEO_MIME_TYPES, dialog_ref, format_timestamp, parse_timestamp

START = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


def _fixed_dialog_dict() -> dict:
    return {
        "type": "recording",
        "start": "2024-01-01T12:00:00.000000Z",
        "parties": [0, 1],
        "originator": 0,
        "mimetype": "audio/wav",
        "filename": "call.wav",
        "url": "https://media.example.com/call.wav",
        "alg": "SHA-512",
        "signature": "abc123",
        "disposition": "answered",
        "party_history": [
            {"party": 0, "event": "join", "time": "2024-01-01T12:00:00.000000Z"},
            {"party": 1, "event": "drop", "time": "2024-01-01T12:05:00.000000Z"},
        ],
        "transferee": 1,
        "transferor": 0,
        "transfer_target": 2,
        "original": 0,
        "consultation": 1,
        "target_dialog": 0,
        "campaign": "spring",
        "interaction": "int-7",
        "skill": "billing",
        "duration": 300,
        "meta": {"source": "pbx"},
        "x_vendor_field": {"nested": [1, 2, 3]},
    }


def test_dialog_minimal_properties():
    d = Dialog("text", START, [0, 1])
    assert d.to_dict() == {"type": "text", "start": "2024-01-01T12:00:00.000000Z", "parties": [0, 1]}
    assert d.is_external_data() is False
    assert d.is_inline_data() is False


def test_dialog_all_properties_roundtrip():
    src = _fixed_dialog_dict()
    d = Dialog.from_dict(src)
    assert d.originator == 0
    assert d.party_history[1] == PartyHistory(1, "drop", datetime(2024, 1, 1, 12, 5, tzinfo=timezone.utc))
    assert d.additional_properties == {"x_vendor_field": {"nested": [1, 2, 3]}}
    assert d.to_dict() == src
    assert Dialog.from_dict(d.to_dict()) == d


def test_dialog_requires_type_start_parties():
    for key in ("type", "start", "parties"):
        src = _fixed_dialog_dict()
        del src[key]
        with pytest.raises(ValidationError) as ex:
            Dialog.from_dict(src)
        assert f"{key} is required" in str(ex.value)
    with pytest.raises(ValidationError):
        Dialog("text", START, [])


def test_dialog_rejects_non_integer_parties():
    src = _fixed_dialog_dict()
    src["parties"] = "0,1"
    with pytest.raises(ValidationError):
        Dialog.from_dict(src)


def test_dialog_rejects_body_and_url_together():
    with pytest.raises(ValidationError):
        Dialog("text", START, [0], body="hi", url="https://example.com/a.txt")


def test_external_data_clears_inline_content():
    d = Dialog("recording", START, [0])
    d.add_inline_data("aGVsbG8", "a.wav", "audio/wav", encoding="base64url")
    d.add_external_data("https://media.example.com/a.wav", "a.wav", "audio/wav")

    assert d.is_external_data() is True
    assert d.is_inline_data() is False
    assert d.body is None
    assert d.encoding is None
    out = d.to_dict()
    assert "body" not in out
    assert "encoding" not in out
    assert out["url"] == "https://media.example.com/a.wav"


def test_inline_data_clears_url():
    d = Dialog("text", START, [0, 1])
    d.add_external_data("https://example.com/chat.txt", "chat.txt", "text/plain")
    d.add_inline_data("Hello, I need help with my account.", "chat.txt", "text/plain")

    assert d.is_inline_data() is True
    assert d.is_external_data() is False
    assert d.url is None
    assert "url" not in d.to_dict()
    assert d.body == "Hello, I need help with my account."


def test_inline_data_replaces_previous_encoding():
    d = Dialog("text", START, [0])
    d.add_inline_data("aGVsbG8", "a.txt", "text/plain", encoding="base64")
    assert d.to_dict()["encoding"] == "base64"

    d.add_inline_data("plain words", "a.txt", "text/plain")
    assert d.encoding is None
    assert "encoding" not in d.to_dict()


def test_reserved_names_in_extension_bag_are_not_emitted():
    d = Dialog("text", START, [0], additional_properties={"url": "https://stale.example/a.wav", "x_codec": "opus"})
    d.add_inline_data("hello", "a.txt", "text/plain")

    out = d.to_dict()
    assert "url" not in out
    assert out["body"] == "hello"
    assert out["x_codec"] == "opus"
    assert Dialog.from_dict(out) == d

    a = Attachment(type="note", body="x", additional_properties={"signature": "kept", "type": "shadow"})
    assert a.to_dict() == {"type": "note", "body": "x", "encoding": "none", "signature": "kept"}
    p = Party(name="Jane", additional_properties={"tel": "+15550000000"})
    assert p.to_dict() == {"name": "Jane"}


def test_invalid_mime_type_leaves_dialog_unchanged():
    d = Dialog("text", START, [0])
    d.add_inline_data("hi", "hi.txt", "text/plain")
    before = d.to_dict()

    with pytest.raises(InvalidMimeTypeError) as ex:
        d.add_external_data("https://example.com/x", "x.bin", "invalid/mime")
    assert ex.value.mimetype == "invalid/mime"
    with pytest.raises(InvalidMimeTypeError):
        d.add_inline_data("other", "x.bin", "invalid/mime")
    assert isinstance(ex.value, ValidationError)
    assert d.to_dict() == before


def test_content_fields_are_read_only():
    d = Dialog("text", START, [0])
    with pytest.raises(AttributeError):
        d.body = "x"
    with pytest.raises(AttributeError):
        d.url = "https://example.com"


def test_content_type_classification():
    d = Dialog("text", START, [0])
    d.add_inline_data("hi", "a.txt", "text/plain")
    assert d.is_text() and not d.is_audio() and not d.is_video() and not d.is_email()

    for mimetype in AUDIO_MIME_TYPES:
        d.add_external_data("https://example.com/a", "a", mimetype)
        assert d.is_audio() and not d.is_text() and not d.is_video()
    for mimetype in VIDEO_MIME_TYPES:
        d.add_external_data("https://example.com/v", "v", mimetype)
        assert d.is_video() and not d.is_audio()

    d.add_inline_data("From: a@example.com", "mail.eml", "message/rfc822")
    assert d.is_email() and not d.is_text()

    d.add_inline_data("--boundary", "mixed", "multipart/mixed")
    assert not (d.is_text() or d.is_audio() or d.is_video() or d.is_email())
    assert len(MIME_TYPES) == 15


def test_party_minimal_properties():
    p = Party(tel="+1234567890")
    assert p.to_dict() == {"tel": "+1234567890"}


def test_party_all_properties():
    src = {
        "tel": "+1234567890",
        "stir": "stir-token",
        "mailto": "john@example.com",
        "name": "John Doe",
        "validation": "verified",
        "gmlpos": "51.5 -0.12",
        "civicaddress": {"country": "US", "locality": "Springfield", "region": "IL", "postcode": "62701", "street": "Main St"},
        "uuid": "3a8b6f3e-4c1d-4f0a-9d33-3b7f5d1e2a10",
        "role": "customer",
        "contact_list": "vip",
        "meta": {"tier": 2},
    }
    p = Party.from_dict(src)
    assert p.civicaddress == CivicAddress(country="US", locality="Springfield", region="IL", postcode="62701", street="Main St")
    assert p.contact_list == "vip"
    assert p.to_dict() == src


def test_party_undefined_properties_preserved():
    p = Party.from_dict({"name": "Jane", "x_loyalty": {"points": 10}})
    assert p.additional_properties == {"x_loyalty": {"points": 10}}
    assert p.to_dict() == {"name": "Jane", "x_loyalty": {"points": 10}}

    p.additional_properties["name"] = "shadowed"
    assert p.to_dict()["name"] == "Jane"


def test_party_history_properties():
    h = PartyHistory(0, "join", START)
    assert h.to_dict() == {"party": 0, "event": "join", "time": "2024-01-01T12:00:00.000000Z"}
    assert PartyHistory.from_dict(h.to_dict()) == h
    with pytest.raises(ValidationError):
        PartyHistory.from_dict({"party": 0, "event": "join"})


def test_attachment_defaults_and_extensions():
    a = Attachment(type="application/pdf", body="JVBERi0")
    assert a.encoding is Encoding.NONE
    assert a.to_dict() == {"type": "application/pdf", "body": "JVBERi0", "encoding": "none"}

    parsed = Attachment.from_dict({"type": "transcript", "body": {"text": "hi"}, "encoding": "JSON", "purpose": "notes"})
    assert parsed.encoding is Encoding.JSON
    assert parsed.to_dict()["purpose"] == "notes"
    with pytest.raises(ValidationError):
        Attachment.from_dict({"type": "transcript"})


def test_encoding_parse():
    assert Encoding.parse("BASE64URL") is Encoding.BASE64URL
    assert Encoding.parse("Base64") is Encoding.BASE64
    assert Encoding.parse("json") is Encoding.JSON
    assert Encoding.parse("gzip") is Encoding.NONE
    assert Encoding.parse(None) is Encoding.NONE


def test_dialog_ref_variants():
    assert dialog_ref(2) == DialogIndex(2)
    assert dialog_ref([0, 1]) == DialogIndices((0, 1))
    assert dialog_ref([3]).to_wire() == [3]
    assert dialog_ref(3).to_wire() == 3
    with pytest.raises(ValidationError):
        dialog_ref("2")
    with pytest.raises(ValidationError):
        dialog_ref(True)


def test_analysis_preserves_dialog_variant():
    single = Analysis(type="summary", dialog=2, vendor="acme", body="short")
    many = Analysis(type="summary", dialog=[0, 1], vendor="acme", body="short")
    assert single.to_dict()["dialog"] == 2
    assert many.to_dict()["dialog"] == [0, 1]
    assert Analysis.from_dict(many.to_dict()).dialog == DialogIndices((0, 1))


def test_signature_requires_header_and_value():
    s = Signature.from_dict({"header": {"alg": "RS256", "typ": "JWS"}, "signature": "abc", "kid": "k1"})
    assert s.to_dict() == {"header": {"alg": "RS256", "typ": "JWS"}, "signature": "abc", "kid": "k1"}
    with pytest.raises(ValidationError):
        Signature.from_dict({"signature": "abc"})
    with pytest.raises(ValidationError):
        Signature.from_dict({"header": "RS256", "signature": "abc"})


def test_timestamp_parsing_normalizes_to_utc():
    assert parse_timestamp("2024-01-01T14:00:00+02:00", "t") == START
    assert parse_timestamp("2024-01-01T12:00:00Z", "t") == START
    assert parse_timestamp("2024-01-01T12:00:00", "t") == START
    assert parse_timestamp("2024-01-01T12:00:00.1234567Z", "t").microsecond == 123456
    assert format_timestamp(datetime(2024, 1, 1, 12, 0, 0)) == "2024-01-01T12:00:00.000000Z"
    with pytest.raises(ValidationError):
        parse_timestamp("yesterday", "start")
    with pytest.raises(ValidationError):
        parse_timestamp(12, "start")
