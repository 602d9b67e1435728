from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from .errors import InvalidMimeTypeError, ValidationError

TEXT_MIME_TYPE = "text/plain"
EMAIL_MIME_TYPE = "message/rfc822"

AUDIO_MIME_TYPES = (
    "audio/x-wav",
    "audio/wav",
    "audio/wave",
    "audio/mpeg",
    "audio/mp3",
    "audio/ogg",
    "audio/webm",
    "audio/x-m4a",
    "audio/aac",
)

VIDEO_MIME_TYPES = (
    "video/mp4",
    "video/x-mp4",
    "video/ogg",
)

MIME_TYPES = (TEXT_MIME_TYPE,) + AUDIO_MIME_TYPES + VIDEO_MIME_TYPES + ("multipart/mixed", EMAIL_MIME_TYPE)


class Encoding(str, Enum):
    BASE64 = "base64"
    BASE64URL = "base64url"
    JSON = "json"
    NONE = "none"

    @classmethod
    def parse(cls, value: Any) -> "Encoding":
        """Case-insensitive lookup; anything unrecognized maps to ``NONE``."""
        if isinstance(value, Encoding):
            return value
        if value is None:
            return cls.NONE
        key = str(value).strip().lower()
        for member in cls:
            if member.value == key:
                return member
        return cls.NONE


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def format_timestamp(value: datetime) -> str:
    if value.tzinfo is None or value.utcoffset() is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds").replace("+00:00", "Z")


def parse_timestamp(value: Any, field_name: str) -> datetime:
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str) and value.strip():
        text = value.strip()
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            dt = datetime.fromisoformat(text)
        except ValueError as exc:
            raise ValidationError(f"{field_name} must be an ISO-8601 timestamp") from exc
    else:
        raise ValidationError(f"{field_name} must be an ISO-8601 timestamp")
    if dt.tzinfo is None or dt.utcoffset() is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def _require(params: Mapping[str, Any], key: str) -> Any:
    value = params.get(key)
    if value is None:
        raise ValidationError(f"{key} is required")
    return value


def _opt_str(params: Mapping[str, Any], key: str) -> Optional[str]:
    value = params.get(key)
    if value is not None and not isinstance(value, str):
        raise ValidationError(f"{key} must be a string")
    return value


def _req_str(params: Mapping[str, Any], key: str) -> str:
    value = _require(params, key)
    if not isinstance(value, str):
        raise ValidationError(f"{key} must be a string")
    return value


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _opt_int(params: Mapping[str, Any], key: str) -> Optional[int]:
    value = params.get(key)
    if value is not None and not _is_int(value):
        raise ValidationError(f"{key} must be an integer")
    return value


def _opt_dict(params: Mapping[str, Any], key: str) -> Optional[Dict[str, Any]]:
    value = params.get(key)
    if value is not None and not isinstance(value, dict):
        raise ValidationError(f"{key} must be an object")
    return value


def _int_list(value: Any, key: str) -> List[int]:
    if not isinstance(value, (list, tuple)) or not all(_is_int(v) for v in value):
        raise ValidationError(f"{key} must be an array of integers")
    return list(value)


def _extensions(params: Mapping[str, Any], known: Iterable[str]) -> Dict[str, Any]:
    known = set(known)
    return {k: v for k, v in params.items() if k not in known}


def _merge_extensions(out: Dict[str, Any], extra: Optional[Mapping[str, Any]], known: Iterable[str]) -> Dict[str, Any]:
    # reserved names never come from the bag, even when the field itself is unset
    known = set(known)
    for key, value in (extra or {}).items():
        if key not in known:
            out.setdefault(key, value)
    return out


def _ensure_mapping(params: Any, what: str) -> Mapping[str, Any]:
    if not isinstance(params, Mapping):
        raise ValidationError(f"{what} must be an object")
    return params


@dataclass
class CivicAddress:
    country: Optional[str] = None
    locality: Optional[str] = None
    region: Optional[str] = None
    postcode: Optional[str] = None
    street: Optional[str] = None
    additional_properties: Dict[str, Any] = field(default_factory=dict)

    _FIELDS = ("country", "locality", "region", "postcode", "street")

    def to_dict(self) -> Dict[str, Any]:
        out = {name: getattr(self, name) for name in self._FIELDS if getattr(self, name) is not None}
        return _merge_extensions(out, self.additional_properties, self._FIELDS)

    @classmethod
    def from_dict(cls, params: Mapping[str, Any]) -> "CivicAddress":
        params = _ensure_mapping(params, "civicaddress")
        return cls(
            **{name: _opt_str(params, name) for name in cls._FIELDS},
            additional_properties=_extensions(params, cls._FIELDS),
        )


@dataclass(frozen=True)
class PartyHistory:
    party: int
    event: str
    time: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {"party": self.party, "event": self.event, "time": format_timestamp(self.time)}

    @classmethod
    def from_dict(cls, params: Mapping[str, Any]) -> "PartyHistory":
        params = _ensure_mapping(params, "party_history entry")
        party = _require(params, "party")
        if not _is_int(party):
            raise ValidationError("party must be an integer")
        return cls(
            party=party,
            event=_req_str(params, "event"),
            time=parse_timestamp(_require(params, "time"), "time"),
        )


_PARTY_STRING_FIELDS = ("tel", "stir", "mailto", "name", "validation", "gmlpos", "uuid", "role", "contact_list")
_PARTY_FIELDS = _PARTY_STRING_FIELDS + ("civicaddress", "meta")


@dataclass
class Party:
    tel: Optional[str] = None
    stir: Optional[str] = None
    mailto: Optional[str] = None
    name: Optional[str] = None
    validation: Optional[str] = None
    gmlpos: Optional[str] = None
    civicaddress: Optional[CivicAddress] = None
    uuid: Optional[str] = None
    role: Optional[str] = None
    contact_list: Optional[str] = None
    meta: Optional[Dict[str, Any]] = None
    additional_properties: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        for name in _PARTY_STRING_FIELDS:
            value = getattr(self, name)
            if value is not None:
                out[name] = value
        if self.civicaddress is not None:
            out["civicaddress"] = self.civicaddress.to_dict()
        if self.meta is not None:
            out["meta"] = self.meta
        return _merge_extensions(out, self.additional_properties, _PARTY_FIELDS)

    @classmethod
    def from_dict(cls, params: Mapping[str, Any]) -> "Party":
        """Build a party from wire/keyword parameters; unknown keys land in ``additional_properties``."""
        params = _ensure_mapping(params, "party")
        address = params.get("civicaddress")
        if address is not None and not isinstance(address, CivicAddress):
            address = CivicAddress.from_dict(address)
        return cls(
            **{name: _opt_str(params, name) for name in _PARTY_STRING_FIELDS},
            civicaddress=address,
            meta=_opt_dict(params, "meta"),
            additional_properties=_extensions(params, _PARTY_FIELDS),
        )


_DIALOG_INT_FIELDS = ("originator", "transferee", "transferor", "transfer_target", "original", "consultation", "target_dialog")
_DIALOG_STRING_FIELDS = ("alg", "signature", "disposition", "campaign", "interaction", "skill")
_DIALOG_CONTENT_FIELDS = ("mimetype", "filename", "body", "encoding", "url")
_DIALOG_FIELDS = (
    ("type", "start", "parties", "party_history", "duration", "meta")
    + _DIALOG_INT_FIELDS
    + _DIALOG_STRING_FIELDS
    + _DIALOG_CONTENT_FIELDS
)


class Dialog:
    """One turn or segment of a conversation.

    Content is either inline (``body``, optionally ``encoding``) or external
    (``url``), never both. The content fields are read-only; change them through
    :meth:`add_inline_data` or :meth:`add_external_data`, which also enforce the
    mimetype whitelist. Party and dialog indices are stored as given and are not
    checked against the owning vCon.
    """

    def __init__(
        self,
        type: str,
        start: Union[datetime, str],
        parties: Sequence[int],
        *,
        originator: Optional[int] = None,
        mimetype: Optional[str] = None,
        filename: Optional[str] = None,
        body: Optional[str] = None,
        encoding: Optional[str] = None,
        url: Optional[str] = None,
        alg: Optional[str] = None,
        signature: Optional[str] = None,
        disposition: Optional[str] = None,
        party_history: Optional[Sequence[PartyHistory]] = None,
        transferee: Optional[int] = None,
        transferor: Optional[int] = None,
        transfer_target: Optional[int] = None,
        original: Optional[int] = None,
        consultation: Optional[int] = None,
        target_dialog: Optional[int] = None,
        campaign: Optional[str] = None,
        interaction: Optional[str] = None,
        skill: Optional[str] = None,
        duration: Optional[Union[int, float]] = None,
        meta: Optional[Dict[str, Any]] = None,
        additional_properties: Optional[Dict[str, Any]] = None,
    ):
        if not type:
            raise ValidationError("type is required")
        if start is None:
            raise ValidationError("start is required")
        if not parties:
            raise ValidationError("parties is required")
        if body is not None and url is not None:
            raise ValidationError("dialog content must be either inline (body) or external (url), not both")
        if duration is not None and (isinstance(duration, bool) or not isinstance(duration, (int, float))):
            raise ValidationError("duration must be a number")

        self.type = type
        self.start = parse_timestamp(start, "start")
        self.parties: List[int] = _int_list(parties, "parties")
        self.originator = originator
        self.alg = alg
        self.signature = signature
        self.disposition = disposition
        self.party_history: Optional[List[PartyHistory]] = list(party_history) if party_history is not None else None
        self.transferee = transferee
        self.transferor = transferor
        self.transfer_target = transfer_target
        self.original = original
        self.consultation = consultation
        self.target_dialog = target_dialog
        self.campaign = campaign
        self.interaction = interaction
        self.skill = skill
        self.duration = duration
        self.meta = meta
        self.additional_properties: Dict[str, Any] = dict(additional_properties or {})

        self._mimetype = mimetype
        self._filename = filename
        self._body = body
        self._encoding = encoding
        self._url = url

    @property
    def mimetype(self) -> Optional[str]:
        return self._mimetype

    @property
    def filename(self) -> Optional[str]:
        return self._filename

    @property
    def body(self) -> Optional[str]:
        return self._body

    @property
    def encoding(self) -> Optional[str]:
        return self._encoding

    @property
    def url(self) -> Optional[str]:
        return self._url

    def add_external_data(self, url: str, filename: str, mimetype: str) -> None:
        if mimetype not in MIME_TYPES:
            raise InvalidMimeTypeError(mimetype)
        self._url = url
        self._filename = filename
        self._mimetype = mimetype
        self._body = None
        self._encoding = None

    def add_inline_data(self, body: str, filename: str, mimetype: str, encoding: Optional[str] = None) -> None:
        if mimetype not in MIME_TYPES:
            raise InvalidMimeTypeError(mimetype)
        self._body = body
        self._filename = filename
        self._mimetype = mimetype
        self._encoding = encoding
        self._url = None

    def is_external_data(self) -> bool:
        return self._url is not None

    def is_inline_data(self) -> bool:
        return self._body is not None

    def is_text(self) -> bool:
        return self._mimetype == TEXT_MIME_TYPE

    def is_audio(self) -> bool:
        return self._mimetype in AUDIO_MIME_TYPES

    def is_video(self) -> bool:
        return self._mimetype in VIDEO_MIME_TYPES

    def is_email(self) -> bool:
        return self._mimetype == EMAIL_MIME_TYPE

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "type": self.type,
            "start": format_timestamp(self.start),
            "parties": list(self.parties),
        }
        for name in _DIALOG_CONTENT_FIELDS:
            value = getattr(self, "_" + name)
            if value is not None:
                out[name] = value
        for name in _DIALOG_INT_FIELDS + _DIALOG_STRING_FIELDS:
            value = getattr(self, name)
            if value is not None:
                out[name] = value
        if self.party_history is not None:
            out["party_history"] = [h.to_dict() for h in self.party_history]
        if self.duration is not None:
            out["duration"] = self.duration
        if self.meta is not None:
            out["meta"] = self.meta
        return _merge_extensions(out, self.additional_properties, _DIALOG_FIELDS)

    @classmethod
    def from_dict(cls, params: Mapping[str, Any]) -> "Dialog":
        params = _ensure_mapping(params, "dialog")
        history = params.get("party_history")
        if history is not None:
            if not isinstance(history, list):
                raise ValidationError("party_history must be an array")
            history = [h if isinstance(h, PartyHistory) else PartyHistory.from_dict(h) for h in history]
        return cls(
            type=_req_str(params, "type"),
            start=_require(params, "start"),
            parties=_require(params, "parties"),
            party_history=history,
            duration=params.get("duration"),
            meta=_opt_dict(params, "meta"),
            additional_properties=_extensions(params, _DIALOG_FIELDS),
            **{name: _opt_int(params, name) for name in _DIALOG_INT_FIELDS},
            **{name: _opt_str(params, name) for name in _DIALOG_STRING_FIELDS + _DIALOG_CONTENT_FIELDS},
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Dialog):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"Dialog(type={self.type!r}, start={format_timestamp(self.start)!r}, parties={self.parties!r})"


@dataclass
class Attachment:
    type: str
    body: Any
    encoding: Encoding = Encoding.NONE
    additional_properties: Dict[str, Any] = field(default_factory=dict)

    _FIELDS = ("type", "body", "encoding")

    def __post_init__(self) -> None:
        self.encoding = Encoding.parse(self.encoding)

    def to_dict(self) -> Dict[str, Any]:
        out = {"type": self.type, "body": self.body, "encoding": self.encoding.value}
        return _merge_extensions(out, self.additional_properties, self._FIELDS)

    @classmethod
    def from_dict(cls, params: Mapping[str, Any]) -> "Attachment":
        params = _ensure_mapping(params, "attachment")
        return cls(
            type=_req_str(params, "type"),
            body=_require(params, "body"),
            encoding=Encoding.parse(params.get("encoding")),
            additional_properties=_extensions(params, cls._FIELDS),
        )


@dataclass(frozen=True)
class DialogIndex:
    """Analysis over a single dialog; serialized as a bare integer."""

    index: int

    def to_wire(self) -> int:
        return self.index


@dataclass(frozen=True)
class DialogIndices:
    """Analysis over several dialogs; serialized as an array even with one entry."""

    indices: Tuple[int, ...]

    def to_wire(self) -> List[int]:
        return list(self.indices)


DialogRef = Union[DialogIndex, DialogIndices]


def dialog_ref(value: Any) -> DialogRef:
    if isinstance(value, (DialogIndex, DialogIndices)):
        return value
    if _is_int(value):
        return DialogIndex(value)
    if isinstance(value, (list, tuple)):
        return DialogIndices(tuple(_int_list(value, "dialog")))
    raise ValidationError("dialog must be an integer or an array of integers")


@dataclass
class Analysis:
    type: str
    dialog: DialogRef
    vendor: str
    body: Any
    encoding: Optional[Encoding] = None
    extra: Optional[Dict[str, Any]] = None
    additional_properties: Dict[str, Any] = field(default_factory=dict)

    _FIELDS = ("type", "dialog", "vendor", "body", "encoding", "extra")

    def __post_init__(self) -> None:
        self.dialog = dialog_ref(self.dialog)
        if self.encoding is not None:
            self.encoding = Encoding.parse(self.encoding)

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "type": self.type,
            "dialog": self.dialog.to_wire(),
            "vendor": self.vendor,
            "body": self.body,
        }
        if self.encoding is not None:
            out["encoding"] = self.encoding.value
        if self.extra is not None:
            out["extra"] = self.extra
        return _merge_extensions(out, self.additional_properties, self._FIELDS)

    @classmethod
    def from_dict(cls, params: Mapping[str, Any]) -> "Analysis":
        params = _ensure_mapping(params, "analysis")
        for key in ("type", "dialog", "vendor", "body"):
            _require(params, key)
        encoding = params.get("encoding")
        return cls(
            type=_req_str(params, "type"),
            dialog=dialog_ref(params["dialog"]),
            vendor=_req_str(params, "vendor"),
            body=params["body"],
            encoding=Encoding.parse(encoding) if encoding is not None else None,
            extra=_opt_dict(params, "extra"),
            additional_properties=_extensions(params, cls._FIELDS),
        )


@dataclass
class Signature:
    header: Dict[str, Any]
    signature: str
    additional_properties: Dict[str, Any] = field(default_factory=dict)

    _FIELDS = ("header", "signature")

    def to_dict(self) -> Dict[str, Any]:
        out = {"header": dict(self.header), "signature": self.signature}
        return _merge_extensions(out, self.additional_properties, self._FIELDS)

    @classmethod
    def from_dict(cls, params: Mapping[str, Any]) -> "Signature":
        params = _ensure_mapping(params, "signature")
        header = _require(params, "header")
        if not isinstance(header, dict):
            raise ValidationError("header must be an object")
        return cls(
            header=header,
            signature=_req_str(params, "signature"),
            additional_properties=_extensions(params, cls._FIELDS),
        )
