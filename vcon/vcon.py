from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple, TypeVar, Union
from uuid import uuid4

from . import jws
from .errors import ParseError, SigningError, ValidationError, VerificationFailure
from .models import (
    Analysis,
    Attachment,
    Dialog,
    Encoding,
    Party,
    Signature,
    _extensions,
    _merge_extensions,
    _opt_dict,
    _opt_str,
    format_timestamp,
    parse_timestamp,
    utc_now,
)

logger = logging.getLogger(__name__)

DEFAULT_VCON_VERSION = "1.0"

_VCON_FIELDS = (
    "uuid",
    "vcon",
    "subject",
    "created_at",
    "updated_at",
    "redacted",
    "appended",
    "group",
    "meta",
    "parties",
    "dialog",
    "attachments",
    "analysis",
    "tags",
    "signatures",
)

T = TypeVar("T")


def _entity_list(document: Mapping[str, Any], key: str, factory: Callable[[Mapping[str, Any]], T]) -> List[T]:
    value = document.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValidationError(f"{key} must be an array")
    return [factory(item) for item in value]


def _tags(document: Mapping[str, Any]) -> Dict[str, str]:
    value = document.get("tags")
    if value is None:
        return {}
    if not isinstance(value, dict) or not all(isinstance(v, str) for v in value.values()):
        raise ValidationError("tags must be an object of strings")
    return dict(value)


class VCon:
    """A virtual conversation record.

    Use :meth:`build_new` for a fresh record or :meth:`build_from_json` /
    :meth:`from_dict` to load an existing document. Every ``add_*`` method bumps
    ``updated_at``; :meth:`sign` appends a signature without touching either
    timestamp so the signed payload stays reproducible.
    """

    def __init__(
        self,
        *,
        uuid: Optional[str] = None,
        vcon: Optional[str] = DEFAULT_VCON_VERSION,
        subject: Optional[str] = None,
        created_at: Optional[Union[datetime, str]] = None,
        updated_at: Optional[Union[datetime, str]] = None,
        redacted: Any = None,
        appended: Any = None,
        group: Any = None,
        meta: Optional[Dict[str, Any]] = None,
        parties: Optional[List[Party]] = None,
        dialog: Optional[List[Dialog]] = None,
        attachments: Optional[List[Attachment]] = None,
        analysis: Optional[List[Analysis]] = None,
        tags: Optional[Dict[str, str]] = None,
        signatures: Optional[List[Signature]] = None,
        additional_properties: Optional[Dict[str, Any]] = None,
    ):
        self.uuid = uuid
        self.vcon = vcon
        self.subject = subject
        self.created_at = parse_timestamp(created_at, "created_at") if created_at is not None else None
        self.updated_at = parse_timestamp(updated_at, "updated_at") if updated_at is not None else None
        self.redacted = redacted
        self.appended = appended
        self.group = group
        self.meta = meta
        self.parties: List[Party] = list(parties or [])
        self.dialog: List[Dialog] = list(dialog or [])
        self.attachments: List[Attachment] = list(attachments or [])
        self.analysis: List[Analysis] = list(analysis or [])
        self.tags: Dict[str, str] = dict(tags or {})
        self.signatures: List[Signature] = list(signatures or [])
        self.additional_properties: Dict[str, Any] = dict(additional_properties or {})

    @classmethod
    def build_new(cls) -> "VCon":
        now = utc_now()
        return cls(uuid=str(uuid4()), vcon=DEFAULT_VCON_VERSION, created_at=now, updated_at=now)

    @classmethod
    def build_from_json(cls, document: Union[str, bytes]) -> "VCon":
        try:
            data = json.loads(document)
        except (TypeError, ValueError) as exc:
            raise ParseError(f"failed to parse vcon json: {exc}") from exc
        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, document: Mapping[str, Any]) -> "VCon":
        if not isinstance(document, Mapping):
            raise ParseError("vcon document must be a json object")
        try:
            return cls(
                uuid=_opt_str(document, "uuid"),
                vcon=_opt_str(document, "vcon"),
                subject=_opt_str(document, "subject"),
                created_at=document.get("created_at"),
                updated_at=document.get("updated_at"),
                redacted=document.get("redacted"),
                appended=document.get("appended"),
                group=document.get("group"),
                meta=_opt_dict(document, "meta"),
                parties=_entity_list(document, "parties", Party.from_dict),
                dialog=_entity_list(document, "dialog", Dialog.from_dict),
                attachments=_entity_list(document, "attachments", Attachment.from_dict),
                analysis=_entity_list(document, "analysis", Analysis.from_dict),
                tags=_tags(document),
                signatures=_entity_list(document, "signatures", Signature.from_dict),
                additional_properties=_extensions(document, _VCON_FIELDS),
            )
        except ValidationError as exc:
            raise ParseError(f"invalid vcon document: {exc}") from exc

    @property
    def is_redacted(self) -> bool:
        return bool(self.redacted)

    @property
    def is_appended(self) -> bool:
        return bool(self.appended)

    def _touch(self) -> None:
        stamps = [t for t in (self.created_at, self.updated_at) if t is not None]
        self.updated_at = max([utc_now()] + stamps)

    def add_party(self, party: Union[Party, Mapping[str, Any]]) -> None:
        if not isinstance(party, Party):
            party = Party.from_dict(party)
        self.parties.append(party)
        self._touch()

    def add_dialog(self, dialog: Union[Dialog, Mapping[str, Any]]) -> None:
        if not isinstance(dialog, Dialog):
            dialog = Dialog.from_dict(dialog)
        self.dialog.append(dialog)
        self._touch()

    def add_attachment(self, type: str, body: Any, encoding: Union[Encoding, str] = Encoding.NONE) -> Attachment:
        if not type:
            raise ValidationError("type is required")
        if body is None:
            raise ValidationError("body is required")
        attachment = Attachment(type=type, body=body, encoding=Encoding.parse(encoding))
        self.attachments.append(attachment)
        self._touch()
        return attachment

    def add_analysis(self, params: Mapping[str, Any]) -> Analysis:
        """Append an analysis built from ``type``, ``dialog``, ``vendor``, ``body``
        and optional ``encoding`` / ``extra`` entries."""
        analysis = Analysis.from_dict(params)
        self.analysis.append(analysis)
        self._touch()
        return analysis

    def add_tag(self, name: str, value: str) -> None:
        if not isinstance(name, str) or not name:
            raise ValidationError("tag name is required")
        if not isinstance(value, str):
            raise ValidationError("tag value must be a string")
        self.tags[name] = value
        self._touch()

    def get_tag(self, name: str) -> Optional[str]:
        return self.tags.get(name)

    def find_attachment_by_type(self, type: str) -> Optional[Attachment]:
        return next((a for a in self.attachments if a.type == type), None)

    def find_analysis_by_type(self, type: str) -> Optional[Analysis]:
        return next((a for a in self.analysis if a.type == type), None)

    def to_dict(self, include_signatures: bool = True) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        if self.uuid is not None:
            out["uuid"] = self.uuid
        if self.vcon is not None:
            out["vcon"] = self.vcon
        if self.subject is not None:
            out["subject"] = self.subject
        if self.created_at is not None:
            out["created_at"] = format_timestamp(self.created_at)
        if self.updated_at is not None:
            out["updated_at"] = format_timestamp(self.updated_at)
        if self.redacted is not None:
            out["redacted"] = self.redacted
        if self.appended is not None:
            out["appended"] = self.appended
        if self.group is not None:
            out["group"] = self.group
        if self.meta is not None:
            out["meta"] = self.meta
        out["parties"] = [p.to_dict() for p in self.parties]
        out["dialog"] = [d.to_dict() for d in self.dialog]
        out["attachments"] = [a.to_dict() for a in self.attachments]
        out["analysis"] = [a.to_dict() for a in self.analysis]
        out["tags"] = dict(self.tags)
        if include_signatures and self.signatures:
            out["signatures"] = [s.to_dict() for s in self.signatures]
        return _merge_extensions(out, self.additional_properties, _VCON_FIELDS)

    def to_json(self, indent: Optional[int] = None) -> str:
        """Serialize with sorted keys; key order inside tags, meta and extension objects is not kept."""
        if indent is None:
            return jws.stable_json(self.to_dict())
        return json.dumps(self.to_dict(), sort_keys=True, indent=indent, ensure_ascii=False)

    def _signing_payload(self) -> str:
        return jws.stable_json(self.to_dict(include_signatures=False))

    def sign(self, private_key: jws.KeyInput) -> Signature:
        """Sign the canonical payload (the document without ``signatures``) with RS256."""
        try:
            payload = self._signing_payload()
        except (TypeError, ValueError) as exc:
            raise SigningError(f"failed to serialize vcon for signing: {exc}") from exc
        header = jws.default_header()
        value = jws.sign_compact(header, payload, private_key)
        signature = Signature(header=header, signature=value)
        self.signatures.append(signature)
        logger.info("signed vcon %s with %s", self.uuid, header["alg"])
        return signature

    def verify(self, public_key: jws.KeyInput) -> bool:
        """Check the first signature against the current contents.

        Returns ``False`` rather than raising when there is no signature, the
        algorithm is not RS256, the key is unusable, or the signature does not
        match.
        """
        if not self.signatures:
            logger.warning("vcon %s has no signatures to verify", self.uuid)
            return False
        first = self.signatures[0]
        try:
            jws.verify_compact(first.header, self._signing_payload(), first.signature, public_key)
        except VerificationFailure as exc:
            logger.warning("vcon %s failed verification: %s", self.uuid, exc)
            return False
        return True

    @staticmethod
    def generate_key_pair() -> Tuple[str, str]:
        return jws.generate_key_pair()

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, VCon):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"VCon(uuid={self.uuid!r}, parties={len(self.parties)}, dialog={len(self.dialog)})"
