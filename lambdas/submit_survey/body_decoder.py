"""
Body Decoder Module

Turns a raw request body into a SubmissionPayload. The declared content
type selects an ordered chain of decode strategies; the first strategy that
succeeds wins. Decoding never raises: when every strategy fails the result
is an empty payload.

Chains:
    application/json, */*+json          json -> urlencoded
    application/x-www-form-urlencoded   urlencoded
    multipart/form-data                 multipart -> urlencoded
    anything else / missing             json -> urlencoded
"""

import codecs
import email
import json
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from email.message import Message
from email.utils import collapse_rfc2231_value
from typing import Any
from urllib.parse import parse_qsl

import structlog

from survey_relay.models import EMPTY_PAYLOAD, SubmissionPayload, freeze_payload

log = structlog.get_logger()

DEFAULT_CHARSET = "utf-8"


class BodyDecodeError(ValueError):
    """A single strategy could not decode the body."""


def resolve_charset(name: str | None) -> str:
    """Canonical codec name for a declared charset; unknown names map to UTF-8."""
    if not name or not name.strip():
        return DEFAULT_CHARSET
    try:
        codec_name = codecs.lookup(name.strip()).name
        # Rejects bytes-to-bytes codecs such as base64
        b"".decode(codec_name)
    except LookupError:
        log.debug("unknown_charset", charset=name)
        return DEFAULT_CHARSET
    return codec_name


@dataclass(frozen=True)
class ContentType:
    """Parsed content-type header."""

    media_type: str
    charset: str = DEFAULT_CHARSET
    raw: str = ""

    @classmethod
    def parse(cls, header: str | None) -> "ContentType":
        if not header or not header.strip():
            return cls(media_type="", raw="")

        message = Message()
        message["content-type"] = header
        media_type = header.split(";", 1)[0].strip().lower()
        charset = resolve_charset(collapse_rfc2231_value(message.get_param("charset") or ""))
        return cls(media_type=media_type, charset=charset, raw=header.strip())

    @property
    def is_json(self) -> bool:
        return self.media_type == "application/json" or self.media_type.endswith("+json")

    @property
    def is_urlencoded(self) -> bool:
        return self.media_type == "application/x-www-form-urlencoded"

    @property
    def is_multipart(self) -> bool:
        return self.media_type == "multipart/form-data"


DecodeStrategy = Callable[[bytes, ContentType], SubmissionPayload]


def _text(body: bytes, content_type: ContentType) -> str:
    return body.decode(content_type.charset, errors="replace")


def _collect(pairs: Iterable[tuple[str, Any]]) -> dict[str, Any]:
    """Group key/value pairs in first-seen order; repeated keys become lists."""
    fields: dict[str, Any] = {}
    for key, value in pairs:
        if key not in fields:
            fields[key] = value
        elif isinstance(fields[key], list):
            fields[key].append(value)
        else:
            fields[key] = [fields[key], value]
    return fields


def decode_json(body: bytes, content_type: ContentType) -> SubmissionPayload:
    """Decode a JSON object body."""
    text = _text(body, content_type).lstrip("\ufeff")
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise BodyDecodeError(f"Invalid JSON: {e.msg}") from e

    if not isinstance(data, dict):
        raise BodyDecodeError(f"JSON body is a {type(data).__name__}, expected an object")

    return freeze_payload(data)


def decode_urlencoded(body: bytes, content_type: ContentType) -> SubmissionPayload:
    """Decode key=value&key=value pairs; blank values are kept."""
    text = _text(body, content_type)
    try:
        pairs = parse_qsl(text, keep_blank_values=True, encoding=content_type.charset)
    except (LookupError, ValueError) as e:
        raise BodyDecodeError(f"Invalid query string: {e}") from e

    return freeze_payload(_collect(pairs))


def decode_multipart(body: bytes, content_type: ContentType) -> SubmissionPayload:
    """
    Decode a multipart/form-data body.

    Each part with a content-disposition name becomes one field. File parts
    contribute their filename; their content is not kept.
    """
    if not content_type.raw:
        raise BodyDecodeError("multipart body without a content-type header")

    # Parse as text so non-ASCII field names survive header parsing;
    # surrogateescape keeps undecodable bytes recoverable per part.
    text = _text_preserving(body, content_type.charset)
    message = email.message_from_string(
        f"Content-Type: {content_type.raw}\r\nMIME-Version: 1.0\r\n\r\n{text}"
    )

    if not message.is_multipart():
        raise BodyDecodeError("multipart body without a boundary")

    pairs: list[tuple[str, str]] = []
    for part in message.get_payload():
        name = part.get_param("name", header="content-disposition")
        if not name:
            continue
        name = collapse_rfc2231_value(name)

        filename = part.get_filename()
        if filename is not None:
            pairs.append((name, filename))
            continue

        pairs.append((name, _part_text(part, content_type.charset)))

    if not pairs:
        raise BodyDecodeError("multipart body has no named parts")

    return freeze_payload(_collect(pairs))


def _text_preserving(body: bytes, charset: str) -> str:
    return body.decode(charset, errors="surrogateescape")


def _part_text(part: Message, body_charset: str) -> str:
    """Text value of a form part, honoring its own charset and transfer encoding."""
    part_charset = part.get_content_charset()
    charset = resolve_charset(part_charset) if part_charset else body_charset
    encoding = str(part.get("content-transfer-encoding", "")).strip().lower()

    if encoding in ("base64", "quoted-printable"):
        raw = part.get_payload(decode=True) or b""
    else:
        payload = part.get_payload()
        if not isinstance(payload, str):
            return ""
        if charset == body_charset and not _has_surrogates(payload):
            return payload
        raw = payload.encode(body_charset, errors="surrogateescape")

    return raw.decode(charset, errors="replace")


def _has_surrogates(value: str) -> bool:
    return any("\udc80" <= char <= "\udcff" for char in value)


JSON_CHAIN: tuple[DecodeStrategy, ...] = (decode_json, decode_urlencoded)
URLENCODED_CHAIN: tuple[DecodeStrategy, ...] = (decode_urlencoded,)
MULTIPART_CHAIN: tuple[DecodeStrategy, ...] = (decode_multipart, decode_urlencoded)
FALLBACK_CHAIN: tuple[DecodeStrategy, ...] = (decode_json, decode_urlencoded)


def strategies_for(content_type: ContentType) -> tuple[DecodeStrategy, ...]:
    """Ordered strategies to try for a content type."""
    if content_type.is_json:
        return JSON_CHAIN
    if content_type.is_urlencoded:
        return URLENCODED_CHAIN
    if content_type.is_multipart:
        return MULTIPART_CHAIN
    return FALLBACK_CHAIN


def decode_body(body: bytes | str | None, content_type: str | None) -> SubmissionPayload:
    """
    Decode a request body into a read-only payload.

    Args:
        body: Raw body (str bodies are encoded as UTF-8)
        content_type: Value of the content-type header, if any

    Returns:
        SubmissionPayload; empty when the body is empty or nothing decodes
    """
    if body is None:
        return EMPTY_PAYLOAD
    if isinstance(body, str):
        body = body.encode(DEFAULT_CHARSET)
    if not body.strip():
        return EMPTY_PAYLOAD

    parsed = ContentType.parse(content_type)

    for strategy in strategies_for(parsed):
        try:
            payload = strategy(body, parsed)
        except Exception as e:
            log.debug(
                "decode_strategy_failed",
                strategy=strategy.__name__,
                media_type=parsed.media_type,
                error=str(e),
            )
            continue

        log.debug(
            "decode_strategy_succeeded",
            strategy=strategy.__name__,
            media_type=parsed.media_type,
            field_count=len(payload),
        )
        return payload

    log.warning(
        "body_decode_failed",
        media_type=parsed.media_type,
        body_length=len(body),
    )
    return EMPTY_PAYLOAD
