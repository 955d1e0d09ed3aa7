"""
Unit tests for the SubmitSurvey body decoder.

Tests cover:
- Content type parsing and strategy selection
- JSON, urlencoded and multipart decoding
- Fallback chains and graceful degradation
"""

import pytest


# ============================================================================
# Content Type Tests
# ============================================================================

class TestContentType:
    """Tests for ContentType.parse."""

    def test_parse_media_type_and_charset(self):
        """Test media type is lower-cased and charset extracted."""
        from lambdas.submit_survey.body_decoder import ContentType

        parsed = ContentType.parse("Application/JSON; charset=UTF-8")

        assert parsed.media_type == "application/json"
        assert parsed.charset == "utf-8"
        assert parsed.is_json

    def test_parse_missing_header(self):
        """Test missing header gives an empty media type with UTF-8."""
        from lambdas.submit_survey.body_decoder import ContentType

        for header in (None, "", "   "):
            parsed = ContentType.parse(header)
            assert parsed.media_type == ""
            assert parsed.charset == "utf-8"

    def test_charset_is_resolved_to_a_codec(self):
        """Test aliases are canonicalized and unusable names fall back to UTF-8."""
        from lambdas.submit_survey.body_decoder import ContentType

        assert ContentType.parse("text/plain; charset=Latin-1").charset == "iso8859-1"
        assert ContentType.parse("text/plain; charset=not-a-charset").charset == "utf-8"
        assert ContentType.parse("text/plain; charset=base64").charset == "utf-8"

    def test_vendor_json_is_json(self):
        """Test +json suffixes count as JSON."""
        from lambdas.submit_survey.body_decoder import ContentType

        assert ContentType.parse("application/vnd.api+json").is_json


class TestStrategiesFor:
    """Tests for strategy chain selection."""

    @pytest.mark.parametrize(
        "header, expected",
        [
            ("application/json", ["decode_json", "decode_urlencoded"]),
            ("application/x-www-form-urlencoded", ["decode_urlencoded"]),
            ("multipart/form-data; boundary=abc", ["decode_multipart", "decode_urlencoded"]),
            ("text/plain", ["decode_json", "decode_urlencoded"]),
            (None, ["decode_json", "decode_urlencoded"]),
        ],
    )
    def test_chain_per_content_type(self, header, expected):
        """Test each content type selects its ordered chain."""
        from lambdas.submit_survey.body_decoder import ContentType, strategies_for

        chain = strategies_for(ContentType.parse(header))

        assert [strategy.__name__ for strategy in chain] == expected


# ============================================================================
# Decode Tests
# ============================================================================

class TestDecodeJson:
    """Tests for JSON bodies."""

    def test_decode_json_object(self, generator):
        """Test a JSON object decodes to exactly its keys."""
        from lambdas.submit_survey.body_decoder import decode_body

        fields = generator.generate_questionnaire()
        body, content_type = generator.json_body(fields)

        payload = decode_body(body, content_type)

        assert dict(payload) == fields
        assert list(payload.keys()) == list(fields.keys())

    def test_json_scalars_are_coerced(self):
        """Test non-string JSON values become text."""
        from lambdas.submit_survey.body_decoder import decode_body

        payload = decode_body(
            b'{"q3": 5, "agree": true, "note": null, "tags": ["a", 2], "meta": {"k": "v"}}',
            "application/json",
        )

        assert payload["q3"] == "5"
        assert payload["agree"] == "true"
        assert payload["note"] == ""
        assert payload["tags"] == ("a", "2")
        assert payload["meta"] == '{"k":"v"}'

    def test_malformed_json_falls_back_to_urlencoded(self):
        """Test malformed JSON with a JSON content type is decoded as a query string."""
        from lambdas.submit_survey.body_decoder import decode_body

        payload = decode_body(b"customer_name=%E7%8E%8B&q1=5", "application/json")

        assert dict(payload) == {"customer_name": "王", "q1": "5"}

    def test_truncated_json_never_raises(self):
        """Test truncated JSON degrades to the query-string reading of the same bytes."""
        from lambdas.submit_survey.body_decoder import decode_body

        payload = decode_body('{"customer_name": "王'.encode("utf-8"), "application/json")

        assert dict(payload) == {'{"customer_name": "王': ""}

    def test_json_array_is_not_a_payload(self):
        """Test a JSON array falls through to urlencoded decoding."""
        from lambdas.submit_survey.body_decoder import decode_json, ContentType, BodyDecodeError

        with pytest.raises(BodyDecodeError):
            decode_json(b"[1, 2]", ContentType.parse("application/json"))

    def test_json_with_byte_order_mark(self):
        """Test a leading BOM does not break JSON decoding."""
        from lambdas.submit_survey.body_decoder import decode_body

        payload = decode_body('\ufeff{"q1": "5"}'.encode("utf-8"), "application/json")

        assert dict(payload) == {"q1": "5"}


class TestDecodeUrlencoded:
    """Tests for urlencoded bodies."""

    def test_decode_urlencoded_form(self, generator):
        """Test a urlencoded form decodes to exactly its keys."""
        from lambdas.submit_survey.body_decoder import decode_body

        fields = generator.generate_questionnaire()
        body, content_type = generator.urlencoded_body(fields)

        payload = decode_body(body, content_type)

        assert dict(payload) == fields

    def test_blank_values_are_kept(self):
        """Test empty fields are present with empty values."""
        from lambdas.submit_survey.body_decoder import decode_body

        payload = decode_body(b"q1=&q2=ok", "application/x-www-form-urlencoded")

        assert dict(payload) == {"q1": "", "q2": "ok"}

    def test_repeated_keys_are_collected(self):
        """Test repeated checkbox values become a tuple."""
        from lambdas.submit_survey.body_decoder import decode_body

        payload = decode_body(
            b"service=kitchen&service=bathroom&q1=5",
            "application/x-www-form-urlencoded",
        )

        assert payload["service"] == ("kitchen", "bathroom")
        assert payload["q1"] == "5"

    def test_plus_is_space(self):
        """Test form encoding of spaces."""
        from lambdas.submit_survey.body_decoder import decode_body

        payload = decode_body(b"q6=very+good", "application/x-www-form-urlencoded")

        assert payload["q6"] == "very good"


class TestDecodeMultipart:
    """Tests for multipart/form-data bodies."""

    def test_decode_multipart_form(self, generator):
        """Test every part becomes one field."""
        from lambdas.submit_survey.body_decoder import decode_body

        fields = generator.generate_questionnaire()
        body, content_type = generator.multipart_body(fields)

        payload = decode_body(body, content_type)

        assert dict(payload) == fields

    def test_repeated_parts_collapse_into_tuple(self, generator):
        """Test repeated part names are collected in order."""
        from lambdas.submit_survey.body_decoder import decode_body

        body, content_type = generator.multipart_body(
            [("service", "kitchen"), ("q1", "5"), ("service", "bathroom")]
        )

        payload = decode_body(body, content_type)

        assert dict(payload) == {"service": ("kitchen", "bathroom"), "q1": "5"}

    def test_non_ascii_field_names(self, generator):
        """Test Chinese part names survive header parsing."""
        from lambdas.submit_survey.body_decoder import decode_body

        body, content_type = generator.multipart_body({"姓名": "王小明"})

        payload = decode_body(body, content_type)

        assert dict(payload) == {"姓名": "王小明"}

    def test_multiline_value_keeps_newlines(self, generator):
        """Test values spanning lines keep inner newlines only."""
        from lambdas.submit_survey.body_decoder import decode_body

        body, content_type = generator.multipart_body({"q6": "第一行\r\n第二行"})

        payload = decode_body(body, content_type)

        assert payload["q6"] == "第一行\r\n第二行"

    def test_file_part_contributes_filename(self, generator):
        """Test uploaded files are reduced to their filename."""
        from lambdas.submit_survey.body_decoder import decode_body

        body, content_type = generator.multipart_body(
            {"q1": "5"},
            files=[("photo", "kitchen.jpg", b"\xff\xd8\xff\xe0binary")],
        )

        payload = decode_body(body, content_type)

        assert dict(payload) == {"q1": "5", "photo": "kitchen.jpg"}

    def test_multipart_without_boundary_falls_back(self):
        """Test a multipart content type without boundary is read as a query string."""
        from lambdas.submit_survey.body_decoder import decode_body

        payload = decode_body(b"q1=5&q2=ok", "multipart/form-data")

        assert dict(payload) == {"q1": "5", "q2": "ok"}


class TestDecodeFallbacks:
    """Tests for unknown content types and degradation."""

    def test_unknown_content_type_tries_json_first(self):
        """Test JSON is attempted without a declared content type."""
        from lambdas.submit_survey.body_decoder import decode_body

        payload = decode_body(b'{"q1": "5"}', None)

        assert dict(payload) == {"q1": "5"}

    def test_unknown_content_type_falls_back_to_query_string(self):
        """Test a text/plain query string is decoded as key/value pairs."""
        from lambdas.submit_survey.body_decoder import decode_body

        payload = decode_body(b"q1=5&customer_name=Amy", "text/plain")

        assert dict(payload) == {"q1": "5", "customer_name": "Amy"}

    @pytest.mark.parametrize("body", [b"", b"   ", None, ""])
    def test_empty_body_gives_empty_payload(self, body):
        """Test empty bodies decode to an empty mapping."""
        from lambdas.submit_survey.body_decoder import decode_body

        assert dict(decode_body(body, "application/json")) == {}

    def test_str_body_is_accepted(self):
        """Test text bodies are encoded as UTF-8 first."""
        from lambdas.submit_survey.body_decoder import decode_body

        payload = decode_body('{"customer_name": "王小明"}', "application/json")

        assert payload["customer_name"] == "王小明"

    def test_every_strategy_failing_gives_empty_payload(self, monkeypatch):
        """Test the decoder swallows strategy errors."""
        from lambdas.submit_survey import body_decoder

        def explode(body, content_type):
            raise RuntimeError("boom")

        monkeypatch.setattr(body_decoder, "URLENCODED_CHAIN", (explode,))

        payload = body_decoder.decode_body(b"q1=5", "application/x-www-form-urlencoded")

        assert dict(payload) == {}

    def test_unknown_charset_uses_utf8(self):
        """Test an unknown charset name does not fail decoding."""
        from lambdas.submit_survey.body_decoder import decode_body

        payload = decode_body(
            '{"q1": "滿意"}'.encode("utf-8"),
            "application/json; charset=not-a-charset",
        )

        assert payload["q1"] == "滿意"

    def test_declared_charset_is_honored(self):
        """Test a Big5 form body decodes with its declared charset."""
        from lambdas.submit_survey.body_decoder import decode_body

        payload = decode_body(
            "q1=滿意".encode("big5"),
            "text/plain; charset=big5",
        )

        assert payload["q1"] == "滿意"

    def test_unknown_charset_with_percent_escapes(self):
        """Test percent-escaped form values decode as UTF-8 under an unknown charset."""
        from lambdas.submit_survey.body_decoder import decode_body

        payload = decode_body(
            b"q1=%E6%BB%BF%E6%84%8F&customer_name=Amy",
            "application/x-www-form-urlencoded; charset=not-a-charset",
        )

        assert dict(payload) == {"q1": "滿意", "customer_name": "Amy"}

    def test_unknown_part_charset_in_multipart(self):
        """Test a part declaring an unknown charset keeps its UTF-8 text."""
        from lambdas.submit_survey.body_decoder import decode_body

        boundary = "----relayboundary"
        body = (
            f"--{boundary}\r\n"
            'Content-Disposition: form-data; name="q6"\r\n'
            "Content-Type: text/plain; charset=not-a-charset\r\n"
            "\r\n"
            "很好\r\n"
            f"--{boundary}--\r\n"
        ).encode("utf-8")

        payload = decode_body(body, f"multipart/form-data; boundary={boundary}")

        assert dict(payload) == {"q6": "很好"}


class TestPayloadImmutability:
    """Tests that decoded payloads are read-only."""

    def test_payload_cannot_be_modified(self):
        """Test item assignment is rejected."""
        from lambdas.submit_survey.body_decoder import decode_body

        payload = decode_body(b'{"q1": "5"}', "application/json")

        with pytest.raises(TypeError):
            payload["q1"] = "1"  # type: ignore[index]
