"""
Email Renderers

Two policies for turning a decoded submission into the notification email:

- DynamicTableRenderer: one row per submitted field (minus infrastructure
  fields), for forms whose questions change without a redeploy.
- FixedSchemaRenderer: the satisfaction questionnaire laid out row by row,
  ignoring anything else in the payload.

Both share subject assembly, the HTML frame and the trailing timestamp and
User-Agent rows. Values are HTML-escaped before newlines become <br/>.
"""

import json
from collections.abc import Callable
from datetime import datetime, timezone
from html import escape

from survey_relay.config import Settings
from survey_relay.models import RenderedEmail, SubmissionPayload, field_text

NOT_FILLED = "(未填)"
NONE_GIVEN = "(無)"
UNNAMED_CUSTOMER = "未填姓名"
SUBJECT_TEMPLATE = "【{site_name}】新問卷回覆：{customer}"

# Checked in order; the first non-empty value names the customer
CUSTOMER_NAME_FIELDS = ("customer_name", "name", "line_id", "姓名")

SUBMITTED_AT_FIELD = "submittedAt"
USER_AGENT_FIELD = "userAgent"

# Infrastructure fields never shown as table rows
EXCLUDED_FIELDS = frozenset(
    {
        "bot-field",
        "form-name",
        "g-recaptcha-response",
        "submit",
        USER_AGENT_FIELD,
        SUBMITTED_AT_FIELD,
    }
)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def format_timestamp(moment: datetime) -> str:
    """ISO-8601 in UTC with milliseconds and a Z suffix."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    moment = moment.astimezone(timezone.utc)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def resolve_customer_name(payload: SubmissionPayload) -> str:
    """First non-empty customer name candidate, or an empty string."""
    for field_name in CUSTOMER_NAME_FIELDS:
        value = field_text(payload.get(field_name)).strip()
        if value:
            return value
    return ""


def build_subject(payload: SubmissionPayload, site_name: str) -> str:
    customer = resolve_customer_name(payload) or UNNAMED_CUSTOMER
    return SUBJECT_TEMPLATE.format(site_name=site_name, customer=customer)


def cell_html(text: str) -> str:
    """Escape a value for a table cell and turn newlines into <br/>."""
    normalized = text.replace("\r\n", "\n").replace("\r", "\n")
    return escape(normalized).replace("\n", "<br/>")


def _row(label: str, value_html: str) -> str:
    return f'<tr><th align="left">{escape(label)}</th><td>{value_html}</td></tr>'


class TableRenderer:
    """
    Shared frame for the notification email.

    Subclasses implement field_rows(); the base adds the subject heading,
    the submission time and User-Agent rows and, optionally, a JSON dump of
    the whole payload.
    """

    name = "table"
    dump_payload_by_default = False

    def __init__(
        self,
        site_name: str,
        *,
        include_payload_dump: bool | None = None,
        clock: Clock = utc_now,
    ) -> None:
        self.site_name = site_name
        self.include_payload_dump = (
            self.dump_payload_by_default
            if include_payload_dump is None
            else include_payload_dump
        )
        self._clock = clock

    def field_rows(self, payload: SubmissionPayload) -> list[str]:
        raise NotImplementedError

    def render(self, payload: SubmissionPayload) -> RenderedEmail:
        subject = build_subject(payload, self.site_name)

        rows = self.field_rows(payload)
        rows.append(_row("送出時間", cell_html(self._submitted_at(payload))))
        rows.append(_row("User-Agent", cell_html(field_text(payload.get(USER_AGENT_FIELD)))))

        parts = [
            '<div style="font-family:Arial,Helvetica,sans-serif;line-height:1.6">',
            f"<h2>{escape(subject)}</h2>",
            '<table border="1" cellpadding="8" cellspacing="0" style="border-collapse:collapse">',
            *rows,
            "</table>",
        ]
        if self.include_payload_dump:
            parts.append(self._payload_dump(payload))
        parts.append("</div>")

        return RenderedEmail(subject=subject, html_body="\n".join(parts))

    def _submitted_at(self, payload: SubmissionPayload) -> str:
        submitted_at = field_text(payload.get(SUBMITTED_AT_FIELD))
        return submitted_at or format_timestamp(self._clock())

    @staticmethod
    def _payload_dump(payload: SubmissionPayload) -> str:
        dump = json.dumps(dict(payload), ensure_ascii=False, indent=2)
        return (
            "<h3>原始資料</h3>"
            '<pre style="background:#f6f8fa;padding:8px;white-space:pre-wrap">'
            f"{escape(dump)}</pre>"
        )


class DynamicTableRenderer(TableRenderer):
    """Renders every submitted field in payload order."""

    name = "dynamic"
    dump_payload_by_default = True

    def field_rows(self, payload: SubmissionPayload) -> list[str]:
        rows = []
        for key, value in payload.items():
            if key in EXCLUDED_FIELDS:
                continue
            text = field_text(value)
            rows.append(_row(key, cell_html(text) if text else NOT_FILLED))
        return rows


class FixedSchemaRenderer(TableRenderer):
    """Renders the satisfaction questionnaire regardless of extra fields."""

    name = "fixed"

    # (label, field, placeholder when empty)
    QUESTIONS = (
        ("Q1. 服務滿意度", "q1", NOT_FILLED),
        ("Q2. 清潔品質", "q2", NOT_FILLED),
        ("Q3. 技師專業度 (1-5)", "q3", NOT_FILLED),
        ("Q4. 價格合理度 (1-10)", "q4", NOT_FILLED),
        ("Q5. 會否推薦", "q5", NOT_FILLED),
        ("Q6. 其他建議", "q6", NONE_GIVEN),
    )

    def field_rows(self, payload: SubmissionPayload) -> list[str]:
        def value(field_name: str, placeholder: str) -> str:
            text = field_text(payload.get(field_name))
            return cell_html(text) if text else placeholder

        rows = [_row("姓名/LINE", value("customer_name", NOT_FILLED))]
        for label, field_name, placeholder in self.QUESTIONS:
            cell = value(field_name, placeholder)
            if field_name == "q2":
                cell = f"{cell}<br/>備註：{value('q2_extra', NONE_GIVEN)}"
            rows.append(_row(label, cell))
        return rows


RENDERERS: dict[str, type[TableRenderer]] = {
    DynamicTableRenderer.name: DynamicTableRenderer,
    FixedSchemaRenderer.name: FixedSchemaRenderer,
}


def renderer_from_settings(settings: Settings, *, clock: Clock = utc_now) -> TableRenderer:
    """Renderer selected by settings.render_mode."""
    renderer_cls = RENDERERS[settings.render_mode]
    return renderer_cls(
        settings.site_name,
        include_payload_dump=settings.include_payload_dump,
        clock=clock,
    )
