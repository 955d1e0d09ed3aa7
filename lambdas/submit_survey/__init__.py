"""
SubmitSurvey Lambda

Relays survey form submissions as notification emails through Brevo.
Decodes the posted body (JSON, urlencoded or multipart), renders the
answers as an HTML table and sends one transactional email.

Flow:
    Survey form POST
    → API Gateway / Function URL
    → This Lambda
    → Brevo /v3/smtp/email
"""

from lambdas.submit_survey.body_decoder import ContentType, decode_body
from lambdas.submit_survey.handler import (
    InboundRequest,
    RelayResponse,
    SubmissionRelay,
    lambda_handler,
    request_from_event,
)
from lambdas.submit_survey.renderers import (
    DynamicTableRenderer,
    FixedSchemaRenderer,
    build_subject,
    renderer_from_settings,
)

__all__ = [
    "ContentType",
    "DynamicTableRenderer",
    "FixedSchemaRenderer",
    "InboundRequest",
    "RelayResponse",
    "SubmissionRelay",
    "build_subject",
    "decode_body",
    "lambda_handler",
    "renderer_from_settings",
    "request_from_event",
]
