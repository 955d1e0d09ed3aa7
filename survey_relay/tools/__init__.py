"""
Outbound integrations used by the relay.

Tools:
- brevo: Brevo transactional email dispatcher
"""

from survey_relay.tools.brevo import (
    BrevoEmailDispatcher,
    EmailDispatcher,
    LoggingDispatcher,
)

__all__ = [
    "BrevoEmailDispatcher",
    "EmailDispatcher",
    "LoggingDispatcher",
]
