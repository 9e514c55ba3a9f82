"""
Mail envelope schema carried on the send-mail topic.

Wire format is UTF-8 JSON:
    {"to": "<email address>", "subject": "<string>", "html": "<string>"}
with an optional "idempotency_key". Unknown fields are ignored on decode.
"""

import json
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from notification_pipeline.exceptions import EnvelopeDecodeError


class MailEnvelope(BaseModel):
    """Notification payload published by upstream services.

    Attributes:
        to: Recipient email address
        subject: Email subject line
        html: Rendered HTML body
        idempotency_key: Optional stable key for the logical event; repeated
            deliveries with the same key are skipped by the delivery handler

    Example:
        >>> envelope = MailEnvelope(
        ...     to="user@example.com",
        ...     subject="Welcome",
        ...     html="<p>Hi</p>",
        ... )
        >>> envelope.to_bytes()
        b'{"to":"user@example.com","subject":"Welcome","html":"<p>Hi</p>"}'
    """

    model_config = ConfigDict(extra="ignore")

    to: str = Field(..., description="Recipient email address", min_length=3)
    subject: str = Field(..., description="Email subject line", min_length=1)
    html: str = Field(..., description="Rendered HTML body")
    idempotency_key: Optional[str] = Field(
        default=None,
        description="Stable key identifying the logical notification",
        min_length=1,
    )

    @field_validator("to")
    @classmethod
    def validate_recipient(cls, v: str) -> str:
        v = v.strip()
        local, sep, domain = v.partition("@")
        if not sep or not local or not domain:
            raise ValueError(f"Not an email address: {v!r}")
        return v

    def to_bytes(self) -> bytes:
        """Serialize to JSON bytes, omitting an unset idempotency key."""
        return self.model_dump_json(exclude_none=True).encode("utf-8")

    @classmethod
    def from_bytes(cls, raw: Union[bytes, str, None]) -> "MailEnvelope":
        """
        Decode a record payload.

        Raises:
            EnvelopeDecodeError: If the payload is empty, not JSON (including
                oversized integers and over-deep nesting), not an object, or
                misses a required field
        """
        if raw is None or len(raw) == 0:
            raise EnvelopeDecodeError("Empty envelope payload")

        try:
            text = raw.decode("utf-8") if isinstance(raw, bytes) else raw
            data: Any = json.loads(text)
        except (ValueError, RecursionError) as e:
            raise EnvelopeDecodeError("Envelope payload is not valid JSON", cause=e)

        if not isinstance(data, dict):
            raise EnvelopeDecodeError(
                f"Envelope payload must be a JSON object, got {type(data).__name__}"
            )

        try:
            return cls.model_validate(data)
        except ValidationError as e:
            missing = [".".join(str(p) for p in err["loc"]) for err in e.errors()]
            raise EnvelopeDecodeError(
                "Envelope failed validation",
                cause=e,
                context={"fields": missing},
            )
