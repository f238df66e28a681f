from __future__ import annotations

from datetime import datetime
from enum import Enum as PyEnum
from typing import Any

from sqlalchemy import JSON, Boolean, Enum as SAEnum, String
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base, PrimaryKeyUUIDMixin, TimestampMixin
from app.models.types import GUID, UTCDateTime, enum_values


class CredentialStatus(str, PyEnum):
    UNPUBLISHED = "unpublished"
    ISSUED = "issued"
    REVOKED = "revoked"
    DELETED = "deleted"


class CredentialRecord(PrimaryKeyUUIDMixin, TimestampMixin, Base):
    """A locally stored document that is mirrored from an issuing platform.

    The document repository owns the row; the reconciliation engine only touches
    ``payload``, the verification columns and the status columns.
    """

    __tablename__ = "credential_records"

    record_id: Mapped[str | None] = mapped_column(String(255), nullable=True, unique=True, index=True)
    owner_id: Mapped[Any] = mapped_column(GUID(), nullable=False, index=True)
    issuer_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    data_link: Mapped[str | None] = mapped_column(String(1024), nullable=True)

    payload: Mapped[dict[str, Any] | None] = mapped_column(JSON(none_as_null=True), nullable=True)
    verified: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    verified_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)

    status: Mapped[CredentialStatus] = mapped_column(
        SAEnum(CredentialStatus, name="credentialstatus", native_enum=False, values_callable=enum_values),
        nullable=False,
        default=CredentialStatus.UNPUBLISHED,
        index=True,
    )
    status_updated_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
