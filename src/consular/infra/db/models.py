from __future__ import annotations

from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, ClassVar, Dict, List, Optional, Tuple, Type
from uuid import UUID

from pydantic import BaseModel
from sqlalchemy import JSON, Boolean, Date, DateTime, String, Text, Uuid
from sqlalchemy import inspect as sa_inspect
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from src.consular.domain.models.appointment import Appointment
from src.consular.domain.models.consular_service import ConsularService
from src.consular.domain.models.notification import Notification
from src.consular.domain.models.organization import Organization
from src.consular.domain.models.parental_authority import ParentalAuthority
from src.consular.domain.models.profile import Profile
from src.consular.domain.models.service_request import ServiceRequest
from src.consular.domain.models.user import User
from src.consular.domain.models.user_document import UserDocument


class Base(DeclarativeBase):
    pass


class DomainMapped:
    """Attribute-by-attribute mapping between an ORM row and its pydantic model.

    Mapped attribute names match the domain field names, except for a
    trailing underscore used where the field name is reserved by SQLAlchemy
    (``metadata``). Fields listed in ``__json_columns__`` hold nested
    structures serialized in JSON mode; every other attribute receives the
    plain Python value (enums unwrapped).
    """

    __domain_model__: ClassVar[Type[BaseModel]]
    __json_columns__: ClassVar[Tuple[str, ...]] = ()

    @classmethod
    def _attribute_keys(cls) -> List[str]:
        return [attr.key for attr in sa_inspect(cls).column_attrs]

    @classmethod
    def from_domain(cls, obj: BaseModel) -> "DomainMapped":
        python_data = obj.model_dump()
        json_data = obj.model_dump(mode="json")
        values: Dict[str, Any] = {}
        for attr_key in cls._attribute_keys():
            field_name = attr_key.rstrip("_")
            if field_name in cls.__json_columns__:
                values[attr_key] = json_data[field_name]
                continue
            value = python_data[field_name]
            values[attr_key] = value.value if isinstance(value, Enum) else value
        return cls(**values)  # type: ignore[call-arg]

    def to_domain(self) -> Any:
        data = {}
        for attr_key in self._attribute_keys():
            value = getattr(self, attr_key)
            # SQLite drops tzinfo on round trip; stored values are always UTC.
            if isinstance(value, datetime) and value.tzinfo is None:
                value = value.replace(tzinfo=timezone.utc)
            data[attr_key.rstrip("_")] = value
        return self.__domain_model__.model_validate(data)


class UserORM(DomainMapped, Base):
    __tablename__ = "users"
    __domain_model__ = User
    __json_columns__ = ("roles", "specializations")

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True)
    email: Mapped[str] = mapped_column(String(320), nullable=False, unique=True, index=True)
    name: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    phone_number: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    roles: Mapped[List[str]] = mapped_column(JSON, nullable=False)
    organization_id: Mapped[Optional[UUID]] = mapped_column(Uuid, nullable=True, index=True)
    profile_id: Mapped[Optional[UUID]] = mapped_column(Uuid, nullable=True)
    specializations: Mapped[List[str]] = mapped_column(JSON, nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    deleted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)


class ProfileORM(DomainMapped, Base):
    __tablename__ = "profiles"
    __domain_model__ = Profile

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True)
    # Not unique: a parent account also owns the MINOR profiles it created.
    user_id: Mapped[UUID] = mapped_column(Uuid, nullable=False, index=True)
    category: Mapped[str] = mapped_column(String(8), nullable=False, default="ADULT")
    first_name: Mapped[str] = mapped_column(String, nullable=False)
    last_name: Mapped[str] = mapped_column(String, nullable=False)
    birth_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    birth_place: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    birth_country: Mapped[Optional[str]] = mapped_column(String(2), nullable=True)
    nationality: Mapped[Optional[str]] = mapped_column(String(2), nullable=True)
    gender: Mapped[Optional[str]] = mapped_column(String(8), nullable=True)
    address: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    phone_number: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    email: Mapped[Optional[str]] = mapped_column(String(320), nullable=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False)
    validated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    validated_by: Mapped[Optional[UUID]] = mapped_column(Uuid, nullable=True)
    validation_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class ParentalAuthorityORM(DomainMapped, Base):
    __tablename__ = "parental_authorities"
    __domain_model__ = ParentalAuthority

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True)
    child_profile_id: Mapped[UUID] = mapped_column(Uuid, nullable=False, index=True)
    parent_user_id: Mapped[UUID] = mapped_column(Uuid, nullable=False, index=True)
    role: Mapped[str] = mapped_column(String(16), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class OrganizationORM(DomainMapped, Base):
    __tablename__ = "organizations"
    __domain_model__ = Organization
    __json_columns__ = ("country_codes",)

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    type: Mapped[str] = mapped_column(String(32), nullable=False)
    country_codes: Mapped[List[str]] = mapped_column(JSON, nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class ConsularServiceORM(DomainMapped, Base):
    __tablename__ = "consular_services"
    __domain_model__ = ConsularService
    __json_columns__ = ("steps", "required_documents", "optional_documents")

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True)
    organization_id: Mapped[UUID] = mapped_column(Uuid, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    category: Mapped[str] = mapped_column(String(32), nullable=False)
    steps: Mapped[List[Dict[str, Any]]] = mapped_column(JSON, nullable=False)
    required_documents: Mapped[List[str]] = mapped_column(JSON, nullable=False)
    optional_documents: Mapped[List[str]] = mapped_column(JSON, nullable=False)
    requires_appointment: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class ServiceRequestORM(DomainMapped, Base):
    __tablename__ = "service_requests"
    __domain_model__ = ServiceRequest
    # Action history and notes are append-only and always read with their
    # request, so they live inline rather than in child tables.
    __json_columns__ = ("document_ids", "form_data", "actions", "notes")

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True)
    submitted_by_id: Mapped[UUID] = mapped_column(Uuid, nullable=False, index=True)
    profile_id: Mapped[Optional[UUID]] = mapped_column(Uuid, nullable=True, index=True)
    service_id: Mapped[UUID] = mapped_column(Uuid, nullable=False)
    service_category: Mapped[str] = mapped_column(String(32), nullable=False)
    organization_id: Mapped[UUID] = mapped_column(Uuid, nullable=False, index=True)
    appointment_id: Mapped[Optional[UUID]] = mapped_column(Uuid, nullable=True)
    document_ids: Mapped[List[str]] = mapped_column(JSON, nullable=False)
    form_data: Mapped[Dict[str, Any]] = mapped_column(JSON, nullable=False)
    priority: Mapped[str] = mapped_column(String(16), nullable=False)
    status: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    assigned_to_id: Mapped[Optional[UUID]] = mapped_column(Uuid, nullable=True, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    submitted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    assigned_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    last_action_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    last_action_by: Mapped[Optional[UUID]] = mapped_column(Uuid, nullable=True)
    actions: Mapped[List[Dict[str, Any]]] = mapped_column(JSON, nullable=False)
    notes: Mapped[List[Dict[str, Any]]] = mapped_column(JSON, nullable=False)


class UserDocumentORM(DomainMapped, Base):
    __tablename__ = "user_documents"
    __domain_model__ = UserDocument
    __json_columns__ = ("metadata",)

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True)
    user_id: Mapped[UUID] = mapped_column(Uuid, nullable=False, index=True)
    profile_id: Mapped[Optional[UUID]] = mapped_column(Uuid, nullable=True)
    request_id: Mapped[Optional[UUID]] = mapped_column(Uuid, nullable=True, index=True)
    type: Mapped[str] = mapped_column(String(32), nullable=False)
    file_url: Mapped[str] = mapped_column(String, nullable=False)
    file_type: Mapped[str] = mapped_column(String(128), nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False)
    issued_at: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    expires_at: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    # "metadata" is reserved on declarative classes.
    metadata_: Mapped[Dict[str, Any]] = mapped_column("metadata", JSON, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class NotificationORM(DomainMapped, Base):
    __tablename__ = "notifications"
    __domain_model__ = Notification
    __json_columns__ = ("channels", "metadata")

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True)
    user_id: Mapped[UUID] = mapped_column(Uuid, nullable=False, index=True)
    type: Mapped[str] = mapped_column(String(48), nullable=False)
    title: Mapped[str] = mapped_column(String, nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    channels: Mapped[List[str]] = mapped_column(JSON, nullable=False)
    metadata_: Mapped[Dict[str, Any]] = mapped_column("metadata", JSON, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    read_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)


class AppointmentORM(DomainMapped, Base):
    __tablename__ = "appointments"
    __domain_model__ = Appointment

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True)
    organization_id: Mapped[UUID] = mapped_column(Uuid, nullable=False, index=True)
    attendee_id: Mapped[UUID] = mapped_column(Uuid, nullable=False, index=True)
    agent_id: Mapped[Optional[UUID]] = mapped_column(Uuid, nullable=True)
    request_id: Mapped[Optional[UUID]] = mapped_column(Uuid, nullable=True)
    start_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False)
    instructions: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
