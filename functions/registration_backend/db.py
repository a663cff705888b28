"""
Document store abstraction for registrations.

Three implementations share the ``DbClient`` interface: an in-memory store for
development and tests, a SQLAlchemy store that keeps each registration as a
JSON document (Postgres in production, SQLite in tests) and a MongoDB store.
"""

from __future__ import annotations

import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Iterator, Optional, Protocol

from bson import ObjectId
from pymongo import DESCENDING, MongoClient, ReturnDocument
from pymongo.errors import PyMongoError
from sqlalchemy import JSON, Column, DateTime, String, create_engine, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from registration_backend.errors import StorageFailure

DEFAULT_PAYMENT_STATUS = "pending"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    # SQLite and naive Mongo clients hand back naive datetimes that are UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class DbClient(Protocol):
    """Interface for registration storage."""

    def create_registration(
        self, fields: dict, *, registration_date: Optional[datetime] = None
    ) -> "RegistrationRecord":
        ...

    def get_registration(self, registration_id: str) -> Optional["RegistrationRecord"]:
        ...

    def set_photo_url(
        self, registration_id: str, photo_url: str
    ) -> Optional["RegistrationRecord"]:
        ...

    def list_registrations(self) -> list["RegistrationRecord"]:
        ...


@dataclass
class RegistrationRecord:
    id: str
    name: Optional[str] = None
    email: Optional[str] = None
    mobile: Optional[str] = None
    gender: Optional[str] = None
    is_lpu: bool = False
    reg_no: Optional[str] = None
    participation_type: Optional[str] = None
    team_details: Optional[dict] = None
    need_accommodation: Optional[str] = None
    photo_url: Optional[str] = None
    payment_status: str = DEFAULT_PAYMENT_STATUS
    registration_date: datetime = field(default_factory=_utcnow)

    @property
    def team_size(self) -> int:
        if not self.team_details:
            return 1
        return len(self.team_details.get("members") or []) + 1

    def as_document(self) -> dict:
        """Stored form: camelCase keys, unset fields omitted, no id."""
        document = {
            "name": self.name,
            "email": self.email,
            "mobile": self.mobile,
            "gender": self.gender,
            "isLpu": self.is_lpu,
            "regNo": self.reg_no,
            "participationType": self.participation_type,
            "teamDetails": self.team_details,
            "needAccommodation": self.need_accommodation,
            "photoUrl": self.photo_url,
            "paymentStatus": self.payment_status,
            "registrationDate": self.registration_date,
        }
        return {key: value for key, value in document.items() if value is not None}

    def as_dict(self) -> dict:
        return {"_id": self.id, **self.as_document()}

    @classmethod
    def from_document(cls, record_id: str, document: dict) -> "RegistrationRecord":
        registration_date = document.get("registrationDate")
        if isinstance(registration_date, str):
            registration_date = datetime.fromisoformat(registration_date)
        return cls(
            id=record_id,
            name=document.get("name"),
            email=document.get("email"),
            mobile=document.get("mobile"),
            gender=document.get("gender"),
            is_lpu=bool(document.get("isLpu", False)),
            reg_no=document.get("regNo"),
            participation_type=document.get("participationType"),
            team_details=document.get("teamDetails"),
            need_accommodation=document.get("needAccommodation"),
            photo_url=document.get("photoUrl"),
            payment_status=document.get("paymentStatus") or DEFAULT_PAYMENT_STATUS,
            registration_date=_as_utc(registration_date or _utcnow()),
        )


def _new_document(fields: dict, registration_date: Optional[datetime]) -> dict:
    document = {key: value for key, value in fields.items() if value is not None}
    document["isLpu"] = bool(document.get("isLpu", False))
    document["paymentStatus"] = DEFAULT_PAYMENT_STATUS
    document["registrationDate"] = registration_date or _utcnow()
    return document


@contextmanager
def _storage_errors(*error_types: type[Exception]) -> Iterator[None]:
    try:
        yield
    except error_types as exc:
        raise StorageFailure(str(exc)) from exc


class InMemoryDbClient:
    """Simple in-memory database for development and tests."""

    def __init__(self):
        self.registrations: Dict[str, RegistrationRecord] = {}

    def create_registration(
        self, fields: dict, *, registration_date: Optional[datetime] = None
    ) -> RegistrationRecord:
        registration_id = uuid.uuid4().hex
        record = RegistrationRecord.from_document(
            registration_id, _new_document(fields, registration_date)
        )
        self.registrations[registration_id] = record
        return record

    def get_registration(self, registration_id: str) -> Optional[RegistrationRecord]:
        return self.registrations.get(registration_id)

    def set_photo_url(
        self, registration_id: str, photo_url: str
    ) -> Optional[RegistrationRecord]:
        record = self.registrations.get(registration_id)
        if record:
            record.photo_url = photo_url
        return record

    def list_registrations(self) -> list[RegistrationRecord]:
        return sorted(
            self.registrations.values(),
            key=lambda record: (record.registration_date, record.id),
            reverse=True,
        )

    def reset(self) -> None:
        """Clear all stored data (useful in tests)."""
        self.registrations.clear()


class SqlDbClient:
    """
    SQLAlchemy-backed document store. Accepts any SQLAlchemy URL (e.g., Postgres
    or SQLite for tests). Each registration is one row whose ``document`` column
    holds the record; ``registration_date`` is kept alongside for ordering.
    """

    def __init__(self, database_url: str):
        if not database_url:
            raise ValueError("DATABASE_URL is required for SqlDbClient")
        self.engine = create_engine(
            database_url,
            future=True,
            pool_pre_ping=True,
            pool_recycle=1800,
        )
        self.Session = sessionmaker(
            bind=self.engine, class_=Session, expire_on_commit=False, future=True
        )
        Base.metadata.create_all(self.engine)

    def _to_record(self, row: "RegistrationRow") -> RegistrationRecord:
        document = dict(row.document)
        document["registrationDate"] = row.registration_date
        return RegistrationRecord.from_document(row.id, document)

    def create_registration(
        self, fields: dict, *, registration_date: Optional[datetime] = None
    ) -> RegistrationRecord:
        document = _new_document(fields, registration_date)
        created_at = document.pop("registrationDate")
        with _storage_errors(SQLAlchemyError), self.Session() as session:
            row = RegistrationRow(
                id=uuid.uuid4().hex,
                registration_date=created_at,
                document=document,
            )
            session.add(row)
            session.commit()
            session.refresh(row)
            return self._to_record(row)

    def get_registration(self, registration_id: str) -> Optional[RegistrationRecord]:
        with _storage_errors(SQLAlchemyError), self.Session() as session:
            row = session.get(RegistrationRow, registration_id)
            return self._to_record(row) if row else None

    def set_photo_url(
        self, registration_id: str, photo_url: str
    ) -> Optional[RegistrationRecord]:
        with _storage_errors(SQLAlchemyError), self.Session() as session:
            row = session.get(RegistrationRow, registration_id)
            if not row:
                return None
            # Reassign so the JSON column is flagged as modified.
            row.document = {**row.document, "photoUrl": photo_url}
            session.commit()
            return self._to_record(row)

    def list_registrations(self) -> list[RegistrationRecord]:
        with _storage_errors(SQLAlchemyError), self.Session() as session:
            stmt = select(RegistrationRow).order_by(
                RegistrationRow.registration_date.desc(), RegistrationRow.id.desc()
            )
            return [self._to_record(row) for row in session.execute(stmt).scalars()]


class MongoDbClient:
    """
    MongoDB-backed store. Identifiers are ObjectIds rendered as hex strings; an
    identifier that is not a valid ObjectId simply matches nothing.
    """

    def __init__(
        self,
        database_url: str,
        database_name: str = "typeTillSunrise",
        collection_name: str = "registrations",
    ):
        if not database_url:
            raise ValueError("DATABASE_URL is required for MongoDbClient")
        self.client = MongoClient(database_url, tz_aware=True)
        database = self.client.get_default_database(default=database_name)
        self.collection = database[collection_name]

    @staticmethod
    def _to_record(document: dict) -> RegistrationRecord:
        document = dict(document)
        record_id = str(document.pop("_id"))
        return RegistrationRecord.from_document(record_id, document)

    def create_registration(
        self, fields: dict, *, registration_date: Optional[datetime] = None
    ) -> RegistrationRecord:
        document = _new_document(fields, registration_date)
        with _storage_errors(PyMongoError):
            result = self.collection.insert_one(document)
        document["_id"] = result.inserted_id
        return self._to_record(document)

    def get_registration(self, registration_id: str) -> Optional[RegistrationRecord]:
        if not ObjectId.is_valid(registration_id):
            return None
        with _storage_errors(PyMongoError):
            document = self.collection.find_one({"_id": ObjectId(registration_id)})
        return self._to_record(document) if document else None

    def set_photo_url(
        self, registration_id: str, photo_url: str
    ) -> Optional[RegistrationRecord]:
        if not ObjectId.is_valid(registration_id):
            return None
        with _storage_errors(PyMongoError):
            document = self.collection.find_one_and_update(
                {"_id": ObjectId(registration_id)},
                {"$set": {"photoUrl": photo_url}},
                return_document=ReturnDocument.AFTER,
            )
        return self._to_record(document) if document else None

    def list_registrations(self) -> list[RegistrationRecord]:
        with _storage_errors(PyMongoError):
            cursor = self.collection.find().sort(
                [("registrationDate", DESCENDING), ("_id", DESCENDING)]
            )
            return [self._to_record(document) for document in cursor]


Base = declarative_base()


class RegistrationRow(Base):
    __tablename__ = "registrations"

    id = Column(String, primary_key=True)
    registration_date = Column(DateTime(timezone=True), nullable=False, index=True)
    document = Column(JSON, nullable=False)
