from __future__ import annotations

import itertools
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, field_validator
from pydantic import Field as PydanticField
from pydantic.alias_generators import to_camel
from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel

LOG_RETENTION = 10_000

_sequence = itertools.count(1)


def now_utc() -> datetime:
    return datetime.now(UTC)


def new_id() -> str:
    return str(uuid4())


def next_seq() -> int:
    """Monotonic insertion counter shared by every table."""
    return next(_sequence)


class DroneStatus(StrEnum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    MAINTENANCE = "maintenance"
    PENDING = "pending"


class ControlStationStatus(StrEnum):
    ONLINE = "online"
    OFFLINE = "offline"
    MAINTENANCE = "maintenance"


class DockingStationStatus(StrEnum):
    AVAILABLE = "available"
    OCCUPIED = "occupied"
    MAINTENANCE = "maintenance"


class ProjectStatus(StrEnum):
    ACTIVE = "active"
    ARCHIVED = "archived"
    PLANNING = "planning"


class UserRole(StrEnum):
    ADMIN = "admin"
    OPERATOR = "operator"
    VIEWER = "viewer"


class LogType(StrEnum):
    PING = "ping"
    STATUS_UPDATE = "status_update"
    REGISTRATION = "registration"
    SYSTEM = "system"


class LogSeverity(StrEnum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


def default_location() -> dict[str, Any]:
    return {"lat": 0.0, "lng": 0.0}


# Tables. `meta` holds the entity's free-form metadata map; the name avoids
# SQLModel's own `metadata` attribute.


class Project(SQLModel, table=True):
    __tablename__ = "projects"

    id: str = Field(default_factory=new_id, primary_key=True)
    seq: int = Field(default_factory=next_seq, index=True)
    name: str = Field(index=True)
    description: str = ""
    status: ProjectStatus = Field(default=ProjectStatus.PLANNING, index=True)
    created_at: datetime = Field(default_factory=now_utc)
    updated_at: datetime = Field(default_factory=now_utc)
    meta: dict[str, Any] = Field(
        default_factory=dict,
        sa_column=Column(JSON, nullable=False),
    )


class ControlStation(SQLModel, table=True):
    __tablename__ = "control_stations"

    id: str = Field(default_factory=new_id, primary_key=True)
    seq: int = Field(default_factory=next_seq, index=True)
    name: str
    identifier: str = Field(index=True, unique=True)
    status: ControlStationStatus = Field(default=ControlStationStatus.OFFLINE, index=True)
    firmware_version: str = "1.0.0"
    location: dict[str, Any] = Field(
        default_factory=default_location,
        sa_column=Column(JSON, nullable=False),
    )
    configuration: dict[str, Any] = Field(
        default_factory=dict,
        sa_column=Column(JSON, nullable=False),
    )
    meta: dict[str, Any] = Field(
        default_factory=dict,
        sa_column=Column(JSON, nullable=False),
    )


class DockingStation(SQLModel, table=True):
    __tablename__ = "docking_stations"

    id: str = Field(default_factory=new_id, primary_key=True)
    seq: int = Field(default_factory=next_seq, index=True)
    name: str
    identifier: str = Field(index=True, unique=True)
    status: DockingStationStatus = Field(default=DockingStationStatus.AVAILABLE, index=True)
    firmware_version: str = "1.0.0"
    location: dict[str, Any] = Field(
        default_factory=default_location,
        sa_column=Column(JSON, nullable=False),
    )
    configuration: dict[str, Any] = Field(
        default_factory=dict,
        sa_column=Column(JSON, nullable=False),
    )
    meta: dict[str, Any] = Field(
        default_factory=dict,
        sa_column=Column(JSON, nullable=False),
    )


class Drone(SQLModel, table=True):
    __tablename__ = "drones"

    id: str = Field(default_factory=new_id, primary_key=True)
    seq: int = Field(default_factory=next_seq, index=True)
    name: str = Field(index=True)
    serial_number: str = Field(index=True, unique=True)
    status: DroneStatus = Field(default=DroneStatus.PENDING, index=True)
    firmware_version: str = "1.0.0"
    location: dict[str, Any] = Field(
        default_factory=default_location,
        sa_column=Column(JSON, nullable=False),
    )
    configuration: dict[str, Any] = Field(
        default_factory=dict,
        sa_column=Column(JSON, nullable=False),
    )
    meta: dict[str, Any] = Field(
        default_factory=dict,
        sa_column=Column(JSON, nullable=False),
    )
    project_id: str | None = Field(default=None, foreign_key="projects.id", index=True)
    control_station_id: str | None = Field(default=None, foreign_key="control_stations.id", index=True)
    docking_station_id: str | None = Field(default=None, foreign_key="docking_stations.id", index=True)
    registered_at: datetime = Field(default_factory=now_utc)
    last_ping: datetime | None = None


class User(SQLModel, table=True):
    __tablename__ = "users"

    id: str = Field(default_factory=new_id, primary_key=True)
    seq: int = Field(default_factory=next_seq, index=True)
    name: str
    email: str = Field(index=True, unique=True)
    role: UserRole = Field(default=UserRole.VIEWER, index=True)
    created_at: datetime = Field(default_factory=now_utc)
    meta: dict[str, Any] = Field(
        default_factory=dict,
        sa_column=Column(JSON, nullable=False),
    )


class ProjectMember(SQLModel, table=True):
    __tablename__ = "project_members"

    project_id: str = Field(foreign_key="projects.id", primary_key=True)
    user_id: str = Field(foreign_key="users.id", primary_key=True)
    seq: int = Field(default_factory=next_seq, index=True)


class LogEntry(SQLModel, table=True):
    __tablename__ = "logs"

    id: str = Field(default_factory=new_id, primary_key=True)
    seq: int = Field(default_factory=next_seq, index=True)
    type: LogType = Field(index=True)
    source: str = Field(index=True)
    message: str
    raw_message: str | None = None
    data: dict[str, Any] = Field(
        default_factory=dict,
        sa_column=Column(JSON, nullable=False),
    )
    severity: LogSeverity = Field(default=LogSeverity.INFO, index=True)
    timestamp: datetime = Field(default_factory=now_utc, index=True)


def row_payload(row: SQLModel, **extra: Any) -> dict[str, Any]:
    payload = row.model_dump()
    payload.pop("seq", None)
    if "meta" in payload:
        payload["metadata"] = payload.pop("meta")
    payload.update(extra)
    return payload


# API schemas. JSON on the wire is camelCase; Python code uses field names.


class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ReadModel(ApiModel):
    @field_validator("*", mode="after")
    @classmethod
    def _assume_utc(cls, value: Any) -> Any:
        # SQLite hands datetimes back without tzinfo.
        if isinstance(value, datetime) and value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value


class Location(BaseModel):
    lat: float
    lng: float
    address: str | None = None

    def as_record(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)


class DroneCreate(ApiModel):
    name: str = PydanticField(min_length=1)
    serial_number: str = PydanticField(min_length=1)
    status: DroneStatus = DroneStatus.PENDING
    firmware_version: str = "1.0.0"
    location: Location = PydanticField(default_factory=lambda: Location(lat=0.0, lng=0.0))
    configuration: dict[str, Any] = PydanticField(default_factory=dict)
    metadata: dict[str, Any] = PydanticField(default_factory=dict)


class DroneUpdate(ApiModel):
    name: str | None = None
    serial_number: str | None = None
    status: DroneStatus | None = None
    firmware_version: str | None = None
    location: Location | None = None
    configuration: dict[str, Any] | None = None
    metadata: dict[str, Any] | None = None
    last_ping: datetime | None = None


class DroneRead(ReadModel):
    id: str
    name: str
    serial_number: str
    status: DroneStatus
    firmware_version: str
    location: Location
    configuration: dict[str, Any] = PydanticField(default_factory=dict)
    metadata: dict[str, Any] = PydanticField(default_factory=dict)
    project_id: str | None = None
    control_station_id: str | None = None
    docking_station_id: str | None = None
    registered_at: datetime
    last_ping: datetime | None = None


class ControlStationCreate(ApiModel):
    name: str = PydanticField(min_length=1)
    identifier: str = PydanticField(min_length=1)
    status: ControlStationStatus = ControlStationStatus.OFFLINE
    firmware_version: str = "1.0.0"
    location: Location = PydanticField(default_factory=lambda: Location(lat=0.0, lng=0.0))
    configuration: dict[str, Any] = PydanticField(default_factory=dict)
    metadata: dict[str, Any] = PydanticField(default_factory=dict)


class ControlStationUpdate(ApiModel):
    name: str | None = None
    identifier: str | None = None
    status: ControlStationStatus | None = None
    firmware_version: str | None = None
    location: Location | None = None
    configuration: dict[str, Any] | None = None
    metadata: dict[str, Any] | None = None


class ControlStationRead(ReadModel):
    id: str
    name: str
    identifier: str
    status: ControlStationStatus
    firmware_version: str
    location: Location
    configuration: dict[str, Any] = PydanticField(default_factory=dict)
    metadata: dict[str, Any] = PydanticField(default_factory=dict)
    connected_drones: list[str] = PydanticField(default_factory=list)


class DockingStationCreate(ApiModel):
    name: str = PydanticField(min_length=1)
    identifier: str = PydanticField(min_length=1)
    status: DockingStationStatus = DockingStationStatus.AVAILABLE
    firmware_version: str = "1.0.0"
    location: Location = PydanticField(default_factory=lambda: Location(lat=0.0, lng=0.0))
    configuration: dict[str, Any] = PydanticField(default_factory=dict)
    metadata: dict[str, Any] = PydanticField(default_factory=dict)


class DockingStationUpdate(ApiModel):
    name: str | None = None
    identifier: str | None = None
    status: DockingStationStatus | None = None
    firmware_version: str | None = None
    location: Location | None = None
    configuration: dict[str, Any] | None = None
    metadata: dict[str, Any] | None = None


class DockingStationRead(ReadModel):
    id: str
    name: str
    identifier: str
    status: DockingStationStatus
    firmware_version: str
    location: Location
    configuration: dict[str, Any] = PydanticField(default_factory=dict)
    metadata: dict[str, Any] = PydanticField(default_factory=dict)
    connected_drones: list[str] = PydanticField(default_factory=list)


class ProjectCreate(ApiModel):
    name: str = PydanticField(min_length=1)
    description: str = ""
    status: ProjectStatus = ProjectStatus.PLANNING
    metadata: dict[str, Any] = PydanticField(default_factory=dict)


class ProjectUpdate(ApiModel):
    name: str | None = None
    description: str | None = None
    status: ProjectStatus | None = None
    metadata: dict[str, Any] | None = None


class ProjectRead(ReadModel):
    id: str
    name: str
    description: str = ""
    status: ProjectStatus
    assigned_drones: list[str] = PydanticField(default_factory=list)
    assigned_users: list[str] = PydanticField(default_factory=list)
    created_at: datetime
    updated_at: datetime
    metadata: dict[str, Any] = PydanticField(default_factory=dict)


class UserCreate(ApiModel):
    name: str = PydanticField(min_length=1)
    email: str = PydanticField(min_length=3)
    role: UserRole = UserRole.VIEWER
    metadata: dict[str, Any] = PydanticField(default_factory=dict)


class UserUpdate(ApiModel):
    name: str | None = None
    email: str | None = None
    role: UserRole | None = None
    metadata: dict[str, Any] | None = None


class UserRead(ReadModel):
    id: str
    name: str
    email: str
    role: UserRole
    assigned_projects: list[str] = PydanticField(default_factory=list)
    created_at: datetime
    metadata: dict[str, Any] = PydanticField(default_factory=dict)


class LogRead(ReadModel):
    id: str
    type: LogType
    source: str
    message: str
    raw_message: str | None = None
    data: dict[str, Any] = PydanticField(default_factory=dict)
    severity: LogSeverity = LogSeverity.INFO
    timestamp: datetime


class AssignmentRequest(ApiModel):
    target_id: str | None = None


class FleetSnapshot(ApiModel):
    drones: list[DroneRead] = PydanticField(default_factory=list)
    control_stations: list[ControlStationRead] = PydanticField(default_factory=list)
    docking_stations: list[DockingStationRead] = PydanticField(default_factory=list)
    projects: list[ProjectRead] = PydanticField(default_factory=list)
    users: list[UserRead] = PydanticField(default_factory=list)
    logs: list[LogRead] = PydanticField(default_factory=list)


class DashboardStatsRead(ApiModel):
    drones: int
    active_drones: int
    pending_drones: int
    control_stations: int
    online_control_stations: int
    docking_stations: int
    available_docking_stations: int
    projects: int
    active_projects: int
    users: int
    logs: int


class WebhookData(ApiModel):
    """Optional device payload carried in a webhook's `data` object."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    name: str | None = None
    status: Any = None
    firmware_version: str | None = None
    location: Location | None = None
    configuration: dict[str, Any] | None = None
    metadata: dict[str, Any] | None = None
