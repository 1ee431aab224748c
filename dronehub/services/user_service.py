from __future__ import annotations

from datetime import datetime

from sqlmodel import Session, select

from dronehub.domain.models import User, UserCreate, UserRead, UserUpdate, now_utc, row_payload
from dronehub.infra.store import DuplicateKeyError, EntityStore
from dronehub.services.relationship_service import assigned_project_ids, drop_memberships

DUPLICATE_EMAIL = "User with this email already exists"


class UserError(Exception):
    pass


class ConflictError(UserError):
    pass


def user_read(session: Session, user: User) -> UserRead:
    return UserRead.model_validate(
        row_payload(user, assigned_projects=assigned_project_ids(session, user.id))
    )


class UserService:
    def __init__(self, store: EntityStore) -> None:
        self._store = store

    def _save(self, session: Session, user: User) -> UserRead:
        session.add(user)
        try:
            self._store.commit(session, DUPLICATE_EMAIL)
        except DuplicateKeyError as exc:
            raise ConflictError(str(exc)) from exc
        session.refresh(user)
        return user_read(session, user)

    def create_user(
        self,
        payload: UserCreate,
        *,
        user_id: str | None = None,
        created_at: datetime | None = None,
    ) -> UserRead:
        user = User(
            name=payload.name,
            email=payload.email,
            role=payload.role,
            meta=dict(payload.metadata),
            created_at=created_at or now_utc(),
        )
        if user_id:
            user.id = user_id
        with self._store.session() as session:
            return self._save(session, user)

    def list_users(self) -> list[UserRead]:
        with self._store.session() as session:
            rows = session.exec(select(User).order_by(User.seq)).all()
            return [user_read(session, item) for item in rows]

    def get_user(self, user_id: str) -> UserRead | None:
        with self._store.session() as session:
            user = session.get(User, user_id)
            return user_read(session, user) if user is not None else None

    def find_by_email(self, email: str) -> UserRead | None:
        with self._store.session() as session:
            user = session.exec(select(User).where(User.email == email)).first()
            return user_read(session, user) if user is not None else None

    def update_user(self, user_id: str, payload: UserUpdate) -> UserRead | None:
        changes = {key: value for key, value in payload.model_dump(exclude_unset=True).items() if value is not None}
        with self._store.session() as session:
            user = session.get(User, user_id)
            if user is None:
                return None
            for key, value in changes.items():
                setattr(user, "meta" if key == "metadata" else key, value)
            return self._save(session, user)

    def delete_user(self, user_id: str) -> bool:
        with self._store.session() as session:
            user = session.get(User, user_id)
            if user is None:
                return False
            drop_memberships(session, user_id=user_id)
            session.delete(user)
            session.commit()
        return True
