# app/models/user.py
import uuid
from datetime import datetime, timezone

from sqlmodel import SQLModel, Field


class User(SQLModel, table=True):
    """
    Owner of a persisted cart and of signed-in orders.

    id is the identity provider's subject (JWT "sub"); the row is created
    on the first authenticated request. Guests never get a row.
    """

    __tablename__ = "users"

    id: uuid.UUID = Field(primary_key=True, index=True)
    email: str = Field(unique=True, index=True, max_length=255)
    name: str = Field(max_length=100)

    # user | admin
    role: str = Field(default="user", index=True)

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )
