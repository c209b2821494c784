"""Seeding and token helpers shared by the integration tests."""

import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Optional

from jose import jwt
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from control_tower.models.disbursement import Disbursement
from control_tower.models.user import ProjectMember, User

TEST_JWT_SECRET = "test-secret-not-for-production"


async def add_member(
    session_factory: async_sessionmaker[AsyncSession],
    project_id: uuid.UUID,
    username: str,
    role: str,
) -> User:
    async with session_factory() as session, session.begin():
        user = User(username=username, email=f"{username}@example.com")
        session.add(user)
        await session.flush()
        session.add(ProjectMember(project_id=project_id, user_id=user.id, role=role))
    return user


async def add_disbursement(
    session_factory: async_sessionmaker[AsyncSession],
    project_id: uuid.UUID,
    amount,
    status: str = "paid",
    paid_at: Optional[datetime] = None,
    recipient_id: Optional[uuid.UUID] = None,
) -> Disbursement:
    """Seed a ledger row directly, bypassing the workflow."""
    async with session_factory() as session, session.begin():
        d = Disbursement(
            project_id=project_id,
            amount=Decimal(str(amount)),
            status=status,
            category="Payroll",
            recipient_id=recipient_id,
            created_at=datetime.utcnow(),
            paid_at=paid_at if status == "paid" else None,
        )
        session.add(d)
    return d


async def fetch_all(session_factory, model, *criteria) -> list:
    async with session_factory() as session, session.begin():
        result = await session.execute(select(model).where(*criteria))
        return list(result.scalars().all())


def make_token(user_id: uuid.UUID, token_type: str = "access", expires_in: int = 900) -> str:
    now = datetime.now(timezone.utc)
    claims = {
        "sub": str(user_id),
        "email": "user@example.com",
        "iat": now,
        "exp": now + timedelta(seconds=expires_in),
        "type": token_type,
    }
    return jwt.encode(claims, TEST_JWT_SECRET, algorithm="HS256")


def auth_headers(user: User) -> dict:
    return {"Authorization": f"Bearer {make_token(user.id)}"}
