"""Seed an idempotent demo tenant for local/non-production environments."""

from __future__ import annotations

import argparse
import asyncio
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from lingobook.core.config import get_settings
from lingobook.core.database import SessionLocal, close_engine
from lingobook.core.enums import RoleEnum
from lingobook.core.security import hash_password, verify_password
from lingobook.modules.catalog.models import LessonType
from lingobook.modules.identity.models import Student, User
from lingobook.modules.scheduling.models import AvailabilityRule
from lingobook.modules.tenants.models import Tenant, TenantSettings

DEMO_PASSWORD = "DemoPass123!"

DEMO_TENANT_SLUG = "demo"
DEMO_ADMIN_EMAIL = "demo-admin@lingobook.dev"
DEMO_STUDENT_EMAIL = "demo-student@lingobook.dev"

# Monday..Friday with 0 = Sunday.
DEMO_RULE_WEEKDAYS = (1, 2, 3, 4, 5)
DEMO_RULE_HOURS = ("09:00", "18:00")

DEMO_LESSON_TYPES = (
    {"name": "Conversation class", "duration_min": 60, "price_amount": 80000},
    {"name": "Pack of 8 classes", "duration_min": 60, "price_amount": 560000, "is_pack_type": True, "pack_size": 8},
)


@dataclass(slots=True)
class SeedStats:
    tenant_created: bool = False
    users_created: int = 0
    users_updated: int = 0
    lesson_types_created: int = 0
    rules_created: int = 0


async def _ensure_tenant(session: AsyncSession) -> tuple[Tenant, bool]:
    tenant = await session.scalar(select(Tenant).where(Tenant.slug == DEMO_TENANT_SLUG))
    if tenant is not None:
        return tenant, False

    tenant = Tenant(slug=DEMO_TENANT_SLUG, name="Demo English School", timezone="America/Bogota", currency="COP")
    session.add(tenant)
    await session.flush()
    session.add(TenantSettings(tenant_id=tenant.id))
    await session.flush()
    return tenant, True


async def _ensure_user(
    session: AsyncSession,
    *,
    tenant: Tenant,
    email: str,
    name: str,
    role: RoleEnum,
) -> tuple[User, bool]:
    user = await session.scalar(select(User).where(User.email == email))
    if user is None:
        user = User(
            tenant_id=tenant.id,
            email=email,
            name=name,
            password_hash=hash_password(DEMO_PASSWORD),
            role=role,
            is_active=True,
        )
        session.add(user)
        await session.flush()
        return user, True

    user.tenant_id = tenant.id
    user.role = role
    user.is_active = True
    if not verify_password(DEMO_PASSWORD, user.password_hash):
        user.password_hash = hash_password(DEMO_PASSWORD)
    await session.flush()
    return user, False


async def _ensure_student(session: AsyncSession, tenant: Tenant, user: User) -> None:
    existing = await session.scalar(
        select(Student).where(Student.tenant_id == tenant.id, Student.user_id == user.id),
    )
    if existing is None:
        session.add(Student(tenant_id=tenant.id, user_id=user.id, level="A2"))
        await session.flush()


async def _ensure_lesson_types(session: AsyncSession, tenant: Tenant) -> int:
    created = 0
    for values in DEMO_LESSON_TYPES:
        existing = await session.scalar(
            select(LessonType).where(LessonType.tenant_id == tenant.id, LessonType.name == values["name"]),
        )
        if existing is not None:
            continue
        session.add(LessonType(tenant_id=tenant.id, currency=tenant.currency, **values))
        created += 1
    await session.flush()
    return created


async def _ensure_rules(session: AsyncSession, tenant: Tenant) -> int:
    start_time, end_time = DEMO_RULE_HOURS
    created = 0
    for weekday in DEMO_RULE_WEEKDAYS:
        existing = await session.scalar(
            select(AvailabilityRule).where(
                AvailabilityRule.tenant_id == tenant.id,
                AvailabilityRule.weekday == weekday,
                AvailabilityRule.start_time == start_time,
            ),
        )
        if existing is not None:
            continue
        session.add(
            AvailabilityRule(
                tenant_id=tenant.id,
                weekday=weekday,
                start_time=start_time,
                end_time=end_time,
                slot_minutes=60,
            ),
        )
        created += 1
    await session.flush()
    return created


async def _run_seed(*, allow_production: bool) -> SeedStats:
    settings = get_settings()
    app_env = settings.app_env.strip().lower()
    if app_env in {"production", "prod"} and not allow_production:
        raise RuntimeError(
            "Refusing to seed demo data in production. "
            "Re-run with --allow-production only if you are absolutely sure.",
        )

    stats = SeedStats()
    async with SessionLocal() as session:
        try:
            tenant, stats.tenant_created = await _ensure_tenant(session)
            _, admin_created = await _ensure_user(
                session,
                tenant=tenant,
                email=DEMO_ADMIN_EMAIL,
                name="Demo Admin",
                role=RoleEnum.TENANT_ADMIN,
            )
            student_user, student_created = await _ensure_user(
                session,
                tenant=tenant,
                email=DEMO_STUDENT_EMAIL,
                name="Demo Student",
                role=RoleEnum.STUDENT,
            )
            await _ensure_student(session, tenant, student_user)
            stats.users_created = sum([admin_created, student_created])
            stats.users_updated = 2 - stats.users_created
            stats.lesson_types_created = await _ensure_lesson_types(session, tenant)
            stats.rules_created = await _ensure_rules(session, tenant)
            await session.commit()
        except Exception:
            await session.rollback()
            raise
    return stats


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description=(
            "Seed idempotent demo data for LingoBook (tenant, admin and student users, "
            "lesson types, weekday availability rules)."
        ),
    )
    parser.add_argument(
        "--allow-production",
        action="store_true",
        help="Allow seeding even when APP_ENV is production/prod.",
    )
    return parser


def _print_summary(stats: SeedStats) -> None:
    print("Demo seed completed.")
    print(f"- Tenant created: {stats.tenant_created} (slug: {DEMO_TENANT_SLUG})")
    print(f"- Users created: {stats.users_created}")
    print(f"- Users updated: {stats.users_updated}")
    print(f"- Lesson types created: {stats.lesson_types_created}")
    print(f"- Availability rules created: {stats.rules_created}")
    print("")
    print("Demo credentials (non-production only):")
    print(f"- admin:   {DEMO_ADMIN_EMAIL} / {DEMO_PASSWORD}")
    print(f"- student: {DEMO_STUDENT_EMAIL} / {DEMO_PASSWORD}")


def main() -> int:
    parser = _build_parser()
    args = parser.parse_args()
    try:
        stats = asyncio.run(_run_seed(allow_production=args.allow_production))
    except Exception as exc:
        print(f"Demo seed failed: {exc}")
        return 1
    finally:
        asyncio.run(close_engine())
    _print_summary(stats)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
