"""Database base, session setup and reference data seeding."""
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

import config

logger = logging.getLogger("nwn.db")


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


engine = create_async_engine(
    config.DATABASE_URL,
    echo=False,
)

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


async def _seed_reference_data(session: AsyncSession) -> None:
    """Insert roles, pages, default grants and the bootstrap admin if missing. Never overwrites rows."""
    from portal.models.page import BUILTIN_PAGES, Page
    from portal.models.page_access import DEFAULT_GRANTS, PageAccess
    from portal.models.role import ADMIN_ROLE_ID, BUILTIN_ROLES, Role
    from portal.models.user import User

    existing_roles = {r.id for r in (await session.execute(select(Role))).scalars()}
    for role_id, name, label in BUILTIN_ROLES:
        if role_id not in existing_roles:
            session.add(Role(id=role_id, name=name, label=label))

    pages = {p.slug: p for p in (await session.execute(select(Page))).scalars()}
    for slug, file_path, title in BUILTIN_PAGES:
        if slug not in pages:
            page = Page(slug=slug, file_path=file_path, title=title)
            session.add(page)
            pages[slug] = page
    await session.flush()

    grants = {
        (g.role_id, g.page_id) for g in (await session.execute(select(PageAccess))).scalars()
    }
    role_ids = {name: role_id for role_id, name, _ in BUILTIN_ROLES}
    wanted = [(ADMIN_ROLE_ID, slug, True) for slug in pages]
    for role_name, defaults in DEFAULT_GRANTS.items():
        wanted.extend((role_ids[role_name], slug, allowed) for slug, allowed in defaults.items())
    for role_id, slug, allowed in wanted:
        page = pages.get(slug)
        if page is None or (role_id, page.id) in grants:
            continue
        session.add(PageAccess(role_id=role_id, page_id=page.id, has_access=allowed))

    if config.INITIAL_ADMIN_PASSWORD:
        from portal.security import hash_password

        username = config.INITIAL_ADMIN_USERNAME.strip().lower()
        result = await session.execute(select(User).where(User.username == username))
        if result.scalar_one_or_none() is None:
            session.add(
                User(
                    username=username,
                    password_hash=hash_password(config.INITIAL_ADMIN_PASSWORD),
                    display_name="Administrator",
                    role_id=ADMIN_ROLE_ID,
                    is_active=True,
                )
            )
            logger.info("Created initial admin account '%s'", username)

    await session.commit()


async def init_db() -> None:
    """Create all tables and seed reference data."""
    # Import models so their tables are registered on Base.metadata
    import portal.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    async with async_session_factory() as session:
        await _seed_reference_data(session)
