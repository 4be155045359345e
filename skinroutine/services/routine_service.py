"""
RoutineService boundary: the only place the pipeline waits on I/O.

recommend(db, profile) awaits the catalog read, derives the premium set and hands both to
the synchronous build_routine.
"""

import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from skinroutine.config import Settings
from skinroutine.repository import CatalogRepository
from skinroutine.schemas import Profile, Routine
from skinroutine.services.diversity import DiversityStore
from skinroutine.services.premium import premium_ids
from skinroutine.services.routine_filter import build_routine

logger = logging.getLogger(__name__)

repo = CatalogRepository()


async def recommend(
    db: AsyncSession,
    profile: Profile,
    *,
    store: Optional[DiversityStore] = None,
    repository: Optional[CatalogRepository] = None,
    settings: Optional[Settings] = None,
) -> Routine:
    catalog = await (repository or repo).get_all(db)
    if not catalog:
        logger.warning("Catalog is empty, routine will only contain advisory notes")
    return build_routine(
        profile,
        catalog,
        store=store,
        premium=premium_ids(catalog),
        settings=settings,
    )
