"""
Account retirement orchestration.

One batch runs in one transaction:

    discover schema -> load accounts -> archive -> preserve history -> cascade delete

Any exception rolls the whole batch back, so a caller never observes a
partially retired batch.
"""

import logging
from typing import Dict, Iterable, List, Optional, Sequence

from sqlalchemy import literal_column, select, table, column
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import settings
from core.exceptions import InputValidationError, RetirementException
from retirement.archive_writer import ArchiveWriter
from retirement.cascade import CascadeDeleter
from retirement.chunking import chunked, normalize_ids
from retirement.identifiers import IdentifierResolver, compute_full_name
from retirement.plan import RetirementPlan, build_plan
from retirement.profiles import RoleProfile
from retirement.records import ArchivedAccount, RetirementResult, SourceRecordBundle
from retirement.rows import RowAccessor
from retirement.unit_of_work import UnitOfWork

logger = logging.getLogger(__name__)


def rows_by_key_query(table_name: str, key_column: str, ids: Sequence[int], for_update: bool = False):
    """Full rows whose ``key_column`` is in ``ids``, optionally row-locked."""
    source = table(table_name, column(key_column))
    stmt = select(literal_column("*")).select_from(source).where(source.c[key_column].in_(list(ids)))
    if for_update:
        # Rendered as nothing on dialects without row locks (SQLite)
        stmt = stmt.with_for_update()
    return stmt


class RetirementCoordinator:
    """
    Retires batches of accounts of one role.

    Usage:
        coordinator = RetirementCoordinator(session, get_profile("teacher"))
        result = await coordinator.retire([42, 43], reason="Resigned")
    """

    def __init__(
        self,
        session: AsyncSession,
        profile: RoleProfile,
        chunk_size: Optional[int] = None,
        drift_policy: Optional[str] = None
    ):
        self.session = session
        self.profile = profile
        self.chunk_size = chunk_size or settings.RETIREMENT_CHUNK_SIZE
        self.drift_policy = (drift_policy or settings.SCHEMA_DRIFT_POLICY).lower()
        self.resolver = IdentifierResolver(profile.alternate_id_columns)

    async def retire(self, user_ids: Iterable, reason: Optional[str] = None) -> RetirementResult:
        """
        Archive and delete the given accounts.

        Ids without a live account are omitted from the result, unless they
        were archived by an earlier call, in which case that archive entry
        is reported again.

        Raises:
            InputValidationError: no usable ids were supplied
            PreconditionError: archive or users table unavailable
            TransientDatabaseError: the database failed; nothing was changed
        """
        ids = normalize_ids(user_ids)
        if not ids:
            raise InputValidationError(
                "At least one valid user id is required",
                context={"field_name": "userIds", "received": str(user_ids)[:200]}
            )

        reason = (reason or "").strip() or settings.DEFAULT_ARCHIVE_REASON
        label = f"retire:{self.profile.role}"

        logger.info(f"Retiring {len(ids)} {self.profile.label} account(s)")

        try:
            async with UnitOfWork(self.session, label=label) as uow:
                result = await self._retire_batch(uow, ids, reason)
        except RetirementException as e:
            logger.error(
                f"Retirement of {len(ids)} {self.profile.label} account(s) failed: {e.message}",
                extra={"error_context": e.to_dict()}
            )
            raise

        logger.info(f"Retirement finished: {result.summary()}")
        return result

    async def _retire_batch(self, uow: UnitOfWork, ids: List[int], reason: str) -> RetirementResult:
        plan = await build_plan(uow, self.profile, self.drift_policy)
        result = RetirementResult(role=self.profile.role, warnings=list(plan.warnings))

        bundles = await self._load_bundles(uow, plan, ids)
        by_id = {bundle.primary_id: bundle for bundle in bundles}

        writer = ArchiveWriter(uow, plan, self.chunk_size)
        missing = [i for i in ids if i not in by_id]
        previously_archived = await writer.find_archived(missing)

        for bundle in bundles:
            outcome = await writer.archive_one(bundle, reason)
            bundle.archived_id = outcome.archived_id
            if outcome.created:
                result.archives_created += 1
            else:
                result.archives_reused += 1

            if outcome.archived_id is not None:
                result.archive_ids[bundle.primary_id] = outcome.archived_id
                if bundle.alternate is not None:
                    result.alternate_archive_ids[bundle.alternate.text] = outcome.archived_id

        # History must be copied while the live rows still exist
        for bundle in bundles:
            result.history_rows_preserved += await writer.preserve_auxiliary(bundle)

        deleter = CascadeDeleter(uow, plan, self.chunk_size)
        result.rows_deleted = await deleter.delete_dependents(bundles)

        for primary_id in ids:
            bundle = by_id.get(primary_id)
            if bundle is not None:
                result.archived.append(ArchivedAccount(
                    user_id=primary_id,
                    name=compute_full_name(bundle.user_row),
                    email=bundle.user_row.get_text("email"),
                    archived_id=bundle.archived_id,
                ))
            elif primary_id in previously_archived:
                result.archived.append(previously_archived[primary_id])
            else:
                result.not_found.append(primary_id)

        if result.not_found:
            logger.info(f"No account found for ids {result.not_found}; omitted")

        return result

    async def _load_bundles(
        self,
        uow: UnitOfWork,
        plan: RetirementPlan,
        ids: Sequence[int]
    ) -> List[SourceRecordBundle]:
        # Overlapping batches serialise on the users rows; the later one then
        # finds them gone and reports the earlier archive entry
        users = await self._load_rows(uow, plan.users.name, plan.user_id_column, ids, for_update=True)

        role_rows: Dict[int, RowAccessor] = {}
        if plan.role_table is not None and plan.role_lookup_column is not None:
            role_rows = await self._load_rows(
                uow, plan.role_table.name, plan.role_lookup_column, list(users)
            )

        bundles = []
        for primary_id in ids:
            user_row = users.get(primary_id)
            if user_row is None:
                continue
            role_row = role_rows.get(primary_id)
            bundles.append(SourceRecordBundle(
                primary_id=primary_id,
                user_row=user_row,
                role_row=role_row,
                alternate=self.resolver.resolve(primary_id, role_row),
            ))
        return bundles

    async def _load_rows(
        self,
        uow: UnitOfWork,
        table_name: str,
        key_column: str,
        ids: Sequence[int],
        for_update: bool = False
    ) -> Dict[int, RowAccessor]:
        """Fetch full rows keyed by ``key_column``; first row per id wins."""
        rows: Dict[int, RowAccessor] = {}
        if not ids:
            return rows

        for chunk in chunked(list(ids), self.chunk_size):
            result = await uow.execute(rows_by_key_query(table_name, key_column, chunk, for_update))
            for mapping in result.mappings().all():
                row = RowAccessor(mapping)
                key = row.get_int(key_column)
                if key is not None and key not in rows:
                    rows[key] = row
        return rows
