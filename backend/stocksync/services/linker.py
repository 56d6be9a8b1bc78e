"""EAN linker - reconciles staged local products with the remote mirror.

Both sides are joined on a normalized code (digits only). For each staged
product:

- no usable code           -> missing_ean_src issue
- no remote candidate      -> missing_in_shop_by_ean issue
- exactly one candidate    -> cross-reference written onto the remote row
- several candidates       -> duplicate_ean_shop issue listing all of them

Remote items whose code does not occur locally yield one
missing_in_magazine_by_ean issue per code.

Issues in the configured scope are purged first so resolved discrepancies
disappear; the rest are upserted on (product_id, reason, code) so a run with
unchanged inputs leaves an identical issue set.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Literal

from sqlalchemy import delete, func, select, update
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from stocksync.core.logging import get_logger
from stocksync.db.models import LinkIssue, LinkIssueReason, RemoteProduct, StagingProduct
from stocksync.utils.parsing import normalize_ean

logger = get_logger(__name__)

# Debug samples logged per outcome
MAX_DEBUG_SAMPLES = 10

# Rows per multi-row issue upsert
ISSUE_BATCH_SIZE = 500

PurgeScope = Literal["global", "file"]


class LinkerError(Exception):
    """Raised when a linking pass fails and was rolled back."""

    pass


@dataclass
class LinkResult:
    """Counters of one linking pass."""

    import_id: int
    matched: int = 0
    missing_in_shop: int = 0
    duplicates: int = 0
    missing_source_ean: int = 0
    missing_in_magazine: int = 0
    remote_without_ean: int = 0
    skipped: bool = False

    @property
    def issues(self) -> int:
        """Number of issues derived in this pass."""
        return (
            self.missing_in_shop
            + self.duplicates
            + self.missing_source_ean
            + self.missing_in_magazine
        )


class EanLinker:
    """Links staged products to remote mirror rows by normalized EAN."""

    def __init__(self, db: AsyncSession, *, purge_scope: PurgeScope = "global"):
        """Initialize the linker.

        Args:
            db: AsyncSession for database operations. The linker commits or
                rolls back this session itself.
            purge_scope: "global" rebuilds every issue and cross-reference;
                "file" only replaces issues derived from the same import id.
        """
        if purge_scope not in ("global", "file"):
            raise ValueError(f"Unknown purge scope: {purge_scope!r}")
        self.db = db
        self.purge_scope = purge_scope
        self._pending_issues: list[dict[str, Any]] = []

    async def link(self, import_id: int) -> LinkResult:
        """Run a full linking pass for the staging rows of one import.

        Raises:
            LinkerError: If any read or write fails; nothing is persisted.
        """
        try:
            result = await self._link(import_id)
            await self.db.commit()
            return result
        except Exception as e:
            await self.db.rollback()
            logger.error(
                "ean_linking_failed",
                import_id=import_id,
                error=str(e),
                exc_info=True,
            )
            raise LinkerError(f"Linking import {import_id} failed: {e}") from e
        finally:
            self._pending_issues = []

    async def _link(self, import_id: int) -> LinkResult:
        result = LinkResult(import_id=import_id)

        await self._purge(import_id)

        remote_count = await self.db.scalar(select(func.count()).select_from(RemoteProduct))
        if not remote_count:
            logger.warning(
                "linker_remote_mirror_empty",
                import_id=import_id,
                hint="skipping until the cache sweeper has populated the mirror",
            )
            result.skipped = True
            return result

        staged = (
            await self.db.execute(
                select(StagingProduct.product_id, StagingProduct.code).where(
                    StagingProduct.import_id == import_id
                )
            )
        ).all()
        remote = (
            await self.db.execute(select(RemoteProduct.remote_id, RemoteProduct.ean))
        ).all()

        # Remote index: normalized code -> remote ids
        by_ean: dict[str, list[int]] = {}
        for remote_id, ean in remote:
            code = normalize_ean(ean)
            if not code:
                result.remote_without_ean += 1
                continue
            by_ean.setdefault(code, []).append(remote_id)

        logger.debug(
            "linker_input_stats",
            import_id=import_id,
            staging_items=len(staged),
            cache_items=len(remote),
            cache_empty_ean=result.remote_without_ean,
            cache_index_keys=len(by_ean),
        )

        matches: dict[int, int] = {}  # remote_id -> product_id
        local_codes: set[str] = set()

        for product_id, raw_code in staged:
            code = normalize_ean(raw_code)

            if not code:
                result.missing_source_ean += 1
                self._sample("linker_empty_source_ean", result.missing_source_ean,
                             product_id=product_id, raw_code=raw_code)
                self._add_issue(
                    import_id,
                    product_id=product_id,
                    reason=LinkIssueReason.MISSING_EAN_SRC,
                    code="",
                    raw_code=raw_code,
                    remote_ids=[],
                    details="Export has no EAN for this product (code empty or non-numeric)",
                )
                continue

            local_codes.add(code)
            candidates = by_ean.get(code, [])

            if not candidates:
                result.missing_in_shop += 1
                self._sample("linker_no_match", result.missing_in_shop,
                             product_id=product_id, ean=code)
                self._add_issue(
                    import_id,
                    product_id=product_id,
                    reason=LinkIssueReason.MISSING_IN_SHOP_BY_EAN,
                    code=code,
                    raw_code=raw_code,
                    remote_ids=[],
                    details=f"No remote product with EAN={code}",
                )
            elif len(candidates) == 1:
                matches[candidates[0]] = product_id
                result.matched += 1
                self._sample("linker_matched", result.matched,
                             product_id=product_id, ean=code, remote_id=candidates[0])
            else:
                result.duplicates += 1
                self._sample("linker_multi_match", result.duplicates,
                             product_id=product_id, ean=code, remote_ids=candidates)
                self._add_issue(
                    import_id,
                    product_id=product_id,
                    reason=LinkIssueReason.DUPLICATE_EAN_SHOP,
                    code=code,
                    raw_code=raw_code,
                    remote_ids=candidates,
                    details=(
                        f"EAN={code} occurs {len(candidates)} times in the shop "
                        f"(remote ids: {candidates})"
                    ),
                )

        # Reverse pass: remote items with no local counterpart
        for code, remote_ids in by_ean.items():
            if code in local_codes:
                continue
            result.missing_in_magazine += 1
            self._sample("linker_missing_in_magazine", result.missing_in_magazine,
                         ean=code, remote_ids=remote_ids)
            self._add_issue(
                import_id,
                product_id=0,
                reason=LinkIssueReason.MISSING_IN_MAGAZINE_BY_EAN,
                code=code,
                raw_code=code,
                remote_ids=remote_ids,
                details=(
                    f"Product with EAN={code} exists in the shop "
                    f"(remote ids: {remote_ids}) but not in the warehouse export"
                ),
            )

        if matches:
            await self.db.execute(
                update(RemoteProduct),
                [
                    {"remote_id": remote_id, "local_product_id": product_id}
                    for remote_id, product_id in matches.items()
                ],
            )
        await self._flush_issues()

        logger.info(
            "ean_linking_finished",
            import_id=import_id,
            purge_scope=self.purge_scope,
            matched_by_ean=result.matched,
            missing_in_shop_by_ean=result.missing_in_shop,
            duplicate_ean_shop=result.duplicates,
            missing_ean_src=result.missing_source_ean,
            missing_in_magazine_by_ean=result.missing_in_magazine,
        )
        return result

    async def _purge(self, import_id: int) -> None:
        """Remove issues (and, globally, cross-references) about to be rebuilt."""
        if self.purge_scope == "global":
            await self.db.execute(delete(LinkIssue))
            await self.db.execute(
                update(RemoteProduct)
                .where(RemoteProduct.local_product_id.is_not(None))
                .values(local_product_id=None)
            )
        else:
            await self.db.execute(
                delete(LinkIssue).where(LinkIssue.import_id == import_id)
            )

    def _add_issue(
        self,
        import_id: int,
        *,
        product_id: int,
        reason: LinkIssueReason,
        code: str,
        raw_code: str,
        remote_ids: list[int],
        details: str,
    ) -> None:
        now = datetime.now(timezone.utc)
        self._pending_issues.append(
            {
                "product_id": product_id,
                "reason": reason,
                "code": code,
                "import_id": import_id,
                "raw_code": (raw_code or "").strip(),
                "remote_ids": json.dumps(sorted(remote_ids)),
                "details": details,
                "created_at": now,
                "updated_at": now,
            }
        )

    async def _flush_issues(self) -> None:
        """Upsert collected issues in batches keyed on (product_id, reason, code)."""
        for start in range(0, len(self._pending_issues), ISSUE_BATCH_SIZE):
            batch = self._pending_issues[start:start + ISSUE_BATCH_SIZE]
            stmt = sqlite_insert(LinkIssue).values(batch)
            stmt = stmt.on_conflict_do_update(
                index_elements=["product_id", "reason", "code"],
                set_={
                    "import_id": stmt.excluded.import_id,
                    "raw_code": stmt.excluded.raw_code,
                    "remote_ids": stmt.excluded.remote_ids,
                    "details": stmt.excluded.details,
                    "updated_at": stmt.excluded.updated_at,
                },
            )
            await self.db.execute(stmt)
        self._pending_issues = []

    @staticmethod
    def _sample(event: str, count: int, **fields: Any) -> None:
        if count <= MAX_DEBUG_SAMPLES:
            logger.debug(event, **fields)
