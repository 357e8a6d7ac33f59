# deckshare/repositories/deck_repository.py
# Record store for decks, backed by PostgreSQL

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Iterable, Mapping, Optional

from sqlalchemy import or_, select, update
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.exc import IntegrityError

from deckshare.db.base import get_session
from deckshare.domain.deck import DeckRecord, DeckRef
from deckshare.middleware.error_handler import NotFoundError, ShortidCollisionError
from deckshare.models.deck_table import decks

_WRITABLE = {"shortid", "image", "image_version", "image_rendering"}


def _to_record(row: Mapping[str, Any]) -> DeckRecord:
    return DeckRecord(
        deckcode=row["deckcode"],
        shortid=row["shortid"],
        image=row["image"],
        image_version=row["image_version"],
        image_rendering=bool(row["image_rendering"]),
    )


def _check_fields(fields: Mapping[str, Any]) -> dict[str, Any]:
    unknown = set(fields) - _WRITABLE
    if unknown:
        raise ValueError(f"Unknown deck fields: {sorted(unknown)}")
    return dict(fields)


def _is_shortid_violation(exc: IntegrityError) -> bool:
    return "uq_decks_shortid" in str(exc.orig)


class DeckRepository:
    """Deck rows keyed by deckcode. Every method is one statement, one commit."""

    async def find_by_code(self, deckcode: str) -> Optional[DeckRecord]:
        async with get_session() as session:
            result = await session.execute(select(decks).where(decks.c.deckcode == deckcode))
            row = result.mappings().first()
            return _to_record(row) if row else None

    async def find_by_code_or_shortid(self, value: str) -> Optional[DeckRef]:
        stmt = (
            select(decks.c.shortid, decks.c.deckcode)
            .where(or_(decks.c.deckcode == value, decks.c.shortid == value))
            .limit(1)
        )
        async with get_session() as session:
            result = await session.execute(stmt)
            row = result.mappings().first()
            return DeckRef(shortid=row["shortid"], deckcode=row["deckcode"]) if row else None

    async def upsert(
        self,
        deckcode: str,
        create_fields: Mapping[str, Any],
        update_fields: Mapping[str, Any],
    ) -> DeckRecord:
        """Insert the deck or update the existing row, atomically.

        An empty update still touches the row so RETURNING yields it.
        """
        values = _check_fields(create_fields)
        changes = _check_fields(update_fields)
        stmt = insert(decks).values(deckcode=deckcode, **values)
        if changes:
            set_ = {**changes, "updated_at": datetime.now(timezone.utc)}
        else:
            set_ = {"deckcode": stmt.excluded.deckcode}
        stmt = stmt.on_conflict_do_update(
            index_elements=[decks.c.deckcode],
            set_=set_,
        ).returning(*decks.c)

        async with get_session() as session:
            try:
                result = await session.execute(stmt)
                row = result.mappings().one()
                await session.commit()
            except IntegrityError as e:
                await session.rollback()
                if _is_shortid_violation(e):
                    raise ShortidCollisionError(values.get("shortid", "")) from e
                raise
        return _to_record(row)

    async def update(self, deckcode: str, fields: Mapping[str, Any]) -> DeckRecord:
        changes = _check_fields(fields)
        stmt = (
            update(decks)
            .where(decks.c.deckcode == deckcode)
            .values(**changes, updated_at=datetime.now(timezone.utc))
            .returning(*decks.c)
        )
        async with get_session() as session:
            result = await session.execute(stmt)
            row = result.mappings().first()
            await session.commit()
        if row is None:
            raise NotFoundError(f"Deck not found: {deckcode}", details={"deckcode": deckcode})
        return _to_record(row)

    async def existing_shortids(self, candidates: Iterable[str]) -> set[str]:
        wanted = set(candidates)
        if not wanted:
            return set()
        async with get_session() as session:
            result = await session.execute(select(decks.c.shortid).where(decks.c.shortid.in_(wanted)))
            return {r[0] for r in result.fetchall()}

    async def release_stale_renders(self, older_than: timedelta) -> list[str]:
        """Clear render flags that outlived any plausible render."""
        cutoff = datetime.now(timezone.utc) - older_than
        stmt = (
            update(decks)
            .where(decks.c.image_rendering.is_(True), decks.c.updated_at < cutoff)
            .values(image_rendering=False, updated_at=datetime.now(timezone.utc))
            .returning(decks.c.deckcode)
        )
        async with get_session() as session:
            result = await session.execute(stmt)
            released = [r[0] for r in result.fetchall()]
            await session.commit()
        return released
