"""Duplicate detection for imported scholar rows.

Cross-references validated rows against existing profiles by CPF (primary
identifier) and email (secondary identifier). Existing identities are read in
one bulk fetch and indexed into two dicts, so the per-row pass is lookups only.

A CPF match always wins over an email match, even when the two keys point at
different stored profiles.
"""
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.schemas.imports import DuplicateAction, DuplicateInfo, DuplicateStatus, ParsedRow
from app.services.import_validation import only_digits

logger = logging.getLogger(__name__)

DUPLICATE_REASON = "CPF já cadastrado"
CONFLICT_REASON = "E-mail já cadastrado com outro CPF"


@dataclass(frozen=True)
class IdentityRecord:
    profile_id: str
    user_id: str | None
    cpf: str | None
    email: str | None


IdentityFetcher = Callable[[], Awaitable[list[IdentityRecord]]]


# ─── Key normalization ───

def normalize_cpf(value: object) -> str:
    return only_digits(value) if value is not None else ""


def normalize_email(value: object) -> str:
    return str(value).strip().lower() if value is not None else ""


# ─── Storage ───

async def fetch_profile_identities(db: AsyncSession) -> list[IdentityRecord]:
    """Bulk-read the CPF/email of every stored profile."""
    from app.models.profile import Profile

    result = await db.execute(
        select(Profile.id, Profile.user_id, Profile.cpf, Profile.email)
    )
    return [
        IdentityRecord(
            profile_id=str(profile_id),
            user_id=str(user_id) if user_id else None,
            cpf=cpf,
            email=email,
        )
        for profile_id, user_id, cpf, email in result.all()
    ]


def profile_fetcher(db: AsyncSession) -> IdentityFetcher:
    async def fetch() -> list[IdentityRecord]:
        try:
            return await fetch_profile_identities(db)
        except SQLAlchemyError:
            # leave the session usable for the audit write that follows
            await db.rollback()
            raise
    return fetch


# ─── Classification ───

def build_indexes(
    identities: list[IdentityRecord],
) -> tuple[dict[str, IdentityRecord], dict[str, IdentityRecord]]:
    """Index identities by digits-only CPF and lower-cased email."""
    by_cpf: dict[str, IdentityRecord] = {}
    by_email: dict[str, IdentityRecord] = {}
    for identity in identities:
        cpf = normalize_cpf(identity.cpf)
        if cpf:
            by_cpf[cpf] = identity
        email = normalize_email(identity.email)
        if email:
            by_email[email] = identity
    return by_cpf, by_email


def classify_row(
    row: ParsedRow,
    by_cpf: dict[str, IdentityRecord],
    by_email: dict[str, IdentityRecord],
) -> DuplicateInfo:
    cpf = normalize_cpf(row.data.get("cpf"))
    email = normalize_email(row.data.get("email"))

    existing = by_cpf.get(cpf) if cpf else None
    if existing is not None:
        return DuplicateInfo(
            status=DuplicateStatus.duplicate,
            existing_profile_id=existing.profile_id,
            existing_user_id=existing.user_id,
            conflict_reason=DUPLICATE_REASON,
            action=DuplicateAction.skip,
        )

    existing = by_email.get(email) if email else None
    if existing is not None:
        return DuplicateInfo(
            status=DuplicateStatus.conflict,
            existing_profile_id=existing.profile_id,
            existing_user_id=existing.user_id,
            conflict_reason=CONFLICT_REASON,
            action=DuplicateAction.skip,
        )

    return DuplicateInfo(status=DuplicateStatus.new, action=DuplicateAction.import_)


async def check_duplicates(rows: list[ParsedRow], fetch_identities: IdentityFetcher) -> list[ParsedRow]:
    """Attach DuplicateInfo to every valid row.

    Invalid rows pass through untouched. If the bulk fetch fails the rows are
    returned without duplicate info so the preview can still be shown.

    Args:
        rows: Validated rows in file order.
        fetch_identities: Async callable returning the stored identities.

    Returns:
        The same row list, in the same order.
    """
    try:
        identities = await fetch_identities()
    except Exception as exc:
        logger.warning("check_duplicates: identity fetch failed, skipping classification: %s", exc)
        return rows

    by_cpf, by_email = build_indexes(identities)
    counts = {status: 0 for status in DuplicateStatus}
    for row in rows:
        if not row.is_valid:
            continue
        row.duplicate_info = classify_row(row, by_cpf, by_email)
        counts[row.duplicate_info.status] += 1

    logger.info(
        "check_duplicates: %d existing identities, new=%d duplicate=%d conflict=%d",
        len(identities),
        counts[DuplicateStatus.new],
        counts[DuplicateStatus.duplicate],
        counts[DuplicateStatus.conflict],
    )
    return rows
