"""Unit tests for the scholar duplicate checker."""
import uuid
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from app.schemas.imports import DuplicateAction, DuplicateStatus, ParsedRow
from app.services.duplicate_checker import (
    CONFLICT_REASON,
    DUPLICATE_REASON,
    IdentityRecord,
    build_indexes,
    check_duplicates,
    fetch_profile_identities,
    profile_fetcher,
)


# ─── Fixtures ─────────────────────────────────────────────────────────────────

STORED = [
    IdentityRecord(profile_id="p1", user_id="u1", cpf="111.444.777-35", email="Ana@Example.com"),
    IdentityRecord(profile_id="p2", user_id=None, cpf="52998224725", email="bruno@example.com"),
    IdentityRecord(profile_id="p3", user_id="u3", cpf=None, email=None),
]


def _row(row_number: int, cpf: str | None, email: str | None, errors: list[str] | None = None) -> ParsedRow:
    return ParsedRow(
        row_number=row_number,
        data={"full_name": "Fulano", "cpf": cpf, "email": email},
        errors=errors or [],
    )


def _fetcher(identities=STORED):
    async def fetch():
        return list(identities)
    return fetch


# ─── Classification ───────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_cpf_match_is_duplicate_even_with_different_email():
    rows = await check_duplicates([_row(2, "11144477735", "outra@example.com")], _fetcher())

    info = rows[0].duplicate_info
    assert info.status == DuplicateStatus.duplicate
    assert info.existing_profile_id == "p1"
    assert info.existing_user_id == "u1"
    assert info.conflict_reason == DUPLICATE_REASON
    assert info.action == DuplicateAction.skip


@pytest.mark.asyncio
async def test_cpf_wins_over_email_pointing_at_another_profile():
    # CPF belongs to p2, email belongs to p1
    rows = await check_duplicates([_row(2, "529.982.247-25", "ana@example.com")], _fetcher())

    info = rows[0].duplicate_info
    assert info.status == DuplicateStatus.duplicate
    assert info.existing_profile_id == "p2"


@pytest.mark.asyncio
async def test_email_match_with_unknown_cpf_is_conflict():
    rows = await check_duplicates([_row(2, "98765432100", "  ANA@example.COM ")], _fetcher())

    info = rows[0].duplicate_info
    assert info.status == DuplicateStatus.conflict
    assert info.existing_profile_id == "p1"
    assert info.conflict_reason == CONFLICT_REASON
    assert info.action == DuplicateAction.skip


@pytest.mark.asyncio
async def test_unknown_identity_is_new():
    rows = await check_duplicates([_row(2, "98765432100", "nova@example.com")], _fetcher())

    info = rows[0].duplicate_info
    assert info.status == DuplicateStatus.new
    assert info.action == DuplicateAction.import_
    assert info.existing_profile_id is None
    assert info.conflict_reason is None


@pytest.mark.asyncio
async def test_invalid_rows_pass_through_untouched():
    rows = [
        _row(2, "123", "ana@example.com", errors=["CPF deve ter 11 dígitos"]),
        _row(3, "98765432100", "nova@example.com"),
    ]

    result = await check_duplicates(rows, _fetcher())

    assert [r.row_number for r in result] == [2, 3]
    assert result[0].duplicate_info is None
    assert result[1].duplicate_info.status == DuplicateStatus.new


@pytest.mark.asyncio
async def test_empty_store_marks_everything_new():
    rows = await check_duplicates([_row(2, "11144477735", "ana@example.com")], _fetcher([]))
    assert rows[0].duplicate_info.status == DuplicateStatus.new


@pytest.mark.asyncio
async def test_fetch_failure_returns_rows_without_duplicate_info():
    async def broken():
        raise RuntimeError("db unreachable")

    rows = [_row(2, "11144477735", "ana@example.com")]
    result = await check_duplicates(rows, broken)

    assert result == rows
    assert result[0].duplicate_info is None


def test_build_indexes_skips_blank_keys():
    by_cpf, by_email = build_indexes(STORED)

    assert set(by_cpf) == {"11144477735", "52998224725"}
    assert set(by_email) == {"ana@example.com", "bruno@example.com"}


# ─── Storage ──────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_fetch_profile_identities_maps_rows():
    profile_id, user_id = uuid.uuid4(), uuid.uuid4()
    mock_result = MagicMock()
    mock_result.all.return_value = [
        (profile_id, user_id, "11144477735", "ana@example.com"),
        (uuid.uuid4(), None, None, "semcpf@example.com"),
    ]
    db = AsyncMock()
    db.execute = AsyncMock(return_value=mock_result)

    identities = await fetch_profile_identities(db)

    assert identities[0] == IdentityRecord(
        profile_id=str(profile_id), user_id=str(user_id), cpf="11144477735", email="ana@example.com"
    )
    assert identities[1].user_id is None
    assert identities[1].cpf is None
    db.execute.assert_awaited_once()


@pytest.mark.asyncio
async def test_profile_fetcher_rolls_back_and_check_fails_open():
    db = AsyncMock()
    db.execute = AsyncMock(side_effect=OperationalError("SELECT", {}, Exception("down")))
    db.rollback = AsyncMock()

    rows = await check_duplicates([_row(2, "11144477735", "ana@example.com")], profile_fetcher(db))

    db.rollback.assert_awaited_once()
    assert rows[0].duplicate_info is None
