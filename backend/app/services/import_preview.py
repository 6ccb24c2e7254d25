"""Import pipeline: decode → validate → check duplicates → preview.

Also builds the post-import result and the CSV artifacts offered for
download (empty template and result report).
"""
import asyncio
import csv
import io
import logging
from datetime import datetime, timezone

from app.schemas.imports import (
    DuplicateAction,
    DuplicateStatus,
    ImportedRecord,
    ImportPreview,
    ImportResult,
    ImportSummary,
    ImportType,
    ParsedRow,
    RejectedRecord,
    SkippedRecord,
)
from app.services.duplicate_checker import IdentityFetcher, check_duplicates
from app.services.import_types import field_value, get_import_type_config
from app.services.import_validation import validate_row
from app.services.spreadsheet_parser import decode_file, normalize_record

logger = logging.getLogger(__name__)

OPERATOR_SKIP_REASON = "Ignorado pelo operador"


# ─── Preview ───

def parse_rows(records: list[dict], import_type: ImportType) -> list[ParsedRow]:
    rows: list[ParsedRow] = []
    for idx, record in enumerate(records, start=2):  # row 1 = header
        data = normalize_record(record)
        errors, warnings = validate_row(data, import_type)
        rows.append(ParsedRow(row_number=idx, data=data, errors=errors, warnings=warnings))
    return rows


def decode_and_validate(file_name: str, content: bytes, import_type: ImportType) -> list[ParsedRow]:
    sheet = decode_file(file_name, content)
    return parse_rows(sheet.records, import_type)


def revalidate_rows(rows: list[ParsedRow], import_type: ImportType | str) -> list[ParsedRow]:
    """Re-run the row validator over rows sent back by a client.

    Submitted errors and warnings are replaced with fresh ones. Duplicate info
    is kept only on rows that still validate and only for types that check
    duplicates.
    """
    import_type = ImportType(import_type)
    config = get_import_type_config(import_type)
    checked: list[ParsedRow] = []
    for row in rows:
        errors, warnings = validate_row(row.data, import_type)
        keep_info = not errors and config.checks_duplicates
        checked.append(
            row.model_copy(update={
                "errors": errors,
                "warnings": warnings,
                "duplicate_info": row.duplicate_info if keep_info else None,
            })
        )
    return checked


async def refresh_preview(
    preview: ImportPreview,
    fetch_identities: IdentityFetcher | None = None,
) -> ImportPreview:
    """Rebuild a client-returned preview: revalidate rows, then re-derive duplicate info.

    If the identity fetch fails the submitted duplicate info of valid rows stays.
    """
    config = get_import_type_config(preview.import_type)
    rows = revalidate_rows(preview.rows, preview.import_type)
    if config.checks_duplicates and fetch_identities is not None:
        rows = await check_duplicates(rows, fetch_identities)
    return summarize(preview.file_name, preview.import_type, rows)


def summarize(file_name: str, import_type: ImportType, rows: list[ParsedRow]) -> ImportPreview:
    statuses = [r.duplicate_info.status for r in rows if r.duplicate_info is not None]
    valid = sum(1 for r in rows if r.is_valid)
    return ImportPreview(
        file_name=file_name,
        import_type=import_type,
        total_rows=len(rows),
        valid_rows=valid,
        invalid_rows=len(rows) - valid,
        new_rows=statuses.count(DuplicateStatus.new),
        duplicate_rows=statuses.count(DuplicateStatus.duplicate),
        conflict_rows=statuses.count(DuplicateStatus.conflict),
        rows=rows,
    )


async def build_preview(
    file_name: str,
    content: bytes,
    import_type: ImportType | str,
    fetch_identities: IdentityFetcher | None = None,
) -> ImportPreview:
    """Run the whole pipeline over one uploaded file.

    Raises:
        FileDecodeError: the file is empty, unsupported or unreadable.
    """
    import_type = ImportType(import_type)
    config = get_import_type_config(import_type)

    # pandas/csv parsing is CPU-bound; keep it off the event loop
    loop = asyncio.get_running_loop()
    rows = await loop.run_in_executor(None, lambda: decode_and_validate(file_name, content, import_type))

    if config.checks_duplicates and fetch_identities is not None:
        rows = await check_duplicates(rows, fetch_identities)

    preview = summarize(file_name, import_type, rows)
    logger.info(
        "build_preview: %s (%s) total=%d valid=%d invalid=%d",
        file_name, import_type.value, preview.total_rows, preview.valid_rows, preview.invalid_rows,
    )
    return preview


# ─── Result ───

def resolve_action(row: ParsedRow, actions: dict[int, DuplicateAction]) -> DuplicateAction:
    """Operator override if present, else the proposed action, else import."""
    if row.row_number in actions:
        return actions[row.row_number]
    if row.duplicate_info is not None:
        return row.duplicate_info.action
    return DuplicateAction.import_


def build_import_result(
    preview: ImportPreview,
    actions: dict[int, DuplicateAction] | None = None,
    started_at: datetime | None = None,
) -> ImportResult:
    """Classify every preview row as imported, updated, skipped or rejected.

    Rows are revalidated first, so rejection never depends on the errors a
    client sent back. Rows already on file (duplicate/conflict) can only be
    updated or skipped; a plain "import" on them is treated as skip.
    """
    actions = actions or {}
    rows = revalidate_rows(preview.rows, preview.import_type)
    started_at = started_at or datetime.now(timezone.utc)

    imported: list[ImportedRecord] = []
    updated: list[ImportedRecord] = []
    skipped: list[SkippedRecord] = []
    rejected: list[RejectedRecord] = []

    for row in rows:
        if not row.is_valid:
            rejected.append(RejectedRecord(row_number=row.row_number, data=row.data, reasons=row.errors))
            continue

        action = resolve_action(row, actions)
        info = row.duplicate_info
        already_on_file = info is not None and info.status != DuplicateStatus.new

        if action == DuplicateAction.skip:
            reason = info.conflict_reason if already_on_file and info.conflict_reason else OPERATOR_SKIP_REASON
            skipped.append(SkippedRecord(row_number=row.row_number, data=row.data, reason=reason))
        elif already_on_file and action == DuplicateAction.update:
            updated.append(ImportedRecord(row_number=row.row_number, data=row.data))
        elif already_on_file:
            skipped.append(
                SkippedRecord(row_number=row.row_number, data=row.data, reason=info.conflict_reason or OPERATOR_SKIP_REASON)
            )
        else:
            imported.append(ImportedRecord(row_number=row.row_number, data=row.data))

    return ImportResult(
        success=bool(imported or updated),
        imported_count=len(imported),
        updated_count=len(updated),
        skipped_count=len(skipped),
        rejected_count=len(rejected),
        imported_records=imported,
        updated_records=updated,
        skipped_records=skipped,
        rejected_records=rejected,
        summary=ImportSummary(
            started_at=started_at,
            completed_at=datetime.now(timezone.utc),
            import_type=preview.import_type,
            file_name=preview.file_name,
            total_processed=len(rows),
        ),
    )


# ─── CSV artifacts ───

def render_template_csv(import_type: ImportType | str) -> str:
    """Header-only CSV listing required then optional fields."""
    config = get_import_type_config(import_type)
    buf = io.StringIO()
    csv.writer(buf, lineterminator="\n").writerow(config.all_fields)
    return buf.getvalue()


def render_result_csv(result: ImportResult) -> str:
    config = get_import_type_config(result.summary.import_type)
    fields = config.all_fields

    buf = io.StringIO()
    writer = csv.writer(buf, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(["Linha", "Status", "Motivos", *fields])

    def cells(data: dict) -> list[str]:
        values = [field_value(data, config, f) for f in fields]
        return ["" if v is None else str(v) for v in values]

    for rec in result.imported_records:
        writer.writerow([rec.row_number, "Importado", "", *cells(rec.data)])
    for rec in result.updated_records:
        writer.writerow([rec.row_number, "Atualizado", "", *cells(rec.data)])
    for rec in result.skipped_records:
        writer.writerow([rec.row_number, "Ignorado", rec.reason, *cells(rec.data)])
    for rec in result.rejected_records:
        writer.writerow([rec.row_number, "Rejeitado", "; ".join(rec.reasons), *cells(rec.data)])

    return buf.getvalue()


def template_file_name(import_type: ImportType) -> str:
    return f"modelo-{import_type.value}.csv"


def report_file_name(result: ImportResult) -> str:
    stamp = result.summary.completed_at.strftime("%Y-%m-%d-%H%M%S")
    return f"relatorio-importacao-{result.summary.import_type.value}-{stamp}.csv"
