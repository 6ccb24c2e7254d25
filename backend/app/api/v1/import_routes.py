"""Spreadsheet import endpoints — type registry, templates, preview and result report."""
import logging
from typing import Annotated

from fastapi import APIRouter, Depends, File, HTTPException, Request, Response, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.deps import get_current_user, require_role
from app.core.limiter import limiter
from app.db.session import get_session
from app.schemas.imports import (
    ImportPreview,
    ImportResult,
    ImportResultRequest,
    ImportType,
    ImportTypeOut,
)
from app.services import audit as audit_svc
from app.services.duplicate_checker import profile_fetcher
from app.services.import_preview import (
    build_import_result,
    build_preview,
    refresh_preview,
    render_result_csv,
    render_template_csv,
    report_file_name,
    template_file_name,
)
from app.services.import_types import IMPORT_TYPES
from app.services.spreadsheet_parser import FileDecodeError, file_extension

logger = logging.getLogger(__name__)

router = APIRouter()

IMPORT_ROLES = ("ADMIN", "MANAGER")

CSV_MEDIA_TYPE = "text/csv; charset=utf-8"
PREVIEW_RATE_LIMIT = "30/minute"


# ─── Helpers ───

def _check_upload(file_name: str, size: int) -> None:
    """Upload guard: extension allow-list and size ceiling from settings."""
    allowed = settings.import_allowed_extensions_list
    if file_extension(file_name) not in allowed:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"Tipo de arquivo não suportado. Use: {', '.join(allowed)}",
        )
    if size > settings.import_max_file_size_bytes:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"Arquivo muito grande. Tamanho máximo: {settings.IMPORT_MAX_FILE_SIZE_MB}MB",
        )


def _csv_download(body: str, file_name: str) -> Response:
    return Response(
        content=body,
        media_type=CSV_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{file_name}"'},
    )


async def _result_for(import_type: ImportType, body: ImportResultRequest, db: AsyncSession) -> ImportResult:
    """Rebuild the submitted preview server-side, then apply the operator actions."""
    if body.preview.import_type != import_type:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"Preview is for '{body.preview.import_type.value}', not '{import_type.value}'.",
        )
    preview = await refresh_preview(body.preview, profile_fetcher(db))
    return build_import_result(preview, body.actions, body.started_at)


# ─── GET /import/types ───

@router.get("/types", response_model=list[ImportTypeOut], summary="List spreadsheet import types")
async def list_import_types(
    current_user: Annotated[object, Depends(get_current_user)],
):
    return [
        ImportTypeOut(
            import_type=import_type,
            label=config.label,
            description=config.description,
            required_fields=list(config.required_fields),
            optional_fields=list(config.optional_fields),
            checks_duplicates=config.checks_duplicates,
        )
        for import_type, config in IMPORT_TYPES.items()
    ]


# ─── GET /import/{import_type}/template ───

@router.get("/{import_type}/template", summary="Download an empty CSV template for an import type")
async def download_template(
    import_type: ImportType,
    current_user: Annotated[object, Depends(get_current_user)],
):
    return _csv_download(render_template_csv(import_type), template_file_name(import_type))


# ─── POST /import/{import_type}/preview ───

@router.post(
    "/{import_type}/preview",
    response_model=ImportPreview,
    summary="Parse and validate a spreadsheet without importing it (ADMIN, MANAGER)",
)
@limiter.limit(PREVIEW_RATE_LIMIT)
async def preview_import(
    request: Request,
    import_type: ImportType,
    db: Annotated[AsyncSession, Depends(get_session)],
    current_user: Annotated[object, Depends(require_role(*IMPORT_ROLES))],
    file: UploadFile = File(...),
):
    file_name = file.filename or "upload"
    content = await file.read()
    _check_upload(file_name, len(content))

    try:
        preview = await build_preview(file_name, content, import_type, profile_fetcher(db))
    except FileDecodeError as exc:
        logger.info("preview_import: %s rejected: %s", file_name, exc)
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc))

    await audit_svc.log(
        db,
        action="import.previewed",
        entity_type="import",
        actor_id=current_user.id,
        actor_email=current_user.email,
        after=preview.model_dump(mode="json", exclude={"rows"}),
        notes=f"{import_type.value}: {file_name}",
    )
    await db.commit()
    return preview


# ─── POST /import/{import_type}/result ───

@router.post(
    "/{import_type}/result",
    response_model=ImportResult,
    summary="Apply per-row actions to a preview and report the outcome (ADMIN, MANAGER)",
)
async def import_result(
    import_type: ImportType,
    body: ImportResultRequest,
    db: Annotated[AsyncSession, Depends(get_session)],
    current_user: Annotated[object, Depends(require_role(*IMPORT_ROLES))],
):
    result = await _result_for(import_type, body, db)

    await audit_svc.log(
        db,
        action="import.completed",
        entity_type="import",
        actor_id=current_user.id,
        actor_email=current_user.email,
        after=result.model_dump(
            mode="json",
            exclude={"imported_records", "updated_records", "skipped_records", "rejected_records"}
        ),
        notes=f"{import_type.value}: {body.preview.file_name}",
    )
    await db.commit()
    return result


# ─── POST /import/{import_type}/result.csv ───

@router.post(
    "/{import_type}/result.csv",
    summary="Download the import result report as CSV (ADMIN, MANAGER)",
)
async def import_result_csv(
    import_type: ImportType,
    body: ImportResultRequest,
    db: Annotated[AsyncSession, Depends(get_session)],
    current_user: Annotated[object, Depends(require_role(*IMPORT_ROLES))],
):
    result = await _result_for(import_type, body, db)
    return _csv_download(render_result_csv(result), report_file_name(result))
