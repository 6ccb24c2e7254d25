"""Pydantic schemas for spreadsheet import previews and results."""
import enum
from datetime import datetime
from typing import Union

from pydantic import BaseModel, Field, computed_field

CellValue = Union[str, int, float, None]


class ImportType(str, enum.Enum):
    scholars = "scholars"
    bank_accounts = "bank_accounts"
    projects = "projects"
    enrollments = "enrollments"


class DuplicateStatus(str, enum.Enum):
    new = "new"
    duplicate = "duplicate"
    conflict = "conflict"


class DuplicateAction(str, enum.Enum):
    import_ = "import"
    update = "update"
    skip = "skip"


class DuplicateInfo(BaseModel):
    status: DuplicateStatus
    existing_profile_id: str | None = None
    existing_user_id: str | None = None
    conflict_reason: str | None = None
    action: DuplicateAction


class ParsedRow(BaseModel):
    row_number: int
    data: dict[str, CellValue]
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    duplicate_info: DuplicateInfo | None = None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def is_valid(self) -> bool:
        return not self.errors


class ImportPreview(BaseModel):
    file_name: str
    import_type: ImportType
    total_rows: int
    valid_rows: int
    invalid_rows: int
    new_rows: int = 0
    duplicate_rows: int = 0
    conflict_rows: int = 0
    rows: list[ParsedRow]


class ImportTypeOut(BaseModel):
    import_type: ImportType
    label: str
    description: str
    required_fields: list[str]
    optional_fields: list[str]
    checks_duplicates: bool


# ─── Result step ───

class ImportResultRequest(BaseModel):
    preview: ImportPreview
    # Operator overrides keyed by row number; rows not listed keep the proposed action
    actions: dict[int, DuplicateAction] = Field(default_factory=dict)
    started_at: datetime | None = None


class ImportedRecord(BaseModel):
    row_number: int
    data: dict[str, CellValue]


class SkippedRecord(ImportedRecord):
    reason: str


class RejectedRecord(ImportedRecord):
    reasons: list[str]


class ImportSummary(BaseModel):
    started_at: datetime
    completed_at: datetime
    import_type: ImportType
    file_name: str
    total_processed: int


class ImportResult(BaseModel):
    success: bool
    imported_count: int
    updated_count: int
    skipped_count: int
    rejected_count: int
    imported_records: list[ImportedRecord]
    updated_records: list[ImportedRecord]
    skipped_records: list[SkippedRecord]
    rejected_records: list[RejectedRecord]
    summary: ImportSummary
