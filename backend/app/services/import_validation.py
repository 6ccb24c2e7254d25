"""Per-row validation of normalized spreadsheet records.

Purely intra-row: no cross-row checks and no database lookups. Problems are
returned as message lists so one bad row never stops the others.
"""
import re
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Callable

from app.schemas.imports import ImportType
from app.services.import_types import (
    MODALITY_CODES,
    ImportTypeConfig,
    field_value,
    get_import_type_config,
    is_blank,
)

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
BANK_CODE_RE = re.compile(r"^\d{3}$")

DATE_FORMATS = ("%Y-%m-%d", "%Y-%m-%d %H:%M:%S", "%Y-%m-%dT%H:%M:%S", "%d/%m/%Y")

RowRule = Callable[[dict, ImportTypeConfig, list[str], list[str]], None]


# ─── Value helpers ───

def only_digits(value: object) -> str:
    return re.sub(r"\D", "", str(value))


def is_valid_email(value: object) -> bool:
    return bool(EMAIL_RE.match(str(value).strip()))


def parse_number(value: object) -> Decimal | None:
    """Parse ints, floats and strings written with '.' or Brazilian ',' decimals."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        try:
            number = Decimal(str(value))
        except InvalidOperation:
            return None
        return number if number.is_finite() else None

    text = str(value).strip().replace("R$", "").replace(" ", "")
    if "," in text and "." in text:
        if text.rfind(",") > text.rfind("."):
            # 1.500,00 → 1500.00
            text = text.replace(".", "").replace(",", ".")
        else:
            # 1,500.00 → 1500.00
            text = text.replace(",", "")
    elif "," in text:
        text = text.replace(",", ".")
    try:
        number = Decimal(text)
    except InvalidOperation:
        return None
    return number if number.is_finite() else None


def parse_date(value: object) -> datetime | None:
    text = str(value).strip()
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            pass
    return None


# ─── Type-specific rules ───

def _scholar_rules(data: dict, config: ImportTypeConfig, errors: list[str], warnings: list[str]) -> None:
    email = field_value(data, config, "email")
    if email is not None and not is_valid_email(email):
        errors.append("Email inválido")

    cpf = field_value(data, config, "cpf")
    if cpf is not None and len(only_digits(cpf)) != 11:
        errors.append("CPF deve ter 11 dígitos")


def _bank_account_rules(data: dict, config: ImportTypeConfig, errors: list[str], warnings: list[str]) -> None:
    user_email = field_value(data, config, "user_email")
    if user_email is not None and not is_valid_email(user_email):
        errors.append("Email do bolsista inválido")

    bank_code = field_value(data, config, "bank_code")
    if bank_code is not None and not BANK_CODE_RE.match(str(bank_code).strip()):
        warnings.append("Código do banco deve ter 3 dígitos")


def _project_rules(data: dict, config: ImportTypeConfig, errors: list[str], warnings: list[str]) -> None:
    raw_start = field_value(data, config, "start_date")
    raw_end = field_value(data, config, "end_date")
    start = parse_date(raw_start) if raw_start is not None else None
    end = parse_date(raw_end) if raw_end is not None else None
    if raw_start is not None and start is None:
        errors.append(f'Data de início inválida: "{raw_start}"')
    if raw_end is not None and end is None:
        errors.append(f'Data de término inválida: "{raw_end}"')
    if start is not None and end is not None and start >= end:
        errors.append("Data de início deve ser anterior à data de término")

    monthly = field_value(data, config, "valor_mensal")
    if monthly is not None:
        number = parse_number(monthly)
        if number is None or number <= 0:
            errors.append("Valor mensal deve ser um número positivo")


def _enrollment_rules(data: dict, config: ImportTypeConfig, errors: list[str], warnings: list[str]) -> None:
    grant_value = field_value(data, config, "grant_value")
    if grant_value is not None:
        number = parse_number(grant_value)
        if number is None or number <= 0:
            errors.append("Valor da bolsa deve ser um número positivo")

    installments = field_value(data, config, "total_installments")
    if installments is not None:
        number = parse_number(installments)
        if number is None or number <= 0 or number != number.to_integral_value():
            errors.append("Total de parcelas deve ser um número inteiro positivo")

    modality = field_value(data, config, "modality")
    if modality is not None and str(modality).strip().lower() not in MODALITY_CODES:
        warnings.append(
            f'Modalidade "{modality}" não reconhecida. Use: {", ".join(MODALITY_CODES)}'
        )


TYPE_RULES: dict[ImportType, RowRule] = {
    ImportType.scholars: _scholar_rules,
    ImportType.bank_accounts: _bank_account_rules,
    ImportType.projects: _project_rules,
    ImportType.enrollments: _enrollment_rules,
}


# ─── Public API ───

def validate_row(data: dict, import_type: ImportType | str) -> tuple[list[str], list[str]]:
    """Check one normalized record against its import type.

    Returns:
        (errors, warnings). The row is valid iff errors is empty.
    """
    import_type = ImportType(import_type)
    config = get_import_type_config(import_type)
    errors: list[str] = []
    warnings: list[str] = []

    for name in config.required_fields:
        if is_blank(field_value(data, config, name)):
            errors.append(f'Campo obrigatório "{name}" não preenchido')

    TYPE_RULES[import_type](data, config, errors, warnings)
    return errors, warnings
