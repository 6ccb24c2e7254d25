"""Tests for per-row import validation rules."""
from decimal import Decimal

import pytest

from app.schemas.imports import ImportType
from app.services.import_validation import parse_date, parse_number, validate_row


def _scholar(**overrides):
    row = {"full_name": "Ana Silva", "email": "ana@x.com", "cpf": "11144477735"}
    row.update(overrides)
    return row


def _bank_account(**overrides):
    row = {
        "user_email": "ana@x.com",
        "bank_code": "341",
        "bank_name": "Itaú",
        "agency": "0001",
        "account_number": "12345-6",
    }
    row.update(overrides)
    return row


def _project(**overrides):
    row = {
        "code": "ICCA-01",
        "title": "Sensores agrícolas",
        "empresa_parceira": "Agro S.A.",
        "modalidade_bolsa": "dct_a",
        "valor_mensal": "4000",
        "start_date": "2024-01-01",
        "end_date": "2024-12-31",
    }
    row.update(overrides)
    return row


def _enrollment(**overrides):
    row = {
        "user_email": "ana@x.com",
        "project_code": "ICCA-01",
        "modality": "ict",
        "grant_value": "700",
        "start_date": "2024-01-01",
        "end_date": "2024-12-31",
        "total_installments": "12",
    }
    row.update(overrides)
    return row


# ─── Required fields ──────────────────────────────────────────────────────────

@pytest.mark.parametrize("missing", ["full_name", "email", "cpf"])
@pytest.mark.parametrize("empty_value", [None, "", "   "])
def test_missing_required_field_is_named_in_error(missing, empty_value):
    errors, _ = validate_row(_scholar(**{missing: empty_value}), ImportType.scholars)

    assert any(f'"{missing}"' in e for e in errors)


def test_absent_required_key_is_an_error():
    row = _project()
    del row["empresa_parceira"]

    errors, _ = validate_row(row, ImportType.projects)

    assert errors == ['Campo obrigatório "empresa_parceira" não preenchido']


def test_portuguese_header_alias_satisfies_required_field():
    errors, warnings = validate_row({"nome": "Ana Silva", "email": "ana@x.com", "cpf": "11144477735"}, "scholars")

    assert errors == []
    assert warnings == []


# ─── scholars ─────────────────────────────────────────────────────────────────

def test_valid_scholar_row():
    assert validate_row(_scholar(), ImportType.scholars) == ([], [])


def test_scholar_masked_cpf_is_accepted():
    errors, _ = validate_row(_scholar(cpf="111.444.777-35"), ImportType.scholars)
    assert errors == []


def test_scholar_numeric_cpf_cell_is_accepted():
    errors, _ = validate_row(_scholar(cpf=11144477735), ImportType.scholars)
    assert errors == []


def test_scholar_short_cpf():
    errors, _ = validate_row(_scholar(cpf="123"), ImportType.scholars)
    assert errors == ["CPF deve ter 11 dígitos"]


@pytest.mark.parametrize("email", ["ana", "ana@x", "ana @x.com", "@x.com"])
def test_scholar_bad_email(email):
    errors, _ = validate_row(_scholar(email=email), ImportType.scholars)
    assert errors == ["Email inválido"]


# ─── bank_accounts ────────────────────────────────────────────────────────────

def test_valid_bank_account_row():
    assert validate_row(_bank_account(), ImportType.bank_accounts) == ([], [])


def test_bank_account_bad_email_is_error():
    errors, _ = validate_row(_bank_account(user_email="nope"), ImportType.bank_accounts)
    assert errors == ["Email do bolsista inválido"]


@pytest.mark.parametrize("code", ["34", "3410", "ABC", 1])
def test_bank_code_format_is_only_a_warning(code):
    errors, warnings = validate_row(_bank_account(bank_code=code), ImportType.bank_accounts)

    assert errors == []
    assert warnings == ["Código do banco deve ter 3 dígitos"]


# ─── projects ─────────────────────────────────────────────────────────────────

def test_valid_project_row():
    assert validate_row(_project(), ImportType.projects) == ([], [])


def test_project_start_after_end():
    errors, _ = validate_row(_project(start_date="2024-06-01", end_date="2024-01-01"), ImportType.projects)
    assert errors == ["Data de início deve ser anterior à data de término"]


def test_project_same_start_and_end_is_rejected():
    errors, _ = validate_row(_project(start_date="2024-06-01", end_date="2024-06-01"), ImportType.projects)
    assert "Data de início deve ser anterior à data de término" in errors


def test_project_brazilian_dates():
    errors, _ = validate_row(_project(start_date="01/02/2024", end_date="31/12/2024"), ImportType.projects)
    assert errors == []


def test_project_unparseable_date():
    errors, _ = validate_row(_project(end_date="amanhã"), ImportType.projects)
    assert errors == ['Data de término inválida: "amanhã"']


@pytest.mark.parametrize("value", ["0", "-10", "abc"])
def test_project_monthly_value_must_be_positive(value):
    errors, _ = validate_row(_project(valor_mensal=value), ImportType.projects)
    assert errors == ["Valor mensal deve ser um número positivo"]


def test_project_monthly_value_accepts_brazilian_format():
    errors, _ = validate_row(_project(valor_mensal="4.000,50"), ImportType.projects)
    assert errors == []


# ─── enrollments ──────────────────────────────────────────────────────────────

def test_valid_enrollment_row():
    assert validate_row(_enrollment(), ImportType.enrollments) == ([], [])


@pytest.mark.parametrize("value", ["0", "-1", "muito", 0])
def test_enrollment_grant_value_must_be_positive(value):
    errors, _ = validate_row(_enrollment(grant_value=value), ImportType.enrollments)
    assert "Valor da bolsa deve ser um número positivo" in errors


@pytest.mark.parametrize("value", ["0", "2.5", "-3", "doze"])
def test_enrollment_installments_must_be_positive_integer(value):
    errors, _ = validate_row(_enrollment(total_installments=value), ImportType.enrollments)
    assert errors == ["Total de parcelas deve ser um número inteiro positivo"]


def test_enrollment_integral_float_installments_are_accepted():
    errors, _ = validate_row(_enrollment(total_installments=12.0), ImportType.enrollments)
    assert errors == []


def test_enrollment_modality_is_case_insensitive():
    assert validate_row(_enrollment(modality="DCT_B"), ImportType.enrollments) == ([], [])


def test_enrollment_unknown_modality_is_a_warning():
    errors, warnings = validate_row(_enrollment(modality="mestrado"), ImportType.enrollments)

    assert errors == []
    assert len(warnings) == 1
    assert warnings[0].startswith('Modalidade "mestrado" não reconhecida')
    assert "postdoc" in warnings[0]


# ─── helpers ──────────────────────────────────────────────────────────────────

@pytest.mark.parametrize(
    "raw, expected",
    [
        ("1500", Decimal("1500")),
        ("1500.50", Decimal("1500.50")),
        ("1500,50", Decimal("1500.50")),
        ("1.500,50", Decimal("1500.50")),
        ("1,500.50", Decimal("1500.50")),
        ("R$ 700,00", Decimal("700.00")),
        (700, Decimal("700")),
        ("abc", None),
        ("NaN", None),
        (True, None),
    ],
)
def test_parse_number(raw, expected):
    assert parse_number(raw) == expected


def test_parse_date_formats():
    assert parse_date("2024-06-01").day == 1
    assert parse_date("01/06/2024").month == 6
    assert parse_date("2024-06-01 10:00:00").hour == 10
    assert parse_date("junho") is None
