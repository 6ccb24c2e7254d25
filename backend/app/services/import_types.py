"""Import type registry — field lists and header aliases per spreadsheet schema."""
from dataclasses import dataclass, field

from app.schemas.imports import ImportType

# Grant modality codes, matching the grant_modality enum in the portal database
MODALITY_LABELS: dict[str, str] = {
    "ict": "Bolsa de Iniciação Científica e Tecnológica",
    "ext": "Bolsa de Extensão",
    "ens": "Bolsa de Apoio ao Ensino",
    "ino": "Bolsa de Inovação",
    "dct_a": "Bolsa de Desenvolvimento Científico e Tecnológico (Nível A)",
    "dct_b": "Bolsa de Desenvolvimento Científico e Tecnológico (Nível B)",
    "dct_c": "Bolsa de Desenvolvimento Científico e Tecnológico (Nível C)",
    "postdoc": "Bolsa de Pós-doutorado",
    "senior": "Bolsa de Cientista Sênior",
    "prod": "Bolsa de Produtividade em Pesquisa",
    "visitor": "Bolsa de Pesquisador Visitante (Estrangeiro)",
}

MODALITY_CODES: tuple[str, ...] = tuple(MODALITY_LABELS)


@dataclass(frozen=True)
class ImportTypeConfig:
    label: str
    description: str
    required_fields: tuple[str, ...]
    optional_fields: tuple[str, ...] = ()
    # canonical field -> normalized header names also accepted for it
    aliases: dict[str, tuple[str, ...]] = field(default_factory=dict)
    checks_duplicates: bool = False

    @property
    def all_fields(self) -> tuple[str, ...]:
        return self.required_fields + self.optional_fields

    def candidate_keys(self, field_name: str) -> tuple[str, ...]:
        return (field_name,) + self.aliases.get(field_name, ())


IMPORT_TYPES: dict[ImportType, ImportTypeConfig] = {
    ImportType.scholars: ImportTypeConfig(
        label="Bolsistas",
        description="Dados pessoais dos bolsistas (nome, email, CPF, telefone)",
        required_fields=("full_name", "email", "cpf"),
        optional_fields=("phone", "avatar_url"),
        aliases={
            "full_name": ("nome", "nome_completo"),
            "phone": ("telefone", "celular"),
        },
        checks_duplicates=True,
    ),
    ImportType.bank_accounts: ImportTypeConfig(
        label="Dados Bancários",
        description="Informações bancárias dos bolsistas",
        required_fields=("user_email", "bank_code", "bank_name", "agency", "account_number"),
        optional_fields=("account_type", "pix_key", "pix_key_type"),
        aliases={
            "bank_code": ("codigo_banco",),
            "bank_name": ("banco",),
            "agency": ("agencia",),
            "account_number": ("conta",),
        },
    ),
    ImportType.projects: ImportTypeConfig(
        label="Projetos",
        description="Projetos de pesquisa e bolsas (modelo ICCA)",
        required_fields=(
            "code",
            "title",
            "empresa_parceira",
            "modalidade_bolsa",
            "valor_mensal",
            "start_date",
            "end_date",
        ),
        optional_fields=("coordenador_tecnico_icca",),
        aliases={
            "code": ("codigo",),
            "title": ("titulo",),
            "start_date": ("data_inicio",),
            "end_date": ("data_fim", "data_termino"),
        },
    ),
    ImportType.enrollments: ImportTypeConfig(
        label="Vínculos",
        description="Vínculos entre bolsistas e projetos",
        required_fields=(
            "user_email",
            "project_code",
            "modality",
            "grant_value",
            "start_date",
            "end_date",
            "total_installments",
        ),
        optional_fields=("observations",),
        aliases={
            "modality": ("modalidade",),
            "grant_value": ("valor_bolsa",),
            "start_date": ("data_inicio",),
            "end_date": ("data_fim", "data_termino"),
            "total_installments": ("parcelas",),
            "observations": ("observacoes",),
        },
    ),
}


def get_import_type_config(import_type: ImportType | str) -> ImportTypeConfig:
    """Return the config for an import type; raises ValueError for unknown tags."""
    return IMPORT_TYPES[ImportType(import_type)]


def field_value(data: dict, config: ImportTypeConfig, field_name: str):
    """Look up a schema field in a normalized row, trying its aliases in order."""
    for key in config.candidate_keys(field_name):
        value = data.get(key)
        if not is_blank(value):
            return value
    return None


def is_blank(value) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    return False
