from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

from ..models.config_models import DEFAULT_TABULAR_COLUMNS, DatabaseConfig, ImportConfig
from ..models.resolutions import (
    ApplyRequest,
    CompanyChoice,
    ContractResolution,
    CreateCompany,
    CreateOperator,
    ExistingCompany,
    ExistingOperator,
    OperatorChoice,
    SimCardAction,
    TariffOverride,
)

"""Config loader.

Responsibilities:
- Load YAML config/import.yml and validate it against config_schema.json
- Load an apply resolutions YAML and validate it against resolutions_schema.json
- Apply defaults (page_size, logs_directory, tabular column headers)

Both schemas ship next to this module.
"""

_config_dir = Path(__file__).parent
SCHEMA_PATH = _config_dir / "config_schema.json"
RESOLUTIONS_SCHEMA_PATH = _config_dir / "resolutions_schema.json"


class ConfigError(Exception):
    pass


def _validate(data: Any, schema_path: Path, what: str) -> None:
    if not schema_path.exists():
        raise ConfigError(f"{what} schema not found: {schema_path}")
    try:
        schema = json.loads(schema_path.read_text(encoding="utf-8"))
        jsonschema.validate(data, schema)
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid schema file: {e}") from e
    except ValidationError as e:
        raise ConfigError(f"{what} validation failed: {e.message}") from e


def _read_yaml(path: Path, what: str) -> Any:
    if not path.exists():
        raise ConfigError(f"{what} file not found: {path}")
    try:
        return yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e


def load_config(path: Path) -> ImportConfig:
    data = _read_yaml(path, "config")
    _validate(data, SCHEMA_PATH, "config")

    db_raw = data.get("database", {})
    db = DatabaseConfig(
        host=db_raw.get("host"),
        port=db_raw.get("port"),
        user=db_raw.get("user"),
        password=db_raw.get("password"),
        database=db_raw.get("database"),
        dsn=db_raw.get("dsn"),
    )
    columns = {**DEFAULT_TABULAR_COLUMNS, **data.get("tabular_columns", {})}
    return ImportConfig(
        database=db,
        tabular_columns=columns,
        page_size=data.get("page_size", 1000),
        logs_directory=data.get("logs_directory", "./logs"),
    )


def _company_choice(raw: dict[str, Any]) -> CompanyChoice:
    if raw["mode"] == "existing":
        return ExistingCompany(id=raw["id"])
    return CreateCompany(
        name=raw["name"],
        inn=raw.get("inn"),
        kpp=raw.get("kpp"),
        comment=raw.get("comment"),
        force_create=raw.get("force_create", False),
    )


def _operator_choice(raw: dict[str, Any]) -> OperatorChoice:
    if raw["mode"] == "existing":
        return ExistingOperator(id=raw["id"])
    return CreateOperator(
        name=raw["name"],
        type=raw.get("type"),
        manager=raw.get("manager"),
        phone=raw.get("phone"),
        email=raw.get("email"),
    )


def parse_apply_request(data: dict[str, Any]) -> ApplyRequest:
    """Build an ApplyRequest from an already validated mapping."""
    resolutions = []
    for raw in data.get("contract_resolutions", []):
        optional = {
            k: raw[k]
            for k in ("type", "status", "start_date", "end_date", "monthly_fee", "sim_count")
            if k in raw
        }
        resolutions.append(
            ContractResolution(
                contract_number=raw["contract_number"],
                company=_company_choice(raw["company"]),
                operator=_operator_choice(raw["operator"]),
                **optional,
            )
        )
    sim_actions = [
        SimCardAction(phone=str(a["phone"]), action=a["action"]) for a in data.get("sim_card_actions", [])
    ]
    overrides = [
        TariffOverride(
            operator_id=o["operator_id"],
            tariff_name=o["tariff_name"],
            monthly_fee=o.get("monthly_fee"),
        )
        for o in data.get("tariff_overrides", [])
    ]
    return ApplyRequest(
        contract_resolutions=resolutions,
        sim_card_actions=sim_actions or None,
        tariff_overrides=overrides or None,
    )


def load_apply_request(path: Path) -> ApplyRequest:
    data = _read_yaml(path, "resolutions")
    _validate(data, RESOLUTIONS_SCHEMA_PATH, "resolutions")
    return parse_apply_request(data)
