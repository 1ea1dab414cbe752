import os
import threading
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, ValidationInfo, field_validator

BACKUP_DIR = "/tmp/backup"

# Environment variable -> config field. Applied on top of the file so secrets
# can be kept out of it.
ENV_OVERRIDES = {
    "AWS_ACCESS_KEY_ID": "access_key_id",
    "AWS_SECRET_ACCESS_KEY": "secret_access_key",
    "S3_REGION": "region",
    "S3_BUCKET_NAME": "bucket",
    "S3_ENDPOINT": "endpoint",
    "DB_HOST": "db_host",
    "DB_PASSWORD": "db_password",
}

REQUIRED_FIELDS = (
    "access_key_id",
    "secret_access_key",
    "region",
    "bucket",
    "db_user",
    "db_password",
    "db_name",
)


class ConfigError(Exception):
    pass


class Config(BaseModel):
    # camelCase aliases are the keys used by older config.json files.
    model_config = ConfigDict(
        frozen=True,
        # YAML reads unquoted numbers (passwords, db names) as ints
        coerce_numbers_to_str=True,
        populate_by_name=True,
        loc_by_alias=False,
    )

    # S3
    access_key_id: str = Field(min_length=1, alias="accessKeyId")
    secret_access_key: str = Field(min_length=1, alias="secretAccessKey")
    region: str = Field(min_length=1)
    bucket: str = Field(min_length=1)
    key_prefix: str | None = Field(default=None, alias="keyPrefix")
    endpoint: str | None = None

    # MySQL
    db_host: str = Field(default="localhost", alias="dbHost")
    db_port: int = Field(default=3306, alias="dbPort")
    db_user: str = Field(min_length=1, alias="dbUser")
    db_password: str = Field(min_length=1, alias="dbPassword")
    db_name: str = Field(min_length=1, alias="dbName")

    # Daemon
    interval: float
    override_command: str | None = Field(default=None, alias="overrideCommand")
    backup_dir: str = BACKUP_DIR
    password_via_env: bool = False
    dump_timeout: float | None = None

    @field_validator(*REQUIRED_FIELDS, mode="before")
    @classmethod
    def _required_truthy(cls, value: Any) -> Any:
        # 0 would otherwise be coerced to "0"
        if not value:
            raise ValueError("must not be empty")
        return value

    @field_validator("interval")
    @classmethod
    def _positive_interval(cls, value: float) -> float:
        if not value > 0:
            raise ValueError("interval must be a positive number of seconds")
        if value > threading.TIMEOUT_MAX:
            raise ValueError(f"interval must not exceed {threading.TIMEOUT_MAX} seconds")
        return value

    @field_validator("db_host", "db_port", "backup_dir", mode="before")
    @classmethod
    def _empty_means_default(cls, value: Any, info: ValidationInfo) -> Any:
        if value in (None, ""):
            return cls.model_fields[info.field_name].default
        return value


def apply_env_overrides(document: dict, environ: dict | None = None) -> dict:
    environ = os.environ if environ is None else environ
    merged = dict(document)
    for var, field in ENV_OVERRIDES.items():
        if environ.get(var):
            merged.pop(Config.model_fields[field].alias, None)
            merged[field] = environ[var]
    return merged


def parse_config(document: Any) -> Config:
    if not isinstance(document, dict):
        raise ConfigError("config document must be a mapping")
    try:
        return Config.model_validate(document)
    except ValidationError as e:
        fields = ", ".join(".".join(str(p) for p in err["loc"]) or "<root>" for err in e.errors())
        raise ConfigError(f"invalid or missing fields: {fields}") from e


def validate_config(document: Any) -> bool:
    """Return True if ``document`` holds every required setting."""
    try:
        parse_config(document)
    except ConfigError:
        return False
    return True


def load_config(config_path: str, environ: dict | None = None) -> Config:
    if not os.path.exists(config_path):
        raise ConfigError(f"No config file found at \"{config_path}\"")
    try:
        with open(config_path, "r") as f:
            document = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Unable to read config file \"{config_path}\": {e}") from e

    if not isinstance(document, dict):
        raise ConfigError(f"Config file \"{config_path}\" does not contain a mapping")
    return parse_config(apply_env_overrides(document, environ))
