import yaml
import re
from pydantic_settings import BaseSettings
from functools import lru_cache
from pathlib import Path
from dotenv import load_dotenv
import os

# Load .env from project root
project_root = Path(__file__).parent.parent.parent
env_path = project_root / ".env"
load_dotenv(env_path)


def substitute_env_vars(value):
    """
    Recursively substitute ${VAR_NAME} or ${VAR_NAME:-default} patterns
    with environment variable values.
    """
    if isinstance(value, str):
        # Pattern matches ${VAR_NAME} or ${VAR_NAME:-default_value}
        pattern = r'\$\{([^}:]+)(?::-([^}]*))?\}'

        def replace_match(match):
            var_name = match.group(1)
            default_value = match.group(2) if match.group(2) is not None else ""
            return os.environ.get(var_name, default_value)

        return re.sub(pattern, replace_match, value)
    elif isinstance(value, dict):
        return {k: substitute_env_vars(v) for k, v in value.items()}
    elif isinstance(value, list):
        return [substitute_env_vars(item) for item in value]
    return value


def load_yaml_with_env(yaml_path: Path) -> dict:
    """Load YAML file with environment variable substitution."""
    if not yaml_path.exists():
        return {}

    with open(yaml_path) as f:
        raw_config = yaml.safe_load(f) or {}

    return substitute_env_vars(raw_config)


class DatabaseSettings(BaseSettings):
    url: str = "sqlite:///./sti_verification.db"


class LevelThresholds(BaseSettings):
    """Minimum score for each verification level, highest first."""
    high: int = 75
    moderate: int = 50
    low: int = 25
    unverified: int = 1


class VerificationSettings(BaseSettings):
    """Settings for document verification scoring."""
    verified_threshold: int = 60
    min_agreeing_signals: int = 3
    level_thresholds: LevelThresholds = LevelThresholds()


class DateSettings(BaseSettings):
    """Settings for collection date validation."""
    max_age_days: int = 730
    suspicious_gap_hours: float = 2.0


class LabLookupSettings(BaseSettings):
    """Settings for the lab reference directory."""
    labs_path: str = str(project_root / "config" / "labs.yaml")
    fuzzy_threshold: float = 0.9


class StandardizationSettings(BaseSettings):
    """Settings for test name standardization."""
    mappings_path: str = str(project_root / "config" / "test_mappings.yaml")


class LoggingSettings(BaseSettings):
    level: str = "INFO"


class Settings(BaseSettings):
    database: DatabaseSettings = DatabaseSettings()
    verification: VerificationSettings = VerificationSettings()
    dates: DateSettings = DateSettings()
    lab_lookup: LabLookupSettings = LabLookupSettings()
    standardization: StandardizationSettings = StandardizationSettings()
    logging: LoggingSettings = LoggingSettings()

    class Config:
        env_file = ".env"
        env_nested_delimiter = "__"
        extra = "ignore"  # Ignore extra fields not in the model


@lru_cache()
def get_settings() -> Settings:
    """Load settings from YAML config file with environment variable substitution."""
    config_path = project_root / "config" / "settings.yaml"

    # Load YAML with ${VAR_NAME} substitution from .env
    yaml_config = load_yaml_with_env(config_path)

    # Environment variables take precedence via pydantic-settings
    return Settings(**yaml_config)
