"""Configuration loading with environment variable overrides."""

import logging
import pkgutil
import re
from collections.abc import Callable, Mapping, Sequence
from pathlib import Path
from typing import Annotated, Any, Literal

import yaml
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    NonNegativeInt,
    PositiveFloat,
    SecretStr,
    ValidationError,
    field_validator,
    model_validator,
)

from flakeguard.independence import IndependenceCheck, compile_patterns, pattern_check

log = logging.getLogger(__name__)

DEFAULT_API_BASE_URL = "https://app.unflakable.com"

type QuarantineMode = Literal[
    "quarantine", "ignore_failures", "no_quarantine", "skip_tests"
]


class ConfigError(ValueError):
    """Raised for invalid or incomplete configuration."""


class PatternPredicate(BaseModel):
    """Regular expression(s) matched against the failure text."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    kind: Literal["pattern"] = "pattern"
    value: str | Sequence[str]

    @field_validator("value")
    @classmethod
    def validate_patterns(cls, value: str | Sequence[str]) -> str | Sequence[str]:
        """Reject patterns that do not compile."""
        try:
            compile_patterns(value)
        except re.error as e:
            raise ValueError(f"invalid regular expression: {e}") from e
        return value

    def resolve(self) -> IndependenceCheck:
        """Compile into a callable check."""
        return pattern_check(compile_patterns(self.value))


class CallbackPredicate(BaseModel):
    """Dotted ``package.module:function`` reference to a user predicate."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    kind: Literal["callback"] = "callback"
    value: str

    def resolve(self) -> IndependenceCheck:
        """Import the referenced callable."""
        try:
            target = pkgutil.resolve_name(self.value)
        except (ImportError, AttributeError, ValueError) as e:
            raise ConfigError(
                f"cannot import independence callback `{self.value}`: {e}"
            ) from e
        if not callable(target):
            raise ConfigError(f"independence callback `{self.value}` is not callable")
        check: IndependenceCheck = target
        return check


IndependencePredicate = Annotated[
    PatternPredicate | CallbackPredicate, Field(discriminator="kind")
]


class FlakeGuardConfig(BaseModel):
    """Engine configuration after file loading and environment overrides."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    test_suite_id: str | None = None
    api_key: SecretStr | None = None
    api_base_url: str = DEFAULT_API_BASE_URL
    enabled: bool = True
    failure_retries: NonNegativeInt = 2
    git_auto_detect: bool = True
    quarantine_mode: QuarantineMode = "quarantine"
    upload_results: bool = True
    is_failure_test_independent: IndependencePredicate | None = None
    # Watchdog for the whole run, in seconds.
    timeout: PositiveFloat | None = None

    @field_validator("is_failure_test_independent", mode="before")
    @classmethod
    def wrap_bare_patterns(cls, value: Any) -> Any:  # noqa: ANN401
        """Accept a bare pattern string or list of patterns as shorthand."""
        if isinstance(value, str | list | tuple):
            return {"kind": "pattern", "value": value}
        return value

    @field_validator("api_base_url")
    @classmethod
    def strip_trailing_slash(cls, value: str) -> str:
        """Normalize base URL so paths can be appended."""
        return value.rstrip("/")

    @model_validator(mode="after")
    def require_credentials(self) -> "FlakeGuardConfig":
        """Suite ID and API key are mandatory while enabled."""
        if not self.enabled:
            return self
        if not self.test_suite_id:
            raise ValueError(
                "test suite ID not found in config file or FLAKEGUARD_SUITE_ID "
                "environment variable"
            )
        if self.api_key is None or not self.api_key.get_secret_value():
            raise ValueError(
                "missing required environment variable `FLAKEGUARD_API_KEY`"
            )
        return self

    def independence_check(self) -> IndependenceCheck | None:
        """Resolve the configured predicate into a single callable shape."""
        if self.is_failure_test_independent is None:
            return None
        return self.is_failure_test_independent.resolve()


def _parse_bool(raw: str) -> bool:
    return raw not in {"false", "0"}


ENV_OVERRIDES: Mapping[str, tuple[str, Callable[[str], Any]]] = {
    "FLAKEGUARD_SUITE_ID": ("test_suite_id", str),
    "FLAKEGUARD_API_KEY": ("api_key", str),
    "FLAKEGUARD_API_BASE_URL": ("api_base_url", str),
    "FLAKEGUARD_ENABLED": ("enabled", _parse_bool),
    "FLAKEGUARD_FAILURE_RETRIES": ("failure_retries", str),
    "FLAKEGUARD_GIT_AUTO_DETECT": ("git_auto_detect", _parse_bool),
    "FLAKEGUARD_QUARANTINE_MODE": ("quarantine_mode", str),
    "FLAKEGUARD_UPLOAD_RESULTS": ("upload_results", _parse_bool),
    "FLAKEGUARD_TIMEOUT": ("timeout", str),
}

# Empty values for these are treated as unset.
NON_EMPTY_OVERRIDES = frozenset(
    {"FLAKEGUARD_SUITE_ID", "FLAKEGUARD_API_KEY", "FLAKEGUARD_API_BASE_URL"}
)


def load_config_file(path: Path) -> dict[str, Any]:
    """Read a YAML (or JSON) config file into a mapping.

    Raises:
        ConfigError: If the file does not contain a mapping

    """
    with path.open(encoding="utf-8") as f:
        data = yaml.safe_load(f)

    log.debug("Loaded config from %s", path)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(
            f"Invalid config found at {path} -- should be a mapping, "
            f"but found {type(data).__name__}"
        )
    return data


def merge_env_overrides(
    values: Mapping[str, Any], environ: Mapping[str, str]
) -> dict[str, Any]:
    """Apply environment variable overrides on top of file values."""
    merged = dict(values)
    for env_var, (key, parse) in ENV_OVERRIDES.items():
        raw = environ.get(env_var)
        if raw is None or (raw == "" and env_var in NON_EMPTY_OVERRIDES):
            continue
        log.debug("Overriding `%s` with environment variable %s", key, env_var)
        merged[key] = parse(raw)
    return merged


def load_config(
    path: Path | None, environ: Mapping[str, str], **overrides: Any  # noqa: ANN401
) -> FlakeGuardConfig:
    """Load config from an optional file, then apply environment overrides.

    Keyword ``overrides`` (e.g. from command-line flags) win over everything.

    Raises:
        ConfigError: If the merged configuration is invalid

    """
    values = load_config_file(path) if path is not None else {}
    if path is None:
        log.debug("No config file given; using defaults")
    merged = merge_env_overrides(values, environ)
    merged.update({k: v for k, v in overrides.items() if v is not None})
    try:
        return FlakeGuardConfig.model_validate(merged)
    except ValidationError as e:
        source = str(path) if path is not None else "environment"
        raise ConfigError(f"Invalid configuration ({source}): {e}") from e
