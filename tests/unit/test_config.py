"""Tests for configuration loading."""

from pathlib import Path

import pytest

from flakeguard.config import (
    DEFAULT_API_BASE_URL,
    CallbackPredicate,
    ConfigError,
    FlakeGuardConfig,
    PatternPredicate,
    load_config,
    merge_env_overrides,
)
from flakeguard.independence import FailureContext

CREDENTIALS = {"FLAKEGUARD_SUITE_ID": "MOCK_SUITE_ID", "FLAKEGUARD_API_KEY": "key"}


def always_independent(context: FailureContext) -> bool:
    """Predicate referenced by dotted path in tests."""
    return True


NOT_CALLABLE = 42


@pytest.fixture
def config_file(tmp_path: Path) -> Path:
    """Create a YAML config file."""
    path = tmp_path / "flakeguard.yaml"
    path.write_text(
        "test_suite_id: FILE_SUITE_ID\n"
        "failure_retries: 5\n"
        "quarantine_mode: skip_tests\n"
        "api_base_url: https://flakeguard.test/\n"
    )
    return path


class TestLoadConfig:
    """Tests for load_config."""

    def test_defaults(self) -> None:
        """Defaults apply when only credentials are provided."""
        config = load_config(None, CREDENTIALS)

        assert config.test_suite_id == "MOCK_SUITE_ID"
        assert config.api_key is not None
        assert config.api_key.get_secret_value() == "key"
        assert config.api_base_url == DEFAULT_API_BASE_URL
        assert config.failure_retries == 2
        assert config.quarantine_mode == "quarantine"
        assert config.enabled
        assert config.upload_results
        assert config.git_auto_detect
        assert config.is_failure_test_independent is None
        assert config.timeout is None

    def test_reads_file(self, config_file: Path) -> None:
        """Values come from the config file."""
        config = load_config(config_file, {"FLAKEGUARD_API_KEY": "key"})

        assert config.test_suite_id == "FILE_SUITE_ID"
        assert config.failure_retries == 5
        assert config.quarantine_mode == "skip_tests"
        assert config.api_base_url == "https://flakeguard.test"

    def test_environment_overrides_file(self, config_file: Path) -> None:
        """Environment variables take precedence over file values."""
        config = load_config(
            config_file,
            {
                **CREDENTIALS,
                "FLAKEGUARD_FAILURE_RETRIES": "0",
                "FLAKEGUARD_QUARANTINE_MODE": "no_quarantine",
                "FLAKEGUARD_UPLOAD_RESULTS": "false",
                "FLAKEGUARD_GIT_AUTO_DETECT": "0",
            },
        )

        assert config.test_suite_id == "MOCK_SUITE_ID"
        assert config.failure_retries == 0
        assert config.quarantine_mode == "no_quarantine"
        assert not config.upload_results
        assert not config.git_auto_detect

    def test_keyword_overrides_win(self, config_file: Path) -> None:
        """Command-line overrides beat both file and environment."""
        config = load_config(
            config_file,
            {**CREDENTIALS, "FLAKEGUARD_FAILURE_RETRIES": "3"},
            failure_retries=1,
        )

        assert config.failure_retries == 1

    def test_none_keyword_overrides_are_ignored(self) -> None:
        """Unset command-line flags do not clobber configured values."""
        config = load_config(None, CREDENTIALS, failure_retries=None)

        assert config.failure_retries == 2

    def test_empty_credentials_are_ignored(self, config_file: Path) -> None:
        """An empty suite ID variable does not override the file."""
        config = load_config(
            config_file, {"FLAKEGUARD_SUITE_ID": "", "FLAKEGUARD_API_KEY": "key"}
        )

        assert config.test_suite_id == "FILE_SUITE_ID"

    def test_missing_api_key_is_an_error(self) -> None:
        """An enabled run requires an API key."""
        with pytest.raises(ConfigError, match="FLAKEGUARD_API_KEY"):
            load_config(None, {"FLAKEGUARD_SUITE_ID": "MOCK_SUITE_ID"})

    def test_missing_suite_id_is_an_error(self) -> None:
        """An enabled run requires a test suite ID."""
        with pytest.raises(ConfigError, match="test suite ID"):
            load_config(None, {"FLAKEGUARD_API_KEY": "key"})

    def test_disabled_needs_no_credentials(self) -> None:
        """A disabled run does not talk to the backend."""
        config = load_config(None, {"FLAKEGUARD_ENABLED": "false"})

        assert not config.enabled

    @pytest.mark.parametrize(
        ("variable", "value"),
        [
            ("FLAKEGUARD_QUARANTINE_MODE", "sometimes"),
            ("FLAKEGUARD_FAILURE_RETRIES", "-1"),
            ("FLAKEGUARD_FAILURE_RETRIES", "many"),
            ("FLAKEGUARD_TIMEOUT", "0"),
        ],
    )
    def test_invalid_values_are_errors(self, variable: str, value: str) -> None:
        """Ill-typed values are configuration errors."""
        with pytest.raises(ConfigError):
            load_config(None, {**CREDENTIALS, variable: value})

    def test_unknown_keys_are_errors(self, tmp_path: Path) -> None:
        """Typos in the config file are not silently ignored."""
        path = tmp_path / "flakeguard.yaml"
        path.write_text("failure_retires: 3\n")

        with pytest.raises(ConfigError, match="failure_retires"):
            load_config(path, CREDENTIALS)

    def test_non_mapping_file_is_an_error(self, tmp_path: Path) -> None:
        """A config file must contain a mapping."""
        path = tmp_path / "flakeguard.yaml"
        path.write_text("- a\n- b\n")

        with pytest.raises(ConfigError, match="should be a mapping"):
            load_config(path, CREDENTIALS)

    def test_empty_file_uses_defaults(self, tmp_path: Path) -> None:
        """An empty config file is equivalent to no file."""
        path = tmp_path / "flakeguard.yaml"
        path.write_text("")

        assert load_config(path, CREDENTIALS).failure_retries == 2


class TestMergeEnvOverrides:
    """Tests for merge_env_overrides."""

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [("false", False), ("0", False), ("true", True), ("", True)],
    )
    def test_boolean_parsing(self, raw: str, expected: bool) -> None:
        """Only `false` and `0` disable a boolean option."""
        merged = merge_env_overrides({}, {"FLAKEGUARD_ENABLED": raw})

        assert merged["enabled"] is expected

    def test_leaves_unset_values_alone(self) -> None:
        """File values survive when no variable is set."""
        assert merge_env_overrides({"failure_retries": 4}, {}) == {"failure_retries": 4}


class TestIndependencePredicate:
    """Tests for is_failure_test_independent."""

    def test_bare_string_is_pattern(self) -> None:
        """A bare string is shorthand for a pattern predicate."""
        config = FlakeGuardConfig(
            enabled=False, is_failure_test_independent="ECONNRESET"
        )

        assert config.is_failure_test_independent == PatternPredicate(
            value="ECONNRESET"
        )

    def test_list_is_pattern(self) -> None:
        """A list of strings is shorthand for a pattern predicate."""
        config = FlakeGuardConfig(
            enabled=False, is_failure_test_independent=["a", "b"]
        )

        assert isinstance(config.is_failure_test_independent, PatternPredicate)
        check = config.independence_check()
        assert check is not None
        context = FailureContext(filename="f", name=("t",), attempt=0, failure="xbx")
        assert check(context) is True

    def test_invalid_pattern_is_config_error(self) -> None:
        """Invalid regular expressions are rejected at load time."""
        with pytest.raises(ConfigError, match="invalid regular expression"):
            load_config(
                None,
                {"FLAKEGUARD_ENABLED": "false"},
                is_failure_test_independent="(unclosed",
            )

    def test_callback_is_resolved(self) -> None:
        """Callback predicates resolve to the referenced function."""
        config = FlakeGuardConfig(
            enabled=False,
            is_failure_test_independent={
                "kind": "callback",
                "value": f"{__name__}:always_independent",
            },
        )

        assert isinstance(config.is_failure_test_independent, CallbackPredicate)
        assert config.independence_check() is always_independent

    def test_unimportable_callback_is_config_error(self) -> None:
        """Unresolvable callbacks fail at load time."""
        config = FlakeGuardConfig(
            enabled=False,
            is_failure_test_independent={
                "kind": "callback",
                "value": "flakeguard.does_not_exist:check",
            },
        )

        with pytest.raises(ConfigError, match="cannot import"):
            config.independence_check()

    def test_non_callable_callback_is_config_error(self) -> None:
        """The referenced object must be callable."""
        config = FlakeGuardConfig(
            enabled=False,
            is_failure_test_independent={
                "kind": "callback",
                "value": f"{__name__}:NOT_CALLABLE",
            },
        )

        with pytest.raises(ConfigError, match="not callable"):
            config.independence_check()

    def test_no_predicate_resolves_to_none(self) -> None:
        """Without a predicate nothing is classified."""
        assert FlakeGuardConfig(enabled=False).independence_check() is None
