import pytest

from clanzone.backend.config import load_policy, load_settings

_ENV_KEYS = (
    "CLANZONE_SERVER_SALT",
    "CLANZONE_DATABASE_URL",
    "CLANZONE_HOST",
    "CLANZONE_PORT",
    "CLANZONE_HOST_TOKEN_HASH",
    "CLANZONE_BRIDGE_URL",
    "CLANZONE_COLLABORATOR_TIMEOUT",
    "CLANZONE_LOG_LEVEL",
    "CLANZONE_TARGET_KINDS",
    "CLANZONE_PROMPT_DELAY",
    "CLANZONE_CONFIRM_COMMAND",
    "CLANZONE_PROMPT_LABEL",
    "CLANZONE_PERMISSION_KEY",
    "CLANZONE_WIPE_TIME",
    "CLANZONE_ACTIVATION_WINDOW",
    "CLANZONE_ZONE_RADIUS",
    "CLANZONE_ALLOWED_GROUPS",
    "CLANZONE_ZONE_FLAGS",
    "CLANZONE_ZONE_ID_PREFIX",
    "CLANZONE_ENTER_MESSAGE",
    "CLANZONE_LEAVE_MESSAGE",
    "CLANZONE_DETECT_EXISTING_ZONES",
)


@pytest.fixture
def clean_env(monkeypatch):
    for key in _ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    return monkeypatch


def test_load_settings_reads_expected_env(clean_env) -> None:
    clean_env.setenv("CLANZONE_SERVER_SALT", "salt-1")
    clean_env.setenv("CLANZONE_DATABASE_URL", "postgresql://local")
    clean_env.setenv("CLANZONE_HOST", "localhost")
    clean_env.setenv("CLANZONE_PORT", "9000")
    clean_env.setenv("CLANZONE_BRIDGE_URL", "http://rust-host:28080")
    clean_env.setenv("CLANZONE_TARGET_KINDS", "cupboard.tool.deployed, cupboard.tool.retro.deployed")
    clean_env.setenv("CLANZONE_WIPE_TIME", "1700000000")
    clean_env.setenv("CLANZONE_LOG_LEVEL", "debug")

    settings = load_settings()

    assert settings.server_salt == "salt-1"
    assert settings.database_url == "postgresql://local"
    assert settings.host == "localhost"
    assert settings.port == 9000
    assert settings.bridge_url == "http://rust-host:28080"
    assert settings.target_kinds == ("cupboard.tool.deployed", "cupboard.tool.retro.deployed")
    assert settings.wipe_time == 1700000000.0
    assert settings.log_level == "DEBUG"


def test_load_settings_applies_defaults(clean_env) -> None:
    settings = load_settings()

    assert settings.server_salt == "dev-salt"
    assert settings.database_url is None
    assert settings.host == "127.0.0.1"
    assert settings.port == 8000
    assert settings.host_token_hash is None
    assert settings.collaborator_timeout == 2.0
    assert settings.target_kinds == ("cupboard.tool.deployed",)
    assert settings.prompt_delay == 0.2
    assert settings.confirm_command == "clansafezone.create"
    assert settings.wipe_time is None
    assert settings.policy.activation_window_seconds == 3600.0
    assert settings.policy.zone_radius == 50.0
    assert settings.policy.allowed_groups == ()
    assert settings.policy.zone_flags == {"nopvp": "true", "noraid": "true", "eject": "true"}
    assert settings.policy.detect_existing_zones is False


def test_load_policy_parses_lists_flags_and_disabled_window(clean_env) -> None:
    clean_env.setenv("CLANZONE_ACTIVATION_WINDOW", "none")
    clean_env.setenv("CLANZONE_ZONE_RADIUS", "60")
    clean_env.setenv("CLANZONE_ALLOWED_GROUPS", "Alpha, Beta,,")
    clean_env.setenv("CLANZONE_ZONE_FLAGS", "nopvp=true, nodestroy=true, godmode=true")
    clean_env.setenv("CLANZONE_DETECT_EXISTING_ZONES", "TRUE")

    policy = load_policy()

    assert policy.activation_window_seconds is None
    assert policy.zone_radius == 60.0
    assert policy.allowed_groups == ("Alpha", "Beta")
    assert policy.zone_flags == {"nopvp": "true", "nodestroy": "true", "godmode": "true"}
    assert policy.detect_existing_zones is True


def test_load_policy_rejects_malformed_flags(clean_env) -> None:
    clean_env.setenv("CLANZONE_ZONE_FLAGS", "nopvp")

    with pytest.raises(ValueError):
        load_policy()
