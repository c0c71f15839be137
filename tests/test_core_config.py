"""Tests for config loading, message strings and LPSYNC_PATHS resolution."""

from lpsync.core.config import get_config, get_config_value, get_string, LPSYNC_PATHS, _PACKAGE_DIR


def test_get_config_returns_dict():
    config = get_config(reload=True)
    assert isinstance(config, dict)
    assert "import" in config


def test_get_config_caching():
    c1 = get_config()
    c2 = get_config()
    assert c1 is c2


def test_get_config_reload_returns_fresh():
    get_config()
    c2 = get_config(reload=True)
    c3 = get_config()
    assert c3 is c2


def test_get_config_value_nested():
    assert get_config_value("import", "delimiter") == "comma"


def test_get_config_value_missing_returns_default():
    result = get_config_value("nonexistent", "deep", "path", default="fallback")
    assert result == "fallback"


def test_get_string_formats_params():
    assert get_string("competencyscale", name="Maths") == "Competency scale: Maths"


def test_get_string_unknown_key_returns_key():
    assert get_string("no_such_string") == "no_such_string"


def test_database_path_is_absolute_under_package():
    assert LPSYNC_PATHS.database.is_absolute()
    assert str(LPSYNC_PATHS.database).startswith(str(_PACKAGE_DIR))
    assert LPSYNC_PATHS.database.name == "lpsync.db"
