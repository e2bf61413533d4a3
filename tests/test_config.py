from safety_tutor.config import DEFAULT_DB_PATH, DEFAULT_MODEL, Settings


def test_defaults_from_empty_environment():
    settings = Settings.from_env({})
    assert settings.db_path == DEFAULT_DB_PATH
    assert settings.gemini_model == DEFAULT_MODEL
    assert settings.gemini_api_key == ""
    assert settings.gemini_timeout == 30.0
    assert settings.log_level == "WARNING"


def test_environment_overrides():
    settings = Settings.from_env({
        "SAFETY_TUTOR_DB": "/tmp/t.db",
        "GEMINI_API_KEY": "k",
        "GEMINI_TIMEOUT": "12.5",
        "SAFETY_TUTOR_LOG_LEVEL": "debug",
        "REGENERATE_DELAY": "0",
    })
    assert settings.db_path == "/tmp/t.db"
    assert settings.gemini_api_key == "k"
    assert settings.gemini_timeout == 12.5
    assert settings.log_level == "DEBUG"
    assert settings.regenerate_delay == 0.0
