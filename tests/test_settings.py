from freelance_forge.app.core.settings import Settings, get_settings


def test_settings_defaults():
    settings = get_settings()
    assert settings.app_name == "Freelance Forge"
    assert isinstance(settings.secret_key, str) and settings.secret_key
    assert isinstance(settings.database_url, str) and settings.database_url
    assert settings.pdf_backend in ("native", "external")


def test_get_settings_is_singleton():
    assert get_settings() is get_settings()


def test_settings_read_prefixed_environment(monkeypatch):
    monkeypatch.setenv("FORGE_PDF_BACKEND", "external")
    monkeypatch.setenv("FORGE_PDF_CONVERTER_TIMEOUT_SECONDS", "5")
    monkeypatch.setenv("FORGE_TEMPLATE_ESCAPE_FIELDS", "true")
    settings = Settings()
    assert settings.pdf_backend == "external"
    assert settings.pdf_converter_timeout_seconds == 5.0
    assert settings.template_escape_fields is True
