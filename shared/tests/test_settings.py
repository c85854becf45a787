from shared.config.environment import Environment, get_environment, get_environment_info
from shared.config.settings import Settings, get_settings, reload_settings


def set_credentials(monkeypatch):
    monkeypatch.setenv('PGHOST', 'db.internal')
    monkeypatch.setenv('PGDATABASE', 'rides')
    monkeypatch.setenv('PGUSER', 'reporting')
    monkeypatch.setenv('PGPASSWORD', 's3cret')


def test_settings_without_credentials():
    settings = Settings(_env_file=None)
    assert settings.database is None
    assert settings.validate_required_credentials() == ['PGHOST', 'PGDATABASE', 'PGUSER', 'PGPASSWORD']
    assert settings.server.host == "0.0.0.0"
    assert settings.server.port == 3000
    assert settings.environment is Environment.TESTING


def test_database_config_from_pg_variables(monkeypatch):
    set_credentials(monkeypatch)
    monkeypatch.setenv('PGPORT', '6543')
    monkeypatch.setenv('PGSSLMODE', 'require')

    database = Settings(_env_file=None).database

    assert database.host == 'db.internal'
    assert database.port == 6543
    assert database.password.get_secret_value() == 's3cret'
    assert 's3cret' not in repr(database)

    url = database.get_connection_url()
    assert url.drivername == 'postgresql+psycopg2'
    assert url.database == 'rides'

    options = database.get_engine_options()
    assert options['pool_size'] == 20
    assert options['connect_args']['sslmode'] == 'require'
    assert options['connect_args']['connect_timeout'] == 2


def test_server_and_compiler_overrides(monkeypatch):
    monkeypatch.setenv('PORT', '8080')
    monkeypatch.setenv('COMPILER__REFERENCE_YEAR', '2026')

    settings = Settings(_env_file=None)

    assert settings.server.port == 8080
    assert settings.compiler.reference_year == 2026
    assert settings.compiler.conventions.fact_table == 'trips'


def test_get_settings_is_cached():
    first = get_settings()
    assert get_settings() is first
    assert reload_settings() is not first


def test_environment_detection(monkeypatch):
    assert get_environment() is Environment.TESTING

    monkeypatch.setenv('ENVIRONMENT', 'nonsense')
    monkeypatch.setenv('APP_ENV', 'staging')
    get_environment.cache_clear()
    assert get_environment() is Environment.STAGING
    assert get_environment().log_level == "INFO"

    monkeypatch.setenv('ENVIRONMENT', 'production')
    get_environment.cache_clear()
    assert get_environment_info() == {'environment': 'production', 'debug_enabled': False, 'log_level': 'WARNING'}

    monkeypatch.delenv('ENVIRONMENT')
    monkeypatch.delenv('APP_ENV')
    get_environment.cache_clear()
    assert get_environment() is Environment.DEVELOPMENT
