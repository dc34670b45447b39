import pytest
from sqlalchemy import create_engine, text

from core.errors import ConnectionUnavailableError
from retrieval.connections import (
    MIN_IDLE,
    ConnectionFactory,
    descriptor_from_url,
    fetch_dicts,
    odbc_connect_string,
    parse_jdbc_url,
    uses_integrated_auth,
)

INTEGRATED_URL = "jdbc:sqlserver://wmssql-io:1433;databaseName=ADV;integratedSecurity=true;encrypt=true"
SQL_AUTH_URL = "jdbc:sqlserver://wmssql-cls;databaseName=CLS;encrypt=false;trustServerCertificate=true"


def test_parse_jdbc_url():
    host, port, options = parse_jdbc_url(INTEGRATED_URL)
    assert host == "wmssql-io"
    assert port == 1433
    assert options["databaseName"] == "ADV"


def test_empty_url_is_rejected():
    with pytest.raises(ValueError):
        parse_jdbc_url("")


@pytest.mark.parametrize("url, expected", [
    (INTEGRATED_URL, True),
    ("jdbc:sqlserver://h;authenticationScheme=JavaKerberos", True),
    ("jdbc:sqlserver://h;IntegratedSecurity=TRUE", True),
    (SQL_AUTH_URL, False),
    (None, False),
])
def test_integrated_auth_markers(url, expected):
    assert uses_integrated_auth(url) is expected


def test_integrated_auth_never_sends_credentials():
    desc = descriptor_from_url("io", INTEGRATED_URL, "svc_user", "secret")
    conn_str = odbc_connect_string(desc)

    assert desc.integrated_auth
    assert desc.server == "wmssql-io,1433"
    assert desc.database == "ADV"
    assert "Trusted_Connection=yes" in conn_str
    assert "UID=" not in conn_str
    assert "secret" not in conn_str


def test_sql_auth_applies_credentials():
    desc = descriptor_from_url("cls", SQL_AUTH_URL, "svc_user", "secret")
    conn_str = odbc_connect_string(desc)

    assert not desc.integrated_auth
    assert "UID=svc_user" in conn_str
    assert "PWD={secret}" in conn_str
    assert "Encrypt=no" in conn_str
    assert "SERVER=wmssql-cls;" in conn_str


@pytest.fixture
def sqlite_factory():
    created = []

    def engine_factory(url, **kwargs):
        created.append((url, kwargs))
        return create_engine("sqlite://", poolclass=kwargs["poolclass"])

    factory = ConnectionFactory(
        {"io": descriptor_from_url("io", INTEGRATED_URL)},
        engine_factory=engine_factory,
    )
    yield factory, created
    factory.dispose()


def test_named_pool_is_created_once(sqlite_factory):
    factory, created = sqlite_factory
    with factory.connect("io") as conn:
        assert fetch_dicts(conn, "SELECT 1 AS one") == [{"one": 1}]
    with factory.connect("io") as conn:
        conn.execute(text("SELECT 1"))

    assert len(created) == 1
    url, kwargs = created[0]
    assert "SERVER=wmssql-io,1433" in url.query["odbc_connect"]
    assert kwargs["pool_size"] == 10


def test_unknown_pool_name(sqlite_factory):
    factory, _ = sqlite_factory
    with pytest.raises(ConnectionUnavailableError):
        with factory.connect("nope"):
            pass


def test_adhoc_connections_use_integrated_auth(sqlite_factory):
    factory, created = sqlite_factory
    with factory.connect_host("wmssql-test", "ADV") as conn:
        conn.execute(text("SELECT 1"))

    url, kwargs = created[-1]
    assert "SERVER=wmssql-test;" in url.query["odbc_connect"]
    assert "DATABASE=ADV" in url.query["odbc_connect"]
    assert "Trusted_Connection=yes" in url.query["odbc_connect"]
    assert "pool_size" not in kwargs


def test_warm_up_keeps_an_idle_connection_until_dispose(sqlite_factory):
    factory, _ = sqlite_factory
    factory.warm_up()

    pool = factory.engine("io").pool
    assert pool.checkedin() == MIN_IDLE
    with factory.connect("io") as conn:
        conn.execute(text("SELECT 1"))
    assert factory.ensure_min_idle("io") == MIN_IDLE

    factory.dispose()
    assert pool.checkedin() == 0


def test_warm_up_logs_failures_without_raising():
    def broken(url, **kwargs):
        return create_engine("sqlite:////nonexistent/dir/db.sqlite", poolclass=kwargs["poolclass"])

    factory = ConnectionFactory({"io": descriptor_from_url("io", INTEGRATED_URL)}, engine_factory=broken)
    factory.warm_up()
    factory.dispose()
