# core/db_engine.py
from typing import Dict, Optional

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine

# Ajusta el nombre del driver si usas 18 en vez de 17
DRIVER = "ODBC Driver 17 for SQL Server"

# Si usas autenticación de Windows (Trusted_Connection)
DEFAULT_DW_URL = (
    "mssql+pyodbc://@localhost/DWOpiniones"
    f"?driver={DRIVER.replace(' ', '+')}"
    "&trusted_connection=yes"
)

_engines: Dict[str, Engine] = {}


def _enable_sqlite_transactions(engine: Engine) -> None:
    # pysqlite abre las transacciones tarde y rompe los SAVEPOINT;
    # emitimos BEGIN nosotros y activamos las FKs.
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cur = dbapi_connection.cursor()
        cur.execute("PRAGMA foreign_keys=ON")
        cur.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")


def get_engine(url: Optional[str] = None, **kwargs) -> Engine:
    url = url or DEFAULT_DW_URL
    if url not in _engines:
        engine = create_engine(url, echo=False, future=True, **kwargs)
        if engine.dialect.name == "sqlite":
            _enable_sqlite_transactions(engine)
        _engines[url] = engine
    return _engines[url]


def dispose_engines() -> None:
    for engine in _engines.values():
        engine.dispose()
    _engines.clear()


def test_connection(url: Optional[str] = None) -> bool:
    with get_engine(url).connect() as conn:
        return conn.execute(text("SELECT 1")).scalar() == 1


if __name__ == "__main__":
    print("Conectado OK" if test_connection() else "Conexión fallida")
