# core/dw_repository.py
import logging
from contextlib import contextmanager
from datetime import date
from typing import Dict, Iterator, Optional

from sqlalchemy import Table, func, insert, select, text
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.engine import Connection, Engine

from transform.clean_data import build_fecha_row, derive_fecha_key
from .dw_models import dim_cliente, dim_fecha, dim_fuente, dim_producto, fact_opiniones
from .entities import Cliente, Opinion, Producto
from .errors import TransactionStateError

log = logging.getLogger(__name__)

# get_or_create devuelve esto cuando la fila ya estaba
ALREADY_EXISTS = 0


def upsert_row(conn: Connection, table: Table, key: str, values: Dict[str, object]) -> int:
    """
    Insert-or-update atómico por clave natural.
    SQLite/PostgreSQL usan ON CONFLICT; SQL Server, MERGE.
    """
    dialect = conn.dialect.name
    updates = [c for c in values if c != key]

    if dialect in ("sqlite", "postgresql"):
        insert_fn = sqlite_insert if dialect == "sqlite" else pg_insert
        stmt = insert_fn(table).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=[table.c[key]],
            set_={c: stmt.excluded[c] for c in updates},
        )
        return conn.execute(stmt).rowcount

    merge = (
        f"MERGE INTO {table.name} AS target "
        f"USING (SELECT :{key} AS {key}) AS source "
        f"ON target.{key} = source.{key} "
        f"WHEN MATCHED THEN UPDATE SET {', '.join(f'{c} = :{c}' for c in updates)} "
        f"WHEN NOT MATCHED THEN INSERT ({', '.join(values)}) "
        f"VALUES ({', '.join(':' + c for c in values)});"
    )
    return conn.execute(text(merge), values).rowcount


class ClienteRepository:
    def __init__(self, conn: Connection):
        self.conn = conn

    def exists(self, id_cliente: str) -> bool:
        stmt = select(dim_cliente.c.IdCliente).where(dim_cliente.c.IdCliente == id_cliente)
        return self.conn.execute(stmt).first() is not None

    def get_or_create(self, cliente: Cliente) -> int:
        if self.exists(cliente.id_cliente):
            return ALREADY_EXISTS
        return self.upsert(cliente)

    def upsert(self, cliente: Cliente) -> int:
        return upsert_row(self.conn, dim_cliente, "IdCliente", {
            "IdCliente": cliente.id_cliente,
            "Nombre": cliente.nombre,
            "Email": cliente.email,
        })


class ProductoRepository:
    def __init__(self, conn: Connection):
        self.conn = conn

    def exists(self, id_producto: str) -> bool:
        stmt = select(dim_producto.c.IdProducto).where(dim_producto.c.IdProducto == id_producto)
        return self.conn.execute(stmt).first() is not None

    def get_or_create(self, producto: Producto) -> int:
        if self.exists(producto.id_producto):
            return ALREADY_EXISTS
        return self.upsert(producto)

    def upsert(self, producto: Producto) -> int:
        return upsert_row(self.conn, dim_producto, "IdProducto", {
            "IdProducto": producto.id_producto,
            "NombreProducto": producto.nombre_producto,
            "Categoria": producto.categoria,
            "Precio": producto.precio,
        })


class FechaRepository:
    def __init__(self, conn: Connection):
        self.conn = conn

    def ensure_fecha_exists(self, fecha: date) -> int:
        # Check-then-insert: seguro solo con un único escritor por carga
        row = build_fecha_row(fecha)
        stmt = select(dim_fecha.c.IdFecha).where(dim_fecha.c.IdFecha == row["IdFecha"])
        if self.conn.execute(stmt).first() is None:
            self.conn.execute(insert(dim_fecha).values(**row))
            log.debug(f"DimFecha: insertada {row['IdFecha']}")
        return row["IdFecha"]

    def get_fecha_id(self, fecha: date) -> int:
        self.ensure_fecha_exists(fecha)
        return derive_fecha_key(fecha)


class FuenteRepository:
    def __init__(self, conn: Connection):
        self.conn = conn

    def get_or_create(self, nombre_fuente: str) -> int:
        stmt = select(dim_fuente.c.IdFuente).where(dim_fuente.c.NombreFuente == nombre_fuente)
        existing = self.conn.execute(stmt).scalar()
        if existing is not None:
            return existing

        result = self.conn.execute(insert(dim_fuente).values(NombreFuente=nombre_fuente))
        new_id = result.inserted_primary_key[0]
        log.info(f"DimFuente: nueva fuente '{nombre_fuente}' -> {new_id}")
        return new_id


class OpinionRepository:
    def __init__(self, conn: Connection):
        self.conn = conn

    def insert(self, opinion: Opinion) -> int:
        result = self.conn.execute(insert(fact_opiniones).values(
            IdCliente=opinion.id_cliente,
            IdProducto=opinion.id_producto,
            IdFecha=opinion.id_fecha,
            IdFuente=opinion.id_fuente,
            ClasificacionSentimiento=opinion.clasificacion,
            PuntajeSatisfaccion=opinion.puntaje_satisfaccion,
            Comentario=opinion.comentario,
            CanalOriginal=opinion.canal_original,
            IdOriginal=opinion.id_original or None,
            FuenteOrigen=opinion.fuente_origen or None,
        ))
        return result.rowcount

    def exists(self, id_original: str, fuente_origen: str) -> bool:
        # Clave de linaje (IdOriginal, FuenteOrigen), no el canal
        stmt = (
            select(func.count())
            .select_from(fact_opiniones)
            .where(fact_opiniones.c.IdOriginal == id_original)
            .where(fact_opiniones.c.FuenteOrigen == fuente_origen)
        )
        return self.conn.execute(stmt).scalar() > 0


class DwTransaction:
    """
    Contexto transaccional explícito: una conexión abierta con su transacción
    y los repositorios construidos sobre ella.
    """

    def __init__(self, conn: Connection):
        self.conn = conn
        self.clientes = ClienteRepository(conn)
        self.productos = ProductoRepository(conn)
        self.opiniones = OpinionRepository(conn)
        self.fechas = FechaRepository(conn)
        self.fuentes = FuenteRepository(conn)

    @contextmanager
    def savepoint(self) -> Iterator["DwTransaction"]:
        # Un fallo dentro sólo deshace lo hecho desde el SAVEPOINT
        with self.conn.begin_nested():
            yield self


class UnitOfWork:
    def __init__(self, engine: Engine):
        self.engine = engine
        self._conn: Optional[Connection] = None
        self._transaction = None
        self._context: Optional[DwTransaction] = None

    @property
    def in_transaction(self) -> bool:
        return self._transaction is not None

    def _require_context(self) -> DwTransaction:
        if self._context is None:
            raise TransactionStateError("No hay una transacción activa")
        return self._context

    @property
    def clientes(self) -> ClienteRepository:
        return self._require_context().clientes

    @property
    def productos(self) -> ProductoRepository:
        return self._require_context().productos

    @property
    def opiniones(self) -> OpinionRepository:
        return self._require_context().opiniones

    @property
    def fechas(self) -> FechaRepository:
        return self._require_context().fechas

    @property
    def fuentes(self) -> FuenteRepository:
        return self._require_context().fuentes

    def begin_transaction(self) -> DwTransaction:
        if self._transaction is not None:
            raise TransactionStateError("Ya hay una transacción iniciada")

        conn = self.engine.connect()
        try:
            self._transaction = conn.begin()
        except Exception:
            conn.close()
            raise
        self._conn = conn
        self._context = DwTransaction(conn)
        log.debug("Transacción iniciada")
        return self._context

    def commit(self) -> None:
        if self._transaction is None:
            raise TransactionStateError("No hay transacción que confirmar")
        try:
            self._transaction.commit()
            log.debug("Transacción confirmada")
        finally:
            self._release()

    def rollback(self) -> None:
        if self._transaction is None:
            raise TransactionStateError("No hay transacción que revertir")
        try:
            self._transaction.rollback()
            log.warning("Transacción revertida")
        finally:
            self._release()

    def _release(self) -> None:
        conn = self._conn
        self._transaction = None
        self._context = None
        self._conn = None
        if conn is not None:
            conn.close()

    @contextmanager
    def transaction(self) -> Iterator[DwTransaction]:
        tx = self.begin_transaction()
        try:
            yield tx
        except BaseException:
            self.rollback()
            raise
        else:
            self.commit()

    def close(self) -> None:
        if self._transaction is not None:
            self.rollback()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
