from datetime import date

import pytest
from sqlalchemy import select

from core.dw_models import dim_cliente, dim_fecha, dim_fuente, dim_producto, fact_opiniones
from core.dw_repository import ALREADY_EXISTS, DwTransaction
from core.entities import Cliente, Producto
from core.errors import TransactionStateError


def test_begin_twice_raises(uow):
    tx = uow.begin_transaction()
    assert isinstance(tx, DwTransaction)
    assert uow.in_transaction
    with pytest.raises(TransactionStateError):
        uow.begin_transaction()
    uow.rollback()
    assert not uow.in_transaction


def test_commit_and_rollback_without_transaction_raise(uow):
    with pytest.raises(TransactionStateError):
        uow.commit()
    with pytest.raises(TransactionStateError):
        uow.rollback()


def test_repositories_require_open_transaction(uow):
    with pytest.raises(TransactionStateError):
        uow.clientes
    with pytest.raises(TransactionStateError):
        uow.opiniones


def test_repositories_bound_to_current_transaction(uow):
    tx = uow.begin_transaction()
    assert uow.clientes is tx.clientes
    assert uow.fechas is tx.fechas
    uow.commit()
    with pytest.raises(TransactionStateError):
        uow.fuentes


def test_cliente_get_or_create_is_idempotent(uow, count_rows):
    with uow.transaction() as tx:
        first = tx.clientes.get_or_create(Cliente("C001", "Ana", "ana@mail.com"))
        second = tx.clientes.get_or_create(Cliente("C001", "Otro nombre"))
        assert first != ALREADY_EXISTS
        assert second == ALREADY_EXISTS
        assert tx.clientes.exists("C001")
        assert not tx.clientes.exists("C999")
    assert count_rows(dim_cliente) == 1


def test_upsert_updates_existing_row(uow, dw_engine):
    with uow.transaction() as tx:
        tx.productos.upsert(Producto("P010", "Licuadora", "Hogar", 99.9))
        tx.productos.upsert(Producto("P010", "Licuadora Pro", "Hogar", 120.0))

    with dw_engine.connect() as conn:
        rows = conn.execute(select(dim_producto)).all()
    assert len(rows) == 1
    assert rows[0].NombreProducto == "Licuadora Pro"
    assert rows[0].Precio == pytest.approx(120.0)


def test_fecha_row_is_created_once(uow, dw_engine, count_rows):
    with uow.transaction() as tx:
        assert tx.fechas.get_fecha_id(date(2024, 3, 15)) == 20240315
        assert tx.fechas.ensure_fecha_exists(date(2024, 3, 15)) == 20240315

    assert count_rows(dim_fecha) == 1
    with dw_engine.connect() as conn:
        row = conn.execute(select(
            dim_fecha.c.Anio, dim_fecha.c.Mes, dim_fecha.c.Trimestre, dim_fecha.c.NombreMes,
        )).one()
    assert tuple(row) == (2024, 3, 1, "marzo")


def test_fuente_get_or_create(uow, count_rows):
    with uow.transaction() as tx:
        web = tx.fuentes.get_or_create("Web")
        assert tx.fuentes.get_or_create("Web") == web
        assert tx.fuentes.get_or_create("Twitter") != web
    assert count_rows(dim_fuente) == 2


def test_opinion_insert_and_lineage_lookup(uow, make_opinion, count_rows):
    opinion = make_opinion(1)
    with uow.transaction() as tx:
        tx.clientes.get_or_create(Cliente(opinion.id_cliente, "Ana"))
        tx.productos.get_or_create(Producto(opinion.id_producto, "Licuadora"))
        opinion.id_fecha = tx.fechas.get_fecha_id(opinion.fecha)
        opinion.id_fuente = tx.fuentes.get_or_create(opinion.canal_original)
        assert tx.opiniones.insert(opinion) == 1
        assert tx.opiniones.exists("1", "CSV")
        assert not tx.opiniones.exists("1", "API")
    assert count_rows(fact_opiniones) == 1


def test_transaction_context_rolls_back_on_error(uow, count_rows):
    with pytest.raises(RuntimeError):
        with uow.transaction() as tx:
            tx.clientes.upsert(Cliente("C001", "Ana"))
            raise RuntimeError("falla a mitad")
    assert not uow.in_transaction
    assert count_rows(dim_cliente) == 0


def test_savepoint_undoes_only_inner_work(uow, count_rows):
    with uow.transaction() as tx:
        tx.clientes.upsert(Cliente("C001", "Ana"))
        with pytest.raises(RuntimeError):
            with tx.savepoint():
                tx.clientes.upsert(Cliente("C002", "Luis"))
                raise RuntimeError("sólo este registro")
    assert count_rows(dim_cliente) == 1


def test_close_rolls_back_open_transaction(uow, count_rows):
    tx = uow.begin_transaction()
    tx.clientes.upsert(Cliente("C001", "Ana"))
    uow.close()
    assert not uow.in_transaction
    assert count_rows(dim_cliente) == 0
