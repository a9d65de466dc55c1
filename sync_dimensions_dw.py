# sync_dimensions_dw.py
# Sincroniza los maestros de clientes y productos (CSV) con DimCliente / DimProducto.
import argparse
import logging
import os
import sys
from typing import List, Optional, Tuple

import pandas as pd

from core.db_engine import get_engine
from core.dw_models import create_schema
from core.dw_repository import UnitOfWork
from core.entities import Cliente, Producto
from core.logger import get_logger
from core.settings import load_settings
from load.dimension_loader import LoadDimensionsUseCase
from transform.clean_data import (
    normalize_cliente_id,
    normalize_producto_id,
    normalize_text,
    standardize_columns,
)

log = logging.getLogger("sync_dims")


def _read_csv(path: str) -> pd.DataFrame:
    df = pd.read_csv(path, encoding="utf-8", dtype=str, keep_default_na=False)
    return standardize_columns(df)


def _optional(value: str) -> Optional[str]:
    value = (value or "").strip()
    return value or None


def read_clientes(path: str) -> List[Cliente]:
    # clients.csv: idcliente, nombre, email
    df = _read_csv(path)
    df = df[df["idcliente"].str.strip() != ""].drop_duplicates(subset=["idcliente"])
    nombres = normalize_text(df["nombre"]) if "nombre" in df.columns else df["idcliente"]
    emails = df["email"] if "email" in df.columns else pd.Series("", index=df.index)

    return [
        Cliente(
            id_cliente=normalize_cliente_id(id_raw),
            nombre=nombre or f"Cliente_{id_raw}",
            email=_optional(email),
        )
        for id_raw, nombre, email in zip(df["idcliente"], nombres, emails)
    ]


def read_productos(path: str) -> List[Producto]:
    # products.csv: idproducto, nombre, categoria[, precio]
    df = _read_csv(path)
    df = df[df["idproducto"].str.strip() != ""].drop_duplicates(subset=["idproducto"])
    nombres = normalize_text(df["nombre"]) if "nombre" in df.columns else df["idproducto"]
    categorias = df["categoria"] if "categoria" in df.columns else pd.Series("", index=df.index)
    precios = (
        pd.to_numeric(df["precio"], errors="coerce")
        if "precio" in df.columns
        else pd.Series(float("nan"), index=df.index)
    )

    return [
        Producto(
            id_producto=normalize_producto_id(id_raw),
            nombre_producto=nombre or f"Producto_{id_raw}",
            categoria=_optional(categoria),
            precio=None if pd.isna(precio) else float(precio),
        )
        for id_raw, nombre, categoria, precio in zip(df["idproducto"], nombres, categorias, precios)
    ]


def sync(cfg, uow: UnitOfWork) -> Tuple[int, int]:
    paths = cfg.get("paths") or {}
    clientes: List[Cliente] = []
    productos: List[Producto] = []

    clients_csv = paths.get("clients_csv")
    if clients_csv and os.path.exists(clients_csv):
        clientes = read_clientes(clients_csv)
    else:
        log.warning(f"Maestro de clientes no encontrado: {clients_csv}")

    products_csv = paths.get("products_csv")
    if products_csv and os.path.exists(products_csv):
        productos = read_productos(products_csv)
    else:
        log.warning(f"Maestro de productos no encontrado: {products_csv}")

    with uow.transaction() as tx:
        use_case = LoadDimensionsUseCase(tx)
        n_cli = use_case.load_clientes(clientes)
        n_prod = use_case.load_productos(productos)

    log.info(f"Dimensiones sincronizadas: {n_cli} clientes, {n_prod} productos")
    return n_cli, n_prod


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Sincroniza DimCliente y DimProducto desde los CSV maestros")
    parser.add_argument("--config", help="Ruta a settings.json")
    parser.add_argument("--init-db", action="store_true", help="Crea las tablas del DW si no existen")
    args = parser.parse_args(argv)

    cfg = load_settings(args.config)
    if args.init_db:
        cfg["create_schema"] = True
    get_logger("sync_dims", cfg["log_path"], cfg.get("log_level", "INFO"))

    engine = get_engine(cfg.get("dw_url"))
    if cfg.get("create_schema"):
        create_schema(engine)

    try:
        sync(cfg, UnitOfWork(engine))
    except Exception as e:
        log.exception(f"Error sincronizando dimensiones: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
