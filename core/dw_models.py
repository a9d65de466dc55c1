# core/dw_models.py
# Esquema estrella del DW de opiniones
from sqlalchemy import (
    Column,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    Numeric,
    String,
    Table,
    UnicodeText,
)
from sqlalchemy.engine import Engine

metadata = MetaData()

dim_cliente = Table(
    "DimCliente",
    metadata,
    Column("IdCliente", String(50), primary_key=True),
    Column("Nombre", String(200), nullable=False),
    Column("Email", String(200)),
)

dim_producto = Table(
    "DimProducto",
    metadata,
    Column("IdProducto", String(50), primary_key=True),
    Column("NombreProducto", String(200), nullable=False),
    Column("Categoria", String(100)),
    Column("Precio", Numeric(10, 2, asdecimal=False)),
)

# IdFecha = YYYYMMDD, siempre derivado de la fecha
dim_fecha = Table(
    "DimFecha",
    metadata,
    Column("IdFecha", Integer, primary_key=True, autoincrement=False),
    Column("Año", Integer, key="Anio", nullable=False),
    Column("Mes", Integer, nullable=False),
    Column("Trimestre", Integer, nullable=False),
    Column("NombreMes", String(20), nullable=False),
)

dim_fuente = Table(
    "DimFuente",
    metadata,
    Column("IdFuente", Integer, primary_key=True, autoincrement=True),
    Column("NombreFuente", String(100), nullable=False, unique=True),
)

fact_opiniones = Table(
    "FactOpiniones",
    metadata,
    Column("IdOpinion", Integer, primary_key=True, autoincrement=True),
    Column("IdCliente", String(50), ForeignKey("DimCliente.IdCliente"), nullable=False),
    Column("IdProducto", String(50), ForeignKey("DimProducto.IdProducto"), nullable=False),
    Column("IdFecha", Integer, ForeignKey("DimFecha.IdFecha"), nullable=False),
    Column("IdFuente", Integer, ForeignKey("DimFuente.IdFuente"), nullable=False),
    Column("ClasificacionSentimiento", String(20), nullable=False),
    Column("PuntajeSatisfaccion", Numeric(3, 2, asdecimal=False)),
    Column("Comentario", UnicodeText),
    Column("CanalOriginal", String(100)),
    # Linaje para detectar duplicados por (IdOriginal, FuenteOrigen)
    Column("IdOriginal", String(100)),
    Column("FuenteOrigen", String(20)),
    Index("ix_fact_opiniones_origen", "IdOriginal", "FuenteOrigen"),
)


def create_schema(engine: Engine) -> None:
    metadata.create_all(engine)
