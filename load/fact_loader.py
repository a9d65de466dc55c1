import logging
from threading import Event
from typing import Dict, List, Optional

from sqlalchemy.exc import DBAPIError

from core.dw_repository import DwTransaction, UnitOfWork
from core.entities import Cliente, Opinion, Producto
from core.errors import PipelineCancelled, TransactionStateError
from core.etl_results import LoadingResult
from extract.base_extractor import is_cancelled

log = logging.getLogger(__name__)

FUENTE_DESCONOCIDA = "Desconocido"


def _is_fatal(e: Exception) -> bool:
    # Errores que invalidan la transacción completa, no sólo el registro
    if isinstance(e, (TransactionStateError, PipelineCancelled)):
        return True
    return isinstance(e, DBAPIError) and e.connection_invalidated


def unique_clientes(opinions: List[Opinion]) -> List[Cliente]:
    clientes: Dict[str, Cliente] = {}
    for o in opinions:
        if o.id_cliente not in clientes:
            clientes[o.id_cliente] = Cliente(
                id_cliente=o.id_cliente,
                nombre=o.cliente_nombre or f"Cliente_{o.id_cliente}",
                email=o.cliente_email,
            )
    return list(clientes.values())


def unique_productos(opinions: List[Opinion]) -> List[Producto]:
    productos: Dict[str, Producto] = {}
    for o in opinions:
        if o.id_producto not in productos:
            productos[o.id_producto] = Producto(
                id_producto=o.id_producto,
                nombre_producto=o.producto_nombre or f"Producto_{o.id_producto}",
                categoria=o.categoria,
            )
    return list(productos.values())


class OpinionLoader:
    """
    Carga de la fase 3: dimensiones + FactOpiniones en una única transacción.
    Los fallos por registro se cuentan y se siguen; cualquier error de fase
    (o una cancelación) revierte todo.
    """

    def __init__(self, uow: UnitOfWork, skip_duplicates: bool = False):
        self.uow = uow
        self.skip_duplicates = skip_duplicates

    def _load_dimensions(self, tx: DwTransaction, opinions: List[Opinion]) -> None:
        clientes = unique_clientes(opinions)
        productos = unique_productos(opinions)
        log.info(f"Cargando {len(clientes)} clientes y {len(productos)} productos únicos")
        for cliente in clientes:
            tx.clientes.get_or_create(cliente)
        for producto in productos:
            tx.productos.get_or_create(producto)

    def _load_opinion(self, tx: DwTransaction, opinion: Opinion) -> bool:
        with tx.savepoint():
            if self.skip_duplicates and opinion.id_original \
                    and tx.opiniones.exists(opinion.id_original, opinion.fuente_origen):
                return False
            # Fecha y fuente deben existir antes del hecho
            opinion.id_fecha = tx.fechas.get_fecha_id(opinion.fecha)
            opinion.id_fuente = tx.fuentes.get_or_create(opinion.canal_original or FUENTE_DESCONOCIDA)
            tx.opiniones.insert(opinion)
        return True

    def load(self, opinions: List[Opinion], cancel_event: Optional[Event] = None) -> LoadingResult:
        result = LoadingResult()
        result.start()
        try:
            tx = self.uow.begin_transaction()
            self._load_dimensions(tx, opinions)

            for opinion in opinions:
                if is_cancelled(cancel_event):
                    raise PipelineCancelled("Carga cancelada")
                try:
                    if self._load_opinion(tx, opinion):
                        result.records_loaded += 1
                    else:
                        result.records_duplicated += 1
                except Exception as e:
                    if _is_fatal(e):
                        raise
                    log.warning(f"No se pudo cargar la opinión del cliente {opinion.id_cliente}: {e}")
                    result.records_failed += 1
                    result.errors.append(f"Cliente: {opinion.id_cliente}, Error: {e}")

            self.uow.commit()
            result.success = True
            log.info(f"Cargadas {result.records_loaded} opiniones, fallidas {result.records_failed}")
        except Exception as e:
            log.error(f"Falló la fase de carga: {e}", exc_info=not isinstance(e, PipelineCancelled))
            result.errors.append(str(e))
            if self.uow.in_transaction:
                result.rolled_back = True
                try:
                    self.uow.rollback()
                except Exception as rb:
                    log.error(f"Error al revertir la transacción: {rb}")
                    result.errors.append(f"Rollback: {rb}")
            # Nada quedó confirmado
            result.records_loaded = 0
        finally:
            result.finish()
        return result
