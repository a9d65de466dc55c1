import logging
from typing import Iterable

from core.dw_repository import DwTransaction
from core.entities import Cliente, Producto

log = logging.getLogger(__name__)


class LoadDimensionsUseCase:
    """
    Upsert incondicional de clientes y productos maestros dentro de una
    transacción abierta. Una fila con error se registra y se omite.
    """

    def __init__(self, tx: DwTransaction):
        self.tx = tx

    def load_clientes(self, clientes: Iterable[Cliente]) -> int:
        log.info("Cargando dimensión Cliente...")
        count = 0
        for cliente in clientes:
            try:
                with self.tx.savepoint():
                    self.tx.clientes.upsert(cliente)
                count += 1
            except Exception as e:
                log.error(f"Error cargando cliente {cliente.id_cliente}: {e}")
        log.info(f"DimCliente: {count} filas")
        return count

    def load_productos(self, productos: Iterable[Producto]) -> int:
        log.info("Cargando dimensión Producto...")
        count = 0
        for producto in productos:
            try:
                with self.tx.savepoint():
                    self.tx.productos.upsert(producto)
                count += 1
            except Exception as e:
                log.error(f"Error cargando producto {producto.id_producto}: {e}")
        log.info(f"DimProducto: {count} filas")
        return count
