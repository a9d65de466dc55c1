# core/errors.py


class EtlError(Exception):
    """Base de los errores del ETL de opiniones."""


class ExtractionError(EtlError):
    """La fuente completa no pudo extraerse (red, BD, directorio, respuesta)."""

    def __init__(self, source_name: str, cause: Exception):
        super().__init__(f"{source_name}: {cause}")
        self.source_name = source_name
        self.cause = cause


class TransformationError(EtlError):
    def __init__(self, id_original: str, fuente: str, cause: Exception):
        super().__init__(f"Opinión {id_original or '?'} ({fuente}): {cause}")
        self.id_original = id_original
        self.fuente = fuente
        self.cause = cause


class TransactionStateError(EtlError):
    """Uso indebido de la unidad de trabajo (p. ej. begin con una transacción abierta)."""


class PipelineCancelled(EtlError):
    pass
