from datetime import date

import pytest

from core.entities import FUENTE_API, FUENTE_CSV, FUENTE_DATABASE, NEGATIVA, NEUTRAL, POSITIVA
from core.errors import TransformationError
from transform.opinion_transformer import OpinionTransformer


@pytest.fixture
def transformer(analyzer):
    return OpinionTransformer(analyzer)


def test_survey_with_classification_and_no_rating(transformer, make_raw):
    raw = make_raw(
        cliente_id_raw="1",
        producto_id_raw="10",
        fecha_raw="2024-01-15",
        comentario_raw="Muy buen producto",
        clasificacion_raw="positiva",
    )
    opinion = transformer.transform(raw)

    assert opinion.clasificacion == POSITIVA
    assert opinion.puntaje_satisfaccion == 4.5
    assert opinion.id_cliente == "C1"
    assert opinion.id_producto == "P10"
    assert opinion.fecha == date(2024, 1, 15)
    assert opinion.canal_original == "EncuestaInterna"
    assert opinion.id_original == "1"
    assert opinion.fuente_origen == FUENTE_CSV
    assert opinion.id_fecha == 0 and opinion.id_fuente == 0


def test_survey_classification_wins_over_rating(transformer, make_raw):
    opinion = transformer.transform(make_raw(clasificacion_raw="Negativa", rating_raw="5"))
    assert opinion.clasificacion == NEGATIVA
    assert opinion.puntaje_satisfaccion == 5.0


@pytest.mark.parametrize("rating, clasificacion, puntaje", [
    ("5", POSITIVA, 5.0),
    ("4", POSITIVA, 4.0),
    ("3", NEUTRAL, 3.0),
    ("2", NEGATIVA, 2.0),
    ("1", NEGATIVA, 1.0),
    ("basura", NEUTRAL, 3.0),
])
def test_web_review_classified_by_rating(transformer, make_raw, rating, clasificacion, puntaje):
    raw = make_raw(id_original="R1", fuente_origen=FUENTE_DATABASE, rating_raw=rating,
                   comentario_raw="terrible")
    opinion = transformer.transform(raw)
    assert opinion.clasificacion == clasificacion
    assert opinion.puntaje_satisfaccion == puntaje
    assert opinion.canal_original == "Web"


def test_comment_only_uses_sentiment(transformer, make_raw):
    raw = make_raw(id_original="S1", fuente_origen=FUENTE_API,
                   comentario_raw="producto excelente, lo recomiendo",
                   metadata={"Platform": "Twitter"})
    opinion = transformer.transform(raw)

    assert opinion.clasificacion == POSITIVA
    assert opinion.puntaje_satisfaccion == 4.12
    assert opinion.canal_original == "Twitter"
    assert opinion.id_cliente.startswith("CANON")
    assert opinion.id_producto == "P0000"


def test_empty_comment_without_rating_is_neutral(transformer, make_raw):
    opinion = transformer.transform(make_raw(fuente_origen=FUENTE_API, fecha_raw="ayer"))
    assert opinion.clasificacion == NEUTRAL
    assert opinion.puntaje_satisfaccion == 3.0
    assert opinion.comentario == ""
    assert opinion.canal_original == "RedSocial"
    assert opinion.fecha == date.today()


def test_dimension_attributes_are_carried(transformer, make_raw):
    raw = make_raw(cliente_id_raw="7", cliente_nombre="Ana", cliente_email="ana@mail.com",
                   producto_id_raw="3", producto_nombre="Licuadora", categoria="Hogar")
    opinion = transformer.transform(raw)
    assert (opinion.cliente_nombre, opinion.cliente_email) == ("Ana", "ana@mail.com")
    assert (opinion.producto_nombre, opinion.categoria) == ("Licuadora", "Hogar")


def test_failure_is_wrapped(transformer, make_raw, monkeypatch):
    def boom(raw_id):
        raise ValueError("id inválido")

    monkeypatch.setattr("transform.opinion_transformer.normalize_cliente_id", boom)
    with pytest.raises(TransformationError) as exc:
        transformer.transform(make_raw(id_original="X9"))
    assert exc.value.id_original == "X9"
    assert isinstance(exc.value.cause, ValueError)


def test_transform_batch_skips_failures(transformer, make_raw, monkeypatch):
    from transform import opinion_transformer

    real = opinion_transformer.normalize_cliente_id

    def picky(raw_id):
        if raw_id == "malo":
            raise ValueError("id inválido")
        return real(raw_id)

    monkeypatch.setattr(opinion_transformer, "normalize_cliente_id", picky)
    raws = [
        make_raw(id_original="1", cliente_id_raw="1"),
        make_raw(id_original="2", cliente_id_raw="malo"),
        make_raw(id_original="3", cliente_id_raw="3"),
    ]
    opinions = transformer.transform_batch(raws)
    assert [o.id_original for o in opinions] == ["1", "3"]
