"""Unit tests for query analysis."""

import pytest

from tecassist.docs.query_analyzer import (
    QueryType,
    analyze_query,
    detect_categories,
    extract_keywords,
    extract_product_codes,
    fold,
    generate_sub_queries,
)


@pytest.mark.parametrize(
    ("question", "expected_type", "expected_top_k"),
    [
        ("Qual a voltagem da seladora SI-500?", QueryType.factual, 15),
        ("Qual a diferença entre a EP-200 e a EP-300?", QueryType.comparative, 25),
        ("Como operar a rotuladora RT-100?", QueryType.procedural, 20),
        ("Me fale sobre a esteira transportadora", QueryType.exploratory, 40),
        ("Quantas seladoras temos no catálogo?", QueryType.aggregation, 80),
    ],
)
def test_query_type_drives_top_k(
    question: str, expected_type: QueryType, expected_top_k: int
) -> None:
    analysis = analyze_query(question)

    assert analysis.type == expected_type
    assert analysis.top_k == expected_top_k
    assert analysis.needs_retrieval


def test_pure_greeting_skips_retrieval() -> None:
    """Greetings are answered without retrieval."""
    analysis = analyze_query("Olá!")

    assert analysis.type == QueryType.greeting
    assert analysis.top_k == 0
    assert not analysis.needs_retrieval


def test_greeting_followed_by_question_is_not_a_greeting() -> None:
    analysis = analyze_query("Olá, qual a voltagem da seladora?")

    assert analysis.type != QueryType.greeting
    assert "seladora" in analysis.keywords


def test_count_query_is_flagged() -> None:
    analysis = analyze_query("Quantas envasadoras existem?")

    assert analysis.is_count_query
    assert analysis.top_k >= 80


def test_keywords_drop_stopwords_and_keep_accents() -> None:
    assert extract_keywords("seladora de indução") == ["seladora", "indução"]
    assert extract_keywords("Qual a voltagem da seladora SI-500?") == [
        "voltagem",
        "seladora",
        "si-500",
    ]


def test_keywords_are_deduplicated_in_order() -> None:
    assert extract_keywords("esteira esteira transportadora esteira") == [
        "esteira",
        "transportadora",
    ]


def test_detect_categories() -> None:
    assert detect_categories("seladora por indução") == ["seladoras"]
    assert detect_categories("preço do café") == []


def test_fold_strips_accents_and_case() -> None:
    assert fold("Indução") == "inducao"
    assert fold("MANUTENÇÃO") == "manutencao"


def test_extract_product_codes_in_order_without_duplicates() -> None:
    content = "Modelos SI-500 e PAMQIPAU007 disponíveis; SI-500 em estoque."

    assert extract_product_codes(content) == ["SI-500", "PAMQIPAU007"]


def test_listing_question_gets_category_sub_queries() -> None:
    analysis = analyze_query("Quais são todas as seladoras disponíveis?")

    assert analysis.type == QueryType.aggregation
    assert analysis.suggested_queries == [
        "lista de seladoras",
        "modelos de seladoras disponíveis",
        "catálogo seladoras",
    ]
    assert not analysis.requires_full_scan


def test_factual_question_has_no_sub_queries() -> None:
    analysis = analyze_query("Qual a voltagem da seladora SI-500?")

    assert analysis.suggested_queries == []


def test_uncategorized_aggregation_sweeps_main_categories() -> None:
    queries = generate_sub_queries(QueryType.aggregation, [])

    assert "catálogo de produtos" in queries
    assert "modelos de envasadoras" in queries
    assert generate_sub_queries(QueryType.comparative, ["seladoras"]) == []


def test_count_query_requires_full_scan() -> None:
    analysis = analyze_query("Quantas máquinas temos no total?")

    assert analysis.requires_full_scan
    assert analysis.suggested_queries
