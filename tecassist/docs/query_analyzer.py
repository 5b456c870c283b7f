"""Query analysis - classify the question and pick a retrieval shape."""

import re
import unicodedata
from enum import Enum

from pydantic import BaseModel


class QueryType(str, Enum):
    """Kind of question being asked."""

    greeting = "greeting"
    aggregation = "aggregation"
    comparative = "comparative"
    procedural = "procedural"
    exploratory = "exploratory"
    factual = "factual"


class QueryAnalysis(BaseModel):
    """Result of analyzing a user question."""

    type: QueryType
    keywords: list[str]
    categories: list[str]
    top_k: int
    is_count_query: bool = False
    suggested_queries: list[str] = []

    @property
    def needs_retrieval(self) -> bool:
        return self.type != QueryType.greeting

    @property
    def requires_full_scan(self) -> bool:
        """Counting needs every chunk of catalog-like documents, not just the top hits."""
        return self.is_count_query


AGGREGATION_PATTERNS = [
    re.compile(p, re.IGNORECASE)
    for p in (
        r"quant[oa]s?\s",
        r"list[ea]r?\s+(tod[oa]s|todas\s+as|todos\s+os)",
        r"tod[oa]s\s+(as|os)\s",
        r"total\s+de",
        r"quais\s+(são|sao)\s+(as|os|todas|todos)",
        r"mostre\s+(tod[oa]s|tudo)",
        r"o\s+que\s+temos",
        r"catálogo\s+completo",
        r"inventário",
    )
]

COMPARATIVE_PATTERNS = [
    re.compile(p, re.IGNORECASE)
    for p in (
        r"compar[ae]",
        r"diferença\s+entre",
        r"\bversus\b|\bvs\.?\s",
        r"melhor\s+(entre|que)",
        r"qual\s+(é|a)\s+(diferença|melhor)",
    )
]

PROCEDURAL_PATTERNS = [
    re.compile(p, re.IGNORECASE)
    for p in (
        r"como\s+(operar|usar|configurar|instalar|montar)",
        r"passo\s+a\s+passo",
        r"procedimento",
        r"instruções",
        r"manual\s+de",
    )
]

EXPLORATORY_PATTERNS = [
    re.compile(p, re.IGNORECASE)
    for p in (
        r"o\s+que\s+(é|são|temos|existe)",
        r"explique",
        r"me\s+fale\s+sobre",
        r"como\s+funciona",
        r"descreva",
    )
]

GREETING_PATTERNS = [
    re.compile(p, re.IGNORECASE)
    for p in (
        r"^(oi|olá|ola|bom\s+dia|boa\s+tarde|boa\s+noite|hey|hi|hello)\b[\s!.,?]*$",
        r"^(como\s+vai|tudo\s+bem)\b[\s!.,?]*$",
    )
]

COUNT_PATTERN = re.compile(r"quant[oa]s?|total|número|contagem", re.IGNORECASE)

CATEGORY_KEYWORDS: dict[str, list[str]] = {
    "envasadoras": ["envasadora", "envase", "dosadora", "dosagem", "peristáltica", "pistão"],
    "seladoras": ["seladora", "selagem", "vácuo", "indução", "impulso", "pedal", "contínua"],
    "rotuladoras": ["rotuladora", "rotulagem", "etiquetadora", "rótulo"],
    "datadoras": ["datadora", "datação", "inkjet", "hot stamp", "jato de tinta"],
    "prensas": ["prensa", "comprimidos", "rotativa"],
    "flowpack": ["flowpack", "flow pack", "embaladora"],
    "rosqueadoras": ["rosqueadora", "rosqueamento", "tampa"],
    "arqueadoras": ["arqueadora", "arqueamento", "cintagem"],
    "esteiras": ["esteira", "transportador", "conveyor"],
    "encapsuladoras": ["encapsuladora", "cápsula"],
    "montadoras": ["montadora", "caixa"],
}

STOPWORDS = frozenset(
    {
        "o", "a", "os", "as", "um", "uma", "uns", "umas",
        "de", "da", "do", "das", "dos", "em", "na", "no", "nas", "nos",
        "para", "por", "com", "que", "qual", "quais",
        "é", "são", "tem", "temos", "existe", "existem",
        "me", "mim", "você", "vocês", "nós", "eles",
        "e", "ou", "mas", "se", "como", "quando", "onde",
    }
)  # fmt: skip

# Extra queries when no category narrows an aggregation question
GENERIC_SUB_QUERIES = [
    "lista de todas as máquinas",
    "catálogo de produtos",
    "modelos de envasadoras",
    "modelos de seladoras",
    "modelos de rotuladoras",
    "modelos de datadoras",
    "lista de equipamentos",
    "especificações técnicas",
]

TOP_K_BY_TYPE: dict[QueryType, int] = {
    QueryType.greeting: 0,
    QueryType.factual: 15,
    QueryType.comparative: 25,
    QueryType.procedural: 20,
    QueryType.exploratory: 40,
    QueryType.aggregation: 80,
}

_WORD = re.compile(r"[\w-]+", re.UNICODE)

# Product codes such as "PAMQIPAU007" or "SI-500"
PRODUCT_CODE = re.compile(r"\b[A-Z]{2,}[A-Z0-9]*-?\d{2,}[A-Z0-9]*\b")


def fold(text: str) -> str:
    """Casefold and strip diacritics so "Indução" matches "inducao"."""
    decomposed = unicodedata.normalize("NFKD", text.casefold())
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def tokenize(text: str) -> list[str]:
    """Lowercase word tokens with accents preserved."""
    return [w.strip("-_") for w in _WORD.findall(text.casefold()) if w.strip("-_")]


def extract_keywords(question: str) -> list[str]:
    """Significant terms: stopwords and words of 2 chars or fewer dropped, order kept."""
    keywords: list[str] = []
    for word in tokenize(question):
        if len(word) <= 2 or word in STOPWORDS:
            continue
        if word not in keywords:
            keywords.append(word)
    return keywords


def detect_categories(question: str) -> list[str]:
    lowered = question.casefold()
    return [
        category
        for category, words in CATEGORY_KEYWORDS.items()
        if any(word in lowered for word in words)
    ]


def detect_query_type(question: str) -> QueryType:
    stripped = question.strip()
    if any(p.search(stripped) for p in GREETING_PATTERNS):
        return QueryType.greeting
    if any(p.search(stripped) for p in AGGREGATION_PATTERNS):
        return QueryType.aggregation
    if any(p.search(stripped) for p in COMPARATIVE_PATTERNS):
        return QueryType.comparative
    if any(p.search(stripped) for p in PROCEDURAL_PATTERNS):
        return QueryType.procedural
    if any(p.search(stripped) for p in EXPLORATORY_PATTERNS):
        return QueryType.exploratory
    return QueryType.factual


def generate_sub_queries(query_type: QueryType, categories: list[str]) -> list[str]:
    """Additional queries that widen recall for listing and overview questions.

    Only aggregation and exploratory questions get any; one group of three
    per detected category, or a generic sweep across the main categories.
    """
    if query_type not in (QueryType.aggregation, QueryType.exploratory):
        return []
    if not categories:
        return list(GENERIC_SUB_QUERIES)
    queries: list[str] = []
    for category in categories:
        queries.extend(
            [f"lista de {category}", f"modelos de {category} disponíveis", f"catálogo {category}"]
        )
    return queries


def analyze_query(question: str) -> QueryAnalysis:
    """Analyze a question to decide whether and how much to retrieve."""
    query_type = detect_query_type(question)
    if query_type == QueryType.greeting:
        return QueryAnalysis(type=query_type, keywords=[], categories=[], top_k=0)

    is_count = bool(COUNT_PATTERN.search(question))
    top_k = TOP_K_BY_TYPE[query_type]
    if is_count:
        top_k = max(top_k, 80)

    categories = detect_categories(question)
    return QueryAnalysis(
        type=query_type,
        keywords=extract_keywords(question),
        categories=categories,
        top_k=top_k,
        is_count_query=is_count,
        suggested_queries=generate_sub_queries(query_type, categories),
    )


def extract_product_codes(content: str) -> list[str]:
    """Optional post-processing over chunk text: product codes in order of appearance.

    Not used by retrieval.
    """
    codes: list[str] = []
    for match in PRODUCT_CODE.findall(content):
        if match not in codes:
            codes.append(match)
    return codes
