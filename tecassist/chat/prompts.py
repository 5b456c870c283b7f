"""System preamble variants for the catalog assistant."""

from tecassist.models.chat import AnswerMode, UserProfile

NO_GROUNDING_ANSWER = (
    "Não encontrei informações relevantes nos documentos disponíveis para responder "
    "sua pergunta. Tente reformular a pergunta ou adicionar documentos relacionados "
    "a este equipamento."
)

NO_DOCUMENT_SUGGESTIONS = [
    "Quais documentos estão disponíveis?",
    "O que este catálogo cobre?",
    "Como posso começar?",
]

FALLBACK_SUGGESTIONS = [
    "Quais são os pontos principais?",
    "Existem riscos operacionais?",
    "O que diz sobre manutenção?",
]

SUGGESTION_PREAMBLE = "Você gera perguntas curtas e técnicas sobre documentos de máquinas industriais."

PERSONA = """Você é a IA da Tec I.A, assistente especializada no catálogo de máquinas \
industriais (envasadoras, seladoras, esteiras transportadoras, rotuladoras e afins).
Você conversa com vendedores e funcionários da empresa, não com clientes externos."""

GROUNDING_RULES = """REGRAS DE FONTE:
- Baseie sua resposta ESTRITAMENTE nos documentos de referência fornecidos.
- NÃO invente modelos, capacidades, medidas ou preços que não estejam nos documentos.
- Se a informação não estiver nos documentos, diga claramente que não a encontrou.
- NÃO cite as fontes no texto; elas são apresentadas separadamente."""

MODE_INSTRUCTIONS: dict[AnswerMode, str] = {
    AnswerMode.direct: """ESTILO: Resposta técnica de alta densidade.
- Responda só a pergunta, em tópicos sempre que possível.
- Sem introduções ou conclusões. Se for 'sim' ou 'não', comece com isso.""",
    AnswerMode.casual: """ESTILO: Colega de equipe experiente ajudando outro.
- Seja breve e amigável, mas vá direto ao ponto técnico.""",
    AnswerMode.educational: """ESTILO: Análise técnica aprofundada.
- Use terminologia técnica correta e explique o raciocínio.
- Não comece com "Baseado nos documentos".""",
    AnswerMode.professional: """ESTILO: Consultor comercial sênior.
- Traduza especificações em benefícios reais para o cliente do vendedor.
- Profissional, claro e empático; sem pressão nem promessas irreais.
- Se faltar informação, pergunte antes de sugerir.""",
}

TABLE_INSTRUCTION = """FORMATAÇÃO: O modo tabela está ativo.
- Apresente dados comparáveis ou listáveis em TABELA MARKDOWN com colunas objetivas."""


def _profile_block(profile: UserProfile | None) -> str:
    if profile is None:
        return ""
    parts = []
    if profile.name:
        parts.append(f"Nome do usuário: {profile.name}")
    if profile.job_title:
        parts.append(f"Cargo: {profile.job_title}")
    if profile.department:
        parts.append(f"Departamento: {profile.department}")
    if profile.technical_level:
        parts.append(f"Nível técnico: {profile.technical_level}")
    if profile.communication_style:
        parts.append(f"Estilo preferido de resposta: {profile.communication_style}")
    if not parts:
        return ""
    return "CONTEXTO DO USUÁRIO:\n" + "\n".join(parts)


def build_preamble(
    mode: AnswerMode = AnswerMode.educational,
    *,
    table_mode: bool = False,
    profile: UserProfile | None = None,
) -> str:
    """Compose the fixed persona, grounding rules, style and user context."""
    sections = [PERSONA, GROUNDING_RULES, MODE_INSTRUCTIONS[mode]]
    if table_mode:
        sections.append(TABLE_INSTRUCTION)
    profile_block = _profile_block(profile)
    if profile_block:
        sections.append(profile_block)
    return "\n\n".join(sections)


def build_suggestion_prompt(samples: list[str], count: int) -> str:
    """Prompt asking for short technical questions about sampled chunk text."""
    sample_text = "\n".join(f"[doc] {s[:300]}" for s in samples)
    return (
        f"Gere {count} perguntas curtas e técnicas (máximo 10 palavras) que um engenheiro "
        f"faria sobre estes textos:\n{sample_text}\nApenas as perguntas, uma por linha."
    )
