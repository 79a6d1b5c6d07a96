"""
Built-in agent personas.

Seeded into every AgentService at construction. Built-ins are immutable:
they cannot be deleted and a custom agent cannot take one of their ids.
"""

from __future__ import annotations

from ..domain.entities import Agent

DEFAULT_AGENT_COLOR = "#6b7280"
CUSTOM_AGENT_COLOR = "#6366f1"

BUILT_IN_AGENTS: tuple[Agent, ...] = (
    Agent(
        id="code-master",
        name="Code Master",
        description="Especialista em programação e desenvolvimento",
        prompt=(
            "Você é um expert em programação, arquitetura de software e melhores "
            "práticas. Responda de forma técnica e precisa."
        ),
        icon="💻",
        color="#2563eb",
        keywords=frozenset({"código", "programar", "debug", "arquitetura", "algoritmo"}),
    ),
    Agent(
        id="creative-writer",
        name="Creative Writer",
        description="Especialista em escrita criativa e storytelling",
        prompt=(
            "Você é um escritor criativo talentoso. Crie histórias envolventes, "
            "textos criativos e conteúdo cativante."
        ),
        icon="✍️",
        color="#dc2626",
        keywords=frozenset({"história", "criativo", "narrativa", "poema", "roteiro"}),
    ),
    Agent(
        id="data-analyst",
        name="Data Analyst",
        description="Especialista em análise de dados e insights",
        prompt=(
            "Você é um analista de dados experiente. Forneça insights baseados em "
            "dados, análises estatísticas e visualizações."
        ),
        icon="📊",
        color="#059669",
        keywords=frozenset({"dados", "análise", "estatística", "gráfico", "insight"}),
    ),
    Agent(
        id="business-strategist",
        name="Business Strategist",
        description="Especialista em estratégia empresarial e negócios",
        prompt=(
            "Você é um estrategista empresarial. Forneça conselhos sobre negócios, "
            "estratégias de crescimento e tomada de decisão."
        ),
        icon="💼",
        color="#7c3aed",
        keywords=frozenset({"negócio", "estratégia", "marketing", "vendas", "crescimento"}),
    ),
    Agent(
        id="science-explainer",
        name="Science Explainer",
        description="Especialista em ciências e explicações técnicas",
        prompt=(
            "Você é um cientista comunicador. Explique conceitos complexos de forma "
            "clara e acessível, sem perder precisão."
        ),
        icon="🔬",
        color="#0891b2",
        keywords=frozenset({"ciência", "física", "química", "biologia", "tecnologia"}),
    ),
)

BUILT_IN_IDS = frozenset(agent.id for agent in BUILT_IN_AGENTS)
