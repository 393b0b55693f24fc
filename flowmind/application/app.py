from typing import Optional
import structlog
from langchain_core.embeddings import Embeddings
from langchain_core.language_models.chat_models import BaseChatModel

from flowmind.application.processing_loop import ProcessingLoop
from flowmind.domain.context.memory.vector_memory_store import VectorMemoryStore
from flowmind.domain.context.prompts import PromptLibrary
from flowmind.domain.orchestration.core.engine import Engine
from flowmind.domain.store.rule_store import RuleStore
from flowmind.domain.store.thought_store import ThoughtStore
from flowmind.domain.tool.builtin import register_builtin_tools
from flowmind.domain.tool.tool_registry import ToolRegistry
from flowmind.infrastructure.config import FlowMindSettings, get_settings
from flowmind.infrastructure.llm.langchain_model import LangChainLanguageModel
from flowmind.infrastructure.observability.logging import setup_logging
from flowmind.infrastructure.persistence.state_store import JsonStateStore

logger = structlog.get_logger(__name__)


def create_app(
    chat_model: BaseChatModel,
    embeddings: Optional[Embeddings] = None,
    settings: Optional[FlowMindSettings] = None,
    persist: bool = True
) -> ProcessingLoop:
    """Wire stores, tools, capabilities and the engine into a processing loop.

    Call `initialize()` on the result before `start()`.
    """

    settings = settings or get_settings()
    setup_logging(settings.log_level, settings.log_format, settings.service_name)

    llm = LangChainLanguageModel(chat_model, embeddings)
    memory = VectorMemoryStore(
        embedder=llm.embed if embeddings is not None else None,
        limit=settings.memory_limit
    )
    engine = Engine(
        thoughts=ThoughtStore(),
        rules=RuleStore(),
        tools=register_builtin_tools(ToolRegistry()),
        memory=memory,
        llm=llm,
        prompts=PromptLibrary(),
        settings=settings
    )
    persistence = JsonStateStore(settings.state_file) if persist else None

    logger.info(
        "FlowMind assembled",
        model=type(chat_model).__name__,
        state_file=str(settings.state_file) if persist else None,
        max_concurrent=settings.max_concurrent
    )
    return ProcessingLoop(engine, persistence=persistence)
