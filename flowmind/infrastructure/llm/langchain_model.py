from typing import List, Optional
import structlog
from langchain_core.embeddings import Embeddings
from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import HumanMessage
from langchain_core.output_parsers import StrOutputParser

logger = structlog.get_logger(__name__)


class LangChainLanguageModel:
    """LanguageModel backed by a LangChain chat model and embeddings.

    Any `BaseChatModel` works (ChatOllama, ChatOpenAI, fakes in tests).
    Errors propagate to the caller; tools and the fallback handler turn
    them into thought-level failures.
    """

    def __init__(self, chat_model: BaseChatModel, embeddings: Optional[Embeddings] = None):
        self.chat_model = chat_model
        self.embeddings = embeddings
        self._chain = chat_model | StrOutputParser()

    async def generate(self, prompt: str) -> str:
        logger.debug("Generating", prompt_length=len(prompt))
        response = await self._chain.ainvoke([HumanMessage(content=prompt)])
        return response.strip()

    async def embed(self, text: str) -> List[float]:
        if self.embeddings is None:
            raise RuntimeError("No embeddings model configured")
        return await self.embeddings.aembed_query(text)
