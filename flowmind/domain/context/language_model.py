from typing import List, Protocol, runtime_checkable


@runtime_checkable
class LanguageModel(Protocol):
    """Text generation and embedding capability handed to tools"""

    async def generate(self, prompt: str) -> str:
        ...

    async def embed(self, text: str) -> List[float]:
        ...
