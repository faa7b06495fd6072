import json
import logging
import re
from abc import ABC, abstractmethod

import requests
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel

from errors import SummarizationError
from processing.prompts import (
    CONSOLIDATION_PROMPT,
    SUMMARY_SYSTEM_PROMPT,
    SUMMARY_USER_PROMPT,
)

logger = logging.getLogger(__name__)

MAX_TRANSCRIPT_CHARS = 100_000

_JSON_OBJECT_RE = re.compile(r"\{.*\}", re.DOTALL)


class SummaryResult(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    full_text: str
    key_points: list[str] = Field(default_factory=list)
    action_items: list[str] = Field(default_factory=list)
    decisions: list[str] = Field(default_factory=list)
    participants: list[str] = Field(default_factory=list)

    @field_validator("full_text")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("fullText vacio")
        return value.strip()


def parse_summary(raw: str) -> SummaryResult:
    """Extract the first JSON object from an LLM response and validate it."""
    match = _JSON_OBJECT_RE.search(raw or "")
    if not match:
        raise SummarizationError("La respuesta del LLM no contiene JSON")
    try:
        return SummaryResult.model_validate(json.loads(match.group(0)))
    except (json.JSONDecodeError, ValidationError) as e:
        raise SummarizationError(f"Resumen con formato invalido: {e}") from e


class Summarizer(ABC):
    """Turns a full transcript into a SummaryResult.

    Implementations are blocking and raise SummarizationError on any failure.
    """

    @abstractmethod
    def summarize(self, transcript: str) -> SummaryResult:
        raise NotImplementedError


class LLMSummarizer(Summarizer):
    def __init__(self, provider: str = "ollama", api_key: str = None,
                 model: str = None, ollama_url: str = None, ollama_model: str = None,
                 timeout: float = 300):
        self.provider = provider
        self.api_key = api_key
        self.model = model
        self.ollama_url = ollama_url or "http://localhost:11434"
        self.ollama_model = ollama_model or "llama3"
        self.timeout = timeout

    def summarize(self, transcript: str) -> SummaryResult:
        if not transcript.strip():
            raise SummarizationError("La transcripcion esta vacia")

        try:
            if len(transcript) > MAX_TRANSCRIPT_CHARS:
                raw = self._summarize_long(transcript)
            else:
                raw = self._call_llm(SUMMARY_USER_PROMPT.format(transcription=transcript))
        except SummarizationError:
            raise
        except Exception as e:
            raise SummarizationError(f"El proveedor LLM fallo: {e}") from e

        result = parse_summary(raw)
        logger.info(
            "Resumen generado: %d puntos clave, %d tareas",
            len(result.key_points), len(result.action_items),
        )
        return result

    def _summarize_long(self, transcript: str) -> str:
        # Split into chunks and summarize each, then consolidate
        chunks = []
        for i in range(0, len(transcript), MAX_TRANSCRIPT_CHARS):
            chunks.append(transcript[i : i + MAX_TRANSCRIPT_CHARS])

        partial_summaries = []
        for idx, chunk in enumerate(chunks):
            logger.info("Resumiendo parte %d/%d...", idx + 1, len(chunks))
            partial = self._call_llm(SUMMARY_USER_PROMPT.format(transcription=chunk))
            partial_summaries.append(partial)

        if len(partial_summaries) == 1:
            return partial_summaries[0]

        combined = "\n\n---\n\n".join(partial_summaries)
        return self._call_llm(CONSOLIDATION_PROMPT.format(partials=combined))

    def _call_llm(self, user_prompt: str) -> str:
        if self.provider == "anthropic" and self.api_key:
            return self._call_anthropic(user_prompt)

        if self.provider == "ollama" or not self.api_key:
            try:
                return self._call_ollama(user_prompt)
            except Exception as e:
                if self.api_key:
                    logger.warning("Ollama fallo (%s), intentando con Anthropic...", e)
                    return self._call_anthropic(user_prompt)
                raise

        return self._call_anthropic(user_prompt)

    def _call_anthropic(self, user_prompt: str) -> str:
        import anthropic

        client = anthropic.Anthropic(api_key=self.api_key, timeout=self.timeout)
        message = client.messages.create(
            model=self.model or "claude-sonnet-4-5-20250929",
            max_tokens=4096,
            system=SUMMARY_SYSTEM_PROMPT,
            messages=[{"role": "user", "content": user_prompt}],
        )
        return message.content[0].text

    def _call_ollama(self, user_prompt: str) -> str:
        response = requests.post(
            f"{self.ollama_url}/api/generate",
            json={
                "model": self.ollama_model,
                "system": SUMMARY_SYSTEM_PROMPT,
                "prompt": user_prompt,
                "stream": False,
                "format": "json",
            },
            timeout=self.timeout,
        )
        response.raise_for_status()
        return response.json()["response"]
