import io
import logging
import math
from abc import ABC, abstractmethod
from dataclasses import dataclass

from errors import TranscriptionError

logger = logging.getLogger(__name__)

_model_cache = {}


@dataclass(frozen=True)
class TranscriptionResult:
    text: str
    confidence: float | None = None


class Transcriber(ABC):
    """Turns one chunk of encoded audio into text.

    Implementations are blocking; callers run them off the event loop.
    Any failure must surface as TranscriptionError.
    """

    @property
    def is_loaded(self) -> bool:
        return True

    @abstractmethod
    def transcribe(self, audio: bytes) -> TranscriptionResult:
        raise NotImplementedError


class WhisperTranscriber(Transcriber):
    def __init__(self, model_size: str = "small", language: str = "es", device: str = "auto"):
        self.model_size = model_size
        self.language = language
        self.device = device
        self._model = None

    def _resolve_device(self) -> str:
        if self.device != "auto":
            return self.device
        try:
            import torch
            if torch.cuda.is_available():
                return "cuda"
        except ImportError:
            pass
        return "cpu"

    def _load_model(self):
        if self.model_size in _model_cache:
            self._model = _model_cache[self.model_size]
            return

        from faster_whisper import WhisperModel

        device = self._resolve_device()
        compute_type = "float16" if device == "cuda" else "int8"

        logger.info(
            "Cargando modelo Whisper '%s' en %s (compute_type=%s)...",
            self.model_size, device, compute_type,
        )
        self._model = WhisperModel(
            self.model_size,
            device=device,
            compute_type=compute_type,
        )
        _model_cache[self.model_size] = self._model
        logger.info("Modelo Whisper cargado")

    @property
    def is_loaded(self) -> bool:
        return self._model is not None or self.model_size in _model_cache

    def transcribe(self, audio: bytes) -> TranscriptionResult:
        if not audio:
            raise TranscriptionError("Chunk de audio vacio")
        if self._model is None:
            self._load_model()

        try:
            segments, _info = self._model.transcribe(
                io.BytesIO(audio),
                language=self.language,
                beam_size=5,
                vad_filter=True,
            )
            # segments is a lazy generator; decoding errors show up here
            segments = list(segments)
        except Exception as e:
            raise TranscriptionError(f"Whisper no pudo transcribir el chunk: {e}") from e

        text = " ".join(s.text.strip() for s in segments if s.text.strip())
        confidence = None
        if segments:
            mean_logprob = sum(s.avg_logprob for s in segments) / len(segments)
            confidence = round(min(1.0, math.exp(mean_logprob)), 3)

        logger.debug("Chunk transcrito: %d segmentos, %d caracteres", len(segments), len(text))
        return TranscriptionResult(text=text, confidence=confidence)
