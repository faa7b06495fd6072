import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

# Rutas
BASE_DIR = Path(__file__).parent
DATA_DIR = Path(os.getenv("STREAMSCRIBE_DATA_DIR", str(BASE_DIR / "data")))
DB_PATH = DATA_DIR / "streamscribe.db"

# Servidor
HOST = os.getenv("STREAMSCRIBE_HOST", "127.0.0.1")
PORT = int(os.getenv("STREAMSCRIBE_PORT", "8787"))
LOG_LEVEL = os.getenv("STREAMSCRIBE_LOG_LEVEL", "INFO")

# Audio
MAX_CHUNK_B64_BYTES = 6 * 1024 * 1024

# Whisper
WHISPER_MODEL = os.getenv("STREAMSCRIBE_WHISPER_MODEL", "small")
WHISPER_LANGUAGE = os.getenv("STREAMSCRIBE_LANGUAGE", "es")
WHISPER_DEVICE = os.getenv("STREAMSCRIBE_WHISPER_DEVICE", "auto")  # "auto": "cuda" si hay GPU, sino "cpu"
TRANSCRIPTION_TIMEOUT_SECS = float(os.getenv("STREAMSCRIBE_TRANSCRIPTION_TIMEOUT", "60"))

# LLM
LLM_PROVIDER = os.getenv("STREAMSCRIBE_LLM_PROVIDER", "ollama")
ANTHROPIC_API_KEY = os.getenv("ANTHROPIC_API_KEY", "")
ANTHROPIC_MODEL = "claude-sonnet-4-5-20250929"
OLLAMA_MODEL = os.getenv("STREAMSCRIBE_OLLAMA_MODEL", "llama3")
OLLAMA_URL = os.getenv("STREAMSCRIBE_OLLAMA_URL", "http://localhost:11434")
SUMMARIZATION_TIMEOUT_SECS = float(os.getenv("STREAMSCRIBE_SUMMARIZATION_TIMEOUT", "300"))
