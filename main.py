import logging
import socket
import sys
import threading

import uvicorn

import config
from db.database import Database
from processing.summarizer import LLMSummarizer
from processing.transcriber import WhisperTranscriber
from server.app import create_app

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger("streamscribe")


def find_available_port(start: int, end: int) -> int:
    for port in range(start, end + 1):
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
            try:
                s.bind((config.HOST, port))
                return port
            except OSError:
                continue
    raise RuntimeError(f"No se encontro un puerto disponible entre {start} y {end}")


def main():
    config.DATA_DIR.mkdir(parents=True, exist_ok=True)

    try:
        port = find_available_port(config.PORT, config.PORT + 13)
    except RuntimeError as e:
        logger.error(str(e))
        sys.exit(1)

    if port != config.PORT:
        logger.info("Puerto %d en uso, usando %d", config.PORT, port)

    db = Database(config.DB_PATH)
    transcriber = WhisperTranscriber(
        model_size=config.WHISPER_MODEL,
        language=config.WHISPER_LANGUAGE,
        device=config.WHISPER_DEVICE,
    )
    summarizer = LLMSummarizer(
        provider=config.LLM_PROVIDER,
        api_key=config.ANTHROPIC_API_KEY,
        model=config.ANTHROPIC_MODEL,
        ollama_url=config.OLLAMA_URL,
        ollama_model=config.OLLAMA_MODEL,
        timeout=config.SUMMARIZATION_TIMEOUT_SECS,
    )

    # Load Whisper model in background
    def preload_whisper():
        try:
            logger.info("Pre-cargando modelo Whisper en background...")
            transcriber._load_model()
        except Exception as e:
            logger.warning("No se pudo pre-cargar Whisper: %s", e)

    threading.Thread(target=preload_whisper, daemon=True).start()

    app = create_app(db, transcriber, summarizer)

    logger.info("StreamScribe escuchando en ws://%s:%d/ws", config.HOST, port)
    uvicorn.run(app, host=config.HOST, port=port, log_level="warning")


if __name__ == "__main__":
    main()
