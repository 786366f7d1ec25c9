import uvicorn
from constants import HOST, LOG_FILE, LOG_LEVEL, PORT, RELOAD, SSL_CERTFILE, SSL_KEYFILE, SSL_KEYFILE_PASSWORD
from logging_config import setup_logging

# Setup logging before importing app
setup_logging(log_level=LOG_LEVEL, log_file=LOG_FILE)

from logging_config import get_logger

logger = get_logger(__name__)


def main():
    scheme = "https" if SSL_CERTFILE and SSL_KEYFILE else "http"
    logger.info(f"Starting whisper-relay server at {scheme}://{HOST}:{PORT}")
    uvicorn.run(
        "app:app",
        host=HOST,
        port=PORT,
        reload=RELOAD,
        ssl_certfile=SSL_CERTFILE,
        ssl_keyfile=SSL_KEYFILE,
        ssl_keyfile_password=SSL_KEYFILE_PASSWORD,
        log_config=None,
    )


if __name__ == "__main__":
    main()
