import os


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", 3000))
RELOAD = _env_bool("RELOAD")

SSL_CERTFILE = os.getenv("SSL_CERTFILE", None)
SSL_KEYFILE = os.getenv("SSL_KEYFILE", None)
SSL_KEYFILE_PASSWORD = os.getenv("SSL_KEYFILE_PASSWORD", None)

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FILE = os.getenv("LOG_FILE", None)

CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]

DEFAULT_USERNAME = "Anonymous"
MAX_USERNAME_LENGTH = int(os.getenv("MAX_USERNAME_LENGTH", 16))
MAX_ROOM_NAME_LENGTH = int(os.getenv("MAX_ROOM_NAME_LENGTH", 32))

# AES-GCM appends a 16 byte authentication tag to every ciphertext
AES_GCM_TAG_BYTES = 16
MAX_PLAINTEXT_BYTES = int(os.getenv("MAX_PLAINTEXT_BYTES", 256))

UNIQUE_DISPLAY_NAMES = _env_bool("UNIQUE_DISPLAY_NAMES")
MAX_ROOM_MEMBERS = int(os.getenv("MAX_ROOM_MEMBERS", 0))  # 0 = unlimited

# Frames queued per connection before further frames to it are dropped
OUTBOX_MAX_FRAMES = int(os.getenv("OUTBOX_MAX_FRAMES", 1024))
