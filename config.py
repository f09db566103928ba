import os
from dotenv import load_dotenv

# Pick up a local .env before reading the environment
load_dotenv()


class Config:
    # Listener; an empty PORT counts as unset
    HOST = os.getenv("HOST", "0.0.0.0")
    PORT = os.getenv("PORT") or "8080"

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

    # Seconds
    READ_TIMEOUT = 15
    WRITE_TIMEOUT = 15
    IDLE_TIMEOUT = 60
    SHUTDOWN_TIMEOUT = 30
