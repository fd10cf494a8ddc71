import os

SECRET_KEY = os.getenv("SECRET_KEY", "please-set-SECRET_KEY")

API_BASE_URL = os.getenv("API_BASE_URL", "http://localhost:3000")
API_TIMEOUT_SECONDS = float(os.getenv("API_TIMEOUT_SECONDS", "10"))

LOCAL_STORE_PATH = os.getenv("LOCAL_STORE_PATH", "/var/lib/madrasa-system/local_store.json")

SYNC_INTERVAL_SECONDS = float(os.getenv("SYNC_INTERVAL_SECONDS", "30"))
AUTO_START_SYNC = bool(int(os.getenv("AUTO_START_SYNC", "1")))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

DEBUG = False
