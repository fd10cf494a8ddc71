import os

SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key")

# School REST API (the online database)
API_BASE_URL = os.getenv("API_BASE_URL", "http://localhost:3000")
API_TIMEOUT_SECONDS = float(os.getenv("API_TIMEOUT_SECONDS", "10"))

# Offline mirror of every write + the durable sync queue
LOCAL_STORE_PATH = os.getenv("LOCAL_STORE_PATH", "instance/local_store.json")

SYNC_INTERVAL_SECONDS = float(os.getenv("SYNC_INTERVAL_SECONDS", "30"))
# Start the periodic flush thread together with the app
AUTO_START_SYNC = bool(int(os.getenv("AUTO_START_SYNC", "1")))

LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG")

DEBUG = True
