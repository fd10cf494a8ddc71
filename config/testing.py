import os

SECRET_KEY = "test-secret"

API_BASE_URL = os.getenv("API_BASE_URL", "http://api.test")
API_TIMEOUT_SECONDS = 2.0

LOCAL_STORE_PATH = os.getenv("LOCAL_STORE_PATH", "instance/test_local_store.json")

SYNC_INTERVAL_SECONDS = 30.0
AUTO_START_SYNC = False

LOG_LEVEL = "WARNING"

DEBUG = False
TESTING = True
