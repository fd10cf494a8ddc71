from __future__ import annotations

import importlib
import logging
from typing import Optional

from dotenv import load_dotenv
from flask import Flask

from config import get_settings_module

from .container import Container, build_container
from .attendance.controller import register as register_attendance
from .hybrid.controller import register as register_hybrid
from .sync.controller import register as register_sync
from .validation.controller import register as register_validation

logger = logging.getLogger(__name__)


def create_app(container: Optional[Container] = None) -> Flask:
    load_dotenv(override=False)
    app = Flask(__name__)

    settings_module = get_settings_module()
    settings = importlib.import_module(settings_module)
    app.secret_key = getattr(settings, "SECRET_KEY")
    app.config["DEBUG"] = bool(getattr(settings, "DEBUG", False))
    app.config["TESTING"] = bool(getattr(settings, "TESTING", False))

    logging.basicConfig(
        level=getattr(settings, "LOG_LEVEL", "INFO"),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    if container is None:
        container = build_container(
            api_config={
                "base_url": getattr(settings, "API_BASE_URL"),
                "timeout": getattr(settings, "API_TIMEOUT_SECONDS", 10),
            },
            store_path=getattr(settings, "LOCAL_STORE_PATH"),
            sync_interval=float(getattr(settings, "SYNC_INTERVAL_SECONDS", 30)),
        )
        if getattr(settings, "AUTO_START_SYNC", False):
            container.connectivity.check_health()
            container.scheduler.start()

    # Helpful startup info: which API we mirror and whether it answered.
    logger.info(
        "[madrasa-system] settings=%s api=%s online=%s",
        settings_module,
        getattr(settings, "API_BASE_URL", "?"),
        container.connectivity.is_online,
    )

    app.extensions["madrasa_container"] = container

    register_hybrid(app, container)
    register_attendance(app, container)
    register_validation(app, container)
    register_sync(app, container)

    return app
