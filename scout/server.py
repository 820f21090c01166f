# server.py – Point d'entrée principal de Steam Scout
# -----------------------------------------------------------------------------
#  • Configure le logging avant tout import applicatif.
#  • Lance uvicorn sur scout.web.app:app (limiter + cache : un état par process).
# -----------------------------------------------------------------------------

from __future__ import annotations

import os

import uvicorn

from scout.config import settings
from scout.logging_config import setup_logging, get_logger

###############################################################################
# Logging --------------------------------------------------------------------
###############################################################################
setup_logging(level=os.getenv("LOG_LEVEL", settings.LOG_LEVEL))
log = get_logger("scout.server")


def main() -> None:
    host = os.getenv("HOST", "0.0.0.0")
    port = int(os.getenv("PORT", "8000"))
    log.info("Starting Steam Scout API on %s:%d", host, port)
    # Un seul worker : rate limits et cache sont en mémoire, par process
    uvicorn.run("scout.web.app:app", host=host, port=port, log_config=None)


if __name__ == "__main__":
    main()
