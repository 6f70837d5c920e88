# ============================================================
# 📦 src/ticket_clusterization/logs/logging_config.py
# ============================================================

import os
import sys

from loguru import logger


def setup_logging(run_id: str = None, log_dir: str = None, level: str = None):
    """
    Console em stderr (stdout fica livre para os eventos JSON da CLI) e,
    opcionalmente, arquivo por execução com rotação.
    """
    level = (level or os.getenv("LOG_LEVEL", "INFO")).upper()

    logger.remove()
    logger.add(
        sys.stderr,
        level=level,
        colorize=True,
        format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | <level>{message}</level>",
    )

    log_dir = log_dir or os.getenv("LOG_DIR")
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
        nome = f"ticket_clustering_{run_id}.log" if run_id else "ticket_clustering.log"
        logger.add(
            os.path.join(log_dir, nome),
            level="DEBUG",
            rotation="10 MB",
            retention=10,
            encoding="utf-8",
        )

    return logger
