import logging
import os
import sys

LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG").upper()
SQL_LOG_LEVEL = os.getenv("SQL_LOG_LEVEL", "WARNING").upper()

# Logger setup: console-only, shared by every module
logger = logging.getLogger("warehouse_ops")
logger.setLevel(LOG_LEVEL)

# Thread name included so fan-out workers can be told apart
formatter = logging.Formatter('%(asctime)s - %(levelname)s - [%(threadName)s] %(message)s')

# Console handler (stdout) for container logging
console_handler = logging.StreamHandler(sys.stdout)
console_handler.setLevel(logging.DEBUG)
console_handler.setFormatter(formatter)

# Remove any pre-existing handlers to avoid duplicates on reload
if logger.hasHandlers():
    logger.handlers.clear()

logger.addHandler(console_handler)
logger.propagate = False

# SQLAlchemy echoes every statement at INFO
logging.getLogger("sqlalchemy.engine").setLevel(SQL_LOG_LEVEL)
logging.getLogger("sqlalchemy.pool").setLevel(SQL_LOG_LEVEL)
