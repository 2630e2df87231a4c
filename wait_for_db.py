import os, time
from urllib.parse import urlparse

import psycopg2
from loguru import logger

DATABASE_URL = os.getenv("DATABASE_URL")
if not DATABASE_URL:
    raise SystemExit("DATABASE_URL is not set")

# SQLAlchemy URL may start with postgresql+psycopg2:// or Render's postgres://
url = DATABASE_URL.replace("postgresql+psycopg2://", "postgresql://").replace("postgres://", "postgresql://", 1)
p = urlparse(url)

host = p.hostname or "db"
port = p.port or 5432
user = p.username or "cinereserve"
password = p.password or "cinereserve"
dbname = (p.path or "/cinereserve").lstrip("/") or "cinereserve"

timeout_s = int(os.getenv("DB_WAIT_TIMEOUT", "60"))
start = time.time()

logger.info("[wait_for_db] Waiting for Postgres at {}:{} db={} user={} (timeout={}s)", host, port, dbname, user, timeout_s)
while True:
    try:
        conn = psycopg2.connect(host=host, port=port, user=user, password=password, dbname=dbname)
        conn.close()
        logger.info("[wait_for_db] Postgres is ready.")
        break
    except psycopg2.OperationalError as e:
        if time.time() - start > timeout_s:
            logger.error("[wait_for_db] Timed out waiting for DB. Last error: {}", e)
            raise
        time.sleep(1)
