"""
Alembic env.py: takes the connection URL from the same Settings the API uses.

Credentials follow citycare.core.config:
  1. LOCAL_DB_* variables  (when ENVIRONMENT=development)
  2. DB_HOST / DB_PORT / DB_NAME / DB_USER / DB_PASSWORD (staging, production)

Both come from the environment or the .env file at the repo root.

Usage:
  # Development (local Docker Compose):
  ENVIRONMENT=development alembic upgrade head

  # Production:
  ENVIRONMENT=production DB_HOST=... DB_PASSWORD=... alembic upgrade head
"""
import logging
import logging.config
import sys
from pathlib import Path

from alembic import context
from sqlalchemy import engine_from_config, pool

# Make the citycare package importable when alembic runs from a plain checkout
_repo_root = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(_repo_root / "backend"))

from citycare.core.config import get_settings  # noqa: E402

logger = logging.getLogger("alembic.env")

# ---------------------------------------------------------------------------
# Alembic config
# ---------------------------------------------------------------------------
config = context.config

if config.config_file_name is not None:
    logging.config.fileConfig(config.config_file_name)

settings = get_settings()
logger.info("Running migrations for environment=%s", settings.environment)
# configparser interpolation: a literal % in the password must be doubled
config.set_main_option("sqlalchemy.url", settings.database_url_sync.replace("%", "%%"))

target_metadata = None  # Raw SQL migrations; the ORM models are not consulted


def run_migrations_offline() -> None:
    """Generate the SQL script without a DB connection."""
    url = config.get_main_option("sqlalchemy.url")
    context.configure(
        url=url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    connectable = engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )
    with connectable.connect() as connection:
        context.configure(connection=connection, target_metadata=target_metadata)
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
