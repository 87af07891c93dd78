"""Alembic environment configuration for MedVerify-Engine."""

import sys
from pathlib import Path
from logging.config import fileConfig

from alembic import context
from sqlalchemy import engine_from_config, pool

# Ensure src/ is on sys.path for editable installs
sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))

from medverify_engine.common.models import Base

# Import all models so they register with Base.metadata
import medverify_engine.registry.models  # noqa: F401
import medverify_engine.qr.models  # noqa: F401
import medverify_engine.audit.models  # noqa: F401
import medverify_engine.ledger.models  # noqa: F401

config = context.config

# Allow CLI override: alembic -x sqlalchemy.url=... upgrade head
cmd_url = context.get_x_argument(as_dictionary=True).get("sqlalchemy.url")
if cmd_url:
    config.set_main_option("sqlalchemy.url", cmd_url)

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

# The ledger lives in its own database: ``alembic -x target=ledger ...``
# migrates only ``ledger_entries``; the default target skips it.
target = context.get_x_argument(as_dictionary=True).get("target", "main")
target_metadata = Base.metadata


def include_object(obj, name, type_, reflected, compare_to):
    if type_ != "table":
        return True
    if target == "ledger":
        return name == "ledger_entries"
    return name != "ledger_entries"


def run_migrations_offline() -> None:
    url = config.get_main_option("sqlalchemy.url")
    context.configure(
        url=url,
        target_metadata=target_metadata,
        literal_binds=True,
        include_object=include_object,
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
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            include_object=include_object,
        )
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
