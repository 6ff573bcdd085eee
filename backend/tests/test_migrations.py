import tempfile
from pathlib import Path

from sqlalchemy import create_engine, inspect

import captcha_provider.config as config_module
from alembic import command
from alembic.config import Config
from captcha_provider.database import Base

ALEMBIC_INI = Path(__file__).resolve().parent.parent / "alembic.ini"


def test_alembic_upgrade_head_on_fresh_sqlite_db():
    original_database_url = config_module.settings.database_url
    try:
        with tempfile.TemporaryDirectory() as tmpdir:
            db_path = Path(tmpdir) / "fresh.db"
            database_url = f"sqlite:///{db_path}"

            config_module.settings.database_url = database_url

            alembic_cfg = Config(str(ALEMBIC_INI))
            command.upgrade(alembic_cfg, "head")

            engine = create_engine(
                database_url,
                connect_args={"check_same_thread": False},
            )
            tables = set(inspect(engine).get_table_names())
            engine.dispose()

            # Migrations and models must describe the same schema
            assert set(Base.metadata.tables).issubset(tables)
    finally:
        config_module.settings.database_url = original_database_url
