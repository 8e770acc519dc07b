from logging.config import fileConfig

from alembic import context
from dotenv import load_dotenv
from sqlalchemy import engine_from_config, pool

load_dotenv()

from app.core.config import get_settings  # noqa: E402
from app.db.database import Base  # noqa: E402

# registers every table on Base.metadata for autogenerate
from app.models import (  # noqa: E402,F401
    chat_message_models,
    class_note_models,
    community_models,
    file_models,
    past_exam_models,
    reference_models,
    token_models,
    user_models,
)

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

# alembic.ini leaves the URL blank; migrations target the app database
config.set_main_option("sqlalchemy.url", get_settings().sqlalchemy_database_url)

target_metadata = Base.metadata


def run_offline(url: str) -> None:
    context.configure(
        url=url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        compare_type=True,
    )
    with context.begin_transaction():
        context.run_migrations()


def run_online() -> None:
    engine = engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )
    with engine.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            compare_type=True,
            render_as_batch=connection.dialect.name == "sqlite",
        )
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_offline(config.get_main_option("sqlalchemy.url"))
else:
    run_online()
