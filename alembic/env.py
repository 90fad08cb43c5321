from logging.config import fileConfig

from alembic import context
from sqlmodel import SQLModel

from studio.database import engine

import studio.models.user  # noqa
import studio.models.project  # noqa
import studio.models.assistant_confirmation  # noqa

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = SQLModel.metadata

# sqlite no soporta ALTER COLUMN: las migraciones se hacen por copia de tabla
RENDER_AS_BATCH = engine.url.get_backend_name() == "sqlite"


def run_migrations_offline() -> None:
    context.configure(
        url=engine.url.render_as_string(hide_password=False),
        target_metadata=target_metadata,
        literal_binds=True,
        compare_type=True,
        render_as_batch=RENDER_AS_BATCH,
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    with engine.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            compare_type=True,
            render_as_batch=RENDER_AS_BATCH,
        )
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
