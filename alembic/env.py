import os
import sys
from logging.config import fileConfig

from alembic import context

# Ajouter la racine du projet pour les imports
sys.path.append(os.path.dirname(os.path.abspath(__file__)) + "/..")

# Import des modèles SQLModel
from segmentiq.domain.entities.user import User  # noqa: F401
from segmentiq.domain.entities.activity import Activity  # noqa: F401
from segmentiq.domain.entities.training_segment import TrainingSegment  # noqa: F401
from segmentiq.domain.entities.segment_ride import SegmentRide  # noqa: F401
from segmentiq.domain.entities.segment_profile import SegmentProfile  # noqa: F401
from segmentiq.core.database import engine
from sqlmodel import SQLModel

# this is the Alembic Config object, which provides
# access to the values within the .ini file in use.
config = context.config

# Interpret the config file for Python logging.
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

# Utiliser les métadonnées SQLModel pour l'autogenerate
target_metadata = SQLModel.metadata


def run_migrations_offline() -> None:
    """Run migrations in 'offline' mode (emet le SQL sans connexion)."""
    from segmentiq.core.settings import get_settings
    settings = get_settings()
    context.configure(
        url=settings.DATABASE_URL,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Run migrations in 'online' mode."""
    # Utiliser notre engine configuré au lieu de créer un nouveau
    with engine.connect() as connection:
        context.configure(
            connection=connection, target_metadata=target_metadata
        )

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
