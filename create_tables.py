# create_tables.py
from sqlmodel import SQLModel
from studio.database import engine
import studio.models.user  # noqa
import studio.models.project  # noqa
import studio.models.assistant_confirmation  # noqa


def create_db_and_tables():
    SQLModel.metadata.create_all(engine)

if __name__ == "__main__":
    create_db_and_tables()
