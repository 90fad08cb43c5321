from sqlmodel import Session, create_engine
from studio.core.config import Settings

settings = Settings()

connect_args = {"check_same_thread": False} if settings.database_url.startswith("sqlite") else {}
engine = create_engine(settings.database_url, echo=settings.sql_echo, connect_args=connect_args)

def get_session():
    with Session(engine) as session:
        yield session
