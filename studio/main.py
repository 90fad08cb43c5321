from fastapi import FastAPI
from studio.api.endpoints import auth
from studio.api.endpoints import projects
from studio.api.endpoints import assistant


from fastapi.middleware.cors import CORSMiddleware
from studio.core.config import Settings

settings = Settings()
app = FastAPI(title="Studio")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth.router, prefix="/auth", tags=["auth"])
app.include_router(projects.router, prefix="/api/projects", tags=["projects"])
app.include_router(assistant.router, prefix="/api/assistant", tags=["assistant"])
