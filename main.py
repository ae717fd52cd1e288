# main.py
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from core.config import FRONTEND_URL
from core.database import client, init_db
from core.errors import register_exception_handlers
from core.logging_config import configure_logging
from routes import attempts, auth, quizzes

logger = configure_logging()


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_db()
    logger.info("Database indexes ready")
    yield
    client.close()


def create_app(lifespan=lifespan) -> FastAPI:
    app = FastAPI(title="Quiz Backend", lifespan=lifespan)

    # Reflect any origin in development when no frontend is configured
    cors = {"allow_origins": [FRONTEND_URL]} if FRONTEND_URL else {"allow_origin_regex": ".*"}
    app.add_middleware(
        CORSMiddleware,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        **cors,
    )

    register_exception_handlers(app)

    app.include_router(auth.router)
    app.include_router(quizzes.router)
    app.include_router(attempts.router)

    @app.get("/api/health")
    async def health():
        return {"status": "ok", "message": "Server is running"}

    return app


app = create_app()

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host="127.0.0.1", port=8000, reload=True)
