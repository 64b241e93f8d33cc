import sys

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

import config
from database import SessionLocal, engine, init_db
from handlers.auth import TokenService, ensure_superadmin
from api.errors import register_error_handlers
from api.auth import register_auth_routes
from api.cars import register_cars_routes
from api.rentals import register_rentals_routes
from api.users import register_users_routes


def setup_logging(level: str = config.LOG_LEVEL, log_file: str = config.LOG_FILE):
    logger.remove()
    logger.add(sys.stderr, level=level)
    if log_file:
        logger.add(log_file, level=level, rotation="10 MB", compression="zip")


def create_app(session_factory=SessionLocal, tokens: TokenService = None) -> FastAPI:
    app = FastAPI(title="Car Rental API", version="1.0.0")
    app.state.session_factory = session_factory
    app.state.tokens = tokens or TokenService()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_error_handlers(app)

    # Регистрируем все маршруты
    register_auth_routes(app)
    register_cars_routes(app)
    register_rentals_routes(app)
    register_users_routes(app)

    app.add_api_route("/health", lambda: {"status": "ok"}, methods=["GET"], tags=["health"])
    return app


def main():
    setup_logging()

    logger.info("Creating tables...")
    init_db(engine)

    db = SessionLocal()
    try:
        ensure_superadmin(db, config.SUPERADMIN_EMAIL, config.SUPERADMIN_PASSWORD)
    finally:
        db.close()

    app = create_app()
    logger.info(f"Car Rental API starting on {config.HOST}:{config.PORT}")
    server_config = uvicorn.Config(app, host=config.HOST, port=config.PORT, log_level=config.LOG_LEVEL.lower())
    server = uvicorn.Server(server_config)
    server.run()


if __name__ == "__main__":
    main()
