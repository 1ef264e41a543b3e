import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError

from coursehub.core import config
from coursehub.core.responses import envelope, register_exception_handlers
from coursehub.database import ensure_schema
from coursehub.models import course, lecture, user  # noqa: F401
from coursehub.routes import course_routes, user_routes

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    logging.getLogger('coursehub').setLevel(config.LOG_LEVEL)

    app = FastAPI(title='CourseHub API')

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ALLOW_ORIGINS,
        allow_credentials=True,
        allow_methods=['*'],
        allow_headers=['*'],
    )
    register_exception_handlers(app)

    @app.on_event('startup')
    def initialize_database() -> None:
        config.validate_runtime_config()
        try:
            ensure_schema()
        except SQLAlchemyError:
            logger.exception('Database initialization failed. Check DATABASE_URL and database credentials.')

    @app.get('/')
    def root():
        return envelope(message='CourseHub API Running')

    app.include_router(user_routes.router, prefix=f'{config.API_PREFIX}/users')
    app.include_router(course_routes.router, prefix=f'{config.API_PREFIX}/courses')
    return app


app = create_app()
