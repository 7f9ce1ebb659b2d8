from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.v1.academic.router import router as academic_router
from app.api.v1.attendance.router import router as attendance_router
from app.api.v1.auth.router import router as auth_router
from app.api.v1.exams.router import router as exams_router
from app.api.v1.parents.router import router as parents_router
from app.api.v1.payments.router import router as payments_router
from app.api.v1.students.router import router as students_router
from app.api.v1.teachers.router import router as teachers_router
from app.core.config import settings
from app.core.errors import register_exception_handlers
from app.core.logging import setup_logging


def create_app() -> FastAPI:
    logger = setup_logging()
    app = FastAPI(title="School Management API")

    # CORS: allow the web client to call this API
    origins = settings.cors_origin_list or ["*"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=origins != ["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    # Routers
    app.include_router(auth_router)
    app.include_router(academic_router)
    app.include_router(students_router)
    app.include_router(teachers_router)
    app.include_router(parents_router)
    app.include_router(attendance_router)
    app.include_router(exams_router)
    app.include_router(payments_router)

    @app.get("/health", tags=["health"])
    async def health() -> dict:
        return {"success": True, "message": "OK", "data": {"environment": settings.environment}}

    logger.info("API started (%s)", settings.environment)
    return app


app = create_app()
