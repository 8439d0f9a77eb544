"""FastAPI 入口：初始化日志与数据库表，挂载 v1 路由。"""

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from learning_platform.api import router as api_router
from learning_platform.config import get_settings
from learning_platform.db import init_db
from learning_platform.errors import CatalogError, InvalidInputError
from learning_platform.hydration import shape_names
from learning_platform.log_config import configure_logging
from learning_platform.services import seed_if_empty


def create_app() -> FastAPI:
    """应用工厂，便于测试与拓展路由。"""

    settings = get_settings()
    configure_logging(settings.log_level)
    app = FastAPI(title="Learning Platform API", version="0.1.0")
    app.include_router(api_router)

    @app.on_event("startup")
    def init_models() -> None:
        """启动时确保表存在，按配置写入演示数据。"""

        init_db()
        if settings.seed_demo_data:
            seed_if_empty()

    @app.exception_handler(CatalogError)
    def handle_catalog_error(_request: Request, exc: CatalogError) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    def handle_validation_error(_request: Request, exc: RequestValidationError) -> JSONResponse:
        # 请求体/参数校验失败与业务层的 invalid_input 使用同一种错误形态
        error = InvalidInputError("Request validation failed", errors=jsonable_encoder(exc.errors()))
        return JSONResponse(status_code=error.status_code, content=error.to_dict())

    @app.get("/health")
    def health() -> dict[str, object]:
        return {"status": "ok", "shapes": list(shape_names())}

    return app


app = create_app()
