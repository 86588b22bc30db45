"""
FastAPI 应用入口

广告账户工单后台主应用
"""

from contextlib import asynccontextmanager
from typing import Optional
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from .api.deps import ServiceContainer
from .api.routes import review_router, upload_router, work_order_router
from .api.schemas.response import HealthCheckResponse, ServiceStatus
from .config import settings
from .db.base import utcnow
from .db.engine import get_session_factory, init_engine_from_settings, session_scope
from .exceptions import ErrorCode, SUCCESS_CODE
from .utils.logger import setup_logging, get_logger

# 设置日志
setup_logging(
    log_level=settings.log.log_level,
    log_file=settings.log.log_file,
    log_format=settings.log.log_format,
)

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """应用生命周期管理"""
    # 启动时执行
    logger.info(
        f"启动 {settings.app.app_name} v{settings.app.app_version} "
        f"(环境: {settings.app.app_env})"
    )
    if getattr(app.state, "container", None) is None:
        init_engine_from_settings(settings.database)
        app.state.container = ServiceContainer(settings, get_session_factory())
    logger.info(f"第三方网关模式: {settings.open_api.gateway_mode}")

    yield

    # 关闭时执行
    logger.info(f"关闭 {settings.app.app_name}")


def create_app(container: Optional[ServiceContainer] = None) -> FastAPI:
    """
    创建 FastAPI 应用

    Args:
        container: 预先组装的服务容器（测试使用），为空时在启动阶段按配置创建
    """
    app = FastAPI(
        title=settings.app.app_name,
        version=settings.app.app_version,
        description="广告账户开户、充值、减款、转账与清零工单后台",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.container = container

    # 添加 CORS 中间件
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.app.cors_origin_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        """请求体结构错误也返回统一信封"""
        errors = [
            {
                "path": ".".join(str(p) for p in err.get("loc", ()) if p != "body"),
                "message": err.get("msg", ""),
            }
            for err in exc.errors()
        ]
        return JSONResponse(
            status_code=400,
            content={
                "success": False,
                "code": ErrorCode.VALIDATION_ERROR,
                "message": "请求参数格式不正确",
                "data": {"errors": errors},
            },
        )

    # 全局异常处理
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """全局异常处理器"""
        logger.error(f"未处理的异常: {exc}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content={
                "success": False,
                "code": ErrorCode.SYSTEM_ERROR,
                "message": "内部服务器错误",
            },
        )

    # 健康检查接口
    @app.get("/health", response_model=HealthCheckResponse)
    async def health_check(request: Request):
        """
        健康检查接口

        检查数据库连接，并报告网关模式与 OSS 配置
        """
        container: ServiceContainer = request.app.state.container
        try:
            with session_scope(container.session_factory) as session:
                session.execute(text("SELECT 1"))
            database_status = "connected"
        except SQLAlchemyError as e:
            logger.warning(f"数据库健康检查失败: {e}")
            database_status = "disconnected"

        oss_status = "configured" if settings.oss.aliyun_oss_bucket_name else "not_configured"

        return HealthCheckResponse(
            status="healthy" if database_status == "connected" else "degraded",
            version=settings.app.app_version,
            timestamp=utcnow(),
            services=ServiceStatus(
                database=database_status,
                gateway=settings.open_api.gateway_mode,
                oss=oss_status,
            ),
        )

    # 根路径
    @app.get("/")
    async def root():
        """根路径"""
        return {
            "success": True,
            "code": SUCCESS_CODE,
            "data": {
                "name": settings.app.app_name,
                "version": settings.app.app_version,
                "status": "running",
                "docs": "/docs",
            },
        }

    # 注册路由
    app.include_router(work_order_router)
    app.include_router(review_router)
    app.include_router(upload_router)

    return app


app = create_app()


def run():
    """命令行启动入口"""
    import uvicorn

    uvicorn.run(
        "ad_work_order.main:app",
        host=settings.app.host,
        port=settings.app.port,
        reload=settings.app.app_env == "development",
    )


# 如果直接运行此文件
if __name__ == "__main__":
    run()
