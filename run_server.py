import uvicorn

from dashboard.config import settings
from utils.logging_utils import get_tagged_logger, mask_redis_url, setup_logging

logger = get_tagged_logger(__name__, tag="server")


if __name__ == "__main__":
    setup_logging(level=settings.log_level, job_name="dashboard-api")
    logger.info(
        f"Starting dashboard API on {settings.api_host}:{settings.api_port} "
        f"(redis={mask_redis_url(settings.redis_url) or 'none'})"
    )

    uvicorn.run(
        "dashboard.main:create_app",
        factory=True,
        host=settings.api_host,
        port=settings.api_port,
        reload=False,
        log_config=None,
    )
