import logging

from src.geomess.config import LOG_LEVEL


class HealthCheckFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        msg = record.getMessage()
        return "/health" not in msg


_health_check_filter = HealthCheckFilter()


def setup_logging():
    logging.basicConfig(
        level=LOG_LEVEL,
        format="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
    )
    # Same filter instance every time so repeated calls don't stack filters
    logging.getLogger("uvicorn.access").addFilter(_health_check_filter)
