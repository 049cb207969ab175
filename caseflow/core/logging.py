import logging
import json
from datetime import datetime, timezone

from caseflow.core.config import settings
from caseflow.core.middleware import get_current_request_id, get_current_tenant_id, get_current_user_id


class JSONContextFormatter(logging.Formatter):
    def format(self, record):
        log_obj = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "message": record.getMessage(),
            "name": record.name,
            "filename": record.filename,
            "tenant_id": get_current_tenant_id() or "system",
            "request_id": get_current_request_id() or "-",
            "user_id": get_current_user_id() or "-",
        }

        if record.exc_info:
            log_obj["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_obj, default=str)


def setup_logging(level: str = settings.LOG_LEVEL):
    handler = logging.StreamHandler()
    handler.setFormatter(JSONContextFormatter())

    root_logger = logging.getLogger("caseflow")
    root_logger.setLevel(level)
    if not any(isinstance(h.formatter, JSONContextFormatter) for h in root_logger.handlers):
        root_logger.addHandler(handler)

    # Disable uvicorn default to prevent duplicates
    logging.getLogger("uvicorn.access").handlers = [handler]
