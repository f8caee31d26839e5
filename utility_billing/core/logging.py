"""Structured JSON Logging Configuration"""

import enum
import logging
import sys
from datetime import date, datetime
from decimal import Decimal
from typing import Any
from pythonjsonlogger import jsonlogger

from utility_billing.config import settings

# Record extras grouped under "billing" so log queries can filter on one object
BILLING_FIELDS = (
    "customer_pk",
    "customer_id",
    "bill_id",
    "bill_number",
    "payment_id",
    "payment_number",
    "amount",
    "method",
    "from_status",
    "to_status",
)


def billing_json_default(obj: Any) -> Any:
    """Money stays exact as a string; enums log their stored value"""
    if isinstance(obj, Decimal):
        return str(obj)
    if isinstance(obj, enum.Enum):
        return obj.value
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    return str(obj)


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """JSON formatter adding level, logger, environment, correlation id and a billing block"""

    def add_fields(self, log_record: dict, record: logging.LogRecord, message_dict: dict) -> None:
        super().add_fields(log_record, record, message_dict)

        log_record["level"] = record.levelname
        log_record["logger"] = record.name
        log_record["environment"] = settings.ENVIRONMENT
        log_record["app_name"] = settings.APP_NAME

        if hasattr(record, "correlation_id"):
            log_record["correlation_id"] = record.correlation_id

        billing = {key: log_record.pop(key) for key in BILLING_FIELDS if key in log_record}
        if billing:
            log_record["billing"] = billing


def setup_logging() -> None:
    """Configure the root logger once per process"""
    root_logger = logging.getLogger()
    if any(getattr(h, "_utility_billing", False) for h in root_logger.handlers):
        return

    handler = logging.StreamHandler(sys.stdout)
    handler._utility_billing = True

    if settings.LOG_FORMAT == "json":
        formatter = CustomJsonFormatter(
            fmt="%(asctime)s %(level)s %(name)s %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
            json_default=billing_json_default,
        )
    else:
        formatter = logging.Formatter(
            fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S"
        )

    handler.setFormatter(formatter)

    root_logger.setLevel(getattr(logging, settings.LOG_LEVEL.upper()))
    root_logger.addHandler(handler)

    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
