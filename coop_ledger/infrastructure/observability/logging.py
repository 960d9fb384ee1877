"""Structured JSON logging for production observability"""

import logging
import sys
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict
from pythonjsonlogger import jsonlogger

from coop_ledger.config import settings


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter with timestamp and service metadata"""

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["service"] = settings.service_name


def setup_logging(level: str = "INFO") -> None:
    """Configure structured JSON logging"""
    logger = logging.getLogger()
    logger.setLevel(level)

    # Remove existing handlers
    logger.handlers.clear()

    # JSON handler for stdout
    handler = logging.StreamHandler(sys.stdout)
    formatter = CustomJsonFormatter(
        "%(timestamp)s %(level)s %(name)s %(message)s"
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)


def log_interest_posted(
    member_id: str,
    months: int,
    total_interest: Decimal,
    new_interest_balance: Decimal,
    reference: str,
) -> None:
    """Log structured interest posting for audit"""
    logging.getLogger("coop_ledger.interest").info(
        "Interest posted",
        extra={
            "member_id": member_id,
            "step": "interest_posted",
            "months": months,
            "total_interest": str(total_interest),
            "new_interest_balance": str(new_interest_balance),
            "reference": reference,
        },
    )


def log_payment_processed(
    member_id: str,
    interest_paid: Decimal,
    principal_paid: Decimal,
    excess: Decimal,
) -> None:
    """Log structured payment split for audit"""
    logging.getLogger("coop_ledger.payments").info(
        "Payment processed",
        extra={
            "member_id": member_id,
            "step": "payment_processed",
            "interest_paid": str(interest_paid),
            "principal_paid": str(principal_paid),
            "excess": str(excess),
        },
    )
