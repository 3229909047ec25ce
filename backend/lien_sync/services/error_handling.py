"""Error Handling Service

Classifies pipeline failures so scrapers and the orchestrator can decide
whether to retry, skip a record, fail a county, or hold delivery.
"""

import re
import logging
from enum import Enum
from typing import Dict, Any, List, Optional, Union
from datetime import datetime
from dataclasses import dataclass

logger = logging.getLogger(__name__)


class ErrorCategory(str, Enum):
    """Where in the pipeline a failure belongs"""
    TRANSIENT = "transient"         # Connection reset, timeout, DNS
    RECORD = "record"               # One document failed to scrape
    COUNTY = "county"               # Browser or site unusable for a whole county
    DATA_QUALITY = "data_quality"   # A record produced without a usable PDF
    DELIVERY = "delivery"           # Downstream store rejected a batch
    UNKNOWN = "unknown"


class RecoveryAction(str, Enum):
    """What the caller should do next"""
    RETRY_WITH_BACKOFF = "retry_backoff"
    SKIP_RECORD = "skip_record"
    FAIL_COUNTY = "fail_county"
    HOLD_FOR_REVIEW = "hold_for_review"
    SURFACE = "surface"


@dataclass
class ErrorDiagnosis:
    """Diagnosis result for an error"""
    category: ErrorCategory
    severity: str  # low, medium, high, critical
    is_transient: bool
    user_message: str
    technical_details: str
    recommended_action: RecoveryAction


# Order matters: the first matching category wins
ERROR_PATTERNS = {
    ErrorCategory.TRANSIENT: [
        r"timeout",
        r"timed out",
        r"connection reset",
        r"connection refused",
        r"connection closed",
        r"econnreset",
        r"enotfound",
        r"name resolution",
        r"dns",
        r"socket hang up",
        r"net::err_",
        r"temporarily unavailable",
    ],
    ErrorCategory.RECORD: [
        r"detached frame",
        r"frame was detached",
        r"target closed",
        r"target page, context or browser has been closed",
        r"execution context was destroyed",
        r"session closed",
        r"lost connection",
        r"navigation failed",
    ],
    ErrorCategory.COUNTY: [
        r"browser launch",
        r"failed to launch",
        r"executable doesn't exist",
        r"site unreachable",
        r"search form",
        r"captcha",
    ],
    ErrorCategory.DATA_QUALITY: [
        r"no pdf",
        r"pdf download failed",
        r"invalid pdf",
        r"missing pdf",
    ],
    ErrorCategory.DELIVERY: [
        r"airtable",
        r"batch \d+",
        r"422",
        r"invalid_value_for_column",
        r"unknown_field_name",
    ],
}


ERROR_CONFIG = {
    ErrorCategory.TRANSIENT: {
        "severity": "low",
        "is_transient": True,
        "action": RecoveryAction.RETRY_WITH_BACKOFF,
        "user_message": "Temporary network problem talking to the county site. Retrying.",
    },
    ErrorCategory.RECORD: {
        "severity": "medium",
        "is_transient": True,
        "action": RecoveryAction.SKIP_RECORD,
        "user_message": "One document could not be read; moving on to the next.",
    },
    ErrorCategory.COUNTY: {
        "severity": "high",
        "is_transient": False,
        "action": RecoveryAction.FAIL_COUNTY,
        "user_message": "The county site could not be scraped. Other counties will continue.",
    },
    ErrorCategory.DATA_QUALITY: {
        "severity": "high",
        "is_transient": False,
        "action": RecoveryAction.HOLD_FOR_REVIEW,
        "user_message": "A record has no verified PDF. Delivery is held for review.",
    },
    ErrorCategory.DELIVERY: {
        "severity": "high",
        "is_transient": False,
        "action": RecoveryAction.SURFACE,
        "user_message": "Airtable rejected a batch. Affected records were not marked synced.",
    },
    ErrorCategory.UNKNOWN: {
        "severity": "medium",
        "is_transient": False,
        "action": RecoveryAction.SKIP_RECORD,
        "user_message": "An unexpected error occurred.",
    },
}


ErrorLike = Union[str, BaseException]


def _message(error: ErrorLike) -> str:
    if isinstance(error, BaseException):
        return f"{type(error).__name__}: {error}"
    return error


class ErrorHandler:
    """Categorizes errors by matching their message against known patterns"""

    def categorize_error(self, error: ErrorLike) -> ErrorCategory:
        error_lower = _message(error).lower()

        for category, patterns in ERROR_PATTERNS.items():
            for pattern in patterns:
                if re.search(pattern, error_lower, re.IGNORECASE):
                    return category

        return ErrorCategory.UNKNOWN

    def is_transient(self, error: ErrorLike) -> bool:
        return ERROR_CONFIG[self.categorize_error(error)]["is_transient"]

    def diagnose_error(self, error: ErrorLike, task_name: str = "") -> ErrorDiagnosis:
        category = self.categorize_error(error)
        config = ERROR_CONFIG[category]
        return ErrorDiagnosis(
            category=category,
            severity=config["severity"],
            is_transient=config["is_transient"],
            user_message=config["user_message"],
            technical_details=f"Task: {task_name}, Error: {_message(error)}",
            recommended_action=config["action"],
        )

    def create_error_entry(
        self,
        error: ErrorLike,
        task_name: str,
        context: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Build a JSON-serializable entry for run metadata"""
        diagnosis = self.diagnose_error(error, task_name)
        entry = {
            "timestamp": datetime.utcnow().isoformat(),
            "task": task_name,
            "error": _message(error),
            "category": diagnosis.category.value,
            "severity": diagnosis.severity,
            "is_transient": diagnosis.is_transient,
            "recommended_action": diagnosis.recommended_action.value,
        }
        if context:
            entry["context"] = context
        return entry

    def summarize(self, entries: List[Dict[str, Any]]) -> Dict[str, int]:
        """Count error entries per category"""
        counts: Dict[str, int] = {}
        for entry in entries:
            category = entry.get("category", ErrorCategory.UNKNOWN.value)
            counts[category] = counts.get(category, 0) + 1
        return counts


error_handler = ErrorHandler()
