"""
Structured logging for store, synchronization, embedding and search operations.
"""

import logging
from typing import Any, Dict


def _truncate(text: str, limit: int = 50) -> str:
    return text[:limit] + "..." if len(text) > limit else text


class StructuredLogger:
    """Structured logger for memory bank operations."""

    def __init__(self, name: str = "membank"):
        self.logger = logging.getLogger(name)
        self.logger.setLevel(logging.INFO)

        # Create handler if not already set
        if not self.logger.handlers:
            handler = logging.StreamHandler()
            formatter = logging.Formatter(
                '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
            )
            handler.setFormatter(formatter)
            self.logger.addHandler(handler)

    def log_operation(self, operation: str, status: str, details: Dict[str, Any] = None, level: int = logging.INFO):
        """Log a structured operation."""
        message = f"Operation: {operation}, Status: {status}"
        if details:
            message += f", Details: {details}"

        self.logger.log(level, message)

    def log_store_operation(self, operation: str, status: str = "success", details: Dict[str, Any] = None):
        """Log a persistent store operation. Failures are logged as errors."""
        level = logging.ERROR if status == "failed" else logging.DEBUG
        self.log_operation(f"store.{operation}", status, details, level=level)

    def log_bank_sync(self, bank: str, status: str, details: Dict[str, Any] = None):
        """Log the outcome of a bank synchronization."""
        log_details = {"bank": bank}
        if details:
            log_details.update(details)

        level = logging.ERROR if status == "failed" else logging.INFO
        self.log_operation("bank.sync", status, log_details, level=level)

    def log_embedding_operation(self, operation: str, status: str = "success", details: Dict[str, Any] = None):
        """Log an embedding provider operation."""
        level = logging.ERROR if status == "failed" else logging.INFO
        self.log_operation(f"embedding.{operation}", status, details, level=level)

    def log_search(self, bank: str, query: str, result_count: int, top_score: float = None):
        """Log a search request against a bank."""
        details = {"bank": bank, "query": _truncate(query), "results": result_count}
        if top_score is not None:
            details["top_score"] = round(top_score, 4)

        self.log_operation("search", "success", details)

    # Standard logging methods for compatibility
    def info(self, message: str) -> None:
        """Log an info message."""
        self.logger.info(message)

    def warning(self, message: str) -> None:
        """Log a warning message."""
        self.logger.warning(message)

    def error(self, message: str) -> None:
        """Log an error message."""
        self.logger.error(message)

    def debug(self, message: str) -> None:
        """Log a debug message."""
        self.logger.debug(message)


# Global logger instance
logger = StructuredLogger()
