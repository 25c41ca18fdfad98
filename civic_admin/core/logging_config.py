"""Structured logging configuration for the application."""

from datetime import UTC, datetime
import json
import logging
from pathlib import Path
import sys

from civic_admin.core.config import settings


class JSONFormatter(logging.Formatter):
    """Format logs as JSON for structured logging in production."""

    def format(self, record: logging.LogRecord) -> str:
        """Format the log record as JSON."""
        log_data = {
            "timestamp": datetime.now(UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if hasattr(record, "extra_fields"):
            log_data.update(record.extra_fields)

        return json.dumps(log_data, default=str)


class StandardFormatter(logging.Formatter):
    """Single-line formatter for development consoles."""

    def __init__(self) -> None:
        super().__init__(
            fmt="%(asctime)s %(levelname)-7s [%(name)s] %(message)s",
            datefmt="%H:%M:%S",
        )


ENVIRONMENT_LOG_LEVELS = {
    "development": logging.DEBUG,
    "test": logging.WARNING,
    "production": logging.INFO,
}


def setup_logging() -> None:
    """
    Configure the root logger once at startup.

    LOG_LEVEL wins when set; otherwise the level follows ENVIRONMENT. Production
    logs are JSON lines, everything else is human-readable.
    """
    if settings.LOG_LEVEL:
        log_level = logging.getLevelName(settings.LOG_LEVEL.upper())
    else:
        log_level = ENVIRONMENT_LOG_LEVELS.get(settings.ENVIRONMENT, logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        JSONFormatter() if settings.ENVIRONMENT == "production" else StandardFormatter()
    )

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(log_level)

    for name in ("uvicorn.access", "asyncpg"):
        logging.getLogger(name).setLevel(max(logging.WARNING, root_logger.level))


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance with the given name."""
    return logging.getLogger(name)


class SecurityLogger:
    """Specialized logger for security events."""

    def __init__(self) -> None:
        self.logger = get_logger("security")

    def log_login_attempt(
        self,
        email: str,
        success: bool,
        ip_address: str | None = None,
        reason: str | None = None,
    ) -> None:
        """Log a login attempt."""
        extra_fields = {
            "event_type": "login_attempt",
            "email": email,
            "success": success,
            "ip_address": ip_address,
        }

        if not success and reason:
            extra_fields["failure_reason"] = reason

        message = f"Login {'succeeded' if success else 'failed'} for user: {email}"

        if success:
            self.logger.info(message, extra={"extra_fields": extra_fields})
        else:
            self.logger.warning(message, extra={"extra_fields": extra_fields})

    def log_token_creation(self, user_id: int, token_type: str = "access") -> None:
        """Log token creation."""
        self.logger.info(
            f"Token created for user: {user_id}",
            extra={
                "extra_fields": {
                    "event_type": "token_created",
                    "user_id": user_id,
                    "token_type": token_type,
                }
            },
        )

    def log_unauthorized_access(
        self,
        resource: str,
        user_id: int | None = None,
        program_id: str | None = None,
        reason: str | None = None,
    ) -> None:
        """Log a request refused by the program authorization checks."""
        self.logger.warning(
            f"Unauthorized access attempt to: {resource}",
            extra={
                "extra_fields": {
                    "event_type": "unauthorized_access",
                    "resource": resource,
                    "user_id": user_id,
                    "program_id": program_id,
                    "reason": reason,
                }
            },
        )

    def log_password_change(self, user_id: int) -> None:
        """Log password change."""
        self.logger.info(
            f"Password changed for user: {user_id}",
            extra={
                "extra_fields": {
                    "event_type": "password_change",
                    "user_id": user_id,
                }
            },
        )

    def log_user_registration(self, email: str) -> None:
        """Log new user registration."""
        self.logger.info(
            f"New user registered: {email}",
            extra={
                "extra_fields": {
                    "event_type": "user_registration",
                    "email": email,
                }
            },
        )


class ProgramLogger:
    """
    Audit trail scoped to a single program.

    Each entry is appended as one JSON line to ``<PROGRAM_LOG_DIR>/<program_id>.log``
    and mirrored to the ``audit`` logger. Writing is fire-and-forget: a failure to
    write the file is reported on the application log and never reaches the caller.
    """

    def __init__(self) -> None:
        self.logger = get_logger("audit")

    def info(self, program_id: str, message: str) -> None:
        self._write(program_id, "info", message)

    def error(self, program_id: str, message: str, error: BaseException | None = None) -> None:
        self._write(program_id, "error", message, error)

    def _write(
        self,
        program_id: str,
        level: str,
        message: str,
        error: BaseException | None = None,
    ) -> None:
        entry = {
            "timestamp": datetime.now(UTC).isoformat(),
            "level": level,
            "program_id": str(program_id),
            "message": message,
        }
        if error is not None:
            entry["error"] = repr(error)

        self.logger.log(
            logging.ERROR if level == "error" else logging.INFO,
            f"[{program_id}] {message}",
            extra={"extra_fields": entry},
        )

        try:
            log_dir = Path(settings.PROGRAM_LOG_DIR)
            log_dir.mkdir(parents=True, exist_ok=True)
            with open(log_dir / f"{program_id}.log", "a", encoding="utf-8") as f:
                f.write(json.dumps(entry) + "\n")
        except OSError as e:
            self.logger.warning(f"Could not write program log for {program_id}: {e}")


# Global logger instances
security_logger = SecurityLogger()
program_logger = ProgramLogger()
