import functools
import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from django.core.exceptions import ValidationError
from django.db import DatabaseError, IntegrityError

from .exceptions import BillingError

logger = logging.getLogger(__name__)


@dataclass
class Result:
    """Success or failure of one public billing operation."""
    ok: bool
    data: Any = None
    error: Optional[str] = None
    code: Optional[str] = None
    context: dict = field(default_factory=dict)

    @classmethod
    def success(cls, data=None):
        return cls(ok=True, data=data)

    @classmethod
    def failure(cls, code, error, **context):
        return cls(ok=False, error=error, code=code, context=context)

    def as_dict(self):
        if self.ok:
            return {"ok": True, "data": self.data}
        return {"ok": False, "code": self.code, "error": self.error, "context": self.context}


def _validation_message(exc):
    return "; ".join(exc.messages) if exc.messages else "Invalid data."


def as_result(func):
    """
    Run a service call and turn its outcome into a ``Result``.

    Service exceptions stay inside; unexpected programming errors still raise.
    """
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return Result.success(func(*args, **kwargs))
        except BillingError as exc:
            return Result.failure(exc.code, exc.message, **exc.context)
        except ValidationError as exc:
            return Result.failure("validation_error", _validation_message(exc))
        except IntegrityError:
            logger.warning("Integrity error in %s", func.__name__, exc_info=True)
            return Result.failure(
                "conflict", "The record was changed by another request. Please try again."
            )
        except DatabaseError:
            logger.exception("Database error in %s", func.__name__)
            return Result.failure(
                "infrastructure", "Database connection error. Please try again."
            )
    return wrapper
