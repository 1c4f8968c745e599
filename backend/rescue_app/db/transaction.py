import contextlib
import logging
from collections.abc import AsyncIterator
from typing import Any

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from rescue_app.core.errors import AppError, ErrorCodes

logger = logging.getLogger(__name__)


@contextlib.asynccontextmanager
async def store_transaction(
    db: AsyncSession,
    operation: str,
    *,
    scope: str,
    commit: bool = True,
    on_conflict: AppError | None = None,
    **context: Any,
) -> AsyncIterator[None]:
    """Run a unit of work against the store.

    Commits on exit unless ``commit`` is false. An ``AppError`` raised inside
    rolls back and propagates. Driver errors roll back, are logged as
    ``<scope>.store_failure`` and surface as a 500 ``STORE_FAILURE``; an
    ``IntegrityError`` is replaced by ``on_conflict`` when one is given.
    """
    try:
        yield
        if commit:
            await db.commit()
    except IntegrityError as exc:
        await db.rollback()
        if on_conflict is None:
            _log_failure(scope, operation, exc, context)
            raise _store_failure(scope) from exc
        raise on_conflict from exc
    except SQLAlchemyError as exc:
        await db.rollback()
        _log_failure(scope, operation, exc, context)
        raise _store_failure(scope) from exc
    except AppError:
        await db.rollback()
        raise


def _log_failure(scope: str, operation: str, exc: SQLAlchemyError, context: dict[str, Any]) -> None:
    logger.error(
        f"{scope}.store_failure",
        extra={
            "operation": operation,
            **{key: getattr(value, "value", value) for key, value in context.items()},
            "error": str(exc),
        },
        exc_info=exc,
    )


def _store_failure(scope: str) -> AppError:
    return AppError(
        code=ErrorCodes.STORE_FAILURE,
        message=f"{scope.capitalize()} store failure.",
        status_code=500,
    )
