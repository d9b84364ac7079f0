from abc import ABC, abstractmethod
from typing import Any

from app.core.exceptions import AppError
from app.utils.logging import get_logger

LOGGER = get_logger(__name__)


class BaseService(ABC):
    """Base class for services with a validate-then-run flow.

    ``validate`` runs before any read or write, so a rejected request never
    touches the database.
    """

    def __init__(self):
        self.logger = LOGGER

    async def execute(self, *args, **kwargs) -> Any:
        """Validate the input, then run the core logic.

        Raises:
            AppError: Application errors propagate unchanged; anything else is
                wrapped so the HTTP layer renders a 500
        """
        try:
            self.validate(*args, **kwargs)
            return await self.run(*args, **kwargs)
        except AppError:
            raise
        except Exception as e:
            self.logger.error(
                f"Service execution failed: {e}",
                exc_info=True,
                extra={"service": self.__class__.__name__},
            )
            raise AppError(f"Service execution failed: {e}", original_error=e) from e

    def validate(self, *args, **kwargs) -> None:
        """Validate service input.

        Raises:
            ValidationError: If input is invalid
        """
        pass

    @abstractmethod
    async def run(self, *args, **kwargs) -> Any:
        pass
