import logging
import secrets

from pinquiz.config import settings
from pinquiz.errors import TransientWriteError

logger = logging.getLogger(__name__)


def generate_pin() -> str:
    """Random 6-digit numeric pin, uniform over [pin_min, pin_max]"""
    return str(settings.pin_min + secrets.randbelow(settings.pin_max - settings.pin_min + 1))


async def generate_unique_pin(store) -> str:
    """Generate a pin no other open (non-completed) session is using"""
    for attempt in range(settings.pin_max_attempts):
        pin = generate_pin()
        if not await store.pin_in_use(pin):
            return pin
        logger.info(f"Pin collision on attempt {attempt + 1}, retrying")

    raise TransientWriteError("Failed to generate a unique game PIN")
