import pytest
from unittest.mock import AsyncMock, patch
from pinquiz.errors import TransientWriteError
from pinquiz.game.pin import generate_pin, generate_unique_pin


class TestGeneratePin:
    """Game pin generation"""

    def test_pin_is_six_digits(self):
        for _ in range(200):
            pin = generate_pin()
            assert len(pin) == 6
            assert pin.isdigit()
            assert 100000 <= int(pin) <= 999999

    def test_pin_range_bounds(self):
        with patch("pinquiz.game.pin.secrets.randbelow", return_value=0):
            assert generate_pin() == "100000"
        with patch("pinquiz.game.pin.secrets.randbelow", return_value=899999):
            assert generate_pin() == "999999"

    @pytest.mark.asyncio
    async def test_unique_pin_retries_on_collision(self):
        store = AsyncMock()
        store.pin_in_use.side_effect = [True, True, False]

        with patch("pinquiz.game.pin.secrets.randbelow", side_effect=[1, 2, 3]):
            pin = await generate_unique_pin(store)

        assert pin == "100003"
        assert store.pin_in_use.await_count == 3

    @pytest.mark.asyncio
    async def test_unique_pin_gives_up(self):
        store = AsyncMock()
        store.pin_in_use.return_value = True

        with pytest.raises(TransientWriteError):
            await generate_unique_pin(store)

        assert store.pin_in_use.await_count == 20
