"""Tests for utils/command_helpers.py - Discord command helper utilities."""

from unittest.mock import AsyncMock, MagicMock, patch

import discord
import pytest

from services import error_codes
from services.result import Result
from utils.command_helpers import format_result_error, handle_result


@pytest.fixture
def mock_interaction():
    """Create a mock Discord interaction."""
    interaction = MagicMock(spec=discord.Interaction)
    interaction.followup = MagicMock()
    interaction.followup.send = AsyncMock()
    return interaction


class TestHandleResult:
    """Tests for handle_result function."""

    @pytest.mark.asyncio
    async def test_success_without_message(self, mock_interaction):
        """Successful result with no message should return True without sending."""
        result = Result.ok({"key": "value"})

        with patch("utils.command_helpers.safe_followup", new_callable=AsyncMock) as mock_followup:
            success = await handle_result(mock_interaction, result)

            assert success is True
            mock_followup.assert_not_called()

    @pytest.mark.asyncio
    async def test_success_with_message(self, mock_interaction):
        """Successful result with message should send the message."""
        result = Result.ok({"key": "value"})

        with patch("utils.command_helpers.safe_followup", new_callable=AsyncMock) as mock_followup:
            success = await handle_result(mock_interaction, result, success_msg="Match accepted!")

            assert success is True
            mock_followup.assert_awaited_once_with(
                mock_interaction, content="Match accepted!", ephemeral=True
            )

    @pytest.mark.asyncio
    async def test_failure_sends_error(self, mock_interaction):
        """Failed result should send error message and return False."""
        result = Result.fail("Something went wrong")

        with patch("utils.command_helpers.safe_followup", new_callable=AsyncMock) as mock_followup:
            success = await handle_result(mock_interaction, result)

            assert success is False
            mock_followup.assert_awaited_once()
            call_kwargs = mock_followup.call_args.kwargs
            assert "Something went wrong" in call_kwargs["content"]
            assert call_kwargs["ephemeral"] is True

    @pytest.mark.asyncio
    async def test_ephemeral_parameter(self, mock_interaction):
        """Ephemeral parameter should be passed through."""
        result = Result.ok(None)

        with patch("utils.command_helpers.safe_followup", new_callable=AsyncMock) as mock_followup:
            await handle_result(mock_interaction, result, success_msg="Done", ephemeral=False)

            call_kwargs = mock_followup.call_args.kwargs
            assert call_kwargs["ephemeral"] is False


class TestFormatResultError:
    """Tests for format_result_error function."""

    def test_success_returns_empty(self):
        assert format_result_error(Result.ok({"key": "value"})) == ""

    def test_failure_returns_error(self):
        assert format_result_error(Result.fail("Something went wrong")) == "Something went wrong"

    def test_failure_without_error_message(self):
        assert format_result_error(Result(success=False, error=None)) == "Unknown error"

    def test_precondition_prefix(self):
        result = Result.fail("Not your match.", code=error_codes.NOT_PARTICIPANT)
        assert format_result_error(result) == "❌ [not_participant] Not your match."

    def test_conflict_prefix(self):
        result = Result.fail("Too late.", code=error_codes.ALREADY_ACCEPTED)
        assert format_result_error(result).startswith("⚠️ [already_accepted]")

    def test_dependency_prefix(self):
        result = Result.fail("Down.", code=error_codes.DEPENDENCY_UNAVAILABLE)
        assert format_result_error(result).startswith("🛑")

    def test_temporal_includes_countdown(self):
        result = Result.fail(
            "Rematch cooldown.",
            code=error_codes.REMATCH_COOLDOWN,
            data={"remaining_seconds": 3900, "hours": 1, "minutes": 5, "available_at": 1700003900},
        )

        formatted = format_result_error(result)

        assert formatted.startswith("⏳ [rematch_cooldown] Rematch cooldown.")
        assert "(available in 1h 5m, <t:1700003900:R>)" in formatted

    def test_temporal_without_wait_data(self):
        result = Result.fail("Expired.", code=error_codes.MATCH_EXPIRED, data={"status": "expired"})
        assert format_result_error(result) == "⏳ [match_expired] Expired."
