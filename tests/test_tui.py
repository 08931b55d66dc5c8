"""Tests for confirmation prompts."""

from unittest.mock import patch

import pytest

from onboard.tui import confirm, confirm_dangerous


class FakeQuestion:
    def __init__(self, answer):
        self.answer = answer
        self.awaited = False

    def ask(self):
        raise AssertionError("blocking ask() used inside the event loop")

    async def ask_async(self):
        self.awaited = True
        return self.answer


class TestConfirm:
    @pytest.mark.asyncio
    async def test_tty_prompt_runs_on_the_current_loop(self, mock_tty):
        question = FakeQuestion(True)
        with patch("onboard.tui.questionary.confirm", return_value=question) as prompt:
            assert await confirm("Continue?") is True

        assert question.awaited
        assert prompt.call_args.args == ("Continue?",)
        assert prompt.call_args.kwargs["default"] is False

    @pytest.mark.asyncio
    async def test_tty_interrupt_counts_as_no(self, mock_tty):
        with patch("onboard.tui.questionary.confirm", return_value=FakeQuestion(None)):
            assert await confirm("Continue?") is False

    @pytest.mark.asyncio
    async def test_no_tty_falls_back_to_click(self, mock_no_tty):
        with patch("onboard.tui.click.confirm", return_value=True) as fallback, \
                patch("onboard.tui.questionary.confirm") as prompt:
            assert await confirm("Continue?", default=True) is True

        fallback.assert_called_once_with("Continue?", default=True)
        prompt.assert_not_called()


@pytest.mark.asyncio
async def test_confirm_dangerous_shows_command(mock_tty, capsys):
    with patch("onboard.tui.questionary.confirm", return_value=FakeQuestion(False)):
        answer = await confirm_dangerous("setup step pipes a script", "curl x | sh")

    assert answer is False
    out = capsys.readouterr().out
    assert "DANGEROUS: setup step pipes a script" in out
    assert "curl x | sh" in out
