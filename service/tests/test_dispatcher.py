"""
Tests for message routing.
"""

import pytest

from unibon.telegram_bot.dispatcher import ROUTES, Route, classify_message, command, dispatch

PHOTO = [
    {"file_id": "small", "file_unique_id": "s1", "width": 90, "height": 120},
    {"file_id": "large", "file_unique_id": "l1", "width": 900, "height": 1200},
]


def route_name(message):
    classified = classify_message(message)
    return None if classified is None else classified[0].name


class TestClassifyMessage:
    """First matching route wins."""

    @pytest.mark.parametrize("text,expected", [
        ("/start", "start"),
        ("/start@unibon_bot", "start"),
        ("/setkey sk-test", "setkey"),
        ("/stats", "stats"),
        ("/history", "history"),
        ("/delete ab12cd34", "delete"),
        ("/help", "help"),
    ])
    def test_fixed_commands(self, make_message, text, expected):
        assert route_name(make_message(text)) == expected

    def test_stats_is_not_taken_for_start(self, make_message):
        """/stats and /start share the "/sta" prefix."""
        assert route_name(make_message("/stats")) == "stats"

    def test_receipt_detail_with_underscore(self, make_message):
        route, args = classify_message(make_message("/receipt_ab12cd34"))
        assert route.name == "receipt"
        assert args == ("ab12cd34",)

    def test_receipt_detail_without_underscore(self, make_message):
        route, args = classify_message(make_message("/receiptAB12"))
        assert route.name == "receipt"
        assert args == ("AB12",)

    def test_receipt_with_non_hex_id_is_unknown_command(self, make_message):
        assert route_name(make_message("/receipt_xyz")) == "unknown"

    def test_photo(self, make_message):
        assert route_name(make_message(photo=PHOTO)) == "photo"

    def test_photo_with_caption(self, make_message):
        """Caption is not text; the photo route still applies."""
        assert route_name(make_message(photo=PHOTO, caption="lunch")) == "photo"

    def test_free_text(self, make_message):
        assert route_name(make_message("Starbucks latte 4.50 EUR")) == "text"

    def test_unknown_command(self, make_message):
        assert route_name(make_message("/foo")) == "unknown"

    def test_whitespace_only_text_is_ignored(self, make_message):
        assert classify_message(make_message("   ")) is None

    def test_empty_message_is_ignored(self, make_message):
        assert classify_message(make_message()) is None

    def test_route_order(self):
        names = [route.name for route in ROUTES]
        assert names == [
            "start", "setkey", "stats", "history", "delete", "help",
            "receipt", "photo", "text", "unknown",
        ]


class TestDispatch:
    """dispatch() runs exactly one handler."""

    async def test_runs_matching_handler_with_args(self, make_message, bot_ctx):
        calls = []

        async def record(ctx, message, *args):
            calls.append((ctx, message.text, args))

        routes = (
            Route("first", command("/a"), record),
            Route("second", command("/"), record),
        )

        name = await dispatch(bot_ctx, make_message("/a 1"), routes)

        assert name == "first"
        assert calls == [(bot_ctx, "/a 1", ())]

    async def test_ignored_message_returns_none(self, make_message, bot_ctx, telegram):
        name = await dispatch(bot_ctx, make_message("  "))

        assert name is None
        assert telegram.messages == []

    async def test_unknown_command_reply(self, make_message, bot_ctx, telegram):
        name = await dispatch(bot_ctx, make_message("/foo"))

        assert name == "unknown"
        assert telegram.last_text.startswith("❓ Unknown command")
