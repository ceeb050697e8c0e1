"""
Shared pytest fixtures: in-memory SQLite, FastAPI TestClient and a
bot context wired to fake Telegram / extraction collaborators.
"""
import json
import os

# Must be set before unibon.config is first imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["TELEGRAM_BOT_TOKEN"] = ""
os.environ["OPENAI_API_KEY"] = ""
os.environ["ENVIRONMENT"] = "development"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from telegram import Bot, Message

from unibon.database import Base, build_engine, get_db
from unibon.models import tables  # noqa: F401  register models
from unibon.main import app
from unibon.telegram_bot.handlers import BotContext

# Never initialized, so it makes no requests; only used to deserialize messages
OFFLINE_BOT = Bot(token="123456:TEST-TOKEN")

# StaticPool: every connection sees the same in-memory database
_ENGINE = build_engine("sqlite://", poolclass=StaticPool)
_Session = sessionmaker(autocommit=False, autoflush=False, bind=_ENGINE)

REWE_RECEIPT = {
    "store_name": "REWE",
    "date": "2024-03-15",
    "time": "14:30",
    "items": [
        {"name": "Milch", "quantity": 2, "unit_price": 1.09, "total_price": 2.18, "category": None},
        {"name": "Pfand", "quantity": 1, "unit_price": 0.25, "total_price": 0.25, "category": "pfand"},
    ],
    "subtotal": 2.43,
    "tax": 0.16,
    "total_amount": 2.43,
    "currency": "EUR",
    "payment_method": "card",
}


class FakeFile:
    def __init__(self, file_id, file_path, content):
        self.file_id = file_id
        self.file_path = file_path
        self._content = content

    async def download_as_bytearray(self):
        return bytearray(self._content)


class FakeTelegram:
    """Records everything the handlers send instead of calling the Bot API."""

    # Read by telegram.Update.de_json when this stands in for the Bot
    defaults = None

    def __init__(self):
        self.messages: list[tuple[int, str]] = []
        self.parse_modes: list = []
        self.actions: list[tuple[int, str]] = []
        self.file_ids: list[str] = []
        self.file_path = "https://api.telegram.org/file/bot123/photos/file_1.jpg"
        self.content = b"\xff\xd8\xff fake jpeg"
        self.initialized = False
        self.closed = False

    async def initialize(self):
        self.initialized = True

    async def shutdown(self):
        self.closed = True

    async def send_message(self, chat_id, text, parse_mode=None, **kwargs):
        if self.closed:
            raise RuntimeError("Bot is shut down")
        self.messages.append((chat_id, text))
        self.parse_modes.append(parse_mode)

    async def send_chat_action(self, chat_id, action, **kwargs):
        self.actions.append((chat_id, action))

    async def get_file(self, file_id, **kwargs):
        self.file_ids.append(file_id)
        return FakeFile(file_id, self.file_path, self.content)

    @property
    def texts(self) -> list[str]:
        return [text for _, text in self.messages]

    @property
    def last_text(self) -> str:
        return self.messages[-1][1]


class FakeExtractor:
    """Stands in for unibon.services.extraction; returns a canned model reply."""

    def __init__(self, response=None):
        self.response = json.dumps(REWE_RECEIPT) if response is None else response
        self.image_calls: list[tuple[str, str]] = []
        self.text_calls: list[tuple[str, str]] = []

    def _reply(self):
        if isinstance(self.response, Exception):
            raise self.response
        return self.response

    def analyze_receipt_image(self, image, api_key=None):
        self.image_calls.append((image, api_key))
        return self._reply()

    def analyze_receipt_text(self, text, api_key=None):
        self.text_calls.append((text, api_key))
        return self._reply()

    @property
    def calls(self) -> int:
        return len(self.image_calls) + len(self.text_calls)


@pytest.fixture(autouse=True)
def _reset_tables():
    Base.metadata.create_all(bind=_ENGINE)
    yield
    Base.metadata.drop_all(bind=_ENGINE)


@pytest.fixture()
def session_factory():
    return _Session


@pytest.fixture()
def db():
    session = _Session()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def client(db):
    def _override():
        yield db

    app.dependency_overrides[get_db] = _override
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture()
def telegram():
    return FakeTelegram()


@pytest.fixture()
def extractor():
    return FakeExtractor()


@pytest.fixture()
def bot_ctx(telegram, extractor):
    return BotContext(telegram=telegram, session_factory=_Session, extractor=extractor)


@pytest.fixture()
def make_message():
    """Build a telegram.Message from the JSON Telegram would send."""

    def _make(text=None, chat_id=1001, photo=None, caption=None, first_name="Ada", message_id=1):
        data = {
            "message_id": message_id,
            "chat": {"id": chat_id, "type": "private"},
            "from": {"id": chat_id, "is_bot": False, "first_name": first_name},
            "date": 1710510000,
        }
        if text is not None:
            data["text"] = text
        if photo is not None:
            data["photo"] = photo
        if caption is not None:
            data["caption"] = caption
        return Message.de_json(data, OFFLINE_BOT)

    return _make
