import asyncio
from datetime import datetime
from types import SimpleNamespace

import pytest

from models.schemas import MealAnalysis
from models.whatsapp_schemas import EventKind, InboundEvent
from services.blood_sugar_service import BloodSugarService
from services.conversation_service import ConversationService
from services.dispatch_service import DispatchService
from services.meal_service import MealService
from services.session_store import InMemorySessionStore
from services.summary_service import SummaryService
from utils.errors import MissingTableError, StoreError
from utils.timezone_utils import format_timestamp_for_postgres, parse_timestamp

PHONE = "15550001111"


class FakeStore:
    """In-memory stand-in for SupabaseService"""

    def __init__(self, users=None, table_missing=False, provision_ok=True):
        self.users = {u['phone_number']: dict(u) for u in (users or [])}
        self.food_entries = []
        self.daily_summaries = []
        self.blood_sugar_logs = []
        self.table_missing = table_missing
        self.provision_ok = provision_ok
        self.fail_profile_save = False
        self.fail_refetch = False
        self.fail_insert = None
        self.language_updates = []

    async def get_user(self, phone):
        user = self.users.get(phone)
        return dict(user) if user else None

    async def ensure_user(self, phone, **defaults):
        if phone in self.users:
            return dict(self.users[phone])
        self.users[phone] = {'phone_number': phone, 'onboarded': False, **defaults}
        return dict(self.users[phone])

    async def save_user_profile(self, profile_data):
        if self.fail_profile_save:
            raise StoreError("connection reset", "08006")
        stored = self.users.setdefault(profile_data['phone_number'], {})
        stored.update(profile_data)
        return dict(stored)

    async def update_user_language(self, phone, language):
        self.language_updates.append((phone, language))
        self.users.setdefault(phone, {'phone_number': phone})['language'] = language

    async def create_food_entry(self, entry_data):
        row = {'id': len(self.food_entries) + 1, **entry_data}
        self.food_entries.append(row)
        return row

    async def get_food_entries(self, phone, since=None, limit=None):
        rows = [r for r in self.food_entries if r['user_phone'] == phone]
        if since:
            rows = [r for r in rows if parse_timestamp(r['timestamp']) >= since]
        rows.sort(key=lambda r: r['timestamp'], reverse=True)
        return rows[:limit] if limit else rows

    async def get_daily_summary(self, phone, day):
        for row in self.daily_summaries:
            if row['user_phone'] == phone and row['date'] == day:
                return dict(row)
        return None

    async def save_daily_summary(self, summary_data, entry_id=None):
        if entry_id is not None:
            for row in self.daily_summaries:
                if row['id'] == entry_id:
                    row.update(summary_data)
                    return dict(row)
        row = {'id': len(self.daily_summaries) + 1, **summary_data}
        self.daily_summaries.append(row)
        return dict(row)

    async def get_daily_summaries(self, phone, limit=None, since=None):
        rows = [dict(r) for r in self.daily_summaries if r['user_phone'] == phone]
        if since:
            rows = [r for r in rows if r['date'] >= since]
        rows.sort(key=lambda r: r['date'], reverse=True)
        return rows[:limit] if limit else rows

    async def check_blood_sugar_table(self):
        if self.table_missing:
            raise MissingTableError('blood_sugar_logs', 'relation "blood_sugar_logs" does not exist')

    async def create_blood_sugar_log(self, log_data):
        if self.fail_insert:
            raise self.fail_insert
        self.blood_sugar_logs.append({'id': len(self.blood_sugar_logs) + 1, **log_data})

    async def get_latest_blood_sugar_log(self, phone, reading_type):
        if self.fail_refetch:
            raise StoreError("timeout")
        rows = [r for r in self.blood_sugar_logs if r['user_phone'] == phone and r['type'] == reading_type]
        return dict(rows[-1]) if rows else None

    async def get_blood_sugar_logs(self, phone, start, end, reading_type=None):
        rows = [
            dict(r) for r in self.blood_sugar_logs
            if r['user_phone'] == phone and start <= parse_timestamp(r['timestamp']) <= end
        ]
        if reading_type:
            rows = [r for r in rows if r['type'] == reading_type]
        return sorted(rows, key=lambda r: r['timestamp'], reverse=True)

    async def create_blood_sugar_table(self):
        if self.provision_ok:
            self.table_missing = False
        return self.provision_ok

    async def ensure_track_blood_sugar_column(self):
        return self.provision_ok

    async def health_check(self):
        return {"status": "healthy", "message": "Database connection successful"}

    def add_reading(self, value, reading_type, when: datetime, phone=PHONE):
        self.blood_sugar_logs.append({
            'id': len(self.blood_sugar_logs) + 1,
            'user_phone': phone,
            'value': value,
            'type': reading_type,
            'timestamp': format_timestamp_for_postgres(when),
            'notes': ''
        })


class FakeMessenger:
    """Records everything the bot would send"""

    def __init__(self):
        self.sent = []

    async def send_text(self, phone_number_id, to, text, context_message_id=None):
        self.sent.append(('text', to, text))

    async def send_buttons(self, phone_number_id, to, menu, lang='en', context_message_id=None):
        self.sent.append(('buttons', to, menu, lang))

    async def send_list(self, phone_number_id, to, menu, lang='en', context_message_id=None):
        self.sent.append(('list', to, menu, lang))

    async def mark_as_read(self, phone_number_id, message_id):
        self.sent.append(('read', message_id))

    async def download_media(self, media_id):
        return "aW1hZ2UtYnl0ZXM="

    @property
    def texts(self):
        return [item[2] for item in self.sent if item[0] == 'text']

    @property
    def menus(self):
        return [item[2] for item in self.sent if item[0] in ('buttons', 'list')]


class FakeAnalyzer:
    def __init__(self, analysis=None):
        self.analysis = analysis or MealAnalysis(
            calories=450,
            is_recommended=True,
            reason="Balanced plate with fiber",
            analysis="Rice, dal and salad",
            personalized_tips="Keep the rice portion small"
        )
        self.calls = []

    async def analyze_food_image(self, image_base64, description, profile=None, lang='en'):
        self.calls.append((image_base64, description, profile, lang))
        return self.analysis


def run(coro):
    return asyncio.run(coro)


def text_event(text, sender=PHONE, message_id="wamid.text"):
    return InboundEvent(kind=EventKind.TEXT, sender=sender, text=text,
                        message_id=message_id, phone_number_id="pnid")


def button_event(selection_id, title="", sender=PHONE, kind=EventKind.BUTTON_REPLY):
    return InboundEvent(kind=kind, sender=sender, selection_id=selection_id, text=title,
                        message_id="wamid.button", phone_number_id="pnid")


def image_event(media_id="media-1", sender=PHONE):
    return InboundEvent(kind=EventKind.IMAGE, sender=sender, media_id=media_id,
                        message_id="wamid.image", phone_number_id="pnid")


def build_bot(store=None, analyzer=None, environment='production'):
    store = store or FakeStore()
    messenger = FakeMessenger()
    analyzer = analyzer or FakeAnalyzer()
    sessions = InMemorySessionStore(ttl_seconds=1800)
    blood_sugar = BloodSugarService(store)
    summaries = SummaryService(store)
    meals = MealService(store, analyzer)
    conversation = ConversationService(store, sessions, blood_sugar, meals, environment=environment)
    dispatcher = DispatchService(store, messenger, sessions, conversation, blood_sugar, summaries)
    return SimpleNamespace(
        store=store, messenger=messenger, analyzer=analyzer, sessions=sessions,
        blood_sugar=blood_sugar, summaries=summaries, meals=meals,
        conversation=conversation, dispatcher=dispatcher
    )


@pytest.fixture
def bot():
    return build_bot()


@pytest.fixture
def onboarded_bot():
    store = FakeStore(users=[{
        'phone_number': PHONE,
        'name': 'Asha',
        'diabetes_type': 'Type 2',
        'daily_limit': 1800,
        'preferences': {'dietary': 'low-carb'},
        'track_blood_sugar': True,
        'language': 'en',
        'onboarded': True,
    }])
    return build_bot(store=store)
