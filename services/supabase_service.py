# services/supabase_service.py
from supabase import create_client, Client
from postgrest.exceptions import APIError
import os
from typing import Dict, List, Optional, Any
from datetime import datetime

from utils.errors import MissingTableError, StoreError
from utils.timezone_utils import format_timestamp_for_postgres, get_user_now

MISSING_TABLE_CODES = ('42P01', 'PGRST205')
MISSING_COLUMN_CODES = ('42703', 'PGRST204')

BLOOD_SUGAR_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS blood_sugar_logs (
  id SERIAL PRIMARY KEY,
  user_phone TEXT NOT NULL REFERENCES users(phone_number) ON DELETE CASCADE,
  value NUMERIC NOT NULL,
  type TEXT NOT NULL,
  timestamp TIMESTAMP NOT NULL,
  notes TEXT,
  related_meal_id INTEGER REFERENCES food_entries(id) ON DELETE SET NULL,
  created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

CREATE INDEX IF NOT EXISTS blood_sugar_user_idx ON blood_sugar_logs(user_phone);
CREATE INDEX IF NOT EXISTS blood_sugar_timestamp_idx ON blood_sugar_logs(timestamp);
CREATE INDEX IF NOT EXISTS blood_sugar_type_idx ON blood_sugar_logs(type);
"""

TRACK_BLOOD_SUGAR_COLUMN_SQL = """
ALTER TABLE users ADD COLUMN IF NOT EXISTS track_blood_sugar BOOLEAN DEFAULT FALSE;
"""


def is_missing_relation(error: APIError) -> bool:
    """True when PostgREST reports an unknown table"""
    message = (error.message or '').lower()
    return error.code in MISSING_TABLE_CODES or ('relation' in message and 'does not exist' in message)


def _store_error(table: str, error: APIError) -> Exception:
    if is_missing_relation(error):
        return MissingTableError(table, error.message or '')
    return StoreError(error.message or 'unknown error', error.code)


def _now() -> str:
    return format_timestamp_for_postgres(get_user_now())


class SupabaseService:
    def __init__(self):
        url = os.getenv("SUPABASE_URL")
        key = os.getenv("SUPABASE_KEY") or os.getenv("SUPABASE_SERVICE_KEY")

        if not url or not key:
            raise ValueError("SUPABASE_URL and SUPABASE_KEY must be set in environment variables")

        self.client: Client = create_client(url, key)
        print("✅ Supabase client initialized")

    # User operations
    async def get_user(self, phone: str) -> Optional[Dict[str, Any]]:
        """Get user by phone number"""
        try:
            response = self.client.table('users').select('*').eq('phone_number', phone).execute()
            if response.data:
                return response.data[0]
            return None
        except APIError as e:
            print(f"❌ Error getting user {phone}: {e.message}")
            raise _store_error('users', e)

    async def ensure_user(self, phone: str, **defaults) -> Dict[str, Any]:
        """
        Create a bare, not-yet-onboarded user record on first contact,
        otherwise refresh last_active. Returns the stored row.
        """
        existing = await self.get_user(phone)
        try:
            if existing:
                self.client.table('users') \
                    .update({'last_active': _now()}) \
                    .eq('phone_number', phone) \
                    .execute()
                return existing

            print(f"🔍 Creating user record for {phone}")
            new_user = {
                'phone_number': phone,
                'created_at': _now(),
                'last_active': _now(),
                'onboarded': False,
                **defaults
            }
            response = self.client.table('users').insert(new_user).execute()
            return response.data[0] if response.data else new_user
        except APIError as e:
            print(f"❌ Error ensuring user {phone}: {e.message}")
            raise _store_error('users', e)

    async def save_user_profile(self, profile_data: Dict[str, Any]) -> Dict[str, Any]:
        """Insert or update the profile collected by onboarding"""
        phone = profile_data['phone_number']
        try:
            existing = await self.get_user(phone)
            update_data = {**profile_data, 'last_active': _now()}

            if existing:
                response = self.client.table('users') \
                    .update(update_data) \
                    .eq('phone_number', phone) \
                    .execute()
            else:
                update_data['created_at'] = _now()
                response = self.client.table('users').insert(update_data).execute()

            print(f"✅ Profile saved for {phone}")
            return response.data[0] if response.data else update_data
        except APIError as e:
            print(f"❌ Error saving user data: {e.message}")
            raise _store_error('users', e)

    async def update_user_language(self, phone: str, language: str) -> None:
        try:
            self.client.table('users') \
                .update({'language': language}) \
                .eq('phone_number', phone) \
                .execute()
        except APIError as e:
            print(f"❌ Error updating language preference: {e.message}")
            raise _store_error('users', e)

    # Food entries
    async def create_food_entry(self, entry_data: Dict[str, Any]) -> Dict[str, Any]:
        try:
            response = self.client.table('food_entries').insert(entry_data).execute()
            if response.data:
                return response.data[0]
            raise StoreError("No data returned from insert")
        except APIError as e:
            print(f"❌ Database insert error details: {e.message} (code={e.code}, details={e.details}, hint={e.hint})")
            raise _store_error('food_entries', e)

    async def get_food_entries(
        self, phone: str, since: Optional[datetime] = None, limit: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        try:
            query = self.client.table('food_entries') \
                .select('*') \
                .eq('user_phone', phone)
            if since:
                query = query.gte('timestamp', format_timestamp_for_postgres(since))
            query = query.order('timestamp', desc=True)
            if limit:
                query = query.limit(limit)
            return query.execute().data or []
        except APIError as e:
            print(f"❌ Error getting food entries: {e.message}")
            raise _store_error('food_entries', e)

    # Daily summaries
    async def get_daily_summary(self, phone: str, day: str) -> Optional[Dict[str, Any]]:
        try:
            response = self.client.table('daily_summaries') \
                .select('*') \
                .eq('user_phone', phone) \
                .eq('date', day) \
                .execute()
            if response.data:
                return response.data[0]
            return None
        except APIError as e:
            print(f"❌ Error fetching daily summary: {e.message}")
            raise _store_error('daily_summaries', e)

    async def save_daily_summary(self, summary_data: Dict[str, Any], entry_id: Any = None) -> Dict[str, Any]:
        """Update the row with entry_id, or insert a new (owner, date) row"""
        try:
            if entry_id is not None:
                response = self.client.table('daily_summaries') \
                    .update(summary_data) \
                    .eq('id', entry_id) \
                    .execute()
            else:
                response = self.client.table('daily_summaries').insert(summary_data).execute()
            return response.data[0] if response.data else summary_data
        except APIError as e:
            print(f"❌ Error saving daily summary: {e.message} (code={e.code}, details={e.details}, hint={e.hint})")
            raise _store_error('daily_summaries', e)

    async def get_daily_summaries(
        self, phone: str, limit: Optional[int] = None, since: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        """Daily summaries newest first"""
        try:
            query = self.client.table('daily_summaries') \
                .select('*') \
                .eq('user_phone', phone)
            if since:
                query = query.gte('date', since)
            query = query.order('date', desc=True)
            if limit:
                query = query.limit(limit)
            return query.execute().data or []
        except APIError as e:
            print(f"❌ Error getting daily summaries: {e.message}")
            raise _store_error('daily_summaries', e)

    # Blood sugar logs
    async def check_blood_sugar_table(self) -> None:
        """Raise MissingTableError when blood_sugar_logs is not provisioned"""
        try:
            self.client.table('blood_sugar_logs').select('id').limit(1).execute()
        except APIError as e:
            print(f"❌ Error checking blood_sugar_logs table: {e.message}")
            raise _store_error('blood_sugar_logs', e)

    async def create_blood_sugar_log(self, log_data: Dict[str, Any]) -> None:
        try:
            self.client.table('blood_sugar_logs').insert(log_data).execute()
        except APIError as e:
            print(f"❌ Error logging blood sugar: {e.message} (code={e.code})")
            if e.code == '23505':
                raise StoreError('Duplicate blood sugar reading. A reading with the same parameters already exists.', e.code)
            if e.code == '23503':
                raise StoreError('Related meal entry not found. Please check the meal ID.', e.code)
            raise _store_error('blood_sugar_logs', e)

    async def get_latest_blood_sugar_log(self, phone: str, reading_type: str) -> Optional[Dict[str, Any]]:
        try:
            response = self.client.table('blood_sugar_logs') \
                .select('*') \
                .eq('user_phone', phone) \
                .eq('type', reading_type) \
                .order('timestamp', desc=True) \
                .limit(1) \
                .execute()
            return response.data[0] if response.data else None
        except APIError as e:
            raise _store_error('blood_sugar_logs', e)

    async def get_blood_sugar_logs(
        self, phone: str, start: datetime, end: datetime, reading_type: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        """Readings between start and end, newest first"""
        try:
            query = self.client.table('blood_sugar_logs') \
                .select('*') \
                .eq('user_phone', phone) \
                .gte('timestamp', format_timestamp_for_postgres(start)) \
                .lte('timestamp', format_timestamp_for_postgres(end))
            if reading_type:
                query = query.eq('type', reading_type)
            return query.order('timestamp', desc=True).execute().data or []
        except APIError as e:
            print(f"❌ Error fetching blood sugar readings: {e.message}")
            raise _store_error('blood_sugar_logs', e)

    # Provisioning
    async def exec_sql(self, sql: str) -> bool:
        """Run DDL through the exec_sql database function"""
        try:
            self.client.rpc('exec_sql', {'sql': sql}).execute()
            return True
        except APIError as e:
            print(f"❌ Error executing provisioning SQL: {e.message}")
            message = (e.message or '').lower()
            if 'exec_sql' in message and 'does not exist' in message:
                print("❌ The exec_sql function does not exist in your Supabase project.")
                print("   Create blood_sugar_logs manually with the SQL in services/supabase_service.py")
            return False

    async def create_blood_sugar_table(self) -> bool:
        try:
            await self.check_blood_sugar_table()
            print("✅ blood_sugar_logs table already exists")
            return True
        except MissingTableError:
            print("🔍 blood_sugar_logs table does not exist, creating it now...")
        except StoreError as e:
            print(f"❌ Unexpected error checking blood_sugar_logs table: {e}")
            return False

        created = await self.exec_sql(BLOOD_SUGAR_TABLE_SQL)
        if created:
            print("✅ Successfully created blood_sugar_logs table!")
        return created

    async def ensure_track_blood_sugar_column(self) -> bool:
        try:
            self.client.table('users').select('track_blood_sugar').limit(1).execute()
            return True
        except APIError as e:
            if e.code not in MISSING_COLUMN_CODES and 'column' not in (e.message or '').lower():
                print(f"❌ Unexpected error checking users.track_blood_sugar: {e.message}")
                return False

        print("🔍 Adding track_blood_sugar column to users table...")
        added = await self.exec_sql(TRACK_BLOOD_SUGAR_COLUMN_SQL)
        if added:
            print("✅ Successfully added track_blood_sugar column to users table!")
        return added

    async def health_check(self) -> Dict[str, Any]:
        """Check database connection health"""
        try:
            self.client.table('users').select('phone_number').limit(1).execute()
            return {"status": "healthy", "message": "Database connection successful"}
        except Exception as e:
            return {"status": "unhealthy", "message": f"Database connection failed: {str(e)}"}


def init_supabase_service() -> SupabaseService:
    """Build the Supabase service once at startup"""
    return SupabaseService()
