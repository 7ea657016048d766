# utils/errors.py
from typing import Optional, Union
from services.translation_service import Key, Message


class BotError(Exception):
    """Base error for the bot backend"""


class InputValidationError(BotError):
    """User input rejected; carries the corrective reply to send back"""

    def __init__(self, reply: Union[Message, str]):
        if isinstance(reply, str):
            reply = Key(token=reply)
        self.reply = reply
        super().__init__(reply.resolve('en'))


class ReadingValidationError(InputValidationError, ValueError):
    """Blood sugar value or category outside the accepted domain"""


class MissingTableError(BotError):
    """A table or column has not been provisioned yet"""

    def __init__(self, table: str, detail: str = ""):
        self.table = table
        super().__init__(f"The {table} table does not exist. {detail}".strip())


class StoreError(BotError):
    """Any other persistence failure"""

    def __init__(self, message: str, code: Optional[str] = None):
        self.code = code
        super().__init__(f"Database error: {message} (Code: {code or 'unknown'})")
