from functools import lru_cache

from ..config import get_settings
from ..services.dispatcher import Dispatcher
from ..services.store import InMemoryStore
from ..services.submission import SubmissionService


@lru_cache(maxsize=1)
def get_dispatcher() -> Dispatcher:
    settings = get_settings()
    return Dispatcher(InMemoryStore(), SubmissionService(settings), settings.establishment_code)
