from pinquiz.realtime.notifier import ChangeNotifier, notifier
from pinquiz.store import GameStore

_store = GameStore()

def get_store() -> GameStore:
    return _store

def get_notifier() -> ChangeNotifier:
    return notifier
