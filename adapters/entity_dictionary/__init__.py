from .builder import build_entity_dictionary, lookup_keys
from .cache import (
    DictionarySnapshot,
    EntityDictionaryCache,
    clear_entity_dictionary_cache,
    default_cache,
    get_entity_dictionary,
)

__all__ = [
    "build_entity_dictionary",
    "lookup_keys",
    "DictionarySnapshot",
    "EntityDictionaryCache",
    "clear_entity_dictionary_cache",
    "default_cache",
    "get_entity_dictionary",
]
