"""
dependencies.py — FastAPI dependency injection.
Every dependency returns the matching adapter from Request.app.state.
"""
from __future__ import annotations

from fastapi import Request

from adapters.autolinker import MarkdownAutolinker
from adapters.entity_dictionary import EntityDictionaryCache
from config import Settings
from ports.affiliate_router import AffiliateRouter
from ports.affiliate_store import AffiliateStore
from ports.entity_catalog import EntityCatalog


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_entity_catalog(request: Request) -> EntityCatalog:
    return request.app.state.entity_catalog


def get_affiliate_store(request: Request) -> AffiliateStore:
    return request.app.state.affiliate_store


def get_dictionary_cache(request: Request) -> EntityDictionaryCache:
    return request.app.state.dictionary_cache


def get_autolinker(request: Request) -> MarkdownAutolinker:
    return request.app.state.autolinker


def get_affiliate_router(request: Request) -> AffiliateRouter:
    return request.app.state.affiliate_router
