from __future__ import annotations

import json
from urllib.parse import parse_qs, urlsplit

import pytest
from fastapi.testclient import TestClient

from api.main import create_app
from config import Settings

SEED = {
    "entities": [
        {"entity_id": "ent-psilocybin", "name": "Psilocybin", "slug": "psilocybin",
         "synonyms": ["Psilos"], "evidence_score": 80, "risk_level": "moderate",
         "monetization_enabled": True},
        {"entity_id": "ent-mdma", "name": "MDMA", "slug": "mdma", "synonyms": ["XTC"],
         "evidence_score": 70, "risk_level": "moderate", "monetization_enabled": True},
    ],
    "providers": [
        {"provider_id": "p-de", "name": "Kraeuterhaus", "verified": True, "quality_score": 80,
         "region": "DE", "lab_tested": True},
        {"provider_id": "p-gl", "name": "Worldshop", "quality_score": 90, "region": "global"},
    ],
    "links": [
        {"entity_id": "ent-mdma", "provider_id": "p-de",
         "affiliate_url": "https://kraeuterhaus.example/testkit", "custom_label": "Testkit"},
        {"entity_id": "ent-mdma", "provider_id": "p-gl",
         "affiliate_url": "https://worldshop.example/testkit?tag=1"},
    ],
}


@pytest.fixture
def seed_file(tmp_path):
    path = tmp_path / "seed.json"
    path.write_text(json.dumps(SEED), encoding="utf-8")
    return path


def _client(seed_path, **overrides) -> TestClient:
    settings = Settings(
        _env_file=None,
        seed_path=str(seed_path),
        monetization_enabled=overrides.pop("monetization_enabled", True),
        autolink_enabled=overrides.pop("autolink_enabled", True),
        **overrides,
    )
    return TestClient(create_app(settings))


def test_health_reports_seed_backend(seed_file):
    with _client(seed_file) as client:
        body = client.get("/health").json()
    assert body["status"] == "ok"
    assert body["backend"] == "seed"


def test_health_degraded_when_seed_unreadable(tmp_path):
    with _client(tmp_path / "missing.json") as client:
        body = client.get("/health").json()
    assert body["status"] == "degraded"
    assert body["catalog"].startswith("error:")


def test_autolink_links_first_mentions(seed_file):
    with _client(seed_file) as client:
        r = client.post("/autolink", json={"source": "# MDMA\nPsilocybin und MDMA und MDMA."})
    assert r.status_code == 200
    body = r.json()
    assert body["autolink_active"] is True
    assert body["content"] == (
        "# MDMA\n[Psilocybin](/entities/psilocybin) und [MDMA](/entities/mdma) und MDMA."
    )
    assert body["linked_entity_ids"] == ["ent-psilocybin", "ent-mdma"]


def test_autolink_request_overrides_threshold(seed_file):
    with _client(seed_file) as client:
        body = client.post(
            "/autolink", json={"source": "Psilocybin und MDMA.", "min_evidence_score": 75}
        ).json()
    assert body["linked_entity_ids"] == ["ent-psilocybin"]


def test_autolink_disabled_echoes_source(seed_file):
    with _client(seed_file, autolink_enabled=False) as client:
        body = client.post("/autolink", json={"source": "MDMA"}).json()
    assert body == {"content": "MDMA", "linked_entity_ids": [], "autolink_active": False}


def test_autolink_with_broken_catalog_returns_source(tmp_path):
    with _client(tmp_path / "missing.json") as client:
        r = client.post("/autolink", json={"source": "MDMA"})
    assert r.status_code == 200
    assert r.json()["content"] == "MDMA"


def test_affiliate_links_ranked_for_region(seed_file):
    with _client(seed_file) as client:
        body = client.get(
            "/entities/ent-mdma/affiliate-links", params={"region": "DE", "session_id": "s1"}
        ).json()
    assert body["region"] == "DE"
    assert [l["provider_id"] for l in body["links"]] == ["p-de", "p-gl"]

    top = body["links"][0]
    assert top["score"] == 80 + 20 + 15
    assert top["label"] == "Testkit"
    assert top["badges"] == ["Verified", "Lab Tested"]
    query = parse_qs(urlsplit(top["url"]).query)
    assert query == {"ref": ["synapedia"], "entity": ["ent-mdma"], "sid": ["s1"]}

    assert body["links"][1]["label"] == "Worldshop"
    assert parse_qs(urlsplit(body["links"][1]["url"]).query)["tag"] == ["1"]


def test_affiliate_region_from_cdn_header_and_limit(seed_file):
    with _client(seed_file) as client:
        body = client.get(
            "/entities/ent-mdma/affiliate-links",
            params={"limit": 1},
            headers={"cf-ipcountry": "US"},
        ).json()
    assert body["region"] == "US"
    # DE provider: 80 + 20 - 10 = 90, global provider: 90; tie broken by name
    assert [l["provider_id"] for l in body["links"]] == ["p-de"]


def test_affiliate_require_verified_and_unknown_entity(seed_file):
    with _client(seed_file) as client:
        verified = client.get(
            "/entities/ent-mdma/affiliate-links", params={"require_verified": "true"}
        ).json()
        unknown = client.get("/entities/nope/affiliate-links").json()
    assert [l["provider_id"] for l in verified["links"]] == ["p-de"]
    assert unknown["links"] == []


def test_affiliate_links_hidden_when_monetization_off(seed_file):
    with _client(seed_file, monetization_enabled=False) as client:
        body = client.get("/entities/ent-mdma/affiliate-links").json()
    assert body["links"] == []
    assert body["region"] == "EU"


def test_dictionary_stats_refresh_and_lookup(seed_file):
    with _client(seed_file) as client:
        before = client.get("/dictionary").json()
        assert before["cached"] is False

        after = client.post("/dictionary/refresh").json()
        assert after["cached"] is True
        assert after["fresh"] is True
        assert after["entity_count"] == 2
        assert after["size"] == 4

        hit = client.get("/dictionary/lookup", params={"term": " xtc "})
        assert hit.status_code == 200
        assert hit.json()["entity"]["entity_id"] == "ent-mdma"

        miss = client.get("/dictionary/lookup", params={"term": "kratom"})
        assert miss.status_code == 404


def test_refresh_with_broken_catalog_is_503_and_keeps_snapshot(seed_file):
    with _client(seed_file) as client:
        client.post("/dictionary/refresh")
        seed_file.write_text("{broken", encoding="utf-8")

        r = client.post("/dictionary/refresh")
        assert r.status_code == 503

        stats = client.get("/dictionary").json()
        assert stats["cached"] is True
        assert stats["entity_count"] == 2


def test_malformed_provider_record_does_not_break_ranking(tmp_path):
    seed = json.loads(json.dumps(SEED))
    seed["providers"].append({"provider_id": "p-null", "name": "Nullshop", "quality_score": None})
    seed["links"].append({"entity_id": "ent-mdma", "provider_id": "p-null",
                          "affiliate_url": "https://nullshop.example"})
    path = tmp_path / "seed.json"
    path.write_text(json.dumps(seed), encoding="utf-8")

    with _client(path) as client:
        r = client.get("/entities/ent-mdma/affiliate-links", params={"region": "DE"})
    assert r.status_code == 200
    assert [l["provider_id"] for l in r.json()["links"]] == ["p-de", "p-gl"]
