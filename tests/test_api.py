"""
Tests for the Flask JSON API
"""
from typing import Any, Generator

import pytest

import app as app_module
from llm_song_cards import db
from llm_song_cards.ai import AIConfig
from llm_song_cards.exceptions import AIConfigurationError
from llm_song_cards.mock import MockLyricsAI
from llm_song_cards.services import OpenAILyricsAI

from conftest import MockAIModel, cards_reply, lines_reply

LYRICS = [f"歌詞の{i + 1}行目に夢がある" for i in range(20)]


@pytest.fixture
def client(temp_db: Any, monkeypatch: Any) -> Generator[Any, None, None]:
    monkeypatch.setattr(app_module, "lyrics_ai", MockLyricsAI(delay=0, seed=0))
    app_module.app.config["TESTING"] = True
    with app_module.app.test_client() as test_client:
        yield test_client


def scripted_ai(lyrics_replies: list = (), card_replies: list = ()) -> OpenAILyricsAI:
    ai = OpenAILyricsAI(AIConfig(api_key="sk-test"), client=object())
    ai.lyrics_model = MockAIModel(list(lyrics_replies))
    ai.card_model = MockAIModel(list(card_replies))
    return ai


def test_import_with_mock_ai(client: Any) -> None:
    response = client.post("/api/songs/import", json={
        "title": "夜に駆ける",
        "artist": "YOASOBI",
        "lyrics": LYRICS[:3],
        "options": {"generateCards": True, "cardsPerLine": 1},
    })
    assert response.status_code == 200
    body = response.get_json()
    assert body["meta"]["linesCount"] == 3
    assert body["meta"]["cardsCount"] == 3
    assert body["meta"]["mockMode"] is True
    assert [line["lineNumber"] for line in body["data"]["lines"]] == [1, 2, 3]
    assert all(line["contentZh"] for line in body["data"]["lines"])
    assert body["data"]["cards"][0]["cards"][0]["word"] == "夢"


def test_import_survives_every_batch_failing(client: Any, monkeypatch: Any) -> None:
    ai = scripted_ai(lyrics_replies=[RuntimeError("timeout")] * 3)
    monkeypatch.setattr(app_module, "lyrics_ai", ai)

    response = client.post("/api/songs/import", json={"title": "曲", "lyrics": LYRICS})

    assert response.status_code == 200
    body = response.get_json()
    assert len(ai.lyrics_model.calls) == 3
    lines = body["data"]["lines"]
    assert len(lines) == 20
    assert [line["contentJa"] for line in lines] == LYRICS
    assert all(line["contentZh"] is None for line in lines)
    assert len(db.get_lines_by_song_id(body["data"]["song"]["id"])) == 20


def test_import_partial_annotation(client: Any, monkeypatch: Any) -> None:
    ai = scripted_ai(lyrics_replies=[lines_reply(LYRICS[:8]), "garbage", lines_reply(LYRICS[16:])])
    monkeypatch.setattr(app_module, "lyrics_ai", ai)

    body = client.post("/api/songs/import", json={"title": "曲", "lyrics": LYRICS}).get_json()

    translated = [line["contentZh"] is not None for line in body["data"]["lines"]]
    assert translated == [True] * 8 + [False] * 8 + [True] * 4


def test_import_skips_lines_whose_cards_fail(client: Any, monkeypatch: Any) -> None:
    good = cards_reply([
        {"word": "夢", "reading": "ゆめ", "meaning": "梦", "partOfSpeech": "noun"},
        {"word": "歌詞", "reading": "かし", "meaning": "歌词", "partOfSpeech": "pronoun"},
        {"word": "行目", "reading": "ぎょうめ", "meaning": "第…行", "partOfSpeech": "noun"},
    ])
    ai = scripted_ai(
        lyrics_replies=[lines_reply(LYRICS[:3])],
        card_replies=[good, RuntimeError("rate limited"), good],
    )
    monkeypatch.setattr(app_module, "lyrics_ai", ai)

    body = client.post("/api/songs/import", json={
        "title": "曲",
        "lyrics": LYRICS[:3],
        "options": {"generateCards": True, "cardsPerLine": 2},
    }).get_json()

    assert body["meta"]["cardsCount"] == 4
    groups = body["data"]["cards"]
    assert len(groups) == 2
    assert [c["word"] for c in groups[0]["cards"]] == ["夢", "歌詞"]
    assert groups[0]["cards"][1]["partOfSpeech"] == "other"


def test_import_validation(client: Any) -> None:
    assert client.post("/api/songs/import", json={"lyrics": ["a"]}).status_code == 400
    assert client.post("/api/songs/import", json={"title": "x", "lyrics": []}).status_code == 400
    assert client.post("/api/songs/import", json={"title": "x", "lyrics": ["", "b"]}).status_code == 400
    assert client.post("/api/songs/import", json={
        "title": "x", "lyrics": ["a"], "options": {"cardsPerLine": 4},
    }).status_code == 400
    assert client.post("/api/songs/import", json={
        "title": "x", "lyrics": ["a"], "timestamps": [{"startTime": 500, "endTime": 100}],
    }).status_code == 400


def test_import_from_lrc(client: Any) -> None:
    body = client.post("/api/songs/import", json={
        "title": "曲",
        "duration": 30,
        "lrc": "[ar:someone]\n[00:01.00]夢を見た\n[00:04.50]空を見た",
        "options": {"parseWithAI": False},
    }).get_json()
    lines = body["data"]["lines"]
    assert [(l["contentJa"], l["startTime"], l["endTime"]) for l in lines] == [
        ("夢を見た", 1000, 4500),
        ("空を見た", 4500, 30000),
    ]


def test_parse_lyrics_batch_and_single(client: Any) -> None:
    body = client.post("/api/songs/parse-lyrics", json={"lyrics": ["夢", "空"]}).get_json()
    assert body["meta"]["total"] == 2

    body = client.post("/api/songs/parse-lyrics", json={"contentJa": "夢"}).get_json()
    assert body["data"]["contentJa"] == "夢"

    too_many = ["夢"] * 101
    assert client.post("/api/songs/parse-lyrics", json={"lyrics": too_many}).status_code == 400


def test_generate_cards_endpoint(client: Any, monkeypatch: Any, song_with_lines: Any) -> None:
    _, lines = song_with_lines
    five = cards_reply([
        {"word": w, "reading": "", "meaning": w, "partOfSpeech": "noun"}
        for w in ["二人", "空", "広がる", "夜", "だけ"]
    ])
    monkeypatch.setattr(app_module, "lyrics_ai", scripted_ai(card_replies=[five]))

    response = client.post("/api/cards/generate", json={"lineId": lines[1].id, "count": 2})

    assert response.status_code == 200
    assert [c["word"] for c in response.get_json()["data"]] == ["二人", "空"]
    assert [c.word for c in db.get_cards_by_song(lines[1].song_id)] == ["二人", "空"]


def test_generate_cards_errors(client: Any, monkeypatch: Any, song_with_lines: Any) -> None:
    _, lines = song_with_lines
    assert client.post("/api/cards/generate", json={"lineId": lines[0].id, "count": 6}).status_code == 400
    assert client.post("/api/cards/generate", json={"lineId": 9999}).status_code == 404

    monkeypatch.setattr(app_module, "lyrics_ai", scripted_ai(card_replies=["no json"]))
    assert client.post("/api/cards/generate", json={"lineId": lines[0].id}).status_code == 500

    monkeypatch.setattr(app_module, "lyrics_ai", scripted_ai(card_replies=[AIConfigurationError("bad key")]))
    assert client.post("/api/cards/generate", json={"lineId": lines[0].id}).status_code == 503

    monkeypatch.setattr(app_module, "lyrics_ai", None)
    assert client.post("/api/cards/generate", json={"lineId": lines[0].id}).status_code == 503


def test_progress_and_stats(client: Any, song_with_lines: Any) -> None:
    _, lines = song_with_lines
    card = db.create_card(lines[0].id, word="沈む", meaning="沉没")

    body = client.get(f"/api/cards/{card.id}/progress").get_json()
    assert body["data"]["status"] == "new"

    client.post(f"/api/cards/{card.id}/progress", json={"status": "mastered"})
    body = client.patch(f"/api/cards/{card.id}/progress", json={"status": "learning"}).get_json()
    assert body["data"]["status"] == "learning"
    assert body["data"]["reviewCount"] == 2

    assert client.patch(f"/api/cards/{card.id}/progress", json={"status": "done"}).status_code == 400
    stats = client.get("/api/cards/stats").get_json()["data"]
    assert stats["learning"] == 1


def test_study_session_flow(client: Any, song_with_lines: Any) -> None:
    song, lines = song_with_lines
    ids = [db.create_card(lines[0].id, word=w, meaning=w).id for w in ["沈む", "溶ける", "ように"]]
    client.post(f"/api/cards/{ids[0]}/progress", json={"status": "mastered"})

    body = client.post("/api/study/session", json={"songId": song.id, "limit": 2}).get_json()
    assert [c["id"] for c in body["data"]["cards"]] == [ids[1], ids[2]]

    client.post("/api/study/mark", json={"cardId": ids[1], "status": "mastered"})
    client.post("/api/study/mark", json={"cardId": ids[2], "status": "learning"})
    assert client.post("/api/study/mark", json={"cardId": ids[0], "status": "new"}).status_code == 400

    summary = client.get("/api/study/summary").get_json()["data"]
    assert summary == {"total": 2, "reviewed": 2, "new": 0, "learning": 1, "mastered": 1}


def login_as(client: Any, username: str) -> None:
    with client.session_transaction() as sess:
        sess["username"] = username


def test_song_endpoints(client: Any) -> None:
    song = db.create_song("夜に駆ける", artist="YOASOBI", creator="default_user")
    lines = db.create_lines(song.id, [{"line_number": 1, "content_ja": "沈むように溶けてゆくように"}])
    assert client.get("/api/songs").get_json()["meta"]["total"] == 1
    assert client.post(f"/api/lines/{lines[0].id}/favorite").get_json()["data"]["isFavorite"] is True

    body = client.get(f"/api/songs/{song.id}").get_json()["data"]
    assert body["lines"][0]["isFavorite"] is True

    assert client.patch(f"/api/songs/{song.id}", json={"artist": "Ayase"}).get_json()["data"]["artist"] == "Ayase"
    assert client.delete(f"/api/songs/{song.id}").status_code == 200
    assert client.get(f"/api/songs/{song.id}").status_code == 404


def test_private_songs_stay_with_their_creator(client: Any) -> None:
    login_as(client, "alice")
    song = db.create_song("秘密の歌", is_public=False, creator="alice")
    line = db.create_lines(song.id, [{"line_number": 1, "content_ja": "夢を見た"}])[0]
    db.create_card(line.id, word="夢", meaning="梦")

    assert client.get(f"/api/songs/{song.id}").status_code == 200
    assert client.post("/api/study/session", json={}).get_json()["meta"]["total"] == 1

    login_as(client, "bob")
    assert client.get("/api/songs").get_json()["data"] == []
    assert client.get(f"/api/songs/{song.id}").status_code == 403
    assert client.get(f"/api/songs/{song.id}/lines").status_code == 403
    assert client.get(f"/api/songs/{song.id}/cards").status_code == 403
    assert client.get("/api/cards").get_json()["meta"]["total"] == 0
    assert client.post("/api/study/session", json={"songId": song.id}).status_code == 403
    assert client.post("/api/study/session", json={}).get_json()["meta"]["total"] == 0
    assert client.patch(f"/api/songs/{song.id}", json={"title": "盗んだ"}).status_code == 403
    assert client.delete(f"/api/songs/{song.id}").status_code == 403
    assert db.get_song(song.id).title == "秘密の歌"


def test_only_the_creator_changes_a_public_song(client: Any) -> None:
    song = db.create_song("公開の歌", creator="alice")

    login_as(client, "bob")
    assert client.get(f"/api/songs/{song.id}").status_code == 200
    assert client.patch(f"/api/songs/{song.id}", json={"artist": "bob"}).status_code == 403
    assert client.delete(f"/api/songs/{song.id}").status_code == 403

    login_as(client, "alice")
    assert client.patch(f"/api/songs/{song.id}", json={"artist": "alice"}).get_json()["data"]["artist"] == "alice"
    assert client.delete(f"/api/songs/{song.id}").status_code == 200
    assert client.delete(f"/api/songs/{song.id}").status_code == 404


def test_conversation_endpoints(client: Any) -> None:
    created = client.post("/api/conversations", json={"title": "质问", "systemPrompt": "You are a tutor."})
    assert created.status_code == 201
    conversation_id = created.get_json()["data"]["id"]

    client.post(f"/api/conversations/{conversation_id}/messages", json={"content": "「夢」の読み方は？"})
    body = client.get(f"/api/conversations/{conversation_id}").get_json()["data"]
    assert [m["role"] for m in body["messages"]] == ["system", "user"]
    assert body["summary"] == "「夢」の読み方は？"
    assert client.get("/api/conversations").get_json()["data"][0]["summary"] == "「夢」の読み方は？"

    assert client.delete(f"/api/conversations/{conversation_id}").status_code == 200
    assert client.get(f"/api/conversations/{conversation_id}").status_code == 404


def test_ai_status(client: Any) -> None:
    body = client.get("/api/ai_status").get_json()["data"]
    assert body["configured"] is True
    assert body["mockMode"] is True
