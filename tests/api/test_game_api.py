"""Tests for the /game endpoints against the bundled sample corpus."""

from fastapi.testclient import TestClient


class TestState:
    def test_initial_state(self, client: TestClient):
        response = client.get("/game/state")
        assert response.status_code == 200
        data = response.json()
        assert data["loop"] == 1
        assert data["flags"] == []
        assert data["session"] is None


class TestCollections:
    def test_available_entries(self, client: TestClient):
        response = client.get("/game/collections/conductor/entries")
        assert response.status_code == 200
        assert [e["id"] for e in response.json()["entries"]] == ["greet"]

    def test_unknown_collection(self, client: TestClient):
        assert client.get("/game/collections/nowhere/entries").status_code == 404
        assert client.get("/game/collections/nowhere/choices").status_code == 404

    def test_best_entry_is_read_only(self, client: TestClient):
        data = client.get("/game/collections/conductor/best").json()
        assert data["entry"]["text"] == "The train leaves at midnight, as it always does."
        assert client.get("/game/flags/met_conductor").json()["held"] is False

    def test_show_best_grants_flags(self, client: TestClient):
        data = client.post("/game/collections/conductor/best/show").json()
        assert data["new_flags"] == ["met_conductor"]
        assert client.get("/game/flags/met_conductor").json()["held"] is True


class TestChoices:
    def test_list_and_select(self, client: TestClient):
        data = client.get("/game/collections/conductor/choices").json()
        assert [c["prompt"] for c in data["visible"]] == ["Who are you?", "What train is this?"]
        assert data["waiting"] == 0

        response = client.post(
            "/game/collections/conductor/choices/select", json={"queue_index": 1}
        )
        assert response.status_code == 200
        selected = response.json()
        assert selected["new_flags"] == ["asked_train"]
        assert selected["response_text"] == "The last one. Every night, the last one."

        data = client.get("/game/collections/conductor/choices").json()
        assert [c["prompt"] for c in data["visible"]] == ["Who are you?", "Where is my ticket?"]

    def test_escaped_quotes_survive(self, client: TestClient):
        client.post("/game/flags", json={"flag": "saw_mirror"})
        # use up both greeting choices so the ticket choices move into view
        for _ in range(2):
            client.post("/game/collections/conductor/choices/select", json={"queue_index": 0})
        data = client.get("/game/collections/conductor/choices").json()
        assert [c["prompt"] for c in data["visible"]] == [
            "Where is my ticket?",
            "What is behind the mirror?",
        ]
        mirror = [c for c in data["visible"] if c["prompt"] == "What is behind the mirror?"]
        assert mirror[0]["response"] == '"Nothing that belongs to you."'

    def test_index_out_of_range(self, client: TestClient):
        response = client.post(
            "/game/collections/conductor/choices/select", json={"queue_index": 9}
        )
        assert response.status_code == 404

    def test_negative_index_rejected(self, client: TestClient):
        response = client.post(
            "/game/collections/conductor/choices/select", json={"queue_index": -1}
        )
        assert response.status_code == 422


class TestFlags:
    def test_add_check_remove(self, client: TestClient):
        assert client.post("/game/flags", json={"flag": "door_opened"}).json()["changed"] is True
        assert client.post("/game/flags", json={"flag": "door_opened"}).json()["changed"] is False
        assert client.get("/game/flags/door_opened").json()["held"] is True
        assert client.delete("/game/flags/door_opened").json()["changed"] is True
        assert client.get("/game/flags/door_opened").json()["held"] is False

    def test_empty_flag_rejected(self, client: TestClient):
        assert client.post("/game/flags", json={"flag": ""}).status_code == 422


class TestLoop:
    def test_advance_unconditional_first_loop(self, client: TestClient):
        data = client.post("/game/loop/advance").json()
        assert data["advanced"] is True
        assert (data["from_loop"], data["to_loop"]) == (1, 2)
        assert data["unconditional"] is True
        assert data["loop_dialogue"] == "loop_intro"

    def test_relevant_flags(self, client: TestClient):
        data = client.get("/game/loops/2/relevant-flags").json()
        assert data == {"loop": 2, "flags": ["ticket_stamped"]}
        assert client.get("/game/loops/7/relevant-flags").json()["flags"] == []

    def test_reset(self, client: TestClient):
        client.post("/game/flags", json={"flag": "x"})
        client.post("/game/loop/advance")
        data = client.post("/game/reset").json()
        assert data["loop"] == 1
        assert data["flags"] == []


class TestItems:
    def test_item_variant(self, client: TestClient):
        assert client.get("/game/items/mirror").json()["item_id"] == "mirror_broken"
        assert client.get("/game/items/ghost").json()["item_id"] is None

    def test_item_groups(self, client: TestClient):
        data = client.get("/game/items").json()
        assert [g["base_id"] for g in data["groups"]] == ["mirror"]
        mirror = data["groups"][0]
        assert mirror["current"] == "mirror_broken"
        assert [s["item_id"] for s in mirror["stages"]] == [
            "mirror_dust",
            "mirror_broken",
            "mirror_fixed",
        ]
        assert mirror["stages"][-1]["required_flags"] == ["saw_mirror"]
        assert [s["priority"] for s in mirror["stages"]] == [1, 2, 3]


class TestSession:
    def test_conversation(self, client: TestClient):
        data = client.post("/game/session/start", json={"target": "conductor"}).json()
        assert data["phase"] == "narration"
        assert data["speaker"] == "The Conductor"
        assert data["new_flags"] == ["met_conductor"]

        data = client.post("/game/session/next").json()
        assert data["phase"] == "choices"
        assert data["speaker"] == "???"
        assert len(data["slots"]) == 2

        data = client.post("/game/session/select", json={"slot_index": 0}).json()
        assert data["phase"] == "answer"
        assert data["text"] == "I punch tickets. That is all I do."
        assert data["new_flags"] == ["asked_identity"]

        state = client.post("/game/session/end").json()
        assert state["session"] is None

    def test_select_during_narration_conflicts(self, client: TestClient):
        client.post("/game/session/start", json={"target": "conductor"})
        response = client.post("/game/session/select", json={"slot_index": 0})
        assert response.status_code == 409

    def test_unknown_target(self, client: TestClient):
        response = client.post("/game/session/start", json={"target": "ghost"})
        assert response.status_code == 404

    def test_no_open_conversation(self, client: TestClient):
        assert client.post("/game/session/next").status_code == 404
        assert client.post("/game/session/select", json={"slot_index": 0}).status_code == 404


class TestDiagnostics:
    def test_diagnostics_and_classification(self, client: TestClient):
        data = client.get("/game/diagnostics").json()
        assert data["count"] == 0
        assert data["classification"]["notebook_collection"] == "notebook"
        assert "newdraw_conductor_face" in data["classification"]["ephemeral_flags"]

    def test_missing_collection_shows_up(self, client: TestClient):
        client.post("/game/session/start", json={"target": "ghost"})
        data = client.get("/game/diagnostics").json()
        assert [d["kind"] for d in data["diagnostics"]] == ["missing_collection"]
