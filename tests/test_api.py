import pytest
from sqlalchemy.exc import IntegrityError

from conftest import auth, call, create_room, join, start
from tambola.models import Claim, PlayerTicket, PrizeAward, Room
from tambola.repositories.claim_repository import ClaimRepository
from tambola.repositories.room_repository import RoomRepository
from tambola.repositories.wallet_repository import WalletRepository
from tambola.services.game_service import GameService


def row_cells(ticket, row):
    return [(c, n) for c, n in enumerate(ticket["grid"][row]) if n is not None]


def mark(client, ticket, row, col, player_id=None):
    return client.post(
        f"/tickets/{ticket['id']}/mark",
        json={"row": row, "col": col},
        headers=auth(player_id or ticket["player_id"]),
    )


def daub_row(client, ticket, row):
    for c, _ in row_cells(ticket, row):
        resp = mark(client, ticket, row, c)
        assert resp.status_code == 200, resp.get_json()


def claim(client, ticket, prize, player_id=None):
    return client.post(
        f"/tickets/{ticket['id']}/claims",
        json={"prize": prize},
        headers=auth(player_id or ticket["player_id"]),
    )


def call_row(client, room_id, ticket, row, already=()):
    for _, n in row_cells(ticket, row):
        if n not in already:
            assert call(client, room_id, n).status_code == 201


def wallet(client, player_id):
    return client.get(f"/wallet/{player_id}", headers=auth(player_id)).get_json()["data"]


class RecordingRooms(RoomRepository):
    def __init__(self, log):
        self.log = log

    def get_by_id(self, session, room_id, lock=False):
        self.log.append(("room", lock))
        return super().get_by_id(session, room_id, lock=lock)


class RecordingWallet(WalletRepository):
    def __init__(self, log):
        self.log = log

    def lock_player(self, session, player_id):
        self.log.append(("lock_player", player_id))
        super().lock_player(session, player_id)

    def available(self, session, player_id):
        self.log.append(("available", player_id))
        return super().available(session, player_id)


class TestHealth:
    def test_health(self, client):
        resp = client.get("/health")
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["success"] is True
        assert body["data"]["status"] == "ok"

    def test_unknown_route(self, client):
        resp = client.get("/nope")
        assert resp.status_code == 404
        assert resp.get_json()["error"]["code"] == "not_found"


class TestGenerateTickets:
    def test_generate_preview(self, client):
        resp = client.post("/tickets/generate", json={"count": 3})
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["meta"]["count"] == 3
        for ticket in body["data"]:
            assert len(ticket["grid"]) == 3
            assert all(len([n for n in row if n is not None]) == 5 for row in ticket["grid"])

    def test_generate_count_bounds(self, client):
        resp = client.post("/tickets/generate", json={"count": 0})
        assert resp.status_code == 400
        assert resp.get_json()["error"]["code"] == "validation_error"


class TestRooms:
    def test_create_and_lookup(self, client):
        room = create_room(client, prizes={"topLine": 100, "fullHouse": 500}, room_type="Quick")
        assert room["status"] == "waiting"
        assert room["host_id"] == "host-1"
        assert len(room["code"]) == 6
        assert room["prizes"] == {
            "earlyFive": 0,
            "topLine": 100,
            "middleLine": 0,
            "bottomLine": 0,
            "fullHouse": 500,
        }
        assert room["share_link"] == f"https://tambola.test/room/{room['id']}"

        by_id = client.get(f"/rooms/{room['id']}").get_json()["data"]
        by_code = client.get(f"/rooms/code/{room['code'].lower()}").get_json()["data"]
        assert by_id["id"] == by_code["id"] == room["id"]

    def test_create_validation(self, client):
        resp = client.post("/rooms", json={"name": "", "room_type": "Mega"}, headers=auth("host-1"))
        assert resp.status_code == 400
        details = resp.get_json()["error"]["details"]
        assert "name" in details and "room_type" in details

    def test_lobby_lists_open_rooms(self, client):
        open_room = create_room(client, name="Diwali Night")
        closed = create_room(client, name="Old Game")
        client.post(f"/rooms/{closed['id']}/end", headers=auth("host-1"))
        join(client, open_room["id"], "p1")

        body = client.get("/rooms").get_json()
        ids = [r["id"] for r in body["data"]]
        assert ids == [open_room["id"]]
        assert body["data"][0]["player_count"] == 1

        found = client.get("/rooms?search=diwali").get_json()["data"]
        assert [r["id"] for r in found] == [open_room["id"]]

    def test_missing_room(self, client):
        resp = client.get("/rooms/does-not-exist")
        assert resp.status_code == 404
        assert resp.get_json()["error"]["code"] == "not_found"

    def test_only_host_can_start(self, client):
        room = create_room(client)
        resp = client.post(f"/rooms/{room['id']}/start", headers=auth("someone-else"))
        assert resp.status_code == 403
        assert start(client, room["id"])["status"] == "in_progress"
        again = client.post(f"/rooms/{room['id']}/start", headers=auth("host-1"))
        assert again.status_code == 409

    def test_only_host_can_end(self, client):
        room = create_room(client)
        assert client.post(f"/rooms/{room['id']}/end", headers=auth("p1")).status_code == 403
        assert client.get(f"/rooms/{room['id']}").get_json()["data"]["status"] == "waiting"

    def test_event_stream_headers(self, client):
        room = create_room(client)
        resp = client.get(f"/rooms/{room['id']}/events", buffered=False)
        assert resp.status_code == 200
        assert resp.mimetype == "text/event-stream"
        resp.close()


class TestCallerIdentity:
    def test_writes_need_a_signed_in_caller(self, client, auth_http):
        resp = client.post("/rooms", json={"name": "Anon"})
        assert resp.status_code == 401
        assert resp.get_json()["error"]["code"] == "auth_error"
        assert auth_http.calls == []

        room = create_room(client)
        assert client.post(f"/rooms/{room['id']}/join").status_code == 401
        expired = client.post(f"/rooms/{room['id']}/join", headers={"Authorization": "Bearer stale"})
        assert expired.status_code == 401

    def test_identity_fields_in_the_body_are_rejected(self, client):
        resp = client.post("/rooms", json={"name": "Mine", "host_id": "host-2"}, headers=auth("host-1"))
        assert resp.status_code == 400
        assert "host_id" in resp.get_json()["error"]["details"]

    def test_token_is_looked_up_once_per_request(self, client, auth_http):
        create_room(client)
        assert [c[1] for c in auth_http.calls] == ["https://auth.test/user"]

    def test_wallet_is_private(self, client):
        assert client.get("/wallet/p1").status_code == 401
        resp = client.get("/wallet/p1", headers=auth("p2"))
        assert resp.status_code == 403
        assert resp.get_json()["error"]["code"] == "forbidden"
        assert client.get("/wallet/p1", headers=auth("p1")).status_code == 200


class TestJoin:
    def test_join_returns_valid_ticket(self, client):
        room = create_room(client)
        ticket = join(client, room["id"], "p1")
        assert ticket["player_id"] == "p1"
        assert ticket["active"] is True
        assert sum(n is not None for row in ticket["grid"] for n in row) == 15

        fetched = client.get(f"/tickets/{ticket['id']}").get_json()["data"]
        assert fetched["grid"] == ticket["grid"]

    def test_single_ticket_rooms(self, client):
        room = create_room(client)
        join(client, room["id"], "p1")
        resp = client.post(f"/rooms/{room['id']}/join", headers=auth("p1"))
        assert resp.status_code == 409

    def test_multiple_tickets_allowed(self, client):
        room = create_room(client, multiple_tickets_allowed=True)
        a = join(client, room["id"], "p1")
        b = join(client, room["id"], "p1")
        assert a["id"] != b["id"]

    def test_room_full(self, client):
        room = create_room(client, max_players=2)
        join(client, room["id"], "p1")
        join(client, room["id"], "p2")
        resp = client.post(f"/rooms/{room['id']}/join", headers=auth("p3"))
        assert resp.status_code == 409

    def test_paid_room_needs_balance(self, client):
        room = create_room(client, ticket_price=50)
        resp = client.post(f"/rooms/{room['id']}/join", headers=auth("p1"))
        assert resp.status_code == 402
        body = resp.get_json()
        assert body["error"]["code"] == "payment_error"
        assert body["error"]["details"] == {"balance": 0, "ticket_price": 50}

    def test_join_publishes_after_commit(self, app, client):
        room = create_room(client)
        sub = app.extensions["change_feed"].subscribe(table="tickets", room_id=room["id"])
        ticket = join(client, room["id"], "p1")
        events = sub.pending()
        assert [e.name for e in events] == ["tickets.insert"]
        assert events[0].row["id"] == ticket["id"]
        sub.close()

    def test_join_locks_room_then_ledger(self, client, db_session):
        room = create_room(client, ticket_price=30)
        WalletRepository().create_transaction(
            db_session, player_id="p1", amount=100, type="deposit", status="completed", reference="seed"
        )
        db_session.commit()

        log = []
        service = GameService(room_repository=RecordingRooms(log), wallet=RecordingWallet(log))
        row = service.join_room(db_session, room["id"], "p1")
        db_session.commit()

        assert row.player_id == "p1"
        assert log[0] == ("room", True)
        assert log.index(("lock_player", "p1")) < log.index(("available", "p1"))
        assert wallet(client, "p1")["balance"] == 70


class TestCalling:
    def test_call_specific_and_random(self, client):
        room = create_room(client)
        start(client, room["id"])

        first = call(client, room["id"], 42)
        assert first.status_code == 201
        assert first.get_json()["data"]["position"] == 1

        second = call(client, room["id"]).get_json()["data"]
        assert second["position"] == 2
        assert second["number"] != 42

        numbers = client.get(f"/rooms/{room['id']}/numbers").get_json()["data"]
        assert numbers["numbers"] == [42, second["number"]]
        assert numbers["current"] == second["number"]
        assert numbers["recent"] == [second["number"], 42]
        assert numbers["remaining"] == 88

    def test_duplicate_call(self, client):
        room = create_room(client)
        start(client, room["id"])
        call(client, room["id"], 7)
        resp = call(client, room["id"], 7)
        assert resp.status_code == 409
        assert resp.get_json()["error"]["code"] == "number_already_called"

    def test_call_requires_running_game_and_host(self, client):
        room = create_room(client)
        assert call(client, room["id"], 7).status_code == 409
        start(client, room["id"])
        assert call(client, room["id"], 7, host_id="p1").status_code == 403
        assert call(client, room["id"], 91).status_code == 400

    def test_ninety_calls_complete_the_game(self, client):
        room = create_room(client)
        start(client, room["id"])
        for _ in range(90):
            assert call(client, room["id"]).status_code == 201

        data = client.get(f"/rooms/{room['id']}").get_json()["data"]
        assert data["status"] == "completed"
        numbers = client.get(f"/rooms/{room['id']}/numbers").get_json()["data"]
        assert sorted(numbers["numbers"]) == list(range(1, 91))
        assert call(client, room["id"]).status_code == 409


class TestMarking:
    def test_mark_and_reject_bad_cells(self, client):
        room = create_room(client)
        ticket = join(client, room["id"], "p1")
        col, number = row_cells(ticket, 0)[0]

        resp = mark(client, ticket, 0, col)
        assert resp.get_json()["data"]["marked"][0][col] is True
        again = mark(client, ticket, 0, col)
        assert again.get_json()["data"]["marked"] == resp.get_json()["data"]["marked"]

        empty_col = ticket["grid"][0].index(None)
        resp = mark(client, ticket, 0, empty_col)
        assert resp.status_code == 400
        assert resp.get_json()["error"]["code"] == "invalid_cell"

        resp = mark(client, ticket, 3, 0)
        assert resp.status_code == 400
        assert resp.get_json()["error"]["code"] == "invalid_cell"

        stored = client.get(f"/tickets/{ticket['id']}").get_json()["data"]
        assert sum(m for row in stored["marked"] for m in row) == 1

    def test_only_the_owner_marks(self, client):
        room = create_room(client)
        ticket = join(client, room["id"], "p1")
        col, _ = row_cells(ticket, 0)[0]

        resp = mark(client, ticket, 0, col, player_id="p2")
        assert resp.status_code == 403
        assert client.post(f"/tickets/{ticket['id']}/mark", json={"row": 0, "col": col}).status_code == 401

        stored = client.get(f"/tickets/{ticket['id']}").get_json()["data"]
        assert not any(m for row in stored["marked"] for m in row)

    def test_retired_ticket_cannot_be_marked(self, client):
        room = create_room(client)
        ticket = join(client, room["id"], "p1")
        client.post(f"/rooms/{room['id']}/end", headers=auth("host-1"))
        col, _ = row_cells(ticket, 0)[0]
        resp = mark(client, ticket, 0, col)
        assert resp.status_code == 409
        assert client.get(f"/tickets/{ticket['id']}").get_json()["data"]["active"] is False

    def test_interleaved_daubs_are_both_kept(self, app, client):
        room = create_room(client)
        ticket = join(client, room["id"], "p1")
        (first_col, _), (second_col, _) = row_cells(ticket, 0)[:2]

        service = app.extensions["game_service"]
        factory = app.extensions["session_factory"]
        first, second = factory(), factory()
        try:
            # Both requests have the ticket loaded before either daub is written.
            assert first.get(PlayerTicket, ticket["id"]).marked[0][first_col] is False
            assert second.get(PlayerTicket, ticket["id"]).marked[0][second_col] is False

            service.mark_cell(first, ticket["id"], 0, first_col, player_id="p1")
            first.commit()
            service.mark_cell(second, ticket["id"], 0, second_col, player_id="p1")
            second.commit()
        finally:
            first.close()
            second.close()

        stored = client.get(f"/tickets/{ticket['id']}").get_json()["data"]["marked"][0]
        assert stored[first_col] is True
        assert stored[second_col] is True

    def test_marks_stay_set_across_requests(self, client):
        room = create_room(client)
        ticket = join(client, room["id"], "p1")
        seen = set()
        for r in range(3):
            for c, _ in row_cells(ticket, r):
                mark(client, ticket, r, c)
                stored = client.get(f"/tickets/{ticket['id']}").get_json()["data"]["marked"]
                now = {(i, j) for i in range(3) for j in range(9) if stored[i][j]}
                assert seen | {(r, c)} == now
                seen = now
        assert len(seen) == 15


class TestClaims:
    def test_top_line_then_already_won(self, client):
        room = create_room(client, prizes={"topLine": 100, "fullHouse": 500})
        ticket = join(client, room["id"], "p1")
        start(client, room["id"])
        call_row(client, room["id"], ticket, 0)
        daub_row(client, ticket, 0)

        claimable = client.get(f"/tickets/{ticket['id']}/claims").get_json()["data"]["claimable"]
        assert claimable["topLine"] is True
        assert claimable["earlyFive"] is True
        assert claimable["fullHouse"] is False

        resp = claim(client, ticket, "topLine")
        assert resp.status_code == 201
        assert resp.get_json()["data"]["status"] == "verified"

        again = claim(client, ticket, "top_line").get_json()["data"]
        assert again["status"] == "rejected"
        assert again["reason"] == "already_won"

        claimable = client.get(f"/tickets/{ticket['id']}/claims").get_json()["data"]["claimable"]
        assert claimable["topLine"] is False

        summary = wallet(client, "p1")
        assert summary["balance"] == 100
        assert summary["transactions"][0]["type"] == "prize"

        claims = client.get(f"/rooms/{room['id']}/claims").get_json()
        assert claims["meta"]["count"] == 2

    def test_marks_on_uncalled_numbers_do_not_count(self, client):
        room = create_room(client)
        ticket = join(client, room["id"], "p1")
        start(client, room["id"])
        daub_row(client, ticket, 0)

        resp = claim(client, ticket, "topLine")
        assert resp.status_code == 201
        data = resp.get_json()["data"]
        assert data["status"] == "rejected"
        assert data["reason"] == "pattern_incomplete"

    def test_second_winner_is_rejected(self, client):
        room = create_room(client)
        a = join(client, room["id"], "p1")
        b = join(client, room["id"], "p2")
        start(client, room["id"])
        call_row(client, room["id"], a, 0)
        call_row(client, room["id"], b, 0, already={n for _, n in row_cells(a, 0)})
        daub_row(client, a, 0)
        daub_row(client, b, 0)

        first = claim(client, a, "topLine").get_json()["data"]
        second = claim(client, b, "topLine").get_json()["data"]
        assert first["status"] == "verified"
        assert second["status"] == "rejected"
        assert second["reason"] == "already_won"

    def test_full_house_ends_the_game(self, client):
        room = create_room(client, prizes={"fullHouse": 500})
        ticket = join(client, room["id"], "p1")
        start(client, room["id"])
        for row in range(3):
            call_row(client, room["id"], ticket, row)
            daub_row(client, ticket, row)

        resp = claim(client, ticket, "fullHouse")
        assert resp.get_json()["data"]["status"] == "verified"
        assert client.get(f"/rooms/{room['id']}").get_json()["data"]["status"] == "completed"

        late = claim(client, ticket, "topLine")
        assert late.status_code == 409

    def test_claim_for_someone_elses_ticket(self, client):
        room = create_room(client)
        ticket = join(client, room["id"], "p1")
        start(client, room["id"])
        resp = claim(client, ticket, "earlyFive", player_id="p2")
        assert resp.status_code == 403

    def test_unknown_prize(self, client):
        room = create_room(client)
        ticket = join(client, room["id"], "p1")
        start(client, room["id"])
        resp = claim(client, ticket, "fourCorners")
        assert resp.status_code == 400

    def test_award_is_unique_per_room_and_prize(self, client, db_session):
        room = create_room(client)
        ticket = join(client, room["id"], "p1")
        repo = ClaimRepository()
        verified = repo.add_claim(
            db_session, room_id=room["id"], ticket_id=ticket["id"], player_id="p1", prize="topLine", status="verified"
        )
        repo.add_award(db_session, room_id=room["id"], prize="topLine", claim_id=verified.id, player_id="p1")
        with pytest.raises(IntegrityError):
            repo.add_award(db_session, room_id=room["id"], prize="topLine", claim_id=verified.id, player_id="p2")
        db_session.rollback()

        assert db_session.get(Room, room["id"]) is not None
        assert db_session.query(PrizeAward).count() == 0
        assert db_session.query(Claim).count() == 0
