from fastapi.testclient import TestClient
from sqlmodel import Session, select

from league_scheduler.models import PlayoffSeries, SeasonParticipant


def _season_payload(**overrides):
    payload = {
        "competition_id": 1,
        "season_name": "Spring 2024",
        "start_date": "2024-01-01",
        "match_day_of_week": 2,
        "match_time": "19:00",
        "city": "Kazan",
        "timezone": "UTC",
        "club_ids": [11, 12, 13, 14, 15, 16],
        "series_format": "BEST_OF_N",
        "playoff_best_of": 3,
    }
    payload.update(overrides)
    return payload


def _create_season(client: TestClient, **overrides) -> dict:
    response = client.post("/api/seasons/auto", json=_season_payload(**overrides))
    assert response.status_code == 201, response.text
    return response.json()


def test_health(client: TestClient):
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_create_season_stores_calendar(client: TestClient, session: Session):
    data = _create_season(client)

    assert data["matches_created"] == 15
    assert data["rounds"] == 5
    assert data["playoff_matches_created"] == 0

    matches = client.get(f"/api/seasons/{data['season_id']}/matches").json()
    assert len(matches) == 15
    kickoffs = [m["kickoff_at"] for m in matches]
    assert kickoffs == sorted(kickoffs)
    assert kickoffs[0].startswith("2024-01-03T19:00")
    assert all(m["city"] == "Kazan" for m in matches)
    assert all(m["round_type"] == "REGULAR" for m in matches)
    assert set(matches[0]) == {
        "id",
        "round_type",
        "round_number",
        "stage_name",
        "group_index",
        "series_key",
        "series_match_number",
        "series_length",
        "home_club_id",
        "away_club_id",
        "placeholder_home",
        "placeholder_away",
        "kickoff_at",
        "city",
    }

    participants = session.exec(
        select(SeasonParticipant).where(SeasonParticipant.season_id == data["season_id"])
    ).all()
    assert sorted(p.club_id for p in participants) == [11, 12, 13, 14, 15, 16]


def test_full_playoff_flow(client: TestClient, session: Session):
    season_id = _create_season(client)["season_id"]

    # Regular season not confirmed yet
    response = client.post(f"/api/seasons/{season_id}/playoffs", json={})
    assert response.status_code == 409
    assert response.json()["detail"] == "matches_not_finished"

    response = client.post(f"/api/seasons/{season_id}/regular-season/confirm")
    assert response.status_code == 200
    assert response.json()["regular_season_confirmed"] is True

    response = client.post(f"/api/seasons/{season_id}/playoffs", json={})
    assert response.status_code == 201, response.text
    data = response.json()
    assert data["bracket_size"] == 8
    assert data["matches_created"] == 15
    byes = [n for n in data["nodes"] if n["is_bye"]]
    assert len(byes) == 2

    matches = client.get(f"/api/seasons/{season_id}/matches").json()
    assert len(matches) == 30
    playoff = [m for m in matches if m["round_type"] == "PLAYOFF"]
    assert len(playoff) == 15
    # playoffs begin after the last regular-season week
    last_regular = max(m["kickoff_at"] for m in matches if m["round_type"] == "REGULAR")
    assert min(m["kickoff_at"] for m in playoff) > last_regular
    undecided = [m for m in playoff if m["away_club_id"] is None and m["series_match_number"] == 1]
    assert any(m["placeholder_away"] == "Winner of MAIN-R1-2" for m in undecided)

    series = session.exec(select(PlayoffSeries).where(PlayoffSeries.season_id == season_id)).all()
    assert len(series) == 7
    semi = next(s for s in series if s.code == "MAIN-R2-1")
    assert semi.source_a_role == "WINNER"
    assert semi.source_series_b_id is not None

    # Second attempt is rejected
    response = client.post(f"/api/seasons/{season_id}/playoffs", json={})
    assert response.status_code == 409
    assert response.json()["detail"] == "playoffs_already_exists"
    assert len(client.get(f"/api/seasons/{season_id}/matches").json()) == 30


def test_playoffs_with_qualified_subset(client: TestClient):
    season_id = _create_season(client)["season_id"]
    client.post(f"/api/seasons/{season_id}/regular-season/confirm")

    response = client.post(
        f"/api/seasons/{season_id}/playoffs",
        json={"qualified_club_ids": [14, 11, 12, 13], "best_of": 1},
    )
    assert response.status_code == 201
    data = response.json()
    assert data["bracket_size"] == 4
    assert data["matches_created"] == 3
    opener = next(n for n in data["nodes"] if n["code"] == "MAIN-R1-1")
    assert (opener["side_a"], opener["side_b"]) == ("14", "13")


def test_playoffs_not_supported(client: TestClient):
    season_id = _create_season(client, series_format="SINGLE_MATCH")["season_id"]
    client.post(f"/api/seasons/{season_id}/regular-season/confirm")

    response = client.post(f"/api/seasons/{season_id}/playoffs", json={})
    assert response.status_code == 409
    assert response.json()["detail"] == "playoffs_not_supported"


def test_playoff_bracket_season_created_immediately(client: TestClient):
    data = _create_season(client, series_format="PLAYOFF_BRACKET", club_ids=list(range(21, 29)), random_seed=3)
    assert data["matches_created"] == 0
    assert data["playoff_matches_created"] == 7 * 3

    response = client.post(f"/api/seasons/{data['season_id']}/playoffs", json={})
    assert response.status_code == 409
    assert response.json()["detail"] == "playoffs_already_exists"


def test_group_stage_season(client: TestClient):
    groups = [
        {"group_index": 1, "slots": [{"club_id": c, "position": p} for p, c in enumerate([1, 2, 3, 4], start=1)]},
        {"group_index": 2, "slots": [{"club_id": c, "position": p} for p, c in enumerate([5, 6, 7, 8], start=1)]},
    ]
    data = _create_season(
        client,
        series_format="GROUP_SINGLE_ROUND_PLAYOFF",
        club_ids=[1, 2, 3, 4, 5, 6, 7, 8],
        group_stage={"group_count": 2, "group_size": 4, "qualify_count": 2, "groups": groups},
    )
    assert data["matches_created"] == 12
    assert data["rounds"] == 3
    assert [g["label"] for g in data["groups"]] == ["Group A", "Group B"]


def test_invalid_group_stage_is_bad_request(client: TestClient):
    groups = [
        {"group_index": 1, "slots": [{"club_id": c, "position": p} for p, c in enumerate([1, 2, 3, 4], start=1)]},
        {"group_index": 2, "slots": [{"club_id": c, "position": p} for p, c in enumerate([4, 6, 7, 8], start=1)]},
    ]
    response = client.post(
        "/api/seasons/auto",
        json=_season_payload(
            series_format="GROUP_SINGLE_ROUND_PLAYOFF",
            club_ids=[1, 2, 3, 4, 6, 7, 8],
            group_stage={"group_count": 2, "group_size": 4, "qualify_count": 2, "groups": groups},
        ),
    )
    assert response.status_code == 400
    assert response.json()["detail"] == "group_stage_duplicate_club"


def test_not_enough_clubs(client: TestClient):
    response = client.post("/api/seasons/auto", json=_season_payload(club_ids=[11]))
    assert response.status_code == 400
    assert response.json()["detail"] == "not_enough_participants"


def test_empty_season_name_rejected(client: TestClient):
    response = client.post("/api/seasons/auto", json=_season_payload(season_name="   "))
    assert response.status_code == 422


def test_unknown_season(client: TestClient):
    assert client.post("/api/seasons/999999/regular-season/confirm").status_code == 404
    assert client.post("/api/seasons/999999/playoffs", json={}).status_code == 404
    response = client.get("/api/seasons/999999/matches")
    assert response.status_code == 404
    assert response.json()["detail"] == "season_not_found"


def _create_group_season(client: TestClient, qualify_count=2) -> int:
    groups = [
        {"group_index": 1, "slots": [{"club_id": c, "position": p} for p, c in enumerate([1, 2, 3, 4], start=1)]},
        {"group_index": 2, "slots": [{"club_id": c, "position": p} for p, c in enumerate([5, 6, 7, 8], start=1)]},
    ]
    season_id = _create_season(
        client,
        series_format="GROUP_SINGLE_ROUND_PLAYOFF",
        club_ids=[1, 2, 3, 4, 5, 6, 7, 8],
        group_stage={"group_count": 2, "group_size": 4, "qualify_count": qualify_count, "groups": groups},
    )["season_id"]
    client.post(f"/api/seasons/{season_id}/regular-season/confirm")
    return season_id


def _opening_pairs(data):
    opening = sorted((n for n in data["nodes"] if n["round_number"] == 1), key=lambda n: n["code"])
    return [(n["side_a"], n["side_b"]) for n in opening]


def test_group_playoffs_take_qualify_count_per_group(client: TestClient):
    season_id = _create_group_season(client)

    response = client.post(f"/api/seasons/{season_id}/playoffs", json={})
    assert response.status_code == 201, response.text
    data = response.json()
    assert data["bracket_size"] == 4
    assert data["has_consolation"] is False
    # group winners meet the other group's runner-up
    assert _opening_pairs(data) == [("1", "6"), ("5", "2")]


def test_group_playoffs_from_standings(client: TestClient):
    season_id = _create_group_season(client)

    response = client.post(
        f"/api/seasons/{season_id}/playoffs",
        json={"group_standings": {"1": [4, 3, 2, 1], "2": [8, 7, 6, 5]}},
    )
    assert response.status_code == 201, response.text
    assert _opening_pairs(response.json()) == [("4", "7"), ("8", "3")]


def test_group_playoffs_all_clubs_qualify(client: TestClient):
    season_id = _create_group_season(client, qualify_count=4)

    response = client.post(f"/api/seasons/{season_id}/playoffs", json={})
    assert response.status_code == 201, response.text
    data = response.json()
    assert data["bracket_size"] == 8
    assert data["has_consolation"] is True
    for side_a, side_b in _opening_pairs(data):
        assert (int(side_a) <= 4) != (int(side_b) <= 4)


def test_group_standings_must_match_groups(client: TestClient):
    season_id = _create_group_season(client)

    response = client.post(
        f"/api/seasons/{season_id}/playoffs",
        json={"group_standings": {"1": [5, 1, 2, 3], "2": [8, 7, 6, 4]}},
    )
    assert response.status_code == 400
    assert response.json()["detail"] == "group_standings_invalid"

    response = client.post(f"/api/seasons/{season_id}/playoffs", json={"group_standings": {"1": [1, 2, 3, 4]}})
    assert response.status_code == 400
    assert response.json()["detail"] == "group_standings_invalid"


def test_group_standings_need_group_season(client: TestClient):
    season_id = _create_season(client)["season_id"]
    client.post(f"/api/seasons/{season_id}/regular-season/confirm")

    response = client.post(f"/api/seasons/{season_id}/playoffs", json={"group_standings": {"1": [11, 12]}})
    assert response.status_code == 400
    assert response.json()["detail"] == "group_standings_invalid"


def test_empty_qualified_list_is_not_everyone(client: TestClient):
    season_id = _create_season(client)["season_id"]
    client.post(f"/api/seasons/{season_id}/regular-season/confirm")

    response = client.post(f"/api/seasons/{season_id}/playoffs", json={"qualified_club_ids": []})
    assert response.status_code == 409
    assert response.json()["detail"] == "not_enough_pairs"
