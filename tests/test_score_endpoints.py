from fastapi.testclient import TestClient

from urbanscope.main import app
from urbanscope.services.seed_data import seed_defaults

client = TestClient(app)


def test_health() -> None:
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_score_detail_envelope() -> None:
    seed_defaults()

    response = client.get("/score/detail", params={"countryId": "CHN", "year": 2023})
    assert response.status_code == 200
    body = response.json()
    assert body["code"] == 10000
    assert body["msg"] == "成功"

    data = body["data"]
    assert data["countryId"] == "CHN"
    assert data["year"] == 2023
    assert data["totalScore"] == 72.4
    assert data["urbanizationProcessDimensionScore"] == 75.1
    assert data["country"]["enName"] == "China"
    assert data["country"]["cnName"] == "中国"


def test_score_detail_not_found() -> None:
    response = client.get("/score/detail", params={"countryId": "ZZZ", "year": 2023})
    assert response.status_code == 200
    body = response.json()
    assert body["code"] == 20002
    assert body["msg"] == "未找到该国家该年份的评分数据"


def test_score_detail_invalid_year() -> None:
    response = client.get("/score/detail", params={"countryId": "CHN", "year": "abc"})
    assert response.status_code == 200
    body = response.json()
    assert body["code"] == 20001
    assert isinstance(body["data"], list)


def test_score_evaluations() -> None:
    seed_defaults()

    response = client.get("/score/evaluations")
    body = response.json()
    assert body["code"] == 10000
    assert [item["minScore"] for item in body["data"]] == [0, 40, 60, 80]
    assert all(item["evaluationText"] for item in body["data"])


def test_unknown_route_envelope() -> None:
    response = client.get("/no-such-route")
    assert response.status_code == 200
    assert response.json()["code"] == 20002
