import pytest

@pytest.mark.asyncio
async def test_metrics_endpoint(client):
    res = await client.get("/api/metrics")
    assert res.status_code == 200

    data = res.json()

    assert data["status"] == "Online"
    assert data["database"] == "Connected"
    assert data["version"] == "1.0.0"
    for key in ("cpu", "ram", "disk", "db_latency"):
        assert key in data

    assert isinstance(data["uptime"], int)
