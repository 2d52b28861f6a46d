"""
Integration tests for API endpoints.
"""
import pytest
from io import BytesIO
from fastapi.testclient import TestClient
from main import app
from chartkit.api import routes
from chartkit.core import config
from chartkit.core.config import Settings
from chartkit.core.errors import ErrorCodes


@pytest.fixture
def client():
    """Create a test client with a fresh rate limit window."""
    app.state.limiter.reset()
    return TestClient(app)


@pytest.fixture
def rows():
    regions = ["North", "South", "East", "West"]
    return [
        {
            "region": regions[i % 4],
            "channel": "online" if i % 3 else "store",
            "revenue": 100 + (i * 17) % 250,
            "units": str((i * 5) % 40),
        }
        for i in range(60)
    ]


@pytest.mark.integration
def test_health_check(client):
    """Test the health check endpoint."""
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


@pytest.mark.integration
def test_root_endpoint(client):
    """Test the root endpoint."""
    response = client.get("/")
    assert response.status_code == 200
    assert "message" in response.json()


@pytest.mark.integration
def test_upload_csv_file(client):
    """Test uploading a valid CSV file."""
    csv_content = b"name,age,score\nAlice,25,85.5\nBob,30,90.0\nCharlie,35,88.5"

    response = client.post(
        "/api/upload",
        files={"file": ("test.csv", BytesIO(csv_content), "text/csv")}
    )

    assert response.status_code == 200
    data = response.json()
    assert data["filename"] == "test.csv"
    assert data["profile"]["row_count"] == 3
    assert data["profile"]["col_count"] == 3
    assert data["summary_stats"]["age"] == {
        "count": 3, "mean": 30.0, "std": 4.08, "min": 25.0,
        "p25": 25.0, "p50": 30.0, "p75": 35.0, "max": 35.0,
    }
    assert data["dataset"][0] == {"name": "Alice", "age": "25", "score": "85.5"}
    assert data["overview"]["overview"].startswith("Your dataset contains 3 records with 3 columns.")
    assert len(data["suggestions"]) > 0


@pytest.mark.integration
def test_upload_response_structure(client):
    """Test that upload response has correct structure."""
    csv_content = b"date,value\n2024-01-01,10\n2024-01-02,20\n2024-01-03,15"

    response = client.post(
        "/api/upload",
        files={"file": ("test.csv", BytesIO(csv_content), "text/csv")}
    )

    assert response.status_code == 200
    data = response.json()

    assert set(data) == {"filename", "profile", "summary_stats", "suggestions", "overview", "dataset"}
    suggestion = data["suggestions"][0]
    for key in ("chart_type", "parameters", "score", "confidence", "reasoning", "title",
                "insight", "priority", "category", "use_case", "data_requirements"):
        assert key in suggestion
    assert suggestion["priority"] == 1
    assert set(data["overview"]) == {
        "overview", "key_patterns", "data_quality_notes", "recommended_analysis_approach"
    }


@pytest.mark.integration
def test_upload_file_too_large(client, monkeypatch):
    """Test uploading a file that exceeds size limit."""
    monkeypatch.setattr(routes, "settings", Settings(max_file_size_mb=1))
    csv_content = b"a,b\n" + b"1,2\n" * 300000

    response = client.post(
        "/api/upload",
        files={"file": ("large.csv", BytesIO(csv_content), "text/csv")}
    )

    assert response.status_code == 413
    assert response.json()["detail"]["code"] == ErrorCodes.FILE_TOO_LARGE


@pytest.mark.integration
def test_upload_truncates_dataset(client, monkeypatch):
    monkeypatch.setattr(routes, "settings", Settings(max_dataset_rows=100))
    csv_content = ("n,v\n" + "".join(f"r{i},{i}\n" for i in range(150))).encode()

    response = client.post(
        "/api/upload",
        files={"file": ("rows.csv", BytesIO(csv_content), "text/csv")}
    )

    assert response.status_code == 200
    data = response.json()
    assert data["profile"]["row_count"] == 150
    assert len(data["dataset"]) == 100


@pytest.mark.integration
def test_upload_invalid_file_type(client):
    """Test uploading an invalid file type."""
    response = client.post(
        "/api/upload",
        files={"file": ("test.txt", BytesIO(b"some content"), "text/plain")}
    )

    assert response.status_code == 400
    detail = response.json()["detail"]
    assert detail["code"] == ErrorCodes.INVALID_FILE_TYPE
    assert "Unsupported file format" in detail["detail"]
    assert detail["correlation_id"] == response.headers["X-Correlation-ID"]


@pytest.mark.integration
def test_upload_empty_file(client):
    """Test uploading an empty file."""
    response = client.post(
        "/api/upload",
        files={"file": ("empty.csv", BytesIO(b""), "text/csv")}
    )

    assert response.status_code == 400
    assert response.json()["detail"]["code"] == ErrorCodes.FILE_EMPTY


@pytest.mark.integration
def test_upload_rate_limited(client, monkeypatch):
    monkeypatch.setattr(config, "_settings", Settings(rate_limit_per_minute=2))
    csv_content = b"name,value\ntest,10"

    statuses = [
        client.post("/api/upload", files={"file": ("t.csv", BytesIO(csv_content), "text/csv")}).status_code
        for _ in range(3)
    ]

    assert statuses == [200, 200, 429]


@pytest.mark.integration
def test_recommend(client, rows):
    response = client.post("/api/recommend", json={"rows": rows})

    assert response.status_code == 200
    data = response.json()
    assert data["profile"]["row_count"] == 60
    types = {c["name"]: c["type_tag"] for c in data["profile"]["columns"]}
    assert types == {"region": "categorical", "channel": "categorical", "revenue": "numeric", "units": "numeric"}
    chart_types = [s["chart_type"] for s in data["suggestions"]]
    assert 0 < len(chart_types) <= 8
    assert "bar" in chart_types and "scatter" in chart_types
    assert "gantt" not in chart_types


@pytest.mark.integration
def test_recommend_max_suggestions(client, rows):
    response = client.post("/api/recommend", json={"rows": rows, "max_suggestions": 3})
    assert len(response.json()["suggestions"]) == 3

    response = client.post("/api/recommend", json={"rows": rows, "max_suggestions": 27})
    assert response.status_code == 422


@pytest.mark.integration
def test_validate_valid_request(client, rows):
    response = client.post("/api/validate", json={
        "rows": rows,
        "chart_type": "bar",
        "parameters": {"x_axis": "region", "y_axis": "revenue", "aggregation": "sum"},
    })

    assert response.status_code == 200
    data = response.json()
    assert data["is_valid"] is True
    assert data["violations"] == []
    assert data["alternatives"] == []


@pytest.mark.integration
def test_validate_bubble_without_size(client, rows):
    response = client.post("/api/validate", json={
        "rows": rows,
        "chart_type": "bubble",
        "parameters": {"x_axis": "revenue", "y_axis": "units"},
    })

    assert response.status_code == 200
    data = response.json()
    assert data["is_valid"] is False
    assert [(v["parameter"], v["code"]) for v in data["violations"]] == [
        ("size_by", ErrorCodes.MISSING_REQUIRED_PARAMETER)
    ]
    assert "scatter" in data["alternatives"]
    assert data["recovery_suggestions"]


@pytest.mark.integration
def test_validate_rejects_unknown_parameter(client, rows):
    response = client.post("/api/validate", json={
        "rows": rows,
        "chart_type": "bar",
        "parameters": {"x_axis": "region", "colour": "red"},
    })

    assert response.status_code == 422


@pytest.mark.integration
def test_chart_data_bar(client, rows):
    response = client.post("/api/chart-data", json={
        "rows": rows,
        "chart_type": "bar",
        "parameters": {"x_axis": "region"},
    })

    assert response.status_code == 200
    data = response.json()
    assert data["chart_type"] == "bar"
    assert sum(r["value"] for r in data["data"]) == 60
    assert data["metadata"]["x_column"] == "region"


@pytest.mark.integration
def test_chart_data_heatmap_grid(client, rows):
    response = client.post("/api/chart-data", json={
        "rows": rows,
        "chart_type": "heatmap",
        "parameters": {"x_axis": "region", "y_axis": "channel"},
    })

    assert response.status_code == 200
    data = response.json()
    assert len(data["data"]) == 4 * 2
    assert sum(cell["value"] for cell in data["data"]) == 60


@pytest.mark.integration
def test_chart_data_validation_error(client, rows):
    response = client.post("/api/chart-data", json={
        "rows": rows,
        "chart_type": "bubble",
        "parameters": {"x_axis": "revenue", "y_axis": "units"},
    })

    assert response.status_code == 400
    detail = response.json()["detail"]
    assert detail["code"] == ErrorCodes.MISSING_REQUIRED_PARAMETER
    assert detail["category"] == "validation"
    assert detail["violations"][0]["parameter"] == "size_by"
    assert "correlation_id" in detail


@pytest.mark.integration
def test_chart_data_data_error(client, rows):
    response = client.post("/api/chart-data", json={
        "rows": rows,
        "chart_type": "histogram",
        "parameters": {"x_axis": "region"},
    })

    assert response.status_code == 422
    detail = response.json()["detail"]
    assert detail["code"] == ErrorCodes.INVALID_DATA_TYPE
    assert detail["category"] == "data"


@pytest.mark.integration
def test_chart_data_without_rows(client):
    response = client.post("/api/chart-data", json={
        "rows": [],
        "chart_type": "bar",
        "parameters": {"x_axis": "region"},
    })

    assert response.status_code == 422
    assert response.json()["detail"]["code"] == ErrorCodes.MISSING_COLUMN


@pytest.mark.integration
def test_chart_data_unknown_chart_type(client, rows):
    response = client.post("/api/chart-data", json={
        "rows": rows,
        "chart_type": "pie3d",
        "parameters": {},
    })

    assert response.status_code == 400
    assert response.json()["detail"]["code"] == ErrorCodes.UNSUPPORTED_CHART_TYPE


@pytest.mark.integration
def test_list_charts(client):
    response = client.get("/api/charts")

    assert response.status_code == 200
    data = response.json()
    assert len(data["charts"]) == 26
    assert "multi_series" in data["categories"]
    bubble = next(c for c in data["charts"] if c["chart_type"] == "bubble")
    assert bubble["required_parameters"] == ["x_axis", "y_axis", "size_by"]
