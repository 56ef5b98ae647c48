"""
Test cases for the FastAPI web service (api.py)
"""

from unittest.mock import patch
import uuid

import pytest
import numpy as np
from fastapi.testclient import TestClient

from api import app, models_storage
from streamsom import __version__


@pytest.fixture
def client():
    """FastAPI test client"""
    return TestClient(app)


@pytest.fixture
def sample_training_data():
    """Sample training data for API tests"""
    np.random.seed(42)
    return np.random.random((20, 3)).tolist()


@pytest.fixture
def sample_config():
    """Sample SOM configuration for API tests"""
    return {
        "width": 4,
        "height": 4,
        "order_epochs": 3,
        "fine_tune_epochs": 2,
        "i_alpha": 0.1,
        "seed": 42,
    }


@pytest.fixture
def trained_model_id(client, sample_training_data, sample_config):
    """Create a trained model and return its ID"""
    request_data = {"data": sample_training_data, "config": sample_config}
    response = client.post("/train", json=request_data)
    assert response.status_code == 200
    return response.json()["model_id"]


@pytest.fixture
def art_model_id(client):
    """Create a StreamART2A model and return its ID"""
    request_data = {
        "model": "art",
        "dimensionality": 3,
        "concept_drift": True,
        "params": {"q": 5, "K": 20, "landmark_window_size": 50},
    }
    response = client.post("/streams", json=request_data)
    assert response.status_code == 200
    return response.json()["model_id"]


@pytest.mark.api
@pytest.mark.unit
class TestRootEndpoint:
    """Tests for root endpoint"""

    def test_root_endpoint(self, client):
        """Test root endpoint returns correct information"""
        response = client.get("/")
        assert response.status_code == 200
        data = response.json()
        assert data["message"] == "streamsom API"
        assert data["version"] == __version__
        assert data["docs"] == "/docs"

    def test_correlation_id_header(self, client):
        """Test every response carries a correlation ID"""
        response = client.get("/")
        assert "x-correlation-id" in response.headers


@pytest.mark.api
@pytest.mark.unit
class TestHealthEndpoint:
    """Tests for health check and metrics endpoints"""

    def test_health_check(self, client):
        """Test health check endpoint"""
        response = client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["version"] == __version__
        assert "models_loaded" in data

    def test_health_check_with_models(self, client, trained_model_id):
        """Test health check reflects loaded models"""
        response = client.get("/health")
        assert response.json()["models_loaded"] >= 1

    def test_metrics(self, client, trained_model_id):
        """Test Prometheus metrics exposition"""
        response = client.get("/metrics")
        assert response.status_code == 200
        assert "streamsom_training_iterations_total" in response.text
        assert "streamsom_models_created_total" in response.text


@pytest.mark.api
@pytest.mark.unit
class TestTrainEndpoint:
    """Tests for training endpoint"""

    def test_train_valid_data(self, client, sample_training_data, sample_config):
        """Test training with valid data"""
        request_data = {"data": sample_training_data, "config": sample_config}
        response = client.post("/train", json=request_data)
        assert response.status_code == 200

        data = response.json()
        assert "model_id" in data
        assert data["quantization_error"] >= 0
        assert 0 <= data["topographic_error"] <= 1
        assert data["training_info"]["shape"] == [4, 4]
        assert data["training_info"]["metadata"]["total_epochs"] == 5
        assert "20 samples" in data["message"]

    def test_train_minimal_config(self, client, sample_training_data):
        """Test training with minimal configuration"""
        response = client.post("/train", json={"data": sample_training_data})
        assert response.status_code == 200

    def test_train_empty_data(self, client):
        """Test training with empty data"""
        response = client.post("/train", json={"data": []})
        assert response.status_code == 400
        assert "Empty data provided" in response.json()["detail"]

    def test_train_ragged_rows(self, client):
        """Test training with rows of different lengths"""
        response = client.post("/train", json={"data": [[0.1, 0.2], [0.3]]})
        assert response.status_code == 400

    def test_train_invalid_dimensions(self, client):
        """Test training with invalid data dimensions"""
        response = client.post("/train", json={"data": [1, 2, 3]})
        assert response.status_code == 422

    def test_train_invalid_config(self, client, sample_training_data):
        """Test training with an out-of-range configuration"""
        request_data = {"data": sample_training_data, "config": {"width": 0}}
        response = client.post("/train", json=request_data)
        assert response.status_code == 422

    @pytest.mark.parametrize(
        "config",
        [
            {"init_strategy": "pca"},
            {"init_strategy": "sample"},
            {"distance_metric": "manhattan"},
            {"topology": "toroidal_hexagonal"},
            {"learning": "batch"},
            {"shuffle": True, "seed": 3},
        ],
    )
    def test_train_various_configs(self, client, sample_training_data, config):
        """Test training with various configuration options"""
        config.update({"width": 3, "height": 4, "order_epochs": 2, "fine_tune_epochs": 2})
        request_data = {"data": sample_training_data, "config": config}
        response = client.post("/train", json=request_data)
        assert response.status_code == 200

    def test_train_toroidal_hexagonal_odd_height(self, client, sample_training_data):
        """Test toroidal hexagonal maps reject an odd height"""
        config = {"width": 3, "height": 3, "topology": "toroidal_hexagonal"}
        request_data = {"data": sample_training_data, "config": config}
        response = client.post("/train", json=request_data)
        assert response.status_code == 400
        assert "even height" in response.json()["detail"]

    @patch("api.BasicSOM")
    def test_train_som_exception(self, mock_som, client, sample_training_data):
        """Test training handles unexpected exceptions"""
        mock_som.from_config.side_effect = Exception("boom")
        response = client.post("/train", json={"data": sample_training_data})
        assert response.status_code == 500
        assert "Training failed" in response.json()["detail"]

    @patch("api.BasicSOM")
    def test_train_value_error(self, mock_som, client, sample_training_data):
        """Test training maps ValueError to a client error"""
        mock_som.from_config.side_effect = ValueError("bad input")
        response = client.post("/train", json={"data": sample_training_data})
        assert response.status_code == 400
        assert "Invalid data" in response.json()["detail"]


@pytest.mark.api
@pytest.mark.unit
class TestBMUEndpoint:
    """Tests for best matching unit lookup"""

    def test_bmu_valid_data(self, client, trained_model_id, sample_training_data):
        """Test BMU lookup with valid data"""
        response = client.post(
            f"/models/{trained_model_id}/bmu", json={"data": sample_training_data[:5]}
        )
        assert response.status_code == 200

        data = response.json()
        assert data["model_id"] == trained_model_id
        assert len(data["indices"]) == 5
        assert len(data["coordinates"]) == 5
        for index, (x, y) in zip(data["indices"], data["coordinates"]):
            assert index == x * 4 + y

    def test_bmu_nonexistent_model(self, client, sample_training_data):
        """Test BMU lookup with nonexistent model"""
        response = client.post(
            f"/models/{uuid.uuid4()}/bmu", json={"data": sample_training_data}
        )
        assert response.status_code == 404
        assert "Model not found" in response.json()["detail"]

    def test_bmu_empty_data(self, client, trained_model_id):
        """Test BMU lookup with empty data"""
        response = client.post(f"/models/{trained_model_id}/bmu", json={"data": []})
        assert response.status_code == 400
        assert "Empty data provided" in response.json()["detail"]

    def test_bmu_wrong_dimensions(self, client, trained_model_id):
        """Test BMU lookup with wrong feature dimensions"""
        response = client.post(
            f"/models/{trained_model_id}/bmu", json={"data": [[1, 2]]}
        )
        assert response.status_code == 400
        assert "Expected 3 features" in response.json()["detail"]

    def test_bmu_on_art_model(self, client, art_model_id):
        """Test BMU lookup rejects micro-clustering models"""
        response = client.post(
            f"/models/{art_model_id}/bmu", json={"data": [[0.1, 0.2, 0.3]]}
        )
        assert response.status_code == 400
        assert "not a SOM" in response.json()["detail"]


@pytest.mark.api
@pytest.mark.unit
class TestExportEndpoint:
    """Tests for CSV export"""

    def test_export_csv(self, client, trained_model_id):
        """Test prototypes export"""
        response = client.get(f"/models/{trained_model_id}/export")
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")

        lines = response.text.strip().splitlines()
        assert lines[0] == "x,y,v1,v2,v3"
        assert len(lines) == 17

    def test_export_nonexistent_model(self, client):
        """Test export of nonexistent model"""
        response = client.get(f"/models/{uuid.uuid4()}/export")
        assert response.status_code == 404


@pytest.mark.api
@pytest.mark.unit
class TestModelManagement:
    """Tests for model management endpoints"""

    def test_list_empty_models(self, client):
        """Test listing models when none exist"""
        models_storage.clear()
        response = client.get("/models")
        assert response.status_code == 200
        assert response.json() == []

    def test_list_models_with_data(self, client, trained_model_id):
        """Test listing models when models exist"""
        response = client.get("/models")
        assert trained_model_id in response.json()

    def test_get_model_info(self, client, trained_model_id):
        """Test getting model information"""
        response = client.get(f"/models/{trained_model_id}")
        assert response.status_code == 200

        data = response.json()
        assert data["model_id"] == trained_model_id
        assert data["kind"] == "BasicSOM"
        assert data["created_at"] is not None
        assert data["info"]["n_neurons"] == 16
        assert data["info"]["dimensionality"] == 3

    def test_get_art_model_info(self, client, art_model_id):
        """Test getting micro-clustering model information"""
        response = client.get(f"/models/{art_model_id}")
        data = response.json()
        assert data["kind"] == "StreamART2AWithConceptDrift"
        assert data["created_at"] is None
        assert data["info"]["codebook_size"] == 0

    def test_get_nonexistent_model_info(self, client):
        """Test getting info for nonexistent model"""
        response = client.get(f"/models/{uuid.uuid4()}")
        assert response.status_code == 404
        assert "Model not found" in response.json()["detail"]

    def test_delete_model(self, client, trained_model_id):
        """Test deleting a model"""
        response = client.delete(f"/models/{trained_model_id}")
        assert response.status_code == 200
        assert "deleted successfully" in response.json()["message"]

        response = client.get(f"/models/{trained_model_id}")
        assert response.status_code == 404

    def test_delete_nonexistent_model(self, client):
        """Test deleting nonexistent model"""
        response = client.delete(f"/models/{uuid.uuid4()}")
        assert response.status_code == 404
        assert "Model not found" in response.json()["detail"]


@pytest.mark.api
@pytest.mark.unit
class TestStreamEndpoints:
    """Tests for streaming model endpoints"""

    def test_create_ubisom(self, client):
        """Test creating a UbiSOM"""
        request_data = {
            "model": "ubisom",
            "dimensionality": 3,
            "width": 4,
            "height": 3,
            "seed": 1,
            "params": {"T": 10},
        }
        response = client.post("/streams", json=request_data)
        assert response.status_code == 200

        data = response.json()
        assert data["model"] == "ubisom"
        assert data["samples_seen"] == 0
        assert data["summary"]["state"] == "ordering"
        assert data["summary"]["shape"] == [4, 3]

    @pytest.mark.parametrize("model", ["dsom", "plsom"])
    def test_create_and_learn_maps(self, client, model, sample_training_data):
        """Test feeding inputs to streaming maps"""
        response = client.post(
            "/streams", json={"model": model, "dimensionality": 3, "width": 3, "height": 3}
        )
        model_id = response.json()["model_id"]

        response = client.post(
            f"/streams/{model_id}/learn", json={"data": sample_training_data}
        )
        assert response.status_code == 200
        assert response.json()["samples_seen"] == 20

        # Streaming maps answer BMU lookups too
        response = client.post(
            f"/models/{model_id}/bmu", json={"data": sample_training_data[:2]}
        )
        assert response.status_code == 200

    def test_ubisom_transitions_after_T(self, client, sample_training_data):
        """Test UbiSOM leaves Ordering after T inputs"""
        response = client.post(
            "/streams",
            json={"model": "ubisom", "dimensionality": 3, "params": {"T": 5}},
        )
        model_id = response.json()["model_id"]

        response = client.post(
            f"/streams/{model_id}/learn", json={"data": sample_training_data[:5]}
        )
        assert response.json()["summary"]["state"] == "converging"

    def test_invalid_params(self, client):
        """Test invalid model parameters"""
        response = client.post(
            "/streams",
            json={"model": "dsom", "dimensionality": 2, "params": {"plasticity": 0}},
        )
        assert response.status_code == 400
        assert "Invalid parameters" in response.json()["detail"]

    def test_unknown_param(self, client):
        """Test unexpected constructor parameters"""
        response = client.post(
            "/streams",
            json={"model": "art", "dimensionality": 2, "params": {"bogus": 1}},
        )
        assert response.status_code == 400

    def test_unknown_model(self, client):
        """Test unsupported model name"""
        response = client.post("/streams", json={"model": "mlp", "dimensionality": 2})
        assert response.status_code == 422

    def test_learn_on_offline_map(self, client, trained_model_id):
        """Test learning rejects offline maps"""
        response = client.post(
            f"/streams/{trained_model_id}/learn", json={"data": [[0.1, 0.2, 0.3]]}
        )
        assert response.status_code == 400
        assert "not a streaming model" in response.json()["detail"]

    def test_learn_wrong_dimensions(self, client, art_model_id):
        """Test learning with wrong feature dimensions"""
        response = client.post(
            f"/streams/{art_model_id}/learn", json={"data": [[0.1, 0.2]]}
        )
        assert response.status_code == 400

    def test_art_learn_and_codebook(self, client, art_model_id, sample_training_data):
        """Test StreamART2A learning and codebook retrieval"""
        response = client.post(
            f"/streams/{art_model_id}/learn", json={"data": sample_training_data}
        )
        assert response.status_code == 200
        data = response.json()
        assert data["samples_seen"] == 20
        assert 1 <= data["summary"]["codebook_size"] <= 20
        assert data["summary"]["quantization_error"] is not None

        response = client.get(f"/streams/{art_model_id}/codebook")
        assert response.status_code == 200
        codebook = response.json()
        assert codebook["ti"] == 0
        assert codebook["tf"] == 20
        assert len(codebook["categories"]) == data["summary"]["codebook_size"]
        timestamps = [c["timestamp"] for c in codebook["categories"]]
        assert timestamps == sorted(timestamps)

        response = client.get(f"/streams/{art_model_id}/codebook?ti=20&tf=20")
        assert len(response.json()["categories"]) <= 1

    def test_codebook_inverted_range(self, client, art_model_id):
        """Test codebook retrieval with tf before ti"""
        response = client.get(f"/streams/{art_model_id}/codebook?ti=5&tf=2")
        assert response.status_code == 400

    def test_codebook_on_som(self, client, trained_model_id):
        """Test codebook retrieval rejects maps"""
        response = client.get(f"/streams/{trained_model_id}/codebook")
        assert response.status_code == 400


@pytest.mark.api
@pytest.mark.integration
class TestIntegration:
    """Integration tests combining multiple endpoints"""

    def test_full_workflow(self, client, sample_training_data, sample_config):
        """Test complete workflow: train, lookup, export, delete"""
        train_request = {"data": sample_training_data, "config": sample_config}
        train_response = client.post("/train", json=train_request)
        assert train_response.status_code == 200
        model_id = train_response.json()["model_id"]

        bmu_response = client.post(
            f"/models/{model_id}/bmu", json={"data": sample_training_data[:3]}
        )
        assert bmu_response.status_code == 200

        export_response = client.get(f"/models/{model_id}/export")
        assert export_response.status_code == 200

        list_response = client.get("/models")
        assert model_id in list_response.json()

        delete_response = client.delete(f"/models/{model_id}")
        assert delete_response.status_code == 200

        final_info_response = client.get(f"/models/{model_id}")
        assert final_info_response.status_code == 404

    def test_multiple_models(self, client, sample_training_data):
        """Test handling multiple models simultaneously"""
        model_ids = []

        for i in range(3):
            config = {"width": 2 + i, "height": 2 + i, "order_epochs": 2, "fine_tune_epochs": 1}
            request = {"data": sample_training_data, "config": config}
            response = client.post("/train", json=request)
            assert response.status_code == 200
            model_ids.append(response.json()["model_id"])

        models = client.get("/models").json()
        for model_id in model_ids:
            assert model_id in models


@pytest.fixture(autouse=True)
def cleanup_models():
    """Clean up models storage after each test"""
    yield
    models_storage.clear()
