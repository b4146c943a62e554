"""Tests for the thinning API."""

import uuid
from types import SimpleNamespace
from unittest.mock import Mock, patch

import pytest
from fastapi.testclient import TestClient

from py_thin.api.main import app, run_layer_thinning
from py_thin.config import settings
from py_thin.core.engine import ThinningOptions
from py_thin.core.point_store import ArrayPointStore


SCENARIO_POINTS = [
    {"id": 1, "x": 0.0, "y": 0.0, "attributes": {"kind": "plain"}},
    {"id": 2, "x": 0.1, "y": 0.0, "attributes": {"kind": "keep"}},
    {"id": 3, "x": 5.0, "y": 5.0, "attributes": {"kind": "plain"}},
    {"id": 4, "x": 5.05, "y": 5.0, "attributes": {"kind": "plain"}},
]


class TestInlineThinning:
    """Test the /thin endpoint."""

    def setup_method(self):
        self.client = TestClient(app)

    def test_root(self):
        response = self.client.get("/")
        assert response.status_code == 200
        assert response.json()["status"] == "running"

    def test_thin_scenario(self):
        response = self.client.post("/thin", json={"points": SCENARIO_POINTS, "threshold": 1.0})

        assert response.status_code == 200
        data = response.json()
        assert data["retained"] == [1, 3]
        assert data["removed"] == [2, 4]
        assert data["removed_count"] == 2
        assert data["traversal_order"] == "ascending"

    def test_thin_returns_surviving_points(self):
        response = self.client.post("/thin", json={"points": SCENARIO_POINTS, "threshold": 1.0})

        assert response.status_code == 200
        points = response.json()["points"]
        assert [(p["id"], p["x"], p["y"]) for p in points] == [(1, 0.0, 0.0), (3, 5.0, 5.0)]
        assert points[0]["attributes"] == {"kind": "plain"}

    def test_thin_descending(self):
        response = self.client.post(
            "/thin", json={"points": SCENARIO_POINTS, "threshold": 1.0, "order": "descending"}
        )
        assert response.status_code == 200
        assert response.json()["retained"] == [2, 4]

    def test_thin_with_protection(self):
        response = self.client.post("/thin", json={
            "points": SCENARIO_POINTS,
            "threshold": 1.0,
            "order": "random",
            "seed": 42,
            "protected_predicate": "kind == 'keep'",
        })
        assert response.status_code == 200
        assert 2 in response.json()["retained"]

    def test_default_threshold_from_settings(self):
        with patch.object(settings, "default_threshold", 1.0), \
                patch.object(settings, "default_order", "ascending"):
            response = self.client.post("/thin", json={"points": SCENARIO_POINTS})
        assert response.status_code == 200
        assert response.json()["retained"] == [1, 3]

    @pytest.mark.parametrize("payload", [
        {"points": SCENARIO_POINTS, "threshold": -1.0},
        {"points": SCENARIO_POINTS[:1], "threshold": 1.0},
        {"points": SCENARIO_POINTS + SCENARIO_POINTS[:1], "threshold": 1.0},
        {"points": SCENARIO_POINTS, "threshold": 1.0, "invert": True},
        {"points": SCENARIO_POINTS, "threshold": 1.0, "protected_predicate": "kind =="},
    ])
    def test_configuration_errors(self, payload):
        response = self.client.post("/thin", json=payload)
        assert response.status_code == 400

    def test_unknown_order(self):
        response = self.client.post(
            "/thin", json={"points": SCENARIO_POINTS, "threshold": 1.0, "order": "zigzag"}
        )
        assert response.status_code == 422


class TestLayerEndpoints:
    """Test endpoints backed by the database (mocked)."""

    def setup_method(self):
        self.client = TestClient(app)

    @patch('py_thin.api.main.db')
    def test_health(self, mock_db):
        response = self.client.get("/health")
        assert response.status_code == 200
        assert response.json()["database"] == "connected"

    @patch('py_thin.api.main.db')
    def test_health_unreachable(self, mock_db):
        mock_db.ping.side_effect = RuntimeError("down")
        response = self.client.get("/health")
        assert response.status_code == 503

    @patch('py_thin.api.main.PostGISPointStore')
    @patch('py_thin.api.main.db')
    def test_add_layer_points(self, mock_db, mock_store_cls):
        mock_store_cls.return_value.add_points.return_value = 4
        response = self.client.post("/layers/wells/points", json={"points": SCENARIO_POINTS})

        assert response.status_code == 200
        assert response.json() == {"layer": "wells", "added": 4}
        rows = list(mock_store_cls.return_value.add_points.call_args[0][0])
        assert rows[1] == (2, 0.1, 0.0, {"kind": "keep"})

    @patch('py_thin.api.main.run_layer_thinning')
    @patch('py_thin.api.main.db')
    def test_thin_layer_starts_run(self, mock_db, mock_run):
        mock_session = Mock()
        mock_db.get_session.return_value.__enter__.return_value = mock_session

        response = self.client.post("/layers/wells/thin", json={"threshold": 2.0, "order": "descending"})

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "pending"
        assert data["layer"] == "wells"
        mock_session.add.assert_called_once()

        run_id, layer, options = mock_run.call_args[0]
        assert str(run_id) == data["run_id"]
        assert layer == "wells"
        assert options.threshold == 2.0
        assert options.order.value == "descending"

    @patch('py_thin.api.main.db')
    def test_thin_layer_rejects_bad_options(self, mock_db):
        response = self.client.post("/layers/wells/thin", json={"threshold": 1.0, "invert": True})
        assert response.status_code == 400
        mock_db.get_session.assert_not_called()

    @patch('py_thin.api.main.db')
    def test_run_not_found(self, mock_db):
        mock_session = Mock()
        mock_db.get_session.return_value.__enter__.return_value = mock_session
        mock_session.query.return_value.filter.return_value.first.return_value = None

        response = self.client.get(f"/runs/{uuid.uuid4()}")
        assert response.status_code == 404

    @patch('py_thin.api.main.db')
    def test_run_status(self, mock_db):
        run = SimpleNamespace(
            id=uuid.uuid4(), layer="wells", status="completed", progress_percent=100,
            points_before=4, points_removed=2, error_message=None,
        )
        mock_session = Mock()
        mock_db.get_session.return_value.__enter__.return_value = mock_session
        mock_session.query.return_value.filter.return_value.first.return_value = run

        response = self.client.get(f"/runs/{run.id}")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "completed"
        assert data["points_removed"] == 2


class CountingStore(ArrayPointStore):
    def count(self):
        return len(self)


class FailingStore(CountingStore):
    def query_within(self, anchor, threshold):
        raise RuntimeError("statement timeout")


class TestRunLayerThinning:
    """Test the background task that thins a stored layer."""

    def setup_method(self):
        self.run = SimpleNamespace(status="pending", progress_percent=0)
        self.session = Mock()
        self.session.get.return_value = self.run

    def _store(self, cls):
        return cls.from_records(SCENARIO_POINTS)

    @patch('py_thin.api.main.db')
    def test_completed_run(self, mock_db):
        mock_db.get_session.return_value.__enter__.return_value = self.session
        store = self._store(CountingStore)

        with patch('py_thin.api.main.PostGISPointStore', return_value=store):
            run_layer_thinning(uuid.uuid4(), "wells", ThinningOptions(threshold=1.0))

        assert self.run.status == "completed"
        assert self.run.points_before == 4
        assert self.run.points_removed == 2
        assert store.live_ids() == [1, 3]

    @patch('py_thin.api.main.db')
    def test_progress_committed_during_run(self, mock_db):
        mock_db.get_session.return_value.__enter__.return_value = self.session
        committed = []
        self.session.commit.side_effect = lambda: committed.append(self.run.progress_percent)

        with patch('py_thin.api.main.PostGISPointStore', return_value=self._store(CountingStore)):
            run_layer_thinning(
                uuid.uuid4(), "wells", ThinningOptions(threshold=1.0, progress_step=25)
            )

        # Start, one commit per crossed step, then completion
        assert committed == [0, 25, 50, 75, 100, 100]
        assert self.run.status == "completed"

    @patch('py_thin.api.main.db')
    def test_failed_run(self, mock_db):
        mock_db.get_session.return_value.__enter__.return_value = self.session

        with patch('py_thin.api.main.PostGISPointStore', return_value=self._store(FailingStore)):
            run_layer_thinning(uuid.uuid4(), "wells", ThinningOptions(threshold=1.0))

        assert self.run.status == "failed"
        assert "statement timeout" in self.run.error_message
