"""
Data loading and preprocessing tests.
"""

import numpy as np
import pytest


class TestLoadCSV:
    """CSV ingestion."""

    def test_label_last_column_with_header(self, tmp_path):
        from services.data.dataset import load_csv

        path = tmp_path / "data.csv"
        path.write_text("a,b,label\n1.0,2.0,0\n3.0,4.0,1\n5.0,6.0,1\n")

        dataset = load_csv(path)
        np.testing.assert_array_equal(dataset.features, [[1, 2], [3, 4], [5, 6]])
        np.testing.assert_array_equal(dataset.labels, [0, 1, 1])
        assert dataset.feature_names == ["a", "b"]
        assert dataset.num_rows == 3
        assert dataset.num_features == 2

    def test_label_first_column_without_header(self, tmp_path):
        from services.data.dataset import load_csv

        path = tmp_path / "data.csv"
        path.write_text("1,0.5,0.25\n0,1.5,2.5\n")

        dataset = load_csv(path, label_column=0, has_header=False)
        np.testing.assert_array_equal(dataset.labels, [1, 0])
        np.testing.assert_array_equal(dataset.features, [[0.5, 0.25], [1.5, 2.5]])
        assert dataset.feature_names == []

    def test_single_row(self, tmp_path):
        from services.data.dataset import load_csv

        path = tmp_path / "one.csv"
        path.write_text("x,y\n2.0,1\n")

        dataset = load_csv(path)
        assert dataset.features.shape == (1, 1)


class TestStandardScaler:
    """z-score standardization."""

    def test_zero_mean_unit_variance(self):
        from services.data.dataset import StandardScaler

        X = np.array([[1.0, 10.0], [2.0, 20.0], [3.0, 30.0], [4.0, 40.0]])
        Z = StandardScaler().fit_transform(X)
        np.testing.assert_array_almost_equal(Z.mean(axis=0), [0.0, 0.0])
        np.testing.assert_array_almost_equal(Z.std(axis=0), [1.0, 1.0])

    def test_constant_column_is_centred_only(self):
        from services.data.dataset import StandardScaler

        X = np.array([[5.0, 1.0], [5.0, 3.0]])
        Z = StandardScaler().fit_transform(X)
        np.testing.assert_array_equal(Z[:, 0], [0.0, 0.0])
        np.testing.assert_array_almost_equal(Z[:, 1], [-1.0, 1.0])

    def test_transform_requires_fit(self):
        from services.data.dataset import StandardScaler

        with pytest.raises(RuntimeError):
            StandardScaler().transform(np.ones((2, 2)))


class TestDatasetValidation:
    """Shape checks before encryption."""

    def test_valid(self):
        from services.data.dataset import Dataset

        Dataset(features=np.zeros((4, 2)), labels=[0, 1, 0, 1]).validate(slot_count=16)

    @pytest.mark.parametrize("features,labels", [
        (np.zeros((3, 2)), [0, 1]),
        (np.zeros((0, 2)), []),
        (np.zeros((2, 2)), [0, 2]),
    ])
    def test_invalid(self, features, labels):
        from services.data.dataset import Dataset
        from services.fhe.errors import DimensionMismatch

        with pytest.raises(DimensionMismatch):
            Dataset(features=features, labels=labels).validate()

    def test_slot_capacity(self):
        from services.data.dataset import Dataset
        from services.fhe.errors import DimensionMismatch

        dataset = Dataset(features=np.zeros((9, 2)), labels=np.zeros(9))
        dataset.validate(slot_count=18)
        with pytest.raises(DimensionMismatch):
            dataset.validate(slot_count=16)


class TestSyntheticData:
    """Synthetic linearly separable data."""

    def test_shape_and_labels(self):
        from services.data.dataset import make_linearly_separable

        dataset = make_linearly_separable(n_rows=20, n_features=3, seed=1)
        assert dataset.features.shape == (20, 3)
        assert set(np.unique(dataset.labels)) <= {0.0, 1.0}
        dataset.validate()

    def test_deterministic(self):
        from services.data.dataset import make_linearly_separable

        a = make_linearly_separable(seed=3)
        b = make_linearly_separable(seed=3)
        np.testing.assert_array_equal(a.features, b.features)
        np.testing.assert_array_equal(a.labels, b.labels)

    def test_separable_by_plaintext_model(self):
        from services.data.dataset import make_linearly_separable
        from services.training.plaintext import PlaintextLogisticRegression

        dataset = make_linearly_separable(n_rows=40, seed=5)
        model = PlaintextLogisticRegression(learning_rate=1.0, iterations=200, degree=None)
        model.fit(dataset.features, dataset.labels)
        assert model.accuracy(dataset.features, dataset.labels) >= 0.95
