"""
Unit tests for fixed-radius greedy geo-clustering.
"""

import numpy as np
import pytest

from fieldmap.clustering.base import load_clustering_method
from fieldmap.clustering.greedy_radius import GreedyRadiusClusterer, haversine_distance
from fieldmap.clustering.placemarks import build_placemarks, cluster_placemarks
from fieldmap.field_data.models import QualityGrade


@pytest.fixture
def clusterer():
    return GreedyRadiusClusterer({'algorithm': 'greedy_radius', 'params': {'radius_m': 100}})


class TestHaversine:
    """Tests for great-circle distances."""

    def test_zero_distance(self):
        distances = haversine_distance(10.0, 20.0, np.array([10.0]), np.array([20.0]))
        assert distances[0] == pytest.approx(0.0)

    def test_one_degree_latitude(self):
        distances = haversine_distance(0.0, 0.0, np.array([1.0]), np.array([0.0]))
        assert distances[0] == pytest.approx(111_195, rel=1e-3)

    def test_vectorized(self):
        distances = haversine_distance(0.0, 0.0, np.array([0.0, 0.0]), np.array([1.0, 2.0]))
        assert distances.shape == (2,)
        assert distances[1] == pytest.approx(2 * distances[0], rel=1e-6)


class TestGreedyRadiusClusterer:
    """Tests for GreedyRadiusClusterer.cluster."""

    def test_empty_input(self, clusterer):
        labels, stats = clusterer.cluster(np.empty((0, 2)))

        assert len(labels) == 0
        assert stats['n_clusters'] == 0
        assert stats['cluster_sizes'] == {}

    def test_nearby_points_share_a_cluster(self, clusterer):
        features = np.array([
            [37.7749, -122.4194],
            [37.77517, -122.4194],
            [37.7849, -122.4194],
        ])

        labels, stats = clusterer.cluster(features)

        assert labels.tolist() == [0, 0, 1]
        assert stats['n_clusters'] == 2
        assert stats['cluster_sizes'] == {0: 2, 1: 1}

    def test_every_point_assigned_exactly_once(self, clusterer):
        rng = np.random.default_rng(7)
        features = np.column_stack([
            40.0 + rng.uniform(0, 0.01, 50),
            -75.0 + rng.uniform(0, 0.01, 50),
        ])

        labels, stats = clusterer.cluster(features)

        assert (labels >= 0).all()
        assert sum(stats['cluster_sizes'].values()) == 50

    def test_members_within_radius_of_seed(self, clusterer):
        rng = np.random.default_rng(11)
        features = np.column_stack([
            51.5 + rng.uniform(0, 0.005, 30),
            -0.12 + rng.uniform(0, 0.005, 30),
        ])

        labels, stats = clusterer.cluster(features)

        for label in range(stats['n_clusters']):
            members = np.flatnonzero(labels == label)
            seed = members[0]
            distances = haversine_distance(
                features[seed, 0], features[seed, 1],
                features[members, 0], features[members, 1],
            )
            assert (distances <= 100.0 + 1e-6).all()

    def test_zero_radius_gives_singletons_for_distinct_points(self):
        clusterer = GreedyRadiusClusterer({'params': {'radius_m': 0}})
        features = np.array([[1.0, 1.0], [1.0001, 1.0], [1.0, 1.0]])

        labels, _ = clusterer.cluster(features)

        assert labels.tolist() == [0, 1, 0]

    def test_preferred_member_becomes_representative(self, clusterer):
        features = np.array([[0.0, 0.0], [0.0, 0.0001], [0.0, 0.0002]])
        preferred = np.array([False, False, True])

        _, stats = clusterer.cluster(features, preferred)

        assert stats['representatives'] == {0: 2}

    def test_seed_is_representative_without_preferred(self, clusterer):
        features = np.array([[0.0, 0.0], [0.0, 0.0001]])

        _, stats = clusterer.cluster(features)

        assert stats['representatives'] == {0: 0}

    def test_negative_radius_rejected(self):
        with pytest.raises(ValueError, match="non-negative"):
            GreedyRadiusClusterer({'params': {'radius_m': -1}})


class TestLoadClusteringMethod:
    """Tests for the clustering factory."""

    def test_greedy_radius(self):
        method = load_clustering_method({'algorithm': 'greedy_radius', 'params': {'radius_m': 25}})

        assert isinstance(method, GreedyRadiusClusterer)
        assert method.radius_m == 25.0

    def test_unknown_algorithm(self):
        with pytest.raises(ValueError, match="Unknown clustering algorithm"):
            load_clustering_method({'algorithm': 'kmeans'})


class TestPlacemarks:
    """Tests for placemark construction and placemark clustering."""

    def test_images_without_gps_skipped(self, make_extracted):
        extracted = [
            make_extracted('a.jpg', 1.0, 2.0),
            make_extracted('nogps.jpg'),
            make_extracted('b.jpg', 1.5, 2.5),
        ]

        placemarks = build_placemarks(extracted)

        assert [p.name for p in placemarks] == ['a.jpg', 'b.jpg']
        assert [p.id for p in placemarks] == ['placemark-0001', 'placemark-0002']
        assert placemarks[0].alt == 0.0

    def test_quality_styles(self, make_extracted):
        extracted = [
            make_extracted('h.jpg', 1.0, 2.0, grade=QualityGrade.HIGH),
            make_extracted('l.jpg', 1.0, 2.0, grade=QualityGrade.LOW),
        ]

        assert [p.style_key for p in build_placemarks(extracted)] == ['highQuality', 'lowQuality']
        assert [p.style_key for p in build_placemarks(extracted, 'uniform')] == ['defaultStyle'] * 2

    def test_unknown_color_scheme(self, make_extracted):
        with pytest.raises(ValueError, match="Unknown color scheme"):
            build_placemarks([make_extracted('a.jpg', 1.0, 2.0)], 'rainbow')

    def test_three_site_scenario(self, make_extracted):
        placemarks = build_placemarks([
            make_extracted('a.jpg', 37.7749, -122.4194),
            make_extracted('b.jpg', 37.77517, -122.4194),
            make_extracted('c.jpg', 37.7849, -122.4194),
        ])

        clusters = cluster_placemarks(placemarks, 100.0)

        assert [c.id for c in clusters] == ['cluster-0001', 'cluster-0002']
        assert [c.size for c in clusters] == [2, 1]
        assert clusters[0].center_lat == pytest.approx(37.7749)
        assert clusters[0].radius_m == 100.0

    def test_clusters_partition_placemarks(self, make_extracted):
        placemarks = build_placemarks([
            make_extracted(f"p{i}.jpg", 10.0 + i * 0.0005, 20.0) for i in range(12)
        ])

        clusters = cluster_placemarks(placemarks, 120.0)

        member_ids = [m.id for c in clusters for m in c.members]
        assert sorted(member_ids) == sorted(p.id for p in placemarks)
        assert len(member_ids) == len(set(member_ids))

    def test_high_quality_member_represents_cluster(self, make_extracted):
        placemarks = build_placemarks([
            make_extracted('seed.jpg', 5.0, 5.0, grade=QualityGrade.LOW),
            make_extracted('best.jpg', 5.0001, 5.0, grade=QualityGrade.HIGH),
        ])

        clusters = cluster_placemarks(placemarks, 100.0)

        assert clusters[0].representative.name == 'best.jpg'

    def test_rerun_gives_identical_clusters(self, make_extracted):
        placemarks = build_placemarks([
            make_extracted(f"p{i}.jpg", 10.0 + i * 0.0007, 20.0) for i in range(8)
        ])

        first = cluster_placemarks(placemarks, 100.0)
        second = cluster_placemarks(placemarks, 100.0)

        assert [(c.id, [m.id for m in c.members]) for c in first] == \
            [(c.id, [m.id for m in c.members]) for c in second]

    def test_empty_placemarks(self):
        assert cluster_placemarks([], 100.0) == []
