"""Tests for analysis response normalization."""

import itertools

from git_archaeologist.analysis import AnalysisView, NoiseView, normalize


def _ids(view):
    return [cluster.id for cluster in view.clusters]


class TestOrdering:
    def test_explicit_size_outranks_message_count(self):
        view = normalize({"clusters": {"0": ["a", "b"], "1": ["c"]}, "cluster_sizes": {"1": 5}})
        assert _ids(view) == [1, 0]
        assert view.clusters[0].size == 5
        assert view.clusters[1].size == 2

    def test_ties_broken_by_confidence_then_id(self):
        payload = {
            "clusters": {"3": ["a"], "1": ["b"], "2": ["c"], "0": ["d"]},
            "cluster_avg_prob": {"3": 0.9, "1": 0.5, "2": 0.5},
        }
        assert _ids(normalize(payload)) == [3, 1, 2, 0]

    def test_sort_law_holds_for_every_adjacent_pair(self):
        payload = {
            "clusters": {str(i): ["m"] * (i % 3 + 1) for i in range(9)},
            "cluster_avg_prob": {str(i): (i % 4) / 4 for i in range(9)},
        }
        view = normalize(payload)
        for a, b in zip(view.clusters, view.clusters[1:]):
            assert a.size > b.size or (a.size == b.size and a.avg_confidence >= b.avg_confidence)

    def test_order_independent_of_key_order(self):
        base = {"0": ["a"], "1": ["b", "c"], "2": ["d"]}
        orders = set()
        for keys in itertools.permutations(base):
            orders.add(tuple(_ids(normalize({"clusters": {k: base[k] for k in keys}}))))
        assert orders == {(1, 0, 2)}

    def test_normalize_is_deterministic(self):
        payload = {"clusters": {"0": ["a"], "1": ["b"]}, "cluster_titles": {"0": "Docs"}}
        assert normalize(payload) == normalize(payload)


class TestFallbacks:
    def test_missing_optional_fields_use_defaults(self):
        cluster = normalize({"clusters": {"4": ["fix bug", "fix typo"]}}).clusters[0]
        assert cluster.id == 4
        assert cluster.messages == ("fix bug", "fix typo")
        assert cluster.size == 2
        assert cluster.avg_confidence == 0.0
        assert cluster.keywords == ()
        assert cluster.title == "Topic #4"

    def test_title_prefers_explicit_title(self):
        payload = {
            "clusters": {"0": ["a"]},
            "cluster_titles": {"0": "Dependency bumps"},
            "cluster_keywords": {"0": ["deps", "bump"]},
        }
        assert normalize(payload).clusters[0].title == "Dependency bumps"

    def test_blank_title_falls_back_to_keywords(self):
        payload = {
            "clusters": {"0": ["a"]},
            "cluster_titles": {"0": "  "},
            "cluster_keywords": {"0": ["deps", "bump"]},
        }
        cluster = normalize(payload).clusters[0]
        assert cluster.title == "deps • bump"
        assert cluster.keywords == ("deps", "bump")

    def test_labels_stand_in_for_missing_keywords(self):
        payload = {"clusters": {"2": ["a"]}, "cluster_labels": {"2": ["ci", "workflow"]}}
        cluster = normalize(payload).clusters[0]
        assert cluster.labels == ("ci", "workflow")
        assert cluster.keywords == ("ci", "workflow")
        assert cluster.title == "ci • workflow"

    def test_integer_keys_in_optional_maps_are_found(self):
        payload = {"clusters": {"7": ["a"]}, "cluster_sizes": {7: 12}, "cluster_avg_prob": {7: 0.75}}
        cluster = normalize(payload).clusters[0]
        assert cluster.size == 12
        assert cluster.avg_confidence == 0.75

    def test_uncoercible_values_fall_back(self):
        payload = {
            "clusters": {"0": ["a", "b", "c"]},
            "cluster_sizes": {"0": "many"},
            "cluster_avg_prob": {"0": None},
        }
        cluster = normalize(payload).clusters[0]
        assert cluster.size == 3
        assert cluster.avg_confidence == 0.0

    def test_non_list_messages_count_as_empty(self):
        cluster = normalize({"clusters": {"0": None}}).clusters[0]
        assert cluster.messages == ()
        assert cluster.size == 0


class TestMalformedInput:
    def test_non_integer_keys_are_skipped(self):
        view = normalize({"clusters": {"abc": ["x"], "1": ["y"]}})
        assert _ids(view) == [1]

    def test_duplicate_ids_are_kept_once(self):
        view = normalize({"clusters": {"1": ["a"], " 1": ["b"]}})
        assert _ids(view) == [1]

    def test_missing_or_invalid_clusters_yield_empty_view(self):
        assert normalize({}) == AnalysisView()
        assert normalize({"clusters": ["a", "b"]}).clusters == ()
        assert normalize(None) == AnalysisView()

    def test_empty_clusters_with_noise(self):
        view = normalize({"clusters": {}, "noise": ["x"], "noise_rate": 0.3})
        assert view.clusters == ()
        assert view.is_empty
        assert view.noise == NoiseView(messages=("x",), rate=0.3)


class TestNoise:
    def test_noise_absent_without_noise_field(self):
        assert normalize({"clusters": {"0": ["a"]}, "noise_rate": 0.5}).noise is None

    def test_null_noise_and_rate_default(self):
        assert normalize({"clusters": {}, "noise": None}).noise == NoiseView(messages=(), rate=0.0)
