
import csv
import io
import unittest
from unittest.mock import MagicMock

from sysmlv2_explorer.element_cache import ElementCache
from sysmlv2_explorer.model_statistics import (build_relationship_map, collect_statistics, format_statistics,
                                               format_type_summary, requirements_from, traceability_csv,
                                               traceability_matrix, type_counts)


class TestModelStatistics(unittest.TestCase):

    def setUp(self):
        self.cache = ElementCache(MagicMock())
        self.cache.put("req", {"@id": "req", "@type": "RequirementUsage", "name": "MaxSpeed"})
        self.cache.put("motor", {"@id": "motor", "@type": "PartUsage", "name": "motor",
                                 "ownedFeature": [{"@id": "power"}, {"@id": "elsewhere"}]})
        self.cache.put("power", {"@id": "power", "@type": "PartUsage", "name": "power"})
        self.cache.put("sat", {"@id": "sat", "@type": "SatisfyRequirementUsage", "name": "sat",
                               "satisfiedRequirement": {"@id": "req"}, "source": [{"@id": "req"}]})

    def test_type_counts_most_frequent_first(self):
        counts = type_counts([element for _, element in self.cache.items()])
        self.assertEqual(counts[0], ("PartUsage", 2))
        self.assertEqual(len(counts), 3)

    def test_collect_statistics(self):
        stats = collect_statistics(self.cache)

        self.assertEqual(stats['total_elements'], 4)
        self.assertEqual(stats['loaded_nodes'], 0)
        self.assertEqual(stats['unique_types'], 3)
        self.assertIn("Total Elements Cached: 4", format_statistics(stats, "proj1234567", "commit12345"))

    def test_relationship_map_only_links_cached_targets(self):
        relationship_map = build_relationship_map(self.cache)

        self.assertEqual(relationship_map["motor"], {"power": "ownedFeature"})
        self.assertEqual(relationship_map["sat"], {"req": "source,satisfiedRequirement"})
        self.assertEqual(relationship_map["req"], {})

    def test_traceability_matrix(self):
        matrix = traceability_matrix(self.cache)

        ids = [row['id'] for row in matrix['rows']]
        self.assertEqual(ids, ["motor", "power", "req", "sat"])
        self.assertEqual(matrix['cells'][0][1], "ownedFeature")
        self.assertIsNone(matrix['cells'][1][0])

    def test_traceability_matrix_limits(self):
        matrix = traceability_matrix(self.cache, max_types=1, per_type=1)
        self.assertEqual([row['id'] for row in matrix['rows']], ["motor"])

    def test_traceability_csv(self):
        rows = list(csv.reader(io.StringIO(traceability_csv(traceability_matrix(self.cache)))))

        self.assertEqual(rows[0], ["", "motor", "power", "MaxSpeed", "sat"])
        self.assertEqual(rows[1][2], "ownedFeature")

    def test_requirements_and_summary(self):
        elements = [element for _, element in self.cache.items()]

        self.assertEqual([el['@id'] for el in requirements_from(elements)], ["req", "sat"])
        self.assertIn("RequirementUsage", format_type_summary(elements))


if __name__ == '__main__':
    unittest.main()
