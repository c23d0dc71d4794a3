import unittest

from fleet_maintenance.core.taxonomy import TaxonomyStore, build_tree, flatten
from fleet_maintenance.schemas.maintenance_type import MaintenanceTypeNode
from fleet_maintenance.utils.exceptions import (
    HasChildrenException,
    ParentNotFoundException,
    CyclicParentException,
    NotFoundException,
    InvalidFieldException,
)


def node(node_id, type_name, parent_id=None, level=0, path=None):
    return MaintenanceTypeNode(id=node_id, type=type_name, parent_id=parent_id, level=level, path=path)


def walk(forest, parent=None):
    for n in forest:
        yield n, parent
        yield from walk(n.children, n)


class TestBuildTree(unittest.TestCase):

    def setUp(self):
        self.flat = [
            node("1", "Preventive"),
            node("2", "Oil Change", parent_id="1", level=1, path="Preventive"),
        ]

    def test_one_root_with_one_child(self):
        forest = build_tree(self.flat)
        self.assertEqual(len(forest), 1)
        self.assertEqual(forest[0].id, "1")
        self.assertEqual([c.id for c in forest[0].children], ["2"])

    def test_input_is_not_mutated(self):
        build_tree(self.flat)
        self.assertEqual(self.flat[0].children, [])

    def test_dangling_parent_is_placed_at_root(self):
        flat = self.flat + [node("3", "Orphan", parent_id="missing", level=1, path="Gone")]
        forest = build_tree(flat)
        self.assertEqual([n.id for n in forest], ["1", "3"])

    def test_children_listed_before_parent_still_link(self):
        forest = build_tree(list(reversed(self.flat)))
        self.assertEqual([n.id for n in forest], ["1"])
        self.assertEqual(forest[0].children[0].id, "2")

    def test_parent_cycle_is_promoted_to_root(self):
        flat = self.flat + [node("a", "A", parent_id="b"), node("b", "B", parent_id="a")]
        ids = [n.id for n in flatten(build_tree(flat))]
        self.assertEqual(sorted(ids), ["1", "2", "a", "b"])


class TestFlatten(unittest.TestCase):

    def setUp(self):
        # Deliberately shuffled: grandchildren before parents, siblings interleaved
        self.flat = [
            node("4", "Filters", parent_id="2", level=2, path="Preventive/Engine"),
            node("2", "Engine", parent_id="1", level=1, path="Preventive"),
            node("5", "Corrective"),
            node("1", "Preventive"),
            node("3", "Brakes", parent_id="1", level=1, path="Preventive"),
            node("6", "Welding", parent_id="5", level=1, path="Corrective"),
        ]

    def test_pre_order(self):
        ids = [n.id for n in flatten(build_tree(self.flat))]
        # roots and siblings keep their input order
        self.assertEqual(ids, ["5", "6", "1", "2", "4", "3"])
        position = {i: p for p, i in enumerate(ids)}
        for n in self.flat:
            if n.parent_id:
                self.assertLess(position[n.parent_id], position[n.id])

    def test_is_permutation_without_children(self):
        flat = flatten(build_tree(self.flat))
        self.assertEqual(sorted(n.id for n in flat), sorted(n.id for n in self.flat))
        self.assertTrue(all(n.children == [] for n in flat))

    def test_round_trip_is_a_fixed_point(self):
        once = flatten(build_tree(self.flat))
        twice = flatten(build_tree(once))
        self.assertEqual(once, twice)

    def test_subtrees_are_contiguous(self):
        ids = [n.id for n in flatten(build_tree(self.flat))]
        start = ids.index("1")
        self.assertEqual(set(ids[start:start + 4]), {"1", "2", "3", "4"})


class TestTaxonomyStore(unittest.TestCase):

    def setUp(self):
        self.store = TaxonomyStore(user_id="user-1")
        self.preventive = self.store.create("Preventive", node_id="1")
        self.oil = self.store.create("Oil Change", parent_id="1", node_id="2")

    def test_create_computes_level_and_path(self):
        self.assertEqual((self.preventive.level, self.preventive.path), (0, None))
        self.assertEqual((self.oil.level, self.oil.path), (1, "Preventive"))
        filter_node = self.store.create("Filter", parent_id="2")
        self.assertEqual((filter_node.level, filter_node.path), (2, "Preventive/Oil Change"))
        self.assertEqual(filter_node.user_id, "user-1")

    def test_create_rejects_unknown_parent(self):
        with self.assertRaises(ParentNotFoundException):
            self.store.create("Lonely", parent_id="nope")
        self.assertEqual(len(self.store), 2)

    def test_create_rejects_blank_type(self):
        with self.assertRaises(InvalidFieldException):
            self.store.create("   ")

    def test_delete_guard(self):
        with self.assertRaises(HasChildrenException):
            self.store.delete("1")
        self.assertIn("1", self.store)

        self.store.delete("2")
        self.store.delete("1")
        self.assertEqual(len(self.store), 0)

    def test_delete_unknown(self):
        with self.assertRaises(NotFoundException):
            self.store.delete("missing")

    def test_level_invariant_holds_in_built_tree(self):
        self.store.create("Filter", parent_id="2", node_id="3")
        self.store.create("Corrective", node_id="4")
        self.store.create("Welding", parent_id="4", node_id="5")
        for n, parent in walk(self.store.tree()):
            self.assertEqual(n.level, parent.level + 1 if parent else 0)

    def test_reparent_recomputes_descendants(self):
        self.store.create("Filter", parent_id="2", node_id="3")
        self.store.create("Scheduled", node_id="s")

        changed = self.store.update("2", parent_id="s")

        self.assertEqual([n.id for n in changed], ["2", "3"])
        self.assertEqual((self.store.get("2").level, self.store.get("2").path), (1, "Scheduled"))
        self.assertEqual((self.store.get("3").level, self.store.get("3").path), (2, "Scheduled/Oil Change"))

    def test_move_to_root(self):
        changed = self.store.update("2", parent_id=None)
        self.assertEqual(changed[0].level, 0)
        self.assertIsNone(changed[0].path)
        self.assertIsNone(self.store.get("2").parent_id)

    def test_rename_rewrites_descendant_paths(self):
        self.store.create("Filter", parent_id="2", node_id="3")
        self.store.update("1", type_name="Planned")
        self.assertEqual(self.store.get("2").path, "Planned")
        self.assertEqual(self.store.get("3").path, "Planned/Oil Change")

    def test_reparent_under_itself_or_descendant_is_rejected(self):
        self.store.create("Filter", parent_id="2", node_id="3")
        with self.assertRaises(CyclicParentException):
            self.store.update("1", parent_id="1")
        with self.assertRaises(CyclicParentException):
            self.store.update("1", parent_id="3")
        self.assertIsNone(self.store.get("1").parent_id)

    def test_reparent_to_unknown_parent(self):
        with self.assertRaises(ParentNotFoundException):
            self.store.update("2", parent_id="ghost")
        self.assertEqual(self.store.get("2").parent_id, "1")

    def test_update_without_changes(self):
        changed = self.store.update("2")
        self.assertEqual(changed, [self.store.get("2")])


if __name__ == "__main__":
    unittest.main()
