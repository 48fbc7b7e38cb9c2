import unittest

from tripmarket import home
from tripmarket.db import InMemoryDbClient
from tripmarket.errors import NotFoundError, ValidationError
from tripmarket.filters import eq


def _banner(**overrides):
    data = {"title": "Spring sale", "image_url": "https://cdn.test/b.jpg"}
    data.update(overrides)
    return data


class HomeContentTests(unittest.TestCase):
    def setUp(self):
        self.db = InMemoryDbClient()

    def test_new_rows_go_to_the_end(self):
        first = home.create_item(self.db, home.BANNERS, _banner(title="First"))
        second = home.create_item(self.db, home.BANNERS, _banner(title="Second", link_url=""))
        self.assertEqual((first["sort_order"], second["sort_order"]), (0, 1))
        self.assertEqual(first["banner_type"], "travel")
        self.assertIsNone(second["link_url"])

    def test_home_content_splits_banners_and_hides_inactive(self):
        home.create_item(self.db, home.BANNERS, _banner(title="Travel"))
        home.create_item(self.db, home.BANNERS, _banner(title="Legacy", banner_type="normal"))
        home.create_item(self.db, home.BANNERS, _banner(title="Groups", banner_type="enterprise"))
        home.create_item(self.db, home.BANNERS, _banner(title="Hidden", is_active=False))
        home.create_item(
            self.db, home.DESTINATIONS, {"name": "Sanya", "image_url": "https://cdn.test/s.jpg"}
        )

        content = home.home_content(self.db)
        self.assertEqual([b["title"] for b in content["banners"]], ["Travel", "Legacy"])
        self.assertEqual([b["title"] for b in content["enterprise_banners"]], ["Groups"])
        self.assertEqual([d["name"] for d in content["destinations"]], ["Sanya"])
        self.assertEqual(len(home.list_items(self.db, home.BANNERS, active_only=False)), 4)

    def test_move_swaps_neighbours_and_stops_at_the_ends(self):
        ids = [
            home.create_item(self.db, home.DESTINATIONS, {"name": name, "image_url": "x.jpg"})["id"]
            for name in ("Sanya", "Lijiang", "Harbin")
        ]
        moved = home.move_item(self.db, home.DESTINATIONS, ids[2], "up")
        self.assertEqual([row["name"] for row in moved], ["Sanya", "Harbin", "Lijiang"])
        self.assertEqual([row["sort_order"] for row in moved], [0, 1, 2])

        unchanged = home.move_item(self.db, home.DESTINATIONS, ids[0], "up")
        self.assertEqual([row["name"] for row in unchanged], ["Sanya", "Harbin", "Lijiang"])
        stored = home.list_items(self.db, home.DESTINATIONS)
        self.assertEqual([row["name"] for row in stored], ["Sanya", "Harbin", "Lijiang"])

    def test_move_renumbers_tied_rows(self):
        for name in ("A", "B"):
            row = home.create_item(self.db, home.BANNERS, _banner(title=name))
            self.db.update(home.BANNERS, {"id": eq(row["id"])}, {"sort_order": 0})
        second = home.list_items(self.db, home.BANNERS)[1]
        moved = home.move_item(self.db, home.BANNERS, second["id"], "up")
        self.assertEqual([row["title"] for row in moved], ["B", "A"])
        self.assertEqual([row["sort_order"] for row in moved], [0, 1])

    def test_validation_and_missing_rows(self):
        with self.assertRaises(ValidationError):
            home.create_item(self.db, home.BANNERS, _banner(image_url=" "))
        with self.assertRaises(ValidationError):
            home.create_item(self.db, home.BANNERS, _banner(banner_type="popup"))
        with self.assertRaises(ValidationError):
            home.create_item(self.db, home.DESTINATIONS, {"name": "X", "image_url": "x", "title": "y"})
        banner = home.create_item(self.db, home.BANNERS, _banner())
        with self.assertRaises(ValidationError):
            home.update_item(self.db, home.BANNERS, banner["id"], {"is_active": None})
        with self.assertRaises(ValidationError):
            home.move_item(self.db, home.BANNERS, banner["id"], "sideways")
        with self.assertRaises(NotFoundError):
            home.update_item(self.db, home.BANNERS, "missing", {"title": "New"})
        with self.assertRaises(NotFoundError):
            home.delete_item(self.db, home.BANNERS, "missing")

        updated = home.update_item(self.db, home.BANNERS, banner["id"], {"is_active": False})
        self.assertFalse(updated["is_active"])
        home.delete_item(self.db, home.BANNERS, banner["id"])
        self.assertEqual(home.list_items(self.db, home.BANNERS, active_only=False), [])


if __name__ == "__main__":
    unittest.main()
