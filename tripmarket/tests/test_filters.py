import unittest

from tripmarket.filters import (
    eq,
    ilike,
    in_,
    is_,
    matches,
    parse_filters,
    parse_order,
    sort_rows,
    to_query_params,
)


class FilterTests(unittest.TestCase):
    def test_helpers_format_postgrest_values(self):
        self.assertEqual(eq(True), "eq.true")
        self.assertEqual(is_(None), "is.null")
        self.assertEqual(in_(["a", "b"]), "in.(a,b)")
        self.assertEqual(ilike("hang"), "ilike.%hang%")

    def test_parse_rejects_bad_operators(self):
        with self.assertRaises(ValueError):
            parse_filters({"status": "approx.pending"})
        with self.assertRaises(ValueError):
            parse_filters({"status": "pending"})
        with self.assertRaises(ValueError):
            parse_filters({"read": "is.maybe"})

    def test_matching_rules(self):
        row = {"status": "approved", "price": 120.0, "read": False, "note": None, "title": "Hangzhou Tea"}
        self.assertTrue(matches(row, parse_filters({"status": eq("approved"), "price": ["gte.100", "lt.200"]})))
        self.assertTrue(matches(row, parse_filters({"read": is_(False), "note": is_(None)})))
        self.assertTrue(matches(row, parse_filters({"title": ilike("tea")})))
        self.assertTrue(matches(row, parse_filters({"status": in_(["pending", "approved"])})))
        # NULL never equals or differs from anything.
        self.assertFalse(matches(row, parse_filters({"note": "neq.x"})))
        self.assertFalse(matches(row, parse_filters({"note": "eq.null"})))

    def test_sort_puts_nulls_last(self):
        rows = [{"n": 2, "t": "b"}, {"n": None, "t": "a"}, {"n": 1, "t": "c"}, {"n": 2, "t": "a"}]
        ordered = sort_rows(rows, parse_order("n.desc,t.asc"))
        self.assertEqual([(r["n"], r["t"]) for r in ordered], [(2, "a"), (2, "b"), (1, "c"), (None, "a")])
        self.assertEqual(sort_rows(rows, parse_order("n"))[-1]["n"], None)

    def test_query_params_expand_lists(self):
        params = to_query_params({"travel_date": ["gte.2030-01-01", "lte.2030-02-01"], "status": "eq.approved"})
        self.assertEqual(
            params,
            [
                ("travel_date", "gte.2030-01-01"),
                ("travel_date", "lte.2030-02-01"),
                ("status", "eq.approved"),
            ],
        )


if __name__ == "__main__":
    unittest.main()
