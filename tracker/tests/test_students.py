import itertools
from dataclasses import replace

from django.core.exceptions import ValidationError
from django.test import SimpleTestCase

from tracker.services.api_client import RemoteUserProfile
from tracker.students import RemoteSnapshot, StudentChanges, StudentInput, StudentRepository
from tracker.tests.fakes import NOW


def _input(name="Alice Johnson", handle="tourist"):
    return StudentInput(name=name, email="alice@example.com", phone="+1-555-0101", handle=handle)


class StudentRepositoryTests(SimpleTestCase):
    def setUp(self):
        counter = itertools.count(1)
        self.repo = StudentRepository(id_factory=lambda: str(next(counter)))

    def test_add_assigns_id_and_zeroed_ratings(self):
        record = self.repo.add(_input())

        self.assertEqual(record.id, "1")
        self.assertEqual(record.current_rating, 0)
        self.assertEqual(record.max_rating, 0)
        self.assertFalse(record.is_inactive)
        self.assertFalse(record.is_data_syncing)
        self.assertIsNone(record.last_data_sync)
        self.assertEqual(self.repo.get("1"), record)

    def test_add_skips_colliding_ids(self):
        ids = iter(["a", "a", "b"])
        repo = StudentRepository(id_factory=lambda: next(ids))

        first = repo.add(_input())
        second = repo.add(_input(name="Bob"))

        self.assertEqual((first.id, second.id), ("a", "b"))

    def test_list_is_a_snapshot(self):
        self.repo.add(_input())
        snapshot = self.repo.list()
        snapshot.clear()

        self.assertEqual(len(self.repo.list()), 1)

    def test_list_keeps_insertion_order(self):
        for name in ("Alice", "Bob", "Charlie"):
            self.repo.add(_input(name=name))

        self.assertEqual([r.name for r in self.repo.list()], ["Alice", "Bob", "Charlie"])

    def test_update_merges_fields(self):
        record = self.repo.add(_input())

        updated = self.repo.update(record.id, name="Alice J.", current_rating=1500)

        self.assertEqual(updated.name, "Alice J.")
        self.assertEqual(updated.current_rating, 1500)
        self.assertEqual(updated.handle, "tourist")
        self.assertEqual(record.name, "Alice Johnson")

    def test_update_missing_returns_none(self):
        self.assertIsNone(self.repo.update("nope", name="x"))

    def test_update_rejects_id_and_unknown_fields(self):
        record = self.repo.add(_input())

        with self.assertRaises(TypeError):
            self.repo.update(record.id, id="other")
        with self.assertRaises(TypeError):
            self.repo.update(record.id, favourite_colour="blue")

    def test_apply_refuses_to_change_id(self):
        record = self.repo.add(_input())

        with self.assertRaises(ValueError):
            self.repo.apply(record.id, lambda r: replace(r, id="other"))
        self.assertIsNotNone(self.repo.get(record.id))

    def test_remove(self):
        record = self.repo.add(_input())

        self.assertTrue(self.repo.remove(record.id))
        self.assertFalse(self.repo.remove(record.id))
        self.assertIsNone(self.repo.get(record.id))

    def test_activity_queries(self):
        active = self.repo.add(_input(name="Active"))
        inactive = self.repo.add(_input(name="Inactive"))
        self.repo.update(inactive.id, is_inactive=True)

        self.assertEqual([r.id for r in self.repo.active()], [active.id])
        self.assertEqual([r.id for r in self.repo.inactive()], [inactive.id])

    def test_average_rating(self):
        self.assertEqual(self.repo.average_rating(), 0)

        a = self.repo.add(_input(name="A"))
        b = self.repo.add(_input(name="B"))
        self.repo.update(a.id, current_rating=1500)
        self.repo.update(b.id, current_rating=1600)
        self.assertEqual(self.repo.average_rating(), 1550)

        self.repo.update(b.id, current_rating=1501)
        # 1500.5 rounds up
        self.assertEqual(self.repo.average_rating(), 1501)

    def test_rating_range_is_inclusive(self):
        ratings = {"A": 1199, "B": 1200, "C": 1600, "D": 1601}
        for name, rating in ratings.items():
            record = self.repo.add(_input(name=name))
            self.repo.update(record.id, current_rating=rating)

        names = [r.name for r in self.repo.in_rating_range(1200, 1600)]

        self.assertEqual(names, ["B", "C"])

    def test_mark_reminder_sent(self):
        record = self.repo.add(_input())

        updated = self.repo.mark_reminder_sent(record.id, NOW)

        self.assertEqual(updated.last_reminder_sent, NOW)

    def test_drop_remote_data_keeps_derived_fields(self):
        record = self.repo.add(_input())
        snapshot = RemoteSnapshot(profile=RemoteUserProfile(handle="tourist", rating=3900, max_rating=4000))
        self.repo.update(record.id, current_rating=3900, remote_data=snapshot)

        self.repo.drop_remote_data()

        stored = self.repo.get(record.id)
        self.assertIsNone(stored.remote_data)
        self.assertEqual(stored.current_rating, 3900)


class StudentInputTests(SimpleTestCase):
    def test_clean_strips_values(self):
        cleaned = StudentInput(
            name="  Alice ",
            email="alice@example.com ",
            phone=" +1-555 ",
            handle=" tourist",
        ).clean()

        self.assertEqual(cleaned, StudentInput(name="Alice", email="alice@example.com", phone="+1-555", handle="tourist"))

    def test_clean_allows_blank_phone(self):
        cleaned = StudentInput(name="Alice", email="alice@example.com", phone="", handle="tourist").clean()

        self.assertEqual(cleaned.phone, "")

    def test_clean_reports_every_invalid_field(self):
        with self.assertRaises(ValidationError) as ctx:
            StudentInput(name="", email="not-an-email", phone="", handle="a b").clean()

        self.assertEqual(set(ctx.exception.message_dict), {"name", "email", "handle"})

    def test_changes_only_include_given_fields(self):
        self.assertEqual(StudentChanges(handle="Petr").clean(), {"handle": "Petr"})
        self.assertEqual(StudentChanges().clean(), {})

    def test_changes_validate_handle(self):
        with self.assertRaises(ValidationError):
            StudentChanges(handle="x").clean()
