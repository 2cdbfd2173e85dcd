"""Model and API tests for families."""

from django.contrib.auth import get_user_model
from django.core.cache import cache
from django.test import TestCase
from rest_framework import status
from rest_framework.test import APIClient

from django_project.test_constants import TEST_PASSWORD

from .cache_utils import get_family_member_ids, members_cache_key
from .models import Family

User = get_user_model()


class FamilyModelTests(TestCase):
    @classmethod
    def setUpTestData(cls):
        cls.alice = User.objects.create_user(username="alice", password=TEST_PASSWORD)
        cls.bob = User.objects.create_user(username="bob", password=TEST_PASSWORD)
        cls.stranger = User.objects.create_user(username="eve", password=TEST_PASSWORD)
        cls.family = Family.objects.create(name="Biton")
        cls.family.members.add(cls.alice, cls.bob)

    def test_member_ids(self):
        self.assertCountEqual(self.family.member_ids(), [self.alice.pk, self.bob.pk])

    def test_has_member(self):
        self.assertTrue(self.family.has_member(self.alice))
        self.assertFalse(self.family.has_member(self.stranger))
        self.assertFalse(self.family.has_member(None))

    def test_for_user(self):
        Family.objects.create(name="Other").members.add(self.stranger)
        self.assertEqual(list(Family.for_user(self.alice)), [self.family])

    def test_str(self):
        self.assertEqual(str(self.family), "Biton")
        unnamed = Family.objects.create()
        self.assertEqual(str(unnamed), f"Family #{unnamed.pk}")


class FamilyAPITests(TestCase):
    @classmethod
    def setUpTestData(cls):
        cls.alice = User.objects.create_user(username="alice", password=TEST_PASSWORD)
        cls.bob = User.objects.create_user(username="bob", password=TEST_PASSWORD)
        cls.stranger = User.objects.create_user(username="eve", password=TEST_PASSWORD)
        cls.family = Family.objects.create(name="Biton")
        cls.family.members.add(cls.alice, cls.bob)

    def setUp(self):
        self.client = APIClient()
        self.client.force_authenticate(user=self.alice)

    def test_list_own_families(self):
        Family.objects.create(name="Not mine").members.add(self.stranger)
        response = self.client.get("/api/v1/families/")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([f["name"] for f in response.data["results"]], ["Biton"])
        self.assertEqual(
            response.data["results"][0]["member_ids"],
            sorted([self.alice.pk, self.bob.pk]),
        )

    def test_retrieve_other_family_is_not_found(self):
        self.client.force_authenticate(user=self.stranger)
        response = self.client.get(f"/api/v1/families/{self.family.pk}/")
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_nested_records_require_membership(self):
        self.client.force_authenticate(user=self.stranger)
        response = self.client.get(f"/api/v1/families/{self.family.pk}/events/")
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_nested_records_of_missing_family(self):
        response = self.client.get("/api/v1/families/999999/expenses/")
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)


class FamilyMembersCacheTests(TestCase):
    @classmethod
    def setUpTestData(cls):
        cls.alice = User.objects.create_user(username="alice", password=TEST_PASSWORD)
        cls.bob = User.objects.create_user(username="bob", password=TEST_PASSWORD)
        cls.family = Family.objects.create(name="Levi")
        cls.family.members.add(cls.alice)

    def setUp(self):
        cache.clear()

    def test_member_ids_are_cached(self):
        self.assertEqual(get_family_member_ids(self.family.pk), [self.alice.pk])
        self.assertEqual(cache.get(members_cache_key(self.family.pk)), [self.alice.pk])

        with self.assertNumQueries(0):
            get_family_member_ids(self.family.pk)

    def test_adding_member_invalidates(self):
        get_family_member_ids(self.family.pk)
        self.family.members.add(self.bob)
        self.assertCountEqual(
            get_family_member_ids(self.family.pk), [self.alice.pk, self.bob.pk]
        )

    def test_reverse_membership_change_invalidates(self):
        get_family_member_ids(self.family.pk)
        self.alice.families.remove(self.family)
        self.assertEqual(get_family_member_ids(self.family.pk), [])

    def test_clearing_from_user_side_invalidates(self):
        get_family_member_ids(self.family.pk)
        self.alice.families.clear()
        self.assertIsNone(cache.get(members_cache_key(self.family.pk)))

    def test_missing_family_raises_and_is_not_cached(self):
        with self.assertRaises(Family.DoesNotExist):
            get_family_member_ids(999999)
        self.assertIsNone(cache.get(members_cache_key(999999)))
