"""API tests for shared expenses."""

from decimal import Decimal

from django.contrib.auth import get_user_model
from django.test import TestCase
from rest_framework import status
from rest_framework.test import APIClient

from accounts.models import PushDevice
from django_project.test_constants import TEST_PASSWORD, TEST_TOKEN_A, TEST_TOKEN_B
from families.models import Family
from notifications import backends

from .models import Expense

User = get_user_model()


class ExpenseAPITests(TestCase):
    @classmethod
    def setUpTestData(cls):
        cls.alice = User.objects.create_user(
            username="alice", password=TEST_PASSWORD, first_name="Alice"
        )
        cls.bob = User.objects.create_user(
            username="bob", password=TEST_PASSWORD, first_name="Bob"
        )
        PushDevice.objects.create(user=cls.alice, token=TEST_TOKEN_A)
        PushDevice.objects.create(user=cls.bob, token=TEST_TOKEN_B)
        cls.family = Family.objects.create(name="Azoulay")
        cls.family.members.add(cls.alice, cls.bob)
        cls.url = f"/api/v1/families/{cls.family.pk}/expenses/"

    def setUp(self):
        backends.outbox.clear()
        self.client = APIClient()
        self.client.force_authenticate(user=self.alice)

    def test_create_expense_notifies_other_parent(self):
        with self.captureOnCommitCallbacks(execute=True):
            response = self.client.post(
                self.url,
                {"title": "Dance class", "amount": "220.00", "category": "activities"},
                format="json",
            )

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data["created_by"], self.alice.pk)
        self.assertEqual(response.data["currency"], "ILS")
        self.assertEqual(backends.outbox[0].tokens, (TEST_TOKEN_B,))
        self.assertEqual(backends.outbox[0].data["type"], "expense-created")

    def test_new_expense_must_be_pending(self):
        response = self.client.post(
            self.url, {"title": "x", "amount": "1", "status": "approved"}, format="json"
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_negative_amount_is_rejected(self):
        response = self.client.post(self.url, {"title": "x", "amount": "-5"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_other_parent_approves(self):
        expense = Expense.objects.create(
            family=self.family, title="Glasses", amount=Decimal("300"), created_by=self.alice
        )
        self.client.force_authenticate(user=self.bob)

        with self.captureOnCommitCallbacks(execute=True):
            response = self.client.patch(
                f"{self.url}{expense.pk}/", {"status": "approved"}, format="json"
            )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["updated_by"], self.bob.pk)
        self.assertEqual([m.data["type"] for m in backends.outbox], ["expense-approved"])
        self.assertEqual(backends.outbox[0].tokens, (TEST_TOKEN_A,))
        self.assertEqual(backends.outbox[0].body, "Bob approved Glasses (₪300.00)")

    def test_creator_cannot_approve_own_expense(self):
        expense = Expense.objects.create(
            family=self.family, title="Glasses", created_by=self.alice
        )
        response = self.client.patch(
            f"{self.url}{expense.pk}/", {"status": "approved"}, format="json"
        )
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_creator_can_mark_paid(self):
        expense = Expense.objects.create(
            family=self.family,
            title="Glasses",
            created_by=self.alice,
            status=Expense.Status.APPROVED,
        )
        with self.captureOnCommitCallbacks(execute=True):
            response = self.client.patch(
                f"{self.url}{expense.pk}/", {"status": "paid"}, format="json"
            )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(backends.outbox, [])

    def test_delete_expense(self):
        expense = Expense.objects.create(family=self.family, title="Oops", created_by=self.alice)
        response = self.client.delete(f"{self.url}{expense.pk}/")
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(Expense.objects.filter(pk=expense.pk).exists())

    def test_resolved_expense_cannot_return_to_pending(self):
        for resolved in (Expense.Status.APPROVED, Expense.Status.REJECTED):
            with self.subTest(status=resolved):
                expense = Expense.objects.create(
                    family=self.family, title="Shoes", created_by=self.alice, status=resolved
                )
                response = self.client.patch(
                    f"{self.url}{expense.pk}/", {"status": "pending"}, format="json"
                )
                self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
                expense.refresh_from_db()
                self.assertEqual(expense.status, resolved)

    def test_approval_is_notified_once(self):
        expense = Expense.objects.create(
            family=self.family, title="Glasses", amount=Decimal("300"), created_by=self.alice
        )
        detail = f"{self.url}{expense.pk}/"

        self.client.force_authenticate(user=self.bob)
        with self.captureOnCommitCallbacks(execute=True):
            first = self.client.patch(detail, {"status": "approved"}, format="json")
        self.client.force_authenticate(user=self.alice)
        with self.captureOnCommitCallbacks(execute=True):
            reopened = self.client.patch(detail, {"status": "pending"}, format="json")
        self.client.force_authenticate(user=self.bob)
        with self.captureOnCommitCallbacks(execute=True):
            again = self.client.patch(detail, {"status": "approved"}, format="json")

        self.assertEqual(
            [first.status_code, reopened.status_code, again.status_code],
            [status.HTTP_200_OK, status.HTTP_400_BAD_REQUEST, status.HTTP_200_OK],
        )
        self.assertEqual([m.data["type"] for m in backends.outbox], ["expense-approved"])

    def test_rejected_expense_cannot_be_paid(self):
        expense = Expense.objects.create(
            family=self.family,
            title="Shoes",
            created_by=self.alice,
            status=Expense.Status.REJECTED,
        )
        response = self.client.patch(
            f"{self.url}{expense.pk}/", {"status": "paid"}, format="json"
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_editing_title_keeps_status(self):
        expense = Expense.objects.create(
            family=self.family,
            title="Shoes",
            created_by=self.alice,
            status=Expense.Status.APPROVED,
        )
        response = self.client.patch(
            f"{self.url}{expense.pk}/",
            {"title": "Winter shoes", "status": "approved"},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
