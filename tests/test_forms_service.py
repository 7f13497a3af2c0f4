from __future__ import annotations

import unittest
from unittest.mock import patch
from uuid import uuid4

from app.errors import NotFound, ValidationError
from app.models import FieldType, FormField, FormResponse, FormSubmission, FormTemplate, Role, User
from app.schemas import FormSubmitRequest
from app.services.forms import missing_required_keys, submit_form


class _FakeFormsDB:
    def __init__(self, *scalar_results: object | None) -> None:
        self.added: list[object] = []
        self.commits = 0
        self.scalar_results = list(scalar_results)

    def scalar(self, _statement):  # type: ignore[no-untyped-def]
        if self.scalar_results:
            return self.scalar_results.pop(0)
        return "att-1"

    def add(self, obj) -> None:  # type: ignore[no-untyped-def]
        self.added.append(obj)

    def add_all(self, objs) -> None:  # type: ignore[no-untyped-def]
        self.added.extend(objs)

    def flush(self) -> None:
        for obj in self.added:
            if getattr(obj, "id", None) is None:
                obj.id = str(uuid4())

    def commit(self) -> None:
        self.commits += 1

    def refresh(self, _obj) -> None:  # type: ignore[no-untyped-def]
        return None


def _field(key: str, *, required: bool) -> FormField:
    return FormField(
        id=f"field-{key}",
        template_id="tpl-1",
        label=key.replace("_", " ").title(),
        field_key=key,
        field_type=FieldType.TEXT,
        is_required=required,
        sort_order=0,
    )


def _template() -> FormTemplate:
    template = FormTemplate(
        id="tpl-1",
        org_id="org-1",
        activity_id="act-1",
        name="Outlet visit",
        is_active=True,
    )
    template.fields.extend(
        [
            _field("outlet_name", required=True),
            _field("shelf_photo", required=True),
            _field("remarks", required=False),
        ]
    )
    return template


def _executive() -> User:
    return User(id="exec-1", org_id="org-1", name="Asha", role=Role.EXECUTIVE, is_active=True)


class FormSubmissionTests(unittest.TestCase):
    def test_missing_required_keys_preserve_field_order(self) -> None:
        fields = _template().fields
        self.assertEqual(missing_required_keys(fields, ["remarks"]), ["outlet_name", "shelf_photo"])
        self.assertEqual(missing_required_keys(fields, ["shelf_photo", "outlet_name"]), [])

    def test_submission_without_required_fields_is_rejected(self) -> None:
        payload = FormSubmitRequest(
            template_id="tpl-1",
            responses=[{"field_key": "outlet_name", "value_text": "Sri Ganesh Stores"}],
        )
        with patch("app.services.forms.get_template", return_value=_template()):
            with self.assertRaises(ValidationError) as ctx:
                submit_form(_FakeFormsDB(), _executive(), payload)  # type: ignore[arg-type]
        self.assertEqual(ctx.exception.code, "MISSING_REQUIRED_FIELDS")
        self.assertEqual(ctx.exception.details, {"missing": ["shelf_photo"]})

    def test_unknown_field_keys_are_rejected(self) -> None:
        payload = FormSubmitRequest(
            template_id="tpl-1",
            responses=[
                {"field_key": "outlet_name", "value_text": "Sri Ganesh Stores"},
                {"field_key": "shelf_photo", "photo_url": "https://cdn.example/a.jpg"},
                {"field_key": "price", "value_number": 10},
            ],
        )
        with patch("app.services.forms.get_template", return_value=_template()):
            with self.assertRaises(ValidationError) as ctx:
                submit_form(_FakeFormsDB(), _executive(), payload)  # type: ignore[arg-type]
        self.assertEqual(ctx.exception.code, "UNKNOWN_FIELDS")

    def test_valid_submission_links_attendance_and_responses(self) -> None:
        fake_db = _FakeFormsDB()
        payload = FormSubmitRequest(
            template_id="tpl-1",
            is_converted=True,
            responses=[
                {"field_key": "outlet_name", "value_text": "Sri Ganesh Stores"},
                {"field_key": "shelf_photo", "photo_url": "https://cdn.example/a.jpg"},
            ],
        )
        with patch("app.services.forms.get_template", return_value=_template()):
            submission = submit_form(fake_db, _executive(), payload)  # type: ignore[arg-type]

        self.assertIsInstance(submission, FormSubmission)
        self.assertEqual(submission.attendance_id, "att-1")
        self.assertEqual(submission.activity_id, "act-1")
        responses = [item for item in fake_db.added if isinstance(item, FormResponse)]
        self.assertEqual([item.field_id for item in responses], ["field-outlet_name", "field-shelf_photo"])
        self.assertTrue(all(item.submission_id == submission.id for item in responses))


    def _complete_payload(self, activity_id: str) -> FormSubmitRequest:
        return FormSubmitRequest(
            template_id="tpl-1",
            activity_id=activity_id,
            responses=[
                {"field_key": "outlet_name", "value_text": "Sri Ganesh Stores"},
                {"field_key": "shelf_photo", "photo_url": "https://cdn.example/a.jpg"},
            ],
        )

    def test_explicit_activity_of_same_org_overrides_template(self) -> None:
        fake_db = _FakeFormsDB("act-2")
        with patch("app.services.forms.get_template", return_value=_template()):
            submission = submit_form(fake_db, _executive(), self._complete_payload("act-2"))  # type: ignore[arg-type]

        self.assertEqual(submission.activity_id, "act-2")
        self.assertEqual(submission.attendance_id, "att-1")

    def test_activity_outside_org_is_not_found(self) -> None:
        fake_db = _FakeFormsDB(None)
        with patch("app.services.forms.get_template", return_value=_template()):
            with self.assertRaises(NotFound) as ctx:
                submit_form(fake_db, _executive(), self._complete_payload("act-other-org"))  # type: ignore[arg-type]

        self.assertEqual(ctx.exception.code, "ACTIVITY_NOT_FOUND")
        self.assertEqual(fake_db.added, [])
        self.assertEqual(fake_db.commits, 0)


if __name__ == "__main__":
    unittest.main()
