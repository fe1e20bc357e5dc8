"""
Unit Tests for Form Validation & Normalization

Field definition normalization and submission normalization,
permissive and strict.
"""

import pytest

from core.models import Form
from services.form.validation import (
    normalize_field_definitions,
    normalize_settings,
    normalize_submission,
    normalize_theme,
    normalize_title,
    tag_value,
    validate_submission_envelope,
)
from utils.exceptions import InvalidFieldTypeError, InvalidInputError, MissingRequiredInputError


def _form(fields):
    return Form(id=1, owner_id=1, title="Survey", fields=fields, theme="default", settings={})


@pytest.fixture
def form():
    return _form([
        {"id": "name", "type": "text", "label": "Full name", "required": True, "options": [], "order": 0},
        {"id": "color", "type": "select", "label": "Color", "required": False,
         "options": ["Red", "Blue"], "order": 1},
        {"id": "age", "type": "number", "label": "Age", "required": False, "options": [],
         "validation": {"min": 0, "max": 120}, "order": 2},
        {"id": "tags", "type": "checkbox", "label": "Tags", "required": False,
         "options": ["a", "b", "c"], "order": 3},
    ])


class TestFieldDefinitions:
    """Tests for normalize_field_definitions."""

    def test_order_is_reassigned_to_position(self, sample_fields):
        fields = normalize_field_definitions(sample_fields)

        assert [f["order"] for f in fields] == [0, 1, 2]
        assert [f["id"] for f in fields] == ["name", "color", "age"]

    def test_options_default_to_empty_list(self, sample_fields):
        fields = normalize_field_definitions(sample_fields)

        assert fields[0]["options"] == []
        assert fields[1]["options"] == ["Red", "Blue"]

    def test_required_defaults_to_false(self, sample_fields):
        fields = normalize_field_definitions(sample_fields)

        assert fields[0]["required"] is True
        assert fields[1]["required"] is False

    def test_validation_limits_kept(self, sample_fields):
        fields = normalize_field_definitions(sample_fields)

        assert fields[2]["validation"] == {"min": 0, "max": 120}

    def test_numeric_ids_become_strings(self):
        fields = normalize_field_definitions([{"id": 17, "type": "text", "label": "Q"}])

        assert fields[0]["id"] == "17"

    def test_options_on_non_choice_field_are_kept(self):
        fields = normalize_field_definitions(
            [{"id": "q", "type": "text", "label": "Q", "options": ["x"]}]
        )

        assert fields[0]["options"] == ["x"]

    def test_duplicate_ids_are_accepted(self):
        fields = normalize_field_definitions([
            {"id": "q", "type": "text", "label": "One"},
            {"id": "q", "type": "email", "label": "Two"},
        ])

        assert len(fields) == 2

    @pytest.mark.parametrize("raw", [None, []])
    def test_empty_fields_rejected(self, raw):
        with pytest.raises(MissingRequiredInputError):
            normalize_field_definitions(raw)

    def test_unknown_type_rejected(self):
        with pytest.raises(InvalidFieldTypeError) as exc_info:
            normalize_field_definitions([{"id": "q", "type": "slider", "label": "Q"}])

        assert exc_info.value.kind == "InvalidFieldType"
        assert exc_info.value.details["field_type"] == "slider"

    @pytest.mark.parametrize("missing", ["id", "type", "label"])
    def test_missing_attribute_rejected(self, missing):
        raw = {"id": "q", "type": "text", "label": "Q"}
        del raw[missing]

        with pytest.raises(MissingRequiredInputError):
            normalize_field_definitions([raw])

    def test_non_object_field_rejected(self):
        with pytest.raises(InvalidInputError):
            normalize_field_definitions(["text"])

    def test_malformed_options_rejected(self):
        with pytest.raises(InvalidInputError):
            normalize_field_definitions(
                [{"id": "q", "type": "select", "label": "Q", "options": [{"bad": 1}]}]
            )


class TestFormAttributes:
    """Tests for title, theme and settings normalization."""

    def test_title_is_trimmed(self):
        assert normalize_title("  Survey  ") == "Survey"

    @pytest.mark.parametrize("title", [None, "", "   "])
    def test_blank_title_rejected(self, title):
        with pytest.raises(MissingRequiredInputError):
            normalize_title(title)

    def test_theme_defaults(self):
        assert normalize_theme(None) == "default"

    def test_unknown_theme_rejected(self):
        with pytest.raises(InvalidInputError):
            normalize_theme("neon")

    def test_settings_merge_over_defaults(self):
        merged = normalize_settings({"submit_button_text": "Send"})

        assert merged["submit_button_text"] == "Send"
        assert merged["allow_multiple_responses"] is True
        assert merged["success_message"] == "Thank you for your response!"

    def test_camel_case_settings_accepted(self):
        merged = normalize_settings({"showProgressBar": False})

        assert merged["show_progress_bar"] is False


class TestValueTagging:
    """Tests for tag_value."""

    @pytest.mark.parametrize("value,kind", [
        ("Red", "text"),
        (["a", "b"], "choices"),
        (5, "number"),
        (2.5, "number"),
        (True, "flag"),
        ("", "empty"),
        (None, "empty"),
        ({"x": 1}, "raw"),
    ])
    def test_kind_follows_runtime_type(self, value, kind):
        tagged = tag_value(value)

        assert tagged.kind == kind
        assert tagged.value == value


class TestSubmissionEnvelope:

    def test_form_id_required(self):
        with pytest.raises(MissingRequiredInputError):
            validate_submission_envelope(None, [{"fieldId": "q", "value": "x"}])

    @pytest.mark.parametrize("answers", [None, [], "text"])
    def test_answers_required(self, answers):
        with pytest.raises(MissingRequiredInputError):
            validate_submission_envelope(1, answers)


class TestPermissiveSubmission:
    """Default mode keeps values as sent."""

    def test_empty_required_answer_accepted(self, form):
        normalized = normalize_submission(form, [{"fieldId": "name", "value": ""}])

        answer = normalized.answers[0]
        assert answer.value.kind == "empty"
        assert answer.required is True

    def test_type_and_label_filled_from_form(self, form):
        normalized = normalize_submission(form, [{"fieldId": "color", "value": "Red"}])

        answer = normalized.answers[0]
        assert answer.field_type == "select"
        assert answer.label == "Color"

    def test_sent_label_wins_over_form(self, form):
        normalized = normalize_submission(
            form, [{"fieldId": "color", "fieldType": "select", "label": "Colour", "value": "Red"}]
        )

        assert normalized.answers[0].label == "Colour"

    def test_number_field_accepts_text(self, form):
        normalized = normalize_submission(form, [{"fieldId": "age", "value": "old"}])

        assert normalized.answers[0].value.kind == "text"
        assert normalized.answers[0].to_document()["value"] == "old"

    def test_unknown_field_with_snapshot_accepted(self, form):
        normalized = normalize_submission(
            form, [{"fieldId": "gone", "fieldType": "text", "label": "Old", "value": "x"}]
        )

        assert normalized.answers[0].field_id == "gone"

    def test_unknown_field_without_snapshot_rejected(self, form):
        with pytest.raises(MissingRequiredInputError):
            normalize_submission(form, [{"fieldId": "gone", "value": "x"}])

    def test_answer_without_field_id_rejected(self, form):
        with pytest.raises(MissingRequiredInputError):
            normalize_submission(form, [{"value": "x"}])

    def test_non_object_answer_rejected(self, form):
        with pytest.raises(InvalidInputError):
            normalize_submission(form, ["Red"])

    def test_snake_case_answers_accepted(self, form):
        normalized = normalize_submission(form, [{"field_id": "color", "value": "Blue"}])

        assert normalized.answers[0].field_id == "color"

    def test_document_keeps_raw_value(self, form):
        normalized = normalize_submission(form, [{"fieldId": "tags", "value": ["a", "c"]}])

        assert normalized.answers[0].to_document() == {
            "field_id": "tags",
            "field_type": "checkbox",
            "label": "Tags",
            "value": ["a", "c"],
            "required": False,
        }

    def test_negative_time_spent_rejected(self, form):
        with pytest.raises(InvalidInputError):
            normalize_submission(form, [{"fieldId": "color", "value": "Red"}], time_spent=-1)


class TestStrictSubmission:
    """Strict mode checks answers against the declared fields."""

    def _submit(self, form, answers):
        return normalize_submission(form, answers, strict=True)

    def test_numeric_string_coerced(self, form):
        normalized = self._submit(form, [
            {"fieldId": "name", "value": "Ada"},
            {"fieldId": "age", "value": "42"},
        ])

        age = normalized.answers[1]
        assert age.value.kind == "number"
        assert age.value.value == 42

    def test_non_numeric_value_rejected(self, form):
        with pytest.raises(InvalidInputError):
            self._submit(form, [{"fieldId": "name", "value": "Ada"}, {"fieldId": "age", "value": "old"}])

    def test_number_outside_limits_rejected(self, form):
        with pytest.raises(InvalidInputError):
            self._submit(form, [{"fieldId": "name", "value": "Ada"}, {"fieldId": "age", "value": 130}])

    def test_missing_required_answer_rejected(self, form):
        with pytest.raises(MissingRequiredInputError) as exc_info:
            self._submit(form, [{"fieldId": "color", "value": "Red"}])

        assert exc_info.value.details["missing"] == ["name"]

    def test_empty_required_answer_rejected(self, form):
        with pytest.raises(MissingRequiredInputError):
            self._submit(form, [{"fieldId": "name", "value": ""}])

    def test_unknown_option_rejected(self, form):
        with pytest.raises(InvalidInputError):
            self._submit(form, [{"fieldId": "name", "value": "Ada"}, {"fieldId": "color", "value": "Green"}])

    def test_checkbox_options_checked(self, form):
        normalized = self._submit(form, [
            {"fieldId": "name", "value": "Ada"},
            {"fieldId": "tags", "value": ["a", "b"]},
        ])
        assert normalized.answers[1].value.kind == "choices"

        with pytest.raises(InvalidInputError):
            self._submit(form, [{"fieldId": "name", "value": "Ada"}, {"fieldId": "tags", "value": ["z"]}])

    def test_empty_checkbox_keeps_list_shape(self, form):
        normalized = self._submit(form, [
            {"fieldId": "name", "value": "Ada"},
            {"fieldId": "tags", "value": []},
        ])

        tags = normalized.answers[1]
        assert tags.value.kind == "empty"
        assert tags.to_document()["value"] == []

    def test_unknown_field_rejected(self, form):
        with pytest.raises(InvalidInputError):
            self._submit(form, [
                {"fieldId": "name", "value": "Ada"},
                {"fieldId": "gone", "fieldType": "text", "label": "Old", "value": "x"},
            ])

    def test_declared_type_wins(self, form):
        normalized = self._submit(form, [{"fieldId": "name", "fieldType": "email", "value": "Ada"}])

        assert normalized.answers[0].field_type == "text"
