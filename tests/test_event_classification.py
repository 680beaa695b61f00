"""Tests for push message parsing and classification."""

from __future__ import annotations

import pytest

from src.sow_portal.realtime.events import (
    EventClass,
    PushMessage,
    classify_event,
    event_variant,
    filter_progress_events,
    filter_toast_events,
    is_progress_event,
    is_toast_event,
)


class TestPushMessage:
    """Tests for PushMessage accessors."""

    def test_event_type_prefers_nested_type(self):
        message = PushMessage(type="notification", message="x", data={"type": "sow_generation_completed"})
        assert message.event_type == "sow_generation_completed"

    def test_event_type_falls_back_to_type_then_message(self):
        assert PushMessage(type="status", message="x").event_type == "status"
        assert PushMessage(message="File Upload Completed").event_type == "File Upload Completed"

    def test_execution_arn_from_either_key(self):
        assert PushMessage(data={"executionArn": "arn:1"}).execution_arn == "arn:1"
        assert PushMessage(data={"execution_arn": "arn:2"}).execution_arn == "arn:2"
        assert PushMessage(data={"executionArn": 5}).execution_arn is None

    def test_extra_fields_preserved(self):
        message = PushMessage.model_validate({"type": "toast", "dealId": "d-1"})
        assert message.model_extra == {"dealId": "d-1"}


class TestClassification:
    """Tests for classify_event routing order."""

    @pytest.mark.parametrize(
        "payload,expected",
        [
            ({"type": "error", "message": "Something broke"}, EventClass.ERROR),
            ({"message": "SOW Generation Failed"}, EventClass.ERROR),
            ({"type": "toast", "message": "File Upload Failed"}, EventClass.ERROR),
            ({"message": "Architecture Generation Started"}, EventClass.PROGRESS),
            ({"type": "progress", "message": "Step 2 of 4"}, EventClass.PROGRESS),
            ({"type": "status", "message": "Connected"}, EventClass.STATUS),
            ({"message": "Avoma Meeting Sync Completed"}, EventClass.TOAST),
            ({"type": "toast", "message": "Saved"}, EventClass.TOAST),
            ({"type": "heartbeat"}, EventClass.UNKNOWN),
        ],
    )
    def test_classify(self, payload, expected):
        assert classify_event(PushMessage.model_validate(payload)) == expected

    def test_progress_and_toast_predicates(self):
        progress = PushMessage(message="Pricing Calculator Generation Completed")
        toast = PushMessage(message="File Delete Completed")
        assert is_progress_event(progress) and not is_toast_event(progress)
        assert is_toast_event(toast) and not is_progress_event(toast)

    def test_filters(self):
        events = [
            PushMessage(message="SOW Generation Started"),
            PushMessage(message="File Upload Completed"),
            PushMessage(type="status"),
        ]
        assert [e.message for e in filter_progress_events(events)] == ["SOW Generation Started"]
        assert [e.message for e in filter_toast_events(events)] == ["File Upload Completed"]


class TestEventVariant:
    """Tests for toast variants."""

    @pytest.mark.parametrize(
        "message,variant",
        [
            ("File Upload Failed", "error"),
            ("Unexpected error in sync", "error"),
            ("File Upload Completed", "success"),
            ("Sync finished", "success"),
            ("Avoma Meeting Sync Started", "info"),
            ("Processing transcript", "info"),
            ("Rate limit warning", "warning"),
            ("Will retry shortly", "warning"),
            ("Hello", "info"),
        ],
    )
    def test_variant(self, message, variant):
        assert event_variant(PushMessage(message=message)) == variant
