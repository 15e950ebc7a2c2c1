"""Tests for the surface/sandbox wire messages."""

import json

import pytest
from pydantic import ValidationError

from changelog.messages import (
    ErrorMessage,
    ExtractedComponent,
    ExtractionComplete,
    ExtractionProgress,
    ExtractSelected,
    Init,
    LoadSettings,
    decode_sandbox_message,
    decode_surface_message,
)


class TestWireFormat:
    def test_fields_use_camel_case(self):
        payload = json.loads(ExtractSelected(session_id="s1", node_ids=["1:2"]).to_json())
        assert payload == {"type": "extract-selected", "sessionId": "s1", "nodeIds": ["1:2"]}

    def test_message_without_fields(self):
        assert json.loads(LoadSettings().to_json()) == {"type": "load-settings"}

    def test_extracted_component_payload_drops_thumbnail(self):
        component = ExtractedComponent(
            key="k", name="Button", node_id="1:1", snapshot={"document": {}}, thumbnail_bytes=[1, 2],
        )
        payload = component.snapshot_payload()
        assert "thumbnailBytes" not in payload
        assert payload["key"] == "k"
        assert payload["nodeId"] == "1:1"


class TestDecode:
    def test_surface_message_from_string(self):
        message = decode_surface_message('{"type": "extract-single", "sessionId": "s", "nodeId": "2:3"}')
        assert message.type == "extract-single"
        assert message.node_id == "2:3"

    def test_sandbox_message_from_dict(self):
        message = decode_sandbox_message({"type": "extraction-progress", "sessionId": "s", "message": "hi", "percent": 40})
        assert isinstance(message, ExtractionProgress)
        assert message.percent == 40.0

    def test_complete_carries_components(self):
        raw = ExtractionComplete(
            session_id="s",
            components=[ExtractedComponent(key="k", name="Button", node_id="1:1")],
        ).to_json()
        message = decode_sandbox_message(raw)
        assert message.components[0].name == "Button"

    def test_error_without_session(self):
        message = decode_sandbox_message(ErrorMessage(message="boom").to_json())
        assert message.session_id is None

    def test_init_round_trip_through_json(self):
        message = decode_sandbox_message(Init(user_name="Ana", file_key="F1").to_json())
        assert message.user_name == "Ana"
        assert message.saved_token is None

    def test_unknown_type_rejected(self):
        with pytest.raises(ValidationError):
            decode_surface_message({"type": "format-disk"})

    def test_direction_is_enforced(self):
        with pytest.raises(ValidationError):
            decode_sandbox_message(ExtractSelected(session_id="s").to_json())

    def test_missing_session_id_rejected(self):
        with pytest.raises(ValidationError):
            decode_surface_message({"type": "cancel-extraction"})
