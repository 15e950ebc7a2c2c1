"""Wire messages between the interactive surface and the extraction sandbox.

Each direction is a tagged union keyed by ``type``. Payloads cross the
boundary as JSON strings with camelCase field names.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic.alias_generators import to_camel


class WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)


class ExtractedComponent(WireModel):
    key: str
    name: str
    node_id: str
    snapshot: Any = None
    property_definitions: Any = None
    variables_used: Any = None
    thumbnail_bytes: list[int] = Field(default_factory=list)
    publish_status: str | None = None
    component_set_id: str | None = None

    def snapshot_payload(self) -> dict:
        """The payload a Snapshot is built from (thumbnail bytes excluded)."""
        return self.model_dump(by_alias=True, exclude={"thumbnail_bytes"})


# --- Surface -> sandbox ---

class ExtractSelected(WireModel):
    type: Literal["extract-selected"] = "extract-selected"
    session_id: str
    node_ids: list[str] | None = None   # None or empty: scan all


class ExtractSingle(WireModel):
    type: Literal["extract-single"] = "extract-single"
    session_id: str
    node_id: str


class CancelExtraction(WireModel):
    type: Literal["cancel-extraction"] = "cancel-extraction"
    session_id: str


class Navigate(WireModel):
    type: Literal["navigate"] = "navigate"
    node_id: str


class SaveSettings(WireModel):
    type: Literal["save-settings"] = "save-settings"
    token: str
    file_key: str
    user_name: str


class LoadSettings(WireModel):
    type: Literal["load-settings"] = "load-settings"


class ClearSettings(WireModel):
    type: Literal["clear-settings"] = "clear-settings"


class Reconstruct(WireModel):
    type: Literal["reconstruct"] = "reconstruct"
    snapshot: Any


class ScanLocalComponents(WireModel):
    type: Literal["scan-local-components"] = "scan-local-components"


SurfaceMessage = Annotated[
    Union[
        ExtractSelected, ExtractSingle, CancelExtraction, Navigate, SaveSettings,
        LoadSettings, ClearSettings, Reconstruct, ScanLocalComponents,
    ],
    Field(discriminator="type"),
]


# --- Sandbox -> surface ---

class Init(WireModel):
    type: Literal["init"] = "init"
    user_name: str
    file_key: str
    saved_token: str | None = None
    saved_file_key: str | None = None
    saved_user_name: str | None = None


class SettingsLoaded(WireModel):
    type: Literal["settings-loaded"] = "settings-loaded"
    token: str | None = None
    file_key: str | None = None
    user_name: str | None = None


class ExtractionProgress(WireModel):
    type: Literal["extraction-progress"] = "extraction-progress"
    session_id: str
    message: str
    percent: float


class ExtractionComplete(WireModel):
    type: Literal["extraction-complete"] = "extraction-complete"
    session_id: str
    components: list[ExtractedComponent]


class ExtractionCancelled(WireModel):
    type: Literal["extraction-cancelled"] = "extraction-cancelled"
    session_id: str


class LocalComponents(WireModel):
    type: Literal["local-components"] = "local-components"
    groups: list[dict]


class ReconstructionComplete(WireModel):
    type: Literal["reconstruction-complete"] = "reconstruction-complete"
    node_id: str


class ErrorMessage(WireModel):
    type: Literal["error"] = "error"
    message: str
    session_id: str | None = None


SandboxMessage = Annotated[
    Union[
        Init, SettingsLoaded, ExtractionProgress, ExtractionComplete, ExtractionCancelled,
        LocalComponents, ReconstructionComplete, ErrorMessage,
    ],
    Field(discriminator="type"),
]

_surface_adapter: TypeAdapter = TypeAdapter(SurfaceMessage)
_sandbox_adapter: TypeAdapter = TypeAdapter(SandboxMessage)


def _decode(adapter: TypeAdapter, raw: str | bytes | dict):
    if isinstance(raw, dict):
        return adapter.validate_python(raw)
    return adapter.validate_json(raw)


def decode_surface_message(raw: str | bytes | dict):
    """Parse a message sent by the surface. Raises pydantic.ValidationError."""
    return _decode(_surface_adapter, raw)


def decode_sandbox_message(raw: str | bytes | dict):
    """Parse a message sent by the sandbox. Raises pydantic.ValidationError."""
    return _decode(_sandbox_adapter, raw)
