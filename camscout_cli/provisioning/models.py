"""Provisioning document types."""

from dataclasses import dataclass
from typing import Any, Optional

MASK = "***"


def _drop_none(payload: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in payload.items() if v is not None}


@dataclass(frozen=True)
class RecorderSpec:
    """An NVR to create. ``name`` doubles as its symbolic reference."""

    name: str
    host: str
    username: str
    password: str
    vendor: Optional[str] = None
    model: Optional[str] = None
    http_port: int = 80
    onvif_port: int = 80
    rtsp_port: int = 554
    rtsp_url_template: Optional[str] = None
    protocol: str = "ONVIF"
    is_active: bool = True
    sync_onvif: bool = False
    overwrite_names: bool = False
    disable_missing: bool = True
    test_connection: bool = False

    @classmethod
    def from_dict(cls, data: dict) -> "RecorderSpec":
        return cls(
            name=data["name"],
            host=data["host"],
            username=data["username"],
            password=data["password"],
            vendor=data.get("vendor"),
            model=data.get("model"),
            http_port=data.get("httpPort", 80),
            onvif_port=data.get("onvifPort", 80),
            rtsp_port=data.get("rtspPort", 554),
            rtsp_url_template=data.get("rtspUrlTemplate"),
            protocol=data.get("protocol", "ONVIF"),
            is_active=data.get("isActive", True),
            sync_onvif=data.get("syncOnvif", False),
            overwrite_names=data.get("overwriteNames", False),
            disable_missing=data.get("disableMissing", True),
            test_connection=data.get("testConnection", False),
        )

    def to_payload(self, mask_secrets: bool = False) -> dict[str, Any]:
        """Body for the create-recorder endpoint."""
        return _drop_none({
            "name": self.name,
            "vendor": self.vendor,
            "model": self.model,
            "host": self.host,
            "httpPort": self.http_port,
            "onvifPort": self.onvif_port,
            "rtspPort": self.rtsp_port,
            "rtspUrlTemplate": self.rtsp_url_template,
            "username": self.username,
            "password": MASK if mask_secrets else self.password,
            "protocol": self.protocol,
            "isActive": self.is_active,
        })


@dataclass(frozen=True)
class CameraSpec:
    """A camera to create, optionally linked to a recorder by id or by name."""

    name: str
    area_id: Optional[str] = None
    nvr_id: Optional[str] = None
    nvr_ref: Optional[str] = None
    channel_no: Optional[int] = None
    stream_profile: str = "sub"
    auto_generate_url: Optional[bool] = None
    stream_url: Optional[str] = None
    status: str = "UNKNOWN"
    is_active: bool = True
    external_id: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict) -> "CameraSpec":
        return cls(
            name=data["name"],
            area_id=data.get("areaId"),
            nvr_id=data.get("nvrId"),
            nvr_ref=data.get("nvrRef"),
            channel_no=data.get("channelNo"),
            stream_profile=data.get("streamProfile", "sub"),
            auto_generate_url=data.get("autoGenerateUrl"),
            stream_url=data.get("streamUrl"),
            status=data.get("status", "UNKNOWN"),
            is_active=data.get("isActive", True),
            external_id=data.get("externalId"),
        )

    def resolve_recorder(self, known: dict[str, str]) -> Optional[str]:
        """Explicit nvrId wins; otherwise look nvrRef up among recorders created in this run."""
        if self.nvr_id:
            return self.nvr_id
        if self.nvr_ref:
            return known.get(self.nvr_ref)
        return None

    def to_payload(self, nvr_id: Optional[str]) -> dict[str, Any]:
        """Body for the create-camera endpoint."""
        auto_generate = self.auto_generate_url
        if auto_generate is None:
            auto_generate = nvr_id is not None
        return _drop_none({
            "name": self.name,
            "areaId": self.area_id,
            "nvrId": nvr_id,
            "channelNo": self.channel_no,
            "streamProfile": self.stream_profile,
            "autoGenerateUrl": auto_generate,
            "streamUrl": self.stream_url,
            "status": self.status,
            "isActive": self.is_active,
            "externalId": self.external_id,
        })


@dataclass(frozen=True)
class ProvisionInput:
    recorders: tuple[RecorderSpec, ...] = ()
    cameras: tuple[CameraSpec, ...] = ()
    deploy: Optional[dict] = None

    @classmethod
    def from_dict(cls, data: dict) -> "ProvisionInput":
        """Build from an already validated document (see schema.load_document)."""
        return cls(
            recorders=tuple(RecorderSpec.from_dict(n) for n in data.get("nvrs") or []),
            cameras=tuple(CameraSpec.from_dict(c) for c in data.get("cameras") or []),
            deploy=data.get("deploy"),
        )
