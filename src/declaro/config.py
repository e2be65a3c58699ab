from __future__ import annotations

from pydantic import BaseModel


class GeneratorSettings(BaseModel):
    service_suffix: str = "Service"
    mock_suffix: str = "ServiceMock"
    generated_suffix: str = "_generated.py"
    header: str = "Generated by declaro. Do not edit."
    emit_live: bool = True
    emit_mock: bool = True

    def live_class(self, interface: str) -> str:
        return f"{interface}{self.service_suffix}"

    def mock_class(self, interface: str) -> str:
        return f"{interface}{self.mock_suffix}"


DEFAULT_SETTINGS = GeneratorSettings()
