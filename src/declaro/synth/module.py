from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from declaro.config import DEFAULT_SETTINGS, GeneratorSettings
from declaro.domain.models import ModuleDecl
from declaro.model.operation import ServiceGroup, build_service
from declaro.synth.emit import RUNTIME_IMPORTS, protocol_class
from declaro.synth.live import emit_live_class
from declaro.synth.mock import emit_mock_class


@dataclass(frozen=True)
class GeneratedModule:
    code: str
    services: tuple[ServiceGroup, ...]
    source_path: str = ""

    def class_names(self, settings: GeneratorSettings = DEFAULT_SETTINGS) -> list[str]:
        names = []
        for group in self.services:
            names.append(group.name)
            if group.live and settings.emit_live:
                names.append(settings.live_class(group.name))
            if group.mock and settings.emit_mock:
                names.append(settings.mock_class(group.name))
        return names


def build_groups(module: ModuleDecl) -> tuple[ServiceGroup, ...]:
    # every service is validated before anything is emitted
    return tuple(build_service(s) for s in module.services)


def render(
    groups: tuple[ServiceGroup, ...],
    module: ModuleDecl,
    settings: GeneratorSettings = DEFAULT_SETTINGS,
) -> str:
    """Pure function of the built groups: same input, byte-identical output."""
    header = settings.header
    if module.source_path:
        header = f"{header} Source: {Path(module.source_path).name}"

    lines = [f"# {header}", "# ruff: noqa: F401, E501", "from __future__ import annotations", ""]
    lines.extend(RUNTIME_IMPORTS)
    if module.imports:
        lines.append("")
        lines.extend(_dedupe(module.imports))
    lines.extend(["", "logger = logging.getLogger(__name__)", ""])

    for definition in module.definitions:
        lines.extend(["", definition.rstrip(), ""])

    for group in groups:
        lines.extend(["", *protocol_class(group)])
        if group.live and settings.emit_live:
            lines.extend(["", *emit_live_class(group, settings)])
        if group.mock and settings.emit_mock:
            lines.extend(["", *emit_mock_class(group, settings)])

    return _tidy(lines)


def synthesize_module(
    module: ModuleDecl,
    settings: Optional[GeneratorSettings] = None,
) -> GeneratedModule:
    settings = settings or DEFAULT_SETTINGS
    groups = build_groups(module)
    return GeneratedModule(
        code=render(groups, module, settings),
        services=groups,
        source_path=module.source_path,
    )


def _dedupe(items: list[str]) -> list[str]:
    seen = set()
    out = []
    for item in items:
        if item in seen:
            continue
        seen.add(item)
        out.append(item)
    return out


def _tidy(lines: list[str]) -> str:
    # collapse runs of blank lines to at most two, strip trailing ones;
    # multi-line items are carried-over definitions and stay verbatim
    out: list[str] = []
    blanks = 0
    for line in lines:
        if not line.strip():
            blanks += 1
            if blanks > 2:
                continue
            out.append("")
            continue
        blanks = 0
        out.append(line if "\n" in line else line.rstrip())
    return "\n".join(out).strip("\n") + "\n"
