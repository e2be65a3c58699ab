from __future__ import annotations

from declaro.config import GeneratorSettings
from declaro.model.operation import Operation, ResponseArity, ServiceGroup
from declaro.synth.emit import convenience_method, explicit_signature, indent, service_scaffold


def slot_declaration(op: Operation) -> str:
    """One injectable result cell per operation, defaulting to an unknown failure."""
    if op.arity == ResponseArity.NONE:
        return f"self.{op.slot_name}: Optional[BaseException] = ServiceError(ErrorKind.UNKNOWN)"
    value_type = op.response_type if op.arity == ResponseArity.REQUIRED else f"Optional[{op.response_type}]"
    return f"self.{op.slot_name}: Result[{value_type}] = Failure(ServiceError(ErrorKind.UNKNOWN))"


def explicit_method(op: Operation) -> list[str]:
    # no URL resolution, no headers, no dispatch: only the slot
    slot = f"self.{op.slot_name}"
    if op.arity == ResponseArity.NONE:
        if op.throwing:
            body = [f"if {slot} is not None:", f"    raise {slot}"]
        else:
            body = [
                f"if {slot} is not None:",
                f'    logger.warning("{op.name} failed, returning None: %s", {slot})',
                "return None",
            ]
    elif op.throwing:
        body = [f"return {slot}.get()"]
    else:
        body = [
            "try:",
            f"    return {slot}.get()",
            "except Exception as exc:",
            f'    logger.warning("{op.name} failed, returning None: %s", exc)',
            "    return None",
        ]
    return explicit_signature(op) + indent(body)


def emit_mock_class(group: ServiceGroup, settings: GeneratorSettings) -> list[str]:
    slots = [slot_declaration(op) for op in group.operations]
    lines = service_scaffold(settings.mock_class(group.name), group, extra_init=slots)
    for op in group.operations:
        lines.extend(indent(convenience_method(op)))
        lines.append("")
        lines.extend(indent(explicit_method(op)))
        lines.append("")
    return lines
