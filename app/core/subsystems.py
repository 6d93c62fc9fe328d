"""Best-effort registry for optional subsystems (chat bot, matchmaker).

Optional subsystems live outside the gateway. Each is activated once after the
server is up; an entry that cannot be imported or fails while starting is
logged and left inactive without affecting the gateway or the other entries.
"""

from __future__ import annotations

import enum
import importlib
import inspect
import logging
from dataclasses import dataclass, field
from typing import Any, Callable

from app.core.config import parse_csv

logger = logging.getLogger(__name__)


class SubsystemStatus(str, enum.Enum):
    PENDING = "pending"
    ACTIVE = "active"
    UNAVAILABLE = "unavailable"


@dataclass
class Subsystem:
    """One optional subsystem entry.

    Attributes:
        name: Label used in logs and status reports.
        module: Dotted module path imported on activation.
        entry_point: Optional callable name in ``module`` invoked with no
            arguments; importing the module is the activation when omitted.
        status: Outcome of the single activation attempt.
        error: Type name of the failure when unavailable.
    """

    name: str
    module: str
    entry_point: str | None = None
    status: SubsystemStatus = SubsystemStatus.PENDING
    error: str | None = None


def parse_subsystem_spec(spec: str) -> Subsystem:
    """Parse ``name=module[:callable]`` (``name`` defaults to the module path).

    Examples:
        >>> parse_subsystem_spec("bot=app.bot:start").entry_point
        'start'
        >>> parse_subsystem_spec("app.matchmaker").name
        'app.matchmaker'
    """
    name, sep, target = spec.partition("=")
    if not sep:
        name, target = spec, spec
    module, _, entry_point = target.partition(":")
    name, module = name.strip(), module.strip()
    if not name or not module:
        raise ValueError(f"invalid subsystem entry: {spec!r}")
    return Subsystem(name=name, module=module, entry_point=entry_point.strip() or None)


@dataclass
class SubsystemRegistry:
    """Ordered collection of optional subsystems activated at most once."""

    subsystems: list[Subsystem] = field(default_factory=list)
    importer: Callable[[str], Any] = importlib.import_module
    _activated: bool = field(default=False, init=False, repr=False)

    @classmethod
    def from_config(cls, value: str | None) -> "SubsystemRegistry":
        return cls(subsystems=[parse_subsystem_spec(item) for item in parse_csv(value)])

    def register(self, name: str, module: str, entry_point: str | None = None) -> Subsystem:
        subsystem = Subsystem(name=name, module=module, entry_point=entry_point)
        self.subsystems.append(subsystem)
        return subsystem

    def status(self) -> dict[str, str]:
        return {s.name: s.status.value for s in self.subsystems}

    async def _activate(self, subsystem: Subsystem) -> None:
        module = self.importer(subsystem.module)
        if subsystem.entry_point:
            result = getattr(module, subsystem.entry_point)()
            if inspect.isawaitable(result):
                await result

    async def activate_all(self) -> dict[str, str]:
        """Try every registered subsystem once, isolating each failure.

        Returns:
            Mapping of subsystem name to final status value.
        """
        if self._activated:
            return self.status()
        self._activated = True

        for subsystem in self.subsystems:
            try:
                await self._activate(subsystem)
            except Exception as exc:  # noqa: BLE001 - optional subsystems never break the gateway
                subsystem.status = SubsystemStatus.UNAVAILABLE
                subsystem.error = type(exc).__name__
                logger.info(
                    "subsystem.unavailable",
                    extra={
                        "subsystem": subsystem.name,
                        "subsystem_module": subsystem.module,
                        "error_type": subsystem.error,
                    },
                )
                continue

            subsystem.status = SubsystemStatus.ACTIVE
            logger.info("subsystem.activated", extra={"subsystem": subsystem.name})

        return self.status()
