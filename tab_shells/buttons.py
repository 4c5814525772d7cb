from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional
import json
import re
import uuid

from .errors import ButtonNotFoundError, StateError

_TEMPLATE_VAR = re.compile(r"\{\{([^}]+)\}\}")


def template_variables(command: str) -> List[str]:
    """Names of the ``{{name}}`` placeholders in ``command``, unique, in order of appearance."""
    names: List[str] = []
    for match in _TEMPLATE_VAR.finditer(command):
        name = match.group(1).strip()
        if name and name not in names:
            names.append(name)
    return names


def render_command(command: str, values: Mapping[str, Any]) -> str:
    """Substitute every placeholder; names without a value become empty strings."""

    def _replace(match: "re.Match[str]") -> str:
        value = values.get(match.group(1).strip())
        return "" if value is None else str(value)

    return _TEMPLATE_VAR.sub(_replace, command)


@dataclass
class CommandButton:
    """A named shortcut that types ``command`` into the active tab.

    ``command`` may contain ``{{name}}`` placeholders that are filled in
    when the button is run.
    """

    name: str
    command: str
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    @property
    def variables(self) -> List[str]:
        return template_variables(self.command)

    def render(self, values: Optional[Mapping[str, Any]] = None) -> str:
        return render_command(self.command, values or {})

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name, "command": self.command}

    def to_payload(self) -> Dict[str, Any]:
        payload = self.to_dict()
        payload["variables"] = self.variables
        return payload

    @classmethod
    def from_dict(cls, raw: Any) -> "CommandButton":
        if not isinstance(raw, dict):
            raise StateError("button entry must be an object")
        try:
            return cls(id=str(raw["id"]), name=str(raw["name"]), command=str(raw["command"]))
        except KeyError as exc:
            raise StateError(f"button entry missing field {exc.args[0]!r}") from None


class ButtonManager:
    """Ordered collection of command buttons."""

    def __init__(self, buttons: Optional[List[CommandButton]] = None) -> None:
        self._buttons: List[CommandButton] = list(buttons or [])

    def add(self, name: str, command: str) -> str:
        button = CommandButton(name=name, command=command)
        self._buttons.append(button)
        return button.id

    def update(self, button_id: str, name: str, command: str) -> None:
        button = self.get(button_id)
        if button is None:
            raise ButtonNotFoundError(button_id)
        button.name = name
        button.command = command

    def delete(self, button_id: str) -> None:
        before = len(self._buttons)
        self._buttons = [b for b in self._buttons if b.id != button_id]
        if len(self._buttons) == before:
            raise ButtonNotFoundError(button_id)

    def get(self, button_id: str) -> Optional[CommandButton]:
        for button in self._buttons:
            if button.id == button_id:
                return button
        return None

    def list(self) -> List[CommandButton]:
        return list(self._buttons)

    def count(self) -> int:
        return len(self._buttons)

    def to_list(self) -> List[Dict[str, Any]]:
        return [b.to_dict() for b in self._buttons]

    @classmethod
    def from_list(cls, raw: Any) -> "ButtonManager":
        if not isinstance(raw, list):
            raise StateError("buttons must be a list")
        return cls([CommandButton.from_dict(item) for item in raw])

    def to_json(self) -> str:
        return json.dumps(self.to_list())

    @classmethod
    def from_json(cls, text: str) -> "ButtonManager":
        try:
            raw = json.loads(text)
        except json.JSONDecodeError as exc:
            raise StateError(f"invalid buttons JSON: {exc}") from exc
        return cls.from_list(raw)
