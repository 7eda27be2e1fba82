"""Реестр capability: сервер MCP как явный агрегат tools/resources/prompts."""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

from mcpr.capabilities.adapters import FunctionToolDef, tool_from_function_def
from mcpr.capabilities.models import Capability, CapabilityKind, Prompt, Resource, Tool
from mcpr.core.config import JSONRPC_VERSION
from mcpr.core.errors import CapabilityNotFoundError

logger = logging.getLogger("mcpr.capabilities.registry")

ChangeListener = Callable[[Dict[str, Any]], None]


class Server:
    """Сервер MCP: три упорядоченных словаря capability по имени.

    Регистрация идемпотентна по имени (последняя запись побеждает, позиция
    в списке сохраняется). Реестр меняется на этапе настройки; во время
    обслуживания транспорт только читает его.
    """

    def __init__(
        self,
        name: str,
        description: str,
        version: str,
        *,
        tools: Iterable[Union[Tool, FunctionToolDef]] = (),
        resources: Iterable[Resource] = (),
        prompts: Iterable[Prompt] = (),
        list_changed: bool = False,
    ) -> None:
        for field_name, value in (("name", name), ("description", description), ("version", version)):
            if not isinstance(value, str):
                raise TypeError(f"{field_name} must be a string")
        if not name.strip():
            raise ValueError("name must not be empty")

        self.name = name
        self.description = description
        self.version = version
        self.list_changed = list_changed
        self.initialized = False
        self.serving = False

        self._registry: Dict[CapabilityKind, Dict[str, Capability]] = {kind: {} for kind in CapabilityKind}
        self._listeners: List[ChangeListener] = []

        for capability in (*tools, *resources, *prompts):
            self.register(capability)

    # --- регистрация ---

    def register(self, capability: Union[Capability, FunctionToolDef]) -> "Server":
        if isinstance(capability, FunctionToolDef):
            capability = tool_from_function_def(capability)
        if not isinstance(capability, (Tool, Resource, Prompt)):
            raise TypeError(f"Unsupported capability: {type(capability).__name__}")

        bucket = self._registry[capability.kind]
        if capability.name in bucket:
            logger.info("Replacing %s '%s'", capability.kind.value, capability.name)
        bucket[capability.name] = capability

        if self.serving:
            self._notify_list_changed(capability.kind)
        return self

    def lookup(self, kind: CapabilityKind, name: Any) -> Capability:
        bucket = self._registry[kind]
        if isinstance(name, str) and name in bucket:
            return bucket[name]
        raise CapabilityNotFoundError(kind.value, name, bucket.keys())

    def find_resource(self, *, name: Optional[str] = None, uri: Optional[str] = None) -> Resource:
        bucket = self._registry[CapabilityKind.RESOURCE]
        if isinstance(name, str) and name in bucket:
            return bucket[name]  # type: ignore[return-value]
        if isinstance(uri, str):
            for candidate in bucket.values():
                if candidate.uri == uri:  # type: ignore[union-attr]
                    return candidate  # type: ignore[return-value]
        raise CapabilityNotFoundError(CapabilityKind.RESOURCE.value, name or uri, bucket.keys())

    def list(self, kind: CapabilityKind) -> List[Dict[str, Any]]:
        return [capability.metadata() for capability in self._registry[kind].values()]

    @property
    def tools(self) -> Dict[str, Tool]:
        return dict(self._registry[CapabilityKind.TOOL])  # type: ignore[arg-type]

    @property
    def resources(self) -> Dict[str, Resource]:
        return dict(self._registry[CapabilityKind.RESOURCE])  # type: ignore[arg-type]

    @property
    def prompts(self) -> Dict[str, Prompt]:
        return dict(self._registry[CapabilityKind.PROMPT])  # type: ignore[arg-type]

    # --- описание сервера ---

    def get_name(self) -> str:
        return self.name

    @property
    def server_info(self) -> Dict[str, str]:
        return {"name": self.name, "version": self.version}

    @property
    def capabilities(self) -> Dict[str, Dict[str, bool]]:
        return {
            "tools": {"listChanged": self.list_changed},
            "resources": {"subscribe": False, "listChanged": self.list_changed},
            "prompts": {"listChanged": self.list_changed},
        }

    # --- уведомления об изменениях ---

    def add_listener(self, listener: ChangeListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: ChangeListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _notify_list_changed(self, kind: CapabilityKind) -> None:
        notification = {
            "jsonrpc": JSONRPC_VERSION,
            "method": f"notifications/{kind.value}s/list_changed",
        }
        for listener in list(self._listeners):
            try:
                listener(notification)
            except Exception:
                logger.exception("List-changed listener failed")


__all__ = ["ChangeListener", "Server"]
