"""Base models shared by configuration and runtime state.

Lives apart from config.py because log.py needs BaseConfig and
config.py needs log.py.
"""

from __future__ import annotations

import sys
from typing import Protocol, runtime_checkable

from pydantic import BaseModel


@runtime_checkable
class Closeable(Protocol):
    def close(self) -> None: ...


class BaseCloseable(BaseModel):
    """Model that closes its Closeable fields when closed.

    Also a context manager. State closing cascades down through Config
    and Logger to the individual sinks. An error from one child is
    reported on stderr and the remaining children are still closed.
    """

    def close(self):
        for name in type(self).model_fields:
            child = getattr(self, name, None)
            if not isinstance(child, Closeable):
                continue
            try:
                child.close()
            except Exception as e:
                print(f"Warning: Error closing {name}: {e}", file=sys.stderr)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False


class BaseConfig(BaseCloseable):
    """Section of configuration loaded from YAML, env or CLI."""


class BaseState(BaseCloseable):
    """Runtime state changed while a workflow runs."""


__all__ = ["Closeable", "BaseCloseable", "BaseConfig", "BaseState"]
