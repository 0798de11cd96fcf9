"""User-visible notification queue for client components."""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional


class ToastVariant(str, Enum):
    SUCCESS = "success"
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


@dataclass
class Toast:
    """A single notification.

    ``timeout`` is in milliseconds; None leaves it to the renderer (3000).
    """

    id: str
    title: str
    variant: ToastVariant
    timeout: Optional[int] = None


class ToastStore:
    """Ordered collection of pending toasts."""

    def __init__(self):
        self._toasts: List[Toast] = []

    @property
    def toasts(self) -> List[Toast]:
        return list(self._toasts)

    def remove(self, toast_id: str) -> None:
        self._toasts = [toast for toast in self._toasts if toast.id != toast_id]

    def _push(self, title: str, variant: ToastVariant, timeout: Optional[int]) -> Toast:
        toast = Toast(id=f"toast-{uuid.uuid4()}", title=title, variant=variant, timeout=timeout)
        self._toasts.append(toast)
        return toast

    def info(self, title: str, timeout: Optional[int] = None) -> Toast:
        return self._push(title, ToastVariant.INFO, timeout)

    def success(self, title: str, timeout: Optional[int] = None) -> Toast:
        return self._push(title, ToastVariant.SUCCESS, timeout)

    def warning(self, title: str, timeout: Optional[int] = None) -> Toast:
        return self._push(title, ToastVariant.WARNING, timeout)

    def error(self, title: str, timeout: Optional[int] = None) -> Toast:
        return self._push(title, ToastVariant.ERROR, timeout)
