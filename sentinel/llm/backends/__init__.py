"""Completion backends: the real HTTP transport and a scriptable stand-in."""

from sentinel.llm.backends.base import CompletionBackend
from sentinel.llm.backends.http import HTTPBackend
from sentinel.llm.backends.scripted import ScriptedBackend

__all__ = ["CompletionBackend", "HTTPBackend", "ScriptedBackend"]
