from .app import BarApp
from .compiler import compileOutput, compileResult
from .config import BarConfig, PluginConfig
from .lineParser import parseLine
from .pluginApi import Directive, ExecutionResult, MenuNode, PluginSource

__all__ = [
    "BarApp",
    "BarConfig",
    "PluginConfig",
    "Directive",
    "ExecutionResult",
    "MenuNode",
    "PluginSource",
    "compileOutput",
    "compileResult",
    "parseLine",
]
