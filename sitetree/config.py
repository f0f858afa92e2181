from __future__ import annotations

import importlib
import json
import sys
import tomllib
from pathlib import Path
from typing import Callable

import yaml


def load_config(path: Path) -> dict:
    if not path.exists():
        return {}
    suffix = path.suffix.lower()
    text = path.read_text(encoding="utf-8")
    if suffix == ".toml":
        try:
            data = tomllib.loads(text)
        except tomllib.TOMLDecodeError as exc:
            print(f"Invalid TOML in config file {path}: {exc}", file=sys.stderr)
            sys.exit(1)
        return data
    if suffix in {".yml", ".yaml"}:
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            print(f"Invalid YAML in config file {path}: {exc}", file=sys.stderr)
            sys.exit(1)
        if data is None:
            return {}
        if not isinstance(data, dict):
            print(f"YAML config must be a mapping: {path}", file=sys.stderr)
            sys.exit(1)
        return data
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        print(f"Invalid JSON in config file {path}: {exc}", file=sys.stderr)
        sys.exit(1)
    if not isinstance(data, dict):
        print(f"JSON config must be an object: {path}", file=sys.stderr)
        sys.exit(1)
    return data


def resolve_processor(value: str) -> Callable | None:
    """Import a processor given as ``package.module:function``."""
    value = (value or "").strip()
    if not value:
        return None
    module_name, sep, attr = value.partition(":")
    if not sep or not module_name or not attr:
        print(f"Processor must look like 'module:function', got {value!r}", file=sys.stderr)
        sys.exit(1)
    try:
        module = importlib.import_module(module_name)
    except ImportError as exc:
        print(f"Cannot import processor module {module_name}: {exc}", file=sys.stderr)
        sys.exit(1)
    func = getattr(module, attr, None)
    if not callable(func):
        print(f"Processor {value} is not callable.", file=sys.stderr)
        sys.exit(1)
    return func
