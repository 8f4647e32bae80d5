"""Turns overlay payload text and manifest files into mappings and layers them.

Payloads are YAML (JSON is accepted as the YAML subset it is). Layering is
leaf-level: an overlay replaces only the leaves it names.
"""

import json
from pathlib import Path
from typing import Any, Dict, Union
import logging

import yaml

from ..errors import MalformedOverlayError

logger = logging.getLogger(__name__)


class ConfigLoader:
    """Parsing and layering helpers for configuration payloads."""

    @staticmethod
    def parse_payload(key: str, text: str) -> Dict[str, Any]:
        """Parse a single structured-text payload into a mapping.

        Args:
            key: The payload key the text was stored under, used for error reporting.
            text: The raw payload text.

        Returns:
            The parsed mapping. Blank text yields an empty mapping.

        Raises:
            MalformedOverlayError: If the text is not valid YAML or its
                top-level document is not a mapping.
        """
        if text is None or not str(text).strip():
            return {}

        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as e:
            logger.error(f"Failed to parse '{key}' payload: {e}")
            raise MalformedOverlayError(key, str(e)) from e

        if data is None:
            return {}
        if not isinstance(data, dict):
            raise MalformedOverlayError(key, f"expected a mapping, got {type(data).__name__}")
        return data

    @staticmethod
    def load_from_file(path: Union[str, Path]) -> Dict[str, Any]:
        """Read a JSON (by ``.json`` suffix) or YAML manifest.

        Raises:
            FileNotFoundError: No file at ``path``.
            MalformedOverlayError: The content is not a mapping.
        """
        path = Path(path)
        if not path.is_file():
            raise FileNotFoundError(f"Manifest not found: {path}")

        text = path.read_text(encoding='utf-8')
        if not text.strip():
            return {}

        if path.suffix.lower() != '.json':
            return ConfigLoader.parse_payload(str(path), text)

        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise MalformedOverlayError(str(path), str(e)) from e
        if not isinstance(data, dict):
            raise MalformedOverlayError(str(path), "expected a JSON object")
        return data

    @staticmethod
    def merge_configs(*layers: Dict[str, Any]) -> Dict[str, Any]:
        """Layer mappings left to right, later layers winning per leaf.

        Inputs are never modified. An overlay section left empty (``receiver:``)
        keeps the section below it.
        """
        merged: Dict[str, Any] = {}
        for layer in layers:
            if layer:
                merged = ConfigLoader._overlay(merged, layer)
        return merged

    @staticmethod
    def _overlay(below: Dict[str, Any], above: Dict[str, Any]) -> Dict[str, Any]:
        merged = dict(below)
        for key, value in above.items():
            current = merged.get(key)
            if isinstance(current, dict):
                if value is None:
                    continue
                if isinstance(value, dict):
                    merged[key] = ConfigLoader._overlay(current, value)
                    continue
            merged[key] = value
        return merged
