"""Run parameters: reader locations, model and metrics locations and per stage overrides"""

import json
import os
from dataclasses import fields, replace
from typing import Any, Dict, Optional

import yaml
from pydantic import Field, ValidationError
from pydantic.dataclasses import dataclass


def _to_camel(name: str) -> str:
    head, *tail = name.split("_")
    return head + "".join(part.title() for part in tail)


def _from_mapping(cls, values: Dict[str, Any]) -> Dict[str, Any]:
    """Accept both snake_case and camelCase keys; unknown keys are rejected"""
    by_key = {}
    for f in fields(cls):
        by_key[f.name] = f.name
        by_key[_to_camel(f.name)] = f.name

    kwargs = {}
    for key, value in values.items():
        if key not in by_key:
            raise ValueError(f"Unknown parameter '{key}' for {cls.__name__}")
        kwargs[by_key[key]] = value
    return kwargs


def _to_mapping(obj) -> Dict[str, Any]:
    out = {}
    for f in fields(obj):
        value = getattr(obj, f.name)
        if isinstance(value, dict):
            value = {k: v.to_dict() if isinstance(v, ReaderParams) else v for k, v in value.items()}
        if value is None or value == {}:
            continue
        out[_to_camel(f.name)] = value
    return out


@dataclass(frozen=True)
class ReaderParams:
    """Parameters of one data reader"""

    path: Optional[str] = None
    partitions: Optional[int] = None
    custom_params: Dict[str, Any] = Field(default_factory=dict)

    def with_values(self, path: str) -> "ReaderParams":
        """Copy with a new read path"""
        return replace(self, path=path)

    def to_dict(self) -> Dict[str, Any]:
        return _to_mapping(self)

    @classmethod
    def from_dict(cls, values: Dict[str, Any]) -> "ReaderParams":
        return cls(**_from_mapping(cls, values or {}))


@dataclass(frozen=True)
class OpParams:
    """
    Parameters of one run, loaded from a JSON or YAML file.

    ``stage_params`` maps a stage name to parameter overrides for that stage; reader
    params are keyed by reader name.
    """

    stage_params: Dict[str, Dict[str, Any]] = Field(default_factory=dict)
    reader_params: Dict[str, ReaderParams] = Field(default_factory=dict)
    model_location: Optional[str] = None
    write_location: Optional[str] = None
    metrics_location: Optional[str] = None
    metrics_compress: Optional[bool] = None
    metrics_codec: Optional[str] = None
    custom_tag_name: Optional[str] = None
    custom_tag_value: Optional[str] = None
    log_stage_metrics: Optional[bool] = None
    collect_stage_metrics: Optional[bool] = None
    custom_params: Dict[str, Any] = Field(default_factory=dict)
    alternate_reader_params: Dict[str, ReaderParams] = Field(default_factory=dict)

    @staticmethod
    def _update_readers(
        readers: Dict[str, ReaderParams], locations: Optional[Dict[str, str]]
    ) -> Dict[str, ReaderParams]:
        updated = dict(readers)
        for name, path in (locations or {}).items():
            updated[name] = updated[name].with_values(path) if name in updated else ReaderParams(path=path)
        return updated

    def with_values(
        self,
        read_locations: Optional[Dict[str, str]] = None,
        write_location: Optional[str] = None,
        model_location: Optional[str] = None,
        metrics_location: Optional[str] = None,
        alternate_read_locations: Optional[Dict[str, str]] = None,
    ) -> "OpParams":
        """
        Copy with new locations

        Args:
            read_locations: Reader name to read path; existing readers keep their other settings
            write_location: Location scores are written to
            model_location: Location the model is saved to or loaded from
            metrics_location: Location metrics are written to
            alternate_read_locations: Same as ``read_locations`` for the alternate readers

        Returns:
            New OpParams; locations that are not given are kept
        """
        return replace(
            self,
            reader_params=self._update_readers(self.reader_params, read_locations),
            alternate_reader_params=self._update_readers(self.alternate_reader_params, alternate_read_locations),
            write_location=write_location or self.write_location,
            model_location=model_location or self.model_location,
            metrics_location=metrics_location or self.metrics_location,
        )

    def switch_reader_params(self) -> "OpParams":
        """Swap the reader params with the alternate reader params"""
        return replace(self, reader_params=self.alternate_reader_params, alternate_reader_params=self.reader_params)

    def to_dict(self) -> Dict[str, Any]:
        return _to_mapping(self)

    @classmethod
    def from_dict(cls, values: Dict[str, Any]) -> "OpParams":
        """
        Build from a mapping with snake_case or camelCase keys

        Raises:
            ValueError: On unknown keys or values of the wrong type
        """
        kwargs = _from_mapping(cls, values or {})
        for key in ("reader_params", "alternate_reader_params"):
            if key in kwargs:
                kwargs[key] = {name: ReaderParams.from_dict(r) for name, r in (kwargs[key] or {}).items()}
        try:
            return cls(**kwargs)
        except ValidationError as e:
            raise ValueError(f"Invalid parameters: {e}") from e

    @classmethod
    def from_string(cls, text: str) -> "OpParams":
        """Parse JSON or YAML text"""
        values = yaml.safe_load(text)
        if values is None:
            return cls()
        if not isinstance(values, dict):
            raise ValueError("Parameters must be a mapping")
        return cls.from_dict(values)

    @classmethod
    def from_file(cls, params_file: str) -> "OpParams":
        """Load from a .json, .yaml or .yml file"""
        if not os.path.exists(params_file):
            raise FileNotFoundError(f"Params file does not exist: {params_file}")
        with open(params_file, "r") as f:
            return cls.from_string(f.read())

    def to_json_string(self, indent: Optional[int] = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)

    def to_yaml_string(self) -> str:
        return yaml.safe_dump(self.to_dict(), default_flow_style=False, sort_keys=False)
