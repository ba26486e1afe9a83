"""
Structured ffmpeg filter graphs.

Filters are kept as typed nodes with explicit parameters so values can be
checked before anything reaches the command line. The textual
`-filter_complex` / `-vf` syntax is produced only by `serialize()`.
"""

import math
from typing import Any, Dict, List, Optional, Union
from pydantic import BaseModel, Field

from ..errors import InvalidParametersError

FilterValue = Union[str, int, float, bool]

# Characters that force an option value to be quoted
_SPECIAL_CHARS = set(",:;[]'")


def format_value(value: FilterValue) -> str:
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        text = f"{value:.4f}".rstrip('0').rstrip('.')
        return text if text not in ("", "-0") else "0"
    text = str(value)
    if any(ch in _SPECIAL_CHARS for ch in text):
        return "'" + text.replace("'", r"\'") + "'"
    return text


class FilterNode(BaseModel):
    """One filter with positional and named options"""
    name: str
    args: List[FilterValue] = Field(default_factory=list)
    options: Dict[str, FilterValue] = Field(default_factory=dict)

    def validate_numbers(self) -> None:
        for key, value in list(enumerate(self.args)) + list(self.options.items()):
            if isinstance(value, float) and not math.isfinite(value):
                raise InvalidParametersError(f"Filter {self.name} has non-finite value for {key}: {value}")

    def serialize(self) -> str:
        parts = [format_value(arg) for arg in self.args]
        parts.extend(f"{key}={format_value(value)}" for key, value in self.options.items())
        if not parts:
            return self.name
        return f"{self.name}=" + ":".join(parts)


class FilterChain(BaseModel):
    """Linear run of filters between labeled pads"""
    nodes: List[FilterNode]
    inputs: List[str] = Field(default_factory=list)
    outputs: List[str] = Field(default_factory=list)

    def serialize(self) -> str:
        head = "".join(f"[{label}]" for label in self.inputs)
        tail = "".join(f"[{label}]" for label in self.outputs)
        return head + ",".join(node.serialize() for node in self.nodes) + tail


class FilterGraph(BaseModel):
    """Ordered filter chains; serialized to ffmpeg syntax as the last step"""
    chains: List[FilterChain] = Field(default_factory=list)

    def add(self, nodes: List[FilterNode], inputs: Optional[List[str]] = None,
            outputs: Optional[List[str]] = None) -> "FilterGraph":
        if not nodes:
            raise InvalidParametersError("Filter chain must contain at least one filter")
        for node in nodes:
            node.validate_numbers()
        self.chains.append(FilterChain(nodes=nodes, inputs=inputs or [], outputs=outputs or []))
        return self

    @property
    def output_labels(self) -> List[str]:
        return [label for chain in self.chains for label in chain.outputs]

    def find(self, name: str) -> List[FilterNode]:
        return [node for chain in self.chains for node in chain.nodes if node.name == name]

    def serialize(self) -> str:
        return ";".join(chain.serialize() for chain in self.chains)

    def __str__(self) -> str:
        return self.serialize()


def node(name: str, *args: Any, **options: Any) -> FilterNode:
    """Shorthand constructor: node('scale', 1920, 1080) -> scale=1920:1080"""
    return FilterNode(name=name, args=list(args), options=options)
