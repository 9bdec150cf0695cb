"""
Configuration handling for the bunfs dumper.
"""

from dataclasses import dataclass, fields as dataclass_fields
from typing import Optional
import json
from pathlib import Path

from .utils.string_utils import to_camel_case, to_snake_case


@dataclass
class Config:
    """Configuration options for the bunfs dumper."""

    # Locator options
    section_name: str = ".bun"

    # Output options
    write_sourcemaps: bool = True
    write_bytecode: bool = True
    write_exec_argv: bool = True

    # Runtime options
    verbose: bool = False
    require_any_key: bool = False

    @classmethod
    def load(cls, path: Optional[Path] = None) -> 'Config':
        """Load configuration from a JSON file."""
        if path is None:
            path = Path(__file__).parent / 'config.json'

        if not path.exists():
            return cls()

        with open(path, 'r') as f:
            data = json.load(f)

        # Convert camelCase to snake_case
        converted = {to_snake_case(key): value for key, value in data.items()}

        # Filter to only include valid fields
        valid_fields = {f.name for f in dataclass_fields(cls)}
        filtered = {k: v for k, v in converted.items() if k in valid_fields}

        return cls(**filtered)

    def save(self, path: Path) -> None:
        """Save configuration to a JSON file."""
        # Convert snake_case to camelCase for compatibility
        data = {to_camel_case(key): value for key, value in self.__dict__.items()}

        with open(path, 'w') as f:
            json.dump(data, f, indent=2)
