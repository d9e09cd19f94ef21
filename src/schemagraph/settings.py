"""Runtime settings for schemagraph.

Values can be overridden with ``SCHEMAGRAPH_*`` environment variables or a
``.env`` file in the working directory. List-valued settings are given as JSON
arrays, e.g. ``SCHEMAGRAPH_PRIMITIVE_PATH_PATTERNS='["/scalars/"]'``.
"""

from typing import List, Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]

DEFAULT_PRIMITIVE_PATH_PATTERNS: List[str] = [
    "/primitives/",
    "/string.schema.json",
    "/integer.schema.json",
    "/number.schema.json",
    "/boolean.schema.json",
    "/binary-flag.schema.json",
    "/numeric-string.schema.json",
    "/non-empty-string.schema.json",
    "/positive-integer.schema.json",
    "/short-code-string.schema.json",
    "/datatype.schema.json",
    "/datatype-enum.schema.json",
]

DEFAULT_PRIMITIVE_FILENAME_SUFFIXES: List[str] = [
    "id.schema.json",
    "name.schema.json",
    "description.schema.json",
    "key.schema.json",
    "value.schema.json",
]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="SCHEMAGRAPH_",
        env_file=".env",
        extra="ignore",
    )

    log_level: LogLevel = "INFO"

    # Longest first: ".schema.json" must be stripped before ".json".
    schema_suffixes: List[str] = Field(default_factory=lambda: [".schema.json", ".json"])
    primitive_path_patterns: List[str] = Field(
        default_factory=lambda: list(DEFAULT_PRIMITIVE_PATH_PATTERNS)
    )
    primitive_filename_suffixes: List[str] = Field(
        default_factory=lambda: list(DEFAULT_PRIMITIVE_FILENAME_SUFFIXES)
    )

    # Import schema matching
    match_threshold: float = 0.5
    partial_match_warning: float = 0.8

    # Placeholder grid used for imported instances
    node_width: float = 320
    node_height: float = 200
    horizontal_gap: float = 100
    vertical_gap: float = 80

    paste_offset: float = 50
    storage_dir: str = "./.schemagraph"


settings = Settings()
