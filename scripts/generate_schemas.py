"""Generate the JSON schema of the config document and save it to schemas/."""

import json
from pathlib import Path

from plox._internal.io.config import ConfigDocument


def generate_schemas():
    """Generate JSON schemas for all user-written documents."""
    schemas_dir = Path(__file__).parent.parent / "schemas"
    schemas_dir.mkdir(exist_ok=True)

    config_schema = ConfigDocument.model_json_schema()
    config_schema_path = schemas_dir / "config_document.schema.json"
    with open(config_schema_path, 'w', encoding='utf-8') as f:
        json.dump(config_schema, f, indent=2, ensure_ascii=False)
    print(f"Generated: {config_schema_path}")

    print("\nSchema generation complete!")


if __name__ == "__main__":
    generate_schemas()
