import argparse
import json
from collections.abc import Sequence
from pathlib import Path

from devicegeo.main import app

DEFAULT_OUTPUT = Path("openapi") / "devicegeo.openapi.json"


def build_schema(server_url: str | None = None) -> dict:
    """OpenAPI document of the service, optionally pinned to a deployed server URL."""
    schema = dict(app.openapi())
    if server_url:
        schema["servers"] = [{"url": server_url.rstrip("/")}]
    return schema


def main(argv: Sequence[str] | None = None) -> Path:
    parser = argparse.ArgumentParser(description="Export the device geolocation service OpenAPI schema.")
    parser.add_argument("-o", "--output", type=Path, default=DEFAULT_OUTPUT, help="target JSON file")
    parser.add_argument("--server-url", help="public base URL written into the schema `servers` list")
    args = parser.parse_args(argv)

    schema = build_schema(args.server_url)
    args.output.parent.mkdir(parents=True, exist_ok=True)
    args.output.write_text(json.dumps(schema, indent=2, sort_keys=True) + "\n")
    print(f"Wrote {len(schema['paths'])} paths to {args.output}")  # noqa: T201
    return args.output


if __name__ == "__main__":
    main()
