"""Compile an OpenAPI document into MCP tool definitions and print them as JSON."""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from typing import Any, Dict, List

from openapi_connector.models import CompileOptions
from openapi_connector.openapi import OpenAPILoader, ToolCompiler


def _split(value: str) -> List[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


async def _compile(args: argparse.Namespace) -> List[Dict[str, Any]]:
    spec = await OpenAPILoader().load_spec(args.spec)
    options = CompileOptions(
        prefix=args.prefix,
        include_only=set(_split(args.include_only)) or None,
        exclude=set(_split(args.exclude)),
    )
    tools = ToolCompiler().compile(spec, options)
    if args.dispatch_info:
        return [tool.dispatch_info() for tool in tools]
    return [tool.public_view() for tool in tools]


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("spec", help="Path or URL of the OpenAPI JSON document")
    parser.add_argument("--prefix", default="", help="Tool name prefix")
    parser.add_argument("--include-only", default="", help="Comma-separated tool names to keep")
    parser.add_argument("--exclude", default="", help="Comma-separated tool names to drop")
    parser.add_argument(
        "--dispatch-info",
        action="store_true",
        help="Print endpoint and parameter classification instead of the public listing",
    )
    args = parser.parse_args()

    tools = asyncio.run(_compile(args))
    json.dump(tools, sys.stdout, indent=2)
    sys.stdout.write("\n")
    print(f"Compiled {len(tools)} tools", file=sys.stderr)


if __name__ == "__main__":
    main()
