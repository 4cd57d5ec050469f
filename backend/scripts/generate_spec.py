#!/usr/bin/env python
"""Generate the OpenAPI spec JSON.

Usage:
  python backend/scripts/generate_spec.py --out backend/openapi.json
  python backend/scripts/generate_spec.py            # print the spec hash only

The hash is a sha256 over the canonical JSON (sorted keys, no whitespace) so a
changed API surface shows up as a changed hash in CI logs.
"""
from __future__ import annotations
import argparse, json, hashlib, pathlib, sys

sys.path.append(str(pathlib.Path(__file__).resolve().parents[1]))

from repairdesk.openapi import build_openapi_spec  # noqa: E402


def compute_spec_and_hash():
    spec = build_openapi_spec()
    blob = json.dumps(spec, sort_keys=True, separators=(',', ':')).encode()
    return spec, hashlib.sha256(blob).hexdigest()


def main(argv: list[str]) -> int:
    p = argparse.ArgumentParser(description="Generate deterministic OpenAPI spec")
    p.add_argument('--out', dest='out', help='Path to write JSON spec')
    args = p.parse_args(argv)

    spec, h = compute_spec_and_hash()
    if args.out:
        out_path = pathlib.Path(args.out)
        out_path.parent.mkdir(parents=True, exist_ok=True)
        out_path.write_text(json.dumps(spec, indent=2, sort_keys=True) + '\n')
        print(f"Wrote spec JSON to {out_path} ({len(spec['paths'])} paths)")
    print(h)
    return 0


if __name__ == '__main__':  # pragma: no cover
    sys.exit(main(sys.argv[1:]))
