"""Local deterministic generator for integration tests and smoke runs."""

from __future__ import annotations

import argparse
import json
import os
import sys
import tempfile
import zipfile
from pathlib import Path

from artifact_cache.builder.workdir import GENERATOR_CONFIG_FILE, REQUEST_FILE


def main(argv: list[str] | None = None) -> int:
    """Pack the scratch config files into a zip at the output path."""

    parser = argparse.ArgumentParser()
    parser.add_argument("name")
    parser.add_argument("scratch_dir")
    parser.add_argument("output_path")
    args = parser.parse_args(argv)

    scratch_dir = Path(args.scratch_dir)
    output_path = Path(args.output_path)
    config = json.loads((scratch_dir / GENERATOR_CONFIG_FILE).read_text("utf-8"))
    if os.getenv("ARTIFACT_CACHE_ECHO_FAIL") == "1":
        print(f"echo generator asked to fail for {args.name}", file=sys.stderr)
        return 3

    output_path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(
        dir=output_path.parent,
        prefix=f".{output_path.name}.",
        suffix=".tmp",
    )
    os.close(fd)
    try:
        with zipfile.ZipFile(tmp_name, "w", compression=zipfile.ZIP_DEFLATED) as archive:
            archive.write(scratch_dir / REQUEST_FILE, f"{args.name}/{REQUEST_FILE}")
            archive.write(
                scratch_dir / GENERATOR_CONFIG_FILE,
                f"{args.name}/{GENERATOR_CONFIG_FILE}",
            )
            archive.writestr(f"{args.name}/items.txt", "\n".join(config["items"]) + "\n")
        os.replace(tmp_name, output_path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise
    print(f"generated {output_path}")
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
