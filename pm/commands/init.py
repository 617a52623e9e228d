"""
pm init command (--init).

Write a commented starter config; an existing file is left untouched.
"""

import sys
from typing import Any

from plugsync.config import find_config_file, generate_default_config


def init_command(args: Any) -> int:
    path = find_config_file(args.config)
    if path.exists():
        print(f"Error: {path} already exists", file=sys.stderr)
        return 1

    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(generate_default_config(), encoding="utf-8")
    print(f"Wrote {path}")
    return 0
