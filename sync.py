#!/usr/bin/env python3
"""NVD Mirror sync — thin shim.

Lets ``python sync.py`` and CI jobs run the mirror without installing the
console script.  The real implementation lives in ``nvdmirror/``.
"""

from nvdmirror.cli import main

if __name__ == "__main__":
    raise SystemExit(main())
