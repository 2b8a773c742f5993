"""Entry point for `python -m imagereloader`.

Usage:
    python -m imagereloader
    IMAGE_RELOADER_NAMESPACE=apps python -m imagereloader
"""

from __future__ import annotations

import asyncio

from imagereloader.app import main

asyncio.run(main())
