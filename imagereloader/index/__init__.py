"""Image index for image-reloader.

Submodules:
    reference       -- Image reference parser shared by specs and push events.
    rwlock          -- asyncio reader/writer lock.
    resource_index  -- Image name -> container slot index.
"""

from imagereloader.index.reference import parse_image_reference
from imagereloader.index.resource_index import ResourceIndex

__all__ = ["ResourceIndex", "parse_image_reference"]
