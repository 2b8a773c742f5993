"""Container image reference parsing.

The same parser is applied to container images read from workload specs and
to ``resource_url`` values carried by registry push events, so the two
vocabularies always agree on what the image name is.
"""

from __future__ import annotations


def parse_image_reference(reference: str) -> tuple[str, str]:
    """Split *reference* into ``(name, tag)``.

    When a ``:`` appears before any ``@`` the reference is split at its last
    ``:``.  When an ``@`` comes first it is a digest reference and is split
    at its last ``@``, so the digest algorithm stays in the tag.  A
    reference with neither separator yields an empty tag, which callers
    treat as unparseable.  Never raises.

    A digest reference on a registry with a port has its first ``:`` before
    the ``@``, so it takes the last-``:`` split.  Its name keeps the
    ``@sha256`` suffix and it never matches a pushed tag; such slots are not
    rolled.

    Examples::

        registry:5000/ns/app:1.2.3     -> ("registry:5000/ns/app", "1.2.3")
        repo/app@sha256:abcd           -> ("repo/app", "sha256:abcd")
        registry:5000/app@sha256:abcd  -> ("registry:5000/app@sha256", "abcd")
        nginx                          -> ("nginx", "")
        ""                             -> ("", "")
    """
    if not reference:
        return "", ""
    colon = reference.find(":")
    at = reference.find("@")
    if colon != -1 and (at == -1 or colon < at):
        name, _, tag = reference.rpartition(":")
        return name, tag
    if at != -1:
        name, _, tag = reference.rpartition("@")
        return name, tag
    return reference, ""
