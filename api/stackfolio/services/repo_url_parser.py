"""Parse free-form repository references into (owner, name).

Platforms report the linked repository in different spellings:

- ``https://github.com/acme/widgets`` (Netlify ``build_settings.repo_url``,
  Render ``service.repo``, Vercel after reshaping)
- ``https://github.com/acme/widgets.git``
- ``git@github.com:acme/widgets.git``
- ``acme/widgets``
"""

from __future__ import annotations

import re
from typing import Any, Optional

from stackfolio.models.repository import RepoRef

SOURCE_CONTROL_HOSTS = ("github.com",)

_HOSTS = "|".join(re.escape(host) for host in SOURCE_CONTROL_HOSTS)
_SEGMENT = r"[A-Za-z0-9_.-]+"

_WEB_URL = re.compile(
    rf"^(?:[a-z][a-z0-9+.-]*://)?(?:www\.)?(?:{_HOSTS})/(?P<owner>{_SEGMENT})/(?P<name>{_SEGMENT}?)(?:\.git)?/?$",
    re.IGNORECASE,
)
_SSH = re.compile(
    rf"^git@(?:{_HOSTS}):(?P<owner>{_SEGMENT})/(?P<name>{_SEGMENT}?)(?:\.git)?/?$",
    re.IGNORECASE,
)
_BARE = re.compile(rf"^(?P<owner>{_SEGMENT})/(?P<name>{_SEGMENT}?)(?:\.git)?$")


def parse_repo_ref(value: Any) -> Optional[RepoRef]:
    """Return the RepoRef named by ``value``, or None when it names no repository."""
    if not isinstance(value, str):
        return None
    text = value.strip()
    if not text:
        return None
    for pattern in (_WEB_URL, _SSH, _BARE):
        match = pattern.match(text)
        if match and match.group("owner") and match.group("name"):
            return RepoRef(owner=match.group("owner"), name=match.group("name"))
    return None
