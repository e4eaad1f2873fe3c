"""Canned ACL helpers.

ACLs are kept in the catalog as JSON (``{"owner": ..., "grants": [...]}``)
and rendered as AccessControlPolicy XML. Only canned ACLs from the
``x-amz-acl`` header are accepted; the ACL storage format is ours to choose.
"""

import json
from typing import Any

from dirstore.errors import InvalidArgument

ALL_USERS_URI = "http://acs.amazonaws.com/groups/global/AllUsers"
AUTHENTICATED_USERS_URI = "http://acs.amazonaws.com/groups/global/AuthenticatedUsers"

# Extra group grants on top of the owner's FULL_CONTROL, per canned ACL name
_CANNED_GRANTS: dict[str, list[tuple[str, str]]] = {
    "private": [],
    "public-read": [(ALL_USERS_URI, "READ")],
    "public-read-write": [(ALL_USERS_URI, "READ"), (ALL_USERS_URI, "WRITE")],
    "authenticated-read": [(AUTHENTICATED_USERS_URI, "READ")],
}


def parse_canned_acl(acl_name: str, owner_id: str, owner_display: str) -> dict[str, Any]:
    """Expand a canned ACL name into a full ACL dict.

    Raises:
        InvalidArgument: If the canned ACL name is not recognized.
    """
    if acl_name not in _CANNED_GRANTS:
        raise InvalidArgument(f"Unknown canned ACL: {acl_name}")

    grants: list[dict[str, Any]] = [
        {
            "grantee": {
                "type": "CanonicalUser",
                "id": owner_id,
                "display_name": owner_display,
            },
            "permission": "FULL_CONTROL",
        }
    ]
    for uri, permission in _CANNED_GRANTS[acl_name]:
        grants.append({"grantee": {"type": "Group", "uri": uri}, "permission": permission})

    return {
        "owner": {"id": owner_id, "display_name": owner_display},
        "grants": grants,
    }


def build_default_acl(owner_id: str, owner_display: str) -> dict[str, Any]:
    """The ``private`` ACL: owner FULL_CONTROL only."""
    return parse_canned_acl("private", owner_id, owner_display)


def acl_to_json(acl: dict[str, Any]) -> str:
    return json.dumps(acl)


def acl_from_json(acl_json: str) -> dict[str, Any]:
    """Deserialize a stored ACL; empty or corrupt JSON yields an empty ACL."""
    if not acl_json or acl_json == "{}":
        return {"owner": {"id": "", "display_name": ""}, "grants": []}
    try:
        return json.loads(acl_json)
    except (json.JSONDecodeError, TypeError):
        return {"owner": {"id": "", "display_name": ""}, "grants": []}
