"""
Family roles and what each one may do.
Consulted by core.dependencies when a route needs more than plain membership.
"""

OWNER = "owner"
ADMIN = "admin"
MEMBER = "member"

ROLES = (OWNER, ADMIN, MEMBER)

# Define resources and their actions
RESOURCES = {
    "families": {
        "actions": ["read", "update", "delete", "transfer"],
        "description": "Family group settings"
    },
    "members": {
        "actions": ["read", "remove", "change_role"],
        "description": "Family membership"
    },
    "invite_code": {
        "actions": ["regenerate"],
        "description": "Family join code"
    },
    "journal": {
        "actions": ["read", "write"],
        "description": "Restaurants, visits and dishes"
    }
}

# Role definitions
ROLE_TYPES = {
    MEMBER: {
        "permissions": [
            "families:read",
            "members:read",
            "journal:read",
            "journal:write",
        ],
        "description": "Reads and writes the family journal"
    },
    ADMIN: {
        "inherits": MEMBER,
        "permissions": [
            "families:update",
            "members:remove",
        ],
        "description": "Manages family details and members"
    },
    OWNER: {
        "inherits": ADMIN,
        "permissions": [
            "families:delete",
            "families:transfer",
            "members:change_role",
            "invite_code:regenerate",
        ],
        "description": "Created the family; only one per family"
    }
}


def get_role_permissions(role: str) -> set:
    """Return every permission granted to a role, including inherited ones."""
    permissions = set()
    while role:
        role_config = ROLE_TYPES.get(role)
        if role_config is None:
            break
        permissions.update(role_config["permissions"])
        role = role_config.get("inherits")
    return permissions


def role_can(role: str, permission: str) -> bool:
    return permission in get_role_permissions(role)


def get_permission_matrix():
    """
    Returns every permission and the roles holding it
    Format: {
        "permissions": [{"name": "journal:write", "resource": "journal", "action": "write", "roles": [...]}, ...]
    }
    """
    permissions = []
    for resource, resource_config in RESOURCES.items():
        for action in resource_config["actions"]:
            name = f"{resource}:{action}"
            permissions.append({
                "name": name,
                "resource": resource,
                "action": action,
                "roles": [role for role in ROLES if role_can(role, name)]
            })
    return {"permissions": permissions}
