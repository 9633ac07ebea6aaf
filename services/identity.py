# services/identity.py - Acting operator for in/out operations
#
# The transition engine never looks the user up itself; the UI asks here
# and passes the name along as the actor.

OPERATOR_SETTING = "operator_name"
DEFAULT_OPERATOR = "local"


def get_current_user_id(repo=None) -> str:
    """
    Operator name from settings, or "local" if unset or unavailable.
    """
    if repo is None:
        return DEFAULT_OPERATOR
    name = repo.get_setting(OPERATOR_SETTING, "")
    return (name or "").strip() or DEFAULT_OPERATOR


def set_current_user(repo, name: str) -> None:
    """Remember the operator name for later sessions. Raises ValueError on a blank name."""
    name = (name or "").strip()
    if not name:
        raise ValueError("Operator name is required")
    repo.set_setting(OPERATOR_SETTING, name)
