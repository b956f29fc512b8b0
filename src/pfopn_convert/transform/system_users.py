"""Login administrator mapping and GUI user preservation.

Dialect P keeps the administrator as ``admin`` with a ``bcrypt-hash``
credential; dialect O calls it ``root`` with a ``password`` credential.
Non-admin users with GUI access are carried over with a whitelisted field
set and their credential written under the target's tag.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from ..tree import XmlNode

logger = logging.getLogger(__name__)

CREDENTIAL_TAGS = ("password", "bcrypt-hash", "sha512-hash")
GUI_USER_FIELDS = frozenset({
    "name", "uid", "disabled", "descr", "scope", "groupname", "priv",
    "password", "bcrypt-hash", "sha512-hash", "authorizedkeys",
})
COPIED_FIELDS = ("disabled", "descr", "scope", "groupname", "authorizedkeys")


@dataclass
class GuiUser:
    name: str
    uid: Optional[str]
    node: XmlNode


# === Credential helpers ===

def user_credential(user: XmlNode) -> Optional[str]:
    """First non-empty credential in priority order password, bcrypt-hash, sha512-hash."""
    for tag in CREDENTIAL_TAGS:
        value = user.value(tag)
        if value:
            return value
    return None


def set_user_credential(user: XmlNode, tag: str, value: Optional[str]) -> None:
    """Write ``value`` under ``tag``, renaming an existing credential element."""
    if value is None:
        return
    preferred = user.child(tag)
    if preferred is not None:
        preferred.text = value
        return
    for node in user.children:
        if node.tag in CREDENTIAL_TAGS:
            node.tag = tag
            node.text = value
            return
    user.append_text_child(tag, value)


# === Lookups ===

def _users(root: XmlNode) -> list[XmlNode]:
    system = root.child("system")
    return system.children_named("user") if system is not None else []


def _find_by_name(root: XmlNode, name: str) -> Optional[XmlNode]:
    for user in _users(root):
        if (user.value("name") or "").lower() == name.lower():
            return user
    return None


def _find_by_uid(root: XmlNode, uid: str) -> Optional[XmlNode]:
    for user in _users(root):
        if user.value("uid") == uid:
            return user
    return None


# === Login administrator ===

def map_login_user(out: XmlNode, source: XmlNode, source_name: str,
                   target_name: str, credential_tag: str) -> None:
    """Carry the source administrator credential onto the target administrator."""
    source_user = _find_by_name(source, source_name) or _find_by_uid(source, "0")
    system = out.child("system")
    if source_user is None or system is None:
        return

    credential = user_credential(source_user)
    updated = False
    for user in system.children_named("user"):
        name_match = (user.value("name") or "").lower() == target_name.lower()
        if name_match or user.value("uid") == "0":
            set_user_credential(user, credential_tag, credential)
            updated = True
    if updated:
        return

    created = source_user.clone()
    created.set_text_child("name", target_name)
    set_user_credential(created, credential_tag, credential)
    system.append(created)
    logger.debug(f"Created login user {target_name}")


def remove_user_by_name(out: XmlNode, name: str) -> None:
    system = out.child("system")
    if system is None:
        return
    system.retain(
        lambda n: n.tag != "user" or (n.value("name") or "").lower() != name.lower()
    )


# === GUI users ===

def _has_gui_privileges(user: XmlNode) -> bool:
    if (user.value("groupname") or "").lower() == "admins":
        return True
    return any(
        (priv.value() or "").lower().startswith("page-")
        for priv in user.children_named("priv")
    )


def _sanitize(user: XmlNode) -> XmlNode:
    sanitized = XmlNode("user", dict(user.attributes))
    for child in user.children:
        if child.tag in GUI_USER_FIELDS:
            sanitized.append(child.clone())
    return sanitized


def collect_gui_users(root: XmlNode) -> list[GuiUser]:
    """Enabled non-root users with page privileges or admin group membership."""
    found = []
    for user in _users(root):
        uid = user.value("uid")
        if uid == "0":
            continue
        if user.value("disabled") == "1":
            continue
        if not _has_gui_privileges(user):
            continue
        sanitized = _sanitize(user)
        name = sanitized.value_or("", "name")
        if not name and uid is None:
            continue
        found.append(GuiUser(name=name, uid=uid, node=sanitized))
    return found


def _update_gui_user(dest: XmlNode, gui_user: GuiUser, credential_tag: str) -> None:
    # New privileges take the slot of the first old one
    slots = [idx for idx, child in enumerate(dest.children) if child.tag == "priv"]
    at = slots[0] if slots else len(dest.children)
    dest.remove_children("priv")
    dest.children[at:at] = [priv.clone() for priv in gui_user.node.children_named("priv")]
    for tag in COPIED_FIELDS:
        value = gui_user.node.value(tag)
        if value:
            dest.set_text_child(tag, value)
    set_user_credential(dest, credential_tag, user_credential(gui_user.node))


def preserve_gui_users(out: XmlNode, source: XmlNode, credential_tag: str) -> None:
    system = out.child("system")
    if system is None:
        return
    for gui_user in collect_gui_users(source):
        dest = None
        if gui_user.uid is not None:
            dest = _find_by_uid(out, gui_user.uid)
            if dest is not None and dest.value("name") != gui_user.name:
                logger.warning(
                    f"UID collision for GUI user {gui_user.name} (uid {gui_user.uid}); "
                    f"updating existing user {dest.value('name')}"
                )
        if dest is None:
            dest = next(
                (u for u in system.children_named("user") if u.value("name") == gui_user.name),
                None,
            )
        if dest is not None:
            _update_gui_user(dest, gui_user, credential_tag)
            continue
        created = gui_user.node.clone()
        set_user_credential(created, credential_tag, user_credential(gui_user.node))
        system.append(created)


def to_opnsense(out: XmlNode, source: XmlNode, baseline: XmlNode) -> None:
    map_login_user(out, source, "admin", "root", "password")
    preserve_gui_users(out, source, "password")
    remove_user_by_name(out, "admin")


def to_pfsense(out: XmlNode, source: XmlNode, baseline: XmlNode) -> None:
    map_login_user(out, source, "root", "admin", "bcrypt-hash")
    preserve_gui_users(out, source, "bcrypt-hash")
    remove_user_by_name(out, "root")
