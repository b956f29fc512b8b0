"""Static routes: O routes carry a ``uuid`` attribute and a ``disabled`` child."""
from ..tree import XmlNode, stable_uuid


def to_opnsense(out: XmlNode, source: XmlNode, baseline: XmlNode) -> None:
    routes = out.child("staticroutes")
    if routes is None:
        return
    for idx, route in enumerate(routes.children_named("route")):
        if "uuid" not in route.attributes:
            seed = "|".join([
                route.text_at("network") or "",
                route.text_at("gateway") or "",
                route.text_at("descr") or "",
                str(idx),
            ])
            route.attributes["uuid"] = stable_uuid("route", idx, seed)
        if route.child("disabled") is None:
            route.append_text_child("disabled", "0")


def to_pfsense(out: XmlNode, source: XmlNode, baseline: XmlNode) -> None:
    routes = out.child("staticroutes")
    if routes is None:
        return
    for route in routes.children_named("route"):
        route.attributes.pop("uuid", None)
        route.remove_children("disabled")
