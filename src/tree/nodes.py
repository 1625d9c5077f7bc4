# src/tree/nodes.py — v1
"""Tree nodes for browsing a tenant.

A single tagged ``Node`` type covers tenants, folders, resources, the
"load more" pagination entry and informational messages. Behaviour is
dispatched on ``kind`` through ``children()`` and ``refresh_icon()``.
Paged folders (access profiles, roles) keep their window in the tenant
session, so re-creating a folder node does not lose loaded pages.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Awaitable, Callable

from iscadmin.core.models import Resource, Tenant
from iscadmin.paging.loader import PaginatedCollectionLoader

if TYPE_CHECKING:
    from iscadmin.session.tenant_session import TenantSession

logger = logging.getLogger(__name__)


class NodeKind(str, Enum):
    TENANT = "tenant"
    FOLDER = "folder"
    RESOURCE = "resource"
    PAGINATION = "pagination"
    MESSAGE = "message"


class FolderKind(str, Enum):
    """Folder kinds; values double as API collection names."""

    SOURCES = "sources"
    TRANSFORMS = "transforms"
    WORKFLOWS = "workflows"
    RULES = "connector-rules"
    SERVICE_DESKS = "service-desk-integrations"
    IDENTITY_PROFILES = "identity-profiles"
    ACCESS_PROFILES = "access-profiles"
    ROLES = "roles"
    SCHEMAS = "schemas"
    PROVISIONING_POLICIES = "provisioning-policies"


class IdentityProfileSorting(str, Enum):
    NAME = "name"
    PRIORITY = "priority"


_FOLDER_LABELS: dict[FolderKind, str] = {
    FolderKind.SOURCES: "Sources",
    FolderKind.TRANSFORMS: "Transforms",
    FolderKind.WORKFLOWS: "Workflows",
    FolderKind.RULES: "Rules",
    FolderKind.SERVICE_DESKS: "Service Desk",
    FolderKind.IDENTITY_PROFILES: "Identity Profiles",
    FolderKind.ACCESS_PROFILES: "Access Profiles",
    FolderKind.ROLES: "Roles",
    FolderKind.SCHEMAS: "Schemas",
    FolderKind.PROVISIONING_POLICIES: "Provisioning Policies",
}

_TENANT_FOLDERS = (
    FolderKind.SOURCES,
    FolderKind.TRANSFORMS,
    FolderKind.WORKFLOWS,
    FolderKind.RULES,
    FolderKind.SERVICE_DESKS,
    FolderKind.IDENTITY_PROFILES,
    FolderKind.ACCESS_PROFILES,
    FolderKind.ROLES,
)

_PAGED_FOLDERS: dict[FolderKind, str] = {
    FolderKind.ACCESS_PROFILES: "No access profile found",
    FolderKind.ROLES: "No role found",
}

_RESOURCE_ICONS: dict[str, str] = {
    "sources": "source",
    "transforms": "transform",
    "workflows": "workflow",
    "connector-rules": "file-code",
    "service-desk-integrations": "gear",
    "identity-profiles": "person-add",
    "lifecycle-states": "activate-breakpoints",
    "schemas": "symbol-class",
    "provisioning-policies": "symbol-property",
    "access-profiles": "archive",
    "roles": "account",
}

_SOURCE_SUFFIX_RE = re.compile(r" \[source.*\]")


@dataclass(eq=False)
class Node:
    """One entry of the tenant tree."""

    kind: NodeKind
    label: str
    tenant_id: str = ""
    folder: FolderKind | None = None
    resource_type: str = ""
    resource_id: str = ""
    subtype: str = ""
    parent: Node | None = None
    expanded: bool = False
    icon: str = ""
    sort_by: IdentityProfileSorting = IdentityProfileSorting.NAME
    attributes: dict[str, Any] = field(default_factory=dict)

    # --- Constructors ---

    @classmethod
    def for_tenant(cls, tenant: Tenant) -> Node:
        return cls(NodeKind.TENANT, tenant.label, tenant_id=tenant.id)

    @classmethod
    def for_folder(cls, folder: FolderKind, tenant_id: str, parent: Node | None = None) -> Node:
        return cls(NodeKind.FOLDER, _FOLDER_LABELS[folder], tenant_id=tenant_id,
                   folder=folder, parent=parent)

    @classmethod
    def for_resource(
        cls,
        resource: Resource,
        resource_type: str,
        tenant_id: str,
        parent: Node | None = None,
        label: str | None = None,
    ) -> Node:
        return cls(
            NodeKind.RESOURCE,
            label or resource.name,
            tenant_id=tenant_id,
            resource_type=resource_type,
            resource_id=resource.id,
            subtype=resource.type,
            parent=parent,
            attributes=resource.attributes,
        )

    @classmethod
    def message(cls, label: str) -> Node:
        return cls(NodeKind.MESSAGE, label)

    # --- Capabilities ---

    @property
    def collapsible(self) -> bool:
        if self.kind in (NodeKind.TENANT, NodeKind.FOLDER):
            return True
        return self.kind == NodeKind.RESOURCE and self.resource_type in (
            "sources", "identity-profiles"
        )

    @property
    def resource(self) -> Resource:
        """The remote resource behind a RESOURCE node."""
        if self.kind != NodeKind.RESOURCE:
            raise TypeError(f"{self.kind.value} node has no resource")
        return Resource(id=self.resource_id, name=self.label, type=self.subtype,
                        attributes=self.attributes)

    async def children(self, session: TenantSession) -> list[Node]:
        logger.debug("Expanding %s node %r", self.kind.value, self.label)
        handler = _CHILDREN[self.kind]
        return await handler(self, session)

    async def load_more(self, session: TenantSession) -> list[Node]:
        """Fetch the next window of the folder a PAGINATION node belongs to."""
        if self.kind != NodeKind.PAGINATION or self.parent is None:
            raise TypeError(f"{self.kind.value} node cannot load more")
        return await _paged_loader(self.parent, session).load_more()

    async def refresh(self, session: TenantSession) -> list[Node]:
        """Drop paged state below this node and list its children again.

        A tenant node resets every paged folder of the session; a paged
        folder only its own window. Other nodes are simply re-listed.
        """
        if self.kind == NodeKind.TENANT:
            session.reset_loaders()
        elif self.kind == NodeKind.FOLDER and self.folder in _PAGED_FOLDERS:
            _paged_loader(self, session).reset()
        logger.debug("Refreshing %s node %r", self.kind.value, self.label)
        return await self.children(session)

    def refresh_icon(self) -> str:
        if self.kind == NodeKind.TENANT:
            self.icon = "organization"
        elif self.kind == NodeKind.FOLDER:
            self.icon = "folder-opened" if self.expanded else "folder"
        elif self.kind == NodeKind.RESOURCE:
            self.icon = _RESOURCE_ICONS.get(self.resource_type, "file")
        elif self.kind == NodeKind.PAGINATION:
            self.icon = "more"
        else:
            self.icon = "info"
        return self.icon


# --- children() handlers ---


async def _no_children(node: Node, session: TenantSession) -> list[Node]:
    return []


async def _tenant_children(node: Node, session: TenantSession) -> list[Node]:
    return [Node.for_folder(folder, node.tenant_id, parent=node) for folder in _TENANT_FOLDERS]


def _paged_loader(folder_node: Node, session: TenantSession) -> PaginatedCollectionLoader[Node]:
    folder = folder_node.folder
    if folder not in _PAGED_FOLDERS:
        raise TypeError(f"{folder_node.label!r} is not a paged folder")
    collection = folder.value

    def factory() -> PaginatedCollectionLoader[Node]:
        client = session.client

        async def fetch(filters: str, limit: int, offset: int, need_total: bool):
            return await client.fetch_page(collection, filters, limit, offset, need_total)

        return PaginatedCollectionLoader(
            fetch,
            page_size=session.settings.page_size,
            filters=session.settings.default_filters,
            make_item=lambda raw: Node.for_resource(
                Resource.from_api(raw), collection, folder_node.tenant_id
            ),
            make_continuation=lambda: Node(
                NodeKind.PAGINATION, "Load more", tenant_id=folder_node.tenant_id,
                parent=folder_node,
            ),
            make_empty=Node.message,
            empty_label=_PAGED_FOLDERS[folder],
            name=collection,
        )

    return session.loader(f"{collection}:nodes", factory)


def _profile_label(resource: Resource) -> str:
    source = (resource.attributes.get("authoritativeSource") or {}).get("name") or ""
    source = _SOURCE_SUFFIX_RE.sub("", source)
    return f"{resource.name} ({source})" if source else resource.name


def _profile_priority(resource: Resource) -> int:
    priority = resource.attributes.get("priority")
    return priority if isinstance(priority, int) else 0


async def _folder_children(node: Node, session: TenantSession) -> list[Node]:
    folder = node.folder
    if folder is None:
        raise TypeError(f"Folder node {node.label!r} has no folder kind")

    if folder in _PAGED_FOLDERS:
        return await _paged_loader(node, session).children()

    if folder in (FolderKind.SCHEMAS, FolderKind.PROVISIONING_POLICIES):
        source = node.parent
        if source is None:
            return []
        collection = f"sources/{source.resource_id}/{folder.value}"
        resources = await session.client.list_resources(collection)
        if folder == FolderKind.SCHEMAS:
            resources.sort(key=lambda r: r.name.lower())
        return [Node.for_resource(r, folder.value, node.tenant_id, parent=node) for r in resources]

    resources = await session.client.list_resources(folder.value)

    if folder == FolderKind.IDENTITY_PROFILES:
        if node.sort_by == IdentityProfileSorting.PRIORITY:
            resources.sort(key=_profile_priority)
        else:
            resources.sort(key=lambda r: r.name.lower())
        return [
            Node.for_resource(r, folder.value, node.tenant_id, parent=node, label=_profile_label(r))
            for r in resources
        ]

    return [Node.for_resource(r, folder.value, node.tenant_id, parent=node) for r in resources]


async def _resource_children(node: Node, session: TenantSession) -> list[Node]:
    if node.resource_type == "sources":
        return [
            Node.for_folder(FolderKind.SCHEMAS, node.tenant_id, parent=node),
            Node.for_folder(FolderKind.PROVISIONING_POLICIES, node.tenant_id, parent=node),
        ]
    if node.resource_type == "identity-profiles":
        states = await session.client.list_resources(
            f"identity-profiles/{node.resource_id}/lifecycle-states"
        )
        return [Node.for_resource(s, "lifecycle-states", node.tenant_id, parent=node) for s in states]
    return []


_CHILDREN: dict[NodeKind, Callable[[Node, TenantSession], Awaitable[list[Node]]]] = {
    NodeKind.TENANT: _tenant_children,
    NodeKind.FOLDER: _folder_children,
    NodeKind.RESOURCE: _resource_children,
    NodeKind.PAGINATION: _no_children,
    NodeKind.MESSAGE: _no_children,
}
