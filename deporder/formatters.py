"""Output formatters for various formats."""

import json
import logging
import re
from datetime import datetime, timezone
from typing import List, Sequence
from uuid import uuid4

from packageurl import PackageURL
from cyclonedx.model.bom import Bom
from cyclonedx.model.component import Component, ComponentType, ComponentScope
from cyclonedx.output.json import JsonV1Dot6

from .graph_builder import Tree
from .models import Node, Priority

logger = logging.getLogger(__name__)


class OutputFormatter:
    """Formatter for various output formats."""

    @staticmethod
    def format_as_list(order: Sequence[str]) -> str:
        """Format the build order as a flat list (one per line)."""
        if not order:
            return ''
        return '\n'.join(order) + '\n'

    @staticmethod
    def format_as_tree(tree: Tree) -> str:
        """Format as a tree visualization of the live edges."""
        root = tree.root
        lines = [root.id]
        OutputFormatter._tree_lines(tree, root, "", lines)

        order = tree.order()
        lines.extend([
            "",
            "Build Order Statistics:",
            f"  Total Packages: {len(order)}",
            f"  Pruned Edges: {tree.stats.get('pruned', 0)}",
            f"  Rewires: {tree.stats.get('rewires', 0)}",
        ])
        return '\n'.join(lines) + '\n'

    @staticmethod
    def _tree_lines(tree: Tree, node: Node, prefix: str, lines: List[str]) -> None:
        for i, (priority, child_id) in enumerate(node.edges):
            is_last = (i == len(node.edges) - 1)
            connector = "└── " if is_last else "├── "
            child = tree.store.get(child_id)
            label = f"{child_id} ({Priority(priority).label})"
            lines.append(f"{prefix}{connector}{label}")
            if child.edges and not child.external:
                child_prefix = prefix + ("    " if is_last else "│   ")
                OutputFormatter._tree_lines(tree, child, child_prefix, lines)

    @staticmethod
    def format_as_json(tree: Tree) -> str:
        """Dump the tree: nodes with paths, priority paths and live edges."""
        nodes = {}
        for node in sorted(tree.store, key=lambda n: n.path):
            nodes[node.id] = {
                "path": list(node.path),
                "priority_path": list(node.priority_path),
                "edges": [[priority, dep_id] for priority, dep_id in node.edges],
                "external": node.external,
            }
        document = {
            "root": tree.root_id,
            "synthetic_root": tree.synthetic_root,
            "order": tree.order(),
            "stats": tree.stats,
            "nodes": nodes,
        }
        return json.dumps(document, indent=2) + '\n'

    @staticmethod
    def format_as_sbom(tree: Tree, command_line: str = None) -> str:
        """Generate a CycloneDX SBOM in JSON format, components in build order."""
        from . import __version__

        bom = Bom()
        bom.serial_number = uuid4()

        tool_component = Component(
            name="deporder",
            version=__version__,
            type=ComponentType.APPLICATION,
            bom_ref=f"pkg:generic/deporder@{__version__}",
        )
        bom.metadata.tools.components.add(tool_component)
        bom.metadata.timestamp = datetime.now(timezone.utc).replace(microsecond=0)

        if not tree.synthetic_root:
            bom.metadata.component = OutputFormatter._node_to_component(tree.root, ComponentType.APPLICATION)

        order = tree.order()
        for package_id in order:
            if package_id == tree.root_id:
                continue
            bom.components.add(OutputFormatter._node_to_component(tree.store.get(package_id)))

        outputter = JsonV1Dot6(bom)
        sbom = json.loads(outputter.output_as_string())

        # Library output is sorted; put components back in build order
        position = {OutputFormatter._build_purl(pid): i for i, pid in enumerate(order)}
        components = sbom.get('components', [])
        components.sort(key=lambda c: position.get(c.get('bom-ref'), len(position)))
        sbom['components'] = components

        # Declared dependencies, duplicates pruned from the tree included
        dependencies = []
        for package_id in order:
            node = tree.store.get(package_id)
            depends_on = [dep_id for _p, dep_id in node.source_edges if dep_id in tree]
            dependencies.append({
                "ref": OutputFormatter._build_purl(package_id),
                "dependsOn": [OutputFormatter._build_purl(dep_id) for dep_id in dict.fromkeys(depends_on)],
            })
        sbom['dependencies'] = dependencies

        metadata = sbom.setdefault('metadata', {})
        if command_line:
            metadata.setdefault('properties', []).append({
                'name': 'commandLine',
                'value': command_line
            })
        if 'timestamp' in metadata:
            match = re.match(r'(\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2})', metadata['timestamp'])
            if match:
                metadata['timestamp'] = match.group(1) + 'Z'

        return json.dumps(sbom, indent=2) + '\n'

    @staticmethod
    def _priority_to_cyclonedx(node: Node) -> ComponentScope:
        """
        Map the priority of the edge entering a node to a CycloneDX scope.

          required, recommended -> REQUIRED
          optional -> OPTIONAL
          external -> EXCLUDED (built outside this run)
        """
        if node.external:
            return ComponentScope.EXCLUDED
        if node.priority_path and node.priority_path[-1] == Priority.OPTIONAL:
            return ComponentScope.OPTIONAL
        return ComponentScope.REQUIRED

    @staticmethod
    def _node_to_component(node: Node, component_type: ComponentType = ComponentType.LIBRARY) -> Component:
        """Convert a tree node to a CycloneDX Component."""
        purl_str = OutputFormatter._build_purl(node.id)
        component = Component(
            name=node.id,
            type=component_type,
            purl=PackageURL.from_string(purl_str),
            bom_ref=purl_str,
        )
        if component_type == ComponentType.LIBRARY:
            component.scope = OutputFormatter._priority_to_cyclonedx(node)
        return component

    @staticmethod
    def _build_purl(package_id: str) -> str:
        """Build a Package URL (purl) string for a package."""
        return PackageURL(type="generic", name=package_id).to_string()
