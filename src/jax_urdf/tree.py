"""Kinematic tree construction and validation.

The flat link and joint lists of a description are resolved into an arena of
links indexed by declaration order. Parent/child relations are stored as index
tuples, so every later stage does direct lookups instead of name searches.
"""

import logging
from collections import deque
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from jax_urdf.core.description import JointDescription, LinkDescription
from jax_urdf.errors import StructuralError

console_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class KinematicTree:
    """A validated, single-rooted link tree.

    Attributes:
        link_names: Link names; the position is the link id.
        joint_names: Joint names; the position is the joint id.
        root: Id of the root link.
        parent_indices: Parent link id per link; the root parents itself.
        parent_joint: Id of the joint whose child is each link, -1 for the root
            and for links attached without a joint.
        child_joints: Outgoing joint ids per link, in declaration order.
        joint_parents: Parent link id per joint.
        joint_children: Child link id per joint.
        traversal_order: Link ids, every parent before its children.
    """

    link_names: Tuple[str, ...]
    joint_names: Tuple[str, ...]
    root: int
    parent_indices: Tuple[int, ...]
    parent_joint: Tuple[int, ...]
    child_joints: Tuple[Tuple[int, ...], ...]
    joint_parents: Tuple[int, ...]
    joint_children: Tuple[int, ...]
    traversal_order: Tuple[int, ...]

    @property
    def num_links(self) -> int:
        return len(self.link_names)

    def link_index(self, name: str) -> int:
        try:
            return self.link_names.index(name)
        except ValueError:
            raise KeyError(f"Unknown link '{name}'") from None

    def parent_of(self, link: int) -> Optional[int]:
        if link == self.root:
            return None
        return self.parent_indices[link]

    def children_of(self, link: int) -> Tuple[int, ...]:
        return tuple(i for i in self.traversal_order if i != self.root and self.parent_indices[i] == link)

    def ancestors(self, link: int) -> Tuple[int, ...]:
        """Ids from the parent of ``link`` up to the root."""
        result = []
        current = self.parent_of(link)
        while current is not None:
            result.append(current)
            current = self.parent_of(current)
        return tuple(result)

    def with_link(self, name: str, parent: int) -> "KinematicTree":
        """Return a tree with an extra leaf link attached to ``parent`` without a joint."""
        if name in self.link_names:
            raise StructuralError(f"Link '{name}' already exists")
        if not 0 <= parent < self.num_links:
            raise StructuralError(f"Unknown parent link id {parent}")
        index = self.num_links
        return KinematicTree(
            link_names=self.link_names + (name,),
            joint_names=self.joint_names,
            root=self.root,
            parent_indices=self.parent_indices + (parent,),
            parent_joint=self.parent_joint + (-1,),
            child_joints=self.child_joints + ((),),
            joint_parents=self.joint_parents,
            joint_children=self.joint_children,
            traversal_order=self.traversal_order + (index,),
        )


def find_root(link_names: Sequence[str], joints: Sequence[JointDescription]) -> str:
    """Locate the root link by walking parents upward from the first joint.

    With no joints the first declared link is the root.
    """
    if not link_names:
        raise StructuralError("Robot has no links")
    if not joints:
        return link_names[0]

    joint_by_child = {joint.child: joint for joint in joints}
    current = joints[0].parent
    visited = {current}
    while current in joint_by_child:
        current = joint_by_child[current].parent
        if current in visited:
            raise StructuralError(f"Cycle detected in the link graph through link '{current}'")
        visited.add(current)
    return current


def build_tree(
    links: Sequence[LinkDescription], joints: Sequence[JointDescription]
) -> KinematicTree:
    """Resolve links and joints into a validated KinematicTree.

    Args:
        links: Link descriptions in declaration order.
        joints: Joint descriptions in declaration order.

    Returns:
        KinematicTree: The resolved tree.

    Raises:
        StructuralError: If a joint references an unknown link, a link is the
            child of two joints, the graph has a cycle, or more than one root.
    """
    names = tuple(link.name for link in links)
    index: Dict[str, int] = {}
    for i, name in enumerate(names):
        if name in index:
            raise StructuralError(f"Duplicate link name '{name}'")
        index[name] = i

    n = len(names)
    parent_joint = [-1] * n
    child_joints: List[List[int]] = [[] for _ in range(n)]
    joint_parents = []
    joint_children = []

    for j, joint in enumerate(joints):
        for role, link_name in (("parent", joint.parent), ("child", joint.child)):
            if link_name not in index:
                raise StructuralError(
                    f"Joint '{joint.name}' references unknown {role} link '{link_name}'"
                )
        parent, child = index[joint.parent], index[joint.child]
        if parent == child:
            raise StructuralError(
                f"Joint '{joint.name}' connects link '{joint.parent}' to itself (cycle)"
            )
        if parent_joint[child] >= 0:
            other = joints[parent_joint[child]].name
            raise StructuralError(
                f"Link '{joint.child}' is the child of two joints: '{other}' and '{joint.name}'"
            )
        parent_joint[child] = j
        child_joints[parent].append(j)
        joint_parents.append(parent)
        joint_children.append(child)

    root = index[find_root(names, joints)]

    order = []
    queue = deque([root])
    visited = {root}
    while queue:
        current = queue.popleft()
        order.append(current)
        # Every link has at most one parent and the root has none, so no link
        # is queued twice.
        for j in child_joints[current]:
            child = joint_children[j]
            visited.add(child)
            queue.append(child)

    if len(order) != n:
        unreached = [i for i in range(n) if i not in visited]
        for start in unreached:
            _check_acyclic(start, parent_joint, joint_parents, names)
        raise StructuralError(
            f"Robot has more than one root: link(s) "
            f"{', '.join(repr(names[i]) for i in unreached)} are not connected to root '{names[root]}'"
        )

    parent_indices = tuple(
        joint_parents[parent_joint[i]] if parent_joint[i] >= 0 else i for i in range(n)
    )
    console_logger.debug("Built kinematic tree with root '%s' and %d links", names[root], n)
    return KinematicTree(
        link_names=names,
        joint_names=tuple(joint.name for joint in joints),
        root=root,
        parent_indices=parent_indices,
        parent_joint=tuple(parent_joint),
        child_joints=tuple(tuple(c) for c in child_joints),
        joint_parents=tuple(joint_parents),
        joint_children=tuple(joint_children),
        traversal_order=tuple(order),
    )


def _check_acyclic(start: int, parent_joint, joint_parents, names) -> None:
    seen = {start}
    current = start
    while parent_joint[current] >= 0:
        current = joint_parents[parent_joint[current]]
        if current in seen:
            raise StructuralError(f"Cycle detected in the link graph through link '{names[current]}'")
        seen.add(current)
