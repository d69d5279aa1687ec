# remixtree/api/comments/tree.py
"""
부모 ID로 연결된 평면 댓글 목록을 트리(forest)로 만들고, 다시 전위 순회 순서로 펼치는 순수 함수 모음.
I/O가 없으며 요청마다 새로 만들어지고 저장되지 않습니다.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional


@dataclass
class CommentTreeNode:
    """댓글 하나와 그 자식 노드 목록, 깊이(루트 = 0)."""
    comment: Dict[str, Any]
    children: List['CommentTreeNode'] = field(default_factory=list)
    depth: int = 0

    @property
    def comment_id(self) -> str:
        return self.comment['comment_id']

    @property
    def parent_id(self) -> Optional[str]:
        return self.comment.get('parent_id')

    def to_dict(self) -> Dict[str, Any]:
        """트리 응답용: 댓글 필드 + depth + 중첩 children"""
        result = dict(self.comment)
        result['depth'] = self.depth
        result['children'] = [child.to_dict() for child in self.children]
        return result

    def to_flat_dict(self) -> Dict[str, Any]:
        """평면 목록 응답용: 자식은 중첩하지 않고 개수만 담습니다."""
        result = dict(self.comment)
        result['depth'] = self.depth
        result['child_count'] = len(self.children)
        return result


def _assign_depths(roots: List[CommentTreeNode], visited: set) -> None:
    stack = [(root, 0) for root in reversed(roots)]
    while stack:
        node, depth = stack.pop()
        node.depth = depth
        visited.add(node.comment_id)
        for child in reversed(node.children):
            stack.append((child, depth + 1))


def build_tree(comments: Iterable[Dict[str, Any]]) -> List[CommentTreeNode]:
    """
    한 게시물의 전체 댓글 목록으로 forest를 만듭니다.

    - 형제 순서는 입력 순서를 따릅니다 (정렬하지 않음, created_at 오름차순 입력을 기대).
    - parent_id가 없거나 입력에 없는 부모를 가리키는 댓글은 깊이 0의 루트가 됩니다.
    - 부모 순환(자기 자신을 부모로 가리키는 경우 포함)으로 루트에서 닿지 않는 노드는
      연결을 끊고 루트로 올려서, 어떤 댓글도 결과에서 빠지지 않습니다.
    """
    comments = list(comments)
    nodes: Dict[str, CommentTreeNode] = {}
    for comment in comments:
        nodes[comment['comment_id']] = CommentTreeNode(comment=comment)

    roots: List[CommentTreeNode] = []
    for comment in comments:
        node = nodes[comment['comment_id']]
        parent = nodes.get(node.parent_id) if node.parent_id else None
        if parent is None:
            roots.append(node)
        else:
            parent.children.append(node)

    visited: set = set()
    _assign_depths(roots, visited)

    if len(visited) < len(nodes):
        # 순환에 갇힌 노드: 입력 순서상 첫 노드를 부모에서 떼어 루트로 올리고 다시 깊이를 매깁니다.
        for comment in comments:
            node = nodes[comment['comment_id']]
            if node.comment_id in visited:
                continue
            parent = nodes[node.parent_id]
            parent.children = [c for c in parent.children if c is not node]
            roots.append(node)
            _assign_depths([node], visited)

    return roots


def flatten(forest: Iterable[CommentTreeNode]) -> List[CommentTreeNode]:
    """전위 순회: 노드 다음에 그 자손 전체, 그 다음에 다음 형제."""
    flattened: List[CommentTreeNode] = []
    stack = list(reversed(list(forest)))
    while stack:
        node = stack.pop()
        flattened.append(node)
        stack.extend(reversed(node.children))
    return flattened


def collect_subtree_ids(comments: Iterable[Dict[str, Any]], root_id: str) -> List[str]:
    """root_id 댓글과 그 모든 자손의 ID를 전위 순서로 반환합니다. root_id가 없으면 빈 목록."""
    for node in flatten(build_tree(comments)):
        if node.comment_id == root_id:
            return [n.comment_id for n in flatten([node])]
    return []
