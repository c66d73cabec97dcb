"""Service to load a user's nodes from the store of record into a graph."""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from trackfs.models import Node
from trackfs.schemas.node import FileSystemNode, FileSystemTreeResponse
from trackfs.services.graph import FileSystemGraph


def row_to_node(row: Node) -> FileSystemNode:
    return FileSystemNode.model_validate(row)


def node_to_row(node: FileSystemNode) -> Node:
    return Node(**node.model_dump())


async def get_user_nodes(db: AsyncSession, user_id: str) -> list[FileSystemNode]:
    result = await db.execute(
        select(Node).where(Node.user_id == user_id).order_by(Node.created, Node.id)
    )
    return [row_to_node(r) for r in result.scalars().all()]


async def load_user_graph(db: AsyncSession, user_id: str) -> FileSystemGraph:
    return FileSystemGraph(await get_user_nodes(db, user_id))


async def get_file_system_tree(db: AsyncSession, user_id: str) -> FileSystemTreeResponse:
    """Build the sorted folder+track tree for a user, with stats and validation."""
    graph = await load_user_graph(db, user_id)
    return FileSystemTreeResponse(
        roots=graph.build_tree(),
        stats=graph.get_stats(),
        validation=graph.validate_hierarchy(),
    )
