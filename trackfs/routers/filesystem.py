from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from trackfs.database import get_db
from trackfs.dependencies import get_current_user_id
from trackfs.schemas.node import (
    FileSystemNode,
    FileSystemTreeResponse,
    GraphStats,
    MoveRequest,
    NodeCreate,
    NodeType,
    NodeUpdate,
    NodeUrlResponse,
    ResolvedTrack,
    ValidationResult,
)
from trackfs.services import node_store
from trackfs.services.node_store import (
    InvalidMoveError,
    InvalidNameError,
    InvalidParentError,
    NodeConflictError,
    NodeNotFoundError,
    NodeStoreError,
)
from trackfs.services.nodes_tree import get_file_system_tree, get_user_nodes, load_user_graph
from trackfs.services.slugs import extract_step_from_url, find_step_index_by_name, parse_track_url_path, resolve_track_url, track_url_for_node

router = APIRouter(prefix="/filesystem", tags=["filesystem"])

_STATUS_BY_ERROR: dict[type[NodeStoreError], int] = {
    NodeNotFoundError: 404,
    NodeConflictError: 409,
    InvalidParentError: 400,
    InvalidMoveError: 400,
    InvalidNameError: 400,
}


def _http_error(e: NodeStoreError) -> HTTPException:
    return HTTPException(status_code=_STATUS_BY_ERROR.get(type(e), 400), detail=str(e))


@router.get("/nodes", response_model=list[FileSystemNode])
async def list_nodes(
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
) -> list[FileSystemNode]:
    return await get_user_nodes(db, user_id)


@router.get("/tree", response_model=FileSystemTreeResponse)
async def get_tree(
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
) -> FileSystemTreeResponse:
    return await get_file_system_tree(db, user_id)


@router.post("/nodes", response_model=FileSystemNode, status_code=201)
async def create_node(
    data: NodeCreate,
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
) -> FileSystemNode:
    try:
        return await node_store.create_node(db, user_id, data)
    except NodeStoreError as e:
        raise _http_error(e)


@router.patch("/nodes/{node_id}", response_model=FileSystemNode)
async def update_node(
    node_id: str,
    data: NodeUpdate,
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
) -> FileSystemNode:
    try:
        return await node_store.update_node(db, user_id, node_id, data)
    except NodeStoreError as e:
        raise _http_error(e)


@router.post("/nodes/{node_id}/move", response_model=FileSystemNode)
async def move_node(
    node_id: str,
    body: MoveRequest,
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
) -> FileSystemNode:
    try:
        return await node_store.move_node(db, user_id, node_id, body.new_parent_id)
    except NodeStoreError as e:
        raise _http_error(e)


@router.delete("/nodes/{node_id}", response_model=list[str])
async def delete_node(
    node_id: str,
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
) -> list[str]:
    """Delete a node with its subtree. Returns the removed ids."""
    try:
        return await node_store.delete_node(db, user_id, node_id)
    except NodeStoreError as e:
        raise _http_error(e)


@router.get("/validate", response_model=ValidationResult)
async def validate(
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
) -> ValidationResult:
    graph = await load_user_graph(db, user_id)
    return graph.validate_hierarchy()


@router.get("/stats", response_model=GraphStats)
async def stats(
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
) -> GraphStats:
    graph = await load_user_graph(db, user_id)
    return graph.get_stats()


@router.get("/search", response_model=list[FileSystemNode])
async def search_nodes(
    q: str = Query(..., min_length=1),
    type: NodeType | None = None,
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
) -> list[FileSystemNode]:
    graph = await load_user_graph(db, user_id)
    return sorted(graph.find_by_name(q, type), key=lambda n: graph.get_path(n.id).casefold())


@router.get("/nodes/{node_id}/url", response_model=NodeUrlResponse)
async def get_node_url(
    node_id: str,
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
) -> NodeUrlResponse:
    graph = await load_user_graph(db, user_id)
    node = graph.get_node(node_id)
    if node is None:
        raise HTTPException(status_code=404, detail="Node not found")
    if node.type != "track":
        raise HTTPException(status_code=400, detail="Only tracks have deep links")
    return NodeUrlResponse(id=node_id, url=track_url_for_node(graph, node_id))


@router.get("/resolve", response_model=ResolvedTrack)
async def resolve_url(
    url: str = Query(..., min_length=1),
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
) -> ResolvedTrack:
    """Resolve a /repl/... deep link to the track it names."""
    parsed = parse_track_url_path(url)
    if parsed is None:
        raise HTTPException(status_code=400, detail="Not a track URL")
    graph = await load_user_graph(db, user_id)
    node = resolve_track_url(graph, url)
    if node is None:
        raise HTTPException(status_code=404, detail="Track not found")
    step = extract_step_from_url(url)
    return ResolvedTrack(
        node=node,
        folder_path=parsed.folder_path,
        track_slug=parsed.track_slug,
        step_index=find_step_index_by_name(node.steps, step) if step else None,
    )
